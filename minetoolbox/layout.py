"""Ground-truth layouts: clue computation, validation and mine placement."""

import random
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .errors import BoardError
from .utils import get_neighborhoods

MINE = -1

Layout = List[List[int]]
Pos = Tuple[int, int]

MINE_GENERATION_RULES = ("safe_first_action_rule", "safe_neighborhood_rule")


def layout_dimensions(layout: Sequence[Sequence[int]]) -> Tuple[int, int]:
    """Return (rows, cols) of a rectangular grid, raising BoardError otherwise."""
    rows = len(layout)
    if rows == 0:
        raise BoardError("Board must have at least one row.")
    cols = len(layout[0])
    if cols == 0:
        raise BoardError("Board must have at least one column.")
    for r, row in enumerate(layout):
        if len(row) != cols:
            raise BoardError(f"Row {r} has {len(row)} cells, expected {cols}.")
    return rows, cols


def layout_from_mines(rows: int, cols: int, mines: Iterable[Pos]) -> Layout:
    """
    Build a ground-truth layout from mine positions.

    Args:
        rows: Number of rows.
        cols: Number of columns.
        mines: Mine coordinates (row, col).

    Returns:
        Grid where mines are -1 and every other cell holds its clue.

    Raises:
        BoardError: If dimensions are invalid or a mine is out of bounds.
    """
    if rows <= 0 or cols <= 0:
        raise BoardError("rows and cols must be positive.")

    layout: Layout = [[0 for _ in range(cols)] for _ in range(rows)]
    for r, c in mines:
        if not (0 <= r < rows and 0 <= c < cols):
            raise BoardError(f"Mine {(r, c)} is outside the board.")
        layout[r][c] = MINE

    fill_clues(layout)
    return layout


def fill_clues(layout: Layout) -> None:
    """Populate every non-mine cell with its adjacent mine count (in place)."""
    rows, cols = layout_dimensions(layout)
    neighborhoods = get_neighborhoods(rows, cols)
    for r in range(rows):
        for c in range(cols):
            if layout[r][c] == MINE:
                continue
            layout[r][c] = sum(
                1 for nr, nc in neighborhoods[(r, c)] if layout[nr][nc] == MINE
            )


def validate_layout(layout: Sequence[Sequence[int]]) -> Tuple[int, int]:
    """
    Check that a layout is rectangular and that every clue matches its mines.

    Returns:
        (rows, cols) of the layout.

    Raises:
        BoardError: On the first inconsistent cell.
    """
    rows, cols = layout_dimensions(layout)
    neighborhoods = get_neighborhoods(rows, cols)
    for r in range(rows):
        for c in range(cols):
            v = layout[r][c]
            if v == MINE:
                continue
            if not isinstance(v, int) or not 0 <= v <= 8:
                raise BoardError(f"Invalid layout value {v!r} at {(r, c)}.")
            expected = sum(
                1 for nr, nc in neighborhoods[(r, c)] if layout[nr][nc] == MINE
            )
            if v != expected:
                raise BoardError(
                    f"Clue {v} at {(r, c)} does not match {expected} adjacent mines."
                )
    return rows, cols


def mine_positions(layout: Sequence[Sequence[int]]) -> List[Pos]:
    """Return mine coordinates of a layout in row-major order."""
    return [
        (r, c)
        for r, row in enumerate(layout)
        for c, v in enumerate(row)
        if v == MINE
    ]


def lay_mines(
    rows: int,
    cols: int,
    mines_count: int,
    first_click: Optional[Pos] = None,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    rng: Optional[random.Random] = None,
) -> Layout:
    """
    Place mines uniformly at random, respecting a first-click safety rule.

    Args:
        rows: Number of rows, must be > 0.
        cols: Number of columns, must be > 0.
        mines_count: Total number of mines to place, must be >= 0.
        first_click: Cell guaranteed safe; None disables first-click safety.
        mines_generation_algorithm: One of
            {"safe_first_action_rule", "safe_neighborhood_rule"}. The first
            keeps only the clicked cell safe, the second also its neighbors.
        rng: Random source; a fresh random.Random() when omitted.

    Returns:
        A ground-truth layout.

    Raises:
        ValueError: If the algorithm is unrecognized or mines cannot be placed.
    """
    if rows <= 0 or cols <= 0:
        raise ValueError("rows and cols must be positive.")
    if mines_count < 0:
        raise ValueError("mines_count must be non-negative.")
    if mines_generation_algorithm not in MINE_GENERATION_RULES:
        raise ValueError(
            'mines_generation_algorithm must be "safe_first_action_rule" '
            'or "safe_neighborhood_rule".'
        )

    rng = rng or random.Random()

    safe: Set[Pos] = set()
    if first_click is not None:
        fr, fc = first_click
        if not (0 <= fr < rows and 0 <= fc < cols):
            raise ValueError("first_click is outside the board.")
        safe.add(first_click)
        if mines_generation_algorithm == "safe_neighborhood_rule":
            safe.update(get_neighborhoods(rows, cols)[first_click])

    eligible: List[Pos] = [
        (r, c) for r in range(rows) for c in range(cols) if (r, c) not in safe
    ]
    if mines_count > len(eligible):
        raise ValueError(
            f"Cannot place {mines_count} mines; only {len(eligible)} cells are eligible."
        )

    return layout_from_mines(rows, cols, rng.sample(eligible, mines_count))
