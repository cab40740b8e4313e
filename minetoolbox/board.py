"""Board model: fixed-shape grid of cell states with reveal, flag and chord operations."""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .errors import BoardError, InvalidMove
from .layout import MINE, validate_layout
from .utils import format_grid, get_neighborhoods

Pos = Tuple[int, int]

# Cell-state codes of a board snapshot. 0..8 are revealed clues.
UNKNOWN = 10
FLAGGED = 11

_SYMBOLS: Dict[int, str] = {UNKNOWN: ".", FLAGGED: "F", MINE: "*"}


def is_revealed(code: int) -> bool:
    """Return True for a revealed-clue code (0..8)."""
    return 0 <= code <= 8


def _symbol(code: int) -> str:
    return _SYMBOLS.get(code, str(code))


def parse_grid(text: str) -> List[List[int]]:
    """
    Parse an ASCII board into cell-state codes.

    Rows are separated by newlines; blank lines and surrounding whitespace are
    ignored. "." is unknown, "F" flagged, "*" a mine and "0".."8" revealed clues.

    Raises:
        BoardError: On an unrecognized character or a ragged board.
    """
    codes = {".": UNKNOWN, "F": FLAGGED, "*": MINE}
    grid: List[List[int]] = []
    for line in text.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        row: List[int] = []
        for ch in line:
            if ch.isdigit():
                row.append(int(ch))
            elif ch in codes:
                row.append(codes[ch])
            else:
                raise BoardError(f"Unrecognized board character {ch!r}.")
        grid.append(row)
    return grid


def check_grid(grid: Sequence[Sequence[int]]) -> Tuple[int, int]:
    """
    Validate a snapshot grid's shape and codes.

    Returns:
        (rows, cols).

    Raises:
        BoardError: If the grid is empty, ragged, or holds an unknown code.
    """
    rows = len(grid)
    if rows == 0 or len(grid[0]) == 0:
        raise BoardError("Board must have at least one row and one column.")
    cols = len(grid[0])
    for r, row in enumerate(grid):
        if len(row) != cols:
            raise BoardError(f"Row {r} has {len(row)} cells, expected {cols}.")
        for c, code in enumerate(row):
            if not (is_revealed(code) or code in (UNKNOWN, FLAGGED, MINE)):
                raise BoardError(f"Invalid cell code {code!r} at {(r, c)}.")
    return rows, cols


@dataclass(frozen=True)
class BoardSnapshot:
    """Immutable copy of a board's visible state."""

    rows: int
    cols: int
    total_mines: Optional[int]
    grid: Tuple[Tuple[int, ...], ...]
    mines_exact: bool = True

    def cell(self, pos: Pos) -> int:
        r, c = pos
        return self.grid[r][c]

    def to_array(self) -> np.ndarray:
        return np.array(self.grid, dtype=np.int8)

    def __str__(self) -> str:
        return format_grid([[_symbol(v) for v in row] for row in self.grid])


class Board:
    """
    Mutable-content grid of cell states.

    A board runs in one of two modes:
    - simulation mode, when a ground-truth layout is supplied: reveals read
      their clue from the layout and zero clues cascade;
    - observed mode, without a layout: the caller reports each clue it saw.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        total_mines: Optional[int],
        layout: Optional[Sequence[Sequence[int]]] = None,
        mines_exact: bool = True,
    ) -> None:
        """
        Initialize an all-unknown board.

        Args:
            rows: Board height, must be > 0.
            cols: Board width, must be > 0.
            total_mines: Total mine count; an upper bound when mines_exact is
                False, or None when unknown.
            layout: Optional ground-truth layout (-1 mines, clues elsewhere).
            mines_exact: Whether total_mines is exact.

        Raises:
            BoardError: If dimensions or the layout are invalid.
        """
        if rows <= 0 or cols <= 0:
            raise BoardError("rows and cols must be positive.")
        if total_mines is not None and not 0 <= total_mines <= rows * cols:
            raise BoardError("total_mines must be between 0 and rows * cols.")

        self.layout: Optional[List[List[int]]] = None
        if layout is not None:
            if validate_layout(layout) != (rows, cols):
                raise BoardError("Layout dimensions do not match the board.")
            self.layout = [list(row) for row in layout]
            layout_mines = sum(row.count(MINE) for row in self.layout)
            if total_mines is not None and mines_exact and total_mines != layout_mines:
                raise BoardError(
                    f"total_mines={total_mines} but the layout holds {layout_mines} mines."
                )
            total_mines = layout_mines

        self.rows: int = rows
        self.cols: int = cols
        self.total_mines: Optional[int] = total_mines
        self.mines_exact: bool = mines_exact and total_mines is not None

        self.grid: List[List[int]] = [[UNKNOWN for _ in range(cols)] for _ in range(rows)]
        self.flag_count: int = 0
        self.revealed_count: int = 0
        self.exploded: Optional[Pos] = None

        self._neighborhoods: Dict[Pos, Tuple[Pos, ...]] = get_neighborhoods(rows, cols)

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def from_layout(cls, layout: Sequence[Sequence[int]]) -> "Board":
        """Create an all-unknown simulation-mode board over a ground-truth layout."""
        rows, cols = validate_layout(layout)
        return cls(rows, cols, None, layout=layout)

    @classmethod
    def from_grid(
        cls,
        grid: Sequence[Sequence[int]],
        total_mines: Optional[int],
        mines_exact: bool = True,
    ) -> "Board":
        """Create an observed-mode board from a snapshot grid of cell-state codes."""
        rows, cols = check_grid(grid)
        board = cls(rows, cols, total_mines, mines_exact=mines_exact)
        for r, row in enumerate(grid):
            for c, code in enumerate(row):
                board.grid[r][c] = code
                if code == FLAGGED:
                    board.flag_count += 1
                elif is_revealed(code):
                    board.revealed_count += 1
                elif code == MINE:
                    board.exploded = (r, c)
        return board

    @classmethod
    def from_string(
        cls, text: str, total_mines: Optional[int], mines_exact: bool = True
    ) -> "Board":
        """Create an observed-mode board from its ASCII form (see parse_grid)."""
        return cls.from_grid(parse_grid(text), total_mines, mines_exact=mines_exact)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def simulation(self) -> bool:
        return self.layout is not None

    def in_bounds(self, pos: Pos) -> bool:
        r, c = pos
        return 0 <= r < self.rows and 0 <= c < self.cols

    def cell(self, pos: Pos) -> int:
        r, c = pos
        return self.grid[r][c]

    def neighbors(self, pos: Pos) -> Tuple[Pos, ...]:
        """Return the (at most 8) in-bounds neighbors of a cell."""
        if not self.in_bounds(pos):
            raise InvalidMove(f"Cell {pos} is outside the board.")
        return self._neighborhoods[pos]

    def unknown_positions(self) -> List[Pos]:
        """Unrevealed, unflagged cells in row-major order."""
        return [
            (r, c)
            for r in range(self.rows)
            for c in range(self.cols)
            if self.grid[r][c] == UNKNOWN
        ]

    def is_cleared(self) -> bool:
        """True once every non-mine cell has been revealed (simulation mode)."""
        if self.layout is None or self.total_mines is None:
            raise ValueError("is_cleared requires a ground-truth layout.")
        return self.revealed_count == self.rows * self.cols - self.total_mines

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _check_target(self, pos: Pos) -> int:
        if not self.in_bounds(pos):
            raise InvalidMove(f"Cell {pos} is outside the board.")
        return self.cell(pos)

    def open_cell(self, pos: Pos) -> List[Pos]:
        """
        Reveal an Unknown cell from the layout, cascading through zero clues.

        The cascade uses an explicit worklist and only ever opens Unknown
        cells, so flagged cells stay closed and every cell is opened once.

        Returns:
            Newly revealed positions in reveal order. If the cell is a mine,
            the list holds just that cell and the board records `exploded`.

        Raises:
            InvalidMove: If the cell is out of bounds, revealed or flagged.
            ValueError: If the board has no layout.
        """
        code = self._check_target(pos)
        if code != UNKNOWN:
            state = "flagged" if code == FLAGGED else "revealed"
            raise InvalidMove(f"Cell {pos} is already {state}.")
        if self.layout is None:
            raise ValueError("open_cell requires a ground-truth layout; pass the clue to reveal().")

        r, c = pos
        if self.layout[r][c] == MINE:
            self.grid[r][c] = MINE
            self.exploded = pos
            return [pos]

        frontier: Deque[Pos] = deque([pos])
        queued: Set[Pos] = {pos}
        opened: List[Pos] = []

        while frontier:
            cr, cc = frontier.popleft()
            if self.grid[cr][cc] != UNKNOWN:
                continue

            clue = self.layout[cr][cc]
            self.grid[cr][cc] = clue
            self.revealed_count += 1
            opened.append((cr, cc))

            if clue == 0:
                for nr, nc in self._neighborhoods[(cr, cc)]:
                    if (nr, nc) in queued or self.grid[nr][nc] != UNKNOWN:
                        continue
                    queued.add((nr, nc))
                    frontier.append((nr, nc))

        return opened

    def reveal(self, pos: Pos, clue: Optional[int] = None) -> int:
        """
        Reveal one cell.

        Args:
            pos: Target cell (row, col).
            clue: Observed clue, required in observed mode and checked against
                the layout in simulation mode.

        Returns:
            The revealed clue, or -1 if a mine was hit.

        Raises:
            InvalidMove: If pos is out of bounds, already revealed or flagged.
            ValueError: If the clue is missing, out of range or contradicts
                the layout.
        """
        code = self._check_target(pos)
        if code != UNKNOWN:
            state = "flagged" if code == FLAGGED else "revealed"
            raise InvalidMove(f"Cell {pos} is already {state}.")

        r, c = pos
        if self.layout is not None:
            if clue is not None and clue != self.layout[r][c]:
                raise ValueError(
                    f"Clue {clue} at {pos} contradicts the layout value {self.layout[r][c]}."
                )
            self.open_cell(pos)
            return self.grid[r][c]

        if clue is None:
            raise ValueError("Observed-mode reveal needs the clue that was shown.")
        if not 0 <= clue <= 8:
            raise ValueError(f"Clue must be between 0 and 8, got {clue}.")
        self.grid[r][c] = clue
        self.revealed_count += 1
        return clue

    def flag(self, pos: Pos) -> None:
        """Flag an Unknown cell."""
        code = self._check_target(pos)
        if code != UNKNOWN:
            raise InvalidMove(f"Only unknown cells can be flagged; {pos} is not.")
        if self.mines_exact and self.total_mines is not None and self.flag_count >= self.total_mines:
            raise InvalidMove(
                f"Cannot place more than {self.total_mines} flags on this board."
            )
        r, c = pos
        self.grid[r][c] = FLAGGED
        self.flag_count += 1

    def unflag(self, pos: Pos) -> None:
        """Remove the flag from a Flagged cell."""
        code = self._check_target(pos)
        if code != FLAGGED:
            raise InvalidMove(f"Cell {pos} is not flagged.")
        r, c = pos
        self.grid[r][c] = UNKNOWN
        self.flag_count -= 1

    def chord(self, pos: Pos) -> List[Pos]:
        """
        Open every Unknown neighbor of a revealed cell whose clue is satisfied by flags.

        Returns:
            Newly revealed positions (empty when the chord does nothing). A
            wrongly flagged neighborhood can open a mine, which shows up as
            `exploded`.

        Raises:
            InvalidMove: If the target is not a revealed cell.
        """
        code = self._check_target(pos)
        if not is_revealed(code):
            raise InvalidMove(f"Chord target {pos} is not a revealed cell.")

        nbrs = self._neighborhoods[pos]
        flagged = sum(1 for n in nbrs if self.cell(n) == FLAGGED)
        if flagged != code:
            return []

        opened: List[Pos] = []
        for n in nbrs:
            if self.cell(n) == UNKNOWN:
                opened.extend(self.open_cell(n))
        return opened

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(
            rows=self.rows,
            cols=self.cols,
            total_mines=self.total_mines,
            grid=tuple(tuple(row) for row in self.grid),
            mines_exact=self.mines_exact,
        )

    def copy(self) -> "Board":
        """Deep copy, including the layout and counters."""
        other = Board(
            self.rows,
            self.cols,
            self.total_mines,
            layout=self.layout,
            mines_exact=self.mines_exact,
        )
        other.grid = [list(row) for row in self.grid]
        other.flag_count = self.flag_count
        other.revealed_count = self.revealed_count
        other.exploded = self.exploded
        return other

    def to_array(self) -> np.ndarray:
        """Export the visible grid as an int8 numpy array of cell-state codes."""
        return np.array(self.grid, dtype=np.int8)

    def format(self, reveal_all: bool = False) -> str:
        """
        Render the board as a multi-line string.

        Args:
            reveal_all: If True and a layout is known, show mines and all clues.
        """
        if reveal_all and self.layout is not None:
            source = self.layout
        else:
            source = self.grid
        return format_grid([[_symbol(v) for v in row] for row in source])

    def __str__(self) -> str:
        return self.format()
