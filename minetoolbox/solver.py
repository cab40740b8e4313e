"""Probability solver: board snapshot -> calibrated per-cell mine probabilities."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .aggregation import aggregate, aggregate_density
from .board import FLAGGED, Board, BoardSnapshot, UNKNOWN, check_grid
from .config import SolverConfig
from .constraints import extract_constraints
from .enumeration import ComponentProfile, profile_component
from .errors import Contradiction
from .layout import MINE
from .partition import Partition, partition_constraints

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]
Grid = Sequence[Sequence[int]]
BoardLike = Union[Board, BoardSnapshot, Grid]


@dataclass
class ProbabilityMap:
    """
    Mine probability of every unknown, unflagged cell of one board.

    Attributes:
        rows: Board height.
        cols: Board width.
        probabilities: pos -> probability in [0, 1].
        exact: pos -> exact Fraction, or None if not computed.
        remaining_mines: Mines not yet accounted for by flags; None in
            density mode.
        approximate: True if any component was estimated instead of
            enumerated.
        approximated_components: Indices (into partition.components) of the
            estimated components.
        partition: The component grouping the map was computed from.
        known_mines: Flagged or exposed mine cells.
        certain: pos -> 0 or 1 for cells that are certainly safe or a mine.
        mines_exact: False when remaining_mines is only an upper bound.
    """

    rows: int
    cols: int
    probabilities: Dict[Pos, float]
    exact: Optional[Dict[Pos, Fraction]]
    remaining_mines: Optional[int]
    approximate: bool
    approximated_components: Tuple[int, ...]
    partition: Partition
    known_mines: Tuple[Pos, ...] = ()
    certain: Dict[Pos, int] = field(default_factory=dict)
    mines_exact: bool = True

    def __getitem__(self, pos: Pos) -> float:
        return self.probabilities[pos]

    def __contains__(self, pos: object) -> bool:
        return pos in self.probabilities

    def __len__(self) -> int:
        return len(self.probabilities)

    def get(self, pos: Pos, default: Optional[float] = None) -> Optional[float]:
        return self.probabilities.get(pos, default)

    def total(self) -> float:
        """Sum of all probabilities (the expected number of remaining mines)."""
        if self.exact is not None:
            return float(sum(self.exact.values()))
        return sum(self.probabilities.values())

    def _certain(self, value: int) -> List[Pos]:
        return sorted(pos for pos, v in self.certain.items() if v == value)

    def safe_cells(self) -> List[Pos]:
        """Cells that are certainly safe, row-major."""
        return self._certain(0)

    def mine_cells(self) -> List[Pos]:
        """Cells that are certainly mines, row-major."""
        return self._certain(1)

    def best_guess(self) -> Optional[Pos]:
        """
        The lowest-risk cell to reveal.

        Ties are broken in favor of constrained (frontier) cells, which carry
        more information when opened, then by row-major order.
        """
        if not self.probabilities:
            return None
        free = set(self.partition.free)
        return min(
            self.probabilities,
            key=lambda pos: (self.probabilities[pos], pos in free, pos),
        )

    def to_array(self) -> np.ndarray:
        """
        Board-shaped float array: probabilities on unknown cells, 0.0 on
        revealed cells and 1.0 on flagged or exposed mines.
        """
        out = np.zeros((self.rows, self.cols), dtype=float)
        for (r, c), p in self.probabilities.items():
            out[r, c] = p
        for r, c in self.known_mines:
            out[r, c] = 1.0
        return out


def _as_grid(board: BoardLike) -> Tuple[Grid, Optional[int], bool]:
    if isinstance(board, (Board, BoardSnapshot)):
        return board.grid, board.total_mines, board.mines_exact
    return board, None, True


def _profile_all(
    partition: Partition, max_mines: Optional[int], config: SolverConfig
) -> List[ComponentProfile]:
    components = partition.components
    if config.workers > 1 and len(components) > 1:
        # Components are disjoint, so each worker owns its component outright.
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            return list(
                pool.map(lambda comp: profile_component(comp, max_mines, config), components)
            )
    return [profile_component(comp, max_mines, config) for comp in components]


def solve(
    board: BoardLike,
    total_mines: Optional[int] = None,
    *,
    density: Optional[float] = None,
    mines_exact: Optional[bool] = None,
    config: Optional[SolverConfig] = None,
) -> ProbabilityMap:
    """
    Compute the mine probability of every unknown, unflagged cell.

    Args:
        board: A Board, a BoardSnapshot or a raw grid of cell-state codes.
        total_mines: Total mines on the board. Defaults to the board's own
            total when a Board or BoardSnapshot is passed.
        density: Per-cell prior mine probability, used instead of a mine
            total when the total is unknown.
        mines_exact: Whether total_mines is the exact total or only an upper
            bound. Defaults to the board's own setting, or True for raw grids.
        config: Enumeration ceilings and numeric policy.

    Returns:
        The probability map. Flagged cells count as known mines.

    Raises:
        BoardError: If the grid is malformed.
        Contradiction: If the board cannot be completed consistently.
        SolveTimeout: If a ceiling was hit and config.on_ceiling == "raise".
        ValueError: If neither a mine total nor a density is available.
    """
    config = config or SolverConfig()
    grid, board_total, board_exact = _as_grid(board)
    rows, cols = check_grid(grid)

    if total_mines is None and density is None:
        total_mines = board_total
    if total_mines is None and density is None:
        raise ValueError("solve() needs total_mines or density.")
    if mines_exact is None:
        mines_exact = board_exact

    known = tuple(
        (r, c) for r, row in enumerate(grid) for c, code in enumerate(row) if code in (FLAGGED, MINE)
    )
    known_mines = len(known)
    remaining: Optional[int] = None
    if total_mines is not None:
        remaining = total_mines - known_mines
        if remaining < 0:
            raise Contradiction(
                f"{known_mines} flagged or exposed mines exceed the total of {total_mines}."
            )

    constraints = extract_constraints(grid)
    partition = partition_constraints(grid, constraints)
    profiles = _profile_all(partition, remaining, config)

    if remaining is not None:
        result = aggregate(
            profiles, partition.free, remaining, exact=config.exact, mines_exact=mines_exact
        )
    else:
        result = aggregate_density(profiles, partition.free, float(density))

    approximated = tuple(i for i, p in enumerate(profiles) if p.approximate)
    unknown = sum(1 for row in grid for code in row if code == UNKNOWN)
    logger.debug(
        f"[minetoolbox] solved {rows}x{cols} board: {unknown} unknown cells, "
        f"{len(partition.components)} components, {len(approximated)} approximated"
    )

    return ProbabilityMap(
        rows=rows,
        cols=cols,
        probabilities=result.probabilities,
        exact=result.exact,
        remaining_mines=remaining,
        approximate=bool(approximated),
        approximated_components=approximated,
        partition=partition,
        known_mines=known,
        certain=result.certain,
        mines_exact=mines_exact,
    )
