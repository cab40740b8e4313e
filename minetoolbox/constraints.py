"""Constraint extraction: revealed clues become mine-count equations over unknown neighbors."""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .board import FLAGGED, UNKNOWN, check_grid, is_revealed
from .errors import Contradiction
from .layout import MINE
from .utils import get_neighborhoods

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]


@dataclass(frozen=True)
class Constraint:
    """
    "Exactly `remaining` of `cells` are mines", read off one revealed cell.

    Attributes:
        target: The revealed cell the constraint comes from.
        remaining: Clue minus flagged neighbors.
        cells: Unknown neighbors of the target, row-major.
    """

    target: Pos
    remaining: int
    cells: Tuple[Pos, ...]

    @property
    def density(self) -> float:
        return self.remaining / len(self.cells) if self.cells else 0.0


def extract_constraints(grid: Sequence[Sequence[int]]) -> List[Constraint]:
    """
    Derive one constraint per revealed cell that still borders unknown cells.

    Args:
        grid: Snapshot grid of cell-state codes.

    Returns:
        Constraints in row-major order of their target cell.

    Raises:
        BoardError: If the grid is malformed.
        Contradiction: If some clue is below its flag count or above the
            number of cells left to hold its mines. Every offending
            constraint is reported, not only the first.
    """
    rows, cols = check_grid(grid)
    neighborhoods = get_neighborhoods(rows, cols)

    constraints: List[Constraint] = []
    infeasible: List[Constraint] = []

    for r in range(rows):
        for c in range(cols):
            clue = grid[r][c]
            if not is_revealed(clue):
                continue

            flagged = 0
            unknown: List[Pos] = []
            for nr, nc in neighborhoods[(r, c)]:
                code = grid[nr][nc]
                if code in (FLAGGED, MINE):
                    flagged += 1
                elif code == UNKNOWN:
                    unknown.append((nr, nc))

            constraint = Constraint((r, c), clue - flagged, tuple(unknown))
            if constraint.remaining < 0 or constraint.remaining > len(unknown):
                infeasible.append(constraint)
                continue
            if unknown:
                constraints.append(constraint)

    if infeasible:
        first = infeasible[0]
        raise Contradiction(
            f"{len(infeasible)} clue(s) cannot be satisfied, first at {first.target}: "
            f"{first.remaining} mine(s) needed among {len(first.cells)} unknown cell(s).",
            infeasible,
        )

    logger.debug(f"[minetoolbox] extracted {len(constraints)} constraints from {rows}x{cols} board")
    return constraints
