"""Constraint-graph partitioning into independently solvable components."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .board import UNKNOWN, check_grid
from .constraints import Constraint

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]


@dataclass(frozen=True)
class ConstraintComponent:
    """Maximal set of constraints linked by shared unknown cells, plus those cells."""

    constraints: Tuple[Constraint, ...]
    cells: Tuple[Pos, ...]

    def __len__(self) -> int:
        return len(self.cells)


@dataclass(frozen=True)
class Partition:
    """
    Components and the free pool of one board.

    Together `components[*].cells` and `free` cover every unknown,
    unflagged cell exactly once.
    """

    components: Tuple[ConstraintComponent, ...]
    free: Tuple[Pos, ...]

    @property
    def frontier_size(self) -> int:
        return sum(len(comp) for comp in self.components)

    def cell_sets(self) -> List[frozenset]:
        return [frozenset(comp.cells) for comp in self.components]


class _UnionFind:
    def __init__(self, n: int) -> None:
        self.parent = list(range(n))

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            # Smaller index wins so roots do not depend on call order.
            if rb < ra:
                ra, rb = rb, ra
            self.parent[rb] = ra


def partition_constraints(
    grid: Sequence[Sequence[int]], constraints: Sequence[Constraint]
) -> Partition:
    """
    Group constraints into connected components over shared unknown cells.

    Components are ordered by their smallest cell, cells are sorted row-major
    and constraints keep their input order, so the same input always gives
    the same partition.

    Args:
        grid: Snapshot grid the constraints were extracted from.
        constraints: Output of extract_constraints().

    Returns:
        The partition, including the free pool of unconstrained unknown cells.
    """
    rows, cols = check_grid(grid)

    uf = _UnionFind(len(constraints))
    owner: Dict[Pos, int] = {}
    for i, constraint in enumerate(constraints):
        for cell in constraint.cells:
            j = owner.get(cell)
            if j is None:
                owner[cell] = i
            else:
                uf.union(i, j)

    grouped_constraints: Dict[int, List[Constraint]] = {}
    grouped_cells: Dict[int, List[Pos]] = {}
    for i, constraint in enumerate(constraints):
        grouped_constraints.setdefault(uf.find(i), []).append(constraint)
    for cell, i in owner.items():
        grouped_cells.setdefault(uf.find(i), []).append(cell)

    components = [
        ConstraintComponent(tuple(grouped_constraints[root]), tuple(sorted(cells)))
        for root, cells in grouped_cells.items()
    ]
    components.sort(key=lambda comp: comp.cells[0])

    free = tuple(
        (r, c)
        for r in range(rows)
        for c in range(cols)
        if grid[r][c] == UNKNOWN and (r, c) not in owner
    )

    logger.debug(
        f"[minetoolbox] partitioned {len(constraints)} constraints into "
        f"{len(components)} components, {len(free)} free cells"
    )
    return Partition(tuple(components), free)
