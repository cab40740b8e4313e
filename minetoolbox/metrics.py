"""
Board difficulty metrics computed from a ground-truth layout.

3BV ("Bechtel's Board Benchmark Value"):
    3BV = (# zero-clue connected regions) + (# non-zero safe cells touching no zero cell)

Every metric here is a pure function of the layout, independent of play order.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple

from .layout import MINE, validate_layout
from .utils import get_neighborhoods

Pos = Tuple[int, int]


@dataclass(frozen=True)
class BoardMetrics:
    """
    Static metrics of one layout.

    Attributes:
        bv3: Minimum number of useful reveals (openings + isolated cells).
        min_ops: Lower bound on reveal/chord actions to clear the board.
        openings: Number of 8-connected regions of zero cells.
        islands: Number of 8-connected groups of isolated non-zero cells.
        cell_counts: Histogram of clue values 0..8 over safe cells.
    """

    bv3: int
    min_ops: int
    openings: int
    islands: int
    cell_counts: Tuple[int, ...]


def label_openings(layout: Sequence[Sequence[int]]) -> Dict[Pos, int]:
    """
    Label every zero cell with the index of its opening.

    Openings are numbered from 0 in row-major order of their first cell.

    Returns:
        Mapping from each zero cell to its opening index.
    """
    rows, cols = validate_layout(layout)
    neighborhoods = get_neighborhoods(rows, cols)

    labels: Dict[Pos, int] = {}
    next_label = 0
    for r in range(rows):
        for c in range(cols):
            if layout[r][c] != 0 or (r, c) in labels:
                continue

            labels[(r, c)] = next_label
            queue: Deque[Pos] = deque([(r, c)])
            while queue:
                cur = queue.popleft()
                for nr, nc in neighborhoods[cur]:
                    if layout[nr][nc] == 0 and (nr, nc) not in labels:
                        labels[(nr, nc)] = next_label
                        queue.append((nr, nc))
            next_label += 1

    return labels


def opening_borders(
    layout: Sequence[Sequence[int]], labels: Optional[Dict[Pos, int]] = None
) -> Dict[Pos, Set[int]]:
    """
    Map every safe cell that an opening reveals to the opening indices it belongs to.

    A non-zero cell bordering two openings belongs to both.
    """
    if labels is None:
        labels = label_openings(layout)
    rows, cols = validate_layout(layout)
    neighborhoods = get_neighborhoods(rows, cols)

    members: Dict[Pos, Set[int]] = {}
    for pos, label in labels.items():
        members.setdefault(pos, set()).add(label)
        for nbr in neighborhoods[pos]:
            members.setdefault(nbr, set()).add(label)
    return members


def isolated_cells(layout: Sequence[Sequence[int]]) -> List[Pos]:
    """Non-zero safe cells with no zero neighbor, row-major."""
    rows, cols = validate_layout(layout)
    neighborhoods = get_neighborhoods(rows, cols)
    return [
        (r, c)
        for r in range(rows)
        for c in range(cols)
        if layout[r][c] > 0
        and all(layout[nr][nc] != 0 for nr, nc in neighborhoods[(r, c)])
    ]


def count_islands(layout: Sequence[Sequence[int]], cells: Optional[List[Pos]] = None) -> int:
    """Count 8-connected groups among the isolated cells."""
    rows, cols = validate_layout(layout)
    neighborhoods = get_neighborhoods(rows, cols)
    remaining = set(isolated_cells(layout) if cells is None else cells)

    islands = 0
    while remaining:
        start = min(remaining)
        remaining.discard(start)
        islands += 1
        queue: Deque[Pos] = deque([start])
        while queue:
            cur = queue.popleft()
            for nbr in neighborhoods[cur]:
                if nbr in remaining:
                    remaining.discard(nbr)
                    queue.append(nbr)
    return islands


def compute_bv3(layout: Sequence[Sequence[int]]) -> int:
    """Compute the 3BV of a layout."""
    openings = len(set(label_openings(layout).values()))
    return openings + len(isolated_cells(layout))


def compute_metrics(layout: Sequence[Sequence[int]]) -> BoardMetrics:
    """
    Compute every static metric of a ground-truth layout.

    Args:
        layout: Grid with -1 for mines and the clue 0..8 elsewhere.

    Returns:
        The board metrics. min_ops equals bv3: each opening needs one reveal
        and each isolated cell one more, and no single action can do the
        work of two of them without chording.

    Raises:
        BoardError: If the layout is malformed or its clues are inconsistent.
    """
    labels = label_openings(layout)
    isolated = isolated_cells(layout)
    openings = len(set(labels.values()))
    bv3 = openings + len(isolated)

    counts = [0] * 9
    for row in layout:
        for v in row:
            if v != MINE:
                counts[v] += 1

    return BoardMetrics(
        bv3=bv3,
        min_ops=bv3,
        openings=openings,
        islands=count_islands(layout, isolated),
        cell_counts=tuple(counts),
    )
