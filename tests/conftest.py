import matplotlib

matplotlib.use("Agg")

import pytest

from minetoolbox.layout import layout_from_mines

# 8x8 board, 20 mines: two openings and 29 isolated numbers, 3BV 31.
REFERENCE_MINES = [
    (0, 3), (0, 7),
    (1, 4),
    (2, 3), (2, 5), (2, 6),
    (3, 1), (3, 3), (3, 6),
    (4, 1), (4, 6), (4, 7),
    (5, 1), (5, 2), (5, 6),
    (6, 0), (6, 3),
    (7, 0), (7, 2), (7, 7),
]

REFERENCE_CLUES = [
    [0, 0, 1, -1, 2, 1, 1, -1],
    [0, 0, 2, 3, -1, 3, 3, 2],
    [1, 1, 3, -1, 4, -1, -1, 2],
    [2, -1, 4, -1, 3, 4, -1, 4],
    [3, -1, 5, 2, 1, 3, -1, -1],
    [3, -1, -1, 2, 1, 2, -1, 3],
    [-1, 5, 4, -1, 1, 1, 2, 2],
    [-1, 3, -1, 2, 1, 0, 1, -1],
]

OPENING_TOP_LEFT = {(0, 0), (0, 1), (1, 0), (1, 1), (0, 2), (1, 2), (2, 0), (2, 1), (2, 2)}
OPENING_BOTTOM = {(7, 5), (6, 4), (6, 5), (6, 6), (7, 4), (7, 6)}


@pytest.fixture
def reference_layout():
    return layout_from_mines(8, 8, REFERENCE_MINES)


@pytest.fixture
def winning_records(reference_layout):
    """(action_code, row, col, timestamp) records of a win with one reveal per 3BV unit."""
    opened = OPENING_TOP_LEFT | OPENING_BOTTOM
    others = [
        (r, c)
        for r in range(8)
        for c in range(8)
        if reference_layout[r][c] != -1 and (r, c) not in opened
    ]
    records = [(0, 0, 0, 0.5), (0, 7, 5, 1.0)]
    for i, (r, c) in enumerate(others):
        records.append((0, r, c, 1.5 + 0.5 * i))
    return records
