import numpy as np
import pytest

from minetoolbox.board import FLAGGED, UNKNOWN, Board, check_grid, parse_grid
from minetoolbox.errors import BoardError, InvalidMove
from minetoolbox.layout import MINE

from conftest import OPENING_BOTTOM, OPENING_TOP_LEFT


def test_reveal_zero_cascades_through_opening(reference_layout):
    board = Board.from_layout(reference_layout)
    opened = board.open_cell((0, 0))
    assert set(opened) == OPENING_TOP_LEFT
    assert len(opened) == len(OPENING_TOP_LEFT)
    assert board.revealed_count == 9

    assert board.reveal((7, 5)) == 0
    for r, c in OPENING_BOTTOM:
        assert board.cell((r, c)) == reference_layout[r][c]


def test_cascade_never_opens_flags(reference_layout):
    board = Board.from_layout(reference_layout)
    board.flag((1, 2))
    opened = board.open_cell((0, 0))
    assert (1, 2) not in opened
    assert board.cell((1, 2)) == FLAGGED


def test_reveal_rejects_revealed_flagged_and_out_of_bounds(reference_layout):
    board = Board.from_layout(reference_layout)
    board.reveal((0, 0))
    with pytest.raises(InvalidMove):
        board.reveal((0, 0))
    board.flag((3, 1))
    with pytest.raises(InvalidMove):
        board.reveal((3, 1))
    with pytest.raises(InvalidMove):
        board.reveal((8, 0))
    with pytest.raises(InvalidMove):
        board.neighbors((-1, 0))


def test_reveal_mine_records_explosion(reference_layout):
    board = Board.from_layout(reference_layout)
    assert board.reveal((0, 3)) == MINE
    assert board.exploded == (0, 3)
    assert board.snapshot().cell((0, 3)) == MINE


def test_flag_and_unflag_toggle_only_valid_states(reference_layout):
    board = Board.from_layout(reference_layout)
    board.flag((0, 3))
    assert board.flag_count == 1
    with pytest.raises(InvalidMove):
        board.flag((0, 3))
    board.unflag((0, 3))
    assert board.cell((0, 3)) == UNKNOWN
    with pytest.raises(InvalidMove):
        board.unflag((0, 3))
    board.reveal((0, 0))
    with pytest.raises(InvalidMove):
        board.flag((0, 0))


def test_flag_count_cannot_exceed_total_mines():
    board = Board.from_string("...", total_mines=1)
    board.flag((0, 0))
    with pytest.raises(InvalidMove):
        board.flag((0, 1))

    loose = Board.from_string("...", total_mines=1, mines_exact=False)
    loose.flag((0, 0))
    loose.flag((0, 1))
    assert loose.flag_count == 2


def test_chord_opens_unflagged_neighbors_when_satisfied(reference_layout):
    board = Board.from_layout(reference_layout)
    board.reveal((0, 0))
    # (0, 2) shows 1 and touches the mine at (0, 3).
    assert board.chord((0, 2)) == []
    board.flag((0, 3))
    opened = board.chord((0, 2))
    assert opened == [(1, 3)]
    assert board.cell((1, 3)) == 3
    with pytest.raises(InvalidMove):
        board.chord((4, 4))


def test_chord_on_wrong_flag_explodes(reference_layout):
    board = Board.from_layout(reference_layout)
    board.reveal((0, 0))
    board.flag((1, 3))
    board.chord((0, 2))
    assert board.exploded == (0, 3)


def test_observed_mode_reveal_takes_the_clue():
    board = Board(2, 2, total_mines=1)
    assert not board.simulation
    with pytest.raises(ValueError):
        board.reveal((0, 0))
    assert board.reveal((0, 0), clue=1) == 1
    with pytest.raises(ValueError):
        board.reveal((0, 1), clue=9)
    assert board.unknown_positions() == [(0, 1), (1, 0), (1, 1)]


def test_from_string_and_snapshot_round_trip():
    board = Board.from_string("1F.\n.2.", total_mines=3)
    assert board.flag_count == 1
    assert board.revealed_count == 2
    snap = board.snapshot()
    assert snap.grid == ((1, FLAGGED, UNKNOWN), (UNKNOWN, 2, UNKNOWN))
    arr = board.to_array()
    assert arr.dtype == np.int8
    assert arr.shape == (2, 3)
    assert "F" in str(board)

    clone = board.copy()
    clone.flag((0, 2))
    assert board.cell((0, 2)) == UNKNOWN


def test_malformed_boards_are_rejected():
    with pytest.raises(BoardError):
        parse_grid("1.\n.?")
    with pytest.raises(BoardError):
        check_grid([[1, 10], [10]])
    with pytest.raises(BoardError):
        check_grid([[9]])
    with pytest.raises(BoardError):
        check_grid([])
    with pytest.raises(BoardError):
        Board(0, 3, total_mines=0)
    with pytest.raises(BoardError):
        Board(2, 2, total_mines=5)


def test_is_cleared_after_revealing_every_safe_cell():
    board = Board.from_layout([[1, -1]])
    assert not board.is_cleared()
    board.reveal((0, 0))
    assert board.is_cleared()
