import random

import pytest

from minetoolbox.board import Board
from minetoolbox.bot import MinesweeperBot, agent_step, is_solvable, lay_mines_solvable
from minetoolbox.layout import MINE, layout_from_mines
from minetoolbox.replay import Game, GameState, MoveAction


def test_bot_wins_by_deduction():
    layout = layout_from_mines(1, 4, [(0, 1)])
    bot = MinesweeperBot(Game(layout), record_steps=True)
    state, payload = bot.play((0, 0))
    assert state is GameState.WON
    assert payload["inferred_mine_count"] == 1
    assert payload["inferred_safe_count"] == 2
    assert payload["guesses_count"] == 0
    assert payload["moves_sequence"] == [(0, 0, "S"), (0, 1, "M"), (0, 2, "S"), (0, 3, "S")]
    assert [s["method"] for s in payload["steps_history"]] == [
        "first_move",
        "deduction",
        "deduction",
        "deduction",
    ]


def test_bot_guesses_lowest_risk_cell():
    layout = layout_from_mines(2, 2, [(1, 1)])
    bot = MinesweeperBot(Game(layout))
    state, payload = bot.play((0, 0))
    assert state is GameState.WON
    assert payload["guesses_count"] == 2
    assert payload["bbbv_solved"] == 3


def test_bot_stops_without_guessing():
    layout = layout_from_mines(2, 2, [(1, 1)])
    bot = MinesweeperBot(Game(layout), allow_guess=False)
    state, payload = bot.play((0, 0))
    assert state is GameState.IN_PROGRESS
    assert payload["reveal_moves_count"] == 1


def test_is_solvable():
    assert is_solvable(layout_from_mines(1, 4, [(0, 1)]), (0, 0))
    assert not is_solvable(layout_from_mines(2, 2, [(1, 1)]), (0, 0))
    assert not is_solvable(layout_from_mines(1, 4, [(0, 1)]), (0, 1))


def test_agent_step_flags_then_reveals():
    board = Board.from_string("1...", total_mines=1)
    moves = agent_step(board)
    assert [(m.action, m.pos) for m in moves] == [
        (MoveAction.FLAG, (0, 1)),
        (MoveAction.REVEAL, (0, 2)),
        (MoveAction.REVEAL, (0, 3)),
    ]


def test_agent_step_guesses_when_nothing_is_certain():
    moves = agent_step(Board.from_string("1.\n..", total_mines=1))
    assert len(moves) == 1
    assert moves[0].action is MoveAction.REVEAL
    assert moves[0].pos == (0, 1)


def test_agent_step_on_finished_board():
    assert agent_step(Board.from_string("00\n00", total_mines=0)) == []


def test_lay_mines_solvable_returns_a_no_guess_layout():
    layout, solvable = lay_mines_solvable(1, 4, 1, (0, 3), rng=random.Random(3))
    assert solvable
    assert layout[0][3] != MINE
    assert sum(row.count(MINE) for row in layout) == 1
    assert is_solvable(layout, (0, 3))


def test_lay_mines_solvable_gives_up_after_max_attempts():
    layout, solvable = lay_mines_solvable(
        2, 2, 1, (0, 0), "safe_first_action_rule", max_attempts=3, rng=random.Random(0)
    )
    assert not solvable
    assert layout[0][0] != MINE
    with pytest.raises(ValueError):
        lay_mines_solvable(2, 2, 1, (0, 0), max_attempts=0)
