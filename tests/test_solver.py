import random
from fractions import Fraction

import numpy as np
import pytest

from minetoolbox.aggregation import _renormalize
from minetoolbox.board import UNKNOWN, Board, parse_grid
from minetoolbox.config import SolverConfig
from minetoolbox.errors import BoardError, Contradiction, SolveTimeout
from minetoolbox.layout import MINE, lay_mines
from minetoolbox.solver import solve
from minetoolbox.utils import get_neighborhoods


def test_single_clue_splits_mines_between_frontier_and_pool():
    board = Board.from_string("1..\n...\n...", total_mines=2)
    pm = solve(board)
    for pos in [(0, 1), (1, 0), (1, 1)]:
        assert pm.exact[pos] == Fraction(1, 3)
    for pos in [(0, 2), (1, 2), (2, 0), (2, 1), (2, 2)]:
        assert pm.exact[pos] == Fraction(1, 5)
    assert sum(pm.exact.values()) == 2


def test_global_mine_count_weights_hypotheses():
    pm = solve(parse_grid(".1.1..."), total_mines=2)
    assert pm.exact[(0, 2)] == Fraction(2, 3)
    for pos in [(0, 0), (0, 4), (0, 5), (0, 6)]:
        assert pm.exact[pos] == Fraction(1, 3)
    assert pm.total() == pytest.approx(2.0)


def test_mine_total_selects_between_hypotheses():
    grid = parse_grid(".1.1.")
    one = solve(grid, total_mines=1)
    assert one.mine_cells() == [(0, 2)]
    assert one.safe_cells() == [(0, 0), (0, 4)]

    two = solve(grid, total_mines=2)
    assert two.mine_cells() == [(0, 0), (0, 4)]
    assert two.safe_cells() == [(0, 2)]

    with pytest.raises(Contradiction):
        solve(grid, total_mines=3)


def test_unique_hypothesis_gives_certainties():
    pm = solve(parse_grid("1..1"), total_mines=2)
    assert pm[(0, 1)] == 1.0
    assert pm[(0, 2)] == 1.0
    assert pm.best_guess() is not None


def test_cells_next_to_zero_are_safe():
    pm = solve(parse_grid("0.."), total_mines=1)
    assert pm.exact[(0, 1)] == 0
    assert pm.exact[(0, 2)] == 1
    assert pm.best_guess() == (0, 1)


def test_contradictory_clue_raises():
    with pytest.raises(Contradiction) as excinfo:
        solve(parse_grid("3."), total_mines=1)
    assert excinfo.value.positions == ((0, 0),)


def test_flags_count_as_known_mines():
    grid = parse_grid("1F.")
    assert solve(grid, total_mines=1)[(0, 2)] == 0.0
    assert solve(grid, total_mines=2)[(0, 2)] == 1.0
    assert (0, 1) not in solve(grid, total_mines=2)
    with pytest.raises(Contradiction):
        solve(parse_grid("FF."), total_mines=1)


def test_probabilities_sum_to_remaining_mines_on_reference(reference_layout):
    board = Board.from_layout(reference_layout)
    board.reveal((0, 0))
    board.reveal((7, 5))
    board.flag((0, 3))
    pm = solve(board)
    assert pm.remaining_mines == 19
    assert sum(pm.exact.values()) == 19
    assert len(pm) == len(board.unknown_positions())
    for pos in pm.mine_cells():
        r, c = pos
        assert reference_layout[r][c] == -1
    for pos in pm.safe_cells():
        r, c = pos
        assert reference_layout[r][c] != -1


def test_float_mode_renormalizes_to_remaining_mines():
    board = Board.from_string("1..\n...\n...", total_mines=2)
    pm = solve(board, config=SolverConfig(exact=False))
    assert pm.exact is None
    assert pm.total() == pytest.approx(2.0)
    assert pm[(0, 1)] == pytest.approx(1 / 3)


def test_oversized_component_is_approximated_and_flagged():
    grid = parse_grid(".1.1...")
    pm = solve(grid, total_mines=2, config=SolverConfig(max_component_cells=2))
    assert pm.approximate
    assert pm.approximated_components == (0,)
    for pos in [(0, 0), (0, 2), (0, 4)]:
        assert pm[pos] == pytest.approx(0.5)
    for pos in [(0, 5), (0, 6)]:
        assert pm[pos] == pytest.approx(0.25)
    assert pm.total() == pytest.approx(2.0)
    assert pm.safe_cells() == []

    with pytest.raises(SolveTimeout):
        solve(grid, total_mines=2, config=SolverConfig(max_component_cells=2, on_ceiling="raise"))


def test_density_mode_without_mine_total():
    pm = solve(parse_grid(".1.1..."), density=0.2)
    assert pm.remaining_mines is None
    assert pm[(0, 2)] == pytest.approx(0.8)
    assert pm[(0, 0)] == pytest.approx(0.2)
    assert pm[(0, 6)] == pytest.approx(0.2)
    with pytest.raises(ValueError):
        solve(parse_grid(".1."), density=1.5)


def test_missing_mine_total_is_rejected():
    with pytest.raises(ValueError):
        solve(parse_grid(".1."))
    with pytest.raises(BoardError):
        solve([[1, 10], [10]], total_mines=1)


def test_parallel_workers_match_sequential():
    grid = parse_grid("1.....1\n.......")
    sequential = solve(grid, total_mines=3)
    parallel = solve(grid, total_mines=3, config=SolverConfig(workers=2))
    assert len(sequential.partition.components) == 2
    assert parallel.exact == sequential.exact


def test_best_guess_prefers_frontier_on_ties():
    # At density 0.5 every unknown cell, free or constrained, is a coin flip.
    pm = solve(parse_grid("..1."), density=0.5)
    assert pm[(0, 0)] == pytest.approx(0.5)
    assert pm[(0, 1)] == pytest.approx(0.5)
    assert pm.best_guess() == (0, 1)


def test_to_array_shapes_probabilities():
    board = Board.from_string("1F.\n...", total_mines=2)
    arr = solve(board).to_array()
    assert arr.shape == (2, 3)
    assert arr[0, 0] == 0.0
    assert arr[0, 1] == 1.0
    assert np.isclose(arr.sum(), 2.0)


def test_upper_bound_total_admits_fewer_mines():
    board = Board.from_string("1..", total_mines=3, mines_exact=False)
    pm = solve(board)
    assert not pm.mines_exact
    assert pm.mine_cells() == [(0, 1)]
    assert pm.safe_cells() == []
    assert pm.exact[(0, 2)] == Fraction(1, 2)

    assert solve(board.snapshot()).exact == pm.exact
    with pytest.raises(Contradiction):
        solve(board.snapshot(), mines_exact=True)


def test_upper_bound_weights_every_pool_total():
    board = Board.from_string("1..\n...\n...", total_mines=2, mines_exact=False)
    pm = solve(board)
    for pos in [(0, 1), (1, 0), (1, 1)]:
        assert pm.exact[pos] == Fraction(1, 3)
    for pos in [(0, 2), (1, 2), (2, 0), (2, 1), (2, 2)]:
        assert pm.exact[pos] == Fraction(1, 6)
    assert sum(pm.exact.values()) == Fraction(11, 6)

    floats = solve(board, config=SolverConfig(exact=False))
    assert floats.total() == pytest.approx(11 / 6)


def test_zero_clue_pins_neighbours_under_approximation():
    pm = solve(parse_grid("0.1."), total_mines=1, config=SolverConfig(max_component_cells=1))
    assert pm.approximate
    assert pm.exact[(0, 1)] == 0
    assert pm.exact[(0, 3)] == 1
    assert pm.safe_cells() == [(0, 1)]
    assert pm.mine_cells() == []
    assert sum(pm.exact.values()) == 1


def test_saturated_clue_pins_mines_under_approximation():
    config = SolverConfig(max_component_cells=1)
    pm = solve(parse_grid("1.1.."), total_mines=2, config=config)
    assert pm.approximate
    assert pm.exact[(0, 1)] == 1
    assert pm.exact[(0, 3)] == 0
    assert pm.exact[(0, 4)] == 1
    assert pm.mine_cells() == [(0, 1)]
    assert sum(pm.exact.values()) == 2

    float_config = SolverConfig(max_component_cells=1, exact=False)
    floats = solve(parse_grid("1.1.."), total_mines=2, config=float_config)
    assert floats[(0, 1)] == 1.0
    assert floats[(0, 3)] == 0.0
    assert floats.mine_cells() == [(0, 1)]


@pytest.mark.parametrize("seed", range(6))
def test_random_boards_sum_to_remaining_mines_at_every_depth(seed):
    rng = random.Random(seed)
    layout = lay_mines(9, 9, 10, (4, 4), rng=rng)
    board = Board.from_layout(layout)
    board.reveal((4, 4))

    for _ in range(5):
        if board.is_cleared():
            break
        pm = solve(board)
        assert sum(pm.exact.values()) == pm.remaining_mines
        assert all(0 <= p <= 1 for p in pm.exact.values())
        for r, c in pm.mine_cells():
            assert layout[r][c] == MINE
        for r, c in pm.safe_cells():
            assert layout[r][c] != MINE

        safe = [(r, c) for r, c in board.unknown_positions() if layout[r][c] != MINE]
        board.reveal(rng.choice(safe))


@pytest.mark.parametrize("seed", range(6))
def test_zero_clues_stay_safe_on_observed_boards_with_approximation(seed):
    rng = random.Random(seed)
    layout = lay_mines(8, 8, 12, rng=rng)
    safe = [(r, c) for r in range(8) for c in range(8) if layout[r][c] != MINE]
    grid = [[UNKNOWN] * 8 for _ in range(8)]
    for r, c in rng.sample(safe, 20):
        grid[r][c] = layout[r][c]

    pm = solve(grid, total_mines=12, config=SolverConfig(max_component_cells=2))
    assert sum(pm.exact.values()) == 12
    neighborhoods = get_neighborhoods(8, 8)
    safe_cells = set(pm.safe_cells())
    for (r, c), p in pm.exact.items():
        assert 0 <= p <= 1
        if any(grid[nr][nc] == 0 for nr, nc in neighborhoods[(r, c)]):
            assert p == 0
            assert (r, c) in safe_cells


def test_time_budget_ceiling():
    # One mine per column on row 0: every column is a top/bottom coin flip,
    # so the single component has 4096 hypotheses.
    width = 12
    grid = [
        [UNKNOWN] * width,
        [2] + [3] * (width - 2) + [2],
        [UNKNOWN] * width,
    ]
    with pytest.raises(SolveTimeout):
        solve(grid, total_mines=width, config=SolverConfig(time_budget=1e-9, on_ceiling="raise"))

    pm = solve(grid, total_mines=width, config=SolverConfig(time_budget=1e-9))
    assert pm.approximate
    assert all(p == Fraction(1, 2) for p in pm.exact.values())
    assert pm.safe_cells() == [] and pm.mine_cells() == []


def test_float_mode_certainty_uses_integer_counts():
    pm = solve(parse_grid("1..1"), total_mines=2, config=SolverConfig(exact=False))
    assert pm.mine_cells() == [(0, 1), (0, 2)]
    assert pm[(0, 1)] == 1.0


def test_renormalize_redistributes_clamped_excess():
    out = _renormalize({(0, 0): 0.6, (0, 1): 0.2, (0, 2): 0.0, (0, 3): 1.0}, 2.6)
    assert out[(0, 0)] == 1.0
    assert out[(0, 1)] == pytest.approx(0.6)
    assert out[(0, 2)] == 0.0
    assert out[(0, 3)] == 1.0
    assert sum(out.values()) == pytest.approx(2.6)
