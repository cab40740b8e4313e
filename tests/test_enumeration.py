from fractions import Fraction

import pytest

from minetoolbox.board import parse_grid
from minetoolbox.config import SolverConfig
from minetoolbox.constraints import extract_constraints
from minetoolbox.enumeration import iter_hypotheses, profile_component
from minetoolbox.errors import SolveTimeout
from minetoolbox.partition import partition_constraints


def only_component(text):
    grid = parse_grid(text)
    part = partition_constraints(grid, extract_constraints(grid))
    assert len(part.components) == 1
    return part.components[0]


def test_hypotheses_satisfy_every_constraint():
    comp = only_component(".1.1.")
    mines = sorted(h.mines for h in iter_hypotheses(comp))
    assert mines == [((0, 0), (0, 4)), ((0, 2),)]


def test_max_mines_prunes_hypotheses():
    comp = only_component(".1.1.")
    hyps = list(iter_hypotheses(comp, max_mines=1))
    assert [h.mines for h in hyps] == [((0, 2),)]
    assert hyps[0].mine_count == 1


def test_profile_counts_and_cell_tallies():
    comp = only_component(".1.1.")
    profile = profile_component(comp, max_mines=None)
    assert profile.counts == {1: 1, 2: 1}
    # cells are (0,0), (0,2), (0,4)
    assert profile.cell_counts[1] == [0, 1, 0]
    assert profile.cell_counts[2] == [1, 0, 1]
    assert profile.local_probabilities()[(0, 2)] == Fraction(1, 2)
    assert not profile.approximate


def test_overlapping_constraints_are_enumerated_exactly():
    comp = only_component(
        """
        ....
        .21.
        """
    )
    for hyp in iter_hypotheses(comp):
        mines = set(hyp.mines)
        around_two = {(0, 0), (0, 1), (0, 2), (1, 0)}
        around_one = {(0, 1), (0, 2), (0, 3), (1, 3)}
        assert len(mines & around_two) == 2
        assert len(mines & around_one) == 1


def test_step_ceiling_degrades_to_approximation():
    comp = only_component(".1.1.")
    profile = profile_component(comp, None, SolverConfig(max_steps=1))
    assert profile.approximate
    assert "step" in profile.reason
    assert profile.counts == {}


def test_hypothesis_ceiling_can_raise():
    comp = only_component(".1.1.")
    config = SolverConfig(max_hypotheses=1, on_ceiling="raise")
    with pytest.raises(SolveTimeout) as excinfo:
        profile_component(comp, None, config)
    assert excinfo.value.component is comp


def test_cell_ceiling_skips_enumeration():
    comp = only_component(".1.1.")
    profile = profile_component(comp, None, SolverConfig(max_component_cells=2))
    assert profile.approximate
    assert profile.steps == 0
