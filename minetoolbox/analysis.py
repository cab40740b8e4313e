"""Analysis and benchmarking tools for the autoplay bot."""

import logging
import random
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .bot import MinesweeperBot
from .config import SolverConfig
from .layout import lay_mines
from .replay import Game, GameState

logger = logging.getLogger(__name__)

# Standard difficulty levels as (rows, cols, mines).
LEVELS: Dict[str, Tuple[int, int, int]] = {
    "beginner": (9, 9, 10),
    "intermediate": (16, 16, 40),
    "expert": (16, 30, 99),
}

_AVERAGED_KEYS = (
    "reveal_moves_count",
    "flag_moves_count",
    "revealed_cells_count",
    "markings_count",
    "inferred_safe_count",
    "inferred_mine_count",
    "guesses_count",
    "approximate_rounds_count",
    "rounds_count",
    "max_frontier",
    "bbbv_solved",
    "bv3",
)


def run_bot_single_test(
    rows: int,
    cols: int,
    mines_count: int,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    *,
    show_boards: bool = False,
    config: Optional[SolverConfig] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Run one end-to-end game with MinesweeperBot on a freshly laid board.

    Args:
        rows: Board height.
        cols: Board width.
        mines_count: Total number of mines on the board.
        mines_generation_algorithm: Mine placement rule
            ("safe_first_action_rule" or "safe_neighborhood_rule").
        show_boards: If True, print the underlying board and the final
            visible board.
        config: Solver configuration for the bot.
        rng: Random source for mine placement.

    Returns:
        The bot's payload augmented with "state", "won" and "bv3".
    """
    first_click = (rows // 2, cols // 2)
    layout = lay_mines(
        rows, cols, mines_count, first_click, mines_generation_algorithm, rng=rng
    )
    game = Game(layout)
    bot = MinesweeperBot(game, config=config)
    state, payload = bot.play(first_click)

    if show_boards:
        print(f"Generation mode: {mines_generation_algorithm}")
        print("Underlying board (mines visible):")
        print(game.board.format(reveal_all=True))
        print()
        print("Final board:")
        print(game.board)
        print()
        print(f"Finished with state {state.value}.")

    out = dict(payload)
    out["state"] = state
    out["won"] = state is GameState.WON
    out["bv3"] = game.metrics.bv3
    return out


def run_bot_many_tests(
    rows: int,
    cols: int,
    mines_count: int,
    runs: int,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    *,
    config: Optional[SolverConfig] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, float]:
    """
    Run many independent games and return averaged metrics plus win rate.

    Args:
        rows: Board height.
        cols: Board width.
        mines_count: Total number of mines on the board.
        runs: Number of independent games, must be > 0.
        mines_generation_algorithm: Mine placement rule.
        config: Solver configuration for the bot.
        rng: Random source shared by every game.

    Returns:
        Averages of the payload counters (prefixed with "avg_"), plus:
        - win_rate
        - guess_failure_rate: lost games per guess made
        - bv3_solved_rate: share of 3BV solved, averaged over games
    """
    if runs <= 0:
        raise ValueError("runs must be positive.")
    rng = rng or random.Random()

    sums: Dict[str, float] = defaultdict(float)
    wins = 0
    losses = 0
    total_guesses = 0.0
    solved_rates: List[float] = []

    for _ in range(runs):
        result = run_bot_single_test(
            rows, cols, mines_count, mines_generation_algorithm, config=config, rng=rng
        )
        if result["won"]:
            wins += 1
        elif result["state"] is GameState.LOST:
            losses += 1

        for key in _AVERAGED_KEYS:
            sums[f"avg_{key}"] += float(result[key])
        total_guesses += float(result["guesses_count"])
        if result["bv3"] > 0:
            solved_rates.append(result["bbbv_solved"] / result["bv3"])

    out: Dict[str, float] = {k: total / runs for k, total in sums.items()}
    out["win_rate"] = wins / runs
    out["guess_failure_rate"] = losses / total_guesses if total_guesses > 0 else 0.0
    out["bv3_solved_rate"] = float(np.mean(solved_rates)) if solved_rates else 0.0

    logger.info(
        f"[minetoolbox] {runs} games on {rows}x{cols}/{mines_count}: "
        f"win rate {out['win_rate']:.3f}"
    )
    return out


def run_level_analysis(
    runs: int,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    *,
    levels: Optional[Dict[str, Tuple[int, int, int]]] = None,
    config: Optional[SolverConfig] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Dict[str, float]]:
    """
    Run aggregated bot tests on each difficulty level.

    Args:
        runs: Number of independent games per level.
        mines_generation_algorithm: Mine placement rule.
        levels: level name -> (rows, cols, mines); the standard three by default.
        config: Solver configuration for the bot.
        rng: Random source shared by every game.

    Returns:
        Mapping from level name to the statistics of run_bot_many_tests().
    """
    levels = levels or LEVELS
    return {
        name: run_bot_many_tests(
            r, c, m, runs, mines_generation_algorithm, config=config, rng=rng
        )
        for name, (r, c, m) in levels.items()
    }


def plot_level_summary(
    results: Dict[str, Dict[str, float]], *, show: bool = False
) -> "plt.Figure":
    """
    Plot per-level summaries: moves by kind, win rate and 3BV solved.

    Args:
        results: Output of run_level_analysis().
        show: If True, display the figure.

    Returns:
        The matplotlib figure.
    """
    level_names = list(results.keys())
    x = np.arange(len(level_names))
    bar_w = 0.25

    fig, (ax_moves, ax_win, ax_bv) = plt.subplots(1, 3, figsize=(14, 4))

    inferred_safe = [results[n]["avg_inferred_safe_count"] for n in level_names]
    inferred_mine = [results[n]["avg_inferred_mine_count"] for n in level_names]
    guesses = [results[n]["avg_guesses_count"] for n in level_names]

    ax_moves.bar(x - bar_w, inferred_safe, width=bar_w, label="safe")
    ax_moves.bar(x, inferred_mine, width=bar_w, label="mine")
    ax_moves.bar(x + bar_w, guesses, width=bar_w, label="guess")
    ax_moves.set_xticks(x)
    ax_moves.set_xticklabels(level_names)
    ax_moves.set_ylabel("Average count")
    ax_moves.set_title("Moves by kind (per game)")
    ax_moves.legend()

    ax_win.bar(x, [results[n]["win_rate"] for n in level_names])
    ax_win.set_xticks(x)
    ax_win.set_xticklabels(level_names)
    ax_win.set_ylabel("Win rate")
    ax_win.set_ylim(0.0, 1.0)
    ax_win.set_title("Win rate by difficulty level")

    ax_bv.bar(x - bar_w / 2, [results[n]["avg_bv3"] for n in level_names], width=bar_w, label="3BV")
    ax_bv.bar(
        x + bar_w / 2,
        [results[n]["avg_bbbv_solved"] for n in level_names],
        width=bar_w,
        label="3BV solved",
    )
    ax_bv.set_xticks(x)
    ax_bv.set_xticklabels(level_names)
    ax_bv.set_title("Average 3BV (per game)")
    ax_bv.legend()

    fig.tight_layout()
    if show:
        plt.show()
    return fig
