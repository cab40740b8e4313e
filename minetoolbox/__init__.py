"""
Minesweeper Toolbox

Computational kernel for Minesweeper boards:
- Probability solver: exact per-cell mine probabilities via constraint
  partitioning, component enumeration and global convolution
- Board model: reveal, flag and chord with iterative cascades
- Metrics: 3BV, openings, islands and minimum operation counts
- Replay engine: game state machine and recorded-game statistics
- Bot: autoplay agent and benchmarking tools
"""

from .analysis import (
    plot_level_summary,
    run_bot_many_tests,
    run_bot_single_test,
    run_level_analysis,
)
from .board import FLAGGED, UNKNOWN, Board, BoardSnapshot, parse_grid
from .bot import MinesweeperBot, agent_step, is_solvable, lay_mines_solvable
from .config import SolverConfig
from .constraints import Constraint, extract_constraints
from .enumeration import ComponentProfile, Hypothesis, iter_hypotheses, profile_component
from .errors import (
    BoardError,
    Contradiction,
    InvalidMove,
    ReplayError,
    SolveError,
    SolveTimeout,
    TerminalState,
    ToolboxError,
)
from .layout import MINE, lay_mines, layout_from_mines, validate_layout
from .metrics import BoardMetrics, compute_bv3, compute_metrics
from .partition import ConstraintComponent, Partition, partition_constraints
from .replay import (
    Game,
    GameState,
    Move,
    MoveAction,
    MoveCounters,
    ReplayStep,
    ReplaySummary,
    apply_move,
    find_needless_guesses,
    replay,
)
from .solver import ProbabilityMap, solve

__version__ = "1.0.0"

__all__ = [
    # Board model
    "Board",
    "BoardSnapshot",
    "parse_grid",
    "UNKNOWN",
    "FLAGGED",
    "MINE",
    "lay_mines",
    "layout_from_mines",
    "validate_layout",
    # Solver
    "solve",
    "ProbabilityMap",
    "SolverConfig",
    "Constraint",
    "extract_constraints",
    "ConstraintComponent",
    "Partition",
    "partition_constraints",
    "Hypothesis",
    "ComponentProfile",
    "iter_hypotheses",
    "profile_component",
    # Metrics and replay
    "BoardMetrics",
    "compute_bv3",
    "compute_metrics",
    "Game",
    "GameState",
    "Move",
    "MoveAction",
    "MoveCounters",
    "ReplayStep",
    "ReplaySummary",
    "apply_move",
    "replay",
    "find_needless_guesses",
    # Bot
    "MinesweeperBot",
    "agent_step",
    "is_solvable",
    "lay_mines_solvable",
    # Analysis functions
    "run_bot_single_test",
    "run_bot_many_tests",
    "run_level_analysis",
    "plot_level_summary",
    # Errors
    "ToolboxError",
    "BoardError",
    "SolveError",
    "Contradiction",
    "SolveTimeout",
    "ReplayError",
    "InvalidMove",
    "TerminalState",
]
