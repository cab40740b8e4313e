"""Autoplay agent driving a Game with certain deductions and minimum-risk guesses."""

import logging
import random
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .board import UNKNOWN, Board
from .config import SolverConfig
from .layout import Layout, lay_mines
from .replay import Game, GameState, Move, MoveAction
from .solver import ProbabilityMap, solve

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]


def agent_step(
    board: Any,
    total_mines: Optional[int] = None,
    config: Optional[SolverConfig] = None,
) -> List[Move]:
    """
    Decide the next moves for a visible board.

    Certain mines are flagged and certain safe cells revealed; when nothing
    is certain the single lowest-risk cell is revealed.

    Args:
        board: A Board, a BoardSnapshot or a raw grid of cell-state codes.
        total_mines: Total mines; defaults to the board's own total.
        config: Solver configuration.

    Returns:
        Moves to play in order (flags first). Empty when no cell is unknown.

    Raises:
        Contradiction: If the board is inconsistent.
    """
    pm = solve(board, total_mines, config=config)
    moves = [Move(0.0, MoveAction.FLAG, r, c) for r, c in pm.mine_cells()]
    moves.extend(Move(0.0, MoveAction.REVEAL, r, c) for r, c in pm.safe_cells())
    if moves:
        return moves

    guess = pm.best_guess()
    if guess is None:
        return []
    return [Move(0.0, MoveAction.REVEAL, guess[0], guess[1])]


class MinesweeperBot:
    """
    Plays a Game to the end using the probability solver.

    Each round solves the visible board once, flags every certain mine and
    reveals every certain safe cell. When a round finds nothing certain the
    bot reveals the cell with the lowest mine probability, or stops if
    guessing is disabled.
    """

    def __init__(
        self,
        game: Game,
        config: Optional[SolverConfig] = None,
        allow_guess: bool = True,
        record_steps: bool = False,
    ) -> None:
        """
        Initialize a bot bound to a specific game.

        Args:
            game: The game to play.
            config: Solver configuration used on every round.
            allow_guess: If False, the bot stops instead of guessing.
            record_steps: If True, keep a board snapshot after every move.
        """
        self.game = game
        self.config = config or SolverConfig()
        self.allow_guess = allow_guess
        self.record_steps = record_steps

        # Metrics / counters (for analysis)
        self.reveal_moves_count: int = 0
        self.flag_moves_count: int = 0
        self.inferred_safe_count: int = 0
        self.inferred_mine_count: int = 0
        self.guesses_count: int = 0
        self.approximate_rounds_count: int = 0
        self.rounds_count: int = 0
        self.max_frontier: int = 0

        self.moves_sequence: List[Tuple[int, int, str]] = []
        self.steps_history: List[Dict[str, Any]] = []
        self._clock: float = 0.0

    @property
    def board(self) -> Board:
        return self.game.board

    # -------------------------------------------------------------------------
    # Move issuing
    # -------------------------------------------------------------------------

    def _issue(self, action: MoveAction, pos: Pos, method: str) -> None:
        move = Move(self._clock, action, pos[0], pos[1])
        self._clock += 1.0
        self.game.apply(move)

        if action is MoveAction.REVEAL:
            self.reveal_moves_count += 1
            self.moves_sequence.append((pos[0], pos[1], "S"))
        else:
            self.flag_moves_count += 1
            self.moves_sequence.append((pos[0], pos[1], "M"))

        if self.record_steps:
            self.steps_history.append({
                "action": action.name.lower(),
                "cell": pos,
                "method": method,
                "step_number": len(self.steps_history),
                "snapshot": self.game.snapshot(),
            })

    def _round(self) -> bool:
        """Play one solve round. Returns False when the bot cannot move."""
        pm: ProbabilityMap = solve(self.board, config=self.config)
        self.rounds_count += 1
        self.max_frontier = max(self.max_frontier, pm.partition.frontier_size)
        if pm.approximate:
            self.approximate_rounds_count += 1

        mines = pm.mine_cells()
        safes = pm.safe_cells()

        for pos in mines:
            self._issue(MoveAction.FLAG, pos, "deduction")
            self.inferred_mine_count += 1

        for pos in safes:
            if self.game.state.terminal:
                return True
            # An earlier cascade in this round may already have opened it.
            if self.board.cell(pos) != UNKNOWN:
                continue
            self._issue(MoveAction.REVEAL, pos, "deduction")
            self.inferred_safe_count += 1

        if mines or safes:
            return True

        if not self.allow_guess:
            return False
        guess = pm.best_guess()
        if guess is None:
            return False
        logger.debug(f"[minetoolbox] guessing {guess} with risk {pm[guess]:.3f}")
        self._issue(MoveAction.REVEAL, guess, "guess")
        self.guesses_count += 1
        return True

    # -------------------------------------------------------------------------
    # Game loop
    # -------------------------------------------------------------------------

    def payload(self) -> Dict[str, Any]:
        """Metrics of the game so far."""
        return {
            "reveal_moves_count": self.reveal_moves_count,
            "flag_moves_count": self.flag_moves_count,
            "moves_sequence": self.moves_sequence,
            "steps_history": self.steps_history,
            "revealed_cells_count": self.board.revealed_count,
            "markings_count": self.board.flag_count,
            "inferred_safe_count": self.inferred_safe_count,
            "inferred_mine_count": self.inferred_mine_count,
            "guesses_count": self.guesses_count,
            "approximate_rounds_count": self.approximate_rounds_count,
            "rounds_count": self.rounds_count,
            "max_frontier": self.max_frontier,
            "bbbv_solved": self.game.counters.bbbv_solved,
        }

    def play(self, first_click: Optional[Pos] = None) -> Tuple[GameState, Dict[str, Any]]:
        """
        Play until the game is won, lost, or the bot has no move left.

        Args:
            first_click: Opening reveal; defaults to the board center.

        Returns:
            (final state, metrics payload). The state stays IN_PROGRESS when
            the bot stopped because guessing is disabled.
        """
        if first_click is None:
            first_click = (self.board.rows // 2, self.board.cols // 2)

        if self.game.state is GameState.NOT_STARTED:
            self._issue(MoveAction.REVEAL, first_click, "first_move")

        while not self.game.state.terminal:
            if not self._round():
                logger.debug("[minetoolbox] bot stopped: no certain move and guessing disabled")
                break

        return self.game.state, self.payload()


def is_solvable(
    layout: Sequence[Sequence[int]],
    first_click: Pos,
    config: Optional[SolverConfig] = None,
) -> bool:
    """
    Return True if the board can be cleared from first_click without guessing.

    Args:
        layout: Ground-truth layout.
        first_click: Opening reveal.
        config: Solver configuration.
    """
    game = Game(layout)
    bot = MinesweeperBot(game, config=config, allow_guess=False)
    state, _ = bot.play(first_click)
    return state is GameState.WON


def lay_mines_solvable(
    rows: int,
    cols: int,
    mines_count: int,
    first_click: Pos,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    *,
    max_attempts: int = 100,
    config: Optional[SolverConfig] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[Layout, bool]:
    """
    Lay mines until the board can be cleared from first_click without guessing.

    Args:
        rows: Number of rows.
        cols: Number of columns.
        mines_count: Total number of mines.
        first_click: Opening reveal, kept safe by the generation rule.
        mines_generation_algorithm: Mine placement rule, as for lay_mines().
        max_attempts: Layouts tried before giving up, must be > 0.
        config: Solver configuration for the solvability check.
        rng: Random source shared by every attempt.

    Returns:
        (layout, solvable). When no attempt succeeds the last layout tried is
        returned with solvable set to False.

    Raises:
        ValueError: If max_attempts is not positive, or lay_mines() rejects
            the arguments.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be positive.")
    rng = rng or random.Random()

    layout: Layout = []
    for attempt in range(1, max_attempts + 1):
        layout = lay_mines(
            rows, cols, mines_count, first_click, mines_generation_algorithm, rng=rng
        )
        if is_solvable(layout, first_click, config=config):
            logger.debug(f"[minetoolbox] solvable layout found after {attempt} attempt(s)")
            return layout, True

    logger.info(
        f"[minetoolbox] no solvable {rows}x{cols}/{mines_count} layout in {max_attempts} attempts"
    )
    return layout, False
