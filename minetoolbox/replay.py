"""Game state machine, move application and replay statistics."""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .board import FLAGGED, UNKNOWN, Board, BoardSnapshot, is_revealed
from .config import SolverConfig
from .errors import InvalidMove, TerminalState
from .layout import MINE
from .metrics import BoardMetrics, compute_metrics, isolated_cells, label_openings
from .solver import solve

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]
MoveRecord = Tuple[int, int, int, float]

# Difficulty constants of the STNB rate, keyed by (rows, cols, mines).
STNB_CONSTANTS: Dict[Tuple[int, int, int], float] = {
    (8, 8, 10): 47.22,
    (16, 16, 40): 153.73,
    (16, 30, 99): 435.001,
}


class GameState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    WON = "won"
    LOST = "lost"

    @property
    def terminal(self) -> bool:
        return self in (GameState.WON, GameState.LOST)


class MoveAction(Enum):
    """Player action; the value is the action code used in move records."""

    REVEAL = 0
    FLAG = 1
    UNFLAG = 2
    CHORD = 3


@dataclass(frozen=True)
class Move:
    """One recorded player action. Timestamps are seconds since the game started."""

    timestamp: float
    action: MoveAction
    row: int
    col: int

    @property
    def pos(self) -> Pos:
        return (self.row, self.col)

    @classmethod
    def from_record(cls, record: Sequence[Union[int, float]]) -> "Move":
        """
        Build a move from an (action_code, row, column, timestamp) record.

        Raises:
            ValueError: If the record has the wrong length or an unknown action code.
        """
        if len(record) != 4:
            raise ValueError(f"Move record needs 4 fields, got {len(record)}.")
        code, row, col, timestamp = record
        try:
            action = MoveAction(int(code))
        except ValueError:
            raise ValueError(f"Unknown action code {code!r}.") from None
        return cls(float(timestamp), action, int(row), int(col))


@dataclass
class MoveCounters:
    """
    Cumulative click statistics of one game.

    Attributes:
        left: Reveal clicks.
        right: Flag and unflag clicks.
        chord: Chord clicks.
        ce: Effective clicks (a reveal or chord that opened a safe cell, or
            the first flag placed on each true mine).
        flags: Flags currently on the board.
        bbbv_solved: 3BV units completed so far.
    """

    left: int = 0
    right: int = 0
    chord: int = 0
    ce: int = 0
    flags: int = 0
    bbbv_solved: int = 0

    @property
    def clicks(self) -> int:
        return self.left + self.right + self.chord


class Game:
    """A simulation-mode board driven through the NotStarted/InProgress/Won/Lost machine."""

    def __init__(self, layout: Sequence[Sequence[int]]) -> None:
        """
        Args:
            layout: Ground-truth layout (-1 mines, clues elsewhere).

        Raises:
            BoardError: If the layout is malformed.
        """
        self.board: Board = Board.from_layout(layout)
        self.state: GameState = GameState.NOT_STARTED
        self.counters: MoveCounters = MoveCounters()
        self.metrics: BoardMetrics = compute_metrics(layout)

        self._opening_of: Dict[Pos, int] = label_openings(layout)
        self._isolated: Set[Pos] = set(isolated_cells(layout))
        self._solved_openings: Set[int] = set()
        self._solved_isolated: Set[Pos] = set()
        self._credited_flags: Set[Pos] = set()

    @property
    def layout(self) -> List[List[int]]:
        return self.board.layout

    def snapshot(self) -> BoardSnapshot:
        return self.board.snapshot()

    # -------------------------------------------------------------------------
    # Move application
    # -------------------------------------------------------------------------

    def apply(self, move: Move) -> Tuple[List[Pos], bool]:
        """
        Apply one move to the board and advance the state machine.

        Returns:
            (opened cells, useful) where useful says whether the move counted
            as an effective click.

        Raises:
            TerminalState: If the game is already won or lost. The board is
                left untouched.
            InvalidMove: If the board rejects the move. The board and the
                counters are left untouched.
        """
        if self.state.terminal:
            raise TerminalState(
                f"Game is already {self.state.value}; cannot apply {move.action.name.lower()} "
                f"at {move.pos}."
            )

        opened: List[Pos] = []
        useful = False
        pos = move.pos

        if move.action is MoveAction.REVEAL:
            opened = self.board.open_cell(pos)
            self.counters.left += 1
        elif move.action is MoveAction.CHORD:
            opened = self.board.chord(pos)
            self.counters.chord += 1
        elif move.action is MoveAction.FLAG:
            self.board.flag(pos)
            self.counters.right += 1
            r, c = pos
            if self.layout[r][c] == MINE and pos not in self._credited_flags:
                self._credited_flags.add(pos)
                useful = True
        else:
            self.board.unflag(pos)
            self.counters.right += 1

        safe_opened = [p for p in opened if p != self.board.exploded]
        if safe_opened:
            useful = True
            self._credit_bv(safe_opened)
        if useful:
            self.counters.ce += 1
        self.counters.flags = self.board.flag_count

        if self.board.exploded is not None:
            self.state = GameState.LOST
            logger.debug(f"[minetoolbox] mine hit at {self.board.exploded}")
        elif self.board.is_cleared():
            self.state = GameState.WON
        else:
            self.state = GameState.IN_PROGRESS

        return opened, useful

    def record_wasted_click(self, move: Move) -> None:
        """Count a click the board rejected, as recorded games sometimes contain."""
        if self.state.terminal:
            raise TerminalState(f"Game is already {self.state.value}.")
        if move.action is MoveAction.REVEAL:
            self.counters.left += 1
        elif move.action is MoveAction.CHORD:
            self.counters.chord += 1
        else:
            self.counters.right += 1
        if self.state is GameState.NOT_STARTED:
            self.state = GameState.IN_PROGRESS

    def _credit_bv(self, cells: Iterable[Pos]) -> None:
        for pos in cells:
            label = self._opening_of.get(pos)
            if label is not None:
                self._solved_openings.add(label)
            elif pos in self._isolated:
                self._solved_isolated.add(pos)
        self.counters.bbbv_solved = len(self._solved_openings) + len(self._solved_isolated)


def apply_move(game: Game, move: Move) -> BoardSnapshot:
    """
    Apply a move to a game and return the resulting board snapshot.

    Raises:
        TerminalState: If the game is already won or lost.
        InvalidMove: If the move targets a cell that cannot take the action.
    """
    game.apply(move)
    return game.snapshot()


@dataclass(frozen=True)
class ReplayStep:
    """Result of one replayed move."""

    move: Move
    state: GameState
    opened: Tuple[Pos, ...]
    useful: bool
    counters: MoveCounters
    snapshot: BoardSnapshot
    rejected: bool = False


@dataclass
class ReplaySummary:
    """
    Outcome and statistics of a replayed game.

    Rates that would divide by zero are None.
    """

    final_state: GameState
    steps: List[ReplayStep]
    metrics: BoardMetrics
    counters: MoveCounters
    elapsed: float
    dimensions: Tuple[int, int, int] = (0, 0, 0)
    rejected_moves: int = 0

    @property
    def per_move_metrics(self) -> List[MoveCounters]:
        return [step.counters for step in self.steps]

    @property
    def clicks(self) -> int:
        return self.counters.clicks

    @property
    def bbbv_per_second(self) -> Optional[float]:
        if self.elapsed <= 0:
            return None
        return self.counters.bbbv_solved / self.elapsed

    @property
    def ioe(self) -> Optional[float]:
        """Efficiency: 3BV solved per click."""
        if self.clicks == 0:
            return None
        return self.counters.bbbv_solved / self.clicks

    @property
    def corr(self) -> Optional[float]:
        """Correctness: share of clicks that were effective."""
        if self.clicks == 0:
            return None
        return self.counters.ce / self.clicks

    @property
    def thrp(self) -> Optional[float]:
        """Throughput: 3BV solved per effective click."""
        if self.counters.ce == 0:
            return None
        return self.counters.bbbv_solved / self.counters.ce

    @property
    def rqp(self) -> Optional[float]:
        if self.metrics.bv3 == 0:
            return None
        return self.elapsed ** 2 / self.metrics.bv3

    @property
    def stnb(self) -> Optional[float]:
        """Standardized score, defined only for the three standard levels."""
        constant = STNB_CONSTANTS.get(self.dimensions)
        if constant is None or self.elapsed <= 0 or self.metrics.bv3 == 0:
            return None
        bv3 = self.metrics.bv3
        return constant / (self.elapsed ** 1.7 / bv3) * (self.counters.bbbv_solved / bv3) ** 0.5


def replay(
    layout: Sequence[Sequence[int]],
    moves: Iterable[Union[Move, MoveRecord]],
    strict: bool = True,
) -> ReplaySummary:
    """
    Replay a move sequence against a ground-truth layout.

    Args:
        layout: Ground-truth layout.
        moves: Move objects or (action_code, row, column, timestamp) records.
        strict: If False, moves the board rejects are counted as wasted
            clicks instead of aborting the replay.

    Returns:
        The replay summary with one step per move.

    Raises:
        BoardError: If the layout is malformed.
        InvalidMove: In strict mode, on the first rejected move.
        TerminalState: If a move follows a won or lost game.
    """
    game = Game(layout)
    steps: List[ReplayStep] = []
    elapsed = 0.0
    rejected = 0

    for item in moves:
        move = item if isinstance(item, Move) else Move.from_record(item)
        try:
            opened, useful = game.apply(move)
        except InvalidMove as exc:
            if strict:
                raise
            logger.debug(f"[minetoolbox] wasted click at {move.pos}: {exc}")
            game.record_wasted_click(move)
            opened, useful = [], False
            rejected += 1
            is_rejected = True
        else:
            is_rejected = False

        elapsed = max(elapsed, move.timestamp)
        steps.append(
            ReplayStep(
                move=move,
                state=game.state,
                opened=tuple(opened),
                useful=useful,
                counters=replace(game.counters),
                snapshot=game.snapshot(),
                rejected=is_rejected,
            )
        )

    board = game.board
    return ReplaySummary(
        final_state=game.state,
        steps=steps,
        metrics=game.metrics,
        counters=replace(game.counters),
        elapsed=elapsed,
        dimensions=(board.rows, board.cols, board.total_mines),
        rejected_moves=rejected,
    )


def find_needless_guesses(
    summary: ReplaySummary, config: Optional[SolverConfig] = None
) -> List[int]:
    """
    Indices of replayed reveals that guessed while a certainly safe cell existed.

    Each reveal is judged on the board as it stood before the click. A reveal
    of a cell whose status was already certain is not a guess. Any other
    reveal is, and it was needless if some cell was certainly safe.
    Player flags are not trusted: flagged cells are treated as unknown. The
    opening click, and clicks the board rejected, are never judged.

    Args:
        summary: Result of replay().
        config: Solver configuration.

    Returns:
        Step indices into summary.steps, ascending.
    """
    needless: List[int] = []
    for i in range(1, len(summary.steps)):
        step = summary.steps[i]
        if step.rejected or step.move.action is not MoveAction.REVEAL:
            continue
        before = summary.steps[i - 1].snapshot
        if before.cell(step.move.pos) != UNKNOWN:
            continue
        if not any(is_revealed(code) for row in before.grid for code in row):
            continue

        grid = [[UNKNOWN if code == FLAGGED else code for code in row] for row in before.grid]
        pm = solve(grid, before.total_mines, config=config)
        if step.move.pos in pm.certain:
            continue
        if pm.safe_cells():
            needless.append(i)

    logger.debug(f"[minetoolbox] {len(needless)} needless guess(es) in {len(summary.steps)} steps")
    return needless
