"""Exception taxonomy for the toolbox."""

from typing import Optional, Sequence, Tuple

Pos = Tuple[int, int]


class ToolboxError(Exception):
    """Base class for every error raised by minetoolbox."""


class BoardError(ToolboxError, ValueError):
    """Malformed board input: bad dimensions, ragged rows or unknown cell codes."""


class SolveError(ToolboxError):
    """The probability solver could not produce a map."""


class Contradiction(SolveError):
    """
    The board violates constraint feasibility.

    Attributes:
        constraints: The constraints found infeasible (may be empty when the
            contradiction is global, e.g. too many flags).
        positions: Target cells of those constraints.
    """

    def __init__(self, message: str, constraints: Sequence[object] = ()) -> None:
        super().__init__(message)
        self.constraints: Tuple[object, ...] = tuple(constraints)
        self.positions: Tuple[Pos, ...] = tuple(
            getattr(c, "target") for c in self.constraints if hasattr(c, "target")
        )


class SolveTimeout(SolveError):
    """An enumeration ceiling was hit and the configuration forbids approximating."""

    def __init__(self, message: str, component: Optional[object] = None) -> None:
        super().__init__(message)
        self.component = component


class ReplayError(ToolboxError):
    """Misuse of the board state machine during play or replay."""


class InvalidMove(ReplayError):
    """A move targets a cell that cannot take that action."""


class TerminalState(ReplayError):
    """A move was applied to a game that is already won or lost."""
