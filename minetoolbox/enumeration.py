"""Exact enumeration of the mine placements allowed by one constraint component."""

import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Deque, Dict, Iterator, List, Optional, Set, Tuple

from .config import SolverConfig
from .constraints import Constraint
from .errors import Contradiction, SolveTimeout
from .partition import ConstraintComponent

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]

# How many frame steps pass between wall-clock checks.
_CLOCK_CHECK_INTERVAL = 1024


@dataclass(frozen=True)
class Hypothesis:
    """One mine/safe assignment of a component's cells satisfying all its constraints."""

    mines: Tuple[Pos, ...]

    @property
    def mine_count(self) -> int:
        return len(self.mines)


@dataclass
class ComponentProfile:
    """
    Enumeration summary of one component.

    Attributes:
        component: The component enumerated.
        counts: mine count -> number of hypotheses using that many mines
            (the component's count profile).
        cell_counts: mine count -> per-cell tally (indexed like
            component.cells) of hypotheses with that many mines where the
            cell is a mine.
        approximate: True when a ceiling stopped the enumeration; counts
            are then empty and the aggregator falls back to estimates.
        reason: Which ceiling was hit, for approximate profiles.
        steps: Backtracking frame steps spent.
    """

    component: ConstraintComponent
    counts: Dict[int, int] = field(default_factory=dict)
    cell_counts: Dict[int, List[int]] = field(default_factory=dict)
    approximate: bool = False
    reason: Optional[str] = None
    steps: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def local_probabilities(self) -> Dict[Pos, Fraction]:
        """Per-cell mine frequency over all hypotheses, ignoring the global mine count."""
        total = self.total
        if total == 0:
            return {}
        out: Dict[Pos, Fraction] = {}
        for i, cell in enumerate(self.component.cells):
            hits = sum(tally[i] for tally in self.cell_counts.values())
            out[cell] = Fraction(hits, total)
        return out


class _CeilingHit(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class _Frame:
    __slots__ = ("level", "free", "needed", "mines_used", "choices")

    def __init__(
        self, level: int, free: List[int], needed: int, mines_used: int
    ) -> None:
        self.level = level
        self.free = free
        self.needed = needed
        self.mines_used = mines_used
        self.choices = itertools.combinations(free, needed)


def _constraint_order(component: ConstraintComponent) -> List[Constraint]:
    """Breadth-first order over constraints that share cells, starting at the first one."""
    constraints = component.constraints
    by_cell: Dict[Pos, List[int]] = {}
    for i, constraint in enumerate(constraints):
        for cell in constraint.cells:
            by_cell.setdefault(cell, []).append(i)

    order: List[int] = []
    seen: Set[int] = set()
    for start in range(len(constraints)):
        if start in seen:
            continue
        seen.add(start)
        queue: Deque[int] = deque([start])
        while queue:
            i = queue.popleft()
            order.append(i)
            linked = sorted(
                {j for cell in constraints[i].cells for j in by_cell[cell]} - seen
            )
            for j in linked:
                seen.add(j)
                queue.append(j)

    return [constraints[i] for i in order]


class _Search:
    """
    Constraint-by-constraint backtracking driven by an explicit frame stack.

    Each frame owns one constraint: it assigns that constraint's still
    unassigned cells with exactly the mines the constraint still needs, one
    combination at a time. Constraints handled by earlier frames are fully
    assigned, so they stay satisfied.
    """

    def __init__(
        self,
        component: ConstraintComponent,
        max_mines: Optional[int],
        max_steps: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> None:
        index = {cell: i for i, cell in enumerate(component.cells)}
        ordered = _constraint_order(component)
        self.cells = component.cells
        self.targets: List[List[int]] = [[index[c] for c in con.cells] for con in ordered]
        self.remaining: List[int] = [con.remaining for con in ordered]
        self.max_mines = max_mines
        self.max_steps = max_steps
        self.deadline = deadline
        self.steps = 0
        self.assignment: List[Optional[int]] = [None] * len(component.cells)

    def _open(self, level: int, mines_used: int) -> Optional[_Frame]:
        assigned_mines = 0
        free: List[int] = []
        for idx in self.targets[level]:
            v = self.assignment[idx]
            if v is None:
                free.append(idx)
            elif v:
                assigned_mines += 1

        needed = self.remaining[level] - assigned_mines
        if needed < 0 or needed > len(free):
            return None
        if self.max_mines is not None and mines_used + needed > self.max_mines:
            return None
        return _Frame(level, free, needed, mines_used)

    def _tick(self) -> None:
        self.steps += 1
        if self.max_steps is not None and self.steps > self.max_steps:
            raise _CeilingHit(f"step budget of {self.max_steps} exhausted")
        if (
            self.deadline is not None
            and self.steps % _CLOCK_CHECK_INTERVAL == 0
            and time.monotonic() > self.deadline
        ):
            raise _CeilingHit("time budget exhausted")

    def run(self) -> Iterator[Tuple[int, List[Optional[int]]]]:
        """
        Yield (mine_count, assignment) for every satisfying assignment.

        The assignment list is reused between yields; copy it to keep it.
        """
        last = len(self.targets) - 1
        root = self._open(0, 0)
        if root is None:
            return
        stack: List[_Frame] = [root]

        while stack:
            self._tick()
            frame = stack[-1]
            choice = next(frame.choices, None)
            if choice is None:
                for idx in frame.free:
                    self.assignment[idx] = None
                stack.pop()
                continue

            chosen = set(choice)
            for idx in frame.free:
                self.assignment[idx] = 1 if idx in chosen else 0
            mines_used = frame.mines_used + frame.needed

            if frame.level == last:
                yield mines_used, self.assignment
                continue

            child = self._open(frame.level + 1, mines_used)
            if child is not None:
                stack.append(child)


def iter_hypotheses(
    component: ConstraintComponent, max_mines: Optional[int] = None
) -> Iterator[Hypothesis]:
    """
    Enumerate every hypothesis of a component.

    Args:
        component: Component to enumerate.
        max_mines: Skip assignments using more mines than this.

    Yields:
        Hypotheses in a deterministic order.
    """
    search = _Search(component, max_mines)
    for _, assignment in search.run():
        yield Hypothesis(
            tuple(cell for cell, v in zip(component.cells, assignment) if v)
        )


def profile_component(
    component: ConstraintComponent,
    max_mines: Optional[int],
    config: Optional[SolverConfig] = None,
) -> ComponentProfile:
    """
    Enumerate a component into its count profile, honoring the config ceilings.

    Args:
        component: Component to enumerate.
        max_mines: Mines still unaccounted for on the board (None = unbounded).
        config: Ceilings and the on-ceiling policy.

    Returns:
        The exact profile, or an approximate (empty) one if a ceiling was hit
        and the policy allows approximation.

    Raises:
        Contradiction: If no assignment satisfies the component.
        SolveTimeout: If a ceiling was hit and config.on_ceiling == "raise".
    """
    config = config or SolverConfig()
    profile = ComponentProfile(component)
    size = len(component.cells)

    try:
        if size > config.max_component_cells:
            raise _CeilingHit(
                f"{size} cells exceed max_component_cells={config.max_component_cells}"
            )

        deadline = None
        if config.time_budget is not None:
            deadline = time.monotonic() + config.time_budget

        search = _Search(component, max_mines, config.max_steps, deadline)
        total = 0
        try:
            for mines, assignment in search.run():
                total += 1
                if total > config.max_hypotheses:
                    raise _CeilingHit(
                        f"more than max_hypotheses={config.max_hypotheses} hypotheses"
                    )
                profile.counts[mines] = profile.counts.get(mines, 0) + 1
                tally = profile.cell_counts.get(mines)
                if tally is None:
                    tally = profile.cell_counts[mines] = [0] * size
                for i, v in enumerate(assignment):
                    if v:
                        tally[i] += 1
        finally:
            profile.steps = search.steps

    except _CeilingHit as exc:
        first = component.cells[0]
        if config.on_ceiling == "raise":
            raise SolveTimeout(
                f"Enumeration of component at {first} stopped: {exc.reason}.", component
            ) from exc
        logger.warning(
            f"[minetoolbox] component at {first} ({size} cells) approximated: {exc.reason}"
        )
        return ComponentProfile(component, approximate=True, reason=exc.reason, steps=profile.steps)

    if not profile.counts:
        first = component.constraints[0].target
        bound = "" if max_mines is None else f" with at most {max_mines} mines"
        raise Contradiction(
            f"No mine placement satisfies the {len(component.constraints)} constraints "
            f"of the component around {first}{bound}.",
            component.constraints,
        )

    logger.debug(
        f"[minetoolbox] component at {component.cells[0]}: {size} cells, "
        f"{profile.total} hypotheses, {profile.steps} steps"
    )
    return profile
