"""Global aggregation of component count profiles under the board-wide mine count."""

import itertools
import logging
from dataclasses import dataclass, field
from fractions import Fraction
from math import comb
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import Contradiction
from .enumeration import ComponentProfile

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]
Profile = Dict[int, int]

# Fixed-point iterations allowed when renormalizing clamped floats.
_RENORMALIZE_ROUNDS = 64


@dataclass
class Aggregation:
    """
    Calibrated per-cell probabilities for every unknown, unflagged cell.

    Attributes:
        probabilities: pos -> float probability.
        exact: pos -> Fraction probability, or None when not computed.
        expected_pool_mines: Expected mines among the free pool (including
            the unpinned cells of approximated components).
        certain: pos -> 0 or 1 for cells that are safe or a mine in every
            configuration. Decided on integer counts, never on floats.
    """

    probabilities: Dict[Pos, float]
    exact: Optional[Dict[Pos, Fraction]]
    expected_pool_mines: float
    certain: Dict[Pos, int] = field(default_factory=dict)


def convolve(a: Profile, b: Profile, cap: Optional[int] = None) -> Profile:
    """
    Discrete convolution of two count profiles.

    out[k] = sum over i + j == k of a[i] * b[j], dropping k > cap.
    """
    out: Profile = {}
    for i, x in a.items():
        for j, y in b.items():
            k = i + j
            if cap is not None and k > cap:
                continue
            out[k] = out.get(k, 0) + x * y
    return out


def pinned_cells(profiles: Sequence[ComponentProfile]) -> Dict[Pos, int]:
    """
    Cells whose value a single constraint already forces.

    A constraint with nothing left to place makes all its cells safe (0); one
    needing a mine in every cell makes them all mines (1). These hold whether
    or not the component could be enumerated.

    Raises:
        Contradiction: If two constraints force the same cell both ways.
    """
    pinned: Dict[Pos, int] = {}
    for profile in profiles:
        for constraint in profile.component.constraints:
            if constraint.remaining == 0:
                value = 0
            elif constraint.remaining == len(constraint.cells):
                value = 1
            else:
                continue
            for cell in constraint.cells:
                if pinned.setdefault(cell, value) != value:
                    raise Contradiction(
                        f"Cell {cell} is forced to be both safe and a mine.", [constraint]
                    )
    return pinned


def local_densities(
    profile: ComponentProfile, pinned: Optional[Dict[Pos, int]] = None
) -> Dict[Pos, Fraction]:
    """
    Estimate each unpinned cell of a component by the mean density of its constraints.

    A constraint's density is the mines it still needs once pinned cells are
    accounted for, over its unpinned cells. This is the fallback used for
    components too large to enumerate.

    Raises:
        Contradiction: If pinned mines overfill, or pinned safes starve, a constraint.
    """
    pinned = pinned or {}
    sums: Dict[Pos, Fraction] = {}
    touches: Dict[Pos, int] = {}
    for constraint in profile.component.constraints:
        open_cells = [cell for cell in constraint.cells if cell not in pinned]
        if not open_cells:
            continue
        forced = sum(pinned.get(cell, 0) for cell in constraint.cells)
        density = Fraction(constraint.remaining - forced, len(open_cells))
        if not 0 <= density <= 1:
            raise Contradiction(
                f"Forced cells leave {constraint.remaining - forced} mine(s) for "
                f"{len(open_cells)} cell(s) around {constraint.target}.",
                [constraint],
            )
        for cell in open_cells:
            sums[cell] = sums.get(cell, Fraction(0)) + density
            touches[cell] = touches.get(cell, 0) + 1
    return {
        cell: sums[cell] / touches[cell]
        for cell in profile.component.cells
        if cell not in pinned
    }


def _pool_probabilities(
    free: Sequence[Pos],
    approx_cells: Dict[Pos, Fraction],
    expected: Fraction,
) -> Dict[Pos, Fraction]:
    """
    Split the pool's expected mines between free cells and approximated cells.

    Approximated cells take their local density; free cells share the rest
    evenly. If that share is not a valid probability every pool cell gets
    the uniform density instead, which keeps the expected total unchanged.
    """
    pool_size = len(free) + len(approx_cells)
    if pool_size == 0:
        return {}

    if approx_cells and free:
        share = (expected - sum(approx_cells.values())) / len(free)
        if 0 <= share <= 1:
            out = {cell: share for cell in free}
            out.update(approx_cells)
            return out

    uniform = expected / pool_size
    out = {cell: uniform for cell in free}
    out.update({cell: uniform for cell in approx_cells})
    return out


def aggregate(
    profiles: Sequence[ComponentProfile],
    free: Sequence[Pos],
    remaining_mines: int,
    exact: bool = True,
    mines_exact: bool = True,
) -> Aggregation:
    """
    Combine component profiles with the free pool under a board-wide mine count.

    Every global configuration (one hypothesis per component plus a placement
    of the leftover mines in the pool) is equally likely. With t mines on the
    enumerated frontier the pool contributes C(P, M - t) placements, so the
    weight of frontier total t is conv(profiles)[t] * C(P, M - t). When M is
    only an upper bound the pool may hold any k <= M - t mines and contributes
    sum_k C(P, k) placements instead.

    Unpinned cells of approximated components are pooled with the free cells
    for this step; pinned cells keep their forced value and leave the pool.

    Args:
        profiles: One profile per component, in partition order.
        free: Free (unconstrained) cells.
        remaining_mines: M, total mines minus known mines (flags).
        exact: Also return exact Fraction probabilities.
        mines_exact: False when M is an upper bound rather than the total.

    Returns:
        The aggregation. With an exact M the probabilities sum to M; with a
        bound they sum to the expected number of remaining mines.

    Raises:
        Contradiction: If no allocation of M mines fits the components.
    """
    enumerated = [p for p in profiles if not p.approximate]
    approximated = [p for p in profiles if p.approximate]

    pinned = pinned_cells(approximated)
    approx_cells: Dict[Pos, Fraction] = {}
    for p in approximated:
        approx_cells.update(local_densities(p, pinned))

    pinned_mines = sum(pinned.values())
    pool_size = len(free) + len(approx_cells)
    m_total = remaining_mines - pinned_mines
    if m_total < 0:
        raise Contradiction(
            f"{pinned_mines} forced mine(s) exceed the {remaining_mines} remaining."
        )

    # Pool placements (and the mines they hold) by number of mines left over.
    ways_by_left = [comb(pool_size, k) for k in range(m_total + 1)]
    mines_by_left = [k * w for k, w in enumerate(ways_by_left)]
    if not mines_exact:
        ways_by_left = list(itertools.accumulate(ways_by_left))
        mines_by_left = list(itertools.accumulate(mines_by_left))

    def pool_weight(t: int) -> int:
        left = m_total - t
        return ways_by_left[left] if left >= 0 else 0

    def pool_mines(t: int) -> int:
        left = m_total - t
        return mines_by_left[left] if left >= 0 else 0

    n = len(enumerated)
    prefix: List[Profile] = [{0: 1}]
    for p in enumerated:
        prefix.append(convolve(prefix[-1], p.counts, m_total))
    suffix: List[Profile] = [{0: 1}] * (n + 1)
    for i in range(n - 1, -1, -1):
        suffix[i] = convolve(enumerated[i].counts, suffix[i + 1], m_total)

    everything = prefix[n]
    z = sum(ways * pool_weight(t) for t, ways in everything.items())
    if z == 0:
        bound = "" if mines_exact else "at most "
        raise Contradiction(
            f"{bound}{remaining_mines} remaining mine(s) cannot be placed consistently: "
            f"the constraints admit frontier totals {sorted(everything)} with "
            f"{pool_size} pooled cell(s)."
        )

    fractions: Dict[Pos, Fraction] = {}
    floats: Dict[Pos, float] = {}
    certain: Dict[Pos, int] = {}

    for i, p in enumerate(enumerated):
        others = convolve(prefix[i], suffix[i + 1], m_total)
        weight_by_mines = {
            m: sum(ways * pool_weight(t + m) for t, ways in others.items())
            for m in p.counts
        }
        for idx, cell in enumerate(p.component.cells):
            num = sum(
                tally[idx] * weight_by_mines[m] for m, tally in p.cell_counts.items()
            )
            if num == 0:
                certain[cell] = 0
            elif num == z:
                certain[cell] = 1
            if exact:
                fractions[cell] = Fraction(num, z)
            else:
                floats[cell] = num / z

    expected_pool = Fraction(
        sum(ways * pool_mines(t) for t, ways in everything.items()), z
    )
    pool = _pool_probabilities(free, approx_cells, expected_pool)
    if not approx_cells:
        # Only free cells are pooled, so their share is exact.
        certain.update({cell: int(v) for cell, v in pool.items() if v in (0, 1)})
    pool.update({cell: Fraction(v) for cell, v in pinned.items()})
    certain.update(pinned)

    if exact:
        fractions.update(pool)
        probabilities = {cell: float(v) for cell, v in fractions.items()}
        return Aggregation(probabilities, fractions, float(expected_pool), certain)

    expected_total = pinned_mines + Fraction(
        sum(ways * (t * pool_weight(t) + pool_mines(t)) for t, ways in everything.items()),
        z,
    )
    floats.update({cell: float(v) for cell, v in pool.items()})
    floats.update({cell: float(v) for cell, v in certain.items()})
    return Aggregation(
        _renormalize(floats, float(expected_total)), None, float(expected_pool), certain
    )


def aggregate_density(
    profiles: Sequence[ComponentProfile], free: Sequence[Pos], density: float
) -> Aggregation:
    """
    Aggregate when only a per-cell mine density is known, not the mine total.

    Each unknown cell is an independent prior mine with probability
    `density`, so components no longer interact: a hypothesis with m mines
    over k cells has weight density^m * (1 - density)^(k - m), and free
    cells keep the prior.

    Raises:
        ValueError: If density is outside [0, 1].
        Contradiction: If some component has zero total weight.
    """
    if not 0.0 <= density <= 1.0:
        raise ValueError("density must be between 0 and 1.")

    pinned = pinned_cells([p for p in profiles if p.approximate])
    floats: Dict[Pos, float] = {cell: density for cell in free}
    certain: Dict[Pos, int] = {}
    if density in (0.0, 1.0):
        certain.update({cell: int(density) for cell in free})

    for p in profiles:
        if p.approximate:
            floats.update({cell: float(v) for cell, v in local_densities(p, pinned).items()})
            continue

        k = len(p.component.cells)
        weights = {m: density ** m * (1.0 - density) ** (k - m) for m in p.counts}
        z = sum(p.counts[m] * w for m, w in weights.items())
        if z == 0:
            raise Contradiction(
                f"Density {density} leaves no weight for the component around "
                f"{p.component.cells[0]}.",
                p.component.constraints,
            )
        support = [m for m, w in weights.items() if w > 0]
        for idx, cell in enumerate(p.component.cells):
            hits = [p.cell_counts[m][idx] for m in support]
            if not any(hits):
                certain[cell] = 0
            elif all(h == p.counts[m] for h, m in zip(hits, support)):
                certain[cell] = 1
            num = sum(tally[idx] * weights[m] for m, tally in p.cell_counts.items())
            floats[cell] = num / z

    certain.update(pinned)
    floats.update({cell: float(v) for cell, v in certain.items()})
    return Aggregation(floats, None, density * len(free), certain)


def _renormalize(floats: Dict[Pos, float], target: float) -> Dict[Pos, float]:
    """
    Scale the uncertain cells so the probabilities sum to target.

    Cells at exactly 0 or 1 are left alone. Scaling that would push a cell
    past 1 clamps it there and hands the excess to the remaining cells.
    """
    out = dict(floats)
    for _ in range(_RENORMALIZE_ROUNDS):
        excess = target - sum(out.values())
        if abs(excess) < 1e-12:
            break
        open_cells = [cell for cell, v in out.items() if 0.0 < v < 1.0]
        open_total = sum(out[cell] for cell in open_cells)
        if open_total <= 0:
            break
        factor = 1.0 + excess / open_total
        logger.debug(f"[minetoolbox] renormalizing probabilities by {factor!r}")
        for cell in open_cells:
            out[cell] = min(1.0, out[cell] * factor)
    return out
