"""Leverage loop detection and iteration analysis.

A leverage loop is a cycle reachable from an Input block that contains at
least one Borrow block. Each pass around the loop returns a fraction ``r`` of
the value that entered it (the product of the borrow LTVs and the edge flow
fractions along the cycle). After ``n`` passes the position has grown to

    leverage = 1 + r + r**2 + ... + r**(n - 1)

times the value first deposited at the loop entry. Health factors are tracked
per iteration from the collateral and debt accumulated so far.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
import math

from .config import EngineConfig
from .core import (
    BorrowConfig,
    DetectedLoop,
    Graph,
    IterationHealth,
    LendConfig,
    LoopAnalysis,
)
from .feeds import FeedSnapshot
from .traversal import DepthFirstResult, depth_first_search, nearest_upstream
from .valuation import Valuation

logger = logging.getLogger(__name__)


def loop_id(block_ids: Sequence[str]) -> str:
    """Stable identifier derived from the ordered loop members."""

    return "loop:" + ">".join(block_ids)


def _schedule(value: float | Sequence[float], iterations: int) -> list[float]:
    if isinstance(value, (int, float)):
        return [float(value)] * iterations
    values = [float(v) for v in value]
    if not values:
        raise ValueError("schedule must not be empty")
    if len(values) < iterations:
        values += [values[-1]] * (iterations - len(values))
    return values[:iterations]


def _check_iterations(iterations: int) -> int:
    if int(iterations) < 1:
        raise ValueError(f"iterations must be >= 1, got {iterations!r}")
    return int(iterations)


def detect_loops(
    graph: Graph,
    iterations: Mapping[str, int] | None = None,
    *,
    max_depth: int = 256,
    max_cycles: int = 64,
    search: DepthFirstResult | None = None,
) -> list[DetectedLoop]:
    """Return the leverage loops of ``graph`` reachable from an Input block.

    Parameters
    ----------
    graph:
        Strategy graph to search.
    iterations:
        Optional ``{loop_id: iterations}`` state; loops default to one pass.
    max_depth, max_cycles:
        Bounds of the depth-first search.
    search:
        A search result already computed for ``graph``.
    """

    iterations = iterations or {}
    if search is None:
        search = depth_first_search(graph, max_depth=max_depth, max_cycles=max_cycles)
    loops: list[DetectedLoop] = []
    seen: set[str] = set()
    for members, edge_ids in search.cycles:
        if not any(graph.block(b).kind == "borrow" for b in members):
            logger.debug("Ignoring cycle without a borrow: %s", members)
            continue
        ident = loop_id(members)
        if ident in seen:
            continue
        seen.add(ident)
        loops.append(
            DetectedLoop(
                id=ident,
                block_ids=tuple(members),
                edge_ids=tuple(edge_ids),
                iterations=max(1, int(iterations.get(ident, 1))),
            )
        )
    return loops


def calculate_loop_iterations(
    initial_value: float,
    ltv: float | Sequence[float],
    iterations: int,
) -> tuple[list[float], float, float]:
    """Value deployed on every pass of a loop.

    Parameters
    ----------
    initial_value:
        Value entering the loop on the first pass.
    ltv:
        Fraction of the value returning per pass, either constant or one entry
        per iteration (the last entry repeats when the schedule is short).
    iterations:
        Number of passes, at least one.

    Returns
    -------
    tuple
        ``(iteration_values, total_value, effective_leverage)``.
    """

    n = _check_iterations(iterations)
    ratios = _schedule(ltv, n)
    multipliers = [1.0]
    for k in range(1, n):
        multipliers.append(multipliers[-1] * ratios[k - 1])
    leverage = math.fsum(multipliers)
    values = [initial_value * m for m in multipliers]
    return values, initial_value * leverage, leverage


def calculate_health_factors(
    initial_value: float,
    ltv: float | Sequence[float],
    liquidation_threshold: float | Sequence[float],
    iterations: int,
) -> list[IterationHealth]:
    """Health factor of the position after each pass.

    Every pass borrows ``ltv`` of the value it deployed and puts the borrowed
    value back to work, so after pass ``k`` the debt is the sum of the ``k``
    borrows and the collateral is the initial value plus that debt.
    ``liquidation_threshold`` is in percent. A pass that leaves no debt (a
    zero LTV) has an infinite health factor.
    """

    n = _check_iterations(iterations)
    ratios = _schedule(ltv, n)
    thresholds = _schedule(liquidation_threshold, n)
    series: list[IterationHealth] = []
    deployed = initial_value
    collateral = initial_value
    debt = 0.0
    for k in range(n):
        borrowed = deployed * ratios[k]
        debt += borrowed
        collateral += borrowed
        deployed = borrowed
        if debt > 0:
            hf = collateral * thresholds[k] / 100.0 / debt
        else:
            hf = math.inf
        series.append(IterationHealth(k + 1, collateral, debt, hf))
    return series


def liquidation_price(
    reference_price: float | None,
    collateral: float,
    debt: float,
    liquidation_threshold: float,
) -> float | None:
    """Reference-asset price at which the position reaches a health factor of 1."""

    if reference_price is None or debt <= 0 or collateral <= 0 or liquidation_threshold <= 0:
        return None
    return reference_price * debt / (collateral * liquidation_threshold / 100.0)


def loop_ratio(graph: Graph, loop: DetectedLoop) -> float:
    """Fraction of the entry value that comes back around ``loop`` per pass."""

    ratio = 1.0
    for block_id in loop.block_ids:
        cfg = graph.block(block_id).config
        if isinstance(cfg, BorrowConfig):
            ratio *= float(cfg.ltv_percent or 0.0) / 100.0
    for edge_id in loop.edge_ids:
        ratio *= graph.edge(edge_id).fraction
    return ratio


def loop_liquidation_threshold(graph: Graph, loop: DetectedLoop, default: float) -> float:
    """Threshold of the Lend block collateralising ``loop``'s borrows."""

    for block_id in loop.block_ids:
        cfg = graph.block(block_id).config
        if isinstance(cfg, LendConfig) and cfg.liquidation_threshold is not None:
            return float(cfg.liquidation_threshold)
    for block_id in loop.block_ids:
        if graph.block(block_id).kind != "borrow":
            continue
        lend = nearest_upstream(
            graph,
            block_id,
            lambda b: isinstance(b.config, LendConfig) and b.config.liquidation_threshold is not None,
        )
        if lend is not None:
            return float(lend.config.liquidation_threshold)
    return default


def analyze_loop(
    graph: Graph,
    loop: DetectedLoop,
    valuation: Valuation,
    feeds: FeedSnapshot,
    config: EngineConfig | None = None,
) -> LoopAnalysis:
    """Leverage, iteration values and health series of ``loop``.

    The value entering the loop is the entry block's output in ``valuation``,
    where the loop was traversed once.
    """

    cfg = config or EngineConfig()
    n = _check_iterations(loop.iterations)
    if n > cfg.max_loop_iterations:
        raise ValueError(
            f"Loop {loop.id} requests {n} iterations, more than {cfg.max_loop_iterations}"
        )
    ratio = loop_ratio(graph, loop)
    threshold = loop_liquidation_threshold(graph, loop, cfg.default_liquidation_threshold)
    entry_value = valuation.output_usd(loop.entry_block_id)

    values, total, leverage = calculate_loop_iterations(entry_value, ratio, n)
    health = calculate_health_factors(entry_value, ratio, threshold, n)
    final = health[-1]
    return LoopAnalysis(
        loop=loop,
        ltv=ratio,
        liquidation_threshold=threshold,
        initial_value=entry_value,
        effective_leverage=leverage,
        total_value=total,
        iteration_values=tuple(values),
        health_factors=tuple(health),
        health_factor=final.health_factor,
        liquidation_price=liquidation_price(
            feeds.reference_price, final.collateral, final.debt, threshold
        ),
    )


__all__ = [
    "loop_id",
    "detect_loops",
    "calculate_loop_iterations",
    "calculate_health_factors",
    "liquidation_price",
    "loop_ratio",
    "loop_liquidation_threshold",
    "analyze_loop",
]
