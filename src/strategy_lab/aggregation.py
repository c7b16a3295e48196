from __future__ import annotations

"""Evaluation entry point: from a strategy graph to a :class:`SimulationResult`."""

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import math

from .config import EngineConfig
from .core import (
    Block,
    BorrowConfig,
    ComputedBlockValue,
    Graph,
    LendConfig,
    LoopAnalysis,
    SimulationResult,
    StakeConfig,
    SwapConfig,
    YieldSource,
)
from .feeds import FeedSnapshot, yield_key_label
from .loops import analyze_loop, detect_loops, liquidation_price
from .risk_scoring import calculate_risk_score, risk_level
from .traversal import depth_first_search, nearest_upstream
from .validation import validate_graph
from .valuation import Valuation, propagate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebtPosition:
    """Collateral and debt behind one Borrow block or leverage loop."""

    source_id: str
    collateral: float
    debt: float
    liquidation_threshold: float
    in_loop: bool = False

    @property
    def health_factor(self) -> float:
        if self.debt <= 0:
            return math.inf
        return self.collateral * self.liquidation_threshold / 100.0 / self.debt


def _upstream_lend(graph: Graph, block_id: str) -> Block | None:
    return nearest_upstream(graph, block_id, lambda b: isinstance(b.config, LendConfig))


def borrow_protocol(graph: Graph, block: Block) -> str | None:
    """Venue a Borrow block draws from: its own setting or the nearest upstream Lend's."""

    cfg = block.config
    if isinstance(cfg, BorrowConfig) and cfg.protocol is not None:
        return cfg.protocol
    lend = _upstream_lend(graph, block.id)
    return lend.config.protocol if lend is not None else None


def _loop_membership(analyses: list[LoopAnalysis]) -> dict[str, LoopAnalysis]:
    membership: dict[str, LoopAnalysis] = {}
    for analysis in analyses:
        for block_id in analysis.loop.block_ids:
            current = membership.get(block_id)
            if current is None or analysis.effective_leverage > current.effective_leverage:
                membership[block_id] = analysis
    return membership


def _value_scale(analysis: LoopAnalysis | None) -> float:
    # Every loop member, the Borrow included, repeats its first-pass flow once per
    # pass, shrunk by the loop ratio each time.
    return analysis.effective_leverage if analysis is not None else 1.0


def yield_source(
    graph: Graph,
    block: Block,
    value: ComputedBlockValue,
    feeds: FeedSnapshot,
    *,
    scale: float = 1.0,
    initial_value: float,
) -> YieldSource | None:
    """APY contribution of ``block``, or ``None`` when it earns or pays nothing."""

    if value.output_value_usd <= 0:
        return None
    cfg = block.config
    if isinstance(cfg, StakeConfig):
        protocol, operation, asset, override = cfg.protocol, "stake", value.output_asset, cfg.apy
    elif isinstance(cfg, LendConfig):
        protocol, operation, asset, override = cfg.protocol, "supply", value.input_asset, cfg.supply_apy
    elif isinstance(cfg, BorrowConfig):
        protocol, operation, asset, override = borrow_protocol(graph, block), "borrow", cfg.asset, cfg.borrow_apy
    else:
        return None

    apy = float(override) if override is not None else feeds.apy(protocol, operation, asset)
    if apy is not None and operation == "borrow":
        apy = -abs(apy)
    weight = value.output_value_usd * scale / initial_value * 100.0 if initial_value > 0 else 0.0
    return YieldSource(
        protocol=protocol or "unknown",
        type=operation,
        apy=apy,
        weight=weight,
        block_id=block.id,
        asset=asset,
    )


def _positions(
    graph: Graph,
    valuation: Valuation,
    analyses: list[LoopAnalysis],
    membership: Mapping[str, LoopAnalysis],
    config: EngineConfig,
) -> list[DebtPosition]:
    positions: list[DebtPosition] = []
    for block in graph.blocks_of_kind("borrow"):
        if block.id in membership or not block.is_valid or not graph.incoming(block.id):
            continue
        value = valuation.values[block.id]
        lend = _upstream_lend(graph, block.id)
        threshold = config.default_liquidation_threshold
        if lend is not None and lend.config.liquidation_threshold is not None:
            threshold = float(lend.config.liquidation_threshold)
        positions.append(
            DebtPosition(block.id, value.input_value_usd, value.output_value_usd, threshold)
        )
    for analysis in analyses:
        final = analysis.health_factors[-1]
        positions.append(
            DebtPosition(
                analysis.loop.id,
                final.collateral,
                final.debt,
                analysis.liquidation_threshold,
                in_loop=True,
            )
        )
    return positions


def _evaluate(
    graph: Graph,
    feeds: FeedSnapshot,
    iterations: Mapping[str, int],
    config: EngineConfig,
    issues: tuple,
) -> SimulationResult:
    search = depth_first_search(
        graph, max_depth=config.max_search_depth, max_cycles=config.max_cycles
    )
    valuation = propagate(graph, feeds, config=config, skip_edges=search.back_edge_ids)
    loops = detect_loops(graph, iterations, search=search)
    analyses = [analyze_loop(graph, loop, valuation, feeds, config) for loop in loops]
    membership = _loop_membership(analyses)

    initial = sum(valuation.output_usd(b.id) for b in graph.blocks_of_kind("input"))
    pending = [f"price:{asset}" for asset in sorted(valuation.missing_prices)]

    sources: list[YieldSource] = []
    gas = 0.0
    fees = 0.0
    for block in graph.blocks:
        if not block.is_valid:
            continue
        value = valuation.values[block.id]
        analysis = membership.get(block.id)
        scale = _value_scale(analysis)
        passes = analysis.loop.iterations if analysis is not None else 1
        gas += value.gas_cost_usd * passes
        if isinstance(block.config, SwapConfig):
            rate = float(block.config.slippage or 0.0) / 100.0 + config.swap_fee_rate
            fees += value.input_value_usd * scale * rate
        source = yield_source(graph, block, value, feeds, scale=scale, initial_value=initial)
        if source is None:
            continue
        sources.append(source)
        if source.apy is None:
            pending.append(yield_key_label((source.protocol, source.type, source.asset or "unknown")))

    positions = _positions(graph, valuation, analyses, membership, config)
    borrowed = sum(p.debt for p in positions)
    leverage = max(
        [1.0, 1.0 + borrowed / initial if initial > 0 else 1.0]
        + [a.effective_leverage for a in analyses]
    )

    health: float | None = None
    liq_price: float | None = None
    if positions:
        health = min(p.health_factor for p in positions)
        indebted = [p for p in positions if p.debt > 0]
        if indebted:
            weakest = min(indebted, key=lambda p: p.health_factor)
            liq_price = liquidation_price(
                feeds.reference_price,
                weakest.collateral,
                weakest.debt,
                weakest.liquidation_threshold,
            )
            if feeds.reference_price is None:
                pending.append(f"price:{feeds.reference_asset}")

    borrow_count = sum(
        1 for b in graph.blocks_of_kind("borrow") if b.is_valid and graph.incoming(b.id)
    )
    score = calculate_risk_score(health, leverage, borrow_count)

    pending = list(dict.fromkeys(pending))
    if pending:
        net_apy = projected = gross = None
    else:
        net_apy = sum(s.apy * s.weight / 100.0 for s in sources if s.apy is not None)
        projected = initial * (1.0 + net_apy / 100.0) - gas - fees
        gross = projected - initial + gas + fees

    return SimulationResult(
        is_valid=True,
        initial_value=initial,
        projected_value_1y=projected,
        gross_yield=gross,
        net_apy=net_apy,
        leverage=leverage,
        risk_level=risk_level(score),
        risk_score=score,
        health_factor=health,
        liquidation_price=liq_price,
        gas_cost_usd=gas,
        protocol_fees=fees,
        yield_sources=tuple(sources),
        block_values=dict(valuation.values),
        loops=tuple(analyses),
        issues=issues,
        over_allocated=tuple(i.block_id for i in issues if i.type == "over_allocation" and i.block_id),
        pending_feeds=tuple(pending),
    )


def evaluate(
    graph: Graph,
    feeds: FeedSnapshot,
    *,
    iterations: Mapping[str, int] | None = None,
    config: EngineConfig | None = None,
) -> SimulationResult:
    """Evaluate ``graph`` against ``feeds`` and return a fresh result.

    Parameters
    ----------
    graph:
        Strategy graph; it is only read.
    feeds:
        Prices and APYs to value the strategy with.
    iterations:
        ``{loop_id: iterations}`` for the leverage loops; loops not listed run
        a single pass.
    config:
        Engine settings; defaults to :class:`EngineConfig`.

    Returns
    -------
    SimulationResult
        Invalid (with ``error_message``) for an empty graph, a graph without
        Input blocks, or when the evaluation fails.
    """

    cfg = config or EngineConfig()
    issues: tuple = ()
    try:
        issues = tuple(validate_graph(graph, config=cfg))
        if not len(graph):
            return SimulationResult.empty("Add blocks to start building a strategy", issues)
        if not graph.blocks_of_kind("input"):
            return SimulationResult.empty("Add an Input block to start the simulation", issues)
        return _evaluate(graph, feeds, iterations or {}, cfg, issues)
    except ValueError as exc:
        logger.warning("Evaluation rejected: %s", exc)
        return SimulationResult.empty(str(exc), issues)
    except Exception as exc:
        logger.exception("Evaluation failed")
        return SimulationResult.empty(f"Evaluation failed: {exc}", issues)


__all__ = ["DebtPosition", "borrow_protocol", "yield_source", "evaluate"]
