"""Value propagation: USD value and native amount emitted by every block.

Each block's inflow is the sum over its incoming edges of the source's output
times the edge's ``flow_percent``. Edges that close a leverage loop carry no
value here; the loop is valued once and scaled by :mod:`strategy_lab.loops`.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field

from .config import EngineConfig
from .core import (
    ZERO_VALUE,
    Block,
    BorrowConfig,
    ComputedBlockValue,
    Edge,
    Graph,
    InputConfig,
    LendConfig,
    StakeConfig,
    SwapConfig,
)
from .feeds import FeedSnapshot
from .traversal import UpstreamFold, depth_first_search


@dataclass(frozen=True)
class Valuation:
    values: dict[str, ComputedBlockValue] = field(default_factory=dict)
    missing_prices: frozenset[str] = frozenset()
    skipped_edges: frozenset[str] = frozenset()

    def output_usd(self, block_id: str) -> float:
        return self.values.get(block_id, ZERO_VALUE).output_value_usd


def _sum_inflows(
    inflows: list[tuple[Edge, ComputedBlockValue]],
) -> tuple[float, float, str | None]:
    usd = 0.0
    amount = 0.0
    asset: str | None = None
    fallback: str | None = None
    for edge, source in inflows:
        share = edge.fraction
        usd += source.output_value_usd * share
        amount += source.output_amount * share
        if fallback is None:
            fallback = source.output_asset
        if asset is None and share > 0 and source.output_amount > 0:
            asset = source.output_asset
    return usd, amount, asset or fallback


class _Propagator:
    def __init__(self, feeds: FeedSnapshot, config: EngineConfig) -> None:
        self.feeds = feeds
        self.config = config
        self.missing: set[str] = set()

    def _price(self, asset: str | None) -> float | None:
        price = self.feeds.price(asset)
        if price is None and asset is not None:
            self.missing.add(asset)
        return price

    def __call__(
        self, block: Block, inflows: list[tuple[Edge, ComputedBlockValue]]
    ) -> ComputedBlockValue:
        in_usd, in_amount, in_asset = _sum_inflows(inflows)
        cfg = block.config

        if not block.is_valid:
            return ComputedBlockValue(in_asset, in_amount, in_usd, None, 0.0, 0.0, 0.0)

        gas = self.config.gas_cost(block.kind) if in_usd > 0 or in_amount > 0 else 0.0

        if isinstance(cfg, InputConfig):
            amount = float(cfg.amount or 0.0)
            price = self._price(cfg.asset) if amount > 0 else self.feeds.price(cfg.asset)
            usd = amount * price if price is not None else 0.0
            return ComputedBlockValue(None, 0.0, 0.0, cfg.asset, amount, usd, 0.0)

        if isinstance(cfg, StakeConfig):
            out_asset = cfg.output_asset_hint or in_asset
            return ComputedBlockValue(in_asset, in_amount, in_usd, out_asset, in_amount, in_usd, gas)

        if isinstance(cfg, LendConfig):
            return ComputedBlockValue(in_asset, in_amount, in_usd, in_asset, in_amount, in_usd, gas)

        if isinstance(cfg, BorrowConfig):
            ltv = float(cfg.ltv_percent or 0.0) / 100.0
            usd = in_usd * ltv
            price = self._price(cfg.asset) if usd > 0 or in_amount > 0 else None
            amount = usd / price if price else in_amount * ltv
            return ComputedBlockValue(in_asset, in_amount, in_usd, cfg.asset, amount, usd, gas)

        if isinstance(cfg, SwapConfig):
            amount = in_amount
            if in_amount > 0:
                from_price = self._price(cfg.from_asset)
                to_price = self._price(cfg.to_asset)
                if from_price is not None and to_price:
                    amount = in_amount * from_price / to_price
            return ComputedBlockValue(in_asset, in_amount, in_usd, cfg.to_asset, amount, in_usd, gas)

        raise TypeError(f"Unsupported block config {type(cfg).__name__}")


def propagate(
    graph: Graph,
    feeds: FeedSnapshot,
    *,
    config: EngineConfig | None = None,
    skip_edges: Collection[str] | None = None,
) -> Valuation:
    """Value every block of ``graph`` against ``feeds``.

    ``skip_edges`` defaults to the loop back edges found by a depth-first walk
    from the Input blocks.
    """

    cfg = config or EngineConfig()
    if skip_edges is None:
        search = depth_first_search(graph, max_depth=cfg.max_search_depth, max_cycles=cfg.max_cycles)
        skip_edges = search.back_edge_ids
    propagator = _Propagator(feeds, cfg)
    fold = UpstreamFold(graph, propagator, on_cycle=ZERO_VALUE, skip_edges=skip_edges)
    values = fold.fold_all()
    ordered = {block.id: values[block.id] for block in graph.blocks}
    return Valuation(
        values=ordered,
        missing_prices=frozenset(propagator.missing),
        skipped_edges=frozenset(skip_edges),
    )


__all__ = ["Valuation", "propagate"]
