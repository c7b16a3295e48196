"""Snapshot of the external price and yield feeds used for one evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from ..core import STABLE_ASSETS

YieldKey = tuple[str, str, str]


def yield_key_label(key: YieldKey) -> str:
    protocol, operation, asset = key
    return f"{protocol}:{operation}:{asset}"


@dataclass(frozen=True)
class FeedSnapshot:
    """Read-only prices (USD) and APYs (percent) injected into the engine.

    Lookups return ``None`` when the feed has no entry, so callers can tell
    "unknown" apart from a genuine zero.
    """

    prices: Mapping[str, float] = field(default_factory=dict)
    yields: Mapping[YieldKey, float] = field(default_factory=dict)
    reference_asset: str = "ETH"

    def __post_init__(self) -> None:
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))
        object.__setattr__(self, "yields", MappingProxyType(dict(self.yields)))

    def price(self, asset: str | None) -> float | None:
        if asset is None:
            return None
        if asset in STABLE_ASSETS:
            return 1.0
        value = self.prices.get(asset)
        return float(value) if value is not None else None

    @property
    def reference_price(self) -> float | None:
        return self.price(self.reference_asset)

    def apy(self, protocol: str | None, operation: str, asset: str | None) -> float | None:
        if protocol is None or asset is None:
            return None
        value = self.yields.get((protocol, operation, asset))
        return float(value) if value is not None else None

    def with_prices(self, prices: Mapping[str, float]) -> "FeedSnapshot":
        return FeedSnapshot({**self.prices, **prices}, self.yields, self.reference_asset)

    def with_yields(self, yields: Mapping[YieldKey, float]) -> "FeedSnapshot":
        return FeedSnapshot(self.prices, {**self.yields, **yields}, self.reference_asset)


__all__ = ["FeedSnapshot", "YieldKey", "yield_key_label"]
