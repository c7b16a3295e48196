"""Feed adapters used by :mod:`strategy_lab`.

Adapters only read local snapshots; refreshing live prices or yields is left
to whoever produces those files.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from ..protocols import catalog_yields
from .base import FeedSnapshot, YieldKey, yield_key_label
from .csv import CSVPriceSource, CSVYieldSource

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    """Adapter returning ``{asset: usd_price}``."""

    def fetch(self) -> dict[str, float]: ...


class YieldSourceAdapter(Protocol):
    """Adapter returning ``{(protocol, operation, asset): apy_percent}``."""

    def fetch(self) -> dict[YieldKey, float]: ...


def _fetch_or_empty(source: PriceSource | YieldSourceAdapter | None) -> dict:
    if source is None:
        return {}
    try:
        return dict(source.fetch())
    except Exception as exc:
        logger.warning("Source %s failed: %s", source.__class__.__name__, exc)
        return {}


def load_snapshot(
    prices: PriceSource | None = None,
    yields: YieldSourceAdapter | None = None,
    *,
    reference_asset: str = "ETH",
) -> FeedSnapshot:
    """Build a :class:`FeedSnapshot`; a failing source contributes nothing."""

    return FeedSnapshot(
        prices=_fetch_or_empty(prices),
        yields=_fetch_or_empty(yields),
        reference_asset=reference_asset,
    )


def catalog_snapshot(
    prices: Mapping[str, float],
    *,
    reference_asset: str = "ETH",
) -> FeedSnapshot:
    """Snapshot using the protocol catalog's reference APYs."""

    return FeedSnapshot(prices=prices, yields=catalog_yields(), reference_asset=reference_asset)


__all__ = [
    "FeedSnapshot",
    "YieldKey",
    "yield_key_label",
    "PriceSource",
    "YieldSourceAdapter",
    "CSVPriceSource",
    "CSVYieldSource",
    "load_snapshot",
    "catalog_snapshot",
]
