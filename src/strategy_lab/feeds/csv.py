"""CSV-backed price and yield feed sources."""

from __future__ import annotations

import pandas as pd

from ..core import ASSETS, YIELD_OPERATIONS
from .base import YieldKey


class CSVPriceSource:
    """Load USD prices from a CSV with ``asset`` and ``price_usd`` columns."""

    def __init__(self, path: str) -> None:
        self.path = path

    def fetch(self) -> dict[str, float]:
        df = pd.read_csv(self.path)
        required = {"asset", "price_usd"}
        missing = required.difference(df.columns)
        if missing:
            raise ValueError(f"CSV missing columns: {missing}")
        prices: dict[str, float] = {}
        for _, r in df.dropna(subset=["price_usd"]).iterrows():
            asset = str(r["asset"])
            if asset not in ASSETS:
                continue
            prices[asset] = float(r["price_usd"])
        return prices


class CSVYieldSource:
    """Load APYs (percent) from a CSV with protocol, operation, asset and apy."""

    def __init__(self, path: str) -> None:
        self.path = path

    def fetch(self) -> dict[YieldKey, float]:
        df = pd.read_csv(self.path)
        required = {"protocol", "operation", "asset", "apy"}
        missing = required.difference(df.columns)
        if missing:
            raise ValueError(f"CSV missing columns: {missing}")
        yields: dict[YieldKey, float] = {}
        for _, r in df.dropna(subset=["apy"]).iterrows():
            operation = str(r["operation"]).strip().lower()
            if operation not in YIELD_OPERATIONS:
                continue
            key = (str(r["protocol"]).strip(), operation, str(r["asset"]).strip())
            yields[key] = float(r["apy"])
        return yields


__all__ = ["CSVPriceSource", "CSVYieldSource"]
