"""Core constants shared across strategy_lab modules."""

from __future__ import annotations

# Fungible units a block may hold or emit. The set is closed: a new asset has
# to be added here before any block can reference it.
ASSETS = (
    "ETH",
    "USDC",
    "USDT",
    "DAI",
    "stETH",
    "eETH",
    "weETH",
    "wstETH",
    "rETH",
    "cbETH",
    "sfrxETH",
)

# Dollar-pegged assets are priced at 1.0 regardless of the injected price feed.
STABLE_ASSETS = frozenset({"USDC", "USDT", "DAI"})

BLOCK_KINDS = ("input", "stake", "lend", "borrow", "swap")

# Yield feed operations, keyed as (protocol, operation, asset).
YIELD_OPERATIONS = ("stake", "supply", "borrow")

RISK_LEVELS = ("low", "medium", "high", "extreme")

__all__ = ["ASSETS", "STABLE_ASSETS", "BLOCK_KINDS", "YIELD_OPERATIONS", "RISK_LEVELS"]
