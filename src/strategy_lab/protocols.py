"""Protocol catalog: staking and lending venues the builder knows about.

Reference APYs here are fallbacks for demos and templates. The engine itself
reads APYs from the injected yield feed; see :func:`strategy_lab.feeds.catalog_snapshot`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class StakingProtocol:
    id: str
    name: str
    input_asset: str
    output_asset: str
    reference_apy: float  # percent
    risk_score: float  # 0-100, lower is safer


@dataclass(frozen=True)
class LendingMarket:
    asset: str
    supply_apy: float  # percent
    borrow_apy: float  # percent, 0 when the asset is not borrowable
    max_ltv: float
    liquidation_threshold: float


@dataclass(frozen=True)
class LendingProtocol:
    id: str
    name: str
    risk_score: float
    markets: tuple[LendingMarket, ...]

    def market(self, asset: str | None) -> LendingMarket | None:
        for market in self.markets:
            if market.asset == asset:
                return market
        return None


STAKING_PROTOCOLS: Mapping[str, StakingProtocol] = {
    p.id: p
    for p in (
        StakingProtocol("etherfi", "EtherFi", "ETH", "eETH", 3.0, 25),
        StakingProtocol("lido", "Lido", "ETH", "stETH", 2.9, 15),
        StakingProtocol("rocketpool", "Rocket Pool", "ETH", "rETH", 2.8, 20),
        StakingProtocol("frax", "Frax Finance", "ETH", "sfrxETH", 3.5, 30),
        StakingProtocol("coinbase", "Coinbase", "ETH", "cbETH", 2.6, 10),
    )
}

# Ethereum mainnet market parameters.
LENDING_PROTOCOLS: Mapping[str, LendingProtocol] = {
    p.id: p
    for p in (
        LendingProtocol(
            "aave-v3",
            "Aave V3",
            15,
            (
                LendingMarket("ETH", 1.8, 2.5, 80.5, 83.0),
                LendingMarket("weETH", 0.1, 0.0, 72.5, 75.0),
                LendingMarket("stETH", 0.1, 0.0, 74.0, 76.0),
                LendingMarket("USDC", 5.0, 6.5, 77.0, 80.0),
            ),
        ),
        LendingProtocol(
            "compound-v3",
            "Compound V3",
            15,
            (
                LendingMarket("ETH", 2.0, 3.1, 83.0, 85.0),
                LendingMarket("USDC", 7.8, 9.5, 83.0, 85.0),
            ),
        ),
        LendingProtocol(
            "morpho",
            "Morpho",
            25,
            (
                LendingMarket("ETH", 2.5, 3.0, 86.0, 91.5),
                LendingMarket("weETH", 1.0, 0.0, 86.0, 91.5),
                LendingMarket("USDC", 10.2, 11.5, 86.0, 91.5),
            ),
        ),
        LendingProtocol(
            "spark",
            "Spark Protocol",
            20,
            (
                LendingMarket("ETH", 2.2, 2.9, 80.0, 82.5),
                LendingMarket("DAI", 8.0, 9.5, 77.0, 80.0),
            ),
        ),
    )
}

# Collateral each lending venue accepts.
ACCEPTED_ASSETS: Mapping[str, tuple[str, ...]] = {
    "aave-v3": ("ETH", "weETH", "wstETH", "USDC", "USDT", "DAI"),
    "compound-v3": ("ETH", "USDC", "USDT"),
    "morpho": ("ETH", "weETH", "wstETH", "USDC", "DAI"),
    "spark": ("ETH", "wstETH", "DAI"),
}

# Rebasing token -> non-rebasing wrapper.
WRAPPED_ASSETS: Mapping[str, str] = {
    "stETH": "wstETH",
    "eETH": "weETH",
}

# Estimated USD gas per action at ~3 gwei on mainnet.
GAS_COSTS: Mapping[str, float] = {
    "input": 0.0,
    "stake": 2.0,
    "lend": 3.0,
    "borrow": 3.5,
    "swap": 1.5,
}


def staking_protocol(protocol_id: str) -> StakingProtocol | None:
    return STAKING_PROTOCOLS.get(protocol_id)


def lending_protocol(protocol_id: str) -> LendingProtocol | None:
    return LENDING_PROTOCOLS.get(protocol_id)


def lending_market(protocol_id: str, asset: str | None) -> LendingMarket | None:
    protocol = LENDING_PROTOCOLS.get(protocol_id)
    return protocol.market(asset) if protocol else None


def accepts_asset(protocol_id: str, asset: str | None) -> bool:
    """Whether a lending venue takes ``asset`` as collateral. Unknown venues accept anything."""

    accepted = ACCEPTED_ASSETS.get(protocol_id)
    return accepted is None or asset in accepted


def protocol_name(protocol_id: str | None) -> str:
    """Display name for a protocol id, falling back to the id itself."""

    if protocol_id is None:
        return "Unknown"
    known = STAKING_PROTOCOLS.get(protocol_id) or LENDING_PROTOCOLS.get(protocol_id)
    return known.name if known else protocol_id


def catalog_yields() -> dict[tuple[str, str, str], float]:
    """Reference APYs keyed as ``(protocol, operation, asset)``."""

    yields: dict[tuple[str, str, str], float] = {}
    for stake in STAKING_PROTOCOLS.values():
        yields[(stake.id, "stake", stake.output_asset)] = stake.reference_apy
        wrapped = WRAPPED_ASSETS.get(stake.output_asset)
        if wrapped is not None:
            yields[(stake.id, "stake", wrapped)] = stake.reference_apy
    for lend in LENDING_PROTOCOLS.values():
        for market in lend.markets:
            yields[(lend.id, "supply", market.asset)] = market.supply_apy
            if market.borrow_apy > 0:
                yields[(lend.id, "borrow", market.asset)] = market.borrow_apy
    return yields


__all__ = [
    "StakingProtocol",
    "LendingMarket",
    "LendingProtocol",
    "STAKING_PROTOCOLS",
    "LENDING_PROTOCOLS",
    "ACCEPTED_ASSETS",
    "WRAPPED_ASSETS",
    "GAS_COSTS",
    "accepts_asset",
    "staking_protocol",
    "lending_protocol",
    "lending_market",
    "protocol_name",
    "catalog_yields",
]
