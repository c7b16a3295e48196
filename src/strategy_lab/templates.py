"""Prebuilt strategy graphs."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .core import BorrowConfig, Graph, InputConfig, LendConfig, StakeConfig


@dataclass(frozen=True)
class StrategyTemplate:
    id: str
    name: str
    description: str
    risk_level: str
    estimated_apy: str
    tags: tuple[str, ...] = ()


STRATEGY_TEMPLATES: tuple[StrategyTemplate, ...] = (
    StrategyTemplate(
        "conservative-lst",
        "Conservative LST",
        "Simple ETH staking with EtherFi for steady yield",
        "low",
        "3-4%",
        ("beginner", "eth", "staking"),
    ),
    StrategyTemplate(
        "lst-lending",
        "LST + Lending",
        "Stake ETH, then supply the LST to earn additional yield",
        "low",
        "4-5%",
        ("intermediate", "eth", "lending"),
    ),
    StrategyTemplate(
        "leveraged-lst-2x",
        "Leveraged LST (2x)",
        "Loop staking through a borrow for amplified returns",
        "medium",
        "6-8%",
        ("advanced", "leverage", "looping"),
    ),
    StrategyTemplate(
        "stablecoin-yield",
        "Stablecoin Yield",
        "Supply USDC to Morpho for high stablecoin yields",
        "low",
        "8-12%",
        ("beginner", "stablecoin", "usdc"),
    ),
)


def _input(graph: Graph, asset: str = "ETH", amount: float = 1.0) -> str:
    return graph.add_block(
        "input",
        (100, 200),
        config=InputConfig(asset=asset, amount=amount),
        label="Input Capital",
        block_id="template_input_1",
    )


def _stake(graph: Graph, position: tuple[float, float], output_asset: str | None = None) -> str:
    return graph.add_block(
        "stake",
        position,
        config=StakeConfig(protocol="etherfi", output_asset=output_asset, apy=3.2),
        label="Stake",
        block_id="template_stake_1",
    )


def _aave(graph: Graph, position: tuple[float, float]) -> str:
    return graph.add_block(
        "lend",
        position,
        config=LendConfig(protocol="aave-v3", max_ltv=77.0, liquidation_threshold=80.0, supply_apy=0.5),
        label="Lend",
        block_id="template_lend_1",
    )


def conservative_lst() -> Graph:
    graph = Graph()
    graph.connect(_input(graph), _stake(graph, (400, 200)))
    return graph


def lst_lending() -> Graph:
    graph = Graph()
    stake = _stake(graph, (350, 200), output_asset="weETH")
    graph.connect(_input(graph), stake)
    graph.connect(stake, _aave(graph, (600, 200)))
    return graph


def leveraged_lst() -> Graph:
    """Input -> Stake -> Lend -> Borrow, with the borrowed ETH restaked."""

    graph = Graph()
    source = _input(graph)
    stake = _stake(graph, (300, 200), output_asset="weETH")
    lend = _aave(graph, (500, 200))
    borrow = graph.add_block(
        "borrow",
        (700, 200),
        config=BorrowConfig(asset="ETH", ltv_percent=70.0, borrow_apy=2.8),
        label="Borrow",
        block_id="template_borrow_1",
    )
    graph.connect(source, stake)
    graph.connect(stake, lend)
    graph.connect(lend, borrow)
    graph.connect(borrow, stake)
    return graph


def stablecoin_yield() -> Graph:
    graph = Graph()
    source = _input(graph, "USDC", 10_000.0)
    lend = graph.add_block(
        "lend",
        (400, 200),
        config=LendConfig(protocol="morpho", max_ltv=86.0, liquidation_threshold=91.5, supply_apy=10.2),
        label="Lend",
        block_id="template_lend_1",
    )
    graph.connect(source, lend)
    return graph


_BUILDERS: dict[str, Callable[[], Graph]] = {
    "conservative-lst": conservative_lst,
    "lst-lending": lst_lending,
    "leveraged-lst-2x": leveraged_lst,
    "stablecoin-yield": stablecoin_yield,
}


def get_template(template_id: str) -> StrategyTemplate:
    for template in STRATEGY_TEMPLATES:
        if template.id == template_id:
            return template
    raise KeyError(f"Unknown template: {template_id!r}")


def build_template(template_id: str) -> Graph:
    """Return a fresh graph for ``template_id``."""

    try:
        builder = _BUILDERS[template_id]
    except KeyError:
        raise KeyError(f"Unknown template: {template_id!r}") from None
    return builder()


__all__ = [
    "StrategyTemplate",
    "STRATEGY_TEMPLATES",
    "get_template",
    "build_template",
]
