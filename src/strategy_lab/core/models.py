"""Block, edge and configuration models of a strategy graph.

A block's kind is carried by the type of its configuration: every config
class declares a ``kind`` and the fields that kind needs. Fields holding
``None`` are unset; a block with an unset required field is invalid and
contributes no value until the user completes it.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar

from ..protocols import staking_protocol
from .constants import ASSETS


def _check_asset(name: str, value: str | None) -> None:
    if value is not None and value not in ASSETS:
        raise ValueError(f"{name} must be one of {ASSETS}, got {value!r}")


def _check_percent(name: str, value: float | None) -> None:
    if value is not None and not 0.0 <= float(value) <= 100.0:
        raise ValueError(f"{name} must be within [0, 100], got {value!r}")


def _check_non_negative(name: str, value: float | None) -> None:
    if value is not None and float(value) < 0.0:
        raise ValueError(f"{name} must be non-negative, got {value!r}")


@dataclass(frozen=True)
class BlockConfig:
    """Base class of the per-kind configuration variants."""

    kind: ClassVar[str] = ""
    required: ClassVar[tuple[str, ...]] = ()

    def missing_fields(self) -> list[str]:
        """Names of required fields that are still unset."""

        return [name for name in self.required if getattr(self, name) is None]

    @property
    def output_asset_hint(self) -> str | None:
        """Asset emitted by the block when it is known without tracing inputs."""

        return None

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class InputConfig(BlockConfig):
    """Capital deposited into the strategy."""

    kind: ClassVar[str] = "input"
    required: ClassVar[tuple[str, ...]] = ("asset", "amount")

    asset: str | None = "ETH"
    amount: float | None = 1.0

    def __post_init__(self) -> None:
        _check_asset("asset", self.asset)
        _check_non_negative("amount", self.amount)

    @property
    def output_asset_hint(self) -> str | None:
        return self.asset


@dataclass(frozen=True)
class StakeConfig(BlockConfig):
    """Liquid staking; ``apy`` overrides the yield feed when set."""

    kind: ClassVar[str] = "stake"
    required: ClassVar[tuple[str, ...]] = ("protocol",)

    protocol: str | None = "etherfi"
    output_asset: str | None = None
    apy: float | None = None

    def __post_init__(self) -> None:
        _check_asset("output_asset", self.output_asset)

    @property
    def output_asset_hint(self) -> str | None:
        if self.output_asset is not None:
            return self.output_asset
        protocol = staking_protocol(self.protocol) if self.protocol else None
        return protocol.output_asset if protocol else None


@dataclass(frozen=True)
class LendConfig(BlockConfig):
    """Collateral supply; percentages are of collateral value."""

    kind: ClassVar[str] = "lend"
    required: ClassVar[tuple[str, ...]] = ("protocol", "liquidation_threshold")

    protocol: str | None = "aave-v3"
    max_ltv: float | None = 80.0
    liquidation_threshold: float | None = 82.5
    supply_apy: float | None = None

    def __post_init__(self) -> None:
        _check_percent("max_ltv", self.max_ltv)
        _check_percent("liquidation_threshold", self.liquidation_threshold)


@dataclass(frozen=True)
class BorrowConfig(BlockConfig):
    """Debt drawn against the collateral flowing into the block."""

    kind: ClassVar[str] = "borrow"
    required: ClassVar[tuple[str, ...]] = ("asset", "ltv_percent")

    asset: str | None = "ETH"
    ltv_percent: float | None = 70.0
    protocol: str | None = None
    borrow_apy: float | None = None

    def __post_init__(self) -> None:
        _check_asset("asset", self.asset)
        _check_percent("ltv_percent", self.ltv_percent)

    @property
    def output_asset_hint(self) -> str | None:
        return self.asset


@dataclass(frozen=True)
class SwapConfig(BlockConfig):
    """Asset conversion; ``slippage`` is a percentage of the swapped value."""

    kind: ClassVar[str] = "swap"
    required: ClassVar[tuple[str, ...]] = ("from_asset", "to_asset")

    from_asset: str | None = None
    to_asset: str | None = None
    slippage: float | None = 0.5

    def __post_init__(self) -> None:
        _check_asset("from_asset", self.from_asset)
        _check_asset("to_asset", self.to_asset)
        _check_non_negative("slippage", self.slippage)

    @property
    def output_asset_hint(self) -> str | None:
        return self.to_asset


CONFIG_TYPES: dict[str, type[BlockConfig]] = {
    cls.kind: cls for cls in (InputConfig, StakeConfig, LendConfig, BorrowConfig, SwapConfig)
}


def default_config(kind: str) -> BlockConfig:
    """Return the configuration a freshly placed block of ``kind`` starts with."""

    try:
        return CONFIG_TYPES[kind]()
    except KeyError:
        raise ValueError(f"Unknown block kind: {kind!r}") from None


def config_from_dict(data: dict[str, Any]) -> BlockConfig:
    payload = dict(data)
    kind = payload.pop("kind", None)
    if kind not in CONFIG_TYPES:
        raise ValueError(f"Unknown block kind: {kind!r}")
    return CONFIG_TYPES[kind](**payload)


@dataclass
class Block:
    """A node of the strategy graph. Configuration edits replace ``config``."""

    id: str
    config: BlockConfig
    position: tuple[float, float] = (0.0, 0.0)
    label: str = ""

    @property
    def kind(self) -> str:
        return self.config.kind

    @property
    def is_valid(self) -> bool:
        return not self.config.missing_fields()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "position": list(self.position),
            "config": self.config.to_dict(),
        }


@dataclass
class Edge:
    """Directed flow carrying ``flow_percent`` of the source block's output."""

    id: str
    source: str
    target: str
    flow_percent: float = 100.0

    def __post_init__(self) -> None:
        _check_percent("flow_percent", self.flow_percent)

    @property
    def fraction(self) -> float:
        return float(self.flow_percent) / 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "flow_percent": self.flow_percent,
        }


@dataclass(frozen=True)
class DetectedLoop:
    """Leverage loop found in the graph; ``iterations`` is user-supplied state."""

    id: str
    block_ids: tuple[str, ...]
    edge_ids: tuple[str, ...] = ()
    iterations: int = 1

    @property
    def entry_block_id(self) -> str:
        return self.block_ids[0]

    @property
    def exit_block_id(self) -> str:
        return self.block_ids[-1]


__all__ = [
    "BlockConfig",
    "InputConfig",
    "StakeConfig",
    "LendConfig",
    "BorrowConfig",
    "SwapConfig",
    "CONFIG_TYPES",
    "default_config",
    "config_from_dict",
    "Block",
    "Edge",
    "DetectedLoop",
]
