"""Immutable outputs of an evaluation pass."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .models import DetectedLoop


@dataclass(frozen=True)
class ComputedBlockValue:
    """Value entering and leaving one block during a single evaluation."""

    input_asset: str | None
    input_amount: float
    input_value_usd: float
    output_asset: str | None
    output_amount: float
    output_value_usd: float
    gas_cost_usd: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


ZERO_VALUE = ComputedBlockValue(None, 0.0, 0.0, None, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class YieldSource:
    """APY contribution of one block. ``apy`` is ``None`` while the feed is loading."""

    protocol: str
    type: str  # "stake" | "supply" | "borrow"
    apy: float | None
    weight: float  # percent of initial value
    block_id: str = ""
    asset: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IterationHealth:
    iteration: int
    collateral: float
    debt: float
    health_factor: float


@dataclass(frozen=True)
class LoopAnalysis:
    """Leverage and health of a detected loop after ``loop.iterations`` passes."""

    loop: DetectedLoop
    ltv: float  # fraction of the entry value returning per pass
    liquidation_threshold: float  # percent
    initial_value: float
    effective_leverage: float
    total_value: float
    iteration_values: tuple[float, ...]
    health_factors: tuple[IterationHealth, ...]
    health_factor: float
    liquidation_price: float | None

    @property
    def debt(self) -> float:
        return self.health_factors[-1].debt if self.health_factors else 0.0


@dataclass(frozen=True)
class ValidationIssue:
    """A problem found in the graph. ``severity`` is ``"error"`` or ``"warning"``."""

    type: str
    message: str
    severity: str = "error"
    block_id: str | None = None
    edge_id: str | None = None
    suggested_fix: str | None = None


@dataclass(frozen=True)
class SimulationResult:
    """Sole output of the engine; never updated in place."""

    is_valid: bool
    initial_value: float = 0.0
    projected_value_1y: float | None = 0.0
    gross_yield: float | None = 0.0
    net_apy: float | None = 0.0
    leverage: float = 1.0
    risk_level: str = "low"
    risk_score: float = 0.0
    health_factor: float | None = None
    liquidation_price: float | None = None
    gas_cost_usd: float = 0.0
    protocol_fees: float = 0.0
    yield_sources: tuple[YieldSource, ...] = ()
    block_values: dict[str, ComputedBlockValue] = field(default_factory=dict)
    loops: tuple[LoopAnalysis, ...] = ()
    issues: tuple[ValidationIssue, ...] = ()
    over_allocated: tuple[str, ...] = ()
    pending_feeds: tuple[str, ...] = ()
    error_message: str | None = None

    @classmethod
    def empty(cls, message: str, issues: tuple[ValidationIssue, ...] = ()) -> "SimulationResult":
        """Invalid result rendered as an explicit empty state."""

        return cls(is_valid=False, issues=issues, error_message=message)

    @property
    def is_pending(self) -> bool:
        return bool(self.pending_feeds)

    @property
    def is_safe(self) -> bool:
        """True when no position is eligible for liquidation."""

        return self.health_factor is None or self.health_factor >= 1.0

    def summary(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "initial_value": self.initial_value,
            "projected_value_1y": self.projected_value_1y,
            "gross_yield": self.gross_yield,
            "net_apy": self.net_apy,
            "leverage": self.leverage,
            "risk_level": self.risk_level,
            "risk_score": self.risk_score,
            "health_factor": self.health_factor,
            "liquidation_price": self.liquidation_price,
            "gas_cost_usd": self.gas_cost_usd,
            "protocol_fees": self.protocol_fees,
        }


__all__ = [
    "ComputedBlockValue",
    "ZERO_VALUE",
    "YieldSource",
    "IterationHealth",
    "LoopAnalysis",
    "ValidationIssue",
    "SimulationResult",
]
