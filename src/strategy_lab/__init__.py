"""
StrategyLab: valuation and risk engine for DeFi strategy graphs.

Design goals:
- Typed blocks (Input, Stake, Lend, Borrow, Swap) wired by weighted edges
- Value propagated from the Input blocks through every edge
- Leverage loops detected and scaled per iteration with health tracking
- One immutable SimulationResult per evaluation (APY, leverage, health, risk)
- No web access here; prices and APYs are injected through feed snapshots.
"""

from __future__ import annotations

import logging

from . import risk_scoring
from .aggregation import evaluate
from .allocation import AllocationStatus, distribute_evenly, outgoing_allocation, over_allocated_blocks
from .config import EngineConfig, engine_config, load_config
from .core import (
    Block,
    BorrowConfig,
    ComputedBlockValue,
    CycleRejected,
    DetectedLoop,
    DuplicateEdge,
    Edge,
    Graph,
    GraphError,
    InputConfig,
    InvalidConnection,
    IterationHealth,
    LendConfig,
    LoopAnalysis,
    SelfLoopOnNonLoopBlock,
    SimulationResult,
    StakeConfig,
    SwapConfig,
    UnknownBlock,
    UnknownConfigField,
    UnknownEdge,
    ValidationIssue,
    YieldSource,
)
from .feeds import (
    CSVPriceSource,
    CSVYieldSource,
    FeedSnapshot,
    catalog_snapshot,
    load_snapshot,
)
from .loops import (
    analyze_loop,
    calculate_health_factors,
    calculate_loop_iterations,
    detect_loops,
)
from .session import StrategySession
from .templates import STRATEGY_TEMPLATES, build_template, get_template
from .validation import validate_graph
from .valuation import Valuation, propagate

logger = logging.getLogger(__name__)

__all__ = [
    "risk_scoring",
    "evaluate",
    "AllocationStatus",
    "distribute_evenly",
    "outgoing_allocation",
    "over_allocated_blocks",
    "EngineConfig",
    "engine_config",
    "load_config",
    "Block",
    "BorrowConfig",
    "ComputedBlockValue",
    "CycleRejected",
    "DetectedLoop",
    "DuplicateEdge",
    "Edge",
    "Graph",
    "GraphError",
    "InputConfig",
    "InvalidConnection",
    "IterationHealth",
    "LendConfig",
    "LoopAnalysis",
    "SelfLoopOnNonLoopBlock",
    "SimulationResult",
    "StakeConfig",
    "SwapConfig",
    "UnknownBlock",
    "UnknownConfigField",
    "UnknownEdge",
    "ValidationIssue",
    "YieldSource",
    "CSVPriceSource",
    "CSVYieldSource",
    "FeedSnapshot",
    "catalog_snapshot",
    "load_snapshot",
    "analyze_loop",
    "calculate_health_factors",
    "calculate_loop_iterations",
    "detect_loops",
    "StrategySession",
    "STRATEGY_TEMPLATES",
    "build_template",
    "get_template",
    "validate_graph",
    "Valuation",
    "propagate",
]
