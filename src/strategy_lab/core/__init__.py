"""Core data structures for :mod:`strategy_lab`.

This subpackage groups the graph model and the result types used across the
project so they can be shared without importing the entire public interface
exposed in :mod:`strategy_lab.__init__`.
"""

from __future__ import annotations

from .constants import ASSETS, BLOCK_KINDS, RISK_LEVELS, STABLE_ASSETS, YIELD_OPERATIONS
from .graph import (
    CycleRejected,
    DuplicateEdge,
    Graph,
    GraphError,
    InvalidConnection,
    SelfLoopOnNonLoopBlock,
    UnknownBlock,
    UnknownConfigField,
    UnknownEdge,
)
from .models import (
    Block,
    BlockConfig,
    BorrowConfig,
    DetectedLoop,
    Edge,
    InputConfig,
    LendConfig,
    StakeConfig,
    SwapConfig,
    default_config,
)
from .results import (
    ZERO_VALUE,
    ComputedBlockValue,
    IterationHealth,
    LoopAnalysis,
    SimulationResult,
    ValidationIssue,
    YieldSource,
)

__all__ = [
    "ASSETS",
    "BLOCK_KINDS",
    "RISK_LEVELS",
    "STABLE_ASSETS",
    "YIELD_OPERATIONS",
    "Graph",
    "GraphError",
    "CycleRejected",
    "DuplicateEdge",
    "InvalidConnection",
    "SelfLoopOnNonLoopBlock",
    "UnknownBlock",
    "UnknownConfigField",
    "UnknownEdge",
    "Block",
    "BlockConfig",
    "InputConfig",
    "StakeConfig",
    "LendConfig",
    "BorrowConfig",
    "SwapConfig",
    "DetectedLoop",
    "Edge",
    "default_config",
    "ZERO_VALUE",
    "ComputedBlockValue",
    "IterationHealth",
    "LoopAnalysis",
    "SimulationResult",
    "ValidationIssue",
    "YieldSource",
]
