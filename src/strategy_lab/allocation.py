"""Checks and helpers for the flow percentages leaving a block.

Sibling edges are independent: editing one edge never rescales the others,
and a block whose outgoing percentages sum above 100 is reported, not fixed.
"""

from __future__ import annotations

from dataclasses import dataclass

from .core import Graph

# Tolerance for sums such as 33.3 + 33.3 + 33.4.
ALLOCATION_TOLERANCE = 1e-6


@dataclass(frozen=True)
class AllocationStatus:
    block_id: str
    total: float
    edge_count: int

    @property
    def is_over(self) -> bool:
        return self.total > 100.0 + ALLOCATION_TOLERANCE

    @property
    def unallocated(self) -> float:
        return max(0.0, 100.0 - self.total)


def outgoing_allocation(graph: Graph, block_id: str) -> AllocationStatus:
    edges = graph.outgoing(block_id)
    return AllocationStatus(
        block_id=block_id,
        total=sum(float(e.flow_percent) for e in edges),
        edge_count=len(edges),
    )


def over_allocated_blocks(graph: Graph) -> list[str]:
    """Ids of blocks sending out more than 100% of their output."""

    return [b.id for b in graph.blocks if outgoing_allocation(graph, b.id).is_over]


def even_split(count: int) -> list[float]:
    """``count`` equal percentages of 100, rounded to 0.1 (as ``Graph.connect`` does)."""

    if count <= 0:
        return []
    return [round(100.0 / count, 1)] * count


def distribute_evenly(graph: Graph, block_id: str) -> dict[str, float]:
    """Reset the outgoing edges of ``block_id`` to an even split.

    Returns the new ``{edge_id: flow_percent}`` mapping.
    """

    edges = graph.outgoing(block_id)
    updated: dict[str, float] = {}
    for edge, share in zip(edges, even_split(len(edges))):
        graph.set_edge_flow_percent(edge.id, share)
        updated[edge.id] = share
    return updated


__all__ = [
    "ALLOCATION_TOLERANCE",
    "AllocationStatus",
    "outgoing_allocation",
    "over_allocated_blocks",
    "even_split",
    "distribute_evenly",
]
