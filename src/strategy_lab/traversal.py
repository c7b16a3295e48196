"""Graph walks shared by valuation, loop detection and trace features."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
import logging
from typing import Generic, TypeVar

from .core import Block, Edge, Graph

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpstreamFold(Generic[T]):
    """Memoized fold over the blocks feeding each block.

    ``combine(block, inflows)`` receives the block and a list of
    ``(edge, folded_source)`` pairs for its incoming edges. Edges listed in
    ``skip_edges`` are ignored. Re-entering a block that is still being folded
    yields ``on_cycle`` for that edge instead of recursing.
    """

    def __init__(
        self,
        graph: Graph,
        combine: Callable[[Block, list[tuple[Edge, T]]], T],
        *,
        on_cycle: T,
        skip_edges: Collection[str] = (),
    ) -> None:
        self.graph = graph
        self.combine = combine
        self.on_cycle = on_cycle
        self.skip_edges = frozenset(skip_edges)
        self._memo: dict[str, T] = {}
        self._visiting: set[str] = set()

    def __call__(self, block_id: str) -> T:
        if block_id in self._memo:
            return self._memo[block_id]
        if block_id in self._visiting:
            return self.on_cycle

        # Iterative walk; frames are [block_id, incoming edges, next edge index, inflows].
        stack: list[list] = []

        def push(node: str) -> None:
            edges = [e for e in self.graph.incoming(node) if e.id not in self.skip_edges]
            self._visiting.add(node)
            stack.append([node, edges, 0, []])

        push(block_id)
        try:
            while stack:
                frame = stack[-1]
                node, edges, index, inflows = frame
                if index < len(edges):
                    edge = edges[index]
                    frame[2] = index + 1
                    source = edge.source
                    if source in self._memo:
                        inflows.append((edge, self._memo[source]))
                    elif source in self._visiting:
                        inflows.append((edge, self.on_cycle))
                    else:
                        push(source)
                    continue
                value = self.combine(self.graph.block(node), inflows)
                self._memo[node] = value
                self._visiting.discard(node)
                stack.pop()
                if stack:
                    parent = stack[-1]
                    parent[3].append((parent[1][parent[2] - 1], value))
        finally:
            for frame in stack:
                self._visiting.discard(frame[0])
        return self._memo[block_id]

    def fold_all(self) -> dict[str, T]:
        """Fold every block, Input blocks first, in graph order."""

        blocks = self.graph.blocks
        ordered = [b for b in blocks if b.kind == "input"] + [b for b in blocks if b.kind != "input"]
        return {block.id: self(block.id) for block in ordered}


@dataclass
class DepthFirstResult:
    """Outcome of :func:`depth_first_search`."""

    order: list[str] = field(default_factory=list)
    back_edges: list[Edge] = field(default_factory=list)
    cycles: list[tuple[list[str], list[str]]] = field(default_factory=list)
    truncated: bool = False

    @property
    def back_edge_ids(self) -> set[str]:
        return {edge.id for edge in self.back_edges}


def depth_first_search(
    graph: Graph,
    *,
    max_depth: int = 256,
    max_cycles: int = 64,
) -> DepthFirstResult:
    """Walk downstream from every Input block and classify back edges.

    Each back edge closes exactly one recorded cycle: the path segment from
    the edge's target to its source, in traversal order. The walk is
    iterative; it never descends deeper than ``max_depth`` blocks and stops
    recording cycles after ``max_cycles``.
    """

    result = DepthFirstResult()
    visited: set[str] = set()

    for root in graph.blocks_of_kind("input"):
        if root.id in visited:
            continue
        path: list[str] = [root.id]
        on_path: set[str] = {root.id}
        visited.add(root.id)
        result.order.append(root.id)
        stack = [iter(graph.outgoing(root.id))]

        while stack:
            edge = next(stack[-1], None)
            if edge is None:
                stack.pop()
                on_path.discard(path.pop())
                continue
            target = edge.target
            if target in on_path:
                result.back_edges.append(edge)
                if len(result.cycles) < max_cycles:
                    members = path[path.index(target):]
                    edge_ids = []
                    for src, dst in zip(members, members[1:]):
                        found = graph.find_edge(src, dst)
                        if found is not None:
                            edge_ids.append(found.id)
                    edge_ids.append(edge.id)
                    result.cycles.append((members, edge_ids))
                else:
                    result.truncated = True
                continue
            if target in visited:
                continue
            if len(path) >= max_depth:
                result.truncated = True
                continue
            visited.add(target)
            result.order.append(target)
            path.append(target)
            on_path.add(target)
            stack.append(iter(graph.outgoing(target)))

    if result.truncated:
        logger.warning(
            "Cycle search truncated (max_depth=%s, max_cycles=%s)", max_depth, max_cycles
        )
    return result


def nearest_upstream(
    graph: Graph,
    block_id: str,
    predicate: Callable[[Block], bool],
) -> Block | None:
    """Closest block feeding ``block_id`` (breadth first) that satisfies ``predicate``."""

    seen = {block_id}
    queue = deque(edge.source for edge in graph.incoming(block_id))
    while queue:
        current = queue.popleft()
        if current in seen:
            continue
        seen.add(current)
        block = graph.block(current)
        if predicate(block):
            return block
        queue.extend(edge.source for edge in graph.incoming(current))
    return None


def origin_map(graph: Graph) -> dict[str, frozenset[str]]:
    """Ids of the Input blocks whose capital can reach each block.

    Edges carrying 0% move no capital and are not followed.
    """

    downstream: dict[str, list[str]] = {}
    for edge in graph.edges:
        if edge.flow_percent > 0:
            downstream.setdefault(edge.source, []).append(edge.target)
    origins: dict[str, set[str]] = {block.id: set() for block in graph.blocks}
    for root in graph.blocks_of_kind("input"):
        seen = {root.id}
        queue = deque([root.id])
        while queue:
            current = queue.popleft()
            origins[current].add(root.id)
            for nxt in downstream.get(current, ()):
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
    return {block_id: frozenset(ids) for block_id, ids in origins.items()}


def origin_inputs(graph: Graph, block_id: str) -> frozenset[str]:
    """Ids of the Input blocks whose capital can reach ``block_id``."""

    graph.block(block_id)
    return origin_map(graph)[block_id]


def origin_assets(graph: Graph, block_id: str) -> frozenset[str]:
    """Assets originally deposited by the Input blocks feeding ``block_id``."""

    assets = set()
    for input_id in origin_inputs(graph, block_id):
        asset = graph.block(input_id).config.output_asset_hint
        if asset is not None:
            assets.add(asset)
    return frozenset(assets)


__all__ = [
    "UpstreamFold",
    "DepthFirstResult",
    "depth_first_search",
    "nearest_upstream",
    "origin_map",
    "origin_inputs",
    "origin_assets",
]
