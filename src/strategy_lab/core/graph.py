"""Mutable strategy graph with structural validation at mutation time."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import replace
import itertools
from typing import Any

from .models import Block, BlockConfig, Edge, SwapConfig, config_from_dict, default_config


class GraphError(ValueError):
    """Base class for mutations rejected by :class:`Graph`."""


class UnknownBlock(GraphError):
    pass


class UnknownEdge(GraphError):
    pass


class DuplicateEdge(GraphError):
    pass


class SelfLoopOnNonLoopBlock(GraphError):
    pass


class CycleRejected(GraphError):
    """Raised when an edge would close a cycle that contains no Borrow block."""


class InvalidConnection(GraphError):
    pass


class UnknownConfigField(GraphError):
    pass


def _check_flow_percent(percent: float) -> float:
    value = float(percent)
    if not 0.0 <= value <= 100.0:
        raise ValueError(f"flow_percent must be within [0, 100], got {percent!r}")
    return value


class Graph:
    """Ordered collection of blocks and edges.

    Every successful mutation bumps :attr:`revision`; rejected mutations raise a
    :class:`GraphError` (or ``ValueError`` for out-of-range values) and leave the
    graph untouched.
    """

    def __init__(
        self,
        blocks: Iterable[Block] | None = None,
        edges: Iterable[Edge] | None = None,
    ) -> None:
        self._blocks: dict[str, Block] = {}
        self._edges: dict[str, Edge] = {}
        self._ids = itertools.count(1)
        self.revision = 0
        for block in blocks or ():
            self._blocks[block.id] = block
        for edge in edges or ():
            if edge.source not in self._blocks or edge.target not in self._blocks:
                raise UnknownBlock(f"Edge {edge.id} references a missing block")
            self._edges[edge.id] = edge

    # -----------------
    # Queries
    # -----------------

    @property
    def blocks(self) -> list[Block]:
        return list(self._blocks.values())

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(list(self._blocks.values()))

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    def block(self, block_id: str) -> Block:
        try:
            return self._blocks[block_id]
        except KeyError:
            raise UnknownBlock(f"No block with id {block_id!r}") from None

    def edge(self, edge_id: str) -> Edge:
        try:
            return self._edges[edge_id]
        except KeyError:
            raise UnknownEdge(f"No edge with id {edge_id!r}") from None

    def incoming(self, block_id: str) -> list[Edge]:
        return [e for e in self._edges.values() if e.target == block_id]

    def outgoing(self, block_id: str) -> list[Edge]:
        return [e for e in self._edges.values() if e.source == block_id]

    def find_edge(self, source: str, target: str) -> Edge | None:
        for edge in self._edges.values():
            if edge.source == source and edge.target == target:
                return edge
        return None

    def blocks_of_kind(self, kind: str) -> list[Block]:
        return [b for b in self._blocks.values() if b.kind == kind]

    def is_configured(self, block_id: str) -> bool:
        """Inputs need no inflow; every other block needs at least one incoming edge."""

        block = self.block(block_id)
        if block.kind == "input":
            return True
        return bool(self.incoming(block_id))

    # -----------------
    # Mutations
    # -----------------

    def _next_block_id(self) -> str:
        while True:
            candidate = f"block_{next(self._ids)}"
            if candidate not in self._blocks:
                return candidate

    def _touch(self) -> None:
        self.revision += 1

    def add_block(
        self,
        kind: str,
        position: tuple[float, float] = (0.0, 0.0),
        *,
        config: BlockConfig | None = None,
        label: str | None = None,
        block_id: str | None = None,
    ) -> str:
        cfg = config if config is not None else default_config(kind)
        if cfg.kind != kind:
            raise ValueError(f"Config of kind {cfg.kind!r} cannot back a {kind!r} block")
        if block_id is not None and block_id in self._blocks:
            raise GraphError(f"Block id {block_id!r} already exists")
        new_id = block_id or self._next_block_id()
        self._blocks[new_id] = Block(
            id=new_id,
            config=cfg,
            position=(float(position[0]), float(position[1])),
            label=label if label is not None else kind.capitalize(),
        )
        self._touch()
        return new_id

    def remove_block(self, block_id: str) -> list[str]:
        """Delete a block and every edge touching it; returns the removed edge ids."""

        self.block(block_id)
        removed = [
            e.id for e in self._edges.values() if block_id in (e.source, e.target)
        ]
        for edge_id in removed:
            del self._edges[edge_id]
        del self._blocks[block_id]
        self._touch()
        return removed

    def _reaches_without_borrow(self, start: str, goal: str) -> bool:
        """Whether ``goal`` is reachable from ``start`` through non-Borrow blocks."""

        if self._blocks[start].kind == "borrow":
            return False
        seen = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if current == goal:
                return True
            for edge in self.outgoing(current):
                nxt = edge.target
                if nxt in seen or self._blocks[nxt].kind == "borrow":
                    continue
                seen.add(nxt)
                queue.append(nxt)
        return False

    def connect(self, source: str, target: str, flow_percent: float | None = None) -> str:
        """Add an edge ``source -> target`` and return its id.

        Cycles are only accepted when they pass through a Borrow block, which
        makes them leverage loops. Without ``flow_percent`` the source's output
        is split evenly across all of its outgoing edges.
        """

        source_block = self.block(source)
        target_block = self.block(target)
        if source == target:
            raise SelfLoopOnNonLoopBlock(f"{source_block.kind} block {source!r} cannot feed itself")
        if self.find_edge(source, target) is not None:
            raise DuplicateEdge(f"{source!r} is already connected to {target!r}")
        if target_block.kind == "input":
            raise InvalidConnection(f"Input block {target!r} cannot receive flows")
        if source_block.kind != "borrow" and self._reaches_without_borrow(target, source):
            raise CycleRejected(
                f"Connecting {source!r} to {target!r} closes a cycle without a Borrow block"
            )
        percent = _check_flow_percent(flow_percent) if flow_percent is not None else None
        edge_id = f"edge_{source}_{target}"
        if edge_id in self._edges:
            # Ids holding underscores can spell the same edge id for another pair.
            raise InvalidConnection(f"Edge id {edge_id!r} is already taken by another connection")

        self._edges[edge_id] = Edge(
            id=edge_id,
            source=source,
            target=target,
            flow_percent=100.0 if percent is None else percent,
        )
        if percent is None:
            siblings = self.outgoing(source)
            share = round(100.0 / len(siblings), 1)
            for edge in siblings:
                edge.flow_percent = share

        hint = source_block.config.output_asset_hint
        cfg = target_block.config
        if isinstance(cfg, SwapConfig) and hint and cfg.from_asset is None:
            target_block.config = replace(cfg, from_asset=hint)
        self._touch()
        return edge_id

    def disconnect(self, edge_id: str) -> None:
        self.edge(edge_id)
        del self._edges[edge_id]
        self._touch()

    def update_block_config(self, block_id: str, **patch: Any) -> BlockConfig:
        block = self.block(block_id)
        allowed = set(block.config.to_dict()) - {"kind"}
        unknown = set(patch) - allowed
        if unknown:
            raise UnknownConfigField(
                f"{block.kind} blocks have no field(s) {sorted(unknown)}"
            )
        block.config = replace(block.config, **patch)
        self._touch()
        return block.config

    def set_block_label(self, block_id: str, label: str) -> None:
        self.block(block_id).label = label
        self._touch()

    def move_block(self, block_id: str, position: tuple[float, float]) -> None:
        self.block(block_id).position = (float(position[0]), float(position[1]))
        self._touch()

    def set_edge_flow_percent(self, edge_id: str, percent: float) -> None:
        """Set one edge's share; sibling edges are left exactly as they are."""

        edge = self.edge(edge_id)
        edge.flow_percent = _check_flow_percent(percent)
        self._touch()

    def clear(self) -> None:
        self._blocks.clear()
        self._edges.clear()
        self._touch()

    # -----------------
    # Snapshots
    # -----------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "blocks": [b.to_dict() for b in self._blocks.values()],
            "edges": [e.to_dict() for e in self._edges.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Graph":
        blocks = [
            Block(
                id=str(raw["id"]),
                config=config_from_dict(raw["config"]),
                position=tuple(raw.get("position", (0.0, 0.0))),  # type: ignore[arg-type]
                label=str(raw.get("label", "")),
            )
            for raw in data.get("blocks", [])
        ]
        edges = [
            Edge(
                id=str(raw["id"]),
                source=str(raw["source"]),
                target=str(raw["target"]),
                flow_percent=float(raw.get("flow_percent", 100.0)),
            )
            for raw in data.get("edges", [])
        ]
        return cls(blocks, edges)

    def copy(self) -> "Graph":
        clone = Graph.from_dict(self.to_dict())
        clone.revision = self.revision
        return clone


__all__ = [
    "Graph",
    "GraphError",
    "UnknownBlock",
    "UnknownEdge",
    "DuplicateEdge",
    "SelfLoopOnNonLoopBlock",
    "CycleRejected",
    "InvalidConnection",
    "UnknownConfigField",
]
