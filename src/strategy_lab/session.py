"""Interactive editing session around one strategy graph.

The session owns the graph, the injected feeds and the per-loop iteration
counts. Every mutation re-evaluates synchronously, so :attr:`result` always
describes the current graph.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
import logging
from typing import Any, TypeVar

from .aggregation import evaluate
from .allocation import distribute_evenly
from .config import EngineConfig
from .core import Graph, SimulationResult
from .feeds import FeedSnapshot
from .loops import detect_loops
from .templates import build_template

logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 30

T = TypeVar("T")

_Snapshot = tuple[dict[str, Any], dict[str, int]]


class StrategySession:
    """Mutable editing state with bounded undo/redo history."""

    def __init__(
        self,
        feeds: FeedSnapshot | None = None,
        config: EngineConfig | None = None,
        graph: Graph | None = None,
    ) -> None:
        self.feeds = feeds or FeedSnapshot()
        self.config = config or EngineConfig()
        self.graph = graph if graph is not None else Graph()
        self.loop_iterations: dict[str, int] = {}
        self._undo: deque[_Snapshot] = deque(maxlen=MAX_HISTORY_SIZE)
        self._redo: deque[_Snapshot] = deque(maxlen=MAX_HISTORY_SIZE)
        self.result: SimulationResult = self.evaluate()

    # -----------------
    # Evaluation
    # -----------------

    def evaluate(self) -> SimulationResult:
        self.result = evaluate(
            self.graph, self.feeds, iterations=self.loop_iterations, config=self.config
        )
        return self.result

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def _snapshot(self) -> _Snapshot:
        return self.graph.to_dict(), dict(self.loop_iterations)

    def _restore(self, snapshot: _Snapshot) -> None:
        data, iterations = snapshot
        revision = self.graph.revision
        self.graph = Graph.from_dict(data)
        self.graph.revision = revision + 1
        self.loop_iterations = dict(iterations)

    def _mutate(self, action: Callable[[], T]) -> T:
        """Run ``action`` on the graph; a failed action leaves no history entry."""

        before = self._snapshot()
        value = action()
        self._undo.append(before)
        self._redo.clear()
        self._prune_iterations()
        self.evaluate()
        return value

    def _loop_ids(self) -> set[str]:
        loops = detect_loops(
            self.graph,
            max_depth=self.config.max_search_depth,
            max_cycles=self.config.max_cycles,
        )
        return {loop.id for loop in loops}

    def _prune_iterations(self) -> None:
        live = self._loop_ids()
        for loop_id in set(self.loop_iterations) - live:
            del self.loop_iterations[loop_id]

    # -----------------
    # Graph mutations
    # -----------------

    def add_block(self, kind: str, position: tuple[float, float] = (0.0, 0.0), **kwargs: Any) -> str:
        return self._mutate(lambda: self.graph.add_block(kind, position, **kwargs))

    def remove_block(self, block_id: str) -> list[str]:
        return self._mutate(lambda: self.graph.remove_block(block_id))

    def connect(self, source: str, target: str, flow_percent: float | None = None) -> str:
        return self._mutate(lambda: self.graph.connect(source, target, flow_percent))

    def disconnect(self, edge_id: str) -> None:
        self._mutate(lambda: self.graph.disconnect(edge_id))

    def update_block_config(self, block_id: str, **patch: Any) -> None:
        self._mutate(lambda: self.graph.update_block_config(block_id, **patch))

    def set_block_label(self, block_id: str, label: str) -> None:
        self._mutate(lambda: self.graph.set_block_label(block_id, label))

    def move_block(self, block_id: str, position: tuple[float, float]) -> None:
        # Layout only; positions do not affect the evaluation.
        self.graph.move_block(block_id, position)

    def set_edge_flow_percent(self, edge_id: str, percent: float) -> None:
        self._mutate(lambda: self.graph.set_edge_flow_percent(edge_id, percent))

    def distribute_evenly(self, block_id: str) -> dict[str, float]:
        return self._mutate(lambda: distribute_evenly(self.graph, block_id))

    def set_loop_iterations(self, loop_id: str, iterations: int) -> None:
        """Set how many passes the loop ``loop_id`` makes."""

        if loop_id not in self._loop_ids():
            raise KeyError(f"No leverage loop with id {loop_id!r}")
        iterations = int(iterations)
        if not 1 <= iterations <= self.config.max_loop_iterations:
            raise ValueError(
                f"iterations must be within [1, {self.config.max_loop_iterations}], got {iterations}"
            )

        def apply() -> None:
            self.loop_iterations[loop_id] = iterations

        self._mutate(apply)

    def load_template(self, template_id: str) -> None:
        """Replace the graph with a prebuilt strategy."""

        graph = build_template(template_id)

        def apply() -> None:
            graph.revision = self.graph.revision + 1
            self.graph = graph
            self.loop_iterations.clear()

        self._mutate(apply)

    def clear(self) -> None:
        def apply() -> None:
            self.graph.clear()
            self.loop_iterations.clear()

        self._mutate(apply)

    # -----------------
    # Feeds
    # -----------------

    def update_feeds(self, feeds: FeedSnapshot) -> SimulationResult:
        """Swap in new feeds and re-evaluate; the graph history is untouched."""

        self.feeds = feeds
        return self.evaluate()

    # -----------------
    # History
    # -----------------

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self._snapshot())
        self._restore(self._undo.pop())
        self.evaluate()
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self._snapshot())
        self._restore(self._redo.pop())
        self.evaluate()
        return True


__all__ = ["MAX_HISTORY_SIZE", "StrategySession"]
