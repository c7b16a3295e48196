from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
import math
from typing import Any

import pandas as pd

from .core import Graph, SimulationResult

_BLOCK_COLUMNS = [
    "block_id",
    "kind",
    "label",
    "input_asset",
    "input_amount",
    "input_value_usd",
    "output_asset",
    "output_amount",
    "output_value_usd",
    "gas_cost_usd",
]

_HEALTH_COLUMNS = ["loop_id", "iteration", "collateral", "debt", "health_factor"]


def _ensure_outdir(outdir: str | Path) -> Path:
    p = Path(outdir)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _finite_or_nan(value: float | None) -> float:
    if value is None or math.isinf(value):
        return float("nan")
    return float(value)


def block_values_frame(result: SimulationResult, graph: Graph | None = None) -> pd.DataFrame:
    """One row per block with the value flowing in and out of it.

    When ``graph`` is given the block kind and label are filled in.
    """

    rows: list[dict[str, Any]] = []
    for block_id, value in result.block_values.items():
        row: dict[str, Any] = {"block_id": block_id, "kind": None, "label": None}
        if graph is not None and block_id in graph:
            block = graph.block(block_id)
            row["kind"] = block.kind
            row["label"] = block.label
        row.update(value.to_dict())
        rows.append(row)
    return pd.DataFrame(rows, columns=_BLOCK_COLUMNS)


def yield_sources_frame(result: SimulationResult) -> pd.DataFrame:
    df = pd.DataFrame(
        [s.to_dict() for s in result.yield_sources],
        columns=["block_id", "protocol", "type", "asset", "apy", "weight"],
    )
    # Percent of initial value contributed to the net APY.
    df["contribution"] = df["apy"].astype(float) * df["weight"].astype(float) / 100.0
    return df


def loop_health_frame(result: SimulationResult) -> pd.DataFrame:
    """Per-iteration health series of every loop. Infinite health factors become NaN."""

    rows = [
        {
            "loop_id": analysis.loop.id,
            "iteration": h.iteration,
            "collateral": h.collateral,
            "debt": h.debt,
            "health_factor": _finite_or_nan(h.health_factor),
        }
        for analysis in result.loops
        for h in analysis.health_factors
    ]
    return pd.DataFrame(rows, columns=_HEALTH_COLUMNS)


def issues_frame(result: SimulationResult) -> pd.DataFrame:
    return pd.DataFrame(
        [asdict(issue) for issue in result.issues],
        columns=["type", "severity", "message", "block_id", "edge_id", "suggested_fix"],
    )


def summary_frame(result: SimulationResult) -> pd.DataFrame:
    summary = result.summary()
    summary["pending_feeds"] = ";".join(result.pending_feeds)
    summary["error_message"] = result.error_message
    return pd.DataFrame([summary])


def write_report(
    result: SimulationResult,
    outdir: str | Path,
    graph: Graph | None = None,
) -> dict[str, Path]:
    """Write CSV reports for a simulation result.

    Parameters
    ----------
    result:
        Evaluation to report on.
    outdir:
        Directory receiving the CSV files; created when missing.
    graph:
        Optional graph the result was computed from, used to label blocks.

    Returns
    -------
    dict[str, Path]
        Mapping from report name to the written file.
    """

    out = _ensure_outdir(outdir)
    frames = {
        "summary": summary_frame(result),
        "blocks": block_values_frame(result, graph),
        "yield_sources": yield_sources_frame(result),
        "loop_health": loop_health_frame(result),
        "issues": issues_frame(result),
    }
    paths: dict[str, Path] = {}
    for name, frame in frames.items():
        paths[name] = out / f"{name}.csv"
        frame.to_csv(paths[name], index=False)
    return paths


__all__ = [
    "block_values_frame",
    "yield_sources_frame",
    "loop_health_frame",
    "issues_frame",
    "summary_frame",
    "write_report",
]
