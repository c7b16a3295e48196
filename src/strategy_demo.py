from __future__ import annotations

import logging
import math
import os
import sys
from pathlib import Path
from typing import Any

from strategy_lab import (
    CSVPriceSource,
    CSVYieldSource,
    FeedSnapshot,
    SimulationResult,
    StrategySession,
    engine_config,
    load_config,
    load_snapshot,
)
from strategy_lab.protocols import catalog_yields
from strategy_lab.reporting import write_report
from strategy_lab.visualization import Visualizer

logger = logging.getLogger(__name__)


def build_feeds(cfg: dict[str, Any]) -> FeedSnapshot:
    """Price and yield snapshot described by the ``[feeds]`` section."""

    feeds_cfg = cfg.get("feeds", {})
    prices_csv = feeds_cfg.get("prices_csv")
    yields_csv = feeds_cfg.get("yields_csv")
    snapshot = load_snapshot(
        CSVPriceSource(str(prices_csv)) if prices_csv else None,
        CSVYieldSource(str(yields_csv)) if yields_csv else None,
    )
    if feeds_cfg.get("use_catalog_yields", True):
        # Feed entries win over catalog reference APYs.
        snapshot = FeedSnapshot(snapshot.prices, {**catalog_yields(), **snapshot.yields})
    return snapshot


def _fmt(value: float | None, suffix: str = "", digits: int = 2) -> str:
    if value is None:
        return "pending"
    if math.isinf(value):
        return "∞"
    return f"{value:,.{digits}f}{suffix}"


def print_result(result: SimulationResult) -> None:
    if not result.is_valid:
        print(f"Simulation invalid: {result.error_message}")
        return
    print(f"Initial value:      {_fmt(result.initial_value, ' USD')}")
    print(f"Projected (1y):     {_fmt(result.projected_value_1y, ' USD')}")
    print(f"Net APY:            {_fmt(result.net_apy, '%')}")
    print(f"Leverage:           {_fmt(result.leverage, 'x')}")
    print(f"Health factor:      {_fmt(result.health_factor)}")
    print(f"Liquidation price:  {_fmt(result.liquidation_price, ' USD')}")
    print(f"Risk:               {result.risk_level} ({result.risk_score:.1f})")
    print(f"Gas / fees:         {_fmt(result.gas_cost_usd)} / {_fmt(result.protocol_fees)} USD")
    for analysis in result.loops:
        series = ", ".join(_fmt(h.health_factor) for h in analysis.health_factors)
        print(f"Loop {analysis.loop.id} x{analysis.loop.iterations}: HF [{series}]")
    if result.pending_feeds:
        print("Waiting for feeds: " + ", ".join(result.pending_feeds))
    for issue in result.issues:
        print(f"[{issue.severity.upper()}] {issue.message}")


def main() -> None:
    """Run the demo using configuration from file or environment variables."""
    cfg = load_config(sys.argv[1] if len(sys.argv) > 1 else None)
    if outdir_env := os.getenv("STRATEGY_LAB_OUTDIR"):
        cfg.setdefault("output", {})["outdir"] = outdir_env

    session = StrategySession(build_feeds(cfg), engine_config(cfg))
    strategy = cfg.get("strategy", {})
    session.load_template(str(strategy.get("template", "leveraged-lst-2x")))
    iterations = int(strategy.get("iterations", 1))
    for analysis in session.result.loops:
        session.set_loop_iterations(analysis.loop.id, iterations)

    result = session.result
    print_result(result)

    out = cfg.get("output", {})
    outdir = Path(out["outdir"]) if out.get("outdir") else None
    show = bool(out.get("show", True)) if not outdir else False
    charts = out.get("charts", [])

    if outdir:
        paths = write_report(result, outdir, session.graph)
        logger.info("Wrote %d report files to %s", len(paths), outdir)

    if "blocks" in charts:
        Visualizer.bar_block_values(
            result,
            session.graph,
            save_path=str(outdir / "block_values.png") if outdir else None,
            show=show,
        )
    if "yields" in charts:
        Visualizer.bar_yield_sources(
            result,
            save_path=str(outdir / "yield_sources.png") if outdir else None,
            show=show,
        )
    if "health" in charts:
        Visualizer.line_health_factors(
            result,
            save_path=str(outdir / "health_factors.png") if outdir else None,
            show=show,
        )


if __name__ == "__main__":
    main()
