"""Matplotlib-based chart helpers for strategy_lab."""

from __future__ import annotations

import pandas as pd

from ..core import Graph, SimulationResult
from ..reporting import block_values_frame, loop_health_frame, yield_sources_frame


class Visualizer:
    """Collection of static helpers that turn evaluation results into charts."""

    @staticmethod
    def _plt():
        try:
            import matplotlib.pyplot as plt
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(
                "matplotlib is required for visualization. Install it via pip."
            ) from exc
        return plt

    @staticmethod
    def _finish(plt, save_path: str | None, show: bool) -> None:
        plt.tight_layout()
        if save_path:
            plt.savefig(save_path, bbox_inches="tight")
        if show:
            plt.show()

    @staticmethod
    def bar_block_values(
        result: SimulationResult,
        graph: Graph | None = None,
        title: str = "Output Value per Block",
        *,
        save_path: str | None = None,
        show: bool = True,
    ) -> None:
        df = block_values_frame(result, graph)
        if df.empty:
            return
        names = df["label"].fillna(df["block_id"]).astype(str)
        plt = Visualizer._plt()
        plt.figure(figsize=(10, 6))
        plt.bar(names, df["output_value_usd"])
        plt.title(title)
        plt.ylabel("Value (USD)")
        plt.xticks(rotation=45, ha="right")
        Visualizer._finish(plt, save_path, show)

    @staticmethod
    def bar_yield_sources(
        result: SimulationResult,
        title: str = "Net APY Contribution",
        *,
        save_path: str | None = None,
        show: bool = True,
    ) -> None:
        """Contribution of each yield source to the net APY; borrows plot below zero."""
        df = yield_sources_frame(result).dropna(subset=["apy"])
        if df.empty:
            return
        names = df["protocol"] + " " + df["type"]
        colors = ["tab:red" if v < 0 else "tab:green" for v in df["contribution"]]
        plt = Visualizer._plt()
        plt.figure(figsize=(10, 6))
        plt.bar(names, df["contribution"], color=colors)
        plt.axhline(0.0, color="black", linewidth=0.8)
        plt.title(title)
        plt.ylabel("Contribution (% of initial value)")
        plt.xticks(rotation=45, ha="right")
        Visualizer._finish(plt, save_path, show)

    @staticmethod
    def line_health_factors(
        result: SimulationResult,
        title: str = "Health Factor per Loop Iteration",
        *,
        liquidation_line: bool = True,
        save_path: str | None = None,
        show: bool = True,
    ) -> pd.DataFrame:
        """Plot every loop's health series and return it as ``iteration x loop``.

        Iterations without debt have an infinite health factor and are left out
        of the plot.
        """
        df = loop_health_frame(result)
        if df.empty:
            return pd.DataFrame()
        wide = df.pivot(index="iteration", columns="loop_id", values="health_factor")
        plt = Visualizer._plt()
        plt.figure(figsize=(10, 6))
        for col in wide.columns:
            plt.plot(wide.index, wide[col], marker="o", label=str(col))
        if liquidation_line:
            plt.axhline(1.0, color="tab:red", linestyle="--", label="Liquidation")
        plt.xlabel("Iteration")
        plt.ylabel("Health factor")
        plt.title(title)
        plt.legend()
        Visualizer._finish(plt, save_path, show)
        return wide


__all__ = ["Visualizer"]
