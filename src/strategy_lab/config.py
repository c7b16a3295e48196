"""Engine settings and TOML configuration loading."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import logging
import os
from pathlib import Path
import tomllib
from typing import Any, Mapping, cast

from .protocols import GAS_COSTS

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "STRATEGY_LAB_CONFIG"


@dataclass(frozen=True)
class EngineConfig:
    """Tunable constants of an evaluation pass.

    Parameters
    ----------
    gas_costs:
        USD gas charged per active block, keyed by block kind.
    swap_fee_rate:
        Venue fee charged on swapped value, as a decimal fraction.
    default_liquidation_threshold:
        Liquidation threshold (percent) for borrows with no Lend block upstream.
    max_loop_iterations:
        Upper bound accepted for a loop's ``iterations``.
    max_search_depth:
        Depth bound of the cycle search.
    max_cycles:
        Number of loops after which the cycle search stops.
    """

    gas_costs: Mapping[str, float] = field(default_factory=lambda: dict(GAS_COSTS))
    swap_fee_rate: float = 0.003
    default_liquidation_threshold: float = 82.5
    max_loop_iterations: int = 10
    max_search_depth: int = 256
    max_cycles: int = 64

    def gas_cost(self, kind: str) -> float:
        return float(self.gas_costs.get(kind, 0.0))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            logger.warning("Ignoring unknown engine settings: %s", sorted(unknown))
        values = {k: v for k, v in raw.items() if k in known}
        if "gas_costs" in values:
            values["gas_costs"] = {**GAS_COSTS, **dict(values["gas_costs"])}
        return cls(**values)


def load_config(path: str | Path | None) -> dict[str, Any]:
    """Load configuration from a TOML file and merge with defaults.

    Parameters
    ----------
    path:
        Optional path to a configuration file. When ``None`` the
        ``STRATEGY_LAB_CONFIG`` environment variable is consulted; when no file
        is found the built-in defaults are used.

    Returns
    -------
    dict[str, Any]
        Configuration dictionary with any file overrides applied.
    """

    default: dict[str, Any] = {
        "engine": {},
        "feeds": {
            "prices_csv": str(Path(__file__).resolve().parents[1] / "sample_prices.csv"),
            "yields_csv": None,
            "use_catalog_yields": True,
        },
        "strategy": {"template": "leveraged-lst-2x", "iterations": 3},
        "output": {"outdir": None, "show": True, "charts": ["blocks", "yields", "health"]},
    }

    raw_path = path if path is not None else os.getenv(CONFIG_ENV_VAR)
    cfg_path = Path(raw_path) if raw_path else None

    if cfg_path and cfg_path.is_file():
        with open(cfg_path, "rb") as f:
            file_cfg = tomllib.load(f)
        for k, v in file_cfg.items():
            if isinstance(v, dict) and k in default and isinstance(default[k], dict):
                cast(dict, default[k]).update(v)
            else:
                default[k] = v
    elif cfg_path:
        logger.warning("Config file not found at %s. Using defaults.", cfg_path)

    return default


def engine_config(cfg: Mapping[str, Any]) -> EngineConfig:
    return EngineConfig.from_mapping(cfg.get("engine", {}))


__all__ = ["EngineConfig", "load_config", "engine_config", "CONFIG_ENV_VAR"]
