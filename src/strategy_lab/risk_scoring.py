from __future__ import annotations

"""Heuristic risk scoring for strategy graphs."""

import math
from typing import Mapping

from .core import RISK_LEVELS

# Weights of the score components. They sum to 100.
COMPONENT_WEIGHTS: Mapping[str, float] = {
    "health_factor": 50.0,
    "leverage": 30.0,
    "borrows": 20.0,
}

# Upper bounds (exclusive) of the score for each level but the last.
LEVEL_THRESHOLDS: tuple[float, ...] = (25.0, 50.0, 75.0)

SAFE_HEALTH_FACTOR = 2.0
MAX_SCORED_LEVERAGE = 4.0
MAX_SCORED_BORROWS = 4


def calculate_risk_score(
    health_factor: float | None,
    leverage: float,
    borrow_count: int,
) -> float:
    """Combine factors into a risk score in the range [0, 100].

    Parameters
    ----------
    health_factor:
        Minimum health factor of the strategy. ``None`` or ``inf`` means no
        debt; values at or above ``2`` add nothing, values at or below ``1``
        (liquidatable) add the full component.
    leverage:
        Maximum effective leverage. ``1`` adds nothing; values above ``4`` are
        capped.
    borrow_count:
        Number of Borrow blocks. Values above ``4`` are capped.
    """

    if health_factor is None or math.isinf(health_factor):
        hf_component = 0.0
    else:
        hf_component = (SAFE_HEALTH_FACTOR - health_factor) / (SAFE_HEALTH_FACTOR - 1.0)
        hf_component = max(0.0, min(hf_component, 1.0))
    lev_component = (leverage - 1.0) / (MAX_SCORED_LEVERAGE - 1.0)
    lev_component = max(0.0, min(lev_component, 1.0))
    borrow_component = max(0, min(borrow_count, MAX_SCORED_BORROWS)) / MAX_SCORED_BORROWS

    return (
        COMPONENT_WEIGHTS["health_factor"] * hf_component
        + COMPONENT_WEIGHTS["leverage"] * lev_component
        + COMPONENT_WEIGHTS["borrows"] * borrow_component
    )


def risk_level(score: float) -> str:
    """Map a score onto ``low``, ``medium``, ``high`` or ``extreme``."""

    for level, bound in zip(RISK_LEVELS, LEVEL_THRESHOLDS):
        if score < bound:
            return level
    return RISK_LEVELS[-1]


__all__ = [
    "COMPONENT_WEIGHTS",
    "LEVEL_THRESHOLDS",
    "calculate_risk_score",
    "risk_level",
]
