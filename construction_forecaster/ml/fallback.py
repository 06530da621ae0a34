"""
Trend fallback estimator and confidence-interval helpers.

Used whenever a series is too short for a training window, or when every
ensemble family fails. The estimate is deliberately simple:

    trend     = least-squares slope / mean        (relative slope per step)
    value_i   = last * (1 + trend * (i + 1))      for step i = 0..horizon-1

over the trailing ``lookback`` points (30 by default). Forecasts produced this
way carry a fixed low confidence and ``is_degraded=True``; the generators
attach a ``data_quality`` warning.

CI helpers
----------
``confidence_interval(value, std, level)`` gives ``value ± z * std`` where z is
the two-sided normal quantile for ``level`` (1.96 at 0.95). Step confidence decays linearly
with the step index and is floored.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy import stats


def z_for_confidence(confidence_level: float) -> float:
    """z-score for a two-sided interval at ``confidence_level``.

    Raises:
        ValueError: If the level is not strictly between 0 and 1.
    """
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}.")
    return float(stats.norm.ppf((1.0 + confidence_level) / 2.0))


def linear_trend(values: Sequence[float]) -> float:
    """Relative least-squares slope of ``values`` (slope / mean).

    Returns 0.0 for fewer than two points or a non-positive mean.
    """
    n = len(values)
    if n < 2:
        return 0.0
    y = np.asarray(values, dtype=np.float64)
    mean = float(y.mean())
    if mean <= 0:
        return 0.0
    x = np.arange(n, dtype=np.float64)
    slope = float(np.polyfit(x, y, 1)[0])
    return slope / mean


def extrapolate_trend(
    values: Sequence[float],
    horizon: int,
    lookback: int = 30,
) -> list[float]:
    """Project ``horizon`` future values from the trailing ``lookback`` points.

    An empty series projects zeros. Projected values never go below zero.
    """
    if horizon < 1:
        return []
    tail = list(values)[-lookback:]
    if not tail:
        return [0.0] * horizon
    trend = linear_trend(tail)
    last = float(tail[-1])
    return [max(0.0, last * (1.0 + trend * (i + 1))) for i in range(horizon)]


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for an empty series."""
    if not values:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64)))


def confidence_interval(
    value: float,
    std: float,
    confidence_level: float = 0.95,
    floor: float | None = None,
) -> tuple[float, float]:
    """``(lower, upper)`` for ``value ± z * std``; ``lower`` clipped at ``floor``."""
    half = z_for_confidence(confidence_level) * max(std, 0.0)
    lower = value - half
    if floor is not None:
        lower = max(floor, lower)
    return lower, max(value + half, lower)


def step_confidence(base: float, step_index: int, decay: float, floor: float) -> float:
    """Linearly decayed confidence for 0-based ``step_index``.

    A base confidence already below ``floor`` is returned unchanged, so a
    degraded forecast stays at its fixed low value for every step.
    """
    return max(min(floor, base), base - decay * step_index)
