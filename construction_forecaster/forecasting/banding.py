"""
Score-to-severity banding.

One banding function for the whole engine: predicted-risk severities, forecast
risk levels, scenario risk levels and warning checks all call
``classify_severity``. Bands are inclusive at the lower edge, so a score of
exactly 75 is critical everywhere.
"""

from __future__ import annotations

import numpy as np

from construction_forecaster.taxonomy.risk_taxonomy import Severity

CRITICAL_THRESHOLD = 75.0
HIGH_THRESHOLD = 50.0
MEDIUM_THRESHOLD = 25.0

# Cost overrun ratio -> 0-100 score knots (piecewise linear, clamped at the ends).
_OVERRUN_KNOTS_X = (0.0, 0.05, 0.10, 0.20, 0.40)
_OVERRUN_KNOTS_Y = (0.0, 25.0, 50.0, 75.0, 100.0)


def classify_severity(score: float) -> Severity:
    """Band a 0-100 score into a ``Severity``.

    Args:
        score: Risk-style score. Values outside [0, 100] are banded as-is.

    Returns:
        ``CRITICAL`` for >= 75, ``HIGH`` for >= 50, ``MEDIUM`` for >= 25,
        otherwise ``LOW``.
    """
    if score >= CRITICAL_THRESHOLD:
        return Severity.CRITICAL
    if score >= HIGH_THRESHOLD:
        return Severity.HIGH
    if score >= MEDIUM_THRESHOLD:
        return Severity.MEDIUM
    return Severity.LOW


def overrun_score(overrun_ratio: float) -> float:
    """Map a projected cost-overrun ratio onto the 0-100 banding scale.

    5% over budget scores 25, 10% scores 50, 20% scores 75 and 40% or more
    scores 100. Under-budget projections score 0.
    """
    return float(np.interp(overrun_ratio, _OVERRUN_KNOTS_X, _OVERRUN_KNOTS_Y))
