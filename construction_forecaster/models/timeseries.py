"""
Time-series and feature-vector value objects.

``TimeSeriesPoint`` is one observation of a scalar metric; a list ordered by
timestamp is a time series. ``FeatureVector`` is the fixed-schema numeric
summary of a project produced by ``features.project_features``. Field order
matches ``features.registry.FEATURE_NAMES``; ``as_array(names)`` picks a
subset in caller order for model input rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict


class TimeSeriesPoint(BaseModel):
    """One observation of a scalar metric."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: float
    is_anomaly: bool = False


class FeatureVector(BaseModel):
    """Fixed-schema numeric features for one project at one instant.

    Every field defaults to zero so a project with no data still yields a
    complete vector. ``quality_score`` is the exception: with no reports the
    formula gives the full 100.
    """

    model_config = ConfigDict(frozen=True)

    # ── Size / duration ───────────────────────────────────────────────────────
    project_size: float = 0.0
    task_count: float = 0.0
    team_size: float = 0.0
    project_duration_days: float = 0.0
    days_elapsed: float = 0.0
    days_remaining: float = 0.0
    progress_ratio: float = 0.0

    # ── Budget / schedule ─────────────────────────────────────────────────────
    budget_utilization: float = 0.0
    cost_variance: float = 0.0
    schedule_variance: float = 0.0
    expense_trend: float = 0.0

    # ── Risk history ──────────────────────────────────────────────────────────
    total_risks: float = 0.0
    active_risks: float = 0.0
    critical_risks: float = 0.0
    high_risks: float = 0.0
    risk_trend: float = 0.0
    risk_resolution_rate: float = 0.0
    average_risk_score: float = 0.0

    # ── Risk category counts ──────────────────────────────────────────────────
    technical_risks: float = 0.0
    financial_risks: float = 0.0
    safety_risks: float = 0.0
    schedule_risks: float = 0.0
    quality_risks: float = 0.0
    resource_risks: float = 0.0

    # ── Daily reports ─────────────────────────────────────────────────────────
    incidents_reported: float = 0.0
    quality_issues: float = 0.0
    delay_reports: float = 0.0
    weather_impacts: float = 0.0
    quality_score: float = 100.0

    # ── External factors ──────────────────────────────────────────────────────
    economic_index: float = 0.0
    weather_risk: float = 0.0
    market_volatility: float = 0.0

    # ── Seasonal flags ────────────────────────────────────────────────────────
    is_peak_season: bool = False
    is_holiday_season: bool = False

    def to_dict(self) -> dict[str, float]:
        """Return every feature as a float keyed by name."""
        return {name: float(value) for name, value in self.model_dump().items()}

    def as_array(self, names: Optional[Sequence[str]] = None) -> list[float]:
        """Return feature values in schema order, or in the order of ``names``.

        Raises:
            KeyError: If a name is not a field of this vector.
        """
        values = self.to_dict()
        if names is None:
            return list(values.values())
        return [values[name] for name in names]
