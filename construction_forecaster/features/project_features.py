"""
Project feature extraction.

``extract_features()`` turns one project snapshot into a ``FeatureVector``.
It is a pure function: the only notion of "now" is the injected ``now``
argument, so two calls with identical inputs yield identical vectors.

Divide-by-zero convention
-------------------------
Every ratio returns 0.0 when its denominator is empty or zero (no planned
budget, no prior risk window, no elapsed schedule, ...). The function never
raises on missing or empty inputs; a project with no data yields the
all-zero vector (quality score 100), and generators can still forecast.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from construction_forecaster.config import FeatureConfig
from construction_forecaster.models.project import (
    DailyReport,
    ExternalFactor,
    ProjectRecord,
    RiskRecord,
)
from construction_forecaster.models.timeseries import FeatureVector
from construction_forecaster.taxonomy.risk_taxonomy import (
    FactorCategory,
    PriorityLevel,
    RiskCategory,
    RiskStatus,
)

logger = logging.getLogger(__name__)

_CLEAR_WEATHER = frozenset({"clear", "sunny", "cerah"})

_CATEGORY_FEATURES: dict[str, RiskCategory] = {
    "technical_risks": RiskCategory.TECHNICAL,
    "financial_risks": RiskCategory.FINANCIAL,
    "safety_risks": RiskCategory.SAFETY,
    "schedule_risks": RiskCategory.SCHEDULE,
    "quality_risks": RiskCategory.QUALITY,
    "resource_risks": RiskCategory.RESOURCE,
}


def extract_features(
    project: ProjectRecord,
    historical_risks: Optional[Sequence[RiskRecord]],
    external_factors: Optional[Sequence[ExternalFactor]],
    daily_reports: Optional[Sequence[DailyReport]],
    now: datetime,
    config: Optional[FeatureConfig] = None,
) -> FeatureVector:
    """Compute the fixed-schema feature vector for a project.

    Args:
        project: Project record with budget items and expenses.
        historical_risks: Risk-register entries (any order).
        external_factors: Current external indicators.
        daily_reports: Daily site reports (any order).
        now: Reference instant; all elapsed/remaining/seasonal features are
            computed relative to it.
        config: Feature parameters. Defaults to ``FeatureConfig()``.

    Returns:
        A frozen ``FeatureVector``.
    """
    cfg = config or FeatureConfig()
    risks = list(historical_risks or [])
    factors = list(external_factors or [])
    reports = list(daily_reports or [])
    today = now.date()

    planned = project.planned_budget
    spent = project.spent_to_date

    duration = _project_duration_days(project)
    elapsed = _days_between(project.start_date, today)
    remaining = _days_between(today, project.end_date)

    features = FeatureVector(
        project_size=planned,
        task_count=len(project.items),
        team_size=len(project.members),
        project_duration_days=duration,
        days_elapsed=elapsed,
        days_remaining=remaining,
        progress_ratio=elapsed / (elapsed + remaining + 1) if project.start_date else 0.0,
        budget_utilization=_safe_ratio(spent, planned),
        cost_variance=_safe_ratio(spent - planned, planned),
        schedule_variance=_schedule_variance(project, elapsed, duration, cfg),
        expense_trend=window_trend(
            [e.amount for e in sorted(project.expenses, key=lambda e: e.expense_date)],
            cfg.risk_trend_window,
        ),
        total_risks=len(risks),
        active_risks=sum(
            1 for r in risks if r.status not in (RiskStatus.CLOSED, RiskStatus.OCCURRED)
        ),
        critical_risks=sum(1 for r in risks if r.priority_level == PriorityLevel.CRITICAL),
        high_risks=sum(1 for r in risks if r.priority_level == PriorityLevel.HIGH),
        risk_trend=risk_trend(risks, cfg.risk_trend_window),
        risk_resolution_rate=_safe_ratio(
            sum(1 for r in risks if r.status == RiskStatus.CLOSED), len(risks)
        ),
        average_risk_score=_mean([r.risk_score for r in risks]),
        **_category_counts(risks),
        incidents_reported=sum(1 for r in reports if r.comments),
        quality_issues=sum(r.quality_issues for r in reports),
        delay_reports=sum(
            1 for r in reports if any(wp.completed_volume < 0 for wp in r.work_progress)
        ),
        weather_impacts=sum(
            1 for r in reports if r.weather.strip().lower() not in _CLEAR_WEATHER
        ),
        quality_score=quality_score(reports),
        economic_index=_factor_value(factors, FactorCategory.ECONOMIC),
        weather_risk=_factor_value(factors, FactorCategory.WEATHER),
        market_volatility=_factor_value(factors, FactorCategory.MARKET),
        is_peak_season=now.month in cfg.peak_season_months,
        is_holiday_season=now.month in cfg.holiday_season_months,
    )
    logger.debug(
        "Extracted features for project=%s: util=%.3f sched_var=%.3f risks=%d",
        project.project_id,
        features.budget_utilization,
        features.schedule_variance,
        len(risks),
    )
    return features


# ── Shared formulas ───────────────────────────────────────────────────────────


def window_trend(values: Sequence[float], window: int = 5) -> float:
    """Relative change between the most recent window and the one before it.

    ``w = min(window, len(values))``; recent = last ``w`` values, prior = the
    ``w`` values before those. Returns 0.0 for fewer than 2 values, an empty
    prior window, or a prior mean of zero.
    """
    if len(values) < 2:
        return 0.0
    w = min(window, len(values))
    recent = values[-w:]
    prior = values[max(0, len(values) - 2 * w): len(values) - w]
    prior_mean = _mean(prior)
    if not prior or prior_mean <= 0:
        return 0.0
    return (_mean(recent) - prior_mean) / prior_mean


def risk_trend(risks: Sequence[RiskRecord], window: int = 5) -> float:
    """``window_trend`` over register risk scores ordered by creation time."""
    ordered = sorted(risks, key=lambda r: r.created_at)
    return window_trend([r.risk_score for r in ordered], window)


def quality_score(reports: Iterable[DailyReport]) -> float:
    """100 - 10 x quality issues + 2 x positive observations, clamped to [0, 100]."""
    issues = 0
    positives = 0
    for report in reports:
        issues += report.quality_issues
        positives += report.positive_observations
    return _clamp(100.0 - 10.0 * issues + 2.0 * positives, 0.0, 100.0)


# ── Internals ─────────────────────────────────────────────────────────────────


def _schedule_variance(
    project: ProjectRecord,
    elapsed: float,
    duration: float,
    cfg: FeatureConfig,
) -> float:
    if project.start_date is None or not project.items:
        return 0.0
    total = duration if duration > 0 else float(cfg.default_project_duration_days)
    planned_progress = min(1.0, _safe_ratio(elapsed, total))
    actual_progress = _mean([item.progress for item in project.items])
    return _safe_ratio(actual_progress - planned_progress, planned_progress)


def _category_counts(risks: Sequence[RiskRecord]) -> dict[str, float]:
    return {
        name: float(sum(1 for r in risks if r.category == category))
        for name, category in _CATEGORY_FEATURES.items()
    }


def _project_duration_days(project: ProjectRecord) -> float:
    if project.start_date is None or project.end_date is None:
        return 0.0
    return float((project.end_date - project.start_date).days)


def _days_between(start: Optional[date], end: Optional[date]) -> float:
    if start is None or end is None:
        return 0.0
    return float(max(0, (end - start).days))


def _factor_value(factors: Sequence[ExternalFactor], category: FactorCategory) -> float:
    for factor in factors:
        if factor.category == category:
            return factor.current_value
    return 0.0


def _safe_ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
