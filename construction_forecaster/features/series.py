"""
Historical time-series builders.

Each builder turns raw records into a timestamp-ordered list of
``TimeSeriesPoint``. Points whose value lies more than ``z_threshold``
standard deviations from the series mean are flagged ``is_anomaly`` (the
value itself is kept; models see the flag as an extra input column).

  daily_cost_series      expenses summed per calendar day
  daily_progress_series  completed volume summed per report day
  risk_score_series      register risk scores in creation order

``aligned_values`` reads one series at another's timestamps, so the cost model
can pair each day's spend with that day's completed volume.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, datetime, time, timezone
from typing import Sequence

from construction_forecaster.models.project import DailyReport, ProjectRecord, RiskRecord
from construction_forecaster.models.timeseries import TimeSeriesPoint


def daily_cost_series(
    project: ProjectRecord,
    z_threshold: float = 3.0,
) -> list[TimeSeriesPoint]:
    """Aggregate expenses into one point per expense date.

    Only dates with at least one expense appear; there is no gap filling.
    """
    totals: dict[date, float] = defaultdict(float)
    for expense in project.expenses:
        totals[expense.expense_date] += expense.amount
    pairs = [(_day_start(d), totals[d]) for d in sorted(totals)]
    return _to_points(pairs, z_threshold)


def daily_progress_series(
    reports: Sequence[DailyReport],
    z_threshold: float = 3.0,
) -> list[TimeSeriesPoint]:
    """Sum completed volume across work-progress entries per report date."""
    totals: dict[date, float] = defaultdict(float)
    for report in reports:
        totals[report.report_date] += sum(wp.completed_volume for wp in report.work_progress)
    pairs = [(_day_start(d), totals[d]) for d in sorted(totals)]
    return _to_points(pairs, z_threshold)


def risk_score_series(
    risks: Sequence[RiskRecord],
    z_threshold: float = 3.0,
) -> list[TimeSeriesPoint]:
    """One point per logged risk, ordered by ``created_at``."""
    ordered = sorted(risks, key=lambda r: r.created_at)
    pairs = [(r.created_at, r.risk_score) for r in ordered]
    return _to_points(pairs, z_threshold)


def series_values(series: Sequence[TimeSeriesPoint]) -> list[float]:
    """Plain list of values, in series order."""
    return [p.value for p in series]


def aligned_values(
    source: Sequence[TimeSeriesPoint],
    at: Sequence[TimeSeriesPoint],
    default: float = 0.0,
) -> list[float]:
    """Values of ``source`` at each timestamp of ``at``; ``default`` where absent."""
    by_time = {p.timestamp: p.value for p in source}
    return [by_time.get(p.timestamp, default) for p in at]


def flag_anomalies(values: Sequence[float], z_threshold: float = 3.0) -> list[bool]:
    """Flag values more than ``z_threshold`` population std-devs from the mean.

    Series with fewer than 3 points or zero spread are never flagged.
    """
    n = len(values)
    if n < 3:
        return [False] * n
    mean = sum(values) / n
    std = math.sqrt(sum((v - mean) ** 2 for v in values) / n)
    if std == 0:
        return [False] * n
    return [abs(v - mean) / std > z_threshold for v in values]


def _to_points(
    pairs: list[tuple[datetime, float]],
    z_threshold: float,
) -> list[TimeSeriesPoint]:
    flags = flag_anomalies([v for _, v in pairs], z_threshold)
    return [
        TimeSeriesPoint(timestamp=ts, value=value, is_anomaly=flag)
        for (ts, value), flag in zip(pairs, flags)
    ]


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)
