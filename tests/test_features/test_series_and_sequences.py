"""
Tests for features/series.py, features/sequences.py and features/registry.py.

What we test
------------
Series:
  - Daily cost series sums same-day expenses and skips empty days.
  - Aligned values read one series at another's timestamps.
  - Risk-score series follows creation order.
  - Anomaly flags need 3+ points and non-zero spread.

Sequences:
  - N points with window W give N - W examples in order.
  - Fewer than W + 1 points give no examples (never an error).
  - Rows carry the value, the anomaly flag and any static context.

Registry:
  - Registry order matches the FeatureVector field order.
  - Group and cost-context filters; ``as_array(names)`` follows caller order.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import numpy as np
import pytest

from construction_forecaster.features.registry import (
    FEATURE_NAMES,
    feature_names,
)
from construction_forecaster.features.sequences import (
    build_sequences,
    build_windowed_examples,
    examples_to_arrays,
    has_enough_history,
    latest_window,
)
from construction_forecaster.features.series import (
    aligned_values,
    daily_cost_series,
    daily_progress_series,
    flag_anomalies,
    risk_score_series,
    series_values,
)
from construction_forecaster.models.project import (
    DailyReport,
    Expense,
    ProjectRecord,
    WorkProgress,
)
from construction_forecaster.models.timeseries import FeatureVector, TimeSeriesPoint

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _series(values: list[float]) -> list[TimeSeriesPoint]:
    return [
        TimeSeriesPoint(timestamp=T0 + timedelta(days=i), value=v) for i, v in enumerate(values)
    ]


# ── Series ────────────────────────────────────────────────────────────────────

class TestSeries:
    def test_daily_cost_aggregates_per_day(self):
        project = ProjectRecord(
            project_id="p",
            expenses=[
                Expense(expense_id="a", expense_date=date(2025, 1, 3), amount=50.0),
                Expense(expense_id="b", expense_date=date(2025, 1, 1), amount=10.0),
                Expense(expense_id="c", expense_date=date(2025, 1, 1), amount=15.0),
            ],
        )
        series = daily_cost_series(project)

        assert series_values(series) == [25.0, 50.0]
        assert [p.timestamp.date() for p in series] == [date(2025, 1, 1), date(2025, 1, 3)]
        assert series[0].timestamp.tzinfo is not None

    def test_empty_project(self):
        assert daily_cost_series(ProjectRecord(project_id="p")) == []

    def test_progress_series(self):
        reports = [
            DailyReport(
                report_id="r1",
                report_date=date(2025, 1, 2),
                work_progress=[
                    WorkProgress(item_id="a", completed_volume=2.0),
                    WorkProgress(item_id="b", completed_volume=3.0),
                ],
            ),
            DailyReport(report_id="r0", report_date=date(2025, 1, 1)),
        ]
        assert series_values(daily_progress_series(reports)) == [0.0, 5.0]

    def test_aligned_values(self):
        cost = _series([10.0, 20.0, 30.0])
        progress = [TimeSeriesPoint(timestamp=T0 + timedelta(days=1), value=5.0)]
        assert aligned_values(progress, cost) == [0.0, 5.0, 0.0]
        assert aligned_values([], cost, default=-1.0) == [-1.0, -1.0, -1.0]

    def test_risk_scores_in_creation_order(self, risk_factory):
        risks = risk_factory(5)
        series = risk_score_series(list(reversed(risks)))
        assert series_values(series) == [r.risk_score for r in risks]

    def test_flag_anomalies(self):
        values = [10.0] * 20 + [1000.0]
        flags = flag_anomalies(values, z_threshold=3.0)
        assert flags[-1] is True
        assert not any(flags[:-1])

    def test_flag_anomalies_degenerate(self):
        assert flag_anomalies([1.0, 100.0]) == [False, False]
        assert flag_anomalies([5.0, 5.0, 5.0]) == [False, False, False]


# ── Sequences ─────────────────────────────────────────────────────────────────

class TestSequences:
    def test_example_count_and_order(self):
        examples = build_sequences(_series([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]), window_length=3)

        assert len(examples) == 3
        assert [ex.target_value for ex in examples] == [4.0, 5.0, 6.0]
        assert [row[0] for row in examples[0].window_features] == [1.0, 2.0, 3.0]
        assert all(ex.window_length == 3 for ex in examples)

    @pytest.mark.parametrize("n_points", [0, 1, 3])
    def test_short_series_yields_nothing(self, n_points):
        assert build_sequences(_series([1.0] * n_points), window_length=3) == []
        assert not has_enough_history(n_points, 3)

    def test_exactly_enough_history(self):
        assert has_enough_history(4, 3)
        assert len(build_sequences(_series([1.0, 2.0, 3.0, 4.0]), window_length=3)) == 1

    def test_rows_carry_flag_and_context(self):
        series = [
            TimeSeriesPoint(timestamp=T0, value=1.0, is_anomaly=True),
            TimeSeriesPoint(timestamp=T0 + timedelta(days=1), value=2.0),
            TimeSeriesPoint(timestamp=T0 + timedelta(days=2), value=3.0),
        ]
        examples = build_sequences(series, window_length=2, context=[0.5, 0.25])
        assert examples[0].window_features[0] == (1.0, 1.0, 0.5, 0.25)
        assert examples[0].window_features[1] == (2.0, 0.0, 0.5, 0.25)

    def test_misaligned_inputs(self):
        assert build_windowed_examples([(1.0,), (2.0,), (3.0,)], [1.0, 2.0], 1) == []

    def test_latest_window(self):
        rows = [(float(i),) for i in range(5)]
        assert latest_window(rows, 2) == ((3.0,), (4.0,))
        assert latest_window(rows, 6) is None

    def test_examples_to_arrays(self):
        examples = build_sequences(_series([1.0, 2.0, 3.0, 4.0, 5.0]), window_length=2)
        X, y = examples_to_arrays(examples)
        assert X.shape == (3, 2, 2)
        np.testing.assert_allclose(y, [3.0, 4.0, 5.0])


# ── Registry ──────────────────────────────────────────────────────────────────

class TestRegistry:
    def test_registry_matches_feature_vector(self):
        assert list(FEATURE_NAMES) == list(FeatureVector.model_fields)
        assert list(FeatureVector().to_dict()) == list(FEATURE_NAMES)

    def test_group_filter(self):
        assert feature_names("seasonal") == ["is_peak_season", "is_holiday_season"]
        assert feature_names("no_such_group") == []

    def test_cost_context(self):
        assert feature_names(context_for="cost") == [
            "progress_ratio",
            "budget_utilization",
            "cost_variance",
            "schedule_variance",
            "economic_index",
            "market_volatility",
            "is_peak_season",
        ]
        assert feature_names("budget", context_for="cost") == ["budget_utilization", "cost_variance"]
        assert feature_names(context_for="risk") == []

    def test_as_array_by_name(self):
        vector = FeatureVector(team_size=4, budget_utilization=0.5, is_peak_season=True)
        assert vector.as_array(["is_peak_season", "team_size"]) == [1.0, 4.0]
        assert len(vector.as_array()) == len(FEATURE_NAMES)
        with pytest.raises(KeyError):
            vector.as_array(["no_such_feature"])
