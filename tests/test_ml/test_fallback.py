"""Tests for ml/fallback.py: trend extrapolation and interval helpers."""

from __future__ import annotations

from datetime import date

import pytest

from construction_forecaster.config import ForecastConfig
from construction_forecaster.forecasting.base import step_intervals
from construction_forecaster.ml.fallback import (
    confidence_interval,
    extrapolate_trend,
    linear_trend,
    population_std,
    step_confidence,
    z_for_confidence,
)


class TestLinearTrend:
    def test_flat_series(self):
        assert linear_trend([5.0, 5.0, 5.0]) == pytest.approx(0.0)

    def test_relative_slope(self):
        # slope 1, mean 2
        assert linear_trend([1.0, 2.0, 3.0]) == pytest.approx(0.5)

    def test_short_or_non_positive(self):
        assert linear_trend([]) == 0.0
        assert linear_trend([4.0]) == 0.0
        assert linear_trend([-1.0, -2.0]) == 0.0


class TestExtrapolateTrend:
    def test_empty_series_projects_zeros(self):
        assert extrapolate_trend([], horizon=3) == [0.0, 0.0, 0.0]

    def test_flat_series_repeats_last(self):
        assert extrapolate_trend([10.0] * 5, horizon=2) == [10.0, 10.0]

    def test_rising_series(self):
        projected = extrapolate_trend([1.0, 2.0, 3.0], horizon=2)
        assert projected == pytest.approx([3.0 * 1.5, 3.0 * 2.0])

    def test_never_negative(self):
        projected = extrapolate_trend([10.0, 5.0, 1.0], horizon=10)
        assert min(projected) >= 0.0

    def test_lookback_limits_history(self):
        values = [100.0] * 10 + [1.0, 1.0, 1.0]
        assert extrapolate_trend(values, horizon=1, lookback=3) == [1.0]

    def test_zero_horizon(self):
        assert extrapolate_trend([1.0, 2.0], horizon=0) == []


class TestIntervals:
    @pytest.mark.parametrize(
        "level, z",
        [(0.50, 0.6745), (0.80, 1.2816), (0.85, 1.4395), (0.95, 1.9600), (0.99, 2.5758)],
    )
    def test_normal_quantile(self, level, z):
        assert z_for_confidence(level) == pytest.approx(z, abs=1e-3)

    @pytest.mark.parametrize("level", [0.0, 1.0, -0.2, 1.5])
    def test_level_outside_unit_interval(self, level):
        with pytest.raises(ValueError, match="confidence_level"):
            z_for_confidence(level)

    def test_width_grows_with_level(self):
        widths = []
        for level in (0.80, 0.85, 0.90, 0.95, 0.99):
            [step] = step_intervals(
                [100.0],
                history_std=10.0,
                base_confidence=0.9,
                forecast_date=date(2025, 6, 1),
                config=ForecastConfig(confidence_level=level),
            )
            widths.append(step["upper"] - step["lower"])
        assert widths == sorted(widths)
        assert len(set(widths)) == len(widths)

    def test_symmetric_interval(self):
        lower, upper = confidence_interval(100.0, 10.0, 0.95)
        assert lower == pytest.approx(80.4, abs=1e-3)
        assert upper == pytest.approx(119.6, abs=1e-3)

    def test_floor_clips_lower(self):
        lower, upper = confidence_interval(5.0, 10.0, 0.95, floor=0.0)
        assert lower == 0.0
        assert upper == pytest.approx(24.6, abs=1e-3)

    def test_population_std(self):
        assert population_std([]) == 0.0
        assert population_std([2.0, 4.0]) == pytest.approx(1.0)


class TestStepConfidence:
    def test_linear_decay(self):
        assert step_confidence(0.9, 0, 0.02, 0.5) == pytest.approx(0.9)
        assert step_confidence(0.9, 5, 0.02, 0.5) == pytest.approx(0.8)

    def test_floor(self):
        assert step_confidence(0.9, 100, 0.02, 0.5) == pytest.approx(0.5)

    def test_low_base_stays_fixed(self):
        assert step_confidence(0.3, 10, 0.02, 0.5) == pytest.approx(0.3)
