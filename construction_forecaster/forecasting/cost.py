"""
Cost forecast generator.

Pipeline for one project:

  1. Daily cost series from booked expenses (one point per expense date).
  2. Sliding windows of ``ensemble.cost.window_length`` rows; each row is
     ``[daily cost, anomaly flag, completed volume, *cost context]``. Completed
     volume comes from the daily reports of the same day (0 when none).
  3. Enough history: train a ``RegressionEnsemble`` and forecast recursively,
     feeding each predicted day back in as the newest row. Future rows
     carry the mean completed volume of the last observed window.
     Not enough history, or training/prediction fails: linear trend
     extrapolation over the trailing points, fixed low confidence.
  4. Intervals: ``± z * std(history)``, lower bound clipped at zero.
  5. Aggregates: projected total = spent to date + predicted spend;
     variance = total - planned budget; risk level = banded overrun score.

Each step's cost is also split across the usual cost heads (labor 35%,
materials 30%, equipment 20%, overhead 10%, contingency 5%).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from construction_forecaster.config import AppConfig
from construction_forecaster.errors import (
    InsufficientHistoryError,
    ModelPredictionError,
    ModelTrainingError,
)
from construction_forecaster.features.sequences import (
    build_windowed_examples,
    has_enough_history,
    point_row,
)
from construction_forecaster.features.registry import feature_names
from construction_forecaster.features.series import (
    aligned_values,
    daily_cost_series,
    daily_progress_series,
    series_values,
)
from construction_forecaster.forecasting.banding import classify_severity, overrun_score
from construction_forecaster.forecasting.base import ForecastGenerator, step_intervals
from construction_forecaster.forecasting.warnings import data_quality_warning
from construction_forecaster.ml.ensemble import RegressionEnsemble
from construction_forecaster.ml.fallback import extrapolate_trend, population_std
from construction_forecaster.models.forecast import (
    CostContributors,
    CostForecast,
    CostPrediction,
    ForecastWarning,
)
from construction_forecaster.models.project import DailyReport, ProjectSnapshot
from construction_forecaster.models.timeseries import FeatureVector, TimeSeriesPoint
from construction_forecaster.taxonomy.model_taxonomy import ForecastKind, ForecastMethod
from construction_forecaster.taxonomy.risk_taxonomy import Severity
from construction_forecaster.utils.time_utils import expiry_from

logger = logging.getLogger(__name__)

CONTRIBUTOR_SHARES: dict[str, float] = {
    "labor": 0.35,
    "materials": 0.30,
    "equipment": 0.20,
    "overhead": 0.10,
    "contingency": 0.05,
}

COST_ASSUMPTIONS: tuple[str, ...] = (
    "Historical cost patterns continue with current trends",
    "No major scope changes",
    "Normal weather conditions with seasonal adjustments",
    "Material prices follow market trends",
    "Labor availability remains consistent",
)

# Static project context appended to every window row.
COST_CONTEXT_FEATURES: tuple[str, ...] = tuple(feature_names(context_for="cost"))


def split_contributors(amount: float) -> CostContributors:
    """Split a cost amount across the standard cost heads."""
    return CostContributors(**{head: amount * share for head, share in CONTRIBUTOR_SHARES.items()})


def cost_context(features: FeatureVector) -> tuple[float, ...]:
    return tuple(features.as_array(COST_CONTEXT_FEATURES))


class CostForecastGenerator(ForecastGenerator):
    """Daily cost forecast over ``forecast.horizon_steps`` days."""

    kind = ForecastKind.COST

    def _build(
        self,
        snapshot: ProjectSnapshot,
        features: FeatureVector,
        config: AppConfig,
        now: datetime,
        forecast_id: str,
    ) -> CostForecast:
        project = snapshot.project
        horizon = config.forecast.horizon_steps
        series = daily_cost_series(project, config.forecast.anomaly_z_threshold)
        history = series_values(series)
        extra_warnings: list[ForecastWarning] = []

        try:
            predicted, confidence = self._ensemble_path(
                project.project_id, series, snapshot.daily_reports, features, config
            )
            method = ForecastMethod.ENSEMBLE
        except InsufficientHistoryError as exc:
            logger.info("Cost forecast for %s uses trend fallback: %s", project.project_id, exc)
            extra_warnings.append(
                data_quality_warning(
                    "insufficient_history",
                    "Insufficient cost history for model-based forecast",
                    f"{exc} Trend extrapolation used instead.",
                )
            )
            predicted, confidence, method = self._fallback(history, config)
        except (ModelTrainingError, ModelPredictionError, ValueError, RuntimeError) as exc:
            logger.warning(
                "Cost ensemble failed for %s, falling back to trend: %s",
                project.project_id, exc,
            )
            extra_warnings.append(
                data_quality_warning(
                    "model_training",
                    "Cost models could not be trained",
                    f"{exc} Trend extrapolation used instead.",
                    severity=Severity.HIGH,
                )
            )
            predicted, confidence, method = self._fallback(history, config)

        is_degraded = method == ForecastMethod.TREND_FALLBACK
        planned = project.planned_budget
        spent = project.spent_to_date
        total = spent + sum(predicted)
        variance = total - planned if planned > 0 else 0.0
        overrun_ratio = variance / planned if planned > 0 else 0.0

        steps = step_intervals(
            predicted,
            population_std(history),
            confidence,
            now.date(),
            config.forecast,
            floor=0.0,
        )
        predictions: list[CostPrediction] = []
        cumulative = spent
        for step in steps:
            cumulative += step["value"]
            predictions.append(
                CostPrediction(
                    **step,
                    cumulative_cost=cumulative,
                    contributors=split_contributors(step["value"]),
                )
            )

        warnings = self._detector(config).detect_warnings(
            features,
            projected_overrun_ratio=overrun_ratio if planned > 0 else None,
        )
        warnings.extend(extra_warnings)

        return CostForecast(
            forecast_id=forecast_id,
            project_id=project.project_id,
            project_name=project.name,
            forecast_date=now.date(),
            horizon=horizon,
            predictions=predictions,
            total_value=total,
            current_value=spent,
            variance=variance,
            confidence_score=confidence,
            risk_level=classify_severity(overrun_score(overrun_ratio)),
            method=method,
            is_degraded=is_degraded,
            assumptions=list(COST_ASSUMPTIONS),
            warnings=warnings,
            generated_at=now,
            expires_at=expiry_from(now, config.forecast.expiry_days),
            planned_budget=planned,
            spent_to_date=spent,
            projected_overrun_pct=overrun_ratio * 100.0,
            contributors=split_contributors(sum(predicted)),
        )

    # ── Prediction paths ──────────────────────────────────────────────────────

    def _ensemble_path(
        self,
        project_id: str,
        series: list[TimeSeriesPoint],
        reports: Sequence[DailyReport],
        features: FeatureVector,
        config: AppConfig,
    ) -> tuple[list[float], float]:
        """Recursive multi-step ensemble forecast.

        Raises:
            InsufficientHistoryError: Series shorter than ``window_length + 1``.
            ModelTrainingError: No family could be trained.
        """
        window_length = config.ensemble.cost.window_length
        if not has_enough_history(len(series), window_length):
            raise InsufficientHistoryError(len(series), window_length + 1)

        context = cost_context(features)
        progress = aligned_values(
            daily_progress_series(reports, config.forecast.anomaly_z_threshold), series
        )
        rows = [point_row(p, (done, *context)) for p, done in zip(series, progress)]
        examples = build_windowed_examples(rows, series_values(series), window_length)

        ensemble = self._trained_ensemble(
            project_id,
            examples,
            lambda: RegressionEnsemble(config.ensemble),
            config.ensemble.cost.families,
            config.ensemble,
        )

        window = [tuple(r) for r in rows[-window_length:]]
        expected_progress = sum(progress[-window_length:]) / window_length
        predicted: list[float] = []
        confidences: list[float] = []
        for _ in range(config.forecast.horizon_steps):
            out = ensemble.predict_ensemble(window)
            value = max(0.0, float(out.prediction))
            predicted.append(value)
            confidences.append(out.confidence)
            window = window[1:] + [(value, 0.0, expected_progress, *context)]

        confidence = sum(confidences) / len(confidences)
        logger.debug(
            "Cost ensemble for %s: %d examples, mean confidence %.3f",
            project_id, len(examples), confidence,
        )
        return predicted, confidence

    def _fallback(
        self,
        history: list[float],
        config: AppConfig,
    ) -> tuple[list[float], float, ForecastMethod]:
        predicted = extrapolate_trend(
            history,
            config.forecast.horizon_steps,
            lookback=config.forecast.trend_lookback_points,
        )
        return predicted, config.forecast.fallback_confidence, ForecastMethod.TREND_FALLBACK
