"""
Risk forecast generator.

Per-category predictions
------------------------
Each predicted category gets a probability and an impact from project
features:

  category   probability (capped)                          impact (max 100)
  ---------  --------------------------------------------  ----------------------
  cost       0.10 + 0.5 util + 0.3 cost_var       <= .95    30 + size / 1e6
  schedule   0.15 + 0.4 sched_var + 0.3 (1-prog)  <= .95    40 + duration / 30
  quality    0.10 + 0.5 (100 - q) / 100           <= .90    20 + 0.8 (100 - q)
  safety     0.10 + 0.4 incidents / 10            <= .85    50 + 5 incidents
  technical  0.10 + 0.4 tech_risks / 10           <= .80    40 + 3 tech_risks
  external   0.10 + 0.3 econ + 0.3 weather        <= .70    30 + 20 econ + 30 weather

When the risk register is long enough to fill a window, a
``ClassificationEnsemble`` predicts the category distribution of the *next*
logged risk from the recent register rows. The distribution nudges the
heuristic probabilities::

    p = clamp(p_heuristic * (1 + w * (K * p_class - 1)), 0, 1)

so a uniform class distribution leaves them unchanged. Without enough history
the heuristics stand alone, the forecast is marked degraded and carries a
``data_quality`` warning.

Aggregates
----------
overall risk score = mean predicted risk score (50 with no predictions);
risk level = band(overall). Per-step predictions extrapolate the overall score
along the trend of the logged risk-score history, clamped to [0, 100].
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

import numpy as np

from construction_forecaster.config import AppConfig
from construction_forecaster.errors import (
    InsufficientHistoryError,
    ModelPredictionError,
    ModelTrainingError,
)
from construction_forecaster.features.sequences import build_windowed_examples
from construction_forecaster.features.series import risk_score_series, series_values
from construction_forecaster.forecasting.banding import classify_severity
from construction_forecaster.forecasting.base import ForecastGenerator, step_intervals
from construction_forecaster.forecasting.warnings import data_quality_warning
from construction_forecaster.ml.ensemble import ClassificationEnsemble
from construction_forecaster.ml.fallback import linear_trend, population_std
from construction_forecaster.models.forecast import (
    EmergingRisk,
    ForecastWarning,
    PredictedRisk,
    RiskCategoryScore,
    RiskForecast,
    RiskRecommendation,
    StepPrediction,
)
from construction_forecaster.models.project import ProjectSnapshot, RiskRecord
from construction_forecaster.models.timeseries import FeatureVector
from construction_forecaster.taxonomy.model_taxonomy import ForecastKind, ForecastMethod
from construction_forecaster.taxonomy.risk_taxonomy import (
    PREDICTED_CATEGORY_MAP,
    PREDICTED_CATEGORY_ORDER,
    PRIORITY_RANK,
    PredictedRiskCategory,
    PriorityLevel,
    RecommendationPriority,
    RiskCategory,
    RiskStatus,
    RiskTrend,
    Severity,
)
from construction_forecaster.utils.time_utils import expiry_from

logger = logging.getLogger(__name__)

HEURISTIC_CONFIDENCE = 0.85
DEFAULT_OVERALL_SCORE = 50.0
TREND_DELTA = 5.0

MITIGATION_STRATEGIES: dict[PredictedRiskCategory, tuple[str, ...]] = {
    PredictedRiskCategory.COST: (
        "Implement cost control measures",
        "Review budget allocations",
        "Identify cost reduction opportunities",
        "Establish contingency reserves",
    ),
    PredictedRiskCategory.SCHEDULE: (
        "Optimize resource allocation",
        "Identify critical path activities",
        "Implement schedule recovery plans",
        "Monitor progress closely",
    ),
    PredictedRiskCategory.QUALITY: (
        "Strengthen quality control processes",
        "Increase inspection frequency",
        "Provide additional training",
        "Implement corrective actions",
    ),
    PredictedRiskCategory.SAFETY: (
        "Enhance safety protocols",
        "Conduct additional safety training",
        "Increase supervision",
        "Implement safety incentives",
    ),
    PredictedRiskCategory.TECHNICAL: (
        "Engage technical experts",
        "Conduct design reviews",
        "Perform risk assessments",
        "Develop contingency plans",
    ),
    PredictedRiskCategory.EXTERNAL: (
        "Monitor market conditions",
        "Diversify suppliers",
        "Establish alternative sources",
        "Implement risk transfer strategies",
    ),
}

RISK_ASSUMPTIONS: tuple[str, ...] = (
    "Risk register reflects current site conditions",
    "Mitigation plans are executed as recorded",
    "External conditions follow current indicators",
)


# ── Heuristic predictions ─────────────────────────────────────────────────────


def heuristic_probability_impact(
    category: PredictedRiskCategory,
    f: FeatureVector,
) -> tuple[float, float]:
    """Feature-driven ``(probability, impact)`` for one predicted category."""
    if category == PredictedRiskCategory.COST:
        p = min(0.95, 0.1 + f.budget_utilization * 0.5 + f.cost_variance * 0.3)
        impact = min(100.0, 30 + f.project_size / 1_000_000)
    elif category == PredictedRiskCategory.SCHEDULE:
        p = min(0.95, 0.15 + f.schedule_variance * 0.4 + (1 - f.progress_ratio) * 0.3)
        impact = min(100.0, 40 + f.project_duration_days / 30)
    elif category == PredictedRiskCategory.QUALITY:
        p = min(0.9, 0.1 + (100 - f.quality_score) / 100 * 0.5)
        impact = min(100.0, 20 + (100 - f.quality_score) * 0.8)
    elif category == PredictedRiskCategory.SAFETY:
        p = min(0.85, 0.1 + f.incidents_reported / 10 * 0.4)
        impact = min(100.0, 50 + f.incidents_reported * 5)
    elif category == PredictedRiskCategory.TECHNICAL:
        p = min(0.8, 0.1 + f.technical_risks / 10 * 0.4)
        impact = min(100.0, 40 + f.technical_risks * 3)
    elif category == PredictedRiskCategory.EXTERNAL:
        p = min(0.7, 0.1 + f.economic_index * 0.3 + f.weather_risk * 0.3)
        impact = min(100.0, 30 + f.economic_index * 20 + f.weather_risk * 30)
    else:
        raise ValueError(f"Unknown predicted risk category: {category!r}")
    return _clamp(p, 0.0, 1.0), _clamp(impact, 0.0, 100.0)


def trigger_indicators(category: PredictedRiskCategory, f: FeatureVector) -> list[str]:
    """Feature conditions that point at this category, or a generic marker."""
    indicators: list[str] = []
    if category == PredictedRiskCategory.COST:
        if f.budget_utilization > 0.8:
            indicators.append("High budget utilization")
        if f.cost_variance > 0.1:
            indicators.append("Cost overrun detected")
    elif category == PredictedRiskCategory.SCHEDULE:
        if f.schedule_variance < -0.1:
            indicators.append("Schedule delay detected")
        if f.progress_ratio < 0.5:
            indicators.append("Behind schedule")
    elif category == PredictedRiskCategory.QUALITY:
        if f.quality_score < 70:
            indicators.append("Quality issues reported")
    elif category == PredictedRiskCategory.SAFETY:
        if f.incidents_reported > 5:
            indicators.append("Multiple safety incidents")
    elif category == PredictedRiskCategory.TECHNICAL:
        if f.technical_risks > 3:
            indicators.append("Multiple technical risks identified")
    elif category == PredictedRiskCategory.EXTERNAL:
        if f.economic_index > 0.7:
            indicators.append("High economic risk")
        if f.weather_risk > 0.6:
            indicators.append("Adverse weather conditions")
    return indicators or ["General project conditions"]


def potential_impact(category: PredictedRiskCategory, impact: float) -> dict[str, float]:
    """Rough impact estimate in the category's natural unit."""
    if category == PredictedRiskCategory.COST:
        return {"cost_impact": impact * 1000}
    if category == PredictedRiskCategory.SCHEDULE:
        return {"schedule_impact_days": float(round(impact / 10))}
    if category == PredictedRiskCategory.QUALITY:
        return {"quality_impact": impact}
    if category == PredictedRiskCategory.SAFETY:
        return {"safety_impact": impact}
    return {}


def describe_risk(category: PredictedRiskCategory, probability: float, impact: float) -> str:
    prob_text = "high" if probability >= 0.7 else "medium" if probability >= 0.4 else "low"
    if impact >= 75:
        impact_text = "severe"
    elif impact >= 50:
        impact_text = "significant"
    elif impact >= 25:
        impact_text = "moderate"
    else:
        impact_text = "minor"
    return (
        f"Predicted {category.value} risk with {prob_text} probability "
        f"and {impact_text} potential impact"
    )


def blend_probability(heuristic: float, class_probability: float, n_classes: int, weight: float) -> float:
    """Nudge a heuristic probability by the classifier's category probability."""
    return _clamp(heuristic * (1.0 + weight * (class_probability * n_classes - 1.0)), 0.0, 1.0)


def predict_risks(
    features: FeatureVector,
    class_distribution: Optional[Sequence[float]] = None,
    blend_weight: float = 0.5,
    confidence: float = HEURISTIC_CONFIDENCE,
) -> list[PredictedRisk]:
    """One ``PredictedRisk`` per predicted category, in classifier order."""
    n_classes = len(PREDICTED_CATEGORY_ORDER)
    risks: list[PredictedRisk] = []
    for idx, category in enumerate(PREDICTED_CATEGORY_ORDER):
        probability, impact = heuristic_probability_impact(category, features)
        if class_distribution is not None:
            probability = blend_probability(
                probability, float(class_distribution[idx]), n_classes, blend_weight
            )
        score = probability * impact
        risks.append(
            PredictedRisk(
                category=category,
                description=describe_risk(category, probability, impact),
                probability=probability,
                impact=impact,
                risk_score=score,
                severity=classify_severity(score),
                timeframe="short_term",
                trigger_indicators=trigger_indicators(category, features),
                potential_impact=potential_impact(category, impact),
                mitigation_strategies=list(MITIGATION_STRATEGIES[category]),
                confidence_score=confidence,
            )
        )
    return risks


def overall_risk(predicted: Sequence[PredictedRisk]) -> tuple[float, Severity]:
    """Mean predicted risk score and its band (50 when nothing is predicted)."""
    if not predicted:
        return DEFAULT_OVERALL_SCORE, classify_severity(DEFAULT_OVERALL_SCORE)
    score = sum(r.risk_score for r in predicted) / len(predicted)
    return score, classify_severity(score)


# ── Register analytics ────────────────────────────────────────────────────────


def analyze_risk_trend(risks: Sequence[RiskRecord]) -> RiskTrend:
    """Compare mean scores of the older and newer halves of the register."""
    if len(risks) < 2:
        return RiskTrend.STABLE
    ordered = sorted(risks, key=lambda r: r.created_at)
    mid = len(ordered) // 2
    older = [r.risk_score for r in ordered[:mid]]
    newer = [r.risk_score for r in ordered[mid:]]
    diff = sum(newer) / len(newer) - sum(older) / len(older)
    if diff > TREND_DELTA:
        return RiskTrend.DETERIORATING
    if diff < -TREND_DELTA:
        return RiskTrend.IMPROVING
    return RiskTrend.STABLE


def risk_category_scores(risks: Sequence[RiskRecord]) -> list[RiskCategoryScore]:
    """Per logged category: mean score, +10% forecast, top three risk ids."""
    scores: list[RiskCategoryScore] = []
    for category in RiskCategory:
        members = [r for r in risks if r.category == category]
        if not members:
            continue
        current = sum(r.risk_score for r in members) / len(members)
        top = sorted(members, key=lambda r: r.risk_score, reverse=True)[:3]
        scores.append(
            RiskCategoryScore(
                category=category,
                current_score=current,
                forecast_score=min(100.0, current * 1.1),
                trend=analyze_risk_trend(members),
                top_risks=[r.risk_id for r in top],
                contribution_pct=len(members) / len(risks) * 100.0,
            )
        )
    return scores


def mitigation_effectiveness(risks: Sequence[RiskRecord]) -> float:
    """Share of risks with a mitigation plan that have since been closed (0-100)."""
    if not risks:
        return 75.0
    planned = [r for r in risks if r.mitigation_plan]
    if not planned:
        return 50.0
    closed = sum(1 for r in planned if r.status == RiskStatus.CLOSED)
    return closed / len(planned) * 100.0


def recommend_actions(
    risks: Sequence[RiskRecord],
    features: FeatureVector,
    now: datetime,
) -> list[RiskRecommendation]:
    recommendations: list[RiskRecommendation] = []

    critical = [r for r in risks if r.priority_level == PriorityLevel.CRITICAL]
    if critical:
        recommendations.append(
            RiskRecommendation(
                code="address_critical_risks",
                priority=RecommendationPriority.URGENT,
                action=f"Address {len(critical)} critical risks immediately",
                rationale="Critical risks pose significant threat to project success",
                expected_benefit="Risk reduction and project stability",
                affected_risks=[r.risk_id for r in critical],
                implementation_days=7,
                deadline=now + timedelta(days=7),
            )
        )

    if features.budget_utilization > 0.8:
        recommendations.append(
            RiskRecommendation(
                code="cost_controls",
                priority=RecommendationPriority.HIGH,
                action="Review budget and implement cost controls",
                rationale=f"Budget utilization is at {round(features.budget_utilization * 100)}%",
                expected_benefit="Cost overrun prevention",
                implementation_days=5,
                deadline=now + timedelta(days=5),
            )
        )

    if features.schedule_variance < -0.1:
        recommendations.append(
            RiskRecommendation(
                code="schedule_recovery",
                priority=RecommendationPriority.HIGH,
                action="Implement schedule recovery measures",
                rationale=(
                    f"Schedule delay of {round(abs(features.schedule_variance) * 100)}% detected"
                ),
                expected_benefit="Schedule alignment",
                implementation_days=10,
                deadline=now + timedelta(days=10),
            )
        )

    if features.quality_score < 70:
        recommendations.append(
            RiskRecommendation(
                code="quality_control",
                priority=RecommendationPriority.MEDIUM,
                action="Enhance quality control processes",
                rationale=f"Quality score is at {round(features.quality_score)}",
                expected_benefit="Improved deliverable quality",
                implementation_days=15,
                deadline=now + timedelta(days=15),
            )
        )
    return recommendations


def identify_emerging_risks(features: FeatureVector) -> list[EmergingRisk]:
    emerging: list[EmergingRisk] = []
    if features.risk_trend > 0.1:
        emerging.append(
            EmergingRisk(
                code="increasing_risk_trend",
                description="Increasing risk trend detected",
                early_warning_signals=["Rising risk scores", "New risk identification"],
                current_probability=0.6,
                projected_probability=0.8,
                time_to_materialize_days=30,
                prevention_actions=[
                    "Increase risk monitoring frequency",
                    "Implement proactive mitigation measures",
                    "Engage risk owners",
                ],
                monitoring_metrics=["Risk score trend", "New risk identification rate"],
            )
        )
    if features.is_peak_season and features.weather_risk > 0.5:
        emerging.append(
            EmergingRisk(
                code="peak_season_weather",
                description="Adverse weather conditions during peak season",
                early_warning_signals=["Weather forecasts", "Seasonal patterns"],
                current_probability=0.7,
                projected_probability=0.9,
                time_to_materialize_days=15,
                prevention_actions=[
                    "Adjust schedules for weather",
                    "Secure weather protection measures",
                    "Identify indoor alternatives",
                ],
                monitoring_metrics=["Weather forecasts", "Weather impact reports"],
            )
        )
    return emerging


# ── Classifier inputs ─────────────────────────────────────────────────────────


def risk_row(risk: RiskRecord) -> tuple[float, ...]:
    """Classifier input row for one register entry."""
    predicted = PREDICTED_CATEGORY_MAP[risk.category]
    one_hot = tuple(1.0 if c == predicted else 0.0 for c in PREDICTED_CATEGORY_ORDER)
    return (
        risk.severity / 5.0,
        risk.probability,
        risk.risk_score / 100.0,
        PRIORITY_RANK[risk.priority_level] / 4.0,
        1.0 if risk.status == RiskStatus.OCCURRED else 0.0,
        1.0 if risk.mitigation_plan else 0.0,
        *one_hot,
    )


def risk_category_label(risk: RiskRecord) -> int:
    return PREDICTED_CATEGORY_ORDER.index(PREDICTED_CATEGORY_MAP[risk.category])


class RiskForecastGenerator(ForecastGenerator):
    """Risk forecast: predicted category risks plus register analytics."""

    kind = ForecastKind.RISK

    def _build(
        self,
        snapshot: ProjectSnapshot,
        features: FeatureVector,
        config: AppConfig,
        now: datetime,
        forecast_id: str,
    ) -> RiskForecast:
        project = snapshot.project
        risks = list(snapshot.risks)
        extra_warnings: list[ForecastWarning] = []
        distribution: Optional[np.ndarray] = None

        try:
            distribution, confidence = self._classify_next_category(
                project.project_id, risks, config
            )
            method = ForecastMethod.ENSEMBLE
        except InsufficientHistoryError as exc:
            logger.info("Risk forecast for %s uses heuristics only: %s", project.project_id, exc)
            extra_warnings.append(
                data_quality_warning(
                    "insufficient_history",
                    "Insufficient risk history for model-based forecast",
                    f"{exc} Feature heuristics and trend extrapolation used instead.",
                )
            )
            confidence = config.forecast.fallback_confidence
            method = ForecastMethod.TREND_FALLBACK
        except (ModelTrainingError, ModelPredictionError, ValueError, RuntimeError) as exc:
            logger.warning(
                "Risk classifier failed for %s, using heuristics only: %s",
                project.project_id, exc,
            )
            extra_warnings.append(
                data_quality_warning(
                    "model_training",
                    "Risk models could not be trained",
                    f"{exc} Feature heuristics and trend extrapolation used instead.",
                    severity=Severity.HIGH,
                )
            )
            confidence = config.forecast.fallback_confidence
            method = ForecastMethod.TREND_FALLBACK

        predicted = predict_risks(
            features,
            class_distribution=distribution,
            blend_weight=config.ensemble.risk_blend_weight,
            confidence=confidence,
        )
        overall, level = overall_risk(predicted)

        history = series_values(risk_score_series(risks, config.forecast.anomaly_z_threshold))
        trend = linear_trend(history[-config.forecast.trend_lookback_points:])
        horizon = config.forecast.horizon_steps
        projected = [_clamp(overall * (1.0 + trend * (i + 1)), 0.0, 100.0) for i in range(horizon)]
        steps = step_intervals(
            projected,
            population_std(history),
            confidence,
            now.date(),
            config.forecast,
            floor=0.0,
            ceiling=100.0,
        )

        warnings = self._detector(config).detect_warnings(features, predicted_risks=predicted)
        warnings.extend(extra_warnings)

        return RiskForecast(
            forecast_id=forecast_id,
            project_id=project.project_id,
            project_name=project.name,
            forecast_date=now.date(),
            horizon=horizon,
            predictions=[StepPrediction(**s) for s in steps],
            total_value=overall,
            current_value=features.average_risk_score,
            variance=overall - features.average_risk_score,
            confidence_score=confidence,
            risk_level=level,
            method=method,
            is_degraded=method == ForecastMethod.TREND_FALLBACK,
            assumptions=list(RISK_ASSUMPTIONS),
            warnings=warnings,
            generated_at=now,
            expires_at=expiry_from(now, config.forecast.expiry_days),
            overall_risk_score=overall,
            risk_trend=analyze_risk_trend(risks),
            predicted_risks=predicted,
            emerging_risks=identify_emerging_risks(features),
            risk_categories=risk_category_scores(risks),
            mitigation_effectiveness=mitigation_effectiveness(risks),
            recommendations=recommend_actions(risks, features, now),
            category_distribution=(
                {c.value: float(p) for c, p in zip(PREDICTED_CATEGORY_ORDER, distribution)}
                if distribution is not None
                else {}
            ),
        )

    def _classify_next_category(
        self,
        project_id: str,
        risks: list[RiskRecord],
        config: AppConfig,
    ) -> tuple[np.ndarray, float]:
        """Category distribution of the next logged risk.

        Raises:
            InsufficientHistoryError: Register shorter than ``window_length + 1``.
            ModelTrainingError: No family could be trained.
        """
        window_length = config.ensemble.risk.window_length
        ordered = sorted(risks, key=lambda r: r.created_at)
        rows = [risk_row(r) for r in ordered]
        labels = [float(risk_category_label(r)) for r in ordered]
        examples = build_windowed_examples(rows, labels, window_length)
        if not examples:
            raise InsufficientHistoryError(len(ordered), window_length + 1)

        n_classes = len(PREDICTED_CATEGORY_ORDER)
        ensemble = self._trained_ensemble(
            project_id,
            examples,
            lambda: ClassificationEnsemble(n_classes, config.ensemble),
            config.ensemble.risk.families,
            config.ensemble,
        )
        out = ensemble.predict_ensemble(rows[-window_length:])
        logger.debug(
            "Risk classifier for %s: %d examples, confidence %.3f",
            project_id, len(examples), out.confidence,
        )
        return np.asarray(out.prediction, dtype=np.float64), out.confidence


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
