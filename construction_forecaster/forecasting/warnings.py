"""
Warning detector.

Stateless threshold evaluation over a ``FeatureVector`` and (optionally) the
predicted risks and projected cost overrun of a forecast. Each rule is
independent: no rule suppresses another, and a forecast may carry zero, one
or many warnings. All thresholds come from ``WarningThresholdsConfig``.

  code                     fires when                               severity
  -----------------------  ---------------------------------------  --------
  budget_utilization_high  budget_utilization > 0.9                 high
  schedule_variance_high   schedule_variance < -0.2                 high
  critical_risk_predicted  any predicted risk_score >= 75           critical
  cost_overrun             projected overrun > 10% (> 20%)          high (critical)
  quality_score_low        quality_score < 60                       medium
  risk_trend_rising        risk_trend > 0.25                        medium
  market_volatility_high   market_volatility > 0.7                  medium

Warnings carry no timestamps and rules are evaluated in a fixed order, so the
same inputs always produce an identical list.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from construction_forecaster.config import WarningThresholdsConfig
from construction_forecaster.models.forecast import ForecastWarning, PredictedRisk
from construction_forecaster.models.timeseries import FeatureVector
from construction_forecaster.taxonomy.risk_taxonomy import Severity, WarningCategory

logger = logging.getLogger(__name__)


class WarningDetector:
    """Evaluates the configured threshold rules.

    Args:
        thresholds: Threshold table; defaults to ``WarningThresholdsConfig()``.
    """

    def __init__(self, thresholds: Optional[WarningThresholdsConfig] = None) -> None:
        self.thresholds = thresholds or WarningThresholdsConfig()

    def detect_warnings(
        self,
        features: FeatureVector,
        predicted_risks: Sequence[PredictedRisk] = (),
        projected_overrun_ratio: Optional[float] = None,
    ) -> list[ForecastWarning]:
        """Run every rule and return the warnings that fired, in rule order."""
        t = self.thresholds
        warnings: list[ForecastWarning] = []

        if features.budget_utilization > t.budget_utilization_high:
            warnings.append(
                ForecastWarning(
                    code="budget_utilization_high",
                    severity=Severity.HIGH,
                    category=WarningCategory.THRESHOLD,
                    message="High budget utilization",
                    description=(
                        f"Budget utilization is {features.budget_utilization:.1%} "
                        f"(threshold {t.budget_utilization_high:.0%})."
                    ),
                    affected_metrics=["budget_utilization"],
                    recommended_action="Implement immediate cost control measures.",
                )
            )

        if features.schedule_variance < t.schedule_variance_high:
            warnings.append(
                ForecastWarning(
                    code="schedule_variance_high",
                    severity=Severity.HIGH,
                    category=WarningCategory.THRESHOLD,
                    message="Significant schedule delay",
                    description=(
                        f"Schedule variance is {features.schedule_variance:.1%} "
                        f"(threshold {t.schedule_variance_high:.0%})."
                    ),
                    affected_metrics=["schedule_variance"],
                    recommended_action="Implement schedule recovery plan.",
                )
            )

        critical = [r for r in predicted_risks if r.risk_score >= t.critical_risk_score]
        if critical:
            names = ", ".join(r.category.value for r in critical)
            warnings.append(
                ForecastWarning(
                    code="critical_risk_predicted",
                    severity=Severity.CRITICAL,
                    category=WarningCategory.THRESHOLD,
                    message=f"{len(critical)} risk categories predicted at critical level",
                    description=(
                        f"Predicted risk score >= {t.critical_risk_score:g} for: {names}."
                    ),
                    affected_metrics=[f"{r.category.value}_risk_score" for r in critical],
                    recommended_action="Address critical risks with highest priority.",
                )
            )

        if projected_overrun_ratio is not None and projected_overrun_ratio > t.projected_overrun_high:
            is_critical = projected_overrun_ratio > t.projected_overrun_critical
            warnings.append(
                ForecastWarning(
                    code="cost_overrun",
                    severity=Severity.CRITICAL if is_critical else Severity.HIGH,
                    category=WarningCategory.THRESHOLD,
                    message="Projected cost overrun",
                    description=(
                        f"Projected total cost exceeds the planned budget by "
                        f"{projected_overrun_ratio:.1%}."
                    ),
                    affected_metrics=["total_value", "planned_budget"],
                    recommended_action="Review budget allocations and identify cost reductions.",
                )
            )

        if features.quality_score < t.quality_score_low:
            warnings.append(
                ForecastWarning(
                    code="quality_score_low",
                    severity=Severity.MEDIUM,
                    category=WarningCategory.THRESHOLD,
                    message="Quality score below threshold",
                    description=(
                        f"Quality score is {features.quality_score:.0f} "
                        f"(threshold {t.quality_score_low:g})."
                    ),
                    affected_metrics=["quality_score", "quality_issues"],
                    recommended_action="Enhance quality control and inspection frequency.",
                )
            )

        if features.risk_trend > t.risk_trend_rising:
            warnings.append(
                ForecastWarning(
                    code="risk_trend_rising",
                    severity=Severity.MEDIUM,
                    category=WarningCategory.TREND,
                    message="Risk scores are rising",
                    description=(
                        f"Recent risk scores are {features.risk_trend:.1%} above the "
                        f"previous window."
                    ),
                    affected_metrics=["risk_trend"],
                    recommended_action="Review newly logged risks and their mitigation plans.",
                )
            )

        if features.market_volatility > t.market_volatility_high:
            warnings.append(
                ForecastWarning(
                    code="market_volatility_high",
                    severity=Severity.MEDIUM,
                    category=WarningCategory.THRESHOLD,
                    message="High market volatility",
                    description=(
                        f"Market volatility index is {features.market_volatility:.2f} "
                        f"(threshold {t.market_volatility_high:g})."
                    ),
                    affected_metrics=["market_volatility"],
                    recommended_action="Lock in material prices where contracts allow.",
                )
            )

        if warnings:
            logger.debug("Warnings fired: %s", [w.code for w in warnings])
        return warnings


def data_quality_warning(
    code: str,
    message: str,
    description: str = "",
    severity: Severity = Severity.MEDIUM,
) -> ForecastWarning:
    """Warning attached to degraded forecasts (fallback, training failure)."""
    return ForecastWarning(
        code=code,
        severity=severity,
        category=WarningCategory.DATA_QUALITY,
        message=message,
        description=description,
        affected_metrics=["confidence_score"],
        recommended_action="Treat this forecast as indicative; collect more history.",
    )
