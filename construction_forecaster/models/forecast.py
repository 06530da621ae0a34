"""
Forecast output models.

``Forecast`` is the common envelope for both forecast kinds: per-step
predictions with confidence intervals, aggregate value, confidence score,
risk level, warnings and expiry. ``CostForecast`` and ``RiskForecast`` add the
kind-specific detail.

All models are frozen; a forecast is superseded by the next one for the same
project, never mutated in place. Warning acknowledgement produces a copy via
``model_copy(update=...)`` that the store writes back.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from construction_forecaster.forecasting.banding import classify_severity
from construction_forecaster.taxonomy.model_taxonomy import ForecastKind, ForecastMethod
from construction_forecaster.taxonomy.risk_taxonomy import (
    PredictedRiskCategory,
    RecommendationPriority,
    RiskCategory,
    RiskTrend,
    Severity,
    WarningCategory,
)

# Tolerance for derived-field consistency checks (float round-trips via JSON).
_EPS = 1e-6


class ForecastWarning(BaseModel):
    """A threshold-triggered, severity-tagged alert attached to a forecast.

    Attributes:
        code: Stable rule identifier, e.g. ``"budget_utilization_high"``.
            Unique within one forecast's warning list.
        severity: Alert severity.
        category: Kind of condition (threshold, trend, data quality, ...).
        message: One-line headline.
        description: Detail with the offending value.
        affected_metrics: Feature / output names the rule looked at.
        recommended_action: Suggested next step for the project team.
        acknowledged: Set by the calling application via the store.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    severity: Severity
    category: WarningCategory
    message: str
    description: str = ""
    affected_metrics: list[str] = Field(default_factory=list)
    recommended_action: str = ""
    acknowledged: bool = False


class StepPrediction(BaseModel):
    """One future step of a forecast with its confidence interval."""

    model_config = ConfigDict(frozen=True)

    step: int
    target_date: date
    value: float
    lower: float
    upper: float
    confidence: float

    @model_validator(mode="after")
    def validate_interval(self) -> "StepPrediction":
        if self.step < 1:
            raise ValueError(f"step must be >= 1, got {self.step}.")
        if self.lower > self.upper:
            raise ValueError(
                f"lower ({self.lower}) must be <= upper ({self.upper})."
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}.")
        return self


class CostContributors(BaseModel):
    """Split of a cost amount across the usual construction cost heads."""

    model_config = ConfigDict(frozen=True)

    labor: float = 0.0
    materials: float = 0.0
    equipment: float = 0.0
    overhead: float = 0.0
    contingency: float = 0.0


class CostPrediction(StepPrediction):
    """A daily cost prediction."""

    cumulative_cost: float
    contributors: CostContributors = CostContributors()

    @field_validator("value", "lower", "cumulative_cost")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("cost values must be non-negative.")
        return v


class Forecast(BaseModel):
    """Common forecast envelope.

    Attributes:
        forecast_id: Unique id assigned by the generator.
        project_id: Project the forecast is for.
        kind: ``"cost"`` or ``"risk"``.
        forecast_date: Calendar date of step 0.
        horizon: Number of future steps in ``predictions``.
        predictions: One entry per step, in step order.
        total_value: Aggregate outcome (projected total cost, overall risk score).
        current_value: The metric's value at ``forecast_date``.
        variance: ``total_value`` minus the reference (budget or current score).
        confidence_score: Ensemble disagreement proxy in [0, 1]. NOT a
            calibrated probability of correctness.
        risk_level: Banded severity of the forecast outcome.
        method: ``"ensemble"`` or ``"trend_fallback"``.
        is_degraded: True when the forecast did not come from a trained
            ensemble; ``confidence_score`` is then fixed low.
        assumptions: Human-readable modelling assumptions.
        warnings: Alerts raised for this forecast.
        generated_at / expires_at: Validity window (UTC).
    """

    model_config = ConfigDict(frozen=True)

    forecast_id: str
    project_id: str
    project_name: str = ""
    kind: ForecastKind
    forecast_date: date
    horizon: int
    predictions: list[StepPrediction]
    total_value: float
    current_value: float
    variance: float = 0.0
    confidence_score: float
    risk_level: Severity
    method: ForecastMethod
    is_degraded: bool = False
    assumptions: list[str] = Field(default_factory=list)
    warnings: list[ForecastWarning] = Field(default_factory=list)
    generated_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def validate_forecast_consistency(self) -> "Forecast":
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError(
                f"confidence_score must be in [0, 1], got {self.confidence_score}."
            )
        if len(self.predictions) != self.horizon:
            raise ValueError(
                f"Expected {self.horizon} predictions, got {len(self.predictions)}."
            )
        if self.expires_at <= self.generated_at:
            raise ValueError("expires_at must be after generated_at.")
        codes = [w.code for w in self.warnings]
        if len(codes) != len(set(codes)):
            raise ValueError(f"Duplicate warning codes: {codes}.")
        return self

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CostForecast(Forecast):
    """Daily cost forecast over the horizon."""

    kind: ForecastKind = ForecastKind.COST
    predictions: list[CostPrediction]
    planned_budget: float = 0.0
    spent_to_date: float = 0.0
    projected_overrun_pct: float = 0.0
    contributors: CostContributors = CostContributors()


# ── Risk forecast detail ──────────────────────────────────────────────────────


class PredictedRisk(BaseModel):
    """Forecast probability and impact for one predicted risk category.

    ``risk_score`` must equal ``probability * impact`` and ``severity`` must
    equal the banding of ``risk_score``; both are enforced here so a stored
    payload can never disagree with itself.
    """

    model_config = ConfigDict(frozen=True)

    category: PredictedRiskCategory
    description: str
    probability: float
    impact: float
    risk_score: float
    severity: Severity
    timeframe: str = "short_term"
    trigger_indicators: list[str] = Field(default_factory=list)
    potential_impact: dict[str, float] = Field(default_factory=dict)
    mitigation_strategies: list[str] = Field(default_factory=list)
    confidence_score: float = 0.0

    @model_validator(mode="after")
    def validate_score(self) -> "PredictedRisk":
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"probability must be in [0, 1], got {self.probability}.")
        if not 0.0 <= self.impact <= 100.0:
            raise ValueError(f"impact must be in [0, 100], got {self.impact}.")
        if abs(self.risk_score - self.probability * self.impact) > _EPS:
            raise ValueError(
                f"risk_score ({self.risk_score}) must equal probability x impact "
                f"({self.probability * self.impact})."
            )
        expected = classify_severity(self.risk_score)
        if self.severity != expected:
            raise ValueError(
                f"severity '{self.severity.value}' does not match score band "
                f"'{expected.value}' for risk_score {self.risk_score}."
            )
        return self


class EmergingRisk(BaseModel):
    """A risk not yet in the register but signalled by current features."""

    model_config = ConfigDict(frozen=True)

    code: str
    description: str
    early_warning_signals: list[str] = Field(default_factory=list)
    current_probability: float
    projected_probability: float
    time_to_materialize_days: int
    prevention_actions: list[str] = Field(default_factory=list)
    monitoring_metrics: list[str] = Field(default_factory=list)


class RiskCategoryScore(BaseModel):
    """Aggregate register score for one logged risk category."""

    model_config = ConfigDict(frozen=True)

    category: RiskCategory
    current_score: float
    forecast_score: float
    trend: RiskTrend = RiskTrend.STABLE
    top_risks: list[str] = Field(default_factory=list)
    contribution_pct: float


class RiskRecommendation(BaseModel):
    """An action suggested by the risk forecaster."""

    model_config = ConfigDict(frozen=True)

    code: str
    priority: RecommendationPriority
    action: str
    rationale: str
    expected_benefit: str = ""
    affected_risks: list[str] = Field(default_factory=list)
    implementation_days: Optional[int] = None
    deadline: Optional[datetime] = None


class RiskForecast(Forecast):
    """Risk forecast: per-category predictions plus register analytics.

    ``predictions`` hold the overall risk score projected per step;
    ``total_value`` is the overall score (mean of predicted risk scores).
    """

    kind: ForecastKind = ForecastKind.RISK
    overall_risk_score: float
    risk_trend: RiskTrend = RiskTrend.STABLE
    predicted_risks: list[PredictedRisk] = Field(default_factory=list)
    emerging_risks: list[EmergingRisk] = Field(default_factory=list)
    risk_categories: list[RiskCategoryScore] = Field(default_factory=list)
    mitigation_effectiveness: float = 0.0
    recommendations: list[RiskRecommendation] = Field(default_factory=list)
    category_distribution: dict[str, float] = Field(default_factory=dict)
