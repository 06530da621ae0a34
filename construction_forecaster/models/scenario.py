"""
Scenario analysis models.

A ``ScenarioAnalysis`` bundles exactly one baseline scenario and any number of
alternatives. Probabilities across all of them sum to 1 (within 1e-9); the
model validator enforces it so an invalid analysis can never be built or
loaded from the store.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from construction_forecaster.taxonomy.risk_taxonomy import Severity

PROBABILITY_TOLERANCE = 1e-9


class ScenarioOutcomes(BaseModel):
    """Projected project outcomes under one scenario."""

    model_config = ConfigDict(frozen=True)

    total_cost: float
    completion_date: date
    overall_risk: float
    quality_score: float
    risk_level: Severity


class Scenario(BaseModel):
    """A named, probability-weighted projection of project outcomes."""

    model_config = ConfigDict(frozen=True)

    scenario_id: str
    name: str
    description: str = ""
    assumptions: list[str] = Field(default_factory=list)
    probability: float
    outcomes: ScenarioOutcomes

    @field_validator("probability")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"probability must be in [0, 1], got {v}.")
        return v


class MetricVariance(BaseModel):
    """Deviation of one scenario metric from the baseline."""

    model_config = ConfigDict(frozen=True)

    scenario_id: str
    cost_variance_pct: float
    schedule_variance_days: int
    risk_variance: float
    quality_variance: float


class ScenarioComparison(BaseModel):
    """Cross-scenario comparison: extremes, likelihood and sensitivity."""

    model_config = ConfigDict(frozen=True)

    best_case: str
    worst_case: str
    most_likely: str
    variances: list[MetricVariance] = Field(default_factory=list)
    sensitivity: dict[str, float] = Field(default_factory=dict)


class ScenarioAnalysis(BaseModel):
    """One baseline plus alternative scenarios for a project."""

    model_config = ConfigDict(frozen=True)

    analysis_id: str
    project_id: str
    project_name: str = ""
    analysis_date: date
    baseline: Scenario
    alternatives: list[Scenario] = Field(default_factory=list)
    comparison: ScenarioComparison
    recommendations: list[str] = Field(default_factory=list)
    generated_at: datetime

    @property
    def scenarios(self) -> list[Scenario]:
        """Baseline first, then alternatives."""
        return [self.baseline, *self.alternatives]

    @model_validator(mode="after")
    def validate_probability_sum(self) -> "ScenarioAnalysis":
        total = sum(s.probability for s in self.scenarios)
        if abs(total - 1.0) > PROBABILITY_TOLERANCE:
            raise ValueError(f"Scenario probabilities must sum to 1.0, got {total}.")
        ids = [s.scenario_id for s in self.scenarios]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate scenario ids: {ids}.")
        return self
