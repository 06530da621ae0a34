"""
Scenario analyzer.

Builds three probability-weighted projections of project outcomes from the
feature vector alone (no trained model):

  scenario      probability  cost       schedule   risk    quality
  ------------  -----------  ---------  ---------  ------  -------
  baseline      0.6          x1.0       +0 days    +0      +0
  optimistic    0.2          x0.9       -15 days   -20     +10
  pessimistic   0.2          x1.3       +30 days   +20     -15

Every number above comes from ``ScenarioConfig``; the config validator
guarantees the probabilities sum to 1. Risk and quality are clamped to
[0, 100] and each scenario's risk level is the shared severity band of its
overall risk.

Baseline outcomes:
  total cost       planned budget, or spend to date when no budget exists
  completion date  planned end date, or now + default project duration
  overall risk     average logged risk score, or 50 with an empty register
  quality score    from daily reports (100 with none)
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Sequence
from uuid import uuid4

from construction_forecaster.config import AppConfig
from construction_forecaster.db.connection import store_session
from construction_forecaster.features.project_features import extract_features
from construction_forecaster.forecasting.banding import classify_severity
from construction_forecaster.models.project import (
    DailyReport,
    ExternalFactor,
    ProjectRecord,
    RiskRecord,
)
from construction_forecaster.models.scenario import (
    MetricVariance,
    Scenario,
    ScenarioAnalysis,
    ScenarioComparison,
    ScenarioOutcomes,
)
from construction_forecaster.models.timeseries import FeatureVector
from construction_forecaster.sources.base import ProjectDataSource, fetch_snapshot
from construction_forecaster.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RISK_SCORE = 50.0

SENSITIVITY: dict[str, float] = {
    "Material Prices": 0.25,
    "Labor Availability": 0.20,
    "Weather Conditions": 0.15,
    "Regulatory Changes": 0.10,
}

STANDING_RECOMMENDATIONS: tuple[str, ...] = (
    "Establish regular scenario review cycles (monthly)",
    "Monitor key external factors that impact project outcomes",
    "Maintain flexibility in resource allocation to respond to changing conditions",
)


class ScenarioAnalyzer:
    """Baseline, optimistic and pessimistic projections for a project.

    Args:
        config: Application configuration (``scenarios`` and ``features``).
        source: Needed only by ``analyze_project()``.
        db_path: SQLite path; analyses from ``analyze_project()`` are stored
            when set and ``forecast.persist`` is on.
    """

    def __init__(
        self,
        config: AppConfig,
        source: Optional[ProjectDataSource] = None,
        db_path: Optional[str] = None,
    ) -> None:
        self.config = config
        self.source = source
        self.db_path = db_path

    def analyze_project(self, project_id: str, now: Optional[datetime] = None) -> ScenarioAnalysis:
        """Fetch a project from the data source and analyse it.

        Raises:
            ValueError: If the analyzer was built without a data source.
            DataNotFoundError: If the project is not in the data source.
        """
        if self.source is None:
            raise ValueError("ScenarioAnalyzer needs a data source to analyse by project id.")
        snapshot = fetch_snapshot(self.source, project_id)
        analysis = self.generate_scenarios(
            snapshot.project,
            snapshot.external_factors,
            now=now,
            risks=snapshot.risks,
            daily_reports=snapshot.daily_reports,
        )
        if self.config.forecast.persist and self.db_path:
            with store_session(self.db_path, self.config.database) as store:
                store.save_scenario_analysis(analysis)
        return analysis

    def generate_scenarios(
        self,
        project: ProjectRecord,
        external_factors: Sequence[ExternalFactor],
        now: Optional[datetime] = None,
        risks: Sequence[RiskRecord] = (),
        daily_reports: Sequence[DailyReport] = (),
    ) -> ScenarioAnalysis:
        """Build the three scenarios, their comparison and recommendations."""
        now = ensure_utc(now) if now is not None else utcnow()
        features = extract_features(
            project, risks, external_factors, daily_reports, now=now, config=self.config.features
        )
        sc = self.config.scenarios
        base = self._baseline_outcomes(project, features, now)

        baseline = Scenario(
            scenario_id="baseline",
            name="Baseline Scenario",
            description="Current project trajectory with existing conditions",
            assumptions=[
                "Current trends continue",
                "No major disruptions",
                "Resource availability as planned",
            ],
            probability=sc.baseline_probability,
            outcomes=base,
        )
        optimistic = Scenario(
            scenario_id="optimistic",
            name="Optimistic Scenario",
            description="Favourable conditions with improved productivity",
            assumptions=[
                "Material prices stabilise",
                "Favourable weather",
                "Productivity above plan",
            ],
            probability=sc.optimistic_probability,
            outcomes=_adjust(
                base,
                sc.optimistic_cost_factor,
                sc.optimistic_schedule_days,
                sc.optimistic_risk_delta,
                sc.optimistic_quality_delta,
            ),
        )
        pessimistic = Scenario(
            scenario_id="pessimistic",
            name="Pessimistic Scenario",
            description="Adverse conditions with cost pressure and delays",
            assumptions=[
                "Material price escalation",
                "Adverse weather",
                "Labour shortages",
            ],
            probability=sc.pessimistic_probability,
            outcomes=_adjust(
                base,
                sc.pessimistic_cost_factor,
                sc.pessimistic_schedule_days,
                sc.pessimistic_risk_delta,
                sc.pessimistic_quality_delta,
            ),
        )

        scenarios = [baseline, optimistic, pessimistic]
        analysis = ScenarioAnalysis(
            analysis_id=str(uuid4()),
            project_id=project.project_id,
            project_name=project.name,
            analysis_date=now.date(),
            baseline=baseline,
            alternatives=[optimistic, pessimistic],
            comparison=compare_scenarios(scenarios),
            recommendations=scenario_recommendations(baseline, pessimistic),
            generated_at=now,
        )
        logger.info(
            "Scenario analysis for %s | baseline_risk=%.1f (%s) cost=%.0f",
            project.project_id,
            base.overall_risk,
            base.risk_level.value,
            base.total_cost,
        )
        return analysis

    def _baseline_outcomes(
        self,
        project: ProjectRecord,
        features: FeatureVector,
        now: datetime,
    ) -> ScenarioOutcomes:
        cost = project.planned_budget or project.spent_to_date
        completion = project.end_date or (
            now.date() + timedelta(days=self.config.features.default_project_duration_days)
        )
        risk = features.average_risk_score if features.total_risks else DEFAULT_RISK_SCORE
        return _outcomes(cost, completion, risk, features.quality_score)


def compare_scenarios(scenarios: Sequence[Scenario]) -> ScenarioComparison:
    """Best/worst case by overall risk, most likely by probability.

    The first scenario is the reference for the per-metric variances.
    """
    if not scenarios:
        raise ValueError("compare_scenarios() needs at least one scenario.")
    base = scenarios[0].outcomes
    variances = [
        MetricVariance(
            scenario_id=s.scenario_id,
            cost_variance_pct=(
                (s.outcomes.total_cost - base.total_cost) / base.total_cost * 100.0
                if base.total_cost > 0
                else 0.0
            ),
            schedule_variance_days=(s.outcomes.completion_date - base.completion_date).days,
            risk_variance=s.outcomes.overall_risk - base.overall_risk,
            quality_variance=s.outcomes.quality_score - base.quality_score,
        )
        for s in scenarios[1:]
    ]
    return ScenarioComparison(
        best_case=min(scenarios, key=lambda s: s.outcomes.overall_risk).scenario_id,
        worst_case=max(scenarios, key=lambda s: s.outcomes.overall_risk).scenario_id,
        most_likely=max(scenarios, key=lambda s: s.probability).scenario_id,
        variances=variances,
        sensitivity=dict(SENSITIVITY),
    )


def scenario_recommendations(baseline: Scenario, pessimistic: Scenario) -> list[str]:
    base = baseline.outcomes
    worst = pessimistic.outcomes
    recommendations: list[str] = []

    if base.overall_risk > 60:
        recommendations.append("Implement additional risk mitigation strategies")
        recommendations.append("Increase contingency reserves by 10-15%")

    if base.total_cost > 0 and worst.total_cost - base.total_cost > base.total_cost * 0.1:
        recommendations.append("Review budget allocations and identify cost reduction opportunities")
        recommendations.append("Establish cost monitoring thresholds with automated alerts")

    delay = (worst.completion_date - base.completion_date).days
    if delay > 10:
        recommendations.append(
            f"Develop schedule recovery plan to address potential {delay} day delay"
        )
        recommendations.append("Identify critical path activities for focused management")

    recommendations.extend(STANDING_RECOMMENDATIONS)
    return recommendations


def _adjust(
    base: ScenarioOutcomes,
    cost_factor: float,
    schedule_days: int,
    risk_delta: float,
    quality_delta: float,
) -> ScenarioOutcomes:
    return _outcomes(
        base.total_cost * cost_factor,
        base.completion_date + timedelta(days=schedule_days),
        base.overall_risk + risk_delta,
        base.quality_score + quality_delta,
    )


def _outcomes(cost: float, completion: date, risk: float, quality: float) -> ScenarioOutcomes:
    risk = max(0.0, min(100.0, risk))
    return ScenarioOutcomes(
        total_cost=cost,
        completion_date=completion,
        overall_risk=risk,
        quality_score=max(0.0, min(100.0, quality)),
        risk_level=classify_severity(risk),
    )
