"""
Tests for forecasting/scenarios.py.

What we test
------------
1. Three scenarios (baseline 0.6, optimistic 0.2, pessimistic 0.2) whose
   probabilities sum to 1.
2. Outcome adjustments: cost factors, schedule shifts, risk and quality
   deltas clamped to [0, 100], risk level equal to the shared banding
   (a baseline risk of exactly 75 is critical).
3. Baseline fallbacks: empty register -> risk 50; no budget -> spend to date;
   no end date -> now + default duration.
4. Comparison: best/worst case by risk, most likely by probability,
   variances relative to the baseline.
5. Recommendations and persistence through ``analyze_project``.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from construction_forecaster.db.connection import get_connection
from construction_forecaster.db.repositories.forecast_repo import ForecastStore
from construction_forecaster.errors import DataNotFoundError
from construction_forecaster.forecasting.scenarios import (
    STANDING_RECOMMENDATIONS,
    ScenarioAnalyzer,
    compare_scenarios,
)
from construction_forecaster.taxonomy.risk_taxonomy import Severity


def _by_id(analysis):
    return {s.scenario_id: s for s in analysis.scenarios}


# ── Scenario set ──────────────────────────────────────────────────────────────

class TestScenarioSet:
    def test_probabilities_sum_to_one(self, tiny_config, project_factory, factor_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(
            project_factory(), factor_factory(), now=now
        )
        assert sum(s.probability for s in analysis.scenarios) == pytest.approx(1.0)
        assert [s.scenario_id for s in analysis.scenarios] == [
            "baseline",
            "optimistic",
            "pessimistic",
        ]
        assert analysis.baseline.probability == pytest.approx(0.6)

    def test_cost_and_schedule_adjustments(self, tiny_config, project_factory, now):
        project = project_factory()
        scenarios = _by_id(ScenarioAnalyzer(tiny_config).generate_scenarios(project, [], now=now))

        base = scenarios["baseline"].outcomes
        assert base.total_cost == pytest.approx(project.planned_budget)
        assert base.completion_date == project.end_date
        assert scenarios["optimistic"].outcomes.total_cost == pytest.approx(base.total_cost * 0.9)
        assert scenarios["pessimistic"].outcomes.total_cost == pytest.approx(base.total_cost * 1.3)
        assert scenarios["optimistic"].outcomes.completion_date == base.completion_date - timedelta(days=15)
        assert scenarios["pessimistic"].outcomes.completion_date == base.completion_date + timedelta(days=30)

    def test_risk_75_is_critical(self, tiny_config, project_factory, risk_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(
            project_factory(), [], now=now, risks=risk_factory(6, score=75.0)
        )
        scenarios = _by_id(analysis)

        assert scenarios["baseline"].outcomes.overall_risk == pytest.approx(75.0)
        assert scenarios["baseline"].outcomes.risk_level == Severity.CRITICAL
        assert scenarios["optimistic"].outcomes.overall_risk == pytest.approx(55.0)
        assert scenarios["optimistic"].outcomes.risk_level == Severity.HIGH
        assert scenarios["pessimistic"].outcomes.overall_risk == pytest.approx(95.0)
        assert scenarios["pessimistic"].outcomes.risk_level == Severity.CRITICAL

    def test_risk_and_quality_clamped(self, tiny_config, project_factory, risk_factory, report_factory, now):
        high = _by_id(
            ScenarioAnalyzer(tiny_config).generate_scenarios(
                project_factory(), [], now=now, risks=risk_factory(3, score=95.0)
            )
        )
        assert high["pessimistic"].outcomes.overall_risk == 100.0
        # no reports: quality 100, optimistic +10 stays at 100
        assert high["optimistic"].outcomes.quality_score == 100.0

        low = _by_id(
            ScenarioAnalyzer(tiny_config).generate_scenarios(
                project_factory(),
                [],
                now=now,
                risks=risk_factory(3, score=10.0),
                daily_reports=report_factory(1, quality_issues=10),
            )
        )
        assert low["optimistic"].outcomes.overall_risk == 0.0
        assert low["pessimistic"].outcomes.quality_score == 0.0


class TestBaselineFallbacks:
    def test_empty_register_defaults_to_50(self, tiny_config, project_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(project_factory(), [], now=now)
        assert analysis.baseline.outcomes.overall_risk == pytest.approx(50.0)
        assert analysis.baseline.outcomes.risk_level == Severity.HIGH
        assert analysis.baseline.outcomes.quality_score == 100.0

    def test_no_budget_uses_spend(self, tiny_config, project_factory, now):
        project = project_factory().model_copy(update={"items": []})
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(project, [], now=now)
        assert analysis.baseline.outcomes.total_cost == pytest.approx(project.spent_to_date)

    def test_no_end_date_uses_default_duration(self, tiny_config, project_factory, now):
        project = project_factory(end_date=None)
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(project, [], now=now)
        expected = now.date() + timedelta(days=tiny_config.features.default_project_duration_days)
        assert analysis.baseline.outcomes.completion_date == expected


# ── Comparison and recommendations ────────────────────────────────────────────

class TestComparison:
    def test_best_worst_most_likely(self, tiny_config, project_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(project_factory(), [], now=now)
        comparison = analysis.comparison

        assert comparison.best_case == "optimistic"
        assert comparison.worst_case == "pessimistic"
        assert comparison.most_likely == "baseline"
        assert set(comparison.sensitivity) == {
            "Material Prices",
            "Labor Availability",
            "Weather Conditions",
            "Regulatory Changes",
        }

    def test_variances_relative_to_baseline(self, tiny_config, project_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(project_factory(), [], now=now)
        variances = {v.scenario_id: v for v in analysis.comparison.variances}

        assert set(variances) == {"optimistic", "pessimistic"}
        assert variances["optimistic"].cost_variance_pct == pytest.approx(-10.0)
        assert variances["pessimistic"].cost_variance_pct == pytest.approx(30.0)
        assert variances["optimistic"].schedule_variance_days == -15
        assert variances["pessimistic"].schedule_variance_days == 30
        assert variances["pessimistic"].risk_variance == pytest.approx(20.0)

    def test_compare_requires_scenarios(self):
        with pytest.raises(ValueError):
            compare_scenarios([])


class TestRecommendations:
    def test_high_baseline_risk_adds_mitigation(self, tiny_config, project_factory, risk_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(
            project_factory(), [], now=now, risks=risk_factory(4, score=75.0)
        )
        assert "Implement additional risk mitigation strategies" in analysis.recommendations

    def test_default_pessimistic_triggers_cost_and_schedule(self, tiny_config, project_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(project_factory(), [], now=now)
        recs = analysis.recommendations

        assert "Implement additional risk mitigation strategies" not in recs
        assert "Review budget allocations and identify cost reduction opportunities" in recs
        assert "Develop schedule recovery plan to address potential 30 day delay" in recs
        assert recs[-len(STANDING_RECOMMENDATIONS):] == list(STANDING_RECOMMENDATIONS)


# ── analyze_project ───────────────────────────────────────────────────────────

class TestAnalyzeProject:
    def test_requires_source(self, tiny_config):
        with pytest.raises(ValueError):
            ScenarioAnalyzer(tiny_config).analyze_project("proj-1")

    def test_unknown_project(self, tiny_config, source, now):
        with pytest.raises(DataNotFoundError):
            ScenarioAnalyzer(tiny_config, source).analyze_project("missing", now=now)

    def test_uses_snapshot_risks(self, tiny_config, source, rich_snapshot, now):
        analysis = ScenarioAnalyzer(tiny_config, source).analyze_project("proj-1", now=now)
        mean = sum(r.risk_score for r in rich_snapshot.risks) / len(rich_snapshot.risks)
        assert analysis.baseline.outcomes.overall_risk == pytest.approx(mean)
        assert analysis.generated_at == now

    def test_persisted_when_enabled(self, config_factory, source, now, tmp_path):
        db_path = str(tmp_path / "scenarios.db")
        analyzer = ScenarioAnalyzer(config_factory(persist=True), source, db_path=db_path)
        analysis = analyzer.analyze_project("proj-1", now=now)

        with get_connection(db_path, wal_mode=False) as conn:
            stored = ForecastStore(conn).get_latest_scenario_analysis("proj-1")

        assert stored is not None
        assert stored.analysis_id == analysis.analysis_id
        assert len(stored.scenarios) == 3
