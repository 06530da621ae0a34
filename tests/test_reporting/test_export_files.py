"""
Tests for reporting/export.py.

What we test
------------
1. CSV and JSON writers create parent directories and return the path.
2. Empty record lists produce an empty CSV file.
3. Forecast flattening gives one row per step; cost-only columns are blank
   for risk forecasts so both kinds share a column layout.
4. Predicted-risk and scenario flattening give one row per item.
"""

from __future__ import annotations

import csv
import json
from datetime import date, datetime, timedelta, timezone

import pytest

from construction_forecaster.forecasting.scenarios import ScenarioAnalyzer
from construction_forecaster.models.forecast import (
    CostContributors,
    CostForecast,
    CostPrediction,
    PredictedRisk,
    RiskForecast,
    StepPrediction,
)
from construction_forecaster.reporting.export import (
    export_to_csv,
    export_to_json,
    flatten_forecast_for_export,
    flatten_predicted_risks_for_export,
    flatten_scenarios_for_export,
)
from construction_forecaster.taxonomy.model_taxonomy import ForecastMethod
from construction_forecaster.taxonomy.risk_taxonomy import PredictedRiskCategory, Severity

T0 = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
D0 = T0.date()


def _cost_forecast() -> CostForecast:
    preds = [
        CostPrediction(
            step=i,
            target_date=D0 + timedelta(days=i),
            value=100.0,
            lower=80.0,
            upper=120.0,
            confidence=0.9,
            cumulative_cost=1_000.0 + 100.0 * i,
            contributors=CostContributors(labor=40.0, materials=35.0, equipment=15.0, overhead=7.0, contingency=3.0),
        )
        for i in (1, 2)
    ]
    return CostForecast(
        forecast_id="c1",
        project_id="proj-1",
        forecast_date=D0,
        horizon=2,
        predictions=preds,
        total_value=1_200.0,
        current_value=1_000.0,
        confidence_score=0.75,
        risk_level=Severity.LOW,
        method=ForecastMethod.ENSEMBLE,
        generated_at=T0,
        expires_at=T0 + timedelta(days=7),
    )


def _risk_forecast() -> RiskForecast:
    return RiskForecast(
        forecast_id="r1",
        project_id="proj-1",
        forecast_date=D0,
        horizon=1,
        predictions=[
            StepPrediction(step=1, target_date=D0, value=40.0, lower=30.0, upper=50.0, confidence=0.3)
        ],
        total_value=40.0,
        current_value=40.0,
        confidence_score=0.3,
        risk_level=Severity.MEDIUM,
        method=ForecastMethod.TREND_FALLBACK,
        is_degraded=True,
        generated_at=T0,
        expires_at=T0 + timedelta(days=7),
        predicted_risks=[
            PredictedRisk(
                category=PredictedRiskCategory.SAFETY,
                description="Site safety incident",
                probability=0.5,
                impact=70.0,
                risk_score=35.0,
                severity=Severity.MEDIUM,
                trigger_indicators=["Incident reports", "Near misses"],
                mitigation_strategies=["Toolbox talks"],
            )
        ],
    )


class TestWriters:
    def test_csv_round_trip(self, tmp_path):
        path = export_to_csv([{"a": 1, "b": "x"}, {"a": 2, "b": "y"}], tmp_path / "out" / "rows.csv")

        with path.open(encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert rows == [{"a": "1", "b": "x"}, {"a": "2", "b": "y"}]

    def test_csv_fieldnames_order_and_extras(self, tmp_path):
        path = export_to_csv([{"a": 1, "b": 2, "c": 3}], tmp_path / "rows.csv", fieldnames=["c", "a"])
        assert path.read_text(encoding="utf-8").splitlines() == ["c,a", "3,1"]

    def test_csv_empty(self, tmp_path):
        path = export_to_csv([], tmp_path / "empty.csv")
        assert path.read_text(encoding="utf-8") == ""

    def test_json_serialises_dates(self, tmp_path):
        path = export_to_json({"d": date(2025, 1, 2)}, tmp_path / "nested" / "out.json")
        assert json.loads(path.read_text(encoding="utf-8")) == {"d": "2025-01-02"}


class TestFlatten:
    def test_cost_forecast_rows(self):
        rows = flatten_forecast_for_export(_cost_forecast())

        assert [r["step"] for r in rows] == [1, 2]
        assert rows[0]["kind"] == "cost"
        assert rows[1]["cumulative_cost"] == pytest.approx(1_200.0)
        assert rows[0]["labor"] == pytest.approx(40.0)
        assert rows[0]["target_date"] == "2025-06-16"

    def test_risk_forecast_shares_layout(self):
        cost_rows = flatten_forecast_for_export(_cost_forecast())
        risk_rows = flatten_forecast_for_export(_risk_forecast())

        assert list(risk_rows[0]) == list(cost_rows[0])
        assert risk_rows[0]["cumulative_cost"] == ""
        assert risk_rows[0]["is_degraded"] is True

    def test_predicted_risks(self):
        rows = flatten_predicted_risks_for_export(_risk_forecast())
        assert len(rows) == 1
        assert rows[0]["category"] == "safety"
        assert rows[0]["triggers"] == "Incident reports; Near misses"

    def test_scenarios_baseline_first(self, tiny_config, project_factory, now):
        analysis = ScenarioAnalyzer(tiny_config).generate_scenarios(project_factory(), [], now=now)
        rows = flatten_scenarios_for_export(analysis)

        assert [r["scenario_id"] for r in rows] == [s.scenario_id for s in analysis.scenarios]
        assert sum(r["probability"] for r in rows) == pytest.approx(1.0)
