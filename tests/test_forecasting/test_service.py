"""
Tests for forecasting/service.py (PredictiveAnalyticsService).

What we test
------------
1. A multi-kind request returns one forecast per kind plus, on request, a
   scenario analysis; status is "success".
2. One failing kind is isolated: a ``forecast_failed_<kind>`` warning, the
   other kind still present, status "partial".
3. A failing scenario analysis becomes ``scenario_analysis_failed``.
4. Unknown projects and non-engine errors propagate.
5. The shared snapshot cache lets a repeat request skip training.
6. ``get_latest_forecasts`` reads back what the request stored.
"""

from __future__ import annotations

import pytest

from construction_forecaster.errors import (
    DataNotFoundError,
    ForecastEngineError,
    ModelTrainingError,
)
from construction_forecaster.forecasting.service import PredictiveAnalyticsService
from construction_forecaster.ml import ensemble as ensemble_module
from construction_forecaster.models.forecast import CostForecast, RiskForecast
from construction_forecaster.taxonomy.model_taxonomy import ForecastKind
from construction_forecaster.taxonomy.risk_taxonomy import Severity


def _raiser(exc: Exception):
    def _call(*args, **kwargs):
        raise exc

    return _call


class TestGenerate:
    def test_all_kinds_with_scenarios(self, tiny_config, source, now):
        service = PredictiveAnalyticsService(tiny_config, source)
        result = service.generate("proj-1", include_scenarios=True, now=now)

        assert result.status == "success"
        assert result.warnings == []
        assert isinstance(result.forecasts[ForecastKind.COST], CostForecast)
        assert isinstance(result.forecasts[ForecastKind.RISK], RiskForecast)
        assert result.scenarios is not None
        assert result.scenarios.project_id == "proj-1"
        assert result.generated_at == now
        assert result.elapsed_ms >= 0.0

    def test_kinds_accept_strings(self, tiny_config, source, now):
        result = PredictiveAnalyticsService(tiny_config, source).generate(
            "proj-empty", kinds=["risk"], now=now
        )
        assert list(result.forecasts) == [ForecastKind.RISK]
        assert result.scenarios is None

    def test_unknown_kind_rejected(self, tiny_config, source, now):
        with pytest.raises(ValueError):
            PredictiveAnalyticsService(tiny_config, source).generate(
                "proj-1", kinds=["schedule"], now=now
            )

    def test_unknown_project_propagates(self, tiny_config, source, now):
        with pytest.raises(DataNotFoundError):
            PredictiveAnalyticsService(tiny_config, source).generate("missing", now=now)


class TestFailureIsolation:
    def test_failed_kind_is_isolated(self, tiny_config, source, now):
        service = PredictiveAnalyticsService(tiny_config, source)
        service.generators[ForecastKind.COST].generate_forecast = _raiser(
            ModelTrainingError("boom")
        )
        result = service.generate("proj-empty", now=now)

        assert result.status == "partial"
        assert list(result.forecasts) == [ForecastKind.RISK]
        assert [w.code for w in result.warnings] == ["forecast_failed_cost"]
        assert result.warnings[0].severity == Severity.HIGH

    def test_failed_scenarios_are_isolated(self, tiny_config, source, now):
        service = PredictiveAnalyticsService(tiny_config, source)
        service.scenario_analyzer.analyze_project = _raiser(ForecastEngineError("bad data"))
        result = service.generate(
            "proj-empty", kinds=[ForecastKind.COST], include_scenarios=True, now=now
        )

        assert result.scenarios is None
        assert [(w.code, w.severity) for w in result.warnings] == [
            ("scenario_analysis_failed", Severity.MEDIUM)
        ]
        assert ForecastKind.COST in result.forecasts

    def test_unexpected_errors_propagate(self, tiny_config, source, now):
        service = PredictiveAnalyticsService(tiny_config, source)
        service.generators[ForecastKind.RISK].generate_forecast = _raiser(KeyError("bug"))
        with pytest.raises(KeyError):
            service.generate("proj-empty", now=now)


class TestSharedCache:
    def test_cache_shared_and_reused(self, tiny_config, source, now, monkeypatch):
        config = tiny_config.model_copy(
            update={"ensemble": tiny_config.ensemble.model_copy(update={"cache_trained_models": True})}
        )
        service = PredictiveAnalyticsService(config, source)
        cost_gen = service.generators[ForecastKind.COST]
        assert cost_gen.cache is not None
        assert cost_gen.cache is service.generators[ForecastKind.RISK].cache

        first = service.generate("proj-1", kinds=[ForecastKind.COST], now=now)

        def _train(self, examples, families=None):
            raise AssertionError("cached ensemble should be reused")

        monkeypatch.setattr(ensemble_module._SequenceEnsemble, "train_ensemble", _train)
        second = service.generate("proj-1", kinds=[ForecastKind.COST], now=now)

        assert second.forecasts[ForecastKind.COST].total_value == pytest.approx(
            first.forecasts[ForecastKind.COST].total_value
        )

    def test_no_cache_by_default(self, tiny_config, source):
        service = PredictiveAnalyticsService(tiny_config, source)
        assert service.generators[ForecastKind.COST].cache is None


class TestLatestForecasts:
    def test_requires_db_path(self, tiny_config, source):
        with pytest.raises(ValueError):
            PredictiveAnalyticsService(tiny_config, source).get_latest_forecasts("proj-1")

    def test_reads_back_stored_forecasts(self, config_factory, source, now, tmp_path):
        db_path = str(tmp_path / "service.db")
        service = PredictiveAnalyticsService(config_factory(persist=True), source, db_path=db_path)
        result = service.generate("proj-empty", now=now)

        latest = service.get_latest_forecasts("proj-empty", now=now)
        assert set(latest) == {ForecastKind.COST, ForecastKind.RISK}
        for kind, forecast in latest.items():
            assert forecast.forecast_id == result.forecasts[kind].forecast_id

    def test_unknown_project_has_no_forecasts(self, config_factory, source, tmp_path):
        db_path = str(tmp_path / "service.db")
        service = PredictiveAnalyticsService(config_factory(persist=True), source, db_path=db_path)
        assert service.get_latest_forecasts("proj-1") == {}
