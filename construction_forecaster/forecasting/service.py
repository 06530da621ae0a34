"""
Predictive analytics facade.

``PredictiveAnalyticsService`` answers a multi-type request (cost, risk and,
optionally, scenarios) for one project in a single call, and looks up the
latest stored forecasts.

Failure isolation
-----------------
- Unknown project:            ``DataNotFoundError`` propagates immediately.
- One forecast kind fails:    Recorded as a ``forecast_failed_<kind>`` warning
                              (high); the remaining kinds still run.
- Scenario analysis fails:    Recorded as ``scenario_analysis_failed``
                              (medium).

Only ``ForecastEngineError`` subclasses are isolated; anything else is a bug
and propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from construction_forecaster.config import AppConfig
from construction_forecaster.db.connection import store_session
from construction_forecaster.errors import DataNotFoundError, ForecastEngineError
from construction_forecaster.forecasting.base import ForecastGenerator
from construction_forecaster.forecasting.cost import CostForecastGenerator
from construction_forecaster.forecasting.risk import RiskForecastGenerator
from construction_forecaster.forecasting.scenarios import ScenarioAnalyzer
from construction_forecaster.ml.snapshots import EnsembleSnapshotCache
from construction_forecaster.models.forecast import Forecast, ForecastWarning
from construction_forecaster.models.scenario import ScenarioAnalysis
from construction_forecaster.sources.base import ProjectDataSource
from construction_forecaster.taxonomy.model_taxonomy import ForecastKind
from construction_forecaster.taxonomy.risk_taxonomy import Severity, WarningCategory
from construction_forecaster.utils.logging import Timer
from construction_forecaster.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class AnalyticsResult:
    """Outcome of one ``PredictiveAnalyticsService.generate()`` call.

    Attributes:
        project_id:  Project the request was for.
        forecasts:   One forecast per kind that completed.
        scenarios:   Scenario analysis, when requested and successful.
        warnings:    Request-level warnings (failed kinds); per-forecast
                     warnings stay on each forecast.
        generated_at: Reference instant used for every part of the request.
        elapsed_ms:  Wall time of the whole request.
    """

    project_id:   str
    generated_at: datetime
    forecasts:    dict[ForecastKind, Forecast] = field(default_factory=dict)
    scenarios:    Optional[ScenarioAnalysis]   = None
    warnings:     list[ForecastWarning]        = field(default_factory=list)
    elapsed_ms:   float                        = 0.0

    @property
    def status(self) -> str:
        """``"success"`` with no request-level warnings, else ``"partial"``."""
        return "partial" if self.warnings else "success"


class PredictiveAnalyticsService:
    """One entry point for cost, risk and scenario requests.

    The cost and risk generators share one ensemble snapshot cache when
    ``ensemble.cache_trained_models`` is on.
    """

    def __init__(
        self,
        config: AppConfig,
        source: ProjectDataSource,
        db_path: Optional[str] = None,
    ) -> None:
        self.config = config
        self.source = source
        self.db_path = db_path
        cache = (
            EnsembleSnapshotCache(config.ensemble.cache_ttl_minutes)
            if config.ensemble.cache_trained_models
            else None
        )
        self.generators: dict[ForecastKind, ForecastGenerator] = {
            ForecastKind.COST: CostForecastGenerator(config, source, db_path, cache),
            ForecastKind.RISK: RiskForecastGenerator(config, source, db_path, cache),
        }
        self.scenario_analyzer = ScenarioAnalyzer(config, source, db_path)

    def generate(
        self,
        project_id: str,
        kinds: Sequence[ForecastKind | str] = (ForecastKind.COST, ForecastKind.RISK),
        include_scenarios: bool = False,
        now: Optional[datetime] = None,
    ) -> AnalyticsResult:
        """Generate the requested forecast kinds (and scenarios) for a project.

        Raises:
            DataNotFoundError: If the project is not in the data source.
            ValueError: If ``kinds`` names an unknown forecast kind.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        requested = [ForecastKind(k) for k in kinds]
        result = AnalyticsResult(project_id=project_id, generated_at=now)
        with Timer() as timer:
            for kind in requested:
                try:
                    result.forecasts[kind] = self.generators[kind].generate_forecast(
                        project_id, now=now
                    )
                except DataNotFoundError:
                    raise
                except ForecastEngineError as exc:
                    logger.warning("%s forecast failed for %s: %s", kind.value, project_id, exc)
                    result.warnings.append(
                        ForecastWarning(
                            code=f"forecast_failed_{kind.value}",
                            severity=Severity.HIGH,
                            category=WarningCategory.DATA_QUALITY,
                            message=f"Failed to generate {kind.value} forecast",
                            description=str(exc),
                            affected_metrics=[kind.value],
                            recommended_action="Ensure sufficient historical data is available.",
                        )
                    )

            if include_scenarios:
                try:
                    result.scenarios = self.scenario_analyzer.analyze_project(project_id, now=now)
                except DataNotFoundError:
                    raise
                except ForecastEngineError as exc:
                    logger.warning("Scenario analysis failed for %s: %s", project_id, exc)
                    result.warnings.append(
                        ForecastWarning(
                            code="scenario_analysis_failed",
                            severity=Severity.MEDIUM,
                            category=WarningCategory.DATA_QUALITY,
                            message="Failed to generate scenario analysis",
                            description=str(exc),
                            affected_metrics=["scenario_analysis"],
                            recommended_action="Ensure project data is complete and accurate.",
                        )
                    )

        result.elapsed_ms = timer.elapsed_ms
        logger.info(
            "Analytics request for %s | kinds=%s scenarios=%s status=%s elapsed_ms=%.0f",
            project_id,
            [k.value for k in requested],
            include_scenarios,
            result.status,
            result.elapsed_ms,
        )
        return result

    def get_latest_forecasts(
        self,
        project_id: str,
        now: Optional[datetime] = None,
        include_expired: bool = True,
    ) -> dict[ForecastKind, Forecast]:
        """Latest stored forecast per kind; kinds never stored are absent.

        Raises:
            ValueError: If the service was built without a database path.
        """
        if not self.db_path:
            raise ValueError("get_latest_forecasts() needs a database path.")
        latest: dict[ForecastKind, Forecast] = {}
        with store_session(self.db_path, self.config.database) as store:
            for kind in ForecastKind:
                forecast = store.get_latest_forecast(
                    project_id, kind=kind, now=now, include_expired=include_expired
                )
                if forecast is not None:
                    latest[kind] = forecast
        return latest
