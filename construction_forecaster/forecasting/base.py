"""
Abstract base class for the forecast generators.

Every generator follows the same contract:
  1. Receive ``AppConfig`` and a ``ProjectDataSource`` at construction.
  2. ``generate_forecast(project_id, config=None, now=None)`` is the sole
     public API.
  3. ``generate_forecast()`` fetches the project snapshot, extracts features,
     calls ``_build()`` and persists the result when a database is configured.
  4. ``_build()`` is the kind-specific implementation.

Error policy:
  - ``DataNotFoundError`` from the data source propagates: there is nothing
    to forecast.
  - Once the snapshot is fetched, ``_build()`` always returns a forecast.
    Insufficient history and model failures become a degraded forecast with
    a ``data_quality`` warning, decided inside each generator.

Usage::

    generator = CostForecastGenerator(config, source, db_path="data/db/cf.db")
    forecast = generator.generate_forecast("proj-1")
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Callable, Optional, Sequence, TypeVar
from uuid import uuid4

from construction_forecaster.config import AppConfig, EnsembleConfig, ForecastConfig
from construction_forecaster.db.connection import store_session
from construction_forecaster.features.project_features import extract_features
from construction_forecaster.features.sequences import TrainingExample
from construction_forecaster.forecasting.warnings import WarningDetector
from construction_forecaster.ml.fallback import confidence_interval, step_confidence
from construction_forecaster.ml.snapshots import EnsembleSnapshotCache
from construction_forecaster.models.forecast import Forecast
from construction_forecaster.models.project import ProjectSnapshot
from construction_forecaster.models.timeseries import FeatureVector
from construction_forecaster.sources.base import ProjectDataSource, fetch_snapshot
from construction_forecaster.taxonomy.model_taxonomy import ForecastKind
from construction_forecaster.utils.logging import Timer
from construction_forecaster.utils.time_utils import ensure_utc, step_dates, utcnow

logger = logging.getLogger(__name__)

E = TypeVar("E")


class ForecastGenerator(ABC):
    """Abstract base for the cost and risk generators.

    Subclasses must:
      1. Set the ``kind`` class variable.
      2. Implement ``_build(...)``.

    Attributes:
        config: Application configuration used when a call passes none.
        source: Input collaborator.
        db_path: SQLite path for persistence; ``None`` disables persistence.
        cache: Trained-ensemble cache, present only when
            ``ensemble.cache_trained_models`` is on (or one is injected).
    """

    kind: ForecastKind  # Override in subclass

    def __init__(
        self,
        config: AppConfig,
        source: ProjectDataSource,
        db_path: Optional[str] = None,
        cache: Optional[EnsembleSnapshotCache] = None,
    ) -> None:
        self.config = config
        self.source = source
        self.db_path = db_path
        if cache is None and config.ensemble.cache_trained_models:
            cache = EnsembleSnapshotCache(config.ensemble.cache_ttl_minutes)
        self.cache = cache

    def generate_forecast(
        self,
        project_id: str,
        config: Optional[AppConfig] = None,
        now: Optional[datetime] = None,
    ) -> Forecast:
        """Generate (and optionally persist) a forecast for one project.

        Args:
            project_id: Project to forecast.
            config: Per-call configuration override.
            now: Reference instant (UTC); defaults to the current time.

        Returns:
            A ``CostForecast`` or ``RiskForecast``.

        Raises:
            DataNotFoundError: If the project is not in the data source.
        """
        cfg = config or self.config
        now = ensure_utc(now) if now is not None else utcnow()
        logger.info("Forecast [%s] starting | project=%s", self.kind.value, project_id)

        with Timer() as timer:
            snapshot = fetch_snapshot(self.source, project_id)
            features = extract_features(
                snapshot.project,
                snapshot.risks,
                snapshot.external_factors,
                snapshot.daily_reports,
                now=now,
                config=cfg.features,
            )
            forecast = self._build(snapshot, features, cfg, now, forecast_id=str(uuid4()))

        logger.info(
            "Forecast [%s] completed | project=%s method=%s confidence=%.3f "
            "risk_level=%s warnings=%d elapsed_ms=%.0f",
            self.kind.value,
            project_id,
            forecast.method.value,
            forecast.confidence_score,
            forecast.risk_level.value,
            len(forecast.warnings),
            timer.elapsed_ms,
        )

        if cfg.forecast.persist and self.db_path:
            self._persist(forecast, cfg)
        return forecast

    @abstractmethod
    def _build(
        self,
        snapshot: ProjectSnapshot,
        features: FeatureVector,
        config: AppConfig,
        now: datetime,
        forecast_id: str,
    ) -> Forecast:
        """Kind-specific forecast construction; never raises for short data."""
        ...

    # ── Shared helpers ────────────────────────────────────────────────────────

    def _detector(self, config: AppConfig) -> WarningDetector:
        return WarningDetector(config.warnings)

    def _trained_ensemble(
        self,
        project_id: str,
        examples: Sequence[TrainingExample],
        factory: Callable[[], E],
        families: Optional[Sequence[str]] = None,
        ensemble_config: Optional[EnsembleConfig] = None,
    ) -> E:
        """Train a fresh ensemble, or reuse a cached one.

        A cached ensemble is reused only for identical training data, family
        list and ensemble hyperparameters (``ensemble_config``, defaulting to
        the generator's own).
        """
        if self.cache is None:
            ensemble = factory()
            ensemble.train_ensemble(examples, families)  # type: ignore[attr-defined]
            return ensemble

        settings = training_settings(families, ensemble_config or self.config.ensemble)
        cached = self.cache.get(project_id, self.kind.value, examples, settings=settings)
        if cached is not None:
            logger.info("Reusing cached %s ensemble for project=%s", self.kind.value, project_id)
            return cached
        ensemble = factory()
        ensemble.train_ensemble(examples, families)  # type: ignore[attr-defined]
        self.cache.put(project_id, self.kind.value, examples, ensemble, settings=settings)
        return ensemble

    def _persist(self, forecast: Forecast, config: AppConfig) -> None:
        with store_session(self.db_path, config.database) as store:  # type: ignore[arg-type]
            store.save_forecast(forecast)
        logger.debug("Persisted forecast %s to %s", forecast.forecast_id, self.db_path)


def training_settings(families: Optional[Sequence[str]], ensemble: EnsembleConfig) -> str:
    """Canonical JSON of what an ensemble was trained with, for cache keys."""
    return json.dumps(
        {
            "families": [str(f) for f in families] if families is not None else None,
            "ensemble": ensemble.model_dump(mode="json"),
        },
        sort_keys=True,
    )


def step_intervals(
    values: Sequence[float],
    history_std: float,
    base_confidence: float,
    forecast_date: date,
    config: ForecastConfig,
    floor: Optional[float] = None,
    ceiling: Optional[float] = None,
) -> list[dict]:
    """Per-step dates, intervals and decayed confidences.

    Returns one dict per step with ``step``, ``target_date``, ``value``,
    ``lower``, ``upper`` and ``confidence`` keys, ready to unpack into a
    ``StepPrediction`` (or subclass).
    """
    dates = step_dates(forecast_date, len(values)) if values else []
    steps: list[dict] = []
    for i, (value, target) in enumerate(zip(values, dates)):
        lower, upper = confidence_interval(value, history_std, config.confidence_level, floor)
        if ceiling is not None:
            upper = min(upper, ceiling)
            value = min(value, ceiling)
            lower = min(lower, value)
        steps.append(
            {
                "step": i + 1,
                "target_date": target,
                "value": value,
                "lower": lower,
                "upper": max(upper, value),
                "confidence": step_confidence(
                    base_confidence,
                    i,
                    config.confidence_decay_per_step,
                    config.min_step_confidence,
                ),
            }
        )
    return steps

