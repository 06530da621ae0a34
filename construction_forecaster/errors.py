"""
Exception taxonomy for the forecasting engine.

  ForecastEngineError
  ├── DataNotFoundError         fatal: the project snapshot could not be fetched
  ├── InsufficientHistoryError  recoverable: triggers the trend fallback
  ├── ModelTrainingError        recoverable: becomes a degraded forecast + warning
  ├── ModelPredictionError      recoverable: a trained member failed at inference
  └── EnsembleNotReadyError     programming error: predict before train

Feature extraction and sequence building never raise; they degrade to zeros
and empty lists respectively. Generators catch the recoverable errors at
their boundary, so callers only ever see ``DataNotFoundError`` (and
``EnsembleNotReadyError`` if the orchestration itself is broken).
"""

from __future__ import annotations


class ForecastEngineError(Exception):
    """Base class for all engine errors."""


class DataNotFoundError(ForecastEngineError):
    """Referenced project (or its records) is absent from the data source."""

    def __init__(self, project_id: str, detail: str = "project not found") -> None:
        self.project_id = project_id
        super().__init__(f"{detail}: {project_id!r}")


class InsufficientHistoryError(ForecastEngineError):
    """A series is too short to build a single training window."""

    def __init__(self, points: int, required: int) -> None:
        self.points = points
        self.required = required
        super().__init__(
            f"Need at least {required} history points to train; got {points}."
        )


class ModelTrainingError(ForecastEngineError):
    """No model family could be trained (or used) for this request."""

    def __init__(self, message: str, failures: dict[str, str] | None = None) -> None:
        self.failures = dict(failures or {})
        super().__init__(message)


class ModelPredictionError(ForecastEngineError):
    """A trained model raised while predicting one window."""


class EnsembleNotReadyError(ForecastEngineError):
    """``predict`` was called on an ensemble with no trained members."""

    def __init__(self) -> None:
        super().__init__("No trained models in ensemble; call train() first.")
