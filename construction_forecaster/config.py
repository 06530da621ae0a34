"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      committed static defaults
  2. ``config/local.toml``        optional local overrides (gitignored)
  3. ``.env``                     local secrets and env overrides (gitignored)
  4. Environment variables        ``CONSTRUCTION_FORECASTER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Forecast generators, the scenario analyzer, the warning detector and CLI
commands all receive an ``AppConfig`` (or one of its sections). Horizon,
confidence level, model families, warning thresholds and scenario deltas are
therefore tunable per deployment without touching code.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from construction_forecaster.taxonomy.model_taxonomy import ModelFamily

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/construction_forecaster.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class ForecastConfig(BaseModel):
    """Forecast generation settings shared by the cost and risk generators."""

    model_config = ConfigDict(frozen=True)

    horizon_steps: int = 30
    max_horizon_steps: int = 365
    confidence_level: float = 0.95
    expiry_days: int = 7
    fallback_confidence: float = 0.3
    confidence_decay_per_step: float = 0.02
    min_step_confidence: float = 0.5
    trend_lookback_points: int = 30
    anomaly_z_threshold: float = 3.0
    persist: bool = True

    @field_validator("confidence_level")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError(f"confidence_level must be in (0.0, 1.0), got {v}.")
        return v

    @field_validator("fallback_confidence", "min_step_confidence")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"Confidence values must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("horizon_steps", "trend_lookback_points", "expiry_days")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v

    @model_validator(mode="after")
    def validate_horizon_cap(self) -> "ForecastConfig":
        if self.horizon_steps > self.max_horizon_steps:
            raise ValueError(
                f"horizon_steps ({self.horizon_steps}) exceeds "
                f"max_horizon_steps ({self.max_horizon_steps})."
            )
        return self


class FeatureConfig(BaseModel):
    """Feature engineering parameters.

    Seasonal flags are calendar rules, not learned: a month listed in
    ``peak_season_months`` sets ``is_peak_season``.
    """

    model_config = ConfigDict(frozen=True)

    risk_trend_window: int = 5
    default_project_duration_days: int = 30
    peak_season_months: list[int] = [4, 5, 6, 7, 8, 9, 10, 11]
    holiday_season_months: list[int] = [12]

    @field_validator("peak_season_months", "holiday_season_months")
    @classmethod
    def validate_months(cls, v: list[int]) -> list[int]:
        bad = [m for m in v if not 1 <= m <= 12]
        if bad:
            raise ValueError(f"Months must be in 1..12, got {bad}.")
        return v


class TaskEnsembleConfig(BaseModel):
    """Which model families are trained for one forecast task, and on what window."""

    model_config = ConfigDict(frozen=True)

    window_length: int = 60
    families: list[str] = ["lstm_attention", "gradient_boosting"]

    @field_validator("families")
    @classmethod
    def validate_families(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one model family must be configured.")
        valid = {f.value for f in ModelFamily}
        unknown = [name for name in v if name not in valid]
        if unknown:
            raise ValueError(f"Unknown model families {unknown}; valid: {sorted(valid)}.")
        return v

    @field_validator("window_length")
    @classmethod
    def validate_window(cls, v: int) -> int:
        if v < 2:
            raise ValueError(f"window_length must be >= 2, got {v}.")
        return v


class LSTMAttentionConfig(BaseModel):
    """Hyperparameters for the recurrent-with-attention family."""

    model_config = ConfigDict(frozen=True)

    hidden_size: int = 64
    num_layers: int = 2
    dropout: float = 0.2
    learning_rate: float = 0.001
    epochs: int = 100
    batch_size: int = 32


class SelfAttentionConfig(BaseModel):
    """Hyperparameters for the stacked self-attention family."""

    model_config = ConfigDict(frozen=True)

    hidden_size: int = 128
    num_layers: int = 4
    num_heads: int = 8
    dropout: float = 0.3
    learning_rate: float = 0.0005
    epochs: int = 120
    batch_size: int = 32

    @model_validator(mode="after")
    def validate_heads(self) -> "SelfAttentionConfig":
        if self.hidden_size % self.num_heads != 0:
            raise ValueError(
                f"hidden_size ({self.hidden_size}) must be divisible by "
                f"num_heads ({self.num_heads})."
            )
        return self


class GradientBoostingConfig(BaseModel):
    """Hyperparameters for the LightGBM family."""

    model_config = ConfigDict(frozen=True)

    n_estimators: int = 200
    num_leaves: int = 31
    max_depth: int = 6
    learning_rate: float = 0.1
    min_child_samples: int = 5


class EnsembleConfig(BaseModel):
    """Ensemble training and combination settings."""

    model_config = ConfigDict(frozen=True)

    cost: TaskEnsembleConfig = TaskEnsembleConfig()
    risk: TaskEnsembleConfig = TaskEnsembleConfig(
        families=["self_attention", "lstm_attention"]
    )
    lstm_attention: LSTMAttentionConfig = LSTMAttentionConfig()
    self_attention: SelfAttentionConfig = SelfAttentionConfig()
    gradient_boosting: GradientBoostingConfig = GradientBoostingConfig()
    weighting: str = "static"
    validation_split: float = 0.2
    seed: int = 42
    max_training_examples: int = 2000
    cache_trained_models: bool = False
    cache_ttl_minutes: int = 60
    risk_blend_weight: float = 0.5

    @field_validator("weighting")
    @classmethod
    def validate_weighting(cls, v: str) -> str:
        valid = {"static", "inverse_validation_error"}
        if v not in valid:
            raise ValueError(f"weighting must be one of {sorted(valid)}, got '{v}'.")
        return v

    @field_validator("validation_split")
    @classmethod
    def validate_split(cls, v: float) -> float:
        if not 0.0 <= v < 1.0:
            raise ValueError(f"validation_split must be in [0.0, 1.0), got {v}.")
        return v

    @field_validator("risk_blend_weight")
    @classmethod
    def validate_blend(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"risk_blend_weight must be in [0.0, 1.0], got {v}.")
        return v


class WarningThresholdsConfig(BaseModel):
    """Threshold table for the warning detector.

    Each rule fires independently; see ``forecasting/warnings.py``.
    """

    model_config = ConfigDict(frozen=True)

    budget_utilization_high: float = 0.9
    schedule_variance_high: float = -0.2
    critical_risk_score: float = 75.0
    projected_overrun_high: float = 0.10
    projected_overrun_critical: float = 0.20
    quality_score_low: float = 60.0
    risk_trend_rising: float = 0.25
    market_volatility_high: float = 0.7

    @model_validator(mode="after")
    def validate_overrun_order(self) -> "WarningThresholdsConfig":
        if self.projected_overrun_critical < self.projected_overrun_high:
            raise ValueError(
                "projected_overrun_critical must be >= projected_overrun_high."
            )
        return self


class ScenarioConfig(BaseModel):
    """Scenario probabilities and heuristic outcome deltas.

    Baseline is always the unadjusted projection; the optimistic and
    pessimistic alternatives apply these deltas to it.
    """

    model_config = ConfigDict(frozen=True)

    baseline_probability: float = 0.6
    optimistic_probability: float = 0.2
    pessimistic_probability: float = 0.2
    optimistic_cost_factor: float = 0.9
    pessimistic_cost_factor: float = 1.3
    optimistic_schedule_days: int = -15
    pessimistic_schedule_days: int = 30
    optimistic_risk_delta: float = -20.0
    pessimistic_risk_delta: float = 20.0
    optimistic_quality_delta: float = 10.0
    pessimistic_quality_delta: float = -15.0

    @model_validator(mode="after")
    def validate_probabilities(self) -> "ScenarioConfig":
        probs = (
            self.baseline_probability,
            self.optimistic_probability,
            self.pessimistic_probability,
        )
        if any(not 0.0 <= p <= 1.0 for p in probs):
            raise ValueError(f"Scenario probabilities must be in [0, 1], got {probs}.")
        if abs(sum(probs) - 1.0) > 1e-9:
            raise ValueError(f"Scenario probabilities must sum to 1.0, got {sum(probs)}.")
        return self


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/forecaster.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    Tests usually build one directly with tiny ensemble settings.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    forecast: ForecastConfig = ForecastConfig()
    features: FeatureConfig = FeatureConfig()
    ensemble: EnsembleConfig = EnsembleConfig()
    warnings: WarningThresholdsConfig = WarningThresholdsConfig()
    scenarios: ScenarioConfig = ScenarioConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent
_ENV_PREFIX = "CONSTRUCTION_FORECASTER_"


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config explicitly."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply CONSTRUCTION_FORECASTER_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply CONSTRUCTION_FORECASTER_* env vars to the raw config dict.

    Supported overrides:
      CONSTRUCTION_FORECASTER_DB_PATH    -> raw["database"]["db_path"]
      CONSTRUCTION_FORECASTER_LOG_LEVEL  -> raw["logging"]["level"]
      CONSTRUCTION_FORECASTER_HORIZON    -> raw["forecast"]["horizon_steps"]
      CONSTRUCTION_FORECASTER_DEBUG      -> raw["debug"]
    """
    if db_path := os.environ.get(f"{_ENV_PREFIX}DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get(f"{_ENV_PREFIX}LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if horizon := os.environ.get(f"{_ENV_PREFIX}HORIZON"):
        raw.setdefault("forecast", {})["horizon_steps"] = int(horizon)

    if debug := os.environ.get(f"{_ENV_PREFIX}DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})
    ensemble_raw = dict(raw.get("ensemble", {}))

    ensemble = EnsembleConfig(
        cost=TaskEnsembleConfig(**ensemble_raw.pop("cost", {})),
        risk=TaskEnsembleConfig(
            **{"families": ["self_attention", "lstm_attention"], **ensemble_raw.pop("risk", {})}
        ),
        lstm_attention=LSTMAttentionConfig(**ensemble_raw.pop("lstm_attention", {})),
        self_attention=SelfAttentionConfig(**ensemble_raw.pop("self_attention", {})),
        gradient_boosting=GradientBoostingConfig(**ensemble_raw.pop("gradient_boosting", {})),
        **ensemble_raw,
    )

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        forecast=ForecastConfig(**raw.get("forecast", {})),
        features=FeatureConfig(**raw.get("features", {})),
        ensemble=ensemble,
        warnings=WarningThresholdsConfig(**raw.get("warnings", {})),
        scenarios=ScenarioConfig(**raw.get("scenarios", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
