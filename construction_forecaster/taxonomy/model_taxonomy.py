"""
Model-family taxonomy.

Every trainable architecture is a member of ``ModelFamily``; the ensemble and
the config layer refer to families only through this enum, never through
free-form strings. ``Task`` distinguishes the two typed pipelines: cost
regression and risk-category classification.

This module has NO imports from any other ``construction_forecaster`` package.
"""

from enum import StrEnum


class ModelFamily(StrEnum):
    """Trainable sequence-to-output architectures."""

    LSTM_ATTENTION = "lstm_attention"
    """Stacked LSTM encoder with learned attention pooling over time."""

    SELF_ATTENTION = "self_attention"
    """Stacked multi-head self-attention blocks with mean pooling."""

    GRADIENT_BOOSTING = "gradient_boosting"
    """LightGBM over the flattened window."""


class Task(StrEnum):
    """Output type of a trained model."""

    REGRESSION = "regression"
    CLASSIFICATION = "classification"


class ForecastKind(StrEnum):
    """Kind of forecast produced by a generator."""

    COST = "cost"
    RISK = "risk"


class ForecastMethod(StrEnum):
    """How a forecast's predictions were produced."""

    ENSEMBLE = "ensemble"
    TREND_FALLBACK = "trend_fallback"
