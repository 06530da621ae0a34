"""
Sliding-window sequence builder.

Turns a time-ordered series into ``(window -> next value)`` training pairs:

    rows:     r0 r1 r2 r3 r4 r5
    W = 3:    [r0 r1 r2] -> t3
              [r1 r2 r3] -> t4
              [r2 r3 r4] -> t5

Stride is 1 and order is preserved; nothing here shuffles. Any train/
validation split happens later, inside each model family.

A series shorter than ``window_length + 1`` yields an empty list. Callers
treat that as insufficient history and fall back to the trend estimator;
nothing in this module raises for short input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from construction_forecaster.models.timeseries import TimeSeriesPoint


@dataclass(frozen=True)
class TrainingExample:
    """One history window and the observation that followed it.

    Attributes:
        window_features: ``window_length`` rows, each a tuple of floats.
        target_value: Next value (regression) or class index (classification).
    """

    window_features: tuple[tuple[float, ...], ...]
    target_value: float

    @property
    def window_length(self) -> int:
        return len(self.window_features)


def point_row(
    point: TimeSeriesPoint,
    context: Optional[Sequence[float]] = None,
) -> tuple[float, ...]:
    """Model input row for one series point: value, anomaly flag, then context."""
    return (float(point.value), 1.0 if point.is_anomaly else 0.0, *map(float, context or ()))


def build_sequences(
    series: Sequence[TimeSeriesPoint],
    window_length: int,
    context: Optional[Sequence[float]] = None,
) -> list[TrainingExample]:
    """Build next-value training pairs from a time series.

    Args:
        series: Points ordered by timestamp.
        window_length: Rows per window.
        context: Optional static features appended to every row (e.g. the
            project feature subset the cost models condition on).

    Returns:
        ``len(series) - window_length`` examples, or ``[]`` when the series
        is shorter than ``window_length + 1``.
    """
    rows = [point_row(p, context) for p in series]
    targets = [p.value for p in series]
    return build_windowed_examples(rows, targets, window_length)


def build_windowed_examples(
    rows: Sequence[Sequence[float]],
    targets: Sequence[float],
    window_length: int,
) -> list[TrainingExample]:
    """Generic sliding window: ``rows[i:i+W]`` predicts ``targets[i+W]``.

    ``rows`` and ``targets`` are aligned by index. Returns ``[]`` when fewer
    than ``window_length + 1`` rows are available or the inputs are misaligned.
    """
    if window_length < 1 or len(rows) != len(targets) or len(rows) < window_length + 1:
        return []
    frozen_rows = [tuple(float(v) for v in row) for row in rows]
    return [
        TrainingExample(
            window_features=tuple(frozen_rows[i: i + window_length]),
            target_value=float(targets[i + window_length]),
        )
        for i in range(len(rows) - window_length)
    ]


def latest_window(
    rows: Sequence[Sequence[float]],
    window_length: int,
) -> Optional[tuple[tuple[float, ...], ...]]:
    """The most recent ``window_length`` rows, or ``None`` if there are fewer."""
    if window_length < 1 or len(rows) < window_length:
        return None
    return tuple(tuple(float(v) for v in row) for row in rows[-window_length:])


def examples_to_arrays(examples: Sequence[TrainingExample]) -> tuple[np.ndarray, np.ndarray]:
    """Stack examples into ``X`` of shape (n, W, F) and ``y`` of shape (n,)."""
    X = np.array([ex.window_features for ex in examples], dtype=np.float32)
    y = np.array([ex.target_value for ex in examples], dtype=np.float32)
    return X, y


def has_enough_history(n_points: int, window_length: int) -> bool:
    """True when a series of ``n_points`` yields at least one training pair."""
    return n_points >= window_length + 1
