"""
Ensemble trainer / predictor.

Two typed pipelines share one combination rule:

  RegressionEnsemble      cost: one float per window
  ClassificationEnsemble  risk: a probability simplex over categories

``train_ensemble(examples, families)`` trains every family independently on
the same examples. A family that fails is logged and recorded in
``failures``; only when *no* family trains is ``ModelTrainingError`` raised.

``predict_ensemble(window)`` asks every trained member for a prediction and
combines them with ``combine_predictions``:

    combined   = sum(w_i * p_i) / sum(w_i)
    variance   = mean((p_i - combined)^2)        (over members and outputs)
    confidence = 1 / (1 + sqrt(variance))        clamped to [0, 1]

Regression deviations are divided by the training-target std first, so the
confidence does not depend on the currency unit. Confidence is a
disagreement proxy between members, not a calibrated accuracy estimate.

Calling ``predict_ensemble`` before a successful ``train_ensemble`` raises
``EnsembleNotReadyError``.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from construction_forecaster.config import EnsembleConfig
from construction_forecaster.errors import EnsembleNotReadyError, ModelTrainingError
from construction_forecaster.features.sequences import TrainingExample
from construction_forecaster.ml.base import ModelFamilyTrainer, TrainedModel
from construction_forecaster.ml.families import build_family
from construction_forecaster.ml.weighting import WeightingStrategy, build_weighting
from construction_forecaster.taxonomy.model_taxonomy import ModelFamily, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnsemblePrediction:
    """Combined prediction plus the per-member outputs that produced it.

    Attributes:
        prediction: Float (regression) or probability array (classification).
        confidence: Disagreement proxy in [0, 1].
        members: Raw member outputs keyed by family value.
    """

    prediction: float | np.ndarray
    confidence: float
    members: dict[str, np.ndarray] = field(default_factory=dict)


def combine_predictions(
    predictions: Sequence[np.ndarray | float],
    weights: Sequence[float],
    scale: float = 1.0,
) -> tuple[np.ndarray, float]:
    """Weight-normalized average of member predictions and its confidence.

    Args:
        predictions: One prediction per member (scalar or 1-D array; all the
            same shape).
        weights: One non-negative weight per member.
        scale: Divisor applied to deviations before computing the variance.

    Returns:
        ``(combined, confidence)`` where ``combined`` is a 1-D array.

    Raises:
        ValueError: On empty input, mismatched lengths or all-zero weights.
    """
    if not predictions:
        raise ValueError("combine_predictions() needs at least one prediction.")
    if len(predictions) != len(weights):
        raise ValueError(
            f"Got {len(predictions)} predictions but {len(weights)} weights."
        )
    P = np.stack([np.atleast_1d(np.asarray(p, dtype=np.float64)) for p in predictions])
    w = np.asarray(weights, dtype=np.float64)
    if np.any(w < 0) or w.sum() <= 0:
        raise ValueError(f"Weights must be non-negative with a positive sum, got {list(w)}.")
    w = w / w.sum()

    combined = (w[:, None] * P).sum(axis=0)
    deviations = (P - combined) / (scale if scale > 0 else 1.0)
    variance = float(np.mean(deviations ** 2))
    confidence = 1.0 / (1.0 + math.sqrt(variance))
    return combined, min(1.0, max(0.0, confidence))


class _SequenceEnsemble(ABC):
    """Shared train/predict machinery for the two typed ensembles.

    Subclasses set ``task`` and name the families trained when
    ``train_ensemble`` gets none.
    """

    task: Task

    def __init__(
        self,
        config: Optional[EnsembleConfig] = None,
        weighting: Optional[WeightingStrategy] = None,
        n_classes: int = 1,
    ) -> None:
        self.config = config or EnsembleConfig()
        self.weighting = weighting or build_weighting(self.config.weighting)
        self.n_classes = n_classes
        self._trainers: dict[ModelFamily, ModelFamilyTrainer] = {}
        self._models: dict[ModelFamily, TrainedModel] = {}
        self._weights: dict[ModelFamily, float] = {}
        self.failures: dict[str, str] = {}

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def is_ready(self) -> bool:
        return bool(self._models)

    @property
    def families(self) -> list[ModelFamily]:
        return list(self._models)

    @property
    def weights(self) -> dict[ModelFamily, float]:
        return dict(self._weights)

    # ── Training ──────────────────────────────────────────────────────────────

    def train_ensemble(
        self,
        examples: Sequence[TrainingExample],
        families: Optional[Sequence[ModelFamily | str]] = None,
    ) -> "_SequenceEnsemble":
        """Train each family on the same examples.

        Only the most recent ``max_training_examples`` windows are used.

        Raises:
            ModelTrainingError: If no family could be trained.
        """
        names = families if families is not None else self._default_families()
        selected = [ModelFamily(name) for name in names]
        if not selected:
            raise ModelTrainingError("No model families requested.")

        capped = list(examples)[-self.config.max_training_examples:]
        self._trainers.clear()
        self._models.clear()
        self.failures = {}

        for family in selected:
            trainer = build_family(family, self.task, self.config, n_classes=self.n_classes)
            try:
                self._models[family] = trainer.train(capped)
                self._trainers[family] = trainer
            except ModelTrainingError as exc:
                logger.warning("Family %s failed to train: %s", family.value, exc)
                self.failures[family.value] = str(exc)

        if not self._models:
            raise ModelTrainingError(
                f"No model family could be trained ({len(selected)} attempted).",
                failures=self.failures,
            )

        self._weights = self.weighting.weights(self._models)
        self._after_training(capped)
        logger.info(
            "Ensemble (%s) trained on %d examples: weights=%s failures=%d",
            self.task.value,
            len(capped),
            {f.value: round(w, 4) for f, w in self._weights.items()},
            len(self.failures),
        )
        return self

    # ── Inference ─────────────────────────────────────────────────────────────

    def _member_predictions(
        self, window: Sequence[Sequence[float]]
    ) -> tuple[list[np.ndarray], list[float], dict[str, np.ndarray]]:
        if not self._models:
            raise EnsembleNotReadyError()
        preds: list[np.ndarray] = []
        weights: list[float] = []
        members: dict[str, np.ndarray] = {}
        for family, trained in self._models.items():
            out = self._trainers[family].predict(trained, window)
            preds.append(out)
            weights.append(self._weights.get(family, 1.0))
            members[family.value] = out
        return preds, weights, members

    @abstractmethod
    def _default_families(self) -> list[str]:
        """Families from config used when ``train_ensemble`` is given none."""

    def _after_training(self, examples: Sequence[TrainingExample]) -> None:
        return None


class RegressionEnsemble(_SequenceEnsemble):
    """Ensemble producing one continuous value per window."""

    task = Task.REGRESSION

    def __init__(
        self,
        config: Optional[EnsembleConfig] = None,
        weighting: Optional[WeightingStrategy] = None,
    ) -> None:
        super().__init__(config, weighting, n_classes=1)
        self.target_scale = 1.0

    def _default_families(self) -> list[str]:
        return list(self.config.cost.families)

    def _after_training(self, examples: Sequence[TrainingExample]) -> None:
        targets = np.array([ex.target_value for ex in examples], dtype=np.float64)
        self.target_scale = float(targets.std()) if len(targets) else 1.0
        if self.target_scale == 0:
            self.target_scale = 1.0

    def predict_ensemble(self, window: Sequence[Sequence[float]]) -> EnsemblePrediction:
        """Combined value and confidence for one window.

        Raises:
            EnsembleNotReadyError: If called before ``train_ensemble``.
        """
        preds, weights, members = self._member_predictions(window)
        combined, confidence = combine_predictions(preds, weights, scale=self.target_scale)
        return EnsemblePrediction(
            prediction=float(combined[0]), confidence=confidence, members=members
        )


class ClassificationEnsemble(_SequenceEnsemble):
    """Ensemble producing a probability simplex per window."""

    task = Task.CLASSIFICATION

    def __init__(
        self,
        n_classes: int,
        config: Optional[EnsembleConfig] = None,
        weighting: Optional[WeightingStrategy] = None,
    ) -> None:
        super().__init__(config, weighting, n_classes=n_classes)

    def _default_families(self) -> list[str]:
        return list(self.config.risk.families)

    def predict_ensemble(self, window: Sequence[Sequence[float]]) -> EnsemblePrediction:
        """Combined class distribution (sums to 1) and confidence for one window.

        Raises:
            EnsembleNotReadyError: If called before ``train_ensemble``.
        """
        preds, weights, members = self._member_predictions(window)
        combined, confidence = combine_predictions(preds, weights)
        combined = np.clip(combined, 0.0, None)
        total = combined.sum()
        if total > 0:
            combined = combined / total
        else:
            combined = np.full(self.n_classes, 1.0 / self.n_classes)
        return EnsemblePrediction(prediction=combined, confidence=confidence, members=members)
