"""
Shared contract for model families.

Every family exposes ``train(examples) -> TrainedModel`` and
``predict(trained, window) -> np.ndarray`` so the ensemble can treat them
polymorphically. ``predict`` always returns a 1-D array: length 1 for
regression, one probability per class for classification.

Scaling
-------
Families standardize input columns with statistics from the training
windows (constant columns get a std of 1). Regression targets are
standardized too, so ``TrainedModel.val_loss`` is an MSE in target-std units
for every regression family and a cross-entropy for every classifier; the
inverse-validation-error weighting relies on that.

Validation split
----------------
A seeded random ``validation_split`` fraction of windows is held out purely
for monitoring. It is logged and stored on the ``TrainedModel``; training
always runs the configured number of epochs/rounds (no early stopping).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from construction_forecaster.errors import ModelTrainingError
from construction_forecaster.features.sequences import TrainingExample, examples_to_arrays
from construction_forecaster.taxonomy.model_taxonomy import ModelFamily, Task

logger = logging.getLogger(__name__)


@dataclass
class TrainedModel:
    """A fitted model plus the statistics needed to run inference.

    Attributes:
        family: Which architecture produced it.
        task: Regression or classification.
        model: ``torch.nn.Module`` or ``lightgbm.Booster``.
        feature_mean / feature_std: Per-column input scaling, shape (F,).
        target_mean / target_std: Regression target scaling (0 / 1 otherwise).
        n_classes: Output width for classification, 1 for regression.
        window_length: Rows per input window.
        val_loss: Monitoring loss on the held-out split, or ``None`` when the
            split was empty.
        n_train / n_val: Example counts on each side of the split.
    """

    family: ModelFamily
    task: Task
    model: Any
    feature_mean: np.ndarray
    feature_std: np.ndarray
    target_mean: float = 0.0
    target_std: float = 1.0
    n_classes: int = 1
    window_length: int = 0
    val_loss: Optional[float] = None
    n_train: int = 0
    n_val: int = 0


class ModelFamilyTrainer(ABC):
    """Base for all family implementations.

    Subclasses set ``family`` and implement ``_fit`` / ``_predict_scaled``.
    """

    family: ModelFamily

    def __init__(
        self,
        task: Task,
        n_classes: int = 1,
        validation_split: float = 0.2,
        seed: int = 42,
    ) -> None:
        if task == Task.CLASSIFICATION and n_classes < 2:
            raise ValueError(f"Classification needs n_classes >= 2, got {n_classes}.")
        self.task = task
        self.n_classes = n_classes if task == Task.CLASSIFICATION else 1
        self.validation_split = validation_split
        self.seed = seed

    # ── Public contract ───────────────────────────────────────────────────────

    def train(self, examples: Sequence[TrainingExample]) -> TrainedModel:
        """Fit on ``examples`` and return the trained model.

        Raises:
            ModelTrainingError: If the family cannot be trained on these examples.
        """
        if not examples:
            raise ModelTrainingError(f"{self.family.value}: no training examples.")

        X, y = examples_to_arrays(examples)
        n, window_length, n_features = X.shape
        flat = X.reshape(-1, n_features)
        feature_mean = flat.mean(axis=0)
        feature_std = flat.std(axis=0)
        feature_std[feature_std == 0] = 1.0
        Xs = ((X - feature_mean) / feature_std).astype(np.float32)

        target_mean, target_std = 0.0, 1.0
        if self.task == Task.REGRESSION:
            target_mean = float(y.mean())
            target_std = float(y.std()) or 1.0
            ys = ((y - target_mean) / target_std).astype(np.float32)
        else:
            ys = y.astype(np.int64)
            if ys.min() < 0 or ys.max() >= self.n_classes:
                raise ModelTrainingError(
                    f"{self.family.value}: class labels must be in [0, {self.n_classes})."
                )

        train_idx, val_idx = split_indices(n, self.validation_split, self.seed)
        trained = TrainedModel(
            family=self.family,
            task=self.task,
            model=None,
            feature_mean=feature_mean,
            feature_std=feature_std,
            target_mean=target_mean,
            target_std=target_std,
            n_classes=self.n_classes,
            window_length=window_length,
            n_train=len(train_idx),
            n_val=len(val_idx),
        )
        try:
            trained.model, trained.val_loss = self._fit(
                Xs[train_idx], ys[train_idx], Xs[val_idx], ys[val_idx], window_length
            )
        except (RuntimeError, ValueError) as exc:
            raise ModelTrainingError(f"{self.family.value}: {exc}") from exc
        logger.info(
            "Trained %s (%s): n_train=%d n_val=%d val_loss=%s",
            self.family.value,
            self.task.value,
            trained.n_train,
            trained.n_val,
            f"{trained.val_loss:.4f}" if trained.val_loss is not None else "n/a",
        )
        return trained

    def predict(self, trained: TrainedModel, window: Sequence[Sequence[float]]) -> np.ndarray:
        """Predict for one window (``window_length`` rows).

        Returns:
            Regression: array of shape (1,) in original target units.
            Classification: probability simplex of shape (n_classes,).
        """
        x = np.asarray(window, dtype=np.float32)
        if x.ndim != 2 or x.shape[0] != trained.window_length:
            raise ValueError(
                f"Expected a window of shape ({trained.window_length}, F); got {x.shape}."
            )
        xs = ((x - trained.feature_mean) / trained.feature_std).astype(np.float32)
        out = np.asarray(self._predict_scaled(trained, xs[None, ...]), dtype=np.float64).ravel()
        if trained.task == Task.REGRESSION:
            return out[:1] * trained.target_std + trained.target_mean
        return out

    # ── Subclass hooks ────────────────────────────────────────────────────────

    @abstractmethod
    def _fit(
        self,
        X_train: np.ndarray,
        y_train: np.ndarray,
        X_val: np.ndarray,
        y_val: np.ndarray,
        window_length: int,
    ) -> tuple[Any, Optional[float]]:
        """Fit on scaled arrays; return ``(model, val_loss_or_None)``."""

    @abstractmethod
    def _predict_scaled(self, trained: TrainedModel, X: np.ndarray) -> np.ndarray:
        """Predict on scaled windows of shape (1, W, F).

        Regression returns the scaled target; classification returns
        probabilities.
        """


def split_indices(n: int, validation_split: float, seed: int) -> tuple[np.ndarray, np.ndarray]:
    """Seeded random train/validation index split.

    The validation side is empty when ``validation_split`` is 0 or the split
    would leave fewer than 2 training examples.
    """
    rng = np.random.default_rng(seed)
    order = rng.permutation(n)
    n_val = int(n * validation_split)
    if n_val == 0 or n - n_val < 2:
        return np.sort(order), np.array([], dtype=np.int64)
    return np.sort(order[n_val:]), np.sort(order[:n_val])
