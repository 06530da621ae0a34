"""
LightGBM model family.

Gradient boosting over the *flattened* window: a ``(W, F)`` window becomes a
single row of ``W * F`` columns named ``t{lag}_f{col}``. Regression targets
arrive standardized from ``ModelFamilyTrainer``; classification uses the
``multiclass`` objective with one output per risk category.

Like the neural families, the held-out split only feeds monitoring: the
booster always trains ``n_estimators`` rounds (no early stopping), and the
validation loss is computed once at the end.

Small sets
----------
LightGBM needs a handful of rows to find any split. Fewer than
``MIN_TRAIN_ROWS`` training windows raises ``ModelTrainingError``; the
ensemble records that and carries on with its other families.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

import lightgbm as lgb
import numpy as np

from construction_forecaster.errors import ModelPredictionError, ModelTrainingError
from construction_forecaster.ml.base import ModelFamilyTrainer, TrainedModel
from construction_forecaster.taxonomy.model_taxonomy import ModelFamily, Task

logger = logging.getLogger(__name__)

MIN_TRAIN_ROWS = 10


class GradientBoostingFamily(ModelFamilyTrainer):
    """LightGBM regressor / multiclass classifier over flattened windows."""

    family = ModelFamily.GRADIENT_BOOSTING

    def __init__(
        self,
        task: Task,
        n_classes: int = 1,
        n_estimators: int = 200,
        num_leaves: int = 31,
        max_depth: int = 6,
        learning_rate: float = 0.1,
        min_child_samples: int = 5,
        validation_split: float = 0.2,
        seed: int = 42,
    ) -> None:
        super().__init__(task, n_classes=n_classes, validation_split=validation_split, seed=seed)
        self._hyperparams: dict[str, Any] = {
            "num_leaves":        num_leaves,
            "max_depth":         max_depth,
            "learning_rate":     learning_rate,
            "min_child_samples": min_child_samples,
        }
        self.n_estimators = n_estimators

    def _params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            **self._hyperparams,
            "min_data_in_bin": 1,
            "seed":            self.seed,
            "deterministic":   True,
            "verbose":         -1,
            "n_jobs":          1,
        }
        if self.task == Task.REGRESSION:
            params.update({"objective": "regression", "metric": "l2"})
        else:
            params.update(
                {"objective": "multiclass", "num_class": self.n_classes, "metric": "multi_logloss"}
            )
        return params

    def _fit(
        self,
        X_train: np.ndarray,
        y_train: np.ndarray,
        X_val: np.ndarray,
        y_val: np.ndarray,
        window_length: int,
    ) -> tuple[Any, Optional[float]]:
        if len(X_train) < MIN_TRAIN_ROWS:
            raise ModelTrainingError(
                f"gradient_boosting needs >= {MIN_TRAIN_ROWS} training windows; "
                f"got {len(X_train)}."
            )

        n_features = X_train.shape[-1]
        feature_names = [f"t{t}_f{f}" for t in range(window_length) for f in range(n_features)]
        dtrain = lgb.Dataset(
            _flatten(X_train),
            label=y_train,
            feature_name=feature_names,
            free_raw_data=False,
        )

        try:
            booster = lgb.train(
                self._params(),
                dtrain,
                num_boost_round=self.n_estimators,
                callbacks=[lgb.log_evaluation(period=-1)],
            )
        except lgb.basic.LightGBMError as exc:
            raise ModelTrainingError(f"gradient_boosting: {exc}") from exc

        val_loss: Optional[float] = None
        if len(X_val):
            metrics = self._evaluate(booster, _flatten(X_val), y_val)
            val_loss = metrics["loss"]
            logger.debug("gradient_boosting validation metrics: %s", metrics)
        return booster, val_loss

    def _predict_scaled(self, trained: TrainedModel, X: np.ndarray) -> np.ndarray:
        try:
            raw = trained.model.predict(_flatten(X))
        except lgb.basic.LightGBMError as exc:
            raise ModelPredictionError(f"gradient_boosting: {exc}") from exc
        out = np.asarray(raw, dtype=np.float64)
        if trained.task == Task.CLASSIFICATION:
            return out.reshape(-1, trained.n_classes)[0]
        return out[:1]

    # ── Evaluation ────────────────────────────────────────────────────────────

    def _evaluate(self, booster: Any, X: np.ndarray, y: np.ndarray) -> dict[str, float]:
        """Validation loss (MSE or cross-entropy) plus MAE/RMSE for regression."""
        preds = np.asarray(booster.predict(X), dtype=np.float64)
        n = len(y)
        if self.task == Task.CLASSIFICATION:
            probs = np.clip(preds.reshape(n, self.n_classes), 1e-12, 1.0)
            ce = float(-np.mean(np.log(probs[np.arange(n), y.astype(np.int64)])))
            return {"loss": ce, "n_val": float(n)}
        err = y - preds
        mse = float(np.mean(err * err))
        return {
            "loss":  mse,
            "mae":   float(np.mean(np.abs(err))),
            "rmse":  math.sqrt(mse),
            "n_val": float(n),
        }


def _flatten(X: np.ndarray) -> np.ndarray:
    return X.reshape(X.shape[0], -1).astype(np.float64)
