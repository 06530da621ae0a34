"""
Neural model families and the family factory.

``build_family()`` is the only place a ``ModelFamily`` member is mapped to an
implementation; a family added to the enum but not wired here raises
``ValueError``.

Torch training loop
-------------------
Adam + MSE (regression) or cross-entropy (classification), shuffled
mini-batches from a seeded generator, a fixed number of epochs. The held-out
split is evaluated after the final epoch for monitoring only.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, Optional

import numpy as np
import torch
from torch import nn
from torch.utils.data import DataLoader, TensorDataset

from construction_forecaster.config import EnsembleConfig
from construction_forecaster.ml.base import ModelFamilyTrainer, TrainedModel
from construction_forecaster.ml.gbm import GradientBoostingFamily
from construction_forecaster.ml.networks import AttentionLSTMNet, SelfAttentionNet
from construction_forecaster.taxonomy.model_taxonomy import ModelFamily, Task

logger = logging.getLogger(__name__)


class TorchSequenceFamily(ModelFamilyTrainer):
    """Shared fit/predict loop for the torch architectures."""

    def __init__(
        self,
        task: Task,
        n_classes: int = 1,
        learning_rate: float = 1e-3,
        epochs: int = 100,
        batch_size: int = 32,
        validation_split: float = 0.2,
        seed: int = 42,
    ) -> None:
        super().__init__(task, n_classes=n_classes, validation_split=validation_split, seed=seed)
        self.learning_rate = learning_rate
        self.epochs = epochs
        self.batch_size = batch_size

    @abstractmethod
    def _build_network(self, n_features: int, window_length: int) -> nn.Module:
        """Construct a fresh, untrained network."""

    def _loss_fn(self) -> nn.Module:
        return nn.MSELoss() if self.task == Task.REGRESSION else nn.CrossEntropyLoss()

    def _targets(self, y: np.ndarray) -> torch.Tensor:
        if self.task == Task.REGRESSION:
            return torch.tensor(y, dtype=torch.float32)
        return torch.tensor(y, dtype=torch.long)

    def _outputs(self, model: nn.Module, x: torch.Tensor) -> torch.Tensor:
        out = model(x)
        return out.squeeze(-1) if self.task == Task.REGRESSION else out

    def _fit(
        self,
        X_train: np.ndarray,
        y_train: np.ndarray,
        X_val: np.ndarray,
        y_val: np.ndarray,
        window_length: int,
    ) -> tuple[Any, Optional[float]]:
        torch.manual_seed(self.seed)
        generator = torch.Generator().manual_seed(self.seed)

        n_features = X_train.shape[-1]
        model = self._build_network(n_features, window_length)
        optimizer = torch.optim.Adam(model.parameters(), lr=self.learning_rate)
        loss_fn = self._loss_fn()

        train_ds = TensorDataset(torch.tensor(X_train, dtype=torch.float32), self._targets(y_train))
        train_loader = DataLoader(
            train_ds, batch_size=self.batch_size, shuffle=True, generator=generator
        )

        for epoch in range(self.epochs):
            model.train()
            train_losses = []
            for batch_x, batch_y in train_loader:
                optimizer.zero_grad()
                loss = loss_fn(self._outputs(model, batch_x), batch_y)
                loss.backward()
                optimizer.step()
                train_losses.append(loss.item())
            logger.debug(
                "%s epoch %d/%d train_loss=%.4f",
                self.family.value,
                epoch + 1,
                self.epochs,
                float(np.mean(train_losses)) if train_losses else float("nan"),
            )

        model.eval()
        val_loss: Optional[float] = None
        if len(X_val):
            with torch.no_grad():
                val_out = self._outputs(model, torch.tensor(X_val, dtype=torch.float32))
                val_loss = float(loss_fn(val_out, self._targets(y_val)).item())
        return model, val_loss

    def _predict_scaled(self, trained: TrainedModel, X: np.ndarray) -> np.ndarray:
        model: nn.Module = trained.model
        model.eval()
        with torch.no_grad():
            out = model(torch.tensor(X, dtype=torch.float32))
            if trained.task == Task.CLASSIFICATION:
                out = torch.softmax(out, dim=-1)
        return out.numpy()


class LSTMAttentionFamily(TorchSequenceFamily):
    """Recurrent-with-attention family (``AttentionLSTMNet``)."""

    family = ModelFamily.LSTM_ATTENTION

    def __init__(
        self,
        task: Task,
        n_classes: int = 1,
        hidden_size: int = 64,
        num_layers: int = 2,
        dropout: float = 0.2,
        **kwargs,
    ) -> None:
        super().__init__(task, n_classes=n_classes, **kwargs)
        self.hidden_size = hidden_size
        self.num_layers = num_layers
        self.dropout = dropout

    def _build_network(self, n_features: int, window_length: int) -> nn.Module:
        return AttentionLSTMNet(
            input_size=n_features,
            hidden_size=self.hidden_size,
            num_layers=self.num_layers,
            dropout=self.dropout,
            output_size=self.n_classes,
        )


class SelfAttentionFamily(TorchSequenceFamily):
    """Stacked self-attention family (``SelfAttentionNet``)."""

    family = ModelFamily.SELF_ATTENTION

    def __init__(
        self,
        task: Task,
        n_classes: int = 1,
        hidden_size: int = 128,
        num_layers: int = 4,
        num_heads: int = 8,
        dropout: float = 0.3,
        **kwargs,
    ) -> None:
        if hidden_size % num_heads != 0:
            raise ValueError(
                f"hidden_size ({hidden_size}) must be divisible by num_heads ({num_heads})."
            )
        super().__init__(task, n_classes=n_classes, **kwargs)
        self.hidden_size = hidden_size
        self.num_layers = num_layers
        self.num_heads = num_heads
        self.dropout = dropout

    def _build_network(self, n_features: int, window_length: int) -> nn.Module:
        return SelfAttentionNet(
            input_size=n_features,
            window_length=window_length,
            hidden_size=self.hidden_size,
            num_layers=self.num_layers,
            num_heads=self.num_heads,
            dropout=self.dropout,
            output_size=self.n_classes,
        )


def build_family(
    family: ModelFamily,
    task: Task,
    config: Optional[EnsembleConfig] = None,
    n_classes: int = 1,
) -> ModelFamilyTrainer:
    """Instantiate the trainer for ``family`` with hyperparameters from config.

    Args:
        family: Which architecture to build.
        task: Regression or classification.
        config: Ensemble settings; defaults to ``EnsembleConfig()``.
        n_classes: Output width for classification.

    Returns:
        An untrained ``ModelFamilyTrainer``.
    """
    cfg = config or EnsembleConfig()
    shared = {"validation_split": cfg.validation_split, "seed": cfg.seed}

    if family == ModelFamily.LSTM_ATTENTION:
        p = cfg.lstm_attention
        return LSTMAttentionFamily(
            task,
            n_classes=n_classes,
            hidden_size=p.hidden_size,
            num_layers=p.num_layers,
            dropout=p.dropout,
            learning_rate=p.learning_rate,
            epochs=p.epochs,
            batch_size=p.batch_size,
            **shared,
        )
    if family == ModelFamily.SELF_ATTENTION:
        p = cfg.self_attention
        return SelfAttentionFamily(
            task,
            n_classes=n_classes,
            hidden_size=p.hidden_size,
            num_layers=p.num_layers,
            num_heads=p.num_heads,
            dropout=p.dropout,
            learning_rate=p.learning_rate,
            epochs=p.epochs,
            batch_size=p.batch_size,
            **shared,
        )
    if family == ModelFamily.GRADIENT_BOOSTING:
        p = cfg.gradient_boosting
        return GradientBoostingFamily(
            task,
            n_classes=n_classes,
            n_estimators=p.n_estimators,
            num_leaves=p.num_leaves,
            max_depth=p.max_depth,
            learning_rate=p.learning_rate,
            min_child_samples=p.min_child_samples,
            **shared,
        )
    raise ValueError(f"Unknown model family: {family!r}")
