"""
Ensemble weighting strategies.

The ensemble always combines member predictions by weight-normalized
averaging; a ``WeightingStrategy`` only decides the raw weights.

  static                   every trained family gets ``default_weight`` (1.0)
  inverse_validation_error weight = 1 / (val_loss + epsilon); falls back to
                           static weights when any member has no validation
                           loss (empty held-out split)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Mapping

from construction_forecaster.ml.base import TrainedModel
from construction_forecaster.taxonomy.model_taxonomy import ModelFamily

logger = logging.getLogger(__name__)


class WeightingStrategy(ABC):
    """Maps trained members to raw (unnormalized, positive) weights."""

    name: str

    @abstractmethod
    def weights(self, trained: Mapping[ModelFamily, TrainedModel]) -> dict[ModelFamily, float]:
        """Return one positive weight per trained family."""


class StaticWeights(WeightingStrategy):
    name = "static"

    def __init__(self, default_weight: float = 1.0) -> None:
        if default_weight <= 0:
            raise ValueError(f"default_weight must be > 0, got {default_weight}.")
        self.default_weight = default_weight

    def weights(self, trained: Mapping[ModelFamily, TrainedModel]) -> dict[ModelFamily, float]:
        return {family: self.default_weight for family in trained}


class InverseValidationErrorWeights(WeightingStrategy):
    name = "inverse_validation_error"

    def __init__(self, epsilon: float = 1e-6) -> None:
        self.epsilon = epsilon

    def weights(self, trained: Mapping[ModelFamily, TrainedModel]) -> dict[ModelFamily, float]:
        if any(m.val_loss is None for m in trained.values()):
            logger.info("Validation loss unavailable for some members; using static weights.")
            return StaticWeights().weights(trained)
        return {
            family: 1.0 / (max(model.val_loss, 0.0) + self.epsilon)  # type: ignore[arg-type]
            for family, model in trained.items()
        }


def build_weighting(name: str) -> WeightingStrategy:
    """Look up a weighting strategy by its config name.

    Raises:
        ValueError: If ``name`` is not a known strategy.
    """
    if name == StaticWeights.name:
        return StaticWeights()
    if name == InverseValidationErrorWeights.name:
        return InverseValidationErrorWeights()
    raise ValueError(f"Unknown weighting strategy '{name}'.")
