"""Loss registry used by the network and the training loop.

Every loss returns the mean loss over the rows of a batch together with the
per-row gradient ``dL/dy``.  Gradients are not divided by the batch size;
:meth:`lossless.core.layers.Layer.apply_gradients` performs the averaging.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core import tensor
from ..core.types import Array
from ..errors import ConfigurationError, DimensionError

LossFn = Callable[[Array, Array], tuple[float, Array]]

_EPS = 1e-12


@dataclass(frozen=True)
class Loss:
    """Loss wrapper returning both the scalar loss and dL/dy."""

    name: str
    fn: LossFn

    def __call__(self, predictions: Array, targets: Array) -> tuple[float, Array]:
        preds = tensor.as_matrix(predictions)
        targs = tensor.as_matrix(targets)
        if preds.shape != targs.shape:
            raise DimensionError(
                f"{self.name}: predictions {preds.shape} and targets {targs.shape} differ"
            )
        loss, grad = self.fn(preds, targs)
        return loss, grad if np.ndim(predictions) == 2 else grad[0]


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn) -> None:
        self._registry[name] = Loss(name, fn)

    def get(self, name: str) -> Loss:
        if name not in self._registry:
            available = ", ".join(self.names())
            raise ConfigurationError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]

    def names(self) -> Iterable[str]:
        return sorted(self._registry)


REGISTRY = LossRegistry()


def _cross_entropy(probs: Array, target: Array) -> tuple[float, Array]:
    loss = float(-np.mean(np.sum(target * np.log(probs + _EPS), axis=1)))
    grad = -target / (probs + _EPS)
    return loss, grad


def _mse(pred: Array, target: Array) -> tuple[float, Array]:
    diff = pred - target
    loss = float(np.mean(0.5 * np.sum(np.square(diff), axis=1)))
    return loss, diff


REGISTRY.register("ce", _cross_entropy)
REGISTRY.register("mse", _mse)
# Alias for parity with the long-form name used in configs
REGISTRY.register("cross_entropy", _cross_entropy)

__all__ = ["Loss", "LossRegistry", "REGISTRY"]
