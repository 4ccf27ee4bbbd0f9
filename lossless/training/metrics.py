"""Metric helpers for the trainer and for :meth:`Network.evaluate`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping

import numpy as np

from ..core import tensor
from ..core.types import Array
from .losses import REGISTRY as LOSS_REGISTRY


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def accuracy(predictions: Array, targets: Array) -> float:
    """Fraction of rows whose argmax prediction matches the argmax target."""

    preds = tensor.as_matrix(predictions)
    targs = tensor.as_matrix(targets)
    if preds.shape[0] == 0:
        return 0.0
    return float(np.mean(tensor.argmax(preds) == tensor.argmax(targs)))


def compute_metric(name: str, predictions: Array, targets: Array) -> MetricResult:
    key = name.lower()
    if key == "accuracy":
        value = accuracy(predictions, targets)
    elif key in LOSS_REGISTRY.names():
        value, _ = LOSS_REGISTRY.get(key)(predictions, targets)
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=float(value))


def compute_metrics(
    names: Iterable[str], predictions: Array, targets: Array
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets)
        results[metric.name] = metric.value
    return results


__all__ = ["MetricResult", "accuracy", "compute_metric", "compute_metrics"]
