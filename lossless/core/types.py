"""Core typing contracts for lossless."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class Example:
    """A labelled training example.

    ``input`` holds the feature vector fed to the network and ``output`` the
    target vector, typically a one-hot class label.
    """

    input: Array
    output: Array

    def __post_init__(self) -> None:
        inputs = np.array(self.input, dtype=np.float64).reshape(-1)
        outputs = np.array(self.output, dtype=np.float64).reshape(-1)
        inputs.setflags(write=False)
        outputs.setflags(write=False)
        object.__setattr__(self, "input", inputs)
        object.__setattr__(self, "output", outputs)

    @classmethod
    def of(cls, inputs: Sequence[float], outputs: Sequence[float]) -> "Example":
        return cls(input=np.asarray(inputs), output=np.asarray(outputs))


def stack_examples(examples: Sequence[Example]) -> Tuple[Array, Array]:
    """Return ``(inputs, targets)`` matrices with one row per example."""

    if not examples:
        return np.zeros((0, 0)), np.zeros((0, 0))
    inputs = np.stack([example.input for example in examples])
    targets = np.stack([example.output for example in examples])
    return inputs, targets


@dataclass(frozen=True)
class EpochRecord:
    """Metrics gathered at the end of an epoch."""

    epoch: int
    batches: int
    train_loss: float
    test_loss: float | None = None
    test_accuracy: float | None = None


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :meth:`lossless.training.trainer.Trainer.run`."""

    batches: int
    epochs: int
    examples_seen: int
    elapsed: float
    state: str
    train_loss: float
    test_loss: float | None = None
    test_accuracy: float | None = None
    history: List[EpochRecord] = field(default_factory=list)
    artifacts: Dict[str, str] = field(default_factory=dict)


__all__ = ["Array", "Example", "EpochRecord", "RunResult", "stack_examples"]
