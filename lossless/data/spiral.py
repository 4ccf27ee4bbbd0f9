"""Toy classification sets used by the presets and the test-suite."""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from ..core.types import Example
from ..errors import ConfigurationError
from .registry import Dataset, register_dataset

# Angular offset between the three spiral arms.
ARM_PHASE = 2.049


def spiral_examples(
    start: float = 0.2,
    stop: float = 3.0,
    step: float = 0.05,
    rng: np.random.Generator | None = None,
) -> List[Example]:
    """Three interleaved spiral arms labelled with one-hot class vectors.

    Radii start at ``start`` and grow by repeatedly adding ``step`` while
    below ``stop``; the running sum keeps its rounding error, so the default
    range yields 57 radii. Each radius gives one point per arm at
    ``(r sin(r + phase), r cos(r + phase))``.  When ``rng`` is given the
    examples are shuffled with it.
    """

    if step <= 0 or stop <= start:
        raise ConfigurationError(f"Invalid spiral range start={start} stop={stop} step={step}")
    labels = np.eye(3)
    phases = (0.0, ARM_PHASE, -ARM_PHASE)
    examples: List[Example] = []
    r = start
    while r < stop:
        for label, phase in zip(labels, phases):
            point = (r * np.sin(r + phase), r * np.cos(r + phase))
            examples.append(Example.of(point, label))
        r += step
    if rng is not None:
        order = rng.permutation(len(examples))
        examples = [examples[i] for i in order]
    return examples


def separable_examples(repeats: int = 32) -> List[Example]:
    """Two linearly separable points, ``(1, 1) -> [1, 0]`` and ``(-1, -1) -> [0, 1]``."""

    pair = [Example.of((1.0, 1.0), (1.0, 0.0)), Example.of((-1.0, -1.0), (0.0, 1.0))]
    return pair * repeats


def train_test_split(examples: Sequence[Example], train_size: int) -> Tuple[List[Example], List[Example]]:
    """Split ``examples`` in order into the first ``train_size`` and the rest."""

    if not 0 < train_size <= len(examples):
        raise ConfigurationError(
            f"train_size must be between 1 and {len(examples)}, got {train_size}"
        )
    return list(examples[:train_size]), list(examples[train_size:])


@register_dataset("spiral")
def _spiral(
    train_size: int = 120,
    start: float = 0.2,
    stop: float = 3.0,
    step: float = 0.05,
    seed: int = 0,
) -> Dataset:
    examples = spiral_examples(start, stop, step, rng=np.random.default_rng(seed))
    training, testing = train_test_split(examples, train_size)
    provenance = {
        "type": "spiral",
        "start": start,
        "stop": stop,
        "step": step,
        "seed": seed,
        "train_size": len(training),
        "test_size": len(testing),
    }
    return Dataset(name="spiral", training=training, testing=testing, provenance=provenance)


@register_dataset("separable")
def _separable(repeats: int = 32, test_repeats: int = 4) -> Dataset:
    provenance = {"type": "separable", "repeats": repeats, "test_repeats": test_repeats}
    return Dataset(
        name="separable",
        training=separable_examples(repeats),
        testing=separable_examples(test_repeats),
        provenance=provenance,
    )


__all__ = ["ARM_PHASE", "spiral_examples", "separable_examples", "train_test_split"]
