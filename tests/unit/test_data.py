import numpy as np
import pytest

from lossless import data
from lossless.errors import ConfigurationError


def test_spiral_has_three_balanced_one_hot_arms():
    examples = data.spiral_examples()
    assert len(examples) == 3 * 57
    labels = np.stack([ex.output for ex in examples])
    assert set(labels.sum(axis=1)) == {1.0}
    assert np.array_equal(labels.sum(axis=0), np.full(3, 57))
    first = examples[0]
    assert np.allclose(first.input, (0.2 * np.sin(0.2), 0.2 * np.cos(0.2)))


def test_spiral_shuffle_is_seeded():
    a = data.spiral_examples(rng=np.random.default_rng(4))
    b = data.spiral_examples(rng=np.random.default_rng(4))
    assert all(np.array_equal(x.input, y.input) for x, y in zip(a, b))


def test_examples_are_read_only():
    example = data.separable_examples(1)[0]
    with pytest.raises(ValueError):
        example.input[0] = 3.0


def test_registered_datasets():
    spiral = data.get("spiral", train_size=100, seed=1)
    assert len(spiral.training) == 100
    assert len(spiral.testing) == 71
    assert spiral.input_size == 2 and spiral.output_size == 3
    assert spiral.provenance["test_size"] == len(spiral.testing)

    separable = data.get("separable", repeats=4)
    assert len(separable.training) == 8

    with pytest.raises(ConfigurationError):
        data.get("mnist")
    with pytest.raises(ConfigurationError):
        data.get("spiral", train_size=10_000)
    with pytest.raises(ConfigurationError):
        data.get("spiral", colour="red")
