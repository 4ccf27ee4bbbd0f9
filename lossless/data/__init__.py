"""Example datasets for lossless."""

from . import registry, spiral
from .registry import Dataset, get, register_dataset
from .spiral import separable_examples, spiral_examples, train_test_split

__all__ = [
    "Dataset",
    "get",
    "register_dataset",
    "registry",
    "spiral",
    "separable_examples",
    "spiral_examples",
    "train_test_split",
]
