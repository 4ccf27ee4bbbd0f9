"""lossless public API."""

from .core import layers, tensor, types  # noqa: F401
from .core.layers import LAYERS, Layer, Linear, ReLU, Sigmoid, Softmax, Tanh
from .core.network import Network, Perceptron
from .core.types import Example, RunResult
from .errors import ConfigurationError, CorruptFormatError, DimensionError, LosslessError
from .persistence import load, pretty_print, save
from .training.clock import ManualClock, MonotonicClock
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer, TrainerState

__version__ = "0.1.0"

__all__ = [
    "LAYERS",
    "Layer",
    "Linear",
    "ReLU",
    "Sigmoid",
    "Softmax",
    "Tanh",
    "Network",
    "Perceptron",
    "Example",
    "RunResult",
    "Trainer",
    "TrainerState",
    "ManualClock",
    "MonotonicClock",
    "ConfigurationError",
    "CorruptFormatError",
    "DimensionError",
    "LosslessError",
    "load",
    "save",
    "pretty_print",
    "load_preset",
    "presets",
    "run_pipeline",
    "layers",
    "tensor",
    "types",
]
