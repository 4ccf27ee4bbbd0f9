"""Composable layers with forward evaluation and gradient backpropagation.

Every layer accepts either a single vector of shape ``(input_size,)`` or a
batch of row vectors of shape ``(batch, input_size)``.  A batched call is
equivalent to one call per row: outputs are stacked and parameter gradients
are summed into the layer's accumulators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, Mapping, Type, Union

import numpy as np

from ..errors import ConfigurationError, CorruptFormatError, DimensionError
from . import tensor
from .types import Array


class Layer:
    """Base class implemented by every layer variant."""

    tag: ClassVar[str] = ""

    input_size: int | None = None
    output_size: int | None = None

    # ------------------------------------------------------------------
    # Wiring

    def initialize(self, input_size: int, rng: np.random.Generator | None = None) -> int:
        """Allocate parameters for ``input_size`` inputs and return the output size."""

        size = _positive_size(input_size, what=f"{self.tag} input size")
        output_size = self._output_size(size)
        self.input_size = size
        self.output_size = output_size
        self._allocate(rng if rng is not None else np.random.default_rng())
        return self.output_size

    def _output_size(self, input_size: int) -> int:
        return input_size

    def _allocate(self, rng: np.random.Generator) -> None:
        """Allocate parameters and accumulators; stateless layers have none."""

    @property
    def initialized(self) -> bool:
        return self.output_size is not None

    # ------------------------------------------------------------------
    # Propagation

    def forward(self, x: Array) -> Array:
        batch = self._check_input(x)
        out = self._forward(batch)
        return out if np.ndim(x) == 2 else out[0]

    def backward(self, grad: Array) -> Array:
        batch = self._check_grad(grad)
        out = self._backward(batch)
        return out if np.ndim(grad) == 2 else out[0]

    def _forward(self, x: Array) -> Array:  # pragma: no cover - abstract
        raise NotImplementedError

    def _backward(self, grad: Array) -> Array:  # pragma: no cover - abstract
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Parameters

    def apply_gradients(self, learning_rate: float, batch_size: int) -> None:
        """Subtract ``learning_rate`` times the mean accumulated gradient."""

    def zero_grad(self) -> None:
        """Clear accumulated gradients."""

    def parameters(self) -> Dict[str, Array]:
        return {}

    def gradients(self) -> Dict[str, Array]:
        return {}

    def load_parameters(self, params: Mapping[str, Array]) -> None:
        expected = self.parameters()
        unexpected = set(params) - set(expected)
        if unexpected:
            names = ", ".join(sorted(unexpected))
            raise CorruptFormatError(f"{self.tag} layer has no parameters named {names}")
        for name, current in expected.items():
            if name not in params:
                raise CorruptFormatError(f"{self.tag} layer is missing parameter {name!r}")
            value = np.asarray(params[name])
            if value.shape != current.shape:
                raise CorruptFormatError(
                    f"{self.tag} parameter {name!r} has shape {value.shape}, "
                    f"expected {current.shape}"
                )
            current[...] = value.astype(np.float64)

    def config(self) -> Dict[str, Any]:
        """Construction arguments needed to rebuild this layer."""

        return {}

    def describe(self) -> str:
        return f"{type(self).__name__}({self.input_size} -> {self.output_size})"

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_input(self, x: Array) -> Array:
        if not self.initialized:
            raise ConfigurationError(f"{type(self).__name__} layer used before initialize()")
        batch = tensor.as_matrix(x)
        if batch.shape[1] != self.input_size:
            raise DimensionError(
                f"{type(self).__name__} expects {self.input_size} inputs, got {batch.shape[1]}"
            )
        return batch

    def _check_grad(self, grad: Array) -> Array:
        batch = tensor.as_matrix(grad)
        if batch.shape[1] != self.output_size:
            raise DimensionError(
                f"{type(self).__name__} produces {self.output_size} outputs, "
                f"got a gradient of width {batch.shape[1]}"
            )
        cached = self._cached_rows()
        if cached is None:
            raise ConfigurationError(f"{type(self).__name__}.backward() called before forward()")
        if batch.shape[0] != cached:
            raise DimensionError(
                f"{type(self).__name__}.backward() got {batch.shape[0]} rows "
                f"but the last forward() saw {cached}"
            )
        return batch

    def _cached_rows(self) -> int | None:  # pragma: no cover - abstract
        raise NotImplementedError


def _positive_size(value: int, *, what: str) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError) as exc:
        raise DimensionError(f"{what} must be an integer, got {value!r}") from exc
    if size <= 0 or size != value:
        raise DimensionError(f"{what} must be a positive integer, got {value!r}")
    return size


@dataclass(eq=False)
class Linear(Layer):
    """Fully connected layer computing ``W x + b``.

    ``W`` has shape ``(outputs, inputs)`` and is drawn from
    ``N(0, init_scale**2)``; ``b`` starts at zero.
    """

    tag: ClassVar[str] = "linear"

    outputs: int
    init_scale: float = 0.1
    weights: Array = field(init=False, repr=False)
    bias: Array = field(init=False, repr=False)

    def _output_size(self, input_size: int) -> int:
        try:
            scale = float(self.init_scale)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Linear init_scale must be a number, got {self.init_scale!r}") from exc
        if not np.isfinite(scale) or scale < 0:
            raise ConfigurationError(
                f"Linear init_scale must be a finite non-negative number, got {self.init_scale!r}"
            )
        return _positive_size(self.outputs, what="Linear outputs")

    def _allocate(self, rng: np.random.Generator) -> None:
        shape = (self.output_size, self.input_size)
        self.weights = rng.normal(0.0, self.init_scale, size=shape).astype(np.float64)
        self.bias = np.zeros(self.output_size, dtype=np.float64)
        self._grad_weights = np.zeros_like(self.weights)
        self._grad_bias = np.zeros_like(self.bias)
        self._inputs: Array | None = None

    def _forward(self, x: Array) -> Array:
        self._inputs = x
        return tensor.matvec(self.weights, x) + self.bias

    def _backward(self, grad: Array) -> Array:
        self._grad_weights += grad.T @ self._inputs
        self._grad_bias += grad.sum(axis=0)
        return tensor.transpose_matvec(self.weights, grad)

    def _cached_rows(self) -> int | None:
        inputs = getattr(self, "_inputs", None)
        return None if inputs is None else inputs.shape[0]

    def apply_gradients(self, learning_rate: float, batch_size: int) -> None:
        scale = learning_rate / batch_size
        self.weights -= scale * self._grad_weights
        self.bias -= scale * self._grad_bias
        self.zero_grad()

    def zero_grad(self) -> None:
        self._grad_weights[...] = 0.0
        self._grad_bias[...] = 0.0

    def parameters(self) -> Dict[str, Array]:
        return {"weights": self.weights, "bias": self.bias}

    def gradients(self) -> Dict[str, Array]:
        return {"weights": self._grad_weights.copy(), "bias": self._grad_bias.copy()}

    def config(self) -> Dict[str, Any]:
        return {"outputs": int(self.outputs), "init_scale": float(self.init_scale)}


class _Activation(Layer):
    """Stateless elementwise layer caching its last input and output."""

    _inputs: Array | None = None
    _outputs: Array | None = None

    def _forward(self, x: Array) -> Array:
        self._inputs = x
        self._outputs = self._activate(x)
        return self._outputs

    def _activate(self, x: Array) -> Array:  # pragma: no cover - abstract
        raise NotImplementedError

    def _cached_rows(self) -> int | None:
        return None if self._outputs is None else self._outputs.shape[0]


@dataclass(eq=False)
class Tanh(_Activation):
    """Elementwise hyperbolic tangent."""

    tag: ClassVar[str] = "tanh"

    def _activate(self, x: Array) -> Array:
        return tensor.elementwise(np.tanh, x)

    def _backward(self, grad: Array) -> Array:
        return grad * (1.0 - self._outputs**2)


@dataclass(eq=False)
class ReLU(_Activation):
    """Elementwise rectified linear unit."""

    tag: ClassVar[str] = "relu"

    def _activate(self, x: Array) -> Array:
        return np.maximum(x, 0.0)

    def _backward(self, grad: Array) -> Array:
        return grad * (self._inputs > 0)


@dataclass(eq=False)
class Sigmoid(_Activation):
    """Elementwise logistic function."""

    tag: ClassVar[str] = "sigmoid"

    def _activate(self, x: Array) -> Array:
        out = np.empty_like(x)
        pos = x >= 0
        out[pos] = 1.0 / (1.0 + np.exp(-x[pos]))
        exp = np.exp(x[~pos])
        out[~pos] = exp / (1.0 + exp)
        return out

    def _backward(self, grad: Array) -> Array:
        return grad * self._outputs * (1.0 - self._outputs)


@dataclass(eq=False)
class Softmax(_Activation):
    """Normalised exponential over each input vector.

    When paired with a cross-entropy loss the combined gradient is
    ``output - target``; :meth:`cross_entropy_gradient` exposes it so callers
    can skip :meth:`backward` for this layer.
    """

    tag: ClassVar[str] = "softmax"

    def _activate(self, x: Array) -> Array:
        shifted = x - np.max(x, axis=1, keepdims=True)
        exp = np.exp(shifted)
        return exp / np.sum(exp, axis=1, keepdims=True)

    def _backward(self, grad: Array) -> Array:
        # Jacobian-vector product: J = diag(y) - y y^T
        y = self._outputs
        return y * (grad - np.sum(grad * y, axis=1, keepdims=True))

    def cross_entropy_gradient(self, target: Array) -> Array:
        """Gradient of ``softmax`` followed by cross-entropy w.r.t. the logits."""

        if self._outputs is None:
            raise ConfigurationError("Softmax.cross_entropy_gradient() called before forward()")
        targets = tensor.as_matrix(target)
        if targets.shape != self._outputs.shape:
            raise DimensionError(
                f"Softmax target shape {targets.shape} does not match output {self._outputs.shape}"
            )
        grad = self._outputs - targets
        return grad if np.ndim(target) == 2 else grad[0]


LayerSpec = Union[Layer, str, Mapping[str, Any]]


class LayerRegistry:
    """Maps type tags to layer classes.

    The same tags identify layers inside persisted networks.
    """

    def __init__(self) -> None:
        self._registry: Dict[str, Type[Layer]] = {}

    def register(self, tag: str, cls: Type[Layer]) -> None:
        self._registry[tag] = cls

    def get(self, tag: str) -> Type[Layer]:
        try:
            return self._registry[tag.lower()]
        except KeyError as exc:
            available = ", ".join(self.names())
            raise ConfigurationError(f"Unknown layer {tag!r}. Available layers: {available}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag.lower() in self._registry

    def create(self, spec: LayerSpec) -> Layer:
        """Resolve ``spec`` into an uninitialised layer.

        ``spec`` may be a layer instance, a tag such as ``"tanh"`` or a
        mapping like ``{"type": "linear", "outputs": 7}``.
        """

        if isinstance(spec, Layer):
            return spec
        if isinstance(spec, str):
            options: Dict[str, Any] = {}
            tag = spec
        elif isinstance(spec, Mapping):
            options = dict(spec)
            tag = options.pop("type", None)
            if not isinstance(tag, str):
                raise ConfigurationError(f"Layer specification {dict(spec)!r} has no 'type'")
        else:
            raise ConfigurationError(f"Cannot build a layer from {spec!r}")
        cls = self.get(tag)
        try:
            return cls(**options)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid options for {tag!r} layer: {exc}") from exc


LAYERS = LayerRegistry()
LAYERS.register("linear", Linear)
LAYERS.register("tanh", Tanh)
LAYERS.register("relu", ReLU)
LAYERS.register("sigmoid", Sigmoid)
LAYERS.register("softmax", Softmax)

__all__ = [
    "Layer",
    "Linear",
    "Tanh",
    "ReLU",
    "Sigmoid",
    "Softmax",
    "LayerRegistry",
    "LayerSpec",
    "LAYERS",
]
