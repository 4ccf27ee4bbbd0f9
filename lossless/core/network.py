"""Feed-forward network assembled from an ordered list of layers."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import numpy as np

from ..errors import ConfigurationError, DimensionError
from ..training.clock import Clock
from ..training.losses import REGISTRY as LOSS_REGISTRY
from ..training.metrics import accuracy
from ..training.trainer import Trainer
from .layers import LAYERS, Layer, LayerSpec, Softmax
from .types import Array, Example, RunResult, stack_examples

_FUSED_LOSSES = {"ce", "cross_entropy"}


class Network:
    """Ordered stack of layers plus the hyperparameters used to train it.

    Typical use::

        net = Network(batch_size=32, learning_rate=1.0)
        net.initialize(2, Linear(outputs=7), Tanh(), Linear(outputs=3), Softmax(), seed=0)
        net.train(training, testing, timedelta(seconds=10))
        net.save("savednetworks", "MyMLP")
    """

    def __init__(self, batch_size: int = 32, learning_rate: float = 1.0, loss: str = "ce") -> None:
        self.batch_size = batch_size
        self.learning_rate = learning_rate
        self.loss = loss
        self.layers: List[Layer] = []
        self.input_size: int | None = None

    def __repr__(self) -> str:
        layers = ", ".join(layer.describe() for layer in self.layers)
        return f"Network(input_size={self.input_size}, layers=[{layers}])"

    # ------------------------------------------------------------------
    # Construction

    def initialize(
        self,
        input_size: int,
        *layers: LayerSpec | Sequence[LayerSpec],
        rng: np.random.Generator | None = None,
        seed: int | None = None,
    ) -> "Network":
        """Wire ``layers`` so each receives the previous layer's output size.

        Layers may be passed as instances, registry tags or mapping
        specifications, either variadically or as a single list.  The network
        is left untouched if any layer rejects its input size.
        """

        if len(layers) == 1 and isinstance(layers[0], (list, tuple)):
            layers = tuple(layers[0])
        if not layers:
            raise ConfigurationError("A network needs at least one layer")
        generator = rng if rng is not None else np.random.default_rng(seed)

        built: List[Layer] = []
        size = input_size
        for index, spec in enumerate(layers):
            layer = LAYERS.create(spec)
            try:
                size = layer.initialize(size, generator)
            except DimensionError as exc:
                raise ConfigurationError(
                    f"Layer {index} ({type(layer).__name__}) rejected input size {size!r}: {exc}"
                ) from exc
            built.append(layer)

        self.layers = built
        self.input_size = built[0].input_size
        return self

    @property
    def initialized(self) -> bool:
        return bool(self.layers)

    @property
    def output_size(self) -> int | None:
        return self.layers[-1].output_size if self.layers else None

    # ------------------------------------------------------------------
    # Inference

    def forward(self, x: Array) -> Array:
        if not self.layers:
            raise ConfigurationError("Network used before initialize()")
        out = np.asarray(x, dtype=np.float64)
        if out.ndim not in (1, 2) or out.shape[-1] != self.input_size:
            raise DimensionError(
                f"Network expects inputs of width {self.input_size}, got shape {out.shape}"
            )
        for layer in self.layers:
            out = layer.forward(out)
        return out

    def predict(self, x: Array) -> Array:
        """Run ``x`` (a vector or a batch of rows) through every layer."""

        return self.forward(x)

    def evaluate(self, examples: Sequence[Example]) -> tuple[float, float]:
        """Return ``(mean_loss, accuracy)`` over ``examples``."""

        if not examples:
            raise ConfigurationError("evaluate() needs at least one example")
        try:
            inputs, targets = stack_examples(examples)
        except ValueError as exc:
            raise DimensionError("evaluate() got examples of different widths") from exc
        if targets.shape[1] != self.output_size:
            raise DimensionError(
                f"Examples carry targets of width {targets.shape[1]}, "
                f"network produces {self.output_size}"
            )
        predictions = self.predict(inputs)
        loss, _ = LOSS_REGISTRY.get(self.loss)(predictions, targets)
        return loss, accuracy(predictions, targets)

    # ------------------------------------------------------------------
    # Gradients

    def loss_gradient(self, predictions: Array, targets: Array) -> tuple[float, Array, bool]:
        """Return ``(loss, dL/dy, fused)`` for the last forward pass.

        ``fused`` is true when the final layer is a softmax trained with
        cross-entropy; the gradient is then taken w.r.t. the softmax inputs
        and :meth:`backward` must skip the softmax layer.
        """

        loss_fn = LOSS_REGISTRY.get(self.loss)
        loss, grad = loss_fn(predictions, targets)
        last = self.layers[-1]
        if loss_fn.name in _FUSED_LOSSES and isinstance(last, Softmax):
            return loss, last.cross_entropy_gradient(targets), True
        return loss, grad, False

    def backward(self, grad: Array, *, fused: bool = False) -> Array:
        """Backpropagate ``grad`` through the stack, accumulating gradients."""

        layers = self.layers[:-1] if fused else self.layers
        for layer in reversed(layers):
            grad = layer.backward(grad)
        return grad

    def apply_gradients(self, batch_size: int, learning_rate: float | None = None) -> None:
        lr = self.learning_rate if learning_rate is None else learning_rate
        for layer in self.layers:
            layer.apply_gradients(lr, batch_size)

    def zero_grad(self) -> None:
        for layer in self.layers:
            layer.zero_grad()

    # ------------------------------------------------------------------
    # Training

    def train(
        self,
        training: Sequence[Example],
        testing: Sequence[Example],
        budget: float | timedelta,
        *,
        clock: Clock | None = None,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
        callbacks: Sequence[object] | None = None,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> RunResult:
        """Train until ``budget`` (seconds or a timedelta) has elapsed."""

        trainer = Trainer(self, clock=clock, callbacks=callbacks)
        generator = rng if rng is not None else np.random.default_rng(seed)
        return trainer.run(training, testing, budget, rng=generator, split_loggers=split_loggers)

    # ------------------------------------------------------------------
    # Parameters and persistence

    def parameter_count(self) -> int:
        return int(sum(p.size for layer in self.layers for p in layer.parameters().values()))

    def state_dict(self) -> Dict[str, Array]:
        return {
            f"layer{idx}.{name}": value.copy()
            for idx, layer in enumerate(self.layers)
            for name, value in layer.parameters().items()
        }

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for idx, layer in enumerate(self.layers):
            prefix = f"layer{idx}."
            params = {k[len(prefix):]: v for k, v in state.items() if k.startswith(prefix)}
            layer.load_parameters(params)

    def summary(self) -> str:
        lines = [f"Network with {len(self.layers)} layers, input size {self.input_size}"]
        for idx, layer in enumerate(self.layers):
            lines.append(f"  [{idx}] {layer.describe()}")
        lines.append(f"  parameters: {self.parameter_count()}")
        return "\n".join(lines)

    def save(self, directory: str | Path, name: str) -> Path:
        from .. import persistence

        return persistence.save(self, directory, name)

    def pretty_print(self, directory: str | Path, name: str) -> Path:
        from .. import persistence

        return persistence.pretty_print(self, directory, name)

    @classmethod
    def load(cls, directory: str | Path, name: str) -> "Network":
        from .. import persistence

        return persistence.load(directory, name)


Perceptron = Network

__all__ = ["Network", "Perceptron"]
