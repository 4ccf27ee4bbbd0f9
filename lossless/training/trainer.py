"""Time-budgeted mini-batch gradient descent for lossless networks."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, List, Mapping, Sequence

import numpy as np

from ..core.types import Array, EpochRecord, Example, RunResult, stack_examples
from ..errors import ConfigurationError, DimensionError
from .clock import Clock, MonotonicClock, budget_seconds
from .losses import REGISTRY as LOSS_REGISTRY
from .metrics import accuracy

if TYPE_CHECKING:  # pragma: no cover
    from ..core.network import Network


class TrainerState(str, Enum):
    RUNNING = "running"
    BUDGET_EXPIRED = "budget_expired"
    DONE = "done"


@dataclass
class TrainingRun:
    """Mutable bookkeeping for a single call to :meth:`Trainer.run`."""

    budget: float
    started: float
    state: TrainerState = TrainerState.RUNNING
    epoch: int = 0
    batches: int = 0
    examples_seen: int = 0
    elapsed: float = 0.0
    order: Array | None = None
    last_train_loss: float = math.nan
    history: List[EpochRecord] = field(default_factory=list)


class Trainer:
    """Drive forward/backward passes until the wall-clock budget runs out.

    The clock is read once after every applied batch, so a batch that has
    started always completes and the overrun is bounded by one batch.  The
    held-out set is scored after each epoch (every ``eval_every`` epochs) and
    once more when the budget expires; those scores are reported to the
    callbacks and never influence when training stops.
    """

    def __init__(
        self,
        network: "Network",
        *,
        clock: Clock | None = None,
        callbacks: Sequence[object] | None = None,
        eval_every: int = 1,
    ) -> None:
        self.network = network
        self.clock = clock or MonotonicClock()
        self.callbacks = list(callbacks or [])
        self.eval_every = eval_every
        self.state = TrainerState.DONE

    def run(
        self,
        training: Sequence[Example],
        testing: Sequence[Example],
        budget: float | timedelta,
        *,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> RunResult:
        seconds = budget_seconds(budget)
        self._validate_hyperparameters()
        train_inputs, train_targets = self._stack(training, "training")
        test_data = self._stack(testing, "testing") if testing else None
        generator = rng if rng is not None else np.random.default_rng(seed)
        split_loggers = split_loggers or {}

        network = self.network
        batch_size = int(network.batch_size)
        n_examples = train_inputs.shape[0]
        network.zero_grad()

        run = TrainingRun(budget=seconds, started=self.clock.now())
        self.state = run.state
        while run.state is TrainerState.RUNNING:
            run.epoch += 1
            run.order = generator.permutation(n_examples)
            loss_total = 0.0
            seen = 0
            epoch_batches = 0
            for start in range(0, n_examples, batch_size):
                indices = run.order[start : start + batch_size]
                loss = self._train_batch(train_inputs[indices], train_targets[indices])
                loss_total += loss * len(indices)
                seen += len(indices)
                epoch_batches += 1
                run.batches += 1
                run.examples_seen += len(indices)
                self._emit_step(run.batches, {"loss": loss, "epoch": float(run.epoch)})

                run.elapsed = self.clock.now() - run.started
                if run.elapsed >= run.budget:
                    run.state = TrainerState.BUDGET_EXPIRED
                    break

            run.last_train_loss = loss_total / seen
            expired = run.state is TrainerState.BUDGET_EXPIRED
            should_eval = expired or run.epoch % max(1, self.eval_every) == 0
            record = self._end_epoch(run, epoch_batches, test_data if should_eval else None)
            self._emit_epoch(run, record, split_loggers)
            self.state = run.state

        run.state = TrainerState.DONE
        self.state = run.state
        final = run.history[-1]
        return RunResult(
            batches=run.batches,
            epochs=run.epoch,
            examples_seen=run.examples_seen,
            elapsed=run.elapsed,
            state=run.state.value,
            train_loss=run.last_train_loss,
            test_loss=final.test_loss,
            test_accuracy=final.test_accuracy,
            history=list(run.history),
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _train_batch(self, inputs: Array, targets: Array) -> float:
        network = self.network
        predictions = network.forward(inputs)
        loss, grad, fused = network.loss_gradient(predictions, targets)
        network.backward(grad, fused=fused)
        network.apply_gradients(inputs.shape[0])
        return loss

    def _end_epoch(
        self, run: TrainingRun, batches: int, test_data: tuple[Array, Array] | None
    ) -> EpochRecord:
        test_loss = test_accuracy = None
        if test_data is not None:
            inputs, targets = test_data
            predictions = self.network.predict(inputs)
            test_loss, _ = LOSS_REGISTRY.get(self.network.loss)(predictions, targets)
            test_accuracy = accuracy(predictions, targets)
        record = EpochRecord(
            epoch=run.epoch,
            batches=batches,
            train_loss=run.last_train_loss,
            test_loss=test_loss,
            test_accuracy=test_accuracy,
        )
        run.history.append(record)
        return record

    def _validate_hyperparameters(self) -> None:
        network = self.network
        if not network.initialized:
            raise ConfigurationError("Network must be initialized before training")
        batch_size = network.batch_size
        if isinstance(batch_size, bool) or not isinstance(batch_size, (int, np.integer)):
            raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size!r}")
        if batch_size <= 0:
            raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size!r}")
        lr = network.learning_rate
        try:
            lr_value = float(lr)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"learning_rate must be a positive number, got {lr!r}") from exc
        if not math.isfinite(lr_value) or lr_value <= 0:
            raise ConfigurationError(f"learning_rate must be a positive number, got {lr!r}")
        LOSS_REGISTRY.get(network.loss)

    def _stack(self, examples: Sequence[Example], label: str) -> tuple[Array, Array]:
        if not examples:
            raise ConfigurationError(f"The {label} set is empty")
        try:
            inputs, targets = stack_examples(examples)
        except ValueError as exc:
            raise DimensionError(f"The {label} set mixes examples of different widths") from exc
        if inputs.shape[1] != self.network.input_size:
            raise DimensionError(
                f"{label.capitalize()} inputs have width {inputs.shape[1]}, "
                f"network expects {self.network.input_size}"
            )
        if targets.shape[1] != self.network.output_size:
            raise DimensionError(
                f"{label.capitalize()} targets have width {targets.shape[1]}, "
                f"network produces {self.network.output_size}"
            )
        return inputs, targets

    def _emit_step(self, step: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(step, metrics)  # type: ignore[attr-defined]

    def _emit_epoch(
        self,
        run: TrainingRun,
        record: EpochRecord,
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        splits: dict[str, Mapping[str, float]] = {
            "train": {
                "loss": record.train_loss,
                "batches": float(run.batches),
                "elapsed": float(run.elapsed),
            }
        }
        if record.test_loss is not None:
            splits["test"] = {"loss": record.test_loss, "accuracy": record.test_accuracy}

        combined = {f"{split}_{k}": v for split, metrics in splits.items() for k, v in metrics.items()}
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(record.epoch, combined)  # type: ignore[attr-defined]
        for split, metrics in splits.items():
            for callback in loggers.get(split, []):
                if hasattr(callback, "on_epoch"):
                    callback.on_epoch(record.epoch, metrics)  # type: ignore[attr-defined]
                elif callable(callback):
                    callback(record.epoch, metrics)


__all__ = ["Trainer", "TrainerState", "TrainingRun"]
