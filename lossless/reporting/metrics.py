"""Metric sinks attached to the trainer as callbacks."""

from __future__ import annotations

import csv
import json
import math
import sys
from pathlib import Path
from typing import Mapping, TextIO

from .artifacts import git_sha


def _numeric(metrics: Mapping[str, object]) -> dict[str, float]:
    return {
        k: float(v)
        for k, v in metrics.items()
        if isinstance(v, (int, float)) and not isinstance(v, bool)
    }


class JsonlSink:
    """Append-only JSONL writer for metrics."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or git_sha()

    def _write(self, epoch: int, metrics: Mapping[str, float]) -> None:
        record = {
            "epoch": int(epoch),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self._write(epoch, metrics)

    __call__ = on_epoch


class CsvSink:
    """Write metrics to CSV with a stable schema."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def _write(self, epoch: int, metrics: Mapping[str, float]) -> None:
        row: dict[str, object] = {"epoch": int(epoch), "split": self.split}
        row.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            fieldnames = sorted(row.keys())
            writer = csv.DictWriter(handle, fieldnames=fieldnames)
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self._write(epoch, metrics)


class ConsoleReporter:
    """Print a one-line summary every ``every`` epochs."""

    def __init__(self, every: int = 1, stream: TextIO | None = None) -> None:
        self.every = max(1, int(every))
        self.stream = stream

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if epoch % self.every:
            return
        parts = [f"epoch {epoch:>5d}", f"train loss {metrics.get('train_loss', math.nan):.4f}"]
        if "test_loss" in metrics:
            parts.append(f"test loss {metrics['test_loss']:.4f}")
        if "test_accuracy" in metrics:
            parts.append(f"test acc {metrics['test_accuracy']:.2%}")
        print(" | ".join(parts), file=self.stream or sys.stdout)


__all__ = ["JsonlSink", "CsvSink", "ConsoleReporter"]
