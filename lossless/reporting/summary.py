"""Condense a run's epoch history into a deterministic summary document."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Sequence

import numpy as np

from ..core.types import EpochRecord, RunResult

SUMMARY_VERSION = 2

# Metric name -> True when larger values are better.
_TRACKED = {"train_loss": False, "test_loss": False, "test_accuracy": True}


def _metric_summary(records: Sequence[EpochRecord], name: str, tail: int, higher_is_better: bool) -> Dict[str, Any] | None:
    scored = [(record.epoch, getattr(record, name)) for record in records if getattr(record, name) is not None]
    if not scored:
        return None
    epochs = np.array([epoch for epoch, _ in scored])
    values = np.array([value for _, value in scored], dtype=np.float64)
    best = int(np.argmax(values) if higher_is_better else np.argmin(values))
    window = values[-tail:] if tail > 0 else values[:0]
    return {
        "first": float(values[0]),
        "last": float(values[-1]),
        "best": float(values[best]),
        "best_epoch": int(epochs[best]),
        "mean": float(values.mean()),
        "tail_mean": float(window.mean()) if window.size else None,
    }


def summarize_history(history: Sequence[EpochRecord], *, tail: int = 32) -> Dict[str, Any]:
    """Summarise per-epoch records; ``tail`` bounds the trailing window."""

    metrics = {}
    for name, higher_is_better in _TRACKED.items():
        summary = _metric_summary(history, name, tail, higher_is_better)
        if summary is not None:
            metrics[name] = summary
    return {
        "version": SUMMARY_VERSION,
        "epochs": len(history),
        "tail_window": min(max(tail, 0), len(history)),
        "metrics": metrics,
    }


def write_summary(result: RunResult, path: str | Path, *, tail: int = 32) -> str:
    """Write the summary of ``result`` to ``path`` as sorted JSON."""

    summary = summarize_history(result.history, tail=tail)
    summary.update(
        {
            "state": result.state,
            "batches": result.batches,
            "examples_seen": result.examples_seen,
        }
    )
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(path)


__all__ = ["SUMMARY_VERSION", "summarize_history", "write_summary"]
