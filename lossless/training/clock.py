"""Clock abstraction used to enforce training time budgets."""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Protocol

from ..errors import ConfigurationError


class Clock(Protocol):
    """Anything returning a monotonically increasing time in seconds."""

    def now(self) -> float:
        """Return the current reading in seconds."""


class MonotonicClock:
    """Wall clock backed by :func:`time.monotonic`."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to.

    ``tick`` seconds are added after every reading, which lets a training
    run expire after a known number of batches without sleeping.
    """

    def __init__(self, start: float = 0.0, tick: float = 0.0) -> None:
        self._now = float(start)
        self.tick = float(tick)

    def now(self) -> float:
        current = self._now
        self._now += self.tick
        return current

    def advance(self, seconds: float) -> None:
        self._now += float(seconds)


def budget_seconds(budget: float | timedelta) -> float:
    """Normalise a time budget to seconds."""

    if isinstance(budget, timedelta):
        seconds = budget.total_seconds()
    else:
        try:
            seconds = float(budget)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Time budget must be a duration, got {budget!r}") from exc
    if seconds != seconds or seconds < 0:
        raise ConfigurationError(f"Time budget must be non-negative, got {budget!r}")
    return seconds


__all__ = ["Clock", "MonotonicClock", "ManualClock", "budget_seconds"]
