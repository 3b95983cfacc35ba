"""
Utility helpers used across the app.
"""

import time
from collections import deque
from typing import Deque, Iterable


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean; 0.0 for an empty iterable."""
    total = 0.0
    count = 0
    for v in values:
        total += v
        count += 1
    return total / count if count else 0.0


class RollingAverage:
    """Rolling average over the last N values (cycle latency in the Performance tab)."""

    def __init__(self, maxlen: int = 30) -> None:
        self._values: Deque[float] = deque(maxlen=maxlen)

    def add(self, value: float) -> None:
        self._values.append(value)

    @property
    def average(self) -> float:
        return mean(self._values)

    @property
    def count(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        self._values.clear()


class PreviewRate:
    """Frames-per-second of the live preview, smoothed over the last N frames."""

    def __init__(self, window: int = 30) -> None:
        self._stamps: Deque[float] = deque(maxlen=window)

    def tick(self) -> float:
        self._stamps.append(time.perf_counter())
        if len(self._stamps) < 2:
            return 0.0
        span = self._stamps[-1] - self._stamps[0]
        return (len(self._stamps) - 1) / span if span > 0 else 0.0

    def reset(self) -> None:
        self._stamps.clear()
