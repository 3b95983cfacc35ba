"""
Tracked numeric buffers. Every model input and output passes through a
BufferRegistry so a cycle can prove it left nothing allocated behind.
"""

from __future__ import annotations

import itertools
import threading
from typing import Any

import numpy as np


class ReleasedBufferError(RuntimeError):
    """Raised when a released Tensor is read."""


class Tensor:
    """Owned view over a numpy array. Call release() (or use `with`) when done."""

    __slots__ = ("_data", "_registry", "_buffer_id")

    def __init__(self, data: np.ndarray, registry: BufferRegistry, buffer_id: int) -> None:
        self._data: np.ndarray | None = data
        self._registry = registry
        self._buffer_id = buffer_id

    @property
    def data(self) -> np.ndarray:
        if self._data is None:
            raise ReleasedBufferError(f"buffer {self._buffer_id} already released")
        return self._data

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.data.shape)

    @property
    def buffer_id(self) -> int:
        return self._buffer_id

    @property
    def registry(self) -> BufferRegistry:
        return self._registry

    @property
    def released(self) -> bool:
        return self._data is None

    def release(self) -> None:
        """Drop the array. Safe to call more than once; counted once."""
        if self._data is None:
            return
        self._data = None
        self._registry._forget(self._buffer_id)

    def __enter__(self) -> Tensor:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._data is None else f"shape={tuple(self._data.shape)}"
        return f"Tensor(id={self._buffer_id}, {state})"


class BufferRegistry:
    """Thread-safe allocation bookkeeping (outputs are allocated on executor threads)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._live: set[int] = set()
        self._allocated_total = 0
        self._released_total = 0

    def allocate(self, array: np.ndarray) -> Tensor:
        with self._lock:
            buffer_id = next(self._ids)
            self._live.add(buffer_id)
            self._allocated_total += 1
        return Tensor(array, self, buffer_id)

    def _forget(self, buffer_id: int) -> None:
        with self._lock:
            if buffer_id in self._live:
                self._live.discard(buffer_id)
                self._released_total += 1

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    @property
    def allocated_total(self) -> int:
        return self._allocated_total

    @property
    def released_total(self) -> int:
        return self._released_total

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "live": len(self._live),
                "allocated": self._allocated_total,
                "released": self._released_total,
            }
