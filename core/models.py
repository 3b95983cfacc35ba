"""
Shared data models: sampled frames, per-attribute results and timing records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import numpy as np

# Attribute order used everywhere results are listed
ATTRIBUTES = ("age", "gender", "emotion")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Frame:
    """Immutable RGB still of the camera feed. `pixels` is read-only, shape (h, w, 3)."""

    width: int
    height: int
    pixels: np.ndarray
    captured_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class PredictionResult:
    attribute: str
    probability: float
    label: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "attribute": self.attribute,
            "probability": round(self.probability, 6),
            "label": self.label,
        }


@dataclass(frozen=True)
class CycleTimings:
    preprocess_ms: float
    inference_ms: float
    total_ms: float

    def as_dict(self) -> dict[str, float]:
        return {
            "preprocess_ms": round(self.preprocess_ms, 3),
            "inference_ms": round(self.inference_ms, 3),
            "total_ms": round(self.total_ms, 3),
        }


@dataclass(frozen=True)
class PredictionSet:
    """The three results of one cycle, in ATTRIBUTES order."""

    results: tuple[PredictionResult, ...]
    timings: CycleTimings
    timestamp: datetime = field(default_factory=utc_now)

    def __getitem__(self, attribute: str) -> PredictionResult:
        for result in self.results:
            if result.attribute == attribute:
                return result
        raise KeyError(attribute)

    def labels(self) -> dict[str, str]:
        return {r.attribute: r.label for r in self.results}

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "results": [r.as_dict() for r in self.results],
            "timings": self.timings.as_dict(),
        }


@dataclass(frozen=True)
class DiagnosticsRecord:
    timestamp: datetime
    timings: CycleTimings
    results: tuple[PredictionResult, ...]

    @classmethod
    def from_prediction(cls, prediction: PredictionSet) -> DiagnosticsRecord:
        return cls(prediction.timestamp, prediction.timings, prediction.results)

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            **self.timings.as_dict(),
            "results": {r.attribute: r.as_dict() for r in self.results},
        }
