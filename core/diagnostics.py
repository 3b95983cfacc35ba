"""
Diagnostics: append-only log of prediction cycles, JSON report export and
frame snapshots.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import cv2
import numpy as np

from core.errors import EmptyLog
from core.models import DiagnosticsRecord
from core.utils import mean

logger = logging.getLogger(__name__)


def timestamp_slug(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with ':' replaced so it is safe in file names."""
    now = now or datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z").replace(":", "-")


def device_metadata(capture: Any | None = None) -> dict[str, Any]:
    """Host and camera capability summary for the report."""
    info: dict[str, Any] = {
        "platform": platform.platform(),
        "machine": platform.machine(),
        "python": sys.version.split()[0],
        "cpu_count": os.cpu_count(),
        "opencv": cv2.__version__,
        "numpy": np.__version__,
    }
    if capture is not None and capture.is_opened():
        width, height = capture.get_size()
        info["camera"] = {
            "facing": capture.facing.value if capture.facing else None,
            "width": width,
            "height": height,
            "fps": capture.get_fps(),
        }
    return info


class DiagnosticsRecorder:
    """Ordered, append-only record of completed cycles."""

    def __init__(self) -> None:
        self._records: list[DiagnosticsRecord] = []
        self._model_load_ms: dict[str, float] = {}

    def record(self, entry: DiagnosticsRecord) -> None:
        self._records.append(entry)

    def set_model_load_durations(self, durations_ms: Mapping[str, float]) -> None:
        self._model_load_ms = dict(durations_ms)

    @property
    def records(self) -> tuple[DiagnosticsRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def summary(self) -> dict[str, Any]:
        if not self._records:
            raise EmptyLog()
        return {
            "cycles": len(self._records),
            "mean_preprocess_ms": mean(r.timings.preprocess_ms for r in self._records),
            "mean_inference_ms": mean(r.timings.inference_ms for r in self._records),
            "mean_total_ms": mean(r.timings.total_ms for r in self._records),
        }

    def export(self, device: Mapping[str, Any] | None = None) -> dict[str, Any]:
        summary = self.summary()
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "device": dict(device or {}),
            "model_load_ms": {k: round(v, 3) for k, v in self._model_load_ms.items()},
            "records": [r.as_dict() for r in self._records],
            "summary": summary,
        }

    def write_report(self, directory: str | Path, device: Mapping[str, Any] | None = None) -> Path:
        report = self.export(device)
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"diagnostics-{timestamp_slug()}.json"
        with path.open("w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, default=str)
        logger.info("Diagnostics report written: %s (%d cycles)", path, len(self._records))
        return path


def save_snapshot(frame_bgr: np.ndarray, directory: str | Path) -> Path:
    """Write the frame as PNG named capture-<timestamp>.png."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"capture-{timestamp_slug()}.png"
    if not cv2.imwrite(str(path), frame_bgr):
        raise OSError(f"Failed to write snapshot: {path}")
    logger.info("Saved frame: %s", path)
    return path
