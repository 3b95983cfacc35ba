"""
Frame sampler: copies the capture source's current frame into a fixed-size RGB still.
"""

from __future__ import annotations

from typing import Protocol

import cv2
import numpy as np

from core.errors import SourceNotReady
from core.models import Frame


class FrameSource(Protocol):
    def has_frame(self) -> bool: ...

    def latest_frame(self) -> np.ndarray | None: ...


class FrameSampler:
    """One sample per cycle, so every model sees the same instant."""

    def __init__(self, width: int = 320, height: int = 240) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid sampler size {width}x{height}")
        self.width = width
        self.height = height

    def sample(self, source: FrameSource) -> Frame:
        bgr = source.latest_frame() if source.has_frame() else None
        if bgr is None:
            raise SourceNotReady("no decoded frame yet")
        if bgr.ndim != 3 or bgr.shape[2] != 3:
            raise SourceNotReady(f"unexpected frame shape {bgr.shape}")
        # cvtColor always returns a new array, so the still never aliases the live buffer
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        if rgb.shape[:2] != (self.height, self.width):
            rgb = cv2.resize(rgb, (self.width, self.height), interpolation=cv2.INTER_LINEAR)
        rgb.setflags(write=False)
        return Frame(width=self.width, height=self.height, pixels=rgb)
