"""
Video capture: one live camera stream at a time, selected by facing direction.
Keeps the latest decoded BGR frame for the frame sampler.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from enum import Enum
from typing import Mapping, Union
from urllib.parse import urlparse

import cv2
import numpy as np

from core.errors import DeviceUnavailable, InsecureContext, PermissionDenied

logger = logging.getLogger(__name__)

DeviceRef = Union[int, str]

_INSECURE_SCHEMES = {"http", "rtsp", "rtmp", "ws", "udp", "tcp"}
_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


class Facing(str, Enum):
    FRONT = "front"
    BACK = "back"

    def opposite(self) -> Facing:
        return Facing.BACK if self is Facing.FRONT else Facing.FRONT


def check_secure_source(device: DeviceRef) -> None:
    """Reject plain-text network streams unless they point at this machine."""
    if isinstance(device, int):
        return
    parsed = urlparse(device)
    if parsed.scheme.lower() in _INSECURE_SCHEMES and (parsed.hostname or "") not in _LOCAL_HOSTS:
        raise InsecureContext(f"{parsed.scheme}://{parsed.hostname}")


def _check_device_node(index: int) -> None:
    """On Linux the V4L2 node tells us apart 'missing' from 'not allowed'."""
    if not sys.platform.startswith("linux"):
        return
    node = f"/dev/video{index}"
    if not os.path.exists(node):
        raise DeviceUnavailable(f"{node} does not exist")
    if not os.access(node, os.R_OK):
        raise PermissionDenied(f"{node} is not readable")


class VideoCaptureSource:
    """Owns the single active camera stream (front or back)."""

    def __init__(
        self,
        devices: Mapping[Facing, DeviceRef] | None = None,
        width: int = 320,
        height: int = 240,
    ) -> None:
        self._devices: dict[Facing, DeviceRef] = dict(
            devices or {Facing.FRONT: 0, Facing.BACK: 1}
        )
        self._width = width
        self._height = height
        self._cap: cv2.VideoCapture | None = None
        self._facing: Facing | None = None
        self._latest: np.ndarray | None = None
        self._lock = threading.Lock()
        # Serialises cv2 calls: the frame reader thread reads while the UI opens and closes
        self._io_lock = threading.RLock()

    def open(self, facing: Facing = Facing.FRONT) -> None:
        """Stop any active stream, then open the camera for `facing`."""
        with self._io_lock:
            self.close()
            self._open(facing)

    def _open(self, facing: Facing) -> None:
        device = self._devices.get(facing)
        if device is None:
            raise DeviceUnavailable(f"no {facing.value} camera configured")
        check_secure_source(device)
        if isinstance(device, int):
            _check_device_node(device)
        try:
            # On Windows, use DirectShow so index order matches the system camera list
            if isinstance(device, int) and sys.platform == "win32":
                cap = cv2.VideoCapture(device, cv2.CAP_DSHOW)
            else:
                cap = cv2.VideoCapture(device)
        except PermissionError as e:
            raise PermissionDenied(str(e)) from e
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(f"cannot open {facing.value} camera {device!r}")
        # Ideal resolution; the device may negotiate something else
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._cap = cap
        self._facing = facing
        w, h = self.get_size()
        logger.info("Opened %s camera %r at %dx%d", facing.value, device, w, h)

    def switch(self) -> Facing:
        """Release the current stream, then open the opposite facing."""
        target = (self._facing or Facing.BACK).opposite()
        self.open(target)
        return target

    def close(self) -> None:
        """Release the current stream."""
        with self._io_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.info("Released %s camera", self._facing.value if self._facing else "?")
        with self._lock:
            self._latest = None

    def is_opened(self) -> bool:
        cap = self._cap
        return cap is not None and cap.isOpened()

    def read(self) -> tuple[bool, np.ndarray | None]:
        """Read next frame and keep it as the latest. Returns (success, frame_bgr)."""
        with self._io_lock:
            if self._cap is None:
                return False, None
            ok, frame = self._cap.read()
            if ok and frame is not None:
                with self._lock:
                    self._latest = frame
        return ok, frame

    def has_frame(self) -> bool:
        """True once at least one frame has been decoded from the active stream."""
        with self._lock:
            return self._latest is not None

    def latest_frame(self) -> np.ndarray | None:
        with self._lock:
            return self._latest

    def get_fps(self) -> float:
        with self._io_lock:
            if self._cap is None:
                return 30.0
            fps = self._cap.get(cv2.CAP_PROP_FPS)
        return fps if fps > 0 else 30.0

    def get_size(self) -> tuple[int, int]:
        """(width, height) negotiated by the device."""
        with self._io_lock:
            if self._cap is None:
                return 0, 0
            w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return w, h

    @property
    def facing(self) -> Facing | None:
        return self._facing
