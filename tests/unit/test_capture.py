"""
Unit tests for VideoCaptureSource: device errors, secure-source check and
camera switching (OpenCV VideoCapture is mocked).
"""
import sys
import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

import core.capture as capture_module
from core.capture import Facing, VideoCaptureSource, check_secure_source
from core.errors import DeviceUnavailable, InsecureContext, PermissionDenied


@pytest.fixture
def events():
    return []


@pytest.fixture
def fake_cv2_capture(monkeypatch, events):
    """Patch cv2.VideoCapture with mocks that log open/release order."""
    opened = []

    def _factory(device, *args):
        cap = MagicMock(name=f"VideoCapture({device!r})")
        state = {"open": True}
        cap.isOpened.side_effect = lambda: state["open"]

        def _release():
            state["open"] = False
            events.append(("release", device))

        cap.release.side_effect = _release
        cap.read.return_value = (True, np.zeros((240, 320, 3), dtype=np.uint8))
        cap.get.return_value = 0
        events.append(("open", device))
        opened.append(cap)
        return cap

    monkeypatch.setattr(capture_module.cv2, "VideoCapture", _factory)
    monkeypatch.setattr(capture_module, "_check_device_node", lambda index: None)
    return opened


class TestOpenAndClose:
    """Tests for open / read / close"""

    def test_open_front_camera(self, fake_cv2_capture):
        source = VideoCaptureSource({Facing.FRONT: 0, Facing.BACK: 1})
        source.open(Facing.FRONT)
        assert source.is_opened()
        assert source.facing is Facing.FRONT
        cap = fake_cv2_capture[0]
        cap.set.assert_any_call(capture_module.cv2.CAP_PROP_FRAME_WIDTH, 320)
        cap.set.assert_any_call(capture_module.cv2.CAP_PROP_FRAME_HEIGHT, 240)

    def test_not_ready_until_first_frame(self, fake_cv2_capture):
        source = VideoCaptureSource()
        source.open()
        assert source.has_frame() is False
        ok, frame = source.read()
        assert ok and frame is not None
        assert source.has_frame() is True
        assert source.latest_frame() is frame

    def test_close_releases_and_forgets_frame(self, fake_cv2_capture, events):
        source = VideoCaptureSource()
        source.open()
        source.read()
        source.close()
        assert events == [("open", 0), ("release", 0)]
        assert source.is_opened() is False
        assert source.has_frame() is False
        assert source.read() == (False, None)

    def test_unopenable_device_raises_device_unavailable(self, monkeypatch):
        cap = MagicMock()
        cap.isOpened.return_value = False
        monkeypatch.setattr(capture_module.cv2, "VideoCapture", lambda *a: cap)
        monkeypatch.setattr(capture_module, "_check_device_node", lambda index: None)
        source = VideoCaptureSource()
        with pytest.raises(DeviceUnavailable):
            source.open()
        cap.release.assert_called_once()
        assert source.is_opened() is False

    def test_os_permission_error_maps_to_permission_denied(self, monkeypatch):
        def _raise(*args):
            raise PermissionError("camera access not authorized")

        monkeypatch.setattr(capture_module.cv2, "VideoCapture", _raise)
        monkeypatch.setattr(capture_module, "_check_device_node", lambda index: None)
        with pytest.raises(PermissionDenied):
            VideoCaptureSource().open()

    def test_unconfigured_facing(self, fake_cv2_capture):
        source = VideoCaptureSource({Facing.FRONT: 0})
        with pytest.raises(DeviceUnavailable):
            source.open(Facing.BACK)


class TestDeviceNode:
    """Linux device node checks distinguish missing from forbidden"""

    def test_missing_node(self, monkeypatch):
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setattr(capture_module.os.path, "exists", lambda p: False)
        with pytest.raises(DeviceUnavailable):
            capture_module._check_device_node(3)

    def test_unreadable_node(self, monkeypatch):
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setattr(capture_module.os.path, "exists", lambda p: True)
        monkeypatch.setattr(capture_module.os, "access", lambda p, mode: False)
        with pytest.raises(PermissionDenied):
            capture_module._check_device_node(0)


class TestSwitch:
    """Switching facing releases the old stream before opening the new one"""

    def test_switch_stops_old_stream_first(self, fake_cv2_capture, events):
        source = VideoCaptureSource({Facing.FRONT: 0, Facing.BACK: 1})
        source.open(Facing.FRONT)
        assert source.switch() is Facing.BACK
        assert events == [("open", 0), ("release", 0), ("open", 1)]
        assert [cap.isOpened() for cap in fake_cv2_capture] == [False, True]
        assert source.facing is Facing.BACK

    def test_switch_back_and_forth(self, fake_cv2_capture, events):
        source = VideoCaptureSource({Facing.FRONT: 0, Facing.BACK: 1})
        source.open()
        source.switch()
        source.switch()
        assert source.facing is Facing.FRONT
        assert sum(cap.isOpened() for cap in fake_cv2_capture) == 1
        assert events[-2:] == [("release", 1), ("open", 0)]

    def test_switch_drops_previous_frame(self, fake_cv2_capture):
        source = VideoCaptureSource()
        source.open()
        source.read()
        source.switch()
        assert source.has_frame() is False

    def test_switch_while_another_thread_reads(self, fake_cv2_capture, events):
        source = VideoCaptureSource({Facing.FRONT: 0, Facing.BACK: 1})
        source.open()
        stop = threading.Event()
        errors = []

        def _reader():
            while not stop.is_set():
                try:
                    source.read()
                except Exception as e:  # noqa: BLE001
                    errors.append(e)

        thread = threading.Thread(target=_reader)
        thread.start()
        for _ in range(20):
            source.switch()
        stop.set()
        thread.join(timeout=5)
        assert errors == []
        assert sum(cap.isOpened() for cap in fake_cv2_capture) == 1
        # Every stream was released before the next one opened
        kinds = [kind for kind, _ in events]
        assert kinds == ["open"] + ["release", "open"] * 20


class TestSecureSource:
    """Tests for check_secure_source"""

    @pytest.mark.parametrize(
        "device",
        ["http://192.168.1.20/stream", "rtsp://camera.example.com/live"],
    )
    def test_remote_plaintext_rejected(self, device):
        with pytest.raises(InsecureContext):
            check_secure_source(device)

    @pytest.mark.parametrize(
        "device",
        [0, "http://localhost:8080/video", "http://127.0.0.1/video",
         "https://camera.example.com/live", "rtsps://camera.example.com/live", "clip.mp4"],
    )
    def test_allowed_sources(self, device):
        check_secure_source(device)

    def test_open_refuses_insecure_before_touching_device(self, fake_cv2_capture, events):
        source = VideoCaptureSource({Facing.FRONT: "http://10.0.0.5/cam"})
        with pytest.raises(InsecureContext):
            source.open(Facing.FRONT)
        assert events == []
