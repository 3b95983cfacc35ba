"""
Worker-thread runners: the frame reader feeding the live preview, and the
prediction runner hosting the pipeline's asyncio loop. Both report through
signals so the UI never blocks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Future
from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, QThread, Signal

from core.errors import PipelineError
from core.utils import PreviewRate

if TYPE_CHECKING:
    from core.capture import VideoCaptureSource
    from core.model_set import ModelSet
    from core.orchestrator import PredictionOrchestrator

logger = logging.getLogger(__name__)


class FrameReader(QObject):
    """Worker that reads camera frames off the GUI thread and emits them for display."""

    # Emit (frame_bgr, preview_fps)
    frame_ready = Signal(object, float)

    def __init__(
        self,
        capture: VideoCaptureSource,
        idle_ms: int = 33,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._capture = capture
        self._idle_s = max(idle_ms, 1) / 1000.0
        self._rate = PreviewRate()
        self._reset_pending = False
        self._running = False
        self._thread: QThread | None = None

    def start(self) -> None:
        """Start reading in a background thread."""
        if self._running:
            return
        self._running = True
        self._thread = QThread()
        self.moveToThread(self._thread)
        self._thread.started.connect(self._run_loop)
        self._thread.start()

    def reset_rate(self) -> None:
        """Restart the FPS window (after a camera switch)."""
        self._reset_pending = True

    def _run_loop(self) -> None:
        """Runs in worker thread until stop(); idles while no stream is open."""
        while self._running:
            if not self._read_once():
                time.sleep(self._idle_s)

    def _read_once(self) -> bool:
        if self._reset_pending:
            self._reset_pending = False
            self._rate.reset()
        if not self._capture.is_opened():
            return False
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return False
        self.frame_ready.emit(frame, self._rate.tick())
        return True

    def stop(self) -> None:
        """Request stop, then quit and wait for the thread."""
        self._running = False
        if self._thread is not None and self._thread.isRunning():
            self._thread.quit()
            self._thread.wait(2000)
        self._thread = None


class PredictionRunner(QObject):
    """Owns the event loop; submits model loading and prediction cycles to it."""

    # Emit PredictionSet
    prediction_ready = Signal(object)
    # Emit (error kind, user-facing message)
    prediction_failed = Signal(str, str)
    # Emit (success, message)
    models_loaded = Signal(bool, str)

    def __init__(
        self,
        orchestrator: PredictionOrchestrator,
        models: ModelSet,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._orchestrator = orchestrator
        self._models = models
        self._loop = asyncio.new_event_loop()
        self._thread: QThread | None = None

    def start(self) -> None:
        """Start the event loop in a background thread."""
        if self._thread is not None:
            return
        self._thread = QThread()
        self.moveToThread(self._thread)
        self._thread.started.connect(self._run_loop)
        self._thread.start()

    def _run_loop(self) -> None:
        """Runs in worker thread until stop()."""
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def load_models(self) -> Future:
        future = asyncio.run_coroutine_threadsafe(self._models.load(), self._loop)
        future.add_done_callback(self._on_models_done)
        return future

    def _on_models_done(self, future: Future) -> None:
        error = future.exception()
        if error is None:
            self.models_loaded.emit(True, "Models ready")
        elif isinstance(error, PipelineError):
            self.models_loaded.emit(False, error.user_message())
        else:
            logger.error("Model loading crashed: %r", error)
            self.models_loaded.emit(False, str(error))

    def request_prediction(self) -> Future:
        future = asyncio.run_coroutine_threadsafe(self._orchestrator.predict(), self._loop)
        future.add_done_callback(self._on_prediction_done)
        return future

    def _on_prediction_done(self, future: Future) -> None:
        error = future.exception()
        if error is None:
            self.prediction_ready.emit(future.result())
        elif isinstance(error, PipelineError):
            self.prediction_failed.emit(error.kind.value, error.user_message())
        else:
            self.prediction_failed.emit("unexpected", f"Prediction failed: {error}")

    def stop(self) -> None:
        """Stop the loop, then quit and wait for the thread."""
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None and self._thread.isRunning():
            self._thread.quit()
            self._thread.wait(2000)
        self._thread = None
        if not self._loop.is_running() and not self._loop.is_closed():
            self._loop.close()
