"""
Main window: left sidebar (status, actions, results), center video, right tabs.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np
from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QImage, QPixmap
from PySide6.QtWidgets import (
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMessageBox,
    QPushButton,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from core.capture import Facing, VideoCaptureSource
from core.config import Config
from core.diagnostics import DiagnosticsRecorder, device_metadata, save_snapshot
from core.errors import PipelineError
from core.model_set import ModelSet
from core.models import ATTRIBUTES, PredictionSet
from core.orchestrator import PipelineState, PredictionOrchestrator
from core.runner import FrameReader, PredictionRunner
from core.sampler import FrameSampler
from core.utils import RollingAverage
from engines import create_engines
from ui.panels import LogsPanel, PerformancePanel, QtLogHandler, ResultsPanel

logger = logging.getLogger(__name__)

_OK_STYLE = "color: green;"
_ERROR_STYLE = "color: red;"


class MainWindow(QWidget):
    """Main application window with sidebar, video view, and right panels."""

    def __init__(self, config: Config) -> None:
        super().__init__()
        self.setWindowTitle("Edge Face Attributes")
        self._config = config
        self._capture = VideoCaptureSource(
            {Facing.FRONT: config.camera.front, Facing.BACK: config.camera.back},
            width=config.camera.width,
            height=config.camera.height,
        )
        self._models = ModelSet(create_engines(config))
        self._recorder = DiagnosticsRecorder() if config.runtime.diagnostics else None
        self._state = PipelineState(capture=self._capture, models=self._models, recorder=self._recorder)
        self._orchestrator = PredictionOrchestrator(
            self._state, FrameSampler(config.sampler.width, config.sampler.height)
        )
        self._runner = PredictionRunner(self._orchestrator, self._models)
        self._runner.prediction_ready.connect(self._on_prediction_ready)
        self._runner.prediction_failed.connect(self._on_prediction_failed)
        self._runner.models_loaded.connect(self._on_models_loaded)
        self._reader = FrameReader(self._capture, idle_ms=config.camera.preview_interval_ms)
        self._reader.frame_ready.connect(self._on_frame)
        self._cycle_latency = RollingAverage()

        layout = QHBoxLayout(self)
        # --- Left sidebar ---
        sidebar = QWidget()
        sidebar_layout = QVBoxLayout(sidebar)
        status_group = QGroupBox("Status")
        status_form = QFormLayout(status_group)
        self._camera_status = QLabel("Starting...")
        self._model_status = QLabel("Loading...")
        status_form.addRow("Camera:", self._camera_status)
        status_form.addRow("Models:", self._model_status)
        sidebar_layout.addWidget(status_group)

        self._predict_btn = QPushButton("Loading...")
        self._predict_btn.setEnabled(False)
        self._predict_btn.clicked.connect(self._on_predict)
        sidebar_layout.addWidget(self._predict_btn)
        self._switch_btn = QPushButton("Switch Camera")
        self._switch_btn.clicked.connect(self._on_switch_camera)
        sidebar_layout.addWidget(self._switch_btn)
        self._retry_models_btn = QPushButton("Retry Models")
        self._retry_models_btn.setVisible(False)
        self._retry_models_btn.clicked.connect(self._on_retry_models)
        sidebar_layout.addWidget(self._retry_models_btn)

        results_group = QGroupBox("Prediction")
        results_form = QFormLayout(results_group)
        self._result_labels: dict[str, QLabel] = {}
        for attribute in ATTRIBUTES:
            label = QLabel("—")
            label.setStyleSheet("font-weight: bold;")
            self._result_labels[attribute] = label
            results_form.addRow(f"{attribute.capitalize()}:", label)
        sidebar_layout.addWidget(results_group)
        sidebar_layout.addStretch()
        layout.addWidget(sidebar)

        # --- Center: video ---
        self._video_label = QLabel()
        self._video_label.setMinimumSize(480, 360)
        self._video_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._video_label.setStyleSheet("background-color: #1e1e1e; color: #888;")
        self._video_label.setText("No video")
        layout.addWidget(self._video_label, stretch=1)

        # --- Right: tabs (Results, Logs, Performance, Export) ---
        tabs = QTabWidget()
        self._results_panel = ResultsPanel()
        tabs.addTab(self._results_panel, "Results")
        self._logs_panel = LogsPanel()
        tabs.addTab(self._logs_panel, "Logs")
        self._performance_panel = PerformancePanel()
        tabs.addTab(self._performance_panel, "Performance")
        export_panel = QWidget()
        export_layout = QVBoxLayout(export_panel)
        self._save_frame_btn = QPushButton("Save Frame (PNG)")
        self._save_frame_btn.clicked.connect(self._on_save_frame)
        export_layout.addWidget(self._save_frame_btn)
        self._export_btn = QPushButton("Export Diagnostics")
        self._export_btn.setEnabled(self._recorder is not None)
        self._export_btn.clicked.connect(self._on_export_diagnostics)
        export_layout.addWidget(self._export_btn)
        export_layout.addStretch()
        tabs.addTab(export_panel, "Export")
        layout.addWidget(tabs)

        self._log_handler = QtLogHandler(self._logs_panel)
        logging.getLogger().addHandler(self._log_handler)

        self.resize(1200, 640)
        self._runner.start()
        self._runner.load_models()
        self._start_camera(lambda: self._capture.open(Facing.FRONT))
        self._reader.start()

    # --- camera -------------------------------------------------------------

    def _start_camera(self, action: Callable[[], object]) -> None:
        """Run a capture open/switch; the old stream is released before the new one opens."""
        self._reader.reset_rate()
        self._performance_panel.reset_preview()
        try:
            action()
        except PipelineError as e:
            logger.error("Camera error: %s", e)
            self._set_status(self._camera_status, "Camera failed", ok=False)
            self._video_label.setText("No video")
            QMessageBox.warning(self, "Camera", e.user_message())
            return
        self._set_status(self._camera_status, f"Ready ({self._capture.facing.value})", ok=True)

    def _on_switch_camera(self) -> None:
        if self._orchestrator.busy:
            logger.info("Camera switch ignored: prediction in progress")
            return
        self._start_camera(self._capture.switch)

    @Slot(object, float)
    def _on_frame(self, frame_bgr: np.ndarray, fps: float) -> None:
        self._show_frame(frame_bgr)
        self._performance_panel.update_preview(fps)

    def _show_frame(self, frame_bgr: np.ndarray) -> None:
        h, w = frame_bgr.shape[:2]
        qimg = QImage(frame_bgr.data, w, h, 3 * w, QImage.Format.Format_BGR888)
        self._video_label.setPixmap(QPixmap.fromImage(qimg).scaled(
            self._video_label.size(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        ))

    # --- models and prediction -----------------------------------------------

    @Slot(bool, str)
    def _on_models_loaded(self, success: bool, message: str) -> None:
        if success:
            self._set_status(self._model_status, "Models ready", ok=True)
            self._predict_btn.setText("Predict")
            self._predict_btn.setEnabled(True)
            self._retry_models_btn.setVisible(False)
            if self._recorder is not None:
                self._recorder.set_model_load_durations(self._models.load_durations_ms)
            return
        self._set_status(self._model_status, "Models failed to load", ok=False)
        self._predict_btn.setText("Unavailable")
        self._retry_models_btn.setVisible(True)
        QMessageBox.critical(self, "Models", message)

    def _on_retry_models(self) -> None:
        self._retry_models_btn.setVisible(False)
        self._set_status(self._model_status, "Loading...", ok=None)
        self._runner.load_models()

    def _on_predict(self) -> None:
        self._runner.request_prediction()

    @Slot(object)
    def _on_prediction_ready(self, prediction: PredictionSet) -> None:
        for result in prediction.results:
            self._result_labels[result.attribute].setText(
                f"{result.label} ({result.probability:.3f})"
            )
        self._results_panel.show_prediction(prediction)
        self._cycle_latency.add(prediction.timings.total_ms)
        self._performance_panel.update_cycle(
            prediction.timings.as_dict(),
            self._cycle_latency.average,
            self._state.registry.live_count,
        )

    @Slot(str, str)
    def _on_prediction_failed(self, kind: str, message: str) -> None:
        if kind == "cycle_in_progress":
            self._logs_panel.append(message)
            return
        QMessageBox.warning(self, "Prediction", message)

    # --- export -----------------------------------------------------------------

    def _on_save_frame(self) -> None:
        frame = self._capture.latest_frame()
        if frame is None:
            self._logs_panel.append("No frame to save.")
            return
        try:
            save_snapshot(frame, self._config.paths.exports_dir)
        except OSError as e:
            logger.error("%s", e)
            QMessageBox.warning(self, "Save Frame", f"Could not save the frame: {e}")

    def _on_export_diagnostics(self) -> None:
        if self._recorder is None:
            return
        try:
            path = self._recorder.write_report(
                self._config.paths.exports_dir, device_metadata(self._capture)
            )
        except PipelineError as e:
            QMessageBox.information(self, "Diagnostics", e.user_message())
            return
        except OSError as e:
            logger.error("Failed to write diagnostics: %s", e)
            QMessageBox.warning(self, "Diagnostics", f"Could not write the report: {e}")
            return
        QMessageBox.information(self, "Diagnostics", f"Report saved to {path}")

    # --- helpers ------------------------------------------------------------------

    @staticmethod
    def _set_status(label: QLabel, text: str, ok: bool | None) -> None:
        label.setText(text)
        if ok is None:
            label.setStyleSheet("")
        else:
            label.setStyleSheet(_OK_STYLE if ok else _ERROR_STYLE)

    def closeEvent(self, event) -> None:
        self._reader.stop()
        self._runner.stop()
        self._models.close()
        self._capture.close()
        logging.getLogger().removeHandler(self._log_handler)
        event.accept()
