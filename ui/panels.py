"""
Right-side panels: Results (table + JSON), Logs, Performance.
"""

from __future__ import annotations

import json
import logging

from PySide6.QtCore import QObject, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QFormLayout,
    QHeaderView,
    QLabel,
    QPlainTextEdit,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from core.models import ATTRIBUTES, PredictionSet

_EMPTY = "—"


class ResultsPanel(QWidget):
    """One row per attribute, plus the full PredictionSet as JSON."""

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        self._table = QTableWidget(len(ATTRIBUTES), 3, self)
        self._table.setHorizontalHeaderLabels(["Attribute", "Label", "Probability"])
        self._table.verticalHeader().setVisible(False)
        self._table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self._table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        for row, attribute in enumerate(ATTRIBUTES):
            self._table.setItem(row, 0, QTableWidgetItem(attribute.capitalize()))
        layout.addWidget(self._table)
        self._json = QPlainTextEdit(self)
        self._json.setReadOnly(True)
        self._json.setPlaceholderText("Press Predict to classify the current frame.")
        layout.addWidget(self._json, stretch=1)

    def show_prediction(self, prediction: PredictionSet) -> None:
        for row, attribute in enumerate(ATTRIBUTES):
            result = prediction[attribute]
            self._table.setItem(row, 1, QTableWidgetItem(result.label))
            self._table.setItem(row, 2, QTableWidgetItem(f"{result.probability:.4f}"))
        self._json.setPlainText(json.dumps(prediction.as_dict(), indent=2))


class LogsPanel(QPlainTextEdit):
    """Read-only log view keeping the most recent lines."""

    def __init__(self, parent: QWidget | None = None, max_lines: int = 2000) -> None:
        super().__init__(parent)
        self.setReadOnly(True)
        self.setMaximumBlockCount(max_lines)

    def append(self, message: str) -> None:
        self.appendPlainText(message)
        bar = self.verticalScrollBar()
        bar.setValue(bar.maximum())


class _LogBridge(QObject):
    message = Signal(str)


class QtLogHandler(logging.Handler):
    """Forwards log records to a LogsPanel; safe to emit from any thread."""

    def __init__(self, panel: LogsPanel, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._bridge = _LogBridge()
        self._bridge.message.connect(panel.append)
        self.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._bridge.message.emit(self.format(record))
        except RuntimeError:
            # Panel already destroyed during shutdown
            self.handleError(record)


class PerformancePanel(QWidget):
    """Preview FPS, phase timings of the last cycle, rolling cycle latency, live buffers."""

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        form = QFormLayout(self)
        self._fields: dict[str, QLabel] = {}
        for key, title in (
            ("fps", "Preview FPS"),
            ("preprocess_ms", "Preprocess (ms)"),
            ("inference_ms", "Inference (ms)"),
            ("total_ms", "Cycle total (ms)"),
            ("rolling_ms", "Rolling avg (ms)"),
            ("buffers", "Live buffers"),
        ):
            self._fields[key] = QLabel(_EMPTY)
            form.addRow(f"{title}:", self._fields[key])

    def update_preview(self, fps: float) -> None:
        self._fields["fps"].setText(f"{fps:.1f}")

    def reset_preview(self) -> None:
        self._fields["fps"].setText(_EMPTY)

    def update_cycle(self, timings: dict[str, float], rolling_avg_ms: float, live_buffers: int) -> None:
        for key in ("preprocess_ms", "inference_ms", "total_ms"):
            self._fields[key].setText(f"{timings[key]:.1f}")
        self._fields["rolling_ms"].setText(f"{rolling_avg_ms:.1f}")
        self._fields["buffers"].setText(str(live_buffers))
