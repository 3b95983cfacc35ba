"""
Edge Face Attributes — entry point.
Run: python main.py [--config config/default.yaml]
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

# Reduce TensorFlow console noise (INFO and WARNING)
os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

from PySide6.QtWidgets import QApplication

from core.config import load_config
from core.logging_setup import setup_logging
from ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live age / gender / emotion classification")
    parser.add_argument("--config", default=None, help="YAML config file (defaults built in)")
    return parser.parse_args(argv)


def main() -> None:
    args = parse_args()
    config = load_config(args.config)
    log_file = setup_logging(config.paths.logs_dir, config.runtime.log_level)
    logger.info("Starting Edge Face Attributes (log file: %s)", log_file)
    app = QApplication(sys.argv)
    window = MainWindow(config)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
