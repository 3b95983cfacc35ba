"""
core/logging_setup.py

Central logging configuration: console plus a log file under logs_dir.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union


def setup_logging(logs_dir: Union[str, Path], level: Union[int, str] = logging.INFO) -> Path:
    """
    Initialise root logging. Returns the path of the log file.

    `level` accepts a logging constant or its name ("DEBUG", "INFO", ...),
    so the value can come straight from YAML.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logs_path = Path(logs_dir)
    logs_path.mkdir(parents=True, exist_ok=True)
    log_file = logs_path / "face_attributes.log"

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    root.setLevel(level)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # TensorFlow is chatty at INFO
    logging.getLogger("tensorflow").setLevel(max(level, logging.WARNING))
    return log_file
