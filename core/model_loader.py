"""
Resolves model artifact files; downloads them into the models directory if missing.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from pathlib import Path

from core.errors import LoadFailureReason, ModelLoadFailure

logger = logging.getLogger(__name__)


def get_model_path(attribute: str, filename: str, models_dir: str | Path, url: str = "") -> Path:
    """Return path to the model file; download from `url` if not present."""
    directory = Path(models_dir)
    path = directory / filename
    if path.is_file():
        return path
    if not url:
        raise ModelLoadFailure(attribute, LoadFailureReason.NOT_FOUND, str(path))
    directory.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".part")
    logger.info("Downloading %s model from %s", attribute, url)
    try:
        urllib.request.urlretrieve(url, partial)
    except urllib.error.HTTPError as e:
        partial.unlink(missing_ok=True)
        reason = LoadFailureReason.NOT_FOUND if e.code == 404 else LoadFailureReason.NETWORK_ERROR
        raise ModelLoadFailure(attribute, reason, f"{url}: HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        partial.unlink(missing_ok=True)
        raise ModelLoadFailure(attribute, LoadFailureReason.NETWORK_ERROR, f"{url}: {e}") from e
    partial.replace(path)
    return path
