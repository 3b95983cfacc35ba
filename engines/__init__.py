"""
Engine factory: builds one classifier per configured attribute.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.models import ATTRIBUTES
from engines.keras_classifier import KerasClassifierEngine

if TYPE_CHECKING:
    from core.config import Config
    from engines.base import InferenceEngine

_DISPLAY_NAMES = {
    "age": "Age",
    "gender": "Gender",
    "emotion": "Emotion",
}


def create_engines(config: Config) -> dict[str, InferenceEngine]:
    """One engine per attribute in ATTRIBUTES order. All three must be configured."""
    missing = [a for a in ATTRIBUTES if a not in config.models]
    if missing:
        raise ValueError(f"Missing model config for: {', '.join(missing)}")
    return {
        attribute: KerasClassifierEngine(
            attribute,
            config.models[attribute],
            config.paths.models_dir,
            display_name=_DISPLAY_NAMES[attribute],
        )
        for attribute in ATTRIBUTES
    }
