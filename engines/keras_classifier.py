"""
Keras-backed classifier: one sigmoid output per model (age, gender, emotion).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from core.config import ModelConfig
from core.errors import InferenceFailure, LoadFailureReason, ModelLoadFailure
from core.model_loader import get_model_path
from engines.base import InferenceEngine

logger = logging.getLogger(__name__)


class KerasClassifierEngine(InferenceEngine):
    def __init__(
        self,
        attribute: str,
        model_config: ModelConfig,
        models_dir: str | Path,
        display_name: str = "",
    ) -> None:
        super().__init__(model_config.input_shape)
        self.attribute = attribute
        self.display_name = display_name or attribute.capitalize()
        self._config = model_config
        self._models_dir = Path(models_dir)
        self._model: Any = None

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _load_artifact(self, path: Path) -> Any:
        # TensorFlow is only imported once a model is actually loaded
        import tensorflow as tf

        return tf.keras.models.load_model(str(path), compile=False)

    def load(self) -> None:
        self.close()
        path = get_model_path(
            self.attribute, self._config.file, self._models_dir, self._config.url
        )
        try:
            model = self._load_artifact(path)
        except (OSError, ValueError, TypeError) as e:
            raise ModelLoadFailure(self.attribute, LoadFailureReason.MALFORMED, str(e)) from e
        declared = tuple(model.input_shape[1:])
        if declared != self.input_shape:
            raise ModelLoadFailure(
                self.attribute,
                LoadFailureReason.MALFORMED,
                f"artifact expects input {declared}, configured {self.input_shape}",
            )
        self._model = model
        logger.info("%s model ready (%s, input %s)", self.display_name, path.name, declared)

    def _predict(self, batch: np.ndarray) -> np.ndarray:
        try:
            output = self._model(batch, training=False)
        except Exception as e:  # noqa: BLE001
            raise InferenceFailure(self.attribute, str(e)) from e
        return np.asarray(output)

    def close(self) -> None:
        self._model = None
