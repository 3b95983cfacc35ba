"""
Base interface every attribute classifier must implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from core.buffers import Tensor
from core.errors import InferenceFailure


class InferenceEngine(ABC):
    """
    Opaque binary classifier for one attribute.

    Subclasses implement load(), _predict() and close(). classify() checks the
    input shape and returns the raw output as a Tensor allocated from the
    input's registry, so the caller releases inputs and outputs the same way.
    """

    attribute: str = ""
    display_name: str = ""

    def __init__(self, input_shape: tuple[int, int, int]) -> None:
        # (side, side, channels), without the batch axis
        self.input_shape = tuple(input_shape)

    @property
    def identifier(self) -> str:
        return self.attribute

    @property
    @abstractmethod
    def loaded(self) -> bool:
        ...

    @abstractmethod
    def load(self) -> None:
        """Load the artifact (blocking). Raises ModelLoadFailure."""
        ...

    @abstractmethod
    def _predict(self, batch: np.ndarray) -> np.ndarray:
        """Run the model on a [1, *input_shape] batch; return its raw output."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the loaded model."""
        ...

    def classify(self, tensor: Tensor) -> Tensor:
        if not self.loaded:
            raise InferenceFailure(self.attribute, "model not loaded")
        expected = (1, *self.input_shape)
        if tensor.shape != expected:
            raise InferenceFailure(
                self.attribute, f"input shape {tensor.shape} != expected {expected}"
            )
        output = np.asarray(self._predict(tensor.data), dtype=np.float32)
        return tensor.registry.allocate(output)
