"""
Frame -> model input tensor: optional grayscale, nearest-neighbor resize,
batch axis, scale to [0, 1].
"""

from __future__ import annotations

import cv2
import numpy as np

from core.buffers import BufferRegistry, Tensor
from core.errors import PreprocessFailure
from core.models import Frame

# ITU-R 601 luma weights, same as the models were trained with
GRAYSCALE_WEIGHTS = np.array([0.2989, 0.5870, 0.1140], dtype=np.float32)


def to_grayscale(rgb: np.ndarray) -> np.ndarray:
    """(h, w, 3) uint8 -> (h, w, 1) uint8, truncating the weighted sum."""
    luma = rgb.astype(np.float32) @ GRAYSCALE_WEIGHTS
    return luma.astype(np.uint8)[..., np.newaxis]


def preprocess(
    frame: Frame,
    target_side: int,
    grayscale: bool,
    registry: BufferRegistry,
) -> Tensor:
    """
    Build a [1, side, side, channels] float32 tensor from `frame`.

    Resizing is always nearest-neighbor. The caller owns the returned tensor
    and must release it.
    """
    if target_side <= 0:
        raise PreprocessFailure(f"target side must be positive, got {target_side}")
    pixels = frame.pixels
    if pixels.ndim != 3 or pixels.shape[2] not in (1, 3):
        raise PreprocessFailure(f"unsupported frame shape {pixels.shape}")
    if grayscale and pixels.shape[2] == 3:
        pixels = to_grayscale(pixels)
    resized = cv2.resize(pixels, (target_side, target_side), interpolation=cv2.INTER_NEAREST)
    if resized.ndim == 2:
        # cv2 drops a trailing channel axis of size 1
        resized = resized[..., np.newaxis]
    batch = resized[np.newaxis, ...].astype(np.float32) / np.float32(255.0)
    return registry.allocate(batch)
