"""
Image normalization for fingerprinting.

Brings decoded images of any resolution and channel layout down to a
fixed-size grayscale grid so every fingerprint is built from the same
number of samples. Resampling is bilinear, followed by Rec. 601 luma.
"""

import logging

import cv2
import numpy as np

from .errors import DecodeError
from .models import GRID_SIZE

logger = logging.getLogger(__name__)

# Rec. 601 luma weights for R, G, B
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """Ensure image is uint8 gray, RGB or RGBA."""
    if image_np is None:
        raise DecodeError("No pixel data")
    image_np = np.asarray(image_np)
    if image_np.ndim not in (2, 3) or image_np.size == 0:
        raise DecodeError(f"Image has unusable shape {image_np.shape}")
    if image_np.ndim == 3 and image_np.shape[2] not in (1, 3, 4):
        raise DecodeError(f"Unsupported channel count {image_np.shape[2]}")

    if image_np.dtype != np.uint8:
        if image_np.dtype == np.uint16:
            image_np = image_np / 257.0
        elif image_np.dtype.kind == "f" and image_np.max() <= 1.0:
            image_np = image_np * 255
        image_np = np.clip(np.floor(image_np + 0.5), 0, 255).astype(np.uint8)
    return image_np


def freeze(grid: np.ndarray) -> np.ndarray:
    """Mark a grid read-only so later stages cannot mutate it in place."""
    grid.setflags(write=False)
    return grid


def to_pixel_grid(image_np: np.ndarray, grid_size: int = GRID_SIZE) -> np.ndarray:
    """
    Resample an image to a grid_size × grid_size luma grid.

    Args:
        image_np: Decoded image, H×W gray or H×W×3/4 RGB(A). Alpha is
            ignored.
        grid_size: Output side length.

    Returns:
        Read-only uint8 array of shape (grid_size, grid_size).

    Raises:
        DecodeError: If the image has zero width or height.
    """
    image_np = normalize_image(image_np)
    if image_np.ndim == 3 and image_np.shape[2] == 1:
        image_np = image_np[:, :, 0]

    resized = cv2.resize(np.ascontiguousarray(image_np), (grid_size, grid_size),
                         interpolation=cv2.INTER_LINEAR)

    if resized.ndim == 2:
        return freeze(np.ascontiguousarray(resized))

    luma = resized[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS
    grid = np.clip(np.floor(luma + 0.5), 0, 255).astype(np.uint8)

    logger.debug(f"Normalized {image_np.shape} image to {grid.shape} grid")
    return freeze(grid)
