"""
Smoothing and edge extraction over normalized luma grids.

Both filters only compute the interior of the grid: a 3×3 window is
undefined on the outermost ring. The blur leaves that ring at its
normalized value, the edge map leaves it at 0. Downstream hash bits
depend on this asymmetry, so it must not be "fixed" with padding.

The blur runs through cv2.filter2D and the gradients through cv2.Sobel,
both in float64 so integer sums stay exact.
"""

import logging

import cv2
import numpy as np

from .models import EDGE_THRESHOLD
from .preprocessing import freeze

logger = logging.getLogger(__name__)

BLUR_KERNEL = np.array([[1, 2, 1],
                        [2, 4, 2],
                        [1, 2, 1]], dtype=np.float64)

EDGE_VALUE = 255


def _check_grid(grid: np.ndarray):
    assert grid.ndim == 2, f"expected a 2-D grid, got shape {grid.shape}"
    assert grid.shape[0] == grid.shape[1], f"grid must be square, got {grid.shape}"


def _correlate(grid: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    # Border values are discarded by callers; the border mode only has to
    # keep filter2D from reading outside the array.
    return cv2.filter2D(grid.astype(np.float64), cv2.CV_64F, kernel,
                        borderType=cv2.BORDER_REPLICATE)


def gaussian_blur(grid: np.ndarray) -> np.ndarray:
    """
    Blur the interior of a luma grid with a 3×3 binomial kernel.

    Suppresses high-frequency detail such as text and compression
    artifacts. Each interior pixel becomes the kernel-weighted mean of
    its neighborhood, rounded half up. Border pixels are copied through.

    Args:
        grid: Square uint8 luma grid.

    Returns:
        New read-only uint8 grid of the same shape.
    """
    _check_grid(grid)
    blurred = np.array(grid, dtype=np.uint8, copy=True)
    if min(grid.shape) < 3:
        return freeze(blurred)

    summed = _correlate(grid, BLUR_KERNEL)[1:-1, 1:-1]
    interior = np.floor(summed / BLUR_KERNEL.sum() + 0.5)
    blurred[1:-1, 1:-1] = np.clip(interior, 0, 255).astype(np.uint8)
    return freeze(blurred)


def gradient_magnitude(grid: np.ndarray) -> np.ndarray:
    """
    Sobel gradient magnitude sqrt(Gx² + Gy²) as float64, border included.

    ksize=3 gives Gx = [-1 0 1; -2 0 2; -1 0 1] and Gy = its transpose.
    """
    _check_grid(grid)
    src = grid.astype(np.float64)
    gx = cv2.Sobel(src, cv2.CV_64F, 1, 0, ksize=3, borderType=cv2.BORDER_REPLICATE)
    gy = cv2.Sobel(src, cv2.CV_64F, 0, 1, ksize=3, borderType=cv2.BORDER_REPLICATE)
    return np.sqrt(gx * gx + gy * gy)


def detect_edges(grid: np.ndarray,
                 threshold: float = EDGE_THRESHOLD) -> np.ndarray:
    """
    Binarize Sobel gradient magnitude into an edge map.

    Args:
        grid: Square uint8 grid, normally the gaussian_blur output.
        threshold: Magnitudes strictly above this become edges.

    Returns:
        Read-only uint8 grid with values in {0, 255}; the outer ring is 0.
    """
    _check_grid(grid)
    edges = np.zeros(grid.shape, dtype=np.uint8)
    if min(grid.shape) < 3:
        return freeze(edges)

    magnitude = gradient_magnitude(grid)[1:-1, 1:-1]
    edges[1:-1, 1:-1] = np.where(magnitude > threshold, EDGE_VALUE, 0)

    logger.debug(
        f"Edge map: {int(np.count_nonzero(edges))}/{edges.size} edge pixels"
    )
    return freeze(edges)
