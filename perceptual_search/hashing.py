"""
Perceptual fingerprint construction.

A fingerprint merges two independent bit strings:
    structural  one bit per block of the edge map (layout and shape)
    difference  one bit per horizontally adjacent pixel pair of the
                blurred grid (fine gradient direction)

The merged fingerprint is as long as the shorter of the two, which is
always the structural hash. Where the hashes disagree the structural
bit is preferred, so the same image always yields the same fingerprint.
"""

import logging
from typing import Optional

import numpy as np

from .filters import detect_edges, gaussian_blur
from .models import (BLOCK_SIZE, BLOCK_THRESHOLD, STRUCTURAL_WEIGHT,
                     Fingerprint, FingerprintParams)
from .preprocessing import to_pixel_grid

logger = logging.getLogger(__name__)


def _bits_to_str(bits: np.ndarray) -> str:
    return (bits.astype(np.uint8).ravel() + ord("0")).tobytes().decode("ascii")


def structural_hash(edges: np.ndarray,
                    block_size: int = BLOCK_SIZE,
                    block_threshold: float = BLOCK_THRESHOLD) -> str:
    """
    Hash block-averaged edge density.

    Blocks start at (0, 0) and advance by block_size while the start is
    strictly below size - block_size, so the final block row and column
    are never visited. Bits are emitted row-major.

    Args:
        edges: Square edge map with values in {0, 255}.
        block_size: Block side length.
        block_threshold: Mean edge value a block must exceed to emit 1.

    Returns:
        '0'/'1' string of length len(range(0, size - block_size, block_size))².
    """
    height, width = edges.shape
    bits = []
    for y in range(0, height - block_size, block_size):
        for x in range(0, width - block_size, block_size):
            block = edges[y:y + block_size, x:x + block_size]
            bits.append("1" if block.mean() > block_threshold else "0")
    return "".join(bits)


def difference_hash(grid: np.ndarray) -> str:
    """
    Hash left-to-right brightness changes, row-major.

    Emits 1 where a pixel is darker than its right neighbor. The last
    column of each row has no neighbor and emits nothing, giving
    size × (size - 1) bits.
    """
    signed = grid.astype(np.int16)
    return _bits_to_str(signed[:, :-1] < signed[:, 1:])


def merge_hashes(structural: str,
                 difference: str,
                 weight: float = STRUCTURAL_WEIGHT,
                 rng: Optional[np.random.Generator] = None) -> str:
    """
    Merge two hashes bit by bit, truncated to the shorter one.

    Agreeing bits pass through. On disagreement without an rng, the
    structural bit wins when weight >= 0.5 and the difference bit wins
    otherwise. With an rng, each disagreement takes the structural bit
    when rng.random() < weight; pass a freshly seeded generator per
    image to keep results reproducible.
    """
    length = min(len(structural), len(difference))
    merged = []
    for s_bit, d_bit in zip(structural[:length], difference[:length]):
        if s_bit == d_bit:
            merged.append(s_bit)
        elif rng is not None:
            merged.append(s_bit if rng.random() < weight else d_bit)
        else:
            merged.append(s_bit if weight >= 0.5 else d_bit)
    return "".join(merged)


def compute_fingerprint(image_np: np.ndarray,
                        params: Optional[FingerprintParams] = None) -> Fingerprint:
    """
    Compute the perceptual fingerprint of a decoded image.

    Pipeline:
        1. Resample to a grid_size × grid_size luma grid
        2. Blur the interior with a 3×3 binomial kernel
        3. Sobel edge map → structural hash
        4. Blurred grid → difference hash
        5. Merge, preferring structural bits

    Args:
        image_np: Decoded gray, RGB or RGBA image of any resolution.
        params: Fingerprint parameters; defaults from the environment.

    Returns:
        Fingerprint of length params.fingerprint_length.

    Raises:
        DecodeError: If the image has zero width or height.
    """
    params = params or FingerprintParams()

    grid = to_pixel_grid(image_np, params.grid_size)
    blurred = gaussian_blur(grid)
    edges = detect_edges(blurred, params.edge_threshold)

    structural = structural_hash(edges, params.block_size, params.block_threshold)
    difference = difference_hash(blurred)

    rng = None
    if params.merge_seed is not None:
        rng = np.random.default_rng(params.merge_seed)
    bits = merge_hashes(structural, difference, params.structural_weight, rng)

    logger.debug(
        f"Fingerprint: {len(structural)} structural + {len(difference)} "
        f"difference bits -> {len(bits)}"
    )
    return Fingerprint(bits=bits, params=params)
