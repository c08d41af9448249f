"""
Immutable value types shared across the fingerprint pipeline.

Fingerprint defaults are read from the environment so they can be tuned
without code changes. Fingerprints are only comparable when built with
identical parameters, so the parameters travel with every fingerprint.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

import numpy as np

# Fingerprint construction defaults. Changing any of these produces
# fingerprints that cannot be compared with previously computed ones.
GRID_SIZE = int(os.environ.get("FP_GRID_SIZE", "64"))
BLOCK_SIZE = int(os.environ.get("FP_BLOCK_SIZE", "4"))
EDGE_THRESHOLD = float(os.environ.get("FP_EDGE_THRESHOLD", "30"))
BLOCK_THRESHOLD = float(os.environ.get("FP_BLOCK_THRESHOLD", "64"))
STRUCTURAL_WEIGHT = float(os.environ.get("FP_STRUCTURAL_WEIGHT", "0.7"))

_BIT_CHARS = frozenset("01")


@dataclass(frozen=True)
class FingerprintParams:
    """
    Parameters controlling fingerprint construction.

    Attributes:
        grid_size: Side length of the normalized grayscale grid.
        block_size: Side length of the structural-hash blocks.
        edge_threshold: Sobel magnitude above which a pixel is an edge.
        block_threshold: Mean edge value above which a block emits 1.
        structural_weight: Preference for the structural bit when the
            two component hashes disagree.
        merge_seed: Optional seed for weighted disagreement resolution.
            None means the preferred hash always wins.
    """

    grid_size: int = GRID_SIZE
    block_size: int = BLOCK_SIZE
    edge_threshold: float = EDGE_THRESHOLD
    block_threshold: float = BLOCK_THRESHOLD
    structural_weight: float = STRUCTURAL_WEIGHT
    merge_seed: Optional[int] = None

    def __post_init__(self):
        if self.block_size < 1:
            raise ValueError(f"block_size must be >= 1, got {self.block_size}")
        if self.grid_size <= self.block_size:
            raise ValueError(
                f"grid_size ({self.grid_size}) must exceed "
                f"block_size ({self.block_size})"
            )
        if not 0.0 <= self.structural_weight <= 1.0:
            raise ValueError(
                f"structural_weight must be in [0, 1], got {self.structural_weight}"
            )

    @property
    def blocks_per_side(self) -> int:
        # Blocks start at 0 and stop strictly before grid_size - block_size.
        return len(range(0, self.grid_size - self.block_size, self.block_size))

    @property
    def fingerprint_length(self) -> int:
        """Bit length of a fingerprint built with these parameters."""
        structural = self.blocks_per_side ** 2
        difference = self.grid_size * (self.grid_size - 1)
        return min(structural, difference)


@dataclass(frozen=True)
class Fingerprint:
    """Fixed-length perceptual hash as a '0'/'1' string plus its parameters."""

    bits: str
    params: FingerprintParams = field(default_factory=FingerprintParams)

    def __post_init__(self):
        if not set(self.bits) <= _BIT_CHARS:
            raise ValueError("Fingerprint bits must contain only '0' and '1'")
        expected = self.params.fingerprint_length
        if len(self.bits) != expected:
            raise ValueError(
                f"Fingerprint has {len(self.bits)} bits, parameters "
                f"require {expected}"
            )

    def __len__(self) -> int:
        return len(self.bits)

    def __str__(self) -> str:
        return self.bits

    def as_array(self) -> np.ndarray:
        """Bits as a uint8 vector of zeros and ones."""
        return np.frombuffer(self.bits.encode("ascii"), dtype=np.uint8) - ord("0")

    def packed(self) -> np.ndarray:
        """Bits packed eight per byte, zero padded at the end."""
        return np.packbits(self.as_array())


@dataclass(frozen=True)
class CandidateRecord:
    """Caller identity paired with a fingerprint. Identity is never inspected."""

    identity: Any
    fingerprint: Fingerprint


@dataclass(frozen=True)
class MatchResult:
    record: CandidateRecord
    similarity: float

    def __post_init__(self):
        if not 0.0 <= self.similarity <= 100.0:
            raise ValueError(
                f"similarity must be within 0-100, got {self.similarity}"
            )

    @property
    def identity(self) -> Any:
        return self.record.identity


@dataclass(frozen=True)
class ImageInfo:
    """Metadata the surrounding application knows about a source image."""

    name: str
    size_bytes: int = 0


@dataclass(frozen=True, eq=False)
class DecodedImage:
    """
    A decoded image ready for fingerprinting.

    Pixels are an H×W (gray), H×W×3 (RGB) or H×W×4 (RGBA) array.
    """

    info: ImageInfo
    pixels: np.ndarray


@dataclass(frozen=True)
class DecodeFailure:
    identity: Any
    reason: str


@dataclass(frozen=True)
class SearchReport:
    """Ranked matches from a batch search plus images that were skipped."""

    results: Tuple[MatchResult, ...]
    failures: Tuple[DecodeFailure, ...]
    scanned: int

    def __len__(self) -> int:
        return len(self.results)
