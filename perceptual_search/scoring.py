"""
Fingerprint distance and similarity scoring.

Similarity is the share of matching bits as a percentage, plus a flat
boost for close matches:

    base  = max(0, (1 - distance / length) * 100)
    score = min(100, base + 10)   if distance < 0.3 * length
          = base                  otherwise

The boost is a step, so scores jump at the boundary. The comparison is
done in integers (distance * 10 < length * 3) so it is exact at the
step. A float test would boost distance 3 at length 10 because
0.3 * 10 evaluates to 3.0000000000000004; that behaviour is not
reproduced on purpose, and lengths that are multiples of 10 get no
boost at exactly 30% distance.
"""

import logging
from typing import Iterable, List

import numpy as np

from .errors import LengthMismatchError, ParameterMismatchError
from .models import Fingerprint, MatchResult

logger = logging.getLogger(__name__)

STRUCTURAL_BOOST = 10.0
# Boost applies when distance / length < BOOST_NUMERATOR / BOOST_DENOMINATOR
BOOST_NUMERATOR = 3
BOOST_DENOMINATOR = 10
MAX_SIMILARITY = 100.0


def hamming_distance(bits_a: str, bits_b: str) -> int:
    """
    Count positions at which two '0'/'1' strings differ.

    Raises:
        LengthMismatchError: If the strings differ in length.
    """
    if len(bits_a) != len(bits_b):
        raise LengthMismatchError(
            f"Cannot compare {len(bits_a)}-bit and {len(bits_b)}-bit hashes"
        )
    a = np.frombuffer(bits_a.encode("ascii"), dtype=np.uint8)
    b = np.frombuffer(bits_b.encode("ascii"), dtype=np.uint8)
    return int(np.count_nonzero(a != b))


def check_comparable(a: Fingerprint, b: Fingerprint):
    """Raise ParameterMismatchError unless both were built with the same parameters."""
    if a.params != b.params:
        raise ParameterMismatchError(
            f"Fingerprints built with different parameters: "
            f"{a.params} vs {b.params}"
        )


def distance(a: Fingerprint, b: Fingerprint) -> int:
    """Hamming distance between two comparable fingerprints."""
    check_comparable(a, b)
    return hamming_distance(a.bits, b.bits)


def similarity_from_distance(dist: int, length: int) -> float:
    """
    Map a Hamming distance over `length` bits to a 0-100 similarity.

    Args:
        dist: Number of differing bits.
        length: Fingerprint length in bits (> 0).

    Returns:
        Similarity percentage, including the close-match boost.
    """
    if length <= 0:
        raise ValueError(f"Fingerprint length must be positive, got {length}")

    base = max(0.0, (length - dist) * 100.0 / length)
    if dist * BOOST_DENOMINATOR < length * BOOST_NUMERATOR:
        return min(MAX_SIMILARITY, base + STRUCTURAL_BOOST)
    return base


def similarity(a: Fingerprint, b: Fingerprint) -> float:
    """Similarity percentage (0-100) between two comparable fingerprints."""
    return similarity_from_distance(distance(a, b), len(a))


def rank_results(results: Iterable[MatchResult]) -> List[MatchResult]:
    """
    Sort match results by similarity, highest first.

    The sort is stable: equal scores keep their input order.
    """
    return sorted(results, key=lambda r: -r.similarity)
