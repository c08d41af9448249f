"""
Error taxonomy for fingerprinting and matching.

Decode failures are per-image and isolated by the engine; parameter
mismatches abort a whole search since the scores would be meaningless.
"""


class DecodeError(ValueError):
    """Source image is empty, zero-sized, or could not be decoded."""


class ParameterMismatchError(ValueError):
    """Fingerprints built with different parameters were compared."""


class LengthMismatchError(ValueError):
    """Bit strings of different lengths were compared."""


class SearchCancelled(RuntimeError):
    """A batch fingerprinting run was stopped before it finished."""
