"""
perceptual_search: perceptual-hash image similarity search.

Reduces each image to a fixed-length fingerprint (edge-structure bits
merged with brightness-gradient bits) and ranks candidate images by
Hamming similarity to a reference image.

Modules:
    engine          Main SearchEngine class
    hashing         Structural/difference hashes and fingerprint merge
    filters         Gaussian smoothing and Sobel edge extraction
    preprocessing   Resampling to a fixed-size luma grid
    scoring         Distance, similarity and ranking
    hamming_index   Batch Hamming distance with FAISS binary indexes
    loader          Image file discovery and decoding
    models          Immutable value types
    errors          Exception types
"""

from .engine import SearchEngine
from .errors import (DecodeError, LengthMismatchError, ParameterMismatchError,
                     SearchCancelled)
from .hashing import compute_fingerprint
from .models import (CandidateRecord, DecodedImage, DecodeFailure, Fingerprint,
                     FingerprintParams, ImageInfo, MatchResult, SearchReport)
from .scoring import distance, similarity

__version__ = "1.0.0"
