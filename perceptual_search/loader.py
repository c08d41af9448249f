"""
File acquisition for perceptual search.

The fingerprint core only sees decoded pixel arrays. This module is the
collaborator that finds image files, decodes them into DecodedImage
records and runs a directory search through the SearchEngine.

Files are read with np.fromfile + cv2.imdecode rather than cv2.imread
so paths with non-ASCII characters decode on every platform.
"""

import os
import logging
from typing import Iterable, Iterator, List, Optional, Tuple

import cv2
import numpy as np

from .engine import DEFAULT_THRESHOLD, SearchEngine
from .errors import DecodeError
from .models import DecodedImage, DecodeFailure, ImageInfo, SearchReport

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.webp',
                    '.gif', '.tif', '.tiff'}


def is_image_file(path: str) -> bool:
    """True if the path has a recognized image extension."""
    return os.path.splitext(path)[1].lower() in IMAGE_EXTENSIONS


def iter_image_files(image_dir: str, recursive: bool = False) -> Iterator[str]:
    """
    Yield image file paths under image_dir, sorted by name.

    Args:
        image_dir: Directory to scan.
        recursive: Also descend into subdirectories.
    """
    if not recursive:
        for name in sorted(os.listdir(image_dir)):
            path = os.path.join(image_dir, name)
            if os.path.isfile(path) and is_image_file(name):
                yield path
        return

    for folder, dirs, files in os.walk(image_dir):
        dirs.sort()
        for name in sorted(files):
            if is_image_file(name):
                yield os.path.join(folder, name)


def load_image(path: str) -> DecodedImage:
    """
    Decode an image file into RGB(A) or gray pixels.

    Raises:
        DecodeError: If the file is empty, unreadable or not an image.
    """
    try:
        stream = np.fromfile(path, dtype=np.uint8)
    except OSError as e:
        raise DecodeError(f"Could not read {path}: {e}") from e
    if stream.size == 0:
        raise DecodeError(f"Empty file: {path}")

    image = cv2.imdecode(stream, cv2.IMREAD_UNCHANGED)
    if image is None or image.size == 0:
        raise DecodeError(f"Could not decode: {path}")

    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    elif image.ndim == 3 and image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

    info = ImageInfo(name=os.path.basename(path), size_bytes=int(stream.size))
    logger.debug(f"Loaded {info.name} shape={image.shape}")
    return DecodedImage(info=info, pixels=image)


def load_images(paths: Iterable[str]
                ) -> Tuple[List[DecodedImage], List[DecodeFailure]]:
    """Decode many files, collecting failures instead of raising."""
    images = []
    failures = []
    for path in paths:
        try:
            images.append(load_image(path))
        except DecodeError as e:
            logger.warning(f"Skipping {path}: {e}")
            failures.append(DecodeFailure(
                identity=ImageInfo(name=os.path.basename(path)), reason=str(e)
            ))
    return images, failures


def search_directory(reference_path: str,
                     image_dir: str,
                     threshold: float = DEFAULT_THRESHOLD,
                     recursive: bool = False,
                     engine: Optional[SearchEngine] = None) -> SearchReport:
    """
    Find images in a directory that look like a reference image.

    The reference file itself is excluded from the candidates when it
    lives inside image_dir.

    Returns:
        SearchReport whose failures include files that did not decode.

    Raises:
        DecodeError: If the reference image cannot be decoded.
    """
    engine = engine or SearchEngine()
    reference = load_image(reference_path)

    reference_abs = os.path.abspath(reference_path)
    paths = [p for p in iter_image_files(image_dir, recursive)
             if os.path.abspath(p) != reference_abs]

    logger.info(f"Searching {len(paths)} images in {image_dir}")
    images, load_failures = load_images(paths)
    report = engine.find_similar_images(reference, images, threshold)

    return SearchReport(
        results=report.results,
        failures=tuple(load_failures) + report.failures,
        scanned=len(paths),
    )
