"""
Perceptual image search engine.

Orchestrates the two-stage search:
    1. Fingerprint the reference and every candidate image (parallel,
       one task per image, cancellable between images)
    2. Score all candidate fingerprints against the reference in one
       batch, filter by threshold and rank by similarity

Decode failures are isolated per image: the image is skipped and
reported, the rest of the batch continues. Parameter mismatches abort
the search since the scores would be meaningless.
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from threading import Event, Lock
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DecodeError, SearchCancelled
from .hamming_index import batch_hamming_distances
from .hashing import compute_fingerprint
from .models import (CandidateRecord, DecodedImage, DecodeFailure, Fingerprint,
                     FingerprintParams, MatchResult, SearchReport)
from .scoring import check_comparable, rank_results, similarity_from_distance

logger = logging.getLogger(__name__)

# Minimum similarity percentage for a candidate to be returned.
DEFAULT_THRESHOLD = float(os.environ.get("SEARCH_THRESHOLD", "70"))

# Fingerprinting worker threads (cv2 and numpy release the GIL).
DEFAULT_WORKERS = int(os.environ.get("SEARCH_WORKERS", "4"))

Candidate = Union[CandidateRecord, Tuple[Any, Fingerprint]]


def _as_record(candidate: Candidate) -> CandidateRecord:
    if isinstance(candidate, CandidateRecord):
        return candidate
    identity, fingerprint = candidate
    return CandidateRecord(identity=identity, fingerprint=fingerprint)


class SearchEngine:
    """
    Fingerprints decoded images and ranks candidates against a reference.

    Each running search gets its own stop event, so one engine can serve
    repeated or concurrent searches and stop() cancels all of them.
    """

    def __init__(self,
                 params: Optional[FingerprintParams] = None,
                 max_workers: int = DEFAULT_WORKERS):
        """
        Args:
            params: Fingerprint parameters shared by every image this
                engine fingerprints.
            max_workers: Thread count for batch fingerprinting. 1 runs
                sequentially in the calling thread.
        """
        self.params = params or FingerprintParams()
        self.max_workers = max(1, max_workers)
        self._active_events = set()
        self._events_lock = Lock()

    def stop(self):
        """Request cancellation of running searches at the next image boundary."""
        logger.info("Search stop requested")
        with self._events_lock:
            events = list(self._active_events)
        for event in events:
            event.set()

    @contextmanager
    def _cancellable(self):
        event = Event()
        with self._events_lock:
            self._active_events.add(event)
        try:
            yield event
        finally:
            with self._events_lock:
                self._active_events.discard(event)

    def fingerprint(self, image: Union[DecodedImage, np.ndarray]) -> Fingerprint:
        """
        Fingerprint a single decoded image.

        Raises:
            DecodeError: If the image has no usable pixels.
        """
        pixels = image.pixels if isinstance(image, DecodedImage) else image
        return compute_fingerprint(pixels, self.params)

    def _fingerprint_record(self, image: DecodedImage) -> CandidateRecord:
        return CandidateRecord(identity=image.info, fingerprint=self.fingerprint(image))

    def fingerprint_all(self, images: Iterable[DecodedImage]
                        ) -> Tuple[List[CandidateRecord], List[DecodeFailure]]:
        """
        Fingerprint a batch of images.

        Results keep the input order regardless of completion order.
        The stop flag is checked after every finished image.

        Returns:
            Tuple of (candidate records, decode failures).

        Raises:
            SearchCancelled: If stop() was called before the batch finished.
        """
        with self._cancellable() as stop_event:
            return self._fingerprint_batch(images, stop_event)

    def _fingerprint_batch(self, images: Iterable[DecodedImage], stop_event: Event
                           ) -> Tuple[List[CandidateRecord], List[DecodeFailure]]:
        images = list(images)
        slots: List[Optional[CandidateRecord]] = [None] * len(images)
        failures = []

        def record_failure(position, error):
            info = images[position].info
            logger.warning(f"Skipping {info.name}: {error}")
            failures.append((position, DecodeFailure(identity=info, reason=str(error))))

        if self.max_workers == 1:
            for position, image in enumerate(images):
                if stop_event.is_set():
                    raise SearchCancelled(f"Cancelled after {position}/{len(images)} images")
                try:
                    slots[position] = self._fingerprint_record(image)
                except DecodeError as e:
                    record_failure(position, e)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                future_to_position = {
                    executor.submit(self._fingerprint_record, image): position
                    for position, image in enumerate(images)
                }
                done = 0
                for future in as_completed(future_to_position):
                    position = future_to_position[future]
                    try:
                        slots[position] = future.result()
                    except DecodeError as e:
                        record_failure(position, e)
                    done += 1

                    if stop_event.is_set() and done < len(images):
                        executor.shutdown(wait=False, cancel_futures=True)
                        raise SearchCancelled(f"Cancelled after {done}/{len(images)} images")

        records = [record for record in slots if record is not None]
        failures.sort(key=lambda item: item[0])

        logger.info(
            f"Fingerprinted {len(records)}/{len(images)} images "
            f"({len(failures)} failed)"
        )
        return records, [failure for _, failure in failures]

    def search(self,
               reference: Fingerprint,
               candidates: Sequence[Candidate],
               threshold: float = DEFAULT_THRESHOLD) -> List[MatchResult]:
        """
        Rank candidates by similarity to the reference.

        Args:
            reference: Reference fingerprint.
            candidates: CandidateRecords or (identity, fingerprint) pairs.
            threshold: Minimum similarity percentage (0-100) to keep.

        Returns:
            MatchResults with similarity >= threshold, highest first;
            equal scores keep candidate order.

        Raises:
            ValueError: If threshold is outside 0-100.
            ParameterMismatchError: If any candidate was built with
                different parameters than the reference.
        """
        if not 0 <= threshold <= 100:
            raise ValueError(f"threshold must be within 0-100, got {threshold}")

        records = [_as_record(c) for c in candidates]
        for record in records:
            check_comparable(reference, record.fingerprint)

        distances = batch_hamming_distances(
            reference, [record.fingerprint for record in records]
        )

        length = len(reference)
        results = []
        for record, dist in zip(records, distances):
            score = similarity_from_distance(int(dist), length)
            if score >= threshold:
                results.append(MatchResult(record=record, similarity=score))

        results = rank_results(results)

        logger.info(
            f"Search complete: {len(records)} candidates → "
            f"{len(results)} results at threshold {threshold}"
        )
        return results

    def find_similar_images(self,
                            reference_image: DecodedImage,
                            images: Iterable[DecodedImage],
                            threshold: float = DEFAULT_THRESHOLD) -> SearchReport:
        """
        Fingerprint a reference and candidate images, then search.

        Candidates that fail to decode are reported in the returned
        SearchReport instead of aborting the search.

        Raises:
            DecodeError: If the reference image cannot be fingerprinted.
            SearchCancelled: If stop() was called during fingerprinting.
        """
        images = list(images)
        with self._cancellable() as stop_event:
            reference = self.fingerprint(reference_image)
            if stop_event.is_set():
                raise SearchCancelled("Cancelled after the reference image")
            records, failures = self._fingerprint_batch(images, stop_event)
        results = self.search(reference, records, threshold)
        return SearchReport(
            results=tuple(results),
            failures=tuple(failures),
            scanned=len(images),
        )
