"""Tests for fingerprint distance, similarity and ranking."""

import pytest

from perceptual_search.errors import LengthMismatchError, ParameterMismatchError
from perceptual_search.models import (CandidateRecord, Fingerprint,
                                      FingerprintParams, MatchResult)
from perceptual_search.scoring import (distance, hamming_distance, rank_results,
                                       similarity, similarity_from_distance)


def _fp(bits, params):
    return Fingerprint(bits=bits, params=params)


def _flipped(n_flips, params):
    """Fingerprint differing from all-zeros in the first n_flips bits."""
    length = params.fingerprint_length
    return _fp("1" * n_flips + "0" * (length - n_flips), params)


class TestHammingDistance:
    """Tests for raw bit-string distance."""

    def test_counts_differences(self):
        assert hamming_distance("0101", "0011") == 2

    def test_identical_is_zero(self):
        assert hamming_distance("1101", "1101") == 0

    def test_length_mismatch_raises(self):
        with pytest.raises(LengthMismatchError):
            hamming_distance("0101", "010")


class TestDistance:
    """Tests for fingerprint distance."""

    def test_reflexive(self, small_params):
        h = _fp("1011001110001111", small_params)
        assert distance(h, h) == 0

    def test_symmetric(self, small_params):
        a = _fp("1011001110001111", small_params)
        b = _fp("0011101100011110", small_params)
        assert distance(a, b) == distance(b, a) == 5

    def test_grid_size_mismatch_raises(self):
        a = _flipped(0, FingerprintParams(grid_size=64))
        b = _flipped(0, FingerprintParams(grid_size=32))
        with pytest.raises(ParameterMismatchError):
            distance(a, b)
        with pytest.raises(ParameterMismatchError):
            similarity(a, b)

    def test_block_size_mismatch_raises(self):
        a = _flipped(0, FingerprintParams(grid_size=20, block_size=4))
        b = _flipped(0, FingerprintParams(grid_size=20, block_size=5))
        with pytest.raises(ParameterMismatchError):
            distance(a, b)


class TestSimilarity:
    """Tests for distance-to-percentage mapping and the close-match boost."""

    def test_identical_is_100(self, small_params):
        h = _fp("1011001110001111", small_params)
        assert similarity(h, h) == 100.0

    def test_boost_capped_at_100(self, small_params):
        base = _flipped(0, small_params)
        # 1/16 bits differ: 93.75 + 10 capped
        assert similarity(base, _flipped(1, small_params)) == 100.0

    def test_boost_applied_below_boundary(self, small_params):
        base = _flipped(0, small_params)
        # 4 < 0.3 * 16 = 4.8: 75 + 10
        assert similarity(base, _flipped(4, small_params)) == 85.0

    def test_no_boost_above_boundary(self, small_params):
        base = _flipped(0, small_params)
        # 5 >= 4.8: plain 68.75
        assert similarity(base, _flipped(5, small_params)) == 68.75

    def test_boundary_is_strict(self):
        # 3 == 0.3 * 10 exactly, so no boost
        assert similarity_from_distance(2, 10) == 90.0
        assert similarity_from_distance(3, 10) == 70.0

    def test_monotonic_non_increasing(self, small_params):
        base = _flipped(0, small_params)
        scores = [similarity(base, _flipped(d, small_params)) for d in range(17)]
        assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))
        # The step at the boost boundary is larger than a one-bit step
        assert scores[4] - scores[5] > 100.0 / 16

    def test_completely_different_is_zero(self, small_params):
        assert similarity(_flipped(0, small_params), _flipped(16, small_params)) == 0.0

    def test_score_within_range(self):
        for length in (1, 7, 225):
            for dist in range(length + 1):
                assert 0 <= similarity_from_distance(dist, length) <= 100

    def test_zero_length_rejected(self):
        with pytest.raises(ValueError):
            similarity_from_distance(0, 0)


class TestFingerprintValidation:
    """Tests for fingerprint construction checks."""

    def test_rejects_non_binary_characters(self, small_params):
        with pytest.raises(ValueError, match="'0' and '1'"):
            _fp("2" * 16, small_params)

    def test_rejects_wrong_length(self, small_params):
        with pytest.raises(ValueError, match="bits"):
            _fp("0" * 15, small_params)

    def test_rejects_grid_not_larger_than_block(self):
        with pytest.raises(ValueError):
            FingerprintParams(grid_size=4, block_size=4)


class TestMatchResultValidation:
    """Tests for the bounded similarity score on match results."""

    @pytest.mark.parametrize("score", [-0.5, 100.5, 250.0])
    def test_rejects_out_of_range_similarity(self, score, small_params):
        record = CandidateRecord(identity="x", fingerprint=_flipped(0, small_params))
        with pytest.raises(ValueError, match="0-100"):
            MatchResult(record=record, similarity=score)

    @pytest.mark.parametrize("score", [0.0, 68.75, 100.0])
    def test_accepts_bounds(self, score, small_params):
        record = CandidateRecord(identity="x", fingerprint=_flipped(0, small_params))
        assert MatchResult(record=record, similarity=score).similarity == score


class TestRankResults:
    """Tests for result ranking."""

    @staticmethod
    def _result(name, score, params):
        record = CandidateRecord(identity=name, fingerprint=_flipped(0, params))
        return MatchResult(record=record, similarity=score)

    def test_ranks_by_score_descending(self, small_params):
        results = [self._result("a", 50, small_params),
                   self._result("b", 80, small_params),
                   self._result("c", 30, small_params)]
        ranked = rank_results(results)
        assert [r.identity for r in ranked] == ["b", "a", "c"]

    def test_ties_keep_input_order(self, small_params):
        results = [self._result("first", 75, small_params),
                   self._result("second", 90, small_params),
                   self._result("third", 75, small_params)]
        ranked = rank_results(results)
        assert [r.identity for r in ranked] == ["second", "first", "third"]

    def test_empty_list(self):
        assert rank_results([]) == []
