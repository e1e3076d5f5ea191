"""Tests for fingerprint similarity scoring."""

from __future__ import annotations

import numpy as np
import pytest

from modprint.comparator import BitSimilarity, popcount, segment_similarity


def _random_fp(size: int, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 2**32, size=size, dtype=np.uint64).astype(np.uint32)


class TestPopcount:
    def test_counts_bits(self) -> None:
        assert popcount(np.array([0xFFFFFFFF, 1, 0], dtype=np.uint32)) == 33

    def test_empty(self) -> None:
        assert popcount(np.zeros(0, dtype=np.uint32)) == 0


class TestSegmentSimilarity:
    """Test equal-length bit agreement."""

    def test_identical(self) -> None:
        fp = _random_fp(20, seed=1)
        assert segment_similarity(fp, fp) == 1.0

    def test_inverted(self) -> None:
        fp = _random_fp(20, seed=1)
        assert segment_similarity(fp, ~fp) == 0.0

    def test_one_bit_differs(self) -> None:
        a = np.zeros(2, dtype=np.uint32)
        b = np.array([0, 1], dtype=np.uint32)

        assert segment_similarity(a, b) == pytest.approx(1 - 1 / 64)

    def test_length_mismatch(self) -> None:
        assert segment_similarity(np.zeros(2, dtype=np.uint32), np.zeros(3, dtype=np.uint32)) == 0.0


class TestBitSimilarity:
    """Test sliding comparison."""

    def test_excerpt_scores_full_match(self) -> None:
        """An excerpt from the middle of a fingerprint aligns perfectly."""
        song = _random_fp(200, seed=3)
        excerpt = song[50:90]

        assert BitSimilarity()(excerpt, song) == 1.0

    def test_argument_order_does_not_matter(self) -> None:
        song = _random_fp(100, seed=4)
        excerpt = song[10:30]
        compare = BitSimilarity()

        assert compare(song, excerpt) == compare(excerpt, song) == 1.0

    def test_unrelated_fingerprints_score_near_half(self) -> None:
        score = BitSimilarity()(_random_fp(100, seed=5), _random_fp(100, seed=6))

        assert 0.4 < score < 0.6

    def test_step_skips_alignments(self) -> None:
        song = _random_fp(100, seed=8)
        excerpt = song[3:43]

        assert BitSimilarity(step=2)(excerpt, song) < 1.0
        assert BitSimilarity(step=3)(excerpt, song) == 1.0

    def test_empty_fingerprint(self) -> None:
        compare = BitSimilarity()

        assert compare(np.zeros(0, dtype=np.uint32), _random_fp(10, seed=9)) == 0.0
        assert compare(_random_fp(10, seed=9), np.zeros(0, dtype=np.uint32)) == 0.0
