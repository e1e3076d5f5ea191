"""Similarity scoring between decoded fingerprints."""

from __future__ import annotations

from typing import Protocol

import numpy as np


class FingerprintComparator(Protocol):
    """Scores two fingerprints; higher means more similar."""

    def __call__(self, query: np.ndarray, stored: np.ndarray) -> float: ...


def popcount(values: np.ndarray) -> int:
    """Count set bits in a uint32 array."""
    return int(np.unpackbits(np.ascontiguousarray(values, dtype=np.uint32).view(np.uint8)).sum())


def segment_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Fraction of agreeing bits between two equal-length fingerprints.

    Returns:
        Score from 0.0 (every bit differs) to 1.0 (identical)
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    differing = popcount(np.bitwise_xor(a, b))
    return 1.0 - differing / (len(a) * 32)


class BitSimilarity:
    """Best bit agreement over every alignment of the shorter fingerprint.

    The shorter fingerprint is slid along the longer one, so an excerpt taken
    from the middle of a song still scores highly.
    """

    def __init__(self, step: int = 1):
        """Initialize comparator.

        Args:
            step: Offset increment between compared alignments
        """
        self.step = max(1, step)

    def __call__(self, query: np.ndarray, stored: np.ndarray) -> float:
        if len(query) == 0 or len(stored) == 0:
            return 0.0

        if len(query) > len(stored):
            query, stored = stored, query

        width = len(query)
        best = 0.0
        for offset in range(0, len(stored) - width + 1, self.step):
            score = segment_similarity(query, stored[offset : offset + width])
            if score > best:
                best = score
                if best == 1.0:
                    break
        return best
