"""Fingerprint decoding and similarity ranking of search results."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TypeVar

import numpy as np

from .codec import FingerprintDecodeError, decode_fingerprint
from .comparator import BitSimilarity, FingerprintComparator

T = TypeVar("T")


class FingerprintMatcher:
    """Rank candidates by how closely their stored fingerprint matches a query.

    Decoding never raises: an empty or malformed fingerprint is treated as
    absent, which disables ranking for a query and sorts a candidate last.
    """

    def __init__(self, comparator: FingerprintComparator | None = None):
        """Initialize matcher.

        Args:
            comparator: Scoring function (defaults to sliding bit similarity)
        """
        self.comparator = comparator or BitSimilarity()

    @staticmethod
    def decode(text: str | None) -> np.ndarray:
        """Decode fingerprint text, returning an empty vector on failure."""
        if not text or not text.strip():
            return np.zeros(0, dtype=np.uint32)
        try:
            items, _ = decode_fingerprint(text)
        except FingerprintDecodeError as e:
            logging.debug(f"[FingerprintMatcher] Ignoring undecodable fingerprint: {e}")
            return np.zeros(0, dtype=np.uint32)
        return items

    def score(self, query: np.ndarray, stored_text: str | None) -> float | None:
        """Score a stored fingerprint against the query.

        Returns:
            Similarity, or None if the candidate has no usable fingerprint
        """
        stored = self.decode(stored_text)
        if len(stored) == 0:
            return None
        return float(self.comparator(query, stored))

    def rank(
        self,
        query: np.ndarray,
        candidates: Iterable[T],
        fingerprint_of: Callable[[T], str | None],
        filename_of: Callable[[T], str],
    ) -> list[tuple[T, float | None]]:
        """Order candidates by similarity to *query*.

        With an empty query the candidates keep their incoming order and get no
        score. Otherwise: highest score first, unscored candidates last, equal
        scores by filename ascending.
        """
        items = list(candidates)
        if len(query) == 0:
            return [(item, None) for item in items]

        scored = [(item, self.score(query, fingerprint_of(item))) for item in items]
        scored.sort(
            key=lambda pair: (
                pair[1] is None,
                -pair[1] if pair[1] is not None else 0.0,
                filename_of(pair[0]),
            )
        )
        return scored
