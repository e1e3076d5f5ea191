"""Modprint - Fingerprint similarity ranking for the Mod Library.

Fingerprints are chromaprint's compressed text form (as printed by ``fpcalc``).
They are decoded into 32-bit items and compared bit by bit at the best
alignment, so an excerpt of a song still ranks the full song highly.

References:
- Chromaprint: https://github.com/acoustid/chromaprint
"""

__version__ = "0.1.0"

from .codec import FingerprintDecodeError, decode_fingerprint, encode_fingerprint
from .comparator import BitSimilarity, FingerprintComparator
from .matcher import FingerprintMatcher

__all__ = [
    "BitSimilarity",
    "FingerprintComparator",
    "FingerprintDecodeError",
    "FingerprintMatcher",
    "decode_fingerprint",
    "encode_fingerprint",
]
