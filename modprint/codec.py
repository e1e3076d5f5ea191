"""Chromaprint compressed fingerprint codec.

A compressed fingerprint is URL-safe base64 (no padding) of:

- 1 byte algorithm id
- 3 bytes big-endian item count
- 3-bit packed "normal" bit deltas, one 0 terminating each item
- 5-bit packed "exceptional" remainders for deltas >= 7

Items are XOR-chained: item i stores ``fp[i] ^ fp[i - 1]`` as the positions of
its set bits, each position given relative to the previous one.
"""

from __future__ import annotations

import base64
import binascii

import numpy as np

MAX_NORMAL_VALUE = 7
NORMAL_BITS = 3
EXCEPTIONAL_BITS = 5
HEADER_SIZE = 4


class FingerprintDecodeError(ValueError):
    """Fingerprint text is not a valid compressed fingerprint."""


def _unpack_bits(data: bytes, width: int) -> np.ndarray:
    """Unpack little-endian, *width*-bit packed unsigned integers."""
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8), bitorder="little")
    count = len(bits) // width
    if count == 0:
        return np.zeros(0, dtype=np.int64)
    weights = 1 << np.arange(width, dtype=np.int64)
    return bits[: count * width].reshape(count, width).astype(np.int64) @ weights


def _pack_bits(values: list[int], width: int) -> bytes:
    """Pack unsigned integers into little-endian *width*-bit fields."""
    if not values:
        return b""
    arr = np.asarray(values, dtype=np.int64)[:, None]
    bits = ((arr >> np.arange(width, dtype=np.int64)) & 1).astype(np.uint8)
    return np.packbits(bits.ravel(), bitorder="little").tobytes()


def decode_fingerprint(text: str) -> tuple[np.ndarray, int]:
    """Decode a compressed fingerprint.

    Args:
        text: Compressed fingerprint as printed by ``fpcalc``

    Returns:
        Tuple of (uint32 fingerprint items, algorithm id)

    Raises:
        FingerprintDecodeError: If the text is empty or malformed
    """
    text = text.strip()
    if not text:
        raise FingerprintDecodeError("Empty fingerprint")

    try:
        data = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as e:
        raise FingerprintDecodeError(f"Invalid base64: {e}") from e

    if len(data) < HEADER_SIZE:
        raise FingerprintDecodeError(f"Fingerprint too short ({len(data)} bytes)")

    algorithm = data[0]
    num_items = (data[1] << 16) | (data[2] << 8) | data[3]
    if num_items == 0:
        return np.zeros(0, dtype=np.uint32), algorithm

    body = data[HEADER_SIZE:]
    normal = _unpack_bits(body, NORMAL_BITS)

    terminators = np.flatnonzero(normal == 0)
    if len(terminators) < num_items:
        raise FingerprintDecodeError(
            f"Expected {num_items} items, found {len(terminators)}"
        )
    normal = normal[: terminators[num_items - 1] + 1].copy()

    exceptional_at = np.flatnonzero(normal == MAX_NORMAL_VALUE)
    if len(exceptional_at):
        exceptional_offset = (len(normal) * NORMAL_BITS + 7) // 8
        exceptional = _unpack_bits(body[exceptional_offset:], EXCEPTIONAL_BITS)
        if len(exceptional) < len(exceptional_at):
            raise FingerprintDecodeError("Truncated exceptional bits")
        normal[exceptional_at] += exceptional[: len(exceptional_at)]

    items = np.zeros(num_items, dtype=np.uint32)
    index = 0
    previous = 0
    value = 0
    last_bit = 0
    for delta in normal.tolist():
        if delta == 0:
            previous ^= value
            items[index] = previous
            index += 1
            value = 0
            last_bit = 0
        else:
            last_bit += delta
            if last_bit > 32:
                raise FingerprintDecodeError(f"Bit position out of range: {last_bit}")
            value |= 1 << (last_bit - 1)

    return items, algorithm


def encode_fingerprint(items: np.ndarray | list[int], algorithm: int = 1) -> str:
    """Compress fingerprint items into ``fpcalc``'s textual form."""
    values = np.asarray(items, dtype=np.uint32).tolist()

    deltas: list[int] = []
    previous = 0
    for value in values:
        x = value ^ previous
        previous = value
        bit, last_bit = 1, 0
        while x:
            if x & 1:
                deltas.append(bit - last_bit)
                last_bit = bit
            x >>= 1
            bit += 1
        deltas.append(0)

    normal = [min(delta, MAX_NORMAL_VALUE) for delta in deltas]
    exceptional = [delta - MAX_NORMAL_VALUE for delta in deltas if delta >= MAX_NORMAL_VALUE]

    count = len(values)
    header = bytes([algorithm & 0xFF, (count >> 16) & 0xFF, (count >> 8) & 0xFF, count & 0xFF])
    payload = header + _pack_bits(normal, NORMAL_BITS) + _pack_bits(exceptional, EXCEPTIONAL_BITS)
    return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")
