"""Module inspection interface and a built-in ProTracker MOD reader.

The library only needs a small query surface from a parsed module: channel,
subsong and order counts, the order -> pattern -> row traversal, a per-cell
note lookup, sample/instrument names, free-text metadata and the duration.
Any reader exposing ``ModuleInspector`` can be plugged into ``LibraryIndex``;
``open_module`` is the default and understands ProTracker-style MOD files.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

NOTE_MIN = 1
NOTE_MAX = 128
"""Valid note values returned by ``ModuleInspector.note``; 0 means no note."""


class ModuleParseError(ValueError):
    """Data is not a recognized (or is a corrupt) module."""


@runtime_checkable
class ModuleInspector(Protocol):
    """Read-only view of a parsed module."""

    @property
    def num_channels(self) -> int: ...

    @property
    def num_subsongs(self) -> int: ...

    def select_subsong(self, subsong: int) -> None: ...

    @property
    def num_orders(self) -> int: ...

    @property
    def num_patterns(self) -> int: ...

    @property
    def num_samples(self) -> int: ...

    @property
    def num_instruments(self) -> int: ...

    @property
    def sample_names(self) -> list[str]: ...

    @property
    def instrument_names(self) -> list[str]: ...

    @property
    def duration_seconds(self) -> float: ...

    def order_pattern(self, order: int) -> int: ...

    def pattern_num_rows(self, pattern: int) -> int: ...

    def note(self, pattern: int, row: int, channel: int) -> int: ...

    def metadata(self, key: str) -> str: ...


# ProTracker periods (finetune 0) for PT octaves 1-3
_PT_PERIODS = [
    856, 808, 762, 720, 678, 640, 604, 570, 538, 508, 480, 453,
    428, 404, 381, 360, 339, 320, 302, 285, 269, 254, 240, 226,
    214, 202, 190, 180, 170, 160, 151, 143, 135, 127, 120, 113,
]

# PT octave 0 and 4 extend the table by doubling / halving
_PERIOD_TABLE = (
    [p * 2 for p in _PT_PERIODS[:12]] + _PT_PERIODS + [p // 2 for p in _PT_PERIODS[24:]]
)

# PT C-1 is displayed as C-4 by OpenMPT (note 49); the table starts one octave lower
_FIRST_TABLE_NOTE = 37

_PERIOD_TO_NOTE = {period: _FIRST_TABLE_NOTE + i for i, period in enumerate(_PERIOD_TABLE)}

_FOUR_CHANNEL_TAGS = {b"M.K.", b"M!K!", b"M&K!", b"FLT4", b"4CHN", b"N.T."}
_EIGHT_CHANNEL_TAGS = {b"FLT8", b"CD81", b"OKTA", b"OCTA"}


def period_to_note(period: int) -> int:
    """Map an Amiga period to a note number (0 for an empty cell)."""
    if period <= 0:
        return 0
    note = _PERIOD_TO_NOTE.get(period)
    if note is not None:
        return note
    nearest = min(range(len(_PERIOD_TABLE)), key=lambda i: abs(_PERIOD_TABLE[i] - period))
    return _FIRST_TABLE_NOTE + nearest


def _channels_from_tag(tag: bytes) -> int | None:
    """Return the channel count encoded in a MOD signature, if recognized."""
    if tag in _FOUR_CHANNEL_TAGS:
        return 4
    if tag in _EIGHT_CHANNEL_TAGS:
        return 8
    # xCHN (e.g. 6CHN) and xxCH (e.g. 12CH)
    if tag[1:] == b"CHN" and tag[:1].isdigit():
        return int(tag[:1])
    if tag[2:] in (b"CH", b"CN") and tag[:2].isdigit():
        return int(tag[:2])
    return None


def _decode_text(raw: bytes) -> str:
    """Decode a fixed-width, NUL-padded text field."""
    return raw.split(b"\x00", 1)[0].decode("latin-1").rstrip()


class ProTrackerModule:
    """Parsed ProTracker-style MOD file (31 samples, 64-row patterns)."""

    HEADER_SIZE = 1084
    ROWS_PER_PATTERN = 64
    NUM_SAMPLES = 31
    SAMPLE_HEADER_SIZE = 30

    def __init__(self, data: bytes):
        """Parse module data.

        Args:
            data: Raw file contents

        Raises:
            ModuleParseError: If the data is not a MOD file or is truncated
        """
        if len(data) < self.HEADER_SIZE:
            raise ModuleParseError(f"Too short for a MOD file ({len(data)} bytes)")

        channels = _channels_from_tag(data[1080:1084])
        if not channels:
            raise ModuleParseError(f"Unknown MOD signature: {data[1080:1084]!r}")

        song_length = data[950]
        if not 1 <= song_length <= 128:
            raise ModuleParseError(f"Invalid song length: {song_length}")

        order_table = data[952:1080]
        num_patterns = max(order_table) + 1
        pattern_size = self.ROWS_PER_PATTERN * channels * 4
        end = self.HEADER_SIZE + num_patterns * pattern_size
        if len(data) < end:
            raise ModuleParseError(
                f"Truncated pattern data: need {end} bytes, got {len(data)}"
            )

        self._channels = channels
        self._pattern_size = pattern_size
        self._num_patterns = num_patterns
        self._orders = list(order_table[:song_length])
        self._patterns = data[self.HEADER_SIZE : end]
        self._title = _decode_text(data[0:20])
        self._sample_names = [
            _decode_text(data[20 + i * self.SAMPLE_HEADER_SIZE : 42 + i * self.SAMPLE_HEADER_SIZE])
            for i in range(self.NUM_SAMPLES)
        ]
        self._duration = self._compute_duration()

    # ------------------------------------------------------------------
    # ModuleInspector
    # ------------------------------------------------------------------

    @property
    def num_channels(self) -> int:
        return self._channels

    @property
    def num_subsongs(self) -> int:
        return 1

    def select_subsong(self, subsong: int) -> None:
        if subsong != 0:
            raise IndexError(f"Subsong out of range: {subsong}")

    @property
    def num_orders(self) -> int:
        return len(self._orders)

    @property
    def num_patterns(self) -> int:
        return self._num_patterns

    @property
    def num_samples(self) -> int:
        return self.NUM_SAMPLES

    @property
    def num_instruments(self) -> int:
        return 0

    @property
    def sample_names(self) -> list[str]:
        return list(self._sample_names)

    @property
    def instrument_names(self) -> list[str]:
        return []

    @property
    def duration_seconds(self) -> float:
        return self._duration

    def order_pattern(self, order: int) -> int:
        return self._orders[order]

    def pattern_num_rows(self, pattern: int) -> int:
        return self.ROWS_PER_PATTERN

    def note(self, pattern: int, row: int, channel: int) -> int:
        b0, b1, _, _ = self._cell(pattern, row, channel)
        return period_to_note(((b0 & 0x0F) << 8) | b1)

    def metadata(self, key: str) -> str:
        if key == "title":
            return self._title
        if key == "type":
            return "mod"
        if key == "message":
            # MOD has no song message; sample names are conventionally used for it
            return "\n".join(name for name in self._sample_names if name)
        return ""

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cell(self, pattern: int, row: int, channel: int) -> bytes:
        offset = pattern * self._pattern_size + (row * self._channels + channel) * 4
        return self._patterns[offset : offset + 4]

    def _effect(self, pattern: int, row: int, channel: int) -> tuple[int, int]:
        _, _, b2, b3 = self._cell(pattern, row, channel)
        return b2 & 0x0F, b3

    def _compute_duration(self) -> float:
        """Play through the order list honouring speed, tempo and jumps.

        Playback stops when an order/row entry point is visited a second time,
        so songs that loop back are measured once.
        """
        speed, tempo = 6, 125
        seconds = 0.0
        order, start_row = 0, 0
        visited: set[tuple[int, int]] = set()

        while order < len(self._orders) and (order, start_row) not in visited:
            visited.add((order, start_row))
            pattern = self._orders[order]
            next_order, next_row = order + 1, 0

            for row in range(start_row, self.ROWS_PER_PATTERN):
                jump_order: int | None = None
                break_row: int | None = None
                for channel in range(self._channels):
                    effect, param = self._effect(pattern, row, channel)
                    if effect == 0xF and param:
                        if param < 32:
                            speed = param
                        else:
                            tempo = param
                    elif effect == 0xB:
                        jump_order = param
                    elif effect == 0xD:
                        break_row = (param >> 4) * 10 + (param & 0x0F)
                        if break_row >= self.ROWS_PER_PATTERN:
                            break_row = 0

                seconds += speed * 2.5 / tempo

                if jump_order is not None or break_row is not None:
                    next_order = jump_order if jump_order is not None else order + 1
                    next_row = break_row or 0
                    break

            order, start_row = next_order, next_row

        return seconds


SUPPORTED_EXTENSIONS = ["mod"]
"""File extensions understood by ``open_module``."""


def open_module(data: bytes) -> ModuleInspector:
    """Parse raw bytes into a module inspector.

    Raises:
        ModuleParseError: If the data is not a recognized module
    """
    module = ProTrackerModule(data)
    logging.debug(
        f"[Inspector] Parsed MOD: {module.num_channels} channels, "
        f"{module.num_orders} orders, {module.num_patterns} patterns"
    )
    return module
