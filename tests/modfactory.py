"""Builders for module test data."""

from __future__ import annotations

from modlib.utils.inspector import _FIRST_TABLE_NOTE, _PERIOD_TABLE


def period_for(note: int) -> int:
    """Amiga period producing *note* in the built-in MOD reader."""
    return _PERIOD_TABLE[note - _FIRST_TABLE_NOTE]


def build_mod(
    notes_by_channel: list[list[int]],
    title: str = "test song",
    sample_names: tuple[str, ...] = ("lead",),
    effects: dict[tuple[int, int], tuple[int, int]] | None = None,
    channels: int = 4,
    tag: bytes = b"M.K.",
) -> bytes:
    """Build a one-pattern MOD file.

    Args:
        notes_by_channel: Per channel, note numbers per row (0 = empty)
        title: Song title
        sample_names: Names of the first samples
        effects: (row, channel) -> (effect, param)
        channels: Channel count matching *tag*
        tag: MOD signature
    """
    header = bytearray(1084)
    encoded_title = title.encode("latin-1")[:20]
    header[0 : len(encoded_title)] = encoded_title
    for i, name in enumerate(sample_names):
        encoded = name.encode("latin-1")[:22]
        header[20 + i * 30 : 20 + i * 30 + len(encoded)] = encoded
    header[950] = 1
    header[952] = 0
    header[1080:1084] = tag

    pattern = bytearray(64 * channels * 4)
    for channel, notes in enumerate(notes_by_channel):
        for row, note in enumerate(notes):
            if note:
                period = period_for(note)
                offset = (row * channels + channel) * 4
                pattern[offset] = (period >> 8) & 0x0F
                pattern[offset + 1] = period & 0xFF
                pattern[offset + 2] = 0x10  # sample 1

    for (row, channel), (effect, param) in (effects or {}).items():
        offset = (row * channels + channel) * 4
        pattern[offset + 2] = (pattern[offset + 2] & 0xF0) | effect
        pattern[offset + 3] = param

    return bytes(header + pattern)


class FakeModule:
    """In-memory module: one order and one pattern per subsong.

    ``subsongs[s][c]`` lists the raw cell values of channel *c* row by row.
    """

    def __init__(self, subsongs: list[list[list[int]]], metadata: dict[str, str] | None = None):
        self._subsongs = subsongs
        self._current = 0
        self._metadata = metadata or {}
        self.selected: list[int] = []

    @property
    def num_channels(self) -> int:
        return len(self._subsongs[0])

    @property
    def num_subsongs(self) -> int:
        return len(self._subsongs)

    def select_subsong(self, subsong: int) -> None:
        self._current = subsong
        self.selected.append(subsong)

    @property
    def num_orders(self) -> int:
        return 1

    @property
    def num_patterns(self) -> int:
        return len(self._subsongs)

    @property
    def num_samples(self) -> int:
        return 2

    @property
    def num_instruments(self) -> int:
        return 1

    @property
    def sample_names(self) -> list[str]:
        return ["kick", "snare"]

    @property
    def instrument_names(self) -> list[str]:
        return ["drums"]

    @property
    def duration_seconds(self) -> float:
        return 12.5

    def order_pattern(self, order: int) -> int:
        return self._current

    def pattern_num_rows(self, pattern: int) -> int:
        return max(len(cells) for cells in self._subsongs[pattern])

    def note(self, pattern: int, row: int, channel: int) -> int:
        cells = self._subsongs[pattern][channel]
        return cells[row] if row < len(cells) else 0

    def metadata(self, key: str) -> str:
        return self._metadata.get(key, "")
