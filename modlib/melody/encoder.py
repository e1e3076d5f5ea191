"""Delta encoding of a module's note events.

The whole module is flattened into one byte sequence of note intervals so a
melody can be found by plain substring search, independent of its absolute
pitch. One running "last note" is kept across the entire module:

- every channel (of every subsong) starts with a marker byte equal to the
  negated running note, which does not change the running note;
- every valid note (1..128) emits ``note - last_note`` wrapped to 8 bits and
  becomes the new running note;
- empty cells, note-offs and out-of-range values emit nothing.

Large jumps wrap around (e.g. +200 and -56 encode to the same byte).
"""

from __future__ import annotations

from modlib.utils.inspector import NOTE_MAX, NOTE_MIN, ModuleInspector


def to_int8(value: int) -> int:
    """Wrap an integer into the signed 8-bit range."""
    return (value + 128) % 256 - 128


def to_byte(value: int) -> int:
    """Wrap an integer into an unsigned byte (two's complement)."""
    return value & 0xFF


class NoteSequenceEncoder:
    """Build the ``note_data`` blob for a module."""

    def encode(self, module: ModuleInspector) -> bytes:
        """Encode every subsong and channel of *module*.

        Args:
            module: Parsed module

        Returns:
            Concatenated delta-encoded note bytes
        """
        notes = bytearray()
        last_note = 0

        for subsong in range(module.num_subsongs):
            module.select_subsong(subsong)
            for channel in range(module.num_channels):
                # Channel marker, leaves the running note untouched
                notes.append(to_byte(-last_note))
                for note in self._channel_notes(module, channel):
                    notes.append(to_byte(note - last_note))
                    last_note = to_int8(note)

        return bytes(notes)

    @staticmethod
    def _channel_notes(module: ModuleInspector, channel: int):
        """Yield the valid notes of one channel in playback order."""
        for order in range(module.num_orders):
            pattern = module.order_pattern(order)
            for row in range(module.pattern_num_rows(pattern)):
                note = module.note(pattern, row, channel)
                if NOTE_MIN <= note <= NOTE_MAX:
                    yield note


def encode_notes(module: ModuleInspector) -> bytes:
    """Shortcut for ``NoteSequenceEncoder().encode(module)``."""
    return NoteSequenceEncoder().encode(module)
