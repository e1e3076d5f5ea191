"""Melody search needles.

A melody is typed as interval phrases separated by ``|``, e.g. ``"2 2 1 | -5 0"``:
each phrase is a list of signed semitone steps. Phrases are compiled into the
same bytes ``NoteSequenceEncoder`` produces, so a module matches when every
phrase occurs somewhere in its ``note_data`` (phrases are not required to be in
the same channel or subsong).

Notes copied from an OpenMPT pattern editor can be turned into the typed form
with ``grid_to_melody``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from modlib.melody.encoder import to_byte

PHRASE_SEPARATOR = "|"

PASTE_HEADER = "ModPlug Tracker "
"""Marker preceding pattern data in OpenMPT/ModPlug clipboard text."""

NOTE_NAMES = ["C-", "C#", "D-", "D#", "E-", "F-", "F#", "G-", "G#", "A-", "A#", "B-"]


def compile_phrase(phrase: str) -> bytes | None:
    """Compile one whitespace-separated interval phrase.

    Returns:
        Needle bytes, or None when the phrase is empty or not a list of integers
    """
    tokens = phrase.split()
    if not tokens:
        return None
    try:
        intervals = [int(token) for token in tokens]
    except ValueError:
        logging.warning(f"[MelodyQuery] Ignoring invalid melody phrase: {phrase.strip()!r}")
        return None
    return bytes(to_byte(interval) for interval in intervals)


def compile_melody(text: str) -> list[bytes]:
    """Compile typed melody text into search needles, one per phrase."""
    needles = []
    for phrase in text.split(PHRASE_SEPARATOR):
        needle = compile_phrase(phrase)
        if needle is not None:
            needles.append(needle)
    return needles


def _cell_offset(line: str, channel: int) -> int:
    """Return the index of the ``|`` opening *channel*'s cell, or -1."""
    offset = -1
    for _ in range(channel + 1):
        offset = line.find("|", offset + 1)
        if offset == -1:
            break
    return offset


def _parse_note(line: str, offset: int) -> int:
    """Decode the note in the cell starting at *offset* (0 if none)."""
    if offset + 3 >= len(line):
        return 0
    octave = line[offset + 3]
    if not ("0" <= octave <= "9"):
        return 0
    name = line[offset + 1 : offset + 3]
    if name not in NOTE_NAMES:
        return 0
    return NOTE_NAMES.index(name) + int(octave) * 12


def grid_to_melody(text: str) -> str:
    """Convert pasted OpenMPT pattern text into typed melody form.

    Each channel column becomes one phrase of intervals between its
    consecutive notes. Columns are read left to right until one holds no
    recognised note; a column with a single note produces no phrase.

    Args:
        text: Clipboard text, e.g. ``"ModPlug Tracker MOD\\r\\n|C-501...|..."``

    Returns:
        Melody text such as ``"2 2 1|-12"``, or ``""`` if the text holds no
        pattern data
    """
    start = text.find(PASTE_HEADER)
    if start == -1:
        logging.debug("[MelodyQuery] Pasted text has no pattern data")
        return ""

    lines = text[start + len(PASTE_HEADER) :].splitlines()
    phrases: list[str] = []
    channel = 0

    while True:
        previous = 0
        intervals: list[int] = []
        for line in lines:
            offset = _cell_offset(line, channel)
            if offset == -1:
                continue
            note = _parse_note(line, offset)
            if note:
                if previous:
                    intervals.append(note - previous)
                previous = note

        if not previous:
            break
        if intervals:
            phrases.append(" ".join(str(interval) for interval in intervals))
        channel += 1

    return PHRASE_SEPARATOR.join(phrases)


@dataclass
class MelodyQuery:
    """Compiled melody filter: every phrase must occur in the note data.

    Matching happens in the store (one ``INSTR`` test per phrase).
    """

    phrases: list[bytes] = field(default_factory=list)
    text: str = ""

    @classmethod
    def from_text(cls, text: str | None) -> MelodyQuery:
        text = text or ""
        return cls(compile_melody(text), text)

    @classmethod
    def from_grid(cls, text: str) -> MelodyQuery:
        """Build a query from pasted OpenMPT pattern text."""
        return cls.from_text(grid_to_melody(text))

    def __bool__(self) -> bool:
        return bool(self.phrases)

    def __str__(self) -> str:
        return self.text
