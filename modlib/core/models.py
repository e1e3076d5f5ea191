"""Library record and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AddResult(Enum):
    """Outcome of adding or refreshing one file."""

    ADDED = "added"
    UPDATED = "updated"
    NO_CHANGE = "no_change"
    IO_ERROR = "io_error"  # File unreadable, not added
    PARSE_ERROR = "parse_error"  # Not a recognized module, not added

    @property
    def not_added(self) -> bool:
        return self in (AddResult.IO_ERROR, AddResult.PARSE_ERROR)


@dataclass
class ModuleRecord:
    """One indexed module file, keyed by filename."""

    filename: str
    hash: str
    filesize: int = 0
    filedate: int | None = None
    editdate: int | None = None
    format: str = ""
    title: str = ""
    length: int = 0  # Milliseconds
    num_channels: int = 0
    num_patterns: int = 0
    num_orders: int = 0
    num_subsongs: int = 0
    num_samples: int = 0
    num_instruments: int = 0
    sample_text: str = ""
    instrument_text: str = ""
    comments: str = ""
    artist: str = ""
    personal_comments: str = ""
    note_data: bytes = b""
    fingerprint: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ModuleRecord:
        """Build a record from a ``modlib_modules`` row (extra columns ignored)."""
        values = {name: row[name] for name in cls.__dataclass_fields__ if name in row}
        for text_field in ("format", "title", "sample_text", "instrument_text",
                           "comments", "artist", "personal_comments"):
            if values.get(text_field) is None:
                values[text_field] = ""
        if values.get("note_data") is None:
            values["note_data"] = b""
        return cls(**values)


@dataclass
class SearchHit:
    """A search result, with its fingerprint similarity when one was requested."""

    record: ModuleRecord
    similarity: float | None = None

    @property
    def filename(self) -> str:
        return self.record.filename


@dataclass
class DuplicateGroup:
    """Files sharing the same content hash."""

    hash: str
    filenames: list[str] = field(default_factory=list)


@dataclass
class ScanSummary:
    """Counts from adding a batch of files."""

    added: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    cancelled: bool = False

    def record(self, result: AddResult) -> None:
        if result is AddResult.ADDED:
            self.added += 1
        elif result is AddResult.UPDATED:
            self.updated += 1
        elif result is AddResult.NO_CHANGE:
            self.unchanged += 1
        else:
            self.failed += 1


@dataclass
class SweepSummary:
    """Counts from a maintenance sweep."""

    checked: int = 0
    updated: int = 0
    unchanged: int = 0
    removed: int = 0
    cancelled: bool = False
