"""Search criteria and the SQL predicate builder.

Every active filter is ANDed into the WHERE clause independently; values are
always bound through ``?`` placeholders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Flag, auto
from typing import Any

from modlib.melody.query import MelodyQuery


class SearchField(Flag):
    """Text fields the free-text filter looks in (ORed together)."""

    FILENAME = auto()
    TITLE = auto()
    ARTIST = auto()
    SAMPLE_TEXT = auto()
    INSTRUMENT_TEXT = auto()
    COMMENTS = auto()
    PERSONAL_COMMENTS = auto()
    ALL = FILENAME | TITLE | ARTIST | SAMPLE_TEXT | INSTRUMENT_TEXT | COMMENTS | PERSONAL_COMMENTS


FIELD_COLUMNS = {
    SearchField.FILENAME: "filename",
    SearchField.TITLE: "title",
    SearchField.ARTIST: "artist",
    SearchField.SAMPLE_TEXT: "sample_text",
    SearchField.INSTRUMENT_TEXT: "instrument_text",
    SearchField.COMMENTS: "comments",
    SearchField.PERSONAL_COMMENTS: "personal_comments",
}

ORDER_COLUMNS = {"filename", "title", "artist", "filesize", "filedate", "editdate", "length", "format"}

# Everything except note_data, which is only ever matched, never returned
LISTING_COLUMNS = (
    "filename", "hash", "filesize", "filedate", "editdate", "format", "title", "length",
    "num_channels", "num_patterns", "num_orders", "num_subsongs", "num_samples",
    "num_instruments", "sample_text", "instrument_text", "comments", "artist",
    "personal_comments", "fingerprint",
)


def like_pattern(text: str) -> str:
    """Turn user text with ``*``/``?`` wildcards into a ``LIKE ... ESCAPE '\\'`` pattern.

    The text matches anywhere in the field.
    """
    escaped = (
        text.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
        .replace("*", "%")
        .replace("?", "_")
    )
    return f"%{escaped}%"


def _ordered(low: Any, high: Any) -> tuple[Any, Any]:
    return (high, low) if low > high else (low, high)


def day_bounds(first: date, last: date) -> tuple[int, int]:
    """Epoch seconds from the start of *first* to the end of *last* (local time)."""
    first, last = _ordered(first, last)
    start = datetime.combine(first, time(0, 0, 0)).timestamp()
    end = datetime.combine(last, time(23, 59, 59)).timestamp()
    return int(start), int(end)


@dataclass
class SearchCriteria:
    """What to search for.

    Attributes:
        text: Free text with ``*``/``?`` wildcards
        fields: Fields the text is looked for in
        size_range: File size bounds in bytes
        file_date_range: File modification date bounds
        release_date_range: Authoring date bounds
        duration_range: Length bounds in seconds
        melody: Compiled melody filter
        fingerprint: Compressed fingerprint to rank results by
        order_by: Ordering used when no fingerprint ranking applies
        descending: Reverse the ordering
        limit: Maximum number of results (applied after ranking)
        show_all: Ignore every filter
    """

    text: str = ""
    fields: SearchField = SearchField.ALL
    size_range: tuple[int, int] | None = None
    file_date_range: tuple[date, date] | None = None
    release_date_range: tuple[date, date] | None = None
    duration_range: tuple[float, float] | None = None
    melody: MelodyQuery = field(default_factory=MelodyQuery)
    fingerprint: str | None = None
    order_by: str = "filename"
    descending: bool = False
    limit: int | None = None
    show_all: bool = False


class SearchQuery:
    """Structural SELECT builder over ``modlib_modules``."""

    def __init__(self, columns: tuple[str, ...] = LISTING_COLUMNS):
        self._columns = columns
        self._where: list[str] = []
        self._params: list[Any] = []
        self._order: list[str] = []
        self._limit: int | None = None

    def where(self, clause: str, *params: Any) -> SearchQuery:
        """AND a predicate in."""
        self._where.append(f"({clause})")
        self._params.extend(params)
        return self

    def where_any(self, clauses: list[str], *params: Any) -> SearchQuery:
        """AND in a group of ORed predicates (an empty group matches nothing)."""
        return self.where(" OR ".join(clauses) if clauses else "0", *params)

    def between(self, column: str, low: Any, high: Any) -> SearchQuery:
        low, high = _ordered(low, high)
        return self.where(f"{column} BETWEEN ? AND ?", low, high)

    def order_by(self, column: str, descending: bool = False) -> SearchQuery:
        if column not in ORDER_COLUMNS:
            raise ValueError(f"Cannot order by {column!r}")
        self._order.append(f"{column} {'DESC' if descending else 'ASC'}")
        return self

    def limit(self, count: int | None) -> SearchQuery:
        self._limit = count
        return self

    def build(self) -> tuple[str, list[Any]]:
        """Render SQL and its parameters."""
        sql = f"SELECT {', '.join(self._columns)} FROM modlib_modules"
        if self._where:
            sql += " WHERE " + " AND ".join(self._where)
        order = self._order or ["filename ASC"]
        if "filename ASC" not in order:
            order = order + ["filename ASC"]
        sql += " ORDER BY " + ", ".join(order)
        if self._limit:
            sql += " LIMIT ?"
            return sql, self._params + [self._limit]
        return sql, list(self._params)


def build_search_query(criteria: SearchCriteria, apply_limit: bool = True) -> SearchQuery:
    """Translate search criteria into a query.

    Args:
        criteria: Search criteria
        apply_limit: Whether to limit in SQL (off when results are re-ranked)
    """
    query = SearchQuery()
    query.order_by(criteria.order_by, criteria.descending)
    if apply_limit:
        query.limit(criteria.limit)

    if criteria.show_all:
        return query

    columns = [column for flag, column in FIELD_COLUMNS.items() if flag in criteria.fields]
    pattern = like_pattern(criteria.text)
    query.where_any(
        [f"{column} LIKE ? ESCAPE '\\'" for column in columns],
        *([pattern] * len(columns)),
    )

    if criteria.size_range is not None:
        query.between("filesize", *criteria.size_range)
    if criteria.file_date_range is not None:
        query.between("filedate", *day_bounds(*criteria.file_date_range))
    if criteria.release_date_range is not None:
        query.between("editdate", *day_bounds(*criteria.release_date_range))
    if criteria.duration_range is not None:
        low, high = _ordered(*criteria.duration_range)
        query.between("length", int(low * 1000), int(high * 1000))

    for phrase in criteria.melody.phrases:
        query.where("INSTR(note_data, ?) > 0", phrase)

    return query
