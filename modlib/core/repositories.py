"""Repository classes for database operations."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from modlib.core.models import ModuleRecord

if TYPE_CHECKING:
    from modlib.core.database import Database
    from modlib.core.search import SearchQuery

# Columns derived from file content; rewritten whenever the hash changes
CONTENT_COLUMNS = (
    "hash",
    "filesize",
    "filedate",
    "editdate",
    "format",
    "title",
    "length",
    "num_channels",
    "num_patterns",
    "num_orders",
    "num_subsongs",
    "num_samples",
    "num_instruments",
    "sample_text",
    "instrument_text",
    "comments",
    "artist",
    "note_data",
    "fingerprint",
)


class BaseRepository:
    """Base class for repositories."""

    def __init__(self, database: Database) -> None:
        """Initialize repository with database reference.

        Args:
            database: Database instance
        """
        self._db = database

    @property
    def _conn(self) -> sqlite3.Connection:
        """Get database connection."""
        if self._db.conn is None:
            raise RuntimeError("Database not connected")
        return self._db.conn

    def _commit(self) -> None:
        """Commit if not inside a transaction.

        When inside a database.transaction() block, commits are deferred
        to the transaction manager.
        """
        if not self._db._in_transaction:
            self._conn.commit()


class ModuleRepository(BaseRepository):
    """Repository for module records, keyed by filename."""

    def add(self, record: ModuleRecord) -> int:
        """Insert a new module record.

        Args:
            record: Record to insert (filename must not exist yet)

        Returns:
            Row ID
        """
        columns = ("filename", *CONTENT_COLUMNS, "personal_comments")
        values = [record.filename, *(getattr(record, c) for c in CONTENT_COLUMNS),
                  record.personal_comments]
        placeholders = ", ".join(["?"] * len(columns))
        cursor = self._conn.execute(
            f"INSERT INTO modlib_modules ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        self._commit()
        return int(cursor.lastrowid) if cursor.lastrowid is not None else 0

    def update(self, filename: str, record: ModuleRecord) -> bool:
        """Overwrite the content-derived fields of an existing record.

        The filename and personal comments are left untouched.

        Args:
            filename: Filename of the record to update
            record: Freshly parsed record

        Returns:
            True if updated, False if no record has that filename
        """
        set_clause = ", ".join(f"{c} = ?" for c in CONTENT_COLUMNS)
        values = [getattr(record, c) for c in CONTENT_COLUMNS] + [filename]
        cursor = self._conn.execute(
            f"UPDATE modlib_modules SET {set_clause} WHERE filename = ?", values
        )
        self._commit()
        return cursor.rowcount > 0

    def get_by_filename(self, filename: str) -> dict[str, Any] | None:
        """Get module row by filename.

        Args:
            filename: Normalized filename

        Returns:
            Module row or None
        """
        cursor = self._conn.execute(
            "SELECT * FROM modlib_modules WHERE filename = ?", (filename,)
        )
        return cursor.fetchone()

    def get_hash(self, filename: str) -> str | None:
        """Get the stored content hash for a filename."""
        row = self._conn.execute(
            "SELECT hash FROM modlib_modules WHERE filename = ?", (filename,)
        ).fetchone()
        return row["hash"] if row else None

    def update_comments(self, filename: str, comments: str) -> bool:
        """Set the personal comments of a record.

        Returns:
            True if updated, False if record not found
        """
        cursor = self._conn.execute(
            "UPDATE modlib_modules SET personal_comments = ? WHERE filename = ?",
            (comments, filename),
        )
        self._commit()
        return cursor.rowcount > 0

    def set_fingerprint(self, filename: str, fingerprint: str | None) -> bool:
        """Store (or clear) the fingerprint of a record.

        Returns:
            True if updated, False if record not found
        """
        cursor = self._conn.execute(
            "UPDATE modlib_modules SET fingerprint = ? WHERE filename = ?",
            (fingerprint, filename),
        )
        self._commit()
        return cursor.rowcount > 0

    def delete(self, filename: str) -> bool:
        """Delete a record.

        Returns:
            True if deleted, False if record not found
        """
        cursor = self._conn.execute("DELETE FROM modlib_modules WHERE filename = ?", (filename,))
        self._commit()
        return cursor.rowcount > 0

    def filenames(self) -> list[str]:
        """Get every known filename, in ascending order."""
        rows = self._conn.execute("SELECT filename FROM modlib_modules ORDER BY filename").fetchall()
        return [row["filename"] for row in rows]

    def count(self) -> int:
        """Count records."""
        row = self._conn.execute("SELECT COUNT(*) AS n FROM modlib_modules").fetchone()
        return int(row["n"])

    def duplicates(self) -> list[dict[str, Any]]:
        """Get (hash, filename) rows for every hash shared by several records.

        Rows are ordered by hash, then filename.
        """
        return self._conn.execute(
            """
            SELECT hash, filename FROM modlib_modules
            WHERE hash IN (
                SELECT hash FROM modlib_modules GROUP BY hash HAVING COUNT(*) > 1
            )
            ORDER BY hash, filename
            """
        ).fetchall()

    def search(self, query: SearchQuery) -> list[dict[str, Any]]:
        """Run a built search query.

        Args:
            query: Query built by modlib.core.search

        Returns:
            Matching rows
        """
        sql, params = query.build()
        return self._conn.execute(sql, params).fetchall()

    def stats(self) -> dict[str, Any]:
        """Get library statistics."""
        row = self._conn.execute(
            """
            SELECT COUNT(*) AS modules,
                   COALESCE(SUM(filesize), 0) AS total_size,
                   COALESCE(SUM(length), 0) AS total_length,
                   COUNT(fingerprint) AS fingerprinted,
                   COUNT(DISTINCT hash) AS unique_hashes
            FROM modlib_modules
            """
        ).fetchone()
        return dict(row)
