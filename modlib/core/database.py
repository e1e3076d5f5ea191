"""SQLite store for the module library."""

from __future__ import annotations

import logging
import shutil
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from modlib.core.repositories import ModuleRepository

SCHEMA_VERSION = 2
"""Version 1: modules table. Version 2: fingerprint column."""


class StoreError(RuntimeError):
    """The library store could not be opened or upgraded."""


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict[str, Any]:
    """Row factory that returns dicts instead of sqlite3.Row."""
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


class Database:
    """SQLite store holding one row per module filename.

    Provides access to the module repository:
        - modules: ModuleRepository for record operations

    The store is single-writer. Before connecting, the previous database file
    is copied next to it (``<name>~``) as a recovery aid.
    """

    def __init__(self, db_path: Path, backup: bool = True):
        """Initialize database.

        Args:
            db_path: Path to SQLite database file
            backup: Copy the existing file to "<db_path>~" on connect
        """
        self.db_path = db_path
        self.backup = backup
        self.conn: sqlite3.Connection | None = None
        self._in_transaction: bool = False
        self._modules: ModuleRepository | None = None

    @property
    def backup_path(self) -> Path:
        return self.db_path.with_name(self.db_path.name + "~")

    def connect(self) -> None:
        """Back up the previous store and connect.

        Raises:
            StoreError: If the store cannot be opened
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            if self.backup:
                self._make_backup()
            self.conn = sqlite3.connect(str(self.db_path))
            self.conn.row_factory = _dict_factory
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e

    def _make_backup(self) -> None:
        """Replace the backup copy with the current store file."""
        self.backup_path.unlink(missing_ok=True)
        if self.db_path.exists():
            shutil.copy2(self.db_path, self.backup_path)
            logging.debug(f"[Database] Backed up {self.db_path} to {self.backup_path}")

    # ========== Repository Properties ==========

    @property
    def modules(self) -> ModuleRepository:
        """Get the module repository."""
        if self._modules is None:
            from modlib.core.repositories import ModuleRepository

            self._modules = ModuleRepository(self)
        return self._modules

    # ========== Transaction Management ==========

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Context manager for database transactions.

        Provides atomic operations with automatic commit on success
        or rollback on failure. Repository methods will skip their
        individual commits while inside a transaction.

        Usage:
            with database.transaction():
                database.modules.update(filename, record)
                database.modules.set_fingerprint(filename, text)
            # All operations committed, or all rolled back on error

        Raises:
            RuntimeError: If database not connected
        """
        if self.conn is None:
            raise RuntimeError("Database not connected")

        self._in_transaction = True
        try:
            # SQLite auto-commits by default, so we start a transaction explicitly
            self.conn.execute("BEGIN")
            yield
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        finally:
            self._in_transaction = False

    # ========== Schema Management ==========

    def schema_version(self) -> int:
        """Return the stored schema version (0 for a fresh store)."""
        if self.conn is None:
            raise RuntimeError("Database not connected")

        row = self.conn.execute(
            "SELECT value FROM modlib_schema WHERE name = 'schema_version'"
        ).fetchone()
        return int(row["value"]) if row else 0

    def initialize_schema(self) -> None:
        """Create or upgrade the schema.

        Each upgrade step runs at most once per open, guarded by the stored
        version. An interrupted upgrade is not resumed safely.

        Raises:
            StoreError: If the schema cannot be created or upgraded
        """
        if self.conn is None:
            raise RuntimeError("Database not connected")

        try:
            self.conn.execute(
                "CREATE TABLE IF NOT EXISTS modlib_schema (name TEXT PRIMARY KEY, value TEXT)"
            )
            version = self.schema_version()

            if version < 1:
                self._create_modules_table()
            if version < 2:
                self._migrate_fingerprint()

            if version != SCHEMA_VERSION:
                self.conn.execute(
                    "INSERT OR REPLACE INTO modlib_schema (name, value) VALUES ('schema_version', ?)",
                    (str(SCHEMA_VERSION),),
                )
                logging.info(f"[Database] Schema upgraded from version {version} to {SCHEMA_VERSION}")

            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot update library schema: {e}") from e

    def _create_modules_table(self) -> None:
        """Create the modules table and its indices."""
        if self.conn is None:
            return

        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS modlib_modules (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                hash TEXT NOT NULL,
                filename TEXT UNIQUE NOT NULL,
                filesize INTEGER,
                filedate INTEGER,
                editdate INTEGER,
                format TEXT,
                title TEXT,
                length INTEGER,
                num_channels INTEGER,
                num_patterns INTEGER,
                num_orders INTEGER,
                num_subsongs INTEGER,
                num_samples INTEGER,
                num_instruments INTEGER,
                sample_text TEXT,
                instrument_text TEXT,
                comments TEXT,
                artist TEXT,
                personal_comments TEXT,
                note_data BLOB
            )
        """
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_modules_hash ON modlib_modules(hash)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_modules_title ON modlib_modules(title)")

    def _migrate_fingerprint(self) -> None:
        """Add fingerprint column to modules table if it doesn't exist."""
        if self.conn is None:
            return

        cursor = self.conn.execute("PRAGMA table_info(modlib_modules)")
        existing_columns = {row["name"] for row in cursor.fetchall()}

        if "fingerprint" not in existing_columns:
            self.conn.execute("ALTER TABLE modlib_modules ADD COLUMN fingerprint TEXT")

    # ========== Lifecycle ==========

    def close(self) -> None:
        """Compact and close the database connection."""
        if self.conn:
            try:
                self.conn.commit()
                self.conn.execute("VACUUM")
            except sqlite3.Error as e:
                logging.warning(f"[Database] VACUUM failed: {e}")
            self.conn.close()
            self.conn = None

    def __enter__(self) -> Database:
        self.connect()
        self.initialize_schema()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
