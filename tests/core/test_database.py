"""Tests for database module."""

import sqlite3
from pathlib import Path

import pytest

from modlib.core.database import SCHEMA_VERSION, Database, StoreError
from modlib.core.models import ModuleRecord


def _record(filename: str, digest: str = "h1", **kwargs) -> ModuleRecord:
    return ModuleRecord(filename=filename, hash=digest, **kwargs)


class TestDatabase:
    """Test suite for Database."""

    def test_initialization(self, tmp_path: Path) -> None:
        """Test database initialization."""
        db = Database(tmp_path / "test.db")
        db.connect()
        db.initialize_schema()

        assert db.conn is not None

        cursor = db.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = [row["name"] for row in cursor.fetchall()]

        assert "modlib_modules" in tables
        assert "modlib_schema" in tables
        assert db.schema_version() == SCHEMA_VERSION
        db.close()

    def test_initialize_twice(self, database: Database) -> None:
        database.modules.add(_record("/a.mod"))

        database.initialize_schema()

        assert database.schema_version() == SCHEMA_VERSION
        assert database.modules.count() == 1

    def test_upgrade_from_version_1(self, tmp_path: Path) -> None:
        """A version 1 store gains the fingerprint column and keeps its rows."""
        db = Database(tmp_path / "old.db")
        db.connect()
        db.conn.execute("CREATE TABLE modlib_schema (name TEXT PRIMARY KEY, value TEXT)")
        db._create_modules_table()
        db.conn.execute("INSERT INTO modlib_schema VALUES ('schema_version', '1')")
        db.conn.execute("INSERT INTO modlib_modules (hash, filename) VALUES ('h', '/old.mod')")
        db.conn.commit()

        db.initialize_schema()

        columns = {row["name"] for row in db.conn.execute("PRAGMA table_info(modlib_modules)")}
        assert "fingerprint" in columns
        assert db.schema_version() == 2
        assert db.modules.get_by_filename("/old.mod")["fingerprint"] is None
        db.close()

    def test_context_manager(self, tmp_path: Path) -> None:
        with Database(tmp_path / "ctx.db") as db:
            db.modules.add(_record("/a.mod"))

        assert db.conn is None
        with Database(tmp_path / "ctx.db") as db:
            assert db.modules.count() == 1

    def test_backup_on_connect(self, tmp_path: Path) -> None:
        """The previous store is copied to '<name>~' before opening."""
        path = tmp_path / "lib.sqlite"
        with Database(path) as db:
            db.modules.add(_record("/a.mod"))

        db = Database(path)
        db.connect()

        assert db.backup_path == tmp_path / "lib.sqlite~"
        assert db.backup_path.read_bytes() == path.read_bytes()
        db.close()

    def test_no_backup_for_new_store(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "new.sqlite")
        db.connect()

        assert not db.backup_path.exists()
        db.close()

    def test_backup_disabled(self, tmp_path: Path) -> None:
        path = tmp_path / "lib.sqlite"
        with Database(path):
            pass

        db = Database(path, backup=False)
        db.connect()

        assert not db.backup_path.exists()
        db.close()

    def test_unopenable_store(self, tmp_path: Path) -> None:
        """A directory where the store file should be cannot be opened."""
        path = tmp_path / "store"
        path.mkdir()

        db = Database(path, backup=False)
        with pytest.raises(StoreError):
            db.connect()
            db.initialize_schema()

    def test_transaction_rollback(self, database: Database) -> None:
        """Test that failures inside a transaction leave no partial writes."""
        with pytest.raises(sqlite3.IntegrityError):
            with database.transaction():
                database.modules.add(_record("/a.mod"))
                database.modules.add(_record("/a.mod"))

        assert database.modules.count() == 0

    def test_transaction_requires_connection(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "x.db")

        with pytest.raises(RuntimeError, match="not connected"):
            with db.transaction():
                pass


class TestModuleRepository:
    """Test record operations."""

    def test_add_and_get(self, database: Database) -> None:
        database.modules.add(
            _record("/mods/a.mod", title="Axel F", note_data=b"\x00\x3c\x02", length=7680)
        )

        row = database.modules.get_by_filename("/mods/a.mod")

        assert row["title"] == "Axel F"
        assert row["note_data"] == b"\x00\x3c\x02"
        assert row["length"] == 7680
        assert database.modules.get_hash("/mods/a.mod") == "h1"

    def test_get_missing(self, database: Database) -> None:
        assert database.modules.get_by_filename("/nope.mod") is None
        assert database.modules.get_hash("/nope.mod") is None

    def test_filename_is_unique(self, database: Database) -> None:
        database.modules.add(_record("/a.mod"))

        with pytest.raises(sqlite3.IntegrityError):
            database.modules.add(_record("/a.mod", digest="h2"))

    def test_update_keeps_filename_and_personal_comments(self, database: Database) -> None:
        database.modules.add(_record("/a.mod", title="old"))
        database.modules.update_comments("/a.mod", "favourite")

        updated = database.modules.update(
            "/a.mod", _record("/ignored.mod", digest="h2", title="new", personal_comments="lost")
        )

        row = database.modules.get_by_filename("/a.mod")
        assert updated
        assert row["hash"] == "h2"
        assert row["title"] == "new"
        assert row["personal_comments"] == "favourite"
        assert database.modules.get_by_filename("/ignored.mod") is None

    def test_update_missing(self, database: Database) -> None:
        assert not database.modules.update("/a.mod", _record("/a.mod"))

    def test_set_fingerprint(self, database: Database) -> None:
        database.modules.add(_record("/a.mod"))

        assert database.modules.set_fingerprint("/a.mod", "AQAAAQE")
        assert database.modules.get_by_filename("/a.mod")["fingerprint"] == "AQAAAQE"
        assert not database.modules.set_fingerprint("/b.mod", "AQAAAQE")

    def test_delete(self, database: Database) -> None:
        database.modules.add(_record("/a.mod"))

        assert database.modules.delete("/a.mod")
        assert not database.modules.delete("/a.mod")
        assert database.modules.count() == 0

    def test_filenames_sorted(self, database: Database) -> None:
        for name in ("/c.mod", "/a.mod", "/b.mod"):
            database.modules.add(_record(name))

        assert database.modules.filenames() == ["/a.mod", "/b.mod", "/c.mod"]

    def test_duplicates(self, database: Database) -> None:
        database.modules.add(_record("/b.mod", digest="same"))
        database.modules.add(_record("/a.mod", digest="same"))
        database.modules.add(_record("/c.mod", digest="other"))

        rows = database.modules.duplicates()

        assert [(r["hash"], r["filename"]) for r in rows] == [("same", "/a.mod"), ("same", "/b.mod")]

    def test_stats(self, database: Database) -> None:
        database.modules.add(_record("/a.mod", digest="x", filesize=100, length=1000, fingerprint="AQAAAQE"))
        database.modules.add(_record("/b.mod", digest="x", filesize=50, length=500))

        stats = database.modules.stats()

        assert stats == {
            "modules": 2,
            "total_size": 150,
            "total_length": 1500,
            "fingerprinted": 1,
            "unique_hashes": 1,
        }

    def test_stats_empty(self, database: Database) -> None:
        assert database.modules.stats()["total_size"] == 0
