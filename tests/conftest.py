"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from modlib.core.database import Database
from modlib.core.library import LibraryIndex
from tests.modfactory import build_mod


@pytest.fixture
def database(tmp_path: Path):
    """Provide a connected database with schema."""
    db = Database(tmp_path / "library.sqlite")
    db.connect()
    db.initialize_schema()
    yield db
    db.close()


@pytest.fixture
def index(database: Database) -> LibraryIndex:
    """Provide a library index over the test database."""
    return LibraryIndex(database)


@pytest.fixture
def mod_dir(tmp_path: Path) -> Path:
    """Provide an empty directory for module files."""
    directory = tmp_path / "mods"
    directory.mkdir()
    return directory


@pytest.fixture
def write_mod(mod_dir: Path):
    """Write a MOD file built from per-channel notes and return its path."""

    def _write(name: str, notes_by_channel: list[list[int]], **kwargs) -> Path:
        path = mod_dir / name
        path.write_bytes(build_mod(notes_by_channel, **kwargs))
        return path

    return _write
