"""Tests for file scanner."""

from pathlib import Path

import pytest

from modlib.core.library import LibraryIndex
from modlib.utils.scanner import FileScanner
from tests.modfactory import build_mod


class TestFileScanner:
    """Test suite for FileScanner."""

    def test_find_module_files(self, tmp_path: Path, index: LibraryIndex) -> None:
        """Test finding module files by extension and Amiga prefix."""
        (tmp_path / "song1.mod").touch()
        (tmp_path / "SONG2.MOD").touch()
        (tmp_path / "mod.amiga_tune").touch()
        (tmp_path / "song3.mod.bak").touch()
        (tmp_path / "song4.mod~").touch()
        (tmp_path / "other.txt").touch()

        scanner = FileScanner(index, ["mod"], [".bak", "~"])
        files = scanner._find_module_files(tmp_path, recursive=False)

        assert sorted(f.name for f in files) == ["SONG2.MOD", "mod.amiga_tune", "song1.mod"]

    def test_recursive(self, tmp_path: Path, index: LibraryIndex) -> None:
        sub = tmp_path / "demos" / "1992"
        sub.mkdir(parents=True)
        (tmp_path / "top.mod").touch()
        (sub / "deep.mod").touch()

        scanner = FileScanner(index, ["mod"])

        assert len(scanner._find_module_files(tmp_path, recursive=True)) == 2
        assert len(scanner._find_module_files(tmp_path, recursive=False)) == 1

    def test_scan_directory(self, mod_dir: Path, index: LibraryIndex) -> None:
        """Test scanning directory."""
        (mod_dir / "a.mod").write_bytes(build_mod([[60, 62]]))
        (mod_dir / "b.mod").write_bytes(build_mod([[50, 52]]))
        (mod_dir / "broken.mod").write_bytes(b"not a module")

        progress = []
        scanner = FileScanner(index, ["mod"], progress_callback=lambda cur, total: progress.append((cur, total)))
        summary = scanner.scan_directory(mod_dir, recursive=False)

        assert summary.added == 2
        assert summary.failed == 1
        assert index.count() == 2
        assert progress[-1] == (3, 3)

    def test_rescan_reports_unchanged(self, mod_dir: Path, index: LibraryIndex) -> None:
        (mod_dir / "a.mod").write_bytes(build_mod([[60, 62]]))
        scanner = FileScanner(index, ["mod"])
        scanner.scan_directory(mod_dir)

        summary = scanner.scan_directory(mod_dir)

        assert summary.added == 0
        assert summary.unchanged == 1

    def test_scan_cancelled(self, mod_dir: Path, index: LibraryIndex) -> None:
        for name in ("a.mod", "b.mod", "c.mod"):
            (mod_dir / name).write_bytes(build_mod([[60]], title=name))

        calls = []

        def should_cancel() -> bool:
            calls.append(1)
            return len(calls) > 1

        summary = FileScanner(index, ["mod"]).scan_directory(mod_dir, should_cancel=should_cancel)

        assert summary.cancelled
        assert summary.added == 1
        assert index.count() == 1

    def test_scan_nonexistent_directory(self, tmp_path: Path, index: LibraryIndex) -> None:
        """Test scanning non-existent directory."""
        scanner = FileScanner(index, ["mod"])

        with pytest.raises(ValueError, match="does not exist"):
            scanner.scan_directory(tmp_path / "nonexistent")
