"""File scanner for module directories."""

import logging
from collections.abc import Callable
from pathlib import Path

from modlib.core.library import LibraryIndex
from modlib.core.models import ScanSummary


class FileScanner:
    """Scan directories for module files and add them to the library."""

    def __init__(
        self,
        index: LibraryIndex,
        supported_formats: list[str],
        ignored_suffixes: list[str] | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ):
        """Initialize scanner.

        Args:
            index: Library index receiving the files
            supported_formats: List of supported file extensions
            ignored_suffixes: Filename endings to skip (e.g. backups)
            progress_callback: Optional callback(current, total)
        """
        self.index = index
        self.supported_formats = [fmt.lower().lstrip(".") for fmt in supported_formats]
        self.ignored_suffixes = [suffix.lower() for suffix in ignored_suffixes or []]
        self.progress_callback = progress_callback

    def scan_directory(
        self,
        directory: Path,
        recursive: bool = True,
        should_cancel: Callable[[], bool] | None = None,
    ) -> ScanSummary:
        """Scan directory for module files.

        Args:
            directory: Directory to scan
            recursive: Whether to scan recursively
            should_cancel: Checked between files; stops the scan when True

        Returns:
            Counts of added, updated, unchanged and failed files

        Raises:
            ValueError: If directory doesn't exist
        """
        if not directory.is_dir():
            raise ValueError(f"Directory does not exist: {directory}")

        files = self._find_module_files(directory, recursive)
        logging.info(f"[Scanner] Found {len(files)} candidate files in {directory}")

        summary = self.index.scan_paths(files, should_cancel, self.progress_callback)
        logging.info(
            f"[Scanner] {summary.added} files added, {summary.updated} files updated, "
            f"{summary.failed} files skipped"
        )
        return summary

    def _find_module_files(self, directory: Path, recursive: bool) -> list[Path]:
        """Find all module files in directory.

        Amiga-style names with the format as prefix (``mod.title``) count too.

        Args:
            directory: Directory to search
            recursive: Whether to search recursively

        Returns:
            Sorted list of module file paths
        """
        candidates = directory.rglob("*") if recursive else directory.glob("*")
        return sorted(path for path in candidates if path.is_file() and self._is_module_name(path.name))

    def _is_module_name(self, name: str) -> bool:
        lower = name.lower()
        if any(lower.endswith(suffix) for suffix in self.ignored_suffixes):
            return False
        return any(
            lower.endswith(f".{fmt}") or lower.startswith(f"{fmt}.") for fmt in self.supported_formats
        )
