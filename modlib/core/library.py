"""Module library index: reconciles files on disk with stored records.

A file is identified by its filename. Scanning a file gives one of:

- ADDED: no record had this filename
- NO_CHANGE: a record exists with the same content hash (nothing is written)
- UPDATED: a record exists with a different hash; every field but the
  filename and personal comments is replaced
- IO_ERROR / PARSE_ERROR: the file could not be read or is not a module;
  nothing is written

Renaming a file outside the library looks exactly like delete-then-add.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from functools import partial
from itertools import groupby
from pathlib import Path

from modlib.core.config import ModLibraryConfig
from modlib.core.database import Database
from modlib.core.models import (
    AddResult,
    DuplicateGroup,
    ModuleRecord,
    ScanSummary,
    SearchHit,
    SweepSummary,
)
from modlib.core.search import SearchCriteria, build_search_query
from modlib.melody.encoder import NoteSequenceEncoder
from modlib.utils.hashing import hash_bytes
from modlib.utils.inspector import ModuleInspector, ModuleParseError, open_module
from modprint import FingerprintMatcher
from modprint.fpcalc import FpcalcError, compute_fingerprint

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]


def normalize_filename(path: str | Path) -> str:
    """Return the identity key stored for a path (absolute, forward slashes)."""
    return Path(path).absolute().as_posix()


def parse_edit_date(value: str) -> int | None:
    """Parse an ISO-8601 authoring date into epoch seconds."""
    value = value.strip()
    if not value:
        return None
    # fromisoformat only accepts a "Z" suffix from 3.11 on
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        return int(datetime.fromisoformat(value).timestamp())
    except ValueError:
        logging.debug(f"[LibraryIndex] Unparsable module date: {value!r}")
        return None


def _name_list(names: Iterable[str]) -> str:
    return "".join(f"{name}\n" for name in names)


class LibraryIndex:
    """Add, refresh, remove and search module records.

    Owns its ``Database`` for the lifetime of the index; every operation is
    synchronous and handles one file at a time.
    """

    def __init__(
        self,
        database: Database,
        inspector: Callable[[bytes], ModuleInspector] = open_module,
        encoder: NoteSequenceEncoder | None = None,
        matcher: FingerprintMatcher | None = None,
        fingerprinter: Callable[[str], str] | None = None,
    ):
        """Initialize the index.

        Args:
            database: Connected database with schema initialized
            inspector: Parses raw bytes into a module (raises ModuleParseError)
            encoder: Note data encoder
            matcher: Fingerprint matcher used for ranking
            fingerprinter: Optional callable computing a fingerprint for a file
        """
        self.database = database
        self._inspect = inspector
        self._encoder = encoder or NoteSequenceEncoder()
        self.matcher = matcher or FingerprintMatcher()
        self._fingerprinter = fingerprinter

    @classmethod
    def open(cls, config: ModLibraryConfig) -> LibraryIndex:
        """Open the configured store and build an index over it.

        Raises:
            StoreError: If the store cannot be opened or upgraded
        """
        database = Database(config.database.path, backup=config.database.backup)
        database.connect()
        database.initialize_schema()

        fingerprinter: Callable[[str], str] | None = None
        if config.fingerprint.enabled:
            fingerprinter = partial(
                compute_fingerprint,
                fpcalc_path=config.fingerprint.fpcalc_path,
                timeout_s=config.fingerprint.timeout_s,
            )

        return cls(database, fingerprinter=fingerprinter)

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> LibraryIndex:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Add / update / remove
    # ------------------------------------------------------------------

    def add_or_update(self, path: str | Path) -> AddResult:
        """Add a file, or refresh its record if the content changed.

        Args:
            path: File to scan

        Returns:
            Outcome of the scan
        """
        filename = normalize_filename(path)

        try:
            filepath = Path(filename)
            data = filepath.read_bytes()
            filedate = int(filepath.stat().st_mtime)
        except OSError as e:
            logging.warning(f"[LibraryIndex] Cannot read {filename}: {e}")
            return AddResult.IO_ERROR

        try:
            module = self._inspect(data)
            digest = hash_bytes(data)

            stored_hash = self.database.modules.get_hash(filename)
            if stored_hash == digest:
                return AddResult.NO_CHANGE

            record = self._build_record(filename, data, digest, filedate, module)
        except ModuleParseError as e:
            logging.info(f"[LibraryIndex] Not a module: {filename}: {e}")
            return AddResult.PARSE_ERROR

        with self.database.transaction():
            if stored_hash is None:
                self.database.modules.add(record)
                result = AddResult.ADDED
            else:
                self.database.modules.update(filename, record)
                result = AddResult.UPDATED

        logging.debug(f"[LibraryIndex] {result.value}: {filename}")
        return result

    def _build_record(
        self,
        filename: str,
        data: bytes,
        digest: str,
        filedate: int,
        module: ModuleInspector,
    ) -> ModuleRecord:
        """Collect every stored field for a parsed module."""
        return ModuleRecord(
            filename=filename,
            hash=digest,
            filesize=len(data),
            filedate=filedate,
            editdate=parse_edit_date(module.metadata("date")),
            format=module.metadata("type"),
            title=module.metadata("title"),
            length=int(module.duration_seconds * 1000),
            num_channels=module.num_channels,
            num_patterns=module.num_patterns,
            num_orders=module.num_orders,
            num_subsongs=module.num_subsongs,
            num_samples=module.num_samples,
            num_instruments=module.num_instruments,
            sample_text=_name_list(module.sample_names),
            instrument_text=_name_list(module.instrument_names),
            comments=module.metadata("message"),
            artist=module.metadata("artist"),
            note_data=self._encoder.encode(module),
            fingerprint=self._compute_fingerprint(filename),
        )

    def _compute_fingerprint(self, filename: str) -> str | None:
        if self._fingerprinter is None:
            return None
        try:
            return self._fingerprinter(filename)
        except FpcalcError as e:
            logging.warning(f"[LibraryIndex] No fingerprint for {filename}: {e}")
            return None

    def remove(self, path: str | Path) -> bool:
        """Forget a file.

        Returns:
            True if a record was removed
        """
        return self.database.modules.delete(normalize_filename(path))

    def update_comments(self, path: str | Path, comments: str) -> bool:
        """Set the personal comments of a file (kept across re-scans)."""
        return self.database.modules.update_comments(normalize_filename(path), comments)

    def set_fingerprint(self, path: str | Path, fingerprint: str | None) -> bool:
        """Store a fingerprint for a file, e.g. one computed elsewhere."""
        return self.database.modules.set_fingerprint(normalize_filename(path), fingerprint)

    def get_module(self, path: str | Path) -> ModuleRecord | None:
        """Get the stored record of a file."""
        row = self.database.modules.get_by_filename(normalize_filename(path))
        return ModuleRecord.from_row(row) if row else None

    def count(self) -> int:
        return self.database.modules.count()

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def scan_paths(
        self,
        paths: Iterable[str | Path],
        should_cancel: CancelCheck | None = None,
        progress: ProgressCallback | None = None,
    ) -> ScanSummary:
        """Add or refresh several files, one at a time.

        Args:
            paths: Files to scan
            should_cancel: Checked before each file; stops the scan when True
            progress: Optional callback(current, total)

        Returns:
            Per-outcome counts
        """
        files = list(paths)
        summary = ScanSummary()

        for idx, path in enumerate(files):
            if should_cancel and should_cancel():
                summary.cancelled = True
                logging.info(f"[LibraryIndex] Scan cancelled after {idx} of {len(files)} files")
                break

            summary.record(self.add_or_update(path))

            if progress:
                progress(idx + 1, len(files))

        return summary

    def maintenance_sweep(
        self,
        should_cancel: CancelCheck | None = None,
        progress: ProgressCallback | None = None,
    ) -> SweepSummary:
        """Re-scan every known file; drop records of unreadable or unparsable files.

        Running it twice without filesystem changes removes nothing the second
        time.

        Args:
            should_cancel: Checked before each file; stops the sweep when True
            progress: Optional callback(current, total)

        Returns:
            Sweep counts
        """
        filenames = self.database.modules.filenames()
        summary = SweepSummary()

        for idx, filename in enumerate(filenames):
            if should_cancel and should_cancel():
                summary.cancelled = True
                logging.info(f"[LibraryIndex] Sweep cancelled after {idx} of {len(filenames)} files")
                break

            result = self.add_or_update(filename)
            summary.checked += 1
            if result is AddResult.NO_CHANGE:
                summary.unchanged += 1
            elif result.not_added:
                self.database.modules.delete(filename)
                summary.removed += 1
                logging.info(f"[LibraryIndex] Removed {filename} ({result.value})")
            else:
                summary.updated += 1

            if progress:
                progress(idx + 1, len(filenames))

        return summary

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_duplicates(self) -> list[DuplicateGroup]:
        """Group files with identical content.

        Returns:
            Groups of two or more filenames sharing a hash
        """
        rows = self.database.modules.duplicates()
        groups = [
            DuplicateGroup(digest, [row["filename"] for row in members])
            for digest, members in groupby(rows, key=lambda row: row["hash"])
        ]
        groups.sort(key=lambda group: group.filenames[0])
        return groups

    def search(self, criteria: SearchCriteria) -> list[SearchHit]:
        """Search the library.

        Text, size, date, duration and melody filters are ANDed together.
        When a decodable fingerprint is given, results are ranked by
        similarity instead of the requested ordering.
        """
        query_fingerprint = self.matcher.decode(criteria.fingerprint)
        ranking = len(query_fingerprint) > 0

        query = build_search_query(criteria, apply_limit=not ranking)
        records = [ModuleRecord.from_row(row) for row in self.database.modules.search(query)]

        ranked = self.matcher.rank(
            query_fingerprint,
            records,
            fingerprint_of=lambda record: record.fingerprint,
            filename_of=lambda record: record.filename,
        )
        hits = [SearchHit(record, similarity) for record, similarity in ranked]

        if ranking and criteria.limit:
            hits = hits[: criteria.limit]
        return hits
