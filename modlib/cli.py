"""Command-line interface for the Mod Library.

Commands:
    add          - Add or refresh module files
    scan         - Scan a directory for modules
    maintain     - Re-check every known file, dropping missing ones
    search       - Search by text, ranges, melody and fingerprint
    dupes        - List files with identical content
    info         - Show the stored record of a file
    comment      - Set the personal comments of a file
    fingerprint  - Store or compute the fingerprint of a file
    stats        - Show library statistics
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from modlib.core.config import ModLibraryConfig, load_config
from modlib.core.database import StoreError
from modlib.core.library import LibraryIndex
from modlib.core.models import ScanSummary
from modlib.core.search import ORDER_COLUMNS, SearchCriteria, SearchField
from modlib.melody.query import MelodyQuery
from modlib.utils.logger import setup_logging
from modlib.utils.scanner import FileScanner
from modprint.fpcalc import FpcalcError, compute_fingerprint

FIELD_NAMES = {
    "filename": SearchField.FILENAME,
    "title": SearchField.TITLE,
    "artist": SearchField.ARTIST,
    "samples": SearchField.SAMPLE_TEXT,
    "instruments": SearchField.INSTRUMENT_TEXT,
    "comments": SearchField.COMMENTS,
    "personal": SearchField.PERSONAL_COMMENTS,
}


def _format_length(ms: int) -> str:
    seconds = ms // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def cmd_add(index: LibraryIndex, args: argparse.Namespace) -> int:
    """Add or refresh individual files."""
    summary = ScanSummary()
    for path in args.files:
        result = index.add_or_update(path)
        summary.record(result)
        print(f"  {path}: {result.value}")
    print(
        f"{summary.added} added, {summary.updated} updated, "
        f"{summary.unchanged} unchanged, {summary.failed} failed"
    )
    return 0 if summary.failed == 0 else 1


def cmd_scan(index: LibraryIndex, args: argparse.Namespace, config: ModLibraryConfig) -> int:
    """Scan a directory."""

    def progress(current: int, total: int) -> None:
        print(f"Progress: {current}/{total}", end="\r")

    scanner = FileScanner(
        index,
        config.scan.supported_formats,
        config.scan.ignored_suffixes,
        progress_callback=progress,
    )
    try:
        summary = scanner.scan_directory(
            Path(args.directory), recursive=config.scan.recursive and not args.no_recursive
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print()
    print(f"{summary.added} files added, {summary.updated} files updated.")
    return 0


def cmd_maintain(index: LibraryIndex, args: argparse.Namespace) -> int:
    """Re-check every file in the library."""
    summary = index.maintenance_sweep()
    print(
        f"{summary.checked} files checked: {summary.updated} updated, "
        f"{summary.removed} removed, {summary.unchanged} unchanged."
    )
    return 0


def _parse_range(values: list[str] | None, convert):
    if not values:
        return None
    return convert(values[0]), convert(values[1])


def cmd_search(index: LibraryIndex, args: argparse.Namespace, config: ModLibraryConfig) -> int:
    """Search the library."""
    fields = SearchField(0)
    for name in args.fields or list(FIELD_NAMES):
        fields |= FIELD_NAMES[name]

    try:
        if args.paste_file:
            melody = MelodyQuery.from_grid(Path(args.paste_file).read_text(encoding="latin-1"))
            print(f"Melody: {melody}")
        else:
            melody = MelodyQuery.from_text(args.melody)

        criteria = SearchCriteria(
            text=args.text or "",
            fields=fields,
            size_range=_parse_range(args.size, int),
            file_date_range=_parse_range(args.file_date, date.fromisoformat),
            release_date_range=_parse_range(args.release_date, date.fromisoformat),
            duration_range=_parse_range(args.duration, float),
            melody=melody,
            fingerprint=args.fingerprint,
            order_by=args.order_by or config.search.default_order,
            descending=args.descending,
            limit=args.limit or config.search.limit,
            show_all=args.all,
        )
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    hits = index.search(criteria)
    for hit in hits:
        record = hit.record
        line = f"{record.filename}  [{record.title}]  {record.filesize:,} bytes  {_format_length(record.length)}"
        if hit.similarity is not None:
            line += f"  {hit.similarity:.1%}"
        print(line)
    print(f"{len(hits)} files found.")
    return 0


def cmd_dupes(index: LibraryIndex, args: argparse.Namespace) -> int:
    """List duplicate files."""
    groups = index.find_duplicates()
    for group in groups:
        print(f"{len(group.filenames)} copies:")
        for filename in group.filenames:
            print(f"  {filename}")
    print(f"{len(groups)} duplicate groups found.")
    return 0


def cmd_info(index: LibraryIndex, args: argparse.Namespace) -> int:
    """Show one record."""
    record = index.get_module(args.file)
    if record is None:
        print(f"Error: Not in library: {args.file}", file=sys.stderr)
        return 1

    print(f"File:        {record.filename}")
    print(f"Title:       {record.title}")
    print(f"Artist:      {record.artist}")
    print(f"Format:      {record.format}")
    print(f"Size:        {record.filesize:,} bytes")
    print(f"Length:      {_format_length(record.length)}")
    print(f"Channels:    {record.num_channels}")
    print(f"Patterns:    {record.num_patterns}")
    print(f"Orders:      {record.num_orders}")
    print(f"Subsongs:    {record.num_subsongs}")
    print(f"Samples:     {record.num_samples}")
    print(f"Instruments: {record.num_instruments}")
    print(f"Hash:        {record.hash}")
    if record.personal_comments:
        print(f"Comments:    {record.personal_comments}")
    if record.sample_text.strip():
        print("Sample names:")
        print(record.sample_text.rstrip("\n"))
    return 0


def cmd_comment(index: LibraryIndex, args: argparse.Namespace) -> int:
    """Set personal comments."""
    if not index.update_comments(args.file, args.text):
        print(f"Error: Not in library: {args.file}", file=sys.stderr)
        return 1
    return 0


def cmd_fingerprint(index: LibraryIndex, args: argparse.Namespace, config: ModLibraryConfig) -> int:
    """Store a given fingerprint, or compute one with fpcalc."""
    value = args.value
    if value is None:
        try:
            value = compute_fingerprint(
                args.file,
                fpcalc_path=config.fingerprint.fpcalc_path,
                timeout_s=config.fingerprint.timeout_s,
            )
        except FpcalcError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    if not index.set_fingerprint(args.file, value):
        print(f"Error: Not in library: {args.file}", file=sys.stderr)
        return 1
    return 0


def cmd_stats(index: LibraryIndex, args: argparse.Namespace) -> int:
    """Show library statistics."""
    stats = index.database.modules.stats()

    print("Mod Library Statistics")
    print("=" * 40)
    print(f"Modules:                {stats['modules']:,}")
    print(f"Unique contents:        {stats['unique_hashes']:,}")
    print(f"Fingerprinted:          {stats['fingerprinted']:,}")
    print(f"Total size:             {stats['total_size']:,} bytes")
    print(f"Total length:           {_format_length(stats['total_length'])}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="modlib", description="Tracker module library")
    parser.add_argument("--config", type=Path, help="Config file (YAML)")
    parser.add_argument("--db", type=Path, help="Library database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Add or refresh module files")
    add.add_argument("files", nargs="+")

    scan = sub.add_parser("scan", help="Scan a directory for modules")
    scan.add_argument("directory")
    scan.add_argument("--no-recursive", action="store_true")

    sub.add_parser("maintain", help="Re-check every known file")

    search = sub.add_parser("search", help="Search the library")
    search.add_argument("text", nargs="?", default="")
    search.add_argument("--fields", nargs="+", choices=sorted(FIELD_NAMES))
    search.add_argument("--size", nargs=2, metavar=("MIN", "MAX"), help="Size in bytes")
    search.add_argument("--file-date", nargs=2, metavar=("FROM", "TO"), help="YYYY-MM-DD")
    search.add_argument("--release-date", nargs=2, metavar=("FROM", "TO"), help="YYYY-MM-DD")
    search.add_argument("--duration", nargs=2, metavar=("MIN", "MAX"), help="Seconds")
    search.add_argument("--melody", help='Intervals, e.g. "2 2 1 | -5"')
    search.add_argument("--paste-file", help="File holding pasted OpenMPT pattern text")
    search.add_argument("--fingerprint", help="Compressed fingerprint to rank by")
    search.add_argument("--order-by", choices=sorted(ORDER_COLUMNS))
    search.add_argument("--descending", action="store_true")
    search.add_argument("--limit", type=int)
    search.add_argument("--all", action="store_true", help="Ignore all filters")

    sub.add_parser("dupes", help="List files with identical content")

    info = sub.add_parser("info", help="Show a stored record")
    info.add_argument("file")

    comment = sub.add_parser("comment", help="Set personal comments")
    comment.add_argument("file")
    comment.add_argument("text")

    fingerprint = sub.add_parser("fingerprint", help="Store or compute a fingerprint")
    fingerprint.add_argument("file")
    fingerprint.add_argument("--value", help="Fingerprint text (default: run fpcalc)")

    sub.add_parser("stats", help="Show library statistics")

    return parser


def _load_config(args: argparse.Namespace) -> ModLibraryConfig:
    if args.config is not None:
        config = load_config(args.config)
    else:
        try:
            config = load_config()
        except FileNotFoundError:
            config = ModLibraryConfig()
    if args.db is not None:
        config.database.path = args.db
    if args.verbose:
        config.logging.level = "DEBUG"
    return config


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = _load_config(args)
    setup_logging(config.logging)

    try:
        index = LibraryIndex.open(config)
    except StoreError as e:
        logging.critical(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 2

    with index:
        if args.command == "add":
            return cmd_add(index, args)
        if args.command == "scan":
            return cmd_scan(index, args, config)
        if args.command == "maintain":
            return cmd_maintain(index, args)
        if args.command == "search":
            return cmd_search(index, args, config)
        if args.command == "dupes":
            return cmd_dupes(index, args)
        if args.command == "info":
            return cmd_info(index, args)
        if args.command == "comment":
            return cmd_comment(index, args)
        if args.command == "fingerprint":
            return cmd_fingerprint(index, args, config)
        return cmd_stats(index, args)


if __name__ == "__main__":
    sys.exit(main())
