"""
CLI (Command Line Interface).

Transpiles a downloaded Rapla HTML month view into an iCalendar file:

    icalnigma calendar.html calendar.ics
    icalnigma calendar.html calendar.ics --archive data/archive.json

Behavior:
- a broken document (encoding, missing <html>/<body>) aborts without output
- broken events or days are logged and skipped
- archive problems are logged, the calendar is written anyway
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from icalnigma import __version__
from icalnigma.document import SOURCE_ENCODING, load_events
from icalnigma.errors import ArchiveError, StructureError
from icalnigma.export_ics import export_events_to_ics
from icalnigma.model import Months
from icalnigma.storage import load_archive, merge_months, save_archive


def _merge_with_archive(months: Months, archive_path: Path) -> Months:
    """
    Merge fresh months into the archive and persist the result.
    """
    try:
        months = merge_months(months, load_archive(archive_path))
    except ArchiveError as exc:
        logging.error("Failed to read archive: %s", exc)

    try:
        save_archive(archive_path, months)
    except ArchiveError as exc:
        logging.error("Failed to write archive: %s", exc)

    return months


def run(args: argparse.Namespace) -> int:
    """
    Execute one conversion. Returns the process exit code.
    """
    try:
        raw = args.input.read_bytes()
    except OSError as exc:
        logging.error("Failed to open input file: %s", exc)
        return 1

    try:
        months = load_events(raw, args.encoding)
    except StructureError as exc:
        logging.error("Failed to load events from file: %s", exc)
        return 1

    if args.archive is not None:
        months = _merge_with_archive(months, args.archive)

    events = [event for key in sorted(months) for event in months[key]]

    try:
        n = export_events_to_ics(events, args.output)
    except OSError as exc:
        logging.error("Failed to write output file: %s", exc)
        return 1

    logging.info("Exported %d events in %d months to: %s", n, len(months), args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="icalnigma",
        description="An unofficial program that transpiles Rapla HTML sites to iCalendar files.",
    )
    parser.add_argument("input", type=Path, help="The HTML file to read in")
    parser.add_argument("output", type=Path, help="The output file")
    parser.add_argument(
        "-a",
        "--archive",
        type=Path,
        default=None,
        help="Sets the archive file and enables archiving",
    )
    parser.add_argument(
        "--encoding",
        default=SOURCE_ENCODING,
        help=f"Encoding of the HTML file (default: {SOURCE_ENCODING})",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Also log progress information")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log errors")

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, runs the conversion
    and exits via SystemExit with a return code.
    """
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose:
        level = logging.INFO
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    raise SystemExit(run(args))
