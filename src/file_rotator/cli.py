"""Command line entry point.

Moved file paths are the only thing written to stdout, one per line, so the
output can be piped straight into other tools.  Every log line goes to
stderr.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .config import DEFAULT_ENV_FILE, ENV_LOG_LEVEL, RotateConfig, build_config
from .errors import RotateError
from .runner import run_rotation
from .scheduler import RotationScheduler


LOGGER = logging.getLogger("file_rotator")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_MOVE_FAILURES = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="file-rotator",
        description=(
            "Move files from SRC_DIR to DEST_DIR, oldest modification time first, while a file is older "
            "than --older-than or free space on SRC_DIR's filesystem is below --min-free-bytes/--min-free-percent."
        ),
        epilog="Moved paths are printed on stdout, one per line. Diagnostics go to stderr.",
    )
    parser.add_argument("-s", "--source", default=None, help="Source directory. Resolution: CLI -> FILE_ROTATOR_SRC_DIR -> env file")
    parser.add_argument("-d", "--dest", default=None, help="Destination directory. Resolution: CLI -> FILE_ROTATOR_DEST_DIR -> env file")
    parser.add_argument(
        "-b",
        "--min-free-bytes",
        default=None,
        help="Keep moving files while free space is below this many bytes (cannot be combined with -p)",
    )
    parser.add_argument(
        "-p",
        "--min-free-percent",
        default=None,
        help="Like -b, as an integer percentage (0-100) of the source filesystem's total size",
    )
    parser.add_argument(
        "-m",
        "--older-than",
        default=None,
        help='Move files modified before this point in time, e.g. "2025-11-01", "2025-11-01 00:00:00", "3 days ago"',
    )
    parser.add_argument(
        "-r",
        "--file-regex",
        default=None,
        help="Regular expression the whole file base name must match (default: ^[^.].*, names not starting with '.')",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print what would be moved without moving anything")
    parser.add_argument(
        "--strict",
        action="store_true",
        help=f"Exit with status {EXIT_MOVE_FAILURES} when any individual move failed (not allowed with --interval)",
    )
    parser.add_argument(
        "--interval",
        default=None,
        help="Repeat the rotation every N seconds until interrupted",
    )
    parser.add_argument(
        "--env-file",
        default=DEFAULT_ENV_FILE,
        help=f"Dotenv file with FILE_ROTATOR_* defaults (default: {DEFAULT_ENV_FILE})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug output")
    return parser


def configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s: %(message)s")
    LOGGER.setLevel(level)


def _emit(path: str) -> None:
    print(path, flush=True)


def _config_from_args(args: argparse.Namespace) -> RotateConfig:
    return build_config(
        source_dir=args.source,
        dest_dir=args.dest,
        min_free_bytes=args.min_free_bytes,
        min_free_percent=args.min_free_percent,
        older_than=args.older_than,
        file_regex=args.file_regex,
        dry_run=args.dry_run,
        strict=args.strict,
        interval_seconds=args.interval,
        verbose=args.verbose,
        dotenv_path=Path(args.env_file) if args.env_file else None,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else (os.getenv(ENV_LOG_LEVEL) or "INFO"))

    try:
        config = _config_from_args(args)
    except RotateError as exc:
        LOGGER.error("[ROTATE]: %s (see --help)", exc)
        return EXIT_FATAL
    configure_logging(config.log_level)

    if config.interval_seconds:
        LOGGER.info("[ROTATE]: Running every %d seconds", config.interval_seconds)
        scheduler = RotationScheduler(
            run_pass=lambda: run_rotation(config, emit=_emit),
            interval_seconds=config.interval_seconds,
        )
        scheduler.start()
        return EXIT_OK

    try:
        report = run_rotation(config, emit=_emit)
    except RotateError as exc:
        LOGGER.error("[ROTATE]: %s", exc)
        return EXIT_FATAL

    if report.failures and config.strict:
        return EXIT_MOVE_FAILURES
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
