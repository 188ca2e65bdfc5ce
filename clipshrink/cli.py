"""
Command-Line Interface (CLI) setup for clipshrink.

This module uses Python's `argparse` to define and parse the command-line
arguments, and maps pipeline outcomes to exit codes.
"""
import argparse
from pathlib import Path
from typing import Dict, List, Optional

from .config.common import (
    DEFAULT_MAX_SIZE,
    RUN_STATUS_CANCELLED,
    RUN_STATUS_COMPLETED,
    SIZE_PRESETS,
    WORK_DIR,
)

EXIT_OK = 0
EXIT_TOOLS_MISSING = 1
EXIT_USAGE = 2
EXIT_PIPELINE_FAILED = 3
EXIT_CANCELLED = 4


def parse_max_size(value: str) -> int:
    """Accepts a byte count (``9500000``, ``9_500_000``) or a preset name (``discord``)."""
    preset = SIZE_PRESETS.get(value.lower())
    if preset is not None:
        return preset
    try:
        size = int(value.replace("_", ""))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected a byte count or one of {', '.join(sorted(SIZE_PRESETS))}, got '{value}'"
        ) from None
    if size <= 0:
        raise argparse.ArgumentTypeError(f"max size must be positive, got {size}")
    return size


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number of seconds, got '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipshrink",
        description="Re-encode media files until they fit under a maximum size.",
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="Media files to shrink.")
    parser.add_argument(
        "--max-size", type=parse_max_size, default=DEFAULT_MAX_SIZE,
        help=f"Maximum size in bytes, or a preset ({', '.join(sorted(SIZE_PRESETS))}). Default: {DEFAULT_MAX_SIZE}.",
    )
    parser.add_argument(
        "--processes", type=int, default=1, help="Number of files to process in parallel."
    )
    parser.add_argument(
        "--timeout", type=positive_float, default=None,
        help="Seconds each file's pipeline may take before it is cancelled.",
    )
    parser.add_argument(
        "--work-dir", type=str, default=str(WORK_DIR) if WORK_DIR else None,
        help="Directory for intermediate files. Useful for pointing to a RAM disk.",
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Move (or copy, if unchanged) each final file into this directory.",
    )
    parser.add_argument(
        "--run-log-dir", type=str, default=None,
        help="Write a YAML record of every run and an error log of failed commands here.",
    )
    parser.add_argument(
        "--cleanup-intermediates", action="store_true",
        help="Delete superseded intermediate files instead of leaving them to the caller.",
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level.",
    )
    return parser


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for clipshrink.

    Returns:
        argparse.Namespace: The parsed arguments, with `work_dir` created if given.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.processes < 1:
        parser.error("--processes must be at least 1")

    if args.work_dir:
        work_dir_path = Path(args.work_dir)
        try:
            work_dir_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            parser.error(f"The work directory '{args.work_dir}' could not be created: {e}")
        args.work_dir = work_dir_path.resolve()

    return args


def exit_code_for(outcomes: List[Dict]) -> int:
    """EXIT_OK if every run completed, else the most significant failure."""
    statuses = {outcome.get("status") for outcome in outcomes}
    if statuses <= {RUN_STATUS_COMPLETED}:
        return EXIT_OK
    if statuses - {RUN_STATUS_COMPLETED, RUN_STATUS_CANCELLED}:
        return EXIT_PIPELINE_FAILED
    return EXIT_CANCELLED
