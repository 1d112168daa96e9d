"""CLI entrypoint for goprotogen."""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from types import FrameType
from typing import Any, List, Optional

from .config import CONFIG_FILENAME, GeneratorConfig, load_config
from .errors import ConfigError, GeneratorError
from .logging import configure_logging, get_logger
from .walker import TreeWalker, WalkResult


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goprotogen",
        description=(
            "Write a generated file into every Go package directory listing its "
            "exported struct types for github.com/dedis/protobuf."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Configuration file or directory holding {CONFIG_FILENAME} (defaults to the current directory).",
    )
    parser.add_argument(
        "--gofile",
        default=None,
        help="Name of the generated .go file (default: proto_generator.go).",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        default=None,
        help="Write generated code to stdout instead of package directories.",
    )
    parser.add_argument(
        "--no-recurse",
        dest="recurse",
        action="store_false",
        default=None,
        help="Only process the given directories, not their subdirectories.",
    )
    parser.add_argument(
        "--exclude-dir",
        dest="exclude_dirs",
        action="append",
        default=None,
        metavar="GLOB",
        help="Skip subdirectories whose name matches GLOB (repeatable).",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of directories processed in parallel.",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=None,
        help="Abort on the first file that fails to parse.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        default=["."],
        metavar="DIR",
        help="Root directories to process (defaults to current directory).",
    )
    return parser


def _resolve_config(args: argparse.Namespace) -> GeneratorConfig:
    base = load_config(args.config if args.config is not None else Path.cwd())
    exclude_dirs = None
    if args.exclude_dirs:
        exclude_dirs = tuple(base.exclude_dirs) + tuple(args.exclude_dirs)
    return base.merged(
        gofile=args.gofile,
        stdout=args.stdout,
        recurse=args.recurse,
        exclude_dirs=exclude_dirs,
        jobs=args.jobs,
        fail_fast=args.fail_fast,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for goprotogen."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)
    logger = get_logger("cli")

    try:
        config = _resolve_config(args)
    except ConfigError as exc:
        parser.exit(2, f"goprotogen: invalid configuration: {exc}\n")

    walker = TreeWalker(config)
    results: List[WalkResult] = []
    previous_handler = _install_interrupt_handler(walker)
    try:
        for root in args.paths:
            try:
                results.append(walker.walk(root))
            except (FileNotFoundError, NotADirectoryError) as exc:
                parser.exit(1, f"goprotogen: {exc}\n")
            except GeneratorError as exc:
                parser.exit(1, f"goprotogen failed: {exc}\nRun with --verbose for more details.\n")
            except KeyboardInterrupt:
                parser.exit(130, "goprotogen: interrupted\n")
            if walker.cancel_event.is_set():
                break
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    failures = [error for result in results for error in result.errors]
    if not config.stdout:
        for result in results:
            for outcome in result.outcomes:
                if outcome.written:
                    print(f"Generated {_relativize(outcome.target)}")
            for path in result.removed:
                print(f"Removed {_relativize(path)}")
        written = sum(result.written_count for result in results)
        total = sum(len(result.outcomes) for result in results)
        logger.info("%d of %d generated files changed", written, total)

    if walker.cancel_event.is_set():
        parser.exit(130, "goprotogen: interrupted\n")
    if failures:
        details = "\n".join(f"  {error.message}" for error in failures)
        parser.exit(1, f"goprotogen: {len(failures)} directories failed to parse:\n{details}\n")


def _install_interrupt_handler(walker: TreeWalker) -> Any:
    """Turn the first Ctrl-C into a cancel between directories; a second one aborts."""
    logger = get_logger("cli")

    def _handle(signum: int, frame: Optional[FrameType]) -> None:
        if walker.cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupted; stopping after the current directory")
        walker.cancel()

    try:
        return signal.signal(signal.SIGINT, _handle)
    except ValueError:
        # Signal handlers can only be installed from the main thread.
        return None


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
