"""Directory traversal driving parse, collect, render and write per package."""

from __future__ import annotations

import os
import sys
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional

from .collector import DeclarationCollector
from .config import GeneratorConfig
from .emitter import Emitter
from .errors import GeneratedFileError, ParseError, SourceReadError
from .file_filter import FileFilter
from .logging import get_logger
from .models import SkippedDeclaration
from .parser import SourceParser
from .write_gate import StreamSink, WriteGate


@dataclass
class PackageOutcome:
    """What happened to one package during a walk."""

    directory: Path
    package: str
    target: Path
    names: List[str]
    skipped: List[SkippedDeclaration]
    written: bool


@dataclass
class DirectoryReport:
    """Packages regenerated in one directory and the stale files removed there."""

    directory: Path
    outcomes: List[PackageOutcome] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)


@dataclass
class DirectoryError:
    """A directory whose processing failed without stopping the walk."""

    directory: Path
    error: ParseError

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class WalkResult:
    """Aggregated outcome of walking one root."""

    root: Path
    directories: List[Path] = field(default_factory=list)
    outcomes: List[PackageOutcome] = field(default_factory=list)
    errors: List[DirectoryError] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    cancelled: bool = False

    def add(self, report: DirectoryReport) -> None:
        self.outcomes.extend(report.outcomes)
        self.removed.extend(report.removed)

    @property
    def written_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.written)

    @property
    def ok(self) -> bool:
        return not self.errors and not self.cancelled


class TreeWalker:
    """Walks a directory tree depth-first and regenerates each package's listing."""

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        *,
        parser: SourceParser | None = None,
        collector: DeclarationCollector | None = None,
        emitter: Emitter | None = None,
        write_gate: WriteGate | None = None,
        stream: BinaryIO | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config or GeneratorConfig()
        self.file_filter = FileFilter(self.config.gofile, self.config.generator_name)
        self.parser = parser or SourceParser()
        self.collector = collector or DeclarationCollector()
        self.emitter = emitter or Emitter(self.config.generator_name)
        if write_gate is None:
            sink = None
            if self.config.stdout:
                sink = StreamSink(stream if stream is not None else sys.stdout.buffer)
            write_gate = WriteGate(self.config.file_mode, sink)
        self.write_gate = write_gate
        self.cancel_event = cancel_event or threading.Event()
        self.logger = get_logger("walker")

    def cancel(self) -> None:
        """Ask a running walk to stop before the next directory."""
        self.cancel_event.set()

    def walk(self, root: str | Path) -> WalkResult:
        """Process ``root`` and, unless disabled, every directory below it.

        A missing or non-directory root raises. Parse failures are recorded
        per directory in the result unless ``fail_fast`` is configured.
        """
        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise FileNotFoundError(f"Path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {root}")

        result = WalkResult(root=root_path)
        self.logger.debug("Walking %s", root_path)
        if self.config.jobs > 1:
            self._walk_parallel(root_path, result)
        else:
            self._walk_serial(root_path, result)
        if result.cancelled:
            self.logger.warning("Walk of %s cancelled", root_path)
        return result

    def process_directory(self, directory: Path) -> DirectoryReport:
        """Parse ``directory`` and regenerate the listing of each package in it.

        Generated files left over from an earlier package layout (for example
        ``proto_generator.go`` once a second package appears) are removed.
        """
        packages = self.parser.parse(directory, self.file_filter)
        report = DirectoryReport(directory=directory)
        for name in sorted(packages):
            package = packages[name]
            collected = self.collector.collect_structs(package)
            data = self.emitter.render(package.name, collected.names, package.build_constraint)
            target = directory / self.file_filter.target_name(package.name, len(packages))
            self._guard_hand_written(target)
            written = self.write_gate.commit(target, data)
            self.logger.debug(
                "Package %s in %s: %d struct types, %d skipped, written=%s",
                package.name,
                directory,
                len(collected.names),
                len(collected.skipped),
                written,
            )
            report.outcomes.append(
                PackageOutcome(
                    directory=directory,
                    package=package.name,
                    target=target,
                    names=collected.names,
                    skipped=collected.skipped,
                    written=written,
                )
            )
        if packages and self.write_gate.sink is None:
            report.removed = self._prune_stale(directory, report.outcomes)
        return report

    def _guard_hand_written(self, target: Path) -> None:
        if (
            self.write_gate.sink is None
            and target.exists()
            and self.file_filter.is_variant_name(target.name)
            and not self.file_filter.has_header(target)
        ):
            raise GeneratedFileError(f"Refusing to overwrite hand-written file {target}")

    def _prune_stale(self, directory: Path, outcomes: List[PackageOutcome]) -> List[Path]:
        current = {outcome.target.name for outcome in outcomes}
        removed: List[Path] = []
        for path in self.file_filter.generated_files(directory):
            if path.name in current:
                continue
            self.write_gate.remove(path)
            self.logger.info("Removed stale %s", path)
            removed.append(path)
        return removed

    def _walk_serial(self, directory: Path, result: WalkResult) -> None:
        if self.cancel_event.is_set():
            result.cancelled = True
            return
        result.directories.append(directory)
        try:
            result.add(self.process_directory(directory))
        except ParseError as exc:
            self._record_failure(directory, exc, result)

        if not self.config.recurse:
            return
        for child in self._subdirectories(directory):
            self._walk_serial(child, result)
            if result.cancelled:
                return

    def _walk_parallel(self, root: Path, result: WalkResult) -> None:
        directories = list(self._discover(root))
        if self.cancel_event.is_set():
            result.cancelled = True
        with ThreadPoolExecutor(max_workers=self.config.jobs) as executor:
            futures: List[Future[Optional[DirectoryReport]]] = [
                executor.submit(self._process_unless_cancelled, directory)
                for directory in directories
            ]
            try:
                for directory, future in zip(directories, futures):
                    try:
                        report = future.result()
                    except ParseError as exc:
                        result.directories.append(directory)
                        self._record_failure(directory, exc, result)
                        continue
                    if report is None:
                        result.cancelled = True
                        continue
                    result.directories.append(directory)
                    result.add(report)
            except BaseException:
                self.cancel_event.set()
                for pending in futures:
                    pending.cancel()
                raise

    def _process_unless_cancelled(self, directory: Path) -> Optional[DirectoryReport]:
        if self.cancel_event.is_set():
            return None
        return self.process_directory(directory)

    def _discover(self, directory: Path) -> Iterator[Path]:
        yield directory
        if not self.config.recurse:
            return
        for child in self._subdirectories(directory):
            if self.cancel_event.is_set():
                return
            yield from self._discover(child)

    def _subdirectories(self, directory: Path) -> List[Path]:
        try:
            with os.scandir(directory) as entries:
                names = sorted(
                    entry.name for entry in entries if entry.is_dir(follow_symlinks=False)
                )
        except OSError as exc:
            raise SourceReadError(f"Failed to list {directory}: {exc}") from exc
        children: List[Path] = []
        for name in names:
            if any(fnmatchcase(name, pattern) for pattern in self.config.exclude_dirs):
                self.logger.debug("Skipping excluded directory %s", directory / name)
                continue
            children.append(directory / name)
        return children

    def _record_failure(self, directory: Path, exc: ParseError, result: WalkResult) -> None:
        if self.config.fail_fast:
            raise exc
        self.logger.error("Skipping %s: %s", directory, exc)
        result.errors.append(DirectoryError(directory=directory, error=exc))


__all__ = ["DirectoryError", "DirectoryReport", "PackageOutcome", "TreeWalker", "WalkResult"]
