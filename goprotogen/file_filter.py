"""Selection of the Go files that take part in parsing."""

from __future__ import annotations

from pathlib import Path
from typing import List

from .config import DEFAULT_GENERATOR_NAME, DEFAULT_GOFILE
from .emitter import header_line

GO_EXTENSION = ".go"
TEST_SUFFIX = "_test.go"


class FileFilter:
    """Decides per directory entry whether it is parsed as a package source file."""

    def __init__(
        self, gofile: str = DEFAULT_GOFILE, generator_name: str = DEFAULT_GENERATOR_NAME
    ) -> None:
        self.gofile = gofile
        self.header = header_line(generator_name).encode("utf-8")
        self._stem = gofile[: -len(GO_EXTENSION)]

    def include(self, path: Path) -> bool:
        """Return True for regular Go sources other than tests and the generated file."""
        name = path.name
        if path.is_dir():
            return False
        if self.is_generated(path):
            return False
        if path.suffix != GO_EXTENSION:
            return False
        if name.endswith(TEST_SUFFIX):
            return False
        return True

    __call__ = include

    def is_generated(self, path: Path) -> bool:
        """True for the target file, and for ``<stem>.<pkg>.go`` files this generator wrote."""
        if path.name == self.gofile:
            return True
        return self.is_variant_name(path.name) and self.has_header(path)

    def is_variant_name(self, name: str) -> bool:
        return (
            name.startswith(f"{self._stem}.")
            and name.endswith(GO_EXTENSION)
            and name != self.gofile
        )

    def has_header(self, path: Path) -> bool:
        """True when the first line of ``path`` is this generator's do-not-edit header."""
        try:
            with path.open("rb") as handle:
                first = handle.readline(len(self.header) + 2)
        except OSError:
            return False
        return first.rstrip(b"\r\n") == self.header

    def generated_files(self, directory: Path) -> List[Path]:
        """Files in ``directory`` carrying this generator's header under a target name."""
        found: List[Path] = []
        for path in sorted(directory.iterdir(), key=lambda item: item.name):
            if path.name != self.gofile and not self.is_variant_name(path.name):
                continue
            if path.is_file() and self.has_header(path):
                found.append(path)
        return found

    def target_name(self, package_name: str, package_count: int = 1) -> str:
        """File name the listing of ``package_name`` is written to."""
        if package_count <= 1:
            return self.gofile
        return f"{self._stem}.{package_name}{GO_EXTENSION}"


__all__ = ["FileFilter", "GO_EXTENSION", "TEST_SUFFIX"]
