"""Exception types raised by the generator pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class GeneratorError(RuntimeError):
    """Base class for goprotogen failures."""


class ConfigError(GeneratorError):
    """Raised when the configuration file or its values cannot be used."""


class ParseError(GeneratorError):
    """Raised when a Go source file is not syntactically valid."""

    def __init__(
        self,
        path: Path,
        message: str,
        *,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        self.path = Path(path)
        self.line = line
        self.column = column
        location = str(self.path)
        if line is not None:
            location += f":{line}"
            if column is not None:
                location += f":{column}"
        super().__init__(f"{location}: {message}")


class SourceReadError(GeneratorError):
    """Raised when a Go source file cannot be read."""


class GeneratedFileError(GeneratorError):
    """Raised when a generated file cannot be read back or written."""


__all__ = [
    "ConfigError",
    "GeneratedFileError",
    "GeneratorError",
    "ParseError",
    "SourceReadError",
]
