"""Core data models shared across goprotogen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional


class DeclarationKind(str, Enum):
    """Kind of a package-level Go object."""

    TYPE = "type"
    FUNCTION = "function"
    VARIABLE = "variable"
    CONSTANT = "constant"


class ShapeTag(str, Enum):
    """Underlying shape of a type declaration."""

    STRUCT = "struct"
    ALIAS = "alias"
    INTERFACE = "interface"
    NAMED = "named"
    QUALIFIED = "qualified"
    POINTER = "pointer"
    SLICE = "slice"
    ARRAY = "array"
    MAP = "map"
    CHANNEL = "channel"
    FUNCTION = "function"
    GENERIC_INSTANCE = "generic instance"
    OTHER = "other"


def is_exported(name: str) -> bool:
    """Mirror Go's rule: a name is exported when it starts with an upper case letter."""
    return bool(name) and name[0].isupper()


@dataclass
class Declaration:
    """One top-level named entity in a Go file."""

    name: str
    kind: DeclarationKind
    file: Path
    line: int = 0
    shape: Optional[ShapeTag] = None
    generic: bool = False

    @property
    def exported(self) -> bool:
        return is_exported(self.name)


@dataclass
class SourceFile:
    """A parsed Go file and its package-level scope."""

    path: Path
    package_name: str
    scope: Dict[str, Declaration] = field(default_factory=dict)
    build_constraint: Optional[str] = None

    def declare(self, declaration: Declaration) -> None:
        # The first declaration of a name in a file wins.
        self.scope.setdefault(declaration.name, declaration)


@dataclass
class Package:
    """Files of one Go package found in a single directory."""

    name: str
    directory: Path
    files: Dict[Path, SourceFile] = field(default_factory=dict)

    def declarations(self) -> Iterator[Declaration]:
        """Yield declarations in file order, then scope order."""
        for source in self.files.values():
            yield from source.scope.values()

    @property
    def build_constraint(self) -> Optional[str]:
        """The `//go:build` expression shared by every file, if there is one."""
        constraints = {source.build_constraint for source in self.files.values()}
        if len(constraints) == 1:
            return constraints.pop()
        return None


@dataclass(frozen=True)
class SkippedDeclaration:
    """An exported declaration omitted from the emission, with the reason."""

    name: str
    reason: str
    file: Optional[Path] = None


@dataclass
class CollectResult:
    """Sorted, unique declaration names plus the diagnostics gathered on the way."""

    names: List[str] = field(default_factory=list)
    skipped: List[SkippedDeclaration] = field(default_factory=list)


@dataclass(frozen=True)
class EmissionSpec:
    """Everything the emitter needs to render one generated file."""

    package_name: str
    struct_names: tuple[str, ...]
    generator_name: str
    build_constraint: Optional[str] = None


__all__ = [
    "CollectResult",
    "Declaration",
    "DeclarationKind",
    "EmissionSpec",
    "Package",
    "ShapeTag",
    "SkippedDeclaration",
    "SourceFile",
    "is_exported",
]
