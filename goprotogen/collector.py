"""Collection of exported package-level declarations."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from .logging import get_logger
from .models import (
    CollectResult,
    Declaration,
    DeclarationKind,
    Package,
    ShapeTag,
    SkippedDeclaration,
)

StructuralPredicate = Callable[[Declaration], bool]


def is_plain_struct(declaration: Declaration) -> bool:
    """True for non-generic type declarations whose underlying type is a struct literal."""
    return (
        declaration.kind is DeclarationKind.TYPE
        and declaration.shape is ShapeTag.STRUCT
        and not declaration.generic
    )


def describe_shape(declaration: Declaration) -> str:
    """Short human readable description used as the skip reason."""
    if declaration.kind is not DeclarationKind.TYPE:
        return declaration.kind.value
    shape = declaration.shape or ShapeTag.OTHER
    if declaration.generic:
        return f"generic {shape.value} type"
    return f"{shape.value} type"


class DeclarationCollector:
    """Walks a package's file scopes and returns matching names in canonical order."""

    def __init__(self) -> None:
        self.logger = get_logger("collector")

    def collect(
        self,
        package: Package,
        kind: DeclarationKind,
        exported_only: bool = True,
        predicate: Optional[StructuralPredicate] = None,
    ) -> CollectResult:
        """Return sorted unique names of ``kind`` declarations in ``package``.

        Declarations rejected by ``predicate`` are reported in
        ``CollectResult.skipped`` rather than raising. When two files declare
        the same name, the first file in path order wins.
        """
        seen: Dict[str, Declaration] = {}
        result = CollectResult()
        for declaration in package.declarations():
            if declaration.kind is not kind:
                continue
            if exported_only and not declaration.exported:
                continue
            if declaration.name in seen:
                self.logger.debug(
                    "Duplicate declaration %s.%s in %s (first seen in %s)",
                    package.name,
                    declaration.name,
                    declaration.file,
                    seen[declaration.name].file,
                )
                continue
            seen[declaration.name] = declaration
            if predicate is not None and not predicate(declaration):
                reason = describe_shape(declaration)
                self.logger.info(
                    "Skipping %s.%s (%s) in %s",
                    package.name,
                    declaration.name,
                    reason,
                    declaration.file,
                )
                result.skipped.append(
                    SkippedDeclaration(name=declaration.name, reason=reason, file=declaration.file)
                )
                continue
            result.names.append(declaration.name)

        # Code point order matches Go's byte-wise sort.Strings on UTF-8 names.
        result.names.sort()
        result.skipped.sort(key=lambda item: item.name)
        return result

    def collect_structs(self, package: Package) -> CollectResult:
        """Exported plain struct types, the listing the generated file carries."""
        return self.collect(package, DeclarationKind.TYPE, True, is_plain_struct)


__all__ = [
    "DeclarationCollector",
    "StructuralPredicate",
    "describe_shape",
    "is_plain_struct",
]
