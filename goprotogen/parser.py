"""Tree-sitter powered Go source parser."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional

import tree_sitter_go
from tree_sitter import Language, Node, Parser

from .errors import ParseError, SourceReadError
from .logging import get_logger
from .models import Declaration, DeclarationKind, Package, ShapeTag, SourceFile

GO_LANGUAGE = Language(tree_sitter_go.language())

_TYPE_SHAPES: Dict[str, ShapeTag] = {
    "struct_type": ShapeTag.STRUCT,
    "interface_type": ShapeTag.INTERFACE,
    "type_identifier": ShapeTag.NAMED,
    "qualified_type": ShapeTag.QUALIFIED,
    "pointer_type": ShapeTag.POINTER,
    "slice_type": ShapeTag.SLICE,
    "array_type": ShapeTag.ARRAY,
    "implicit_length_array_type": ShapeTag.ARRAY,
    "map_type": ShapeTag.MAP,
    "channel_type": ShapeTag.CHANNEL,
    "function_type": ShapeTag.FUNCTION,
    "generic_type": ShapeTag.GENERIC_INSTANCE,
}

_TYPE_SPECS = frozenset({"type_spec", "type_alias"})
_VAR_SPECS = frozenset({"var_spec"})
_CONST_SPECS = frozenset({"const_spec"})

_BLANK_IDENTIFIER = "_"
_BUILD_PREFIX = "//go:build "


class SourceParser:
    """Parses the Go files of one directory into packages."""

    def __init__(self) -> None:
        self._local = threading.local()
        self.logger = get_logger("parser")

    def parse(
        self, directory: Path, file_filter: Callable[[Path], bool]
    ) -> Dict[str, Package]:
        """Parse every file accepted by ``file_filter``, grouped by package name.

        Only the directory itself is read, never its subdirectories. A single
        malformed file fails the whole directory with ``ParseError``.
        """
        directory = Path(directory)
        packages: Dict[str, Package] = {}
        for path in self._candidate_files(directory, file_filter):
            source = self.parse_file(path)
            package = packages.get(source.package_name)
            if package is None:
                package = Package(name=source.package_name, directory=directory)
                packages[source.package_name] = package
            package.files[path] = source
        if len(packages) > 1:
            self.logger.debug(
                "Directory %s holds %d packages: %s",
                directory,
                len(packages),
                ", ".join(sorted(packages)),
            )
        return packages

    def parse_file(self, path: Path) -> SourceFile:
        """Read and parse a single Go file."""
        try:
            source_bytes = Path(path).read_bytes()
        except OSError as exc:
            raise SourceReadError(f"Failed to read {path}: {exc}") from exc
        return self.parse_source(source_bytes, Path(path))

    def parse_source(self, source_bytes: bytes, path: Path) -> SourceFile:
        """Parse Go source held in memory; ``path`` is used for reporting only."""
        tree = self._get_parser().parse(source_bytes)
        root = tree.root_node
        if root.has_error:
            bad = _first_error(root)
            row, column = bad.start_point[0], bad.start_point[1]
            detail = f"missing {bad.type}" if bad.is_missing else "syntax error"
            raise ParseError(path, detail, line=row + 1, column=column + 1)

        package_name = _package_name(root, source_bytes)
        if package_name is None:
            raise ParseError(path, "expected 'package' clause", line=1, column=1)

        source = SourceFile(
            path=path,
            package_name=package_name,
            build_constraint=_build_constraint(root, source_bytes),
        )
        for declaration in self._collect_declarations(root, source_bytes, path):
            source.declare(declaration)
        self.logger.debug(
            "Parsed %s (package %s, %d declarations)", path, package_name, len(source.scope)
        )
        return source

    def _get_parser(self) -> Parser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(GO_LANGUAGE)
            self._local.parser = parser
        return parser

    @staticmethod
    def _candidate_files(
        directory: Path, file_filter: Callable[[Path], bool]
    ) -> List[Path]:
        try:
            entries = sorted(directory.iterdir(), key=lambda item: item.name)
        except OSError as exc:
            raise SourceReadError(f"Failed to list {directory}: {exc}") from exc
        return [path for path in entries if file_filter(path)]

    def _collect_declarations(
        self, root: Node, source_bytes: bytes, path: Path
    ) -> Iterator[Declaration]:
        for child in root.named_children:
            if child.type == "type_declaration":
                for spec in _iter_specs(child, _TYPE_SPECS):
                    declaration = _type_declaration(spec, source_bytes, path)
                    if declaration is not None:
                        yield declaration
            elif child.type == "function_declaration":
                name_node = child.child_by_field_name("name")
                name = _node_text(name_node, source_bytes) if name_node else ""
                if name and name != _BLANK_IDENTIFIER:
                    yield Declaration(
                        name=name,
                        kind=DeclarationKind.FUNCTION,
                        file=path,
                        line=child.start_point[0] + 1,
                    )
            elif child.type == "var_declaration":
                yield from _value_declarations(
                    child, _VAR_SPECS, DeclarationKind.VARIABLE, source_bytes, path
                )
            elif child.type == "const_declaration":
                yield from _value_declarations(
                    child, _CONST_SPECS, DeclarationKind.CONSTANT, source_bytes, path
                )


def _node_text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _first_error(node: Node) -> Node:
    for child in node.children:
        if child.type == "ERROR" or child.is_missing:
            return child
        if child.has_error:
            return _first_error(child)
    return node


def _package_name(root: Node, source_bytes: bytes) -> Optional[str]:
    for child in root.named_children:
        if child.type != "package_clause":
            continue
        for part in child.named_children:
            if part.type == "package_identifier":
                return _node_text(part, source_bytes)
    return None


def _build_constraint(root: Node, source_bytes: bytes) -> Optional[str]:
    # Constraints only count in the comments above the package clause.
    for child in root.children:
        if child.type == "package_clause":
            break
        if child.type != "comment":
            continue
        text = _node_text(child, source_bytes).strip()
        if text.startswith(_BUILD_PREFIX):
            return text[len(_BUILD_PREFIX) :].strip() or None
    return None


def _iter_specs(node: Node, spec_types: frozenset[str]) -> Iterator[Node]:
    # Grouped declarations may wrap their specs in a list node.
    for child in node.named_children:
        if child.type in spec_types:
            yield child
        else:
            yield from _iter_specs(child, spec_types)


def _type_declaration(spec: Node, source_bytes: bytes, path: Path) -> Optional[Declaration]:
    name_node = spec.child_by_field_name("name")
    if name_node is None:
        return None
    name = _node_text(name_node, source_bytes)
    if name == _BLANK_IDENTIFIER:
        return None
    if spec.type == "type_alias":
        shape = ShapeTag.ALIAS
    else:
        type_node = spec.child_by_field_name("type")
        shape = _TYPE_SHAPES.get(type_node.type, ShapeTag.OTHER) if type_node else ShapeTag.OTHER
    return Declaration(
        name=name,
        kind=DeclarationKind.TYPE,
        file=path,
        line=spec.start_point[0] + 1,
        shape=shape,
        generic=spec.child_by_field_name("type_parameters") is not None,
    )


def _value_declarations(
    node: Node,
    spec_types: frozenset[str],
    kind: DeclarationKind,
    source_bytes: bytes,
    path: Path,
) -> Iterable[Declaration]:
    for spec in _iter_specs(node, spec_types):
        for name_node in spec.children_by_field_name("name"):
            name = _node_text(name_node, source_bytes)
            if name and name != _BLANK_IDENTIFIER:
                yield Declaration(
                    name=name,
                    kind=kind,
                    file=path,
                    line=name_node.start_point[0] + 1,
                )


__all__ = ["GO_LANGUAGE", "SourceParser"]
