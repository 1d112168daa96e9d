"""Rendering of the generated Go listing file."""

from __future__ import annotations

from typing import Iterable, Optional

from .config import DEFAULT_GENERATOR_NAME
from .models import EmissionSpec

HEADER_FMT = "// Code generated by {generator} DO NOT EDIT.\n\n"
BUILD_CONSTRAINT_FMT = "//go:build {expression}\n\n"
PACKAGE_FMT = "package {name}\n\n"

IMPORTS = """import (
\t"os"

\t// we use dedis' protobuf library to generate proto files from go-structs
\t// see: https://github.com/dedis/protobuf#generating-proto-files
\t"github.com/dedis/protobuf"
)

"""

LISTING_OPEN = "var structTypes = []interface{}{\n"
LISTING_ENTRY_FMT = "\t{name}{{}},\n"
LISTING_CLOSE = "}\n\n"

ENTRY_POINT = """// Call this method to generate protobuf messages:
func GenerateProtos() {
\t// see: https://github.com/dedis/protobuf#generating-proto-files
\tprotobuf.GenerateProtobufDefinition(os.Stdout, structTypes, nil, nil)
}
"""


def header_line(generator_name: str) -> str:
    """First line of every file this generator writes."""
    return HEADER_FMT.format(generator=generator_name).rstrip("\n")


class Emitter:
    """Renders the fixed template; identical input always yields identical bytes."""

    def __init__(self, generator_name: str = DEFAULT_GENERATOR_NAME) -> None:
        self.generator_name = generator_name

    def spec_for(
        self,
        package_name: str,
        struct_names: Iterable[str],
        build_constraint: Optional[str] = None,
    ) -> EmissionSpec:
        return EmissionSpec(
            package_name=package_name,
            struct_names=tuple(sorted(set(struct_names))),
            generator_name=self.generator_name,
            build_constraint=build_constraint,
        )

    def render(
        self,
        package_name: str,
        struct_names: Iterable[str],
        build_constraint: Optional[str] = None,
    ) -> bytes:
        return self.render_spec(self.spec_for(package_name, struct_names, build_constraint))

    @staticmethod
    def render_spec(spec: EmissionSpec) -> bytes:
        parts = [HEADER_FMT.format(generator=spec.generator_name)]
        # A package guarded by //go:build must guard its listing the same way.
        if spec.build_constraint:
            parts.append(BUILD_CONSTRAINT_FMT.format(expression=spec.build_constraint))
        parts.extend(
            [
                PACKAGE_FMT.format(name=spec.package_name),
                IMPORTS,
                LISTING_OPEN,
            ]
        )
        parts.extend(LISTING_ENTRY_FMT.format(name=name) for name in spec.struct_names)
        parts.append(LISTING_CLOSE)
        parts.append(ENTRY_POINT)
        return "".join(parts).encode("utf-8")


__all__ = ["Emitter", "header_line"]
