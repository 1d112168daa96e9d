"""Tests for goprotogen.walker, covering the end-to-end pipeline."""

from __future__ import annotations

import io
import threading
from pathlib import Path

import pytest

from goprotogen.config import GeneratorConfig
from goprotogen.errors import GeneratedFileError, ParseError
from goprotogen.walker import TreeWalker
from goprotogen.write_gate import WriteGate
from tests._fixtures.tree_builder import GoTreeBuilder


def _listing(text: str) -> list[str]:
    start = text.index("var structTypes = []interface{}{\n") + len("var structTypes = []interface{}{\n")
    end = text.index("}\n", start)
    return [line.strip().rstrip("{},") for line in text[start:end].splitlines()]


class CountingGate(WriteGate):
    """WriteGate that records every real write."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[Path] = []

    def commit(self, target: Path, data: bytes) -> bool:
        written = super().commit(target, data)
        if written:
            self.writes.append(target)
        return written


def test_filtering_keeps_only_exported_plain_structs(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "types.go": """
                package demo

                type Foo struct{}

                type bar struct{}

                type Baz = int
            """,
        }
    )

    result = TreeWalker().walk(go_tree.path())

    assert _listing(go_tree.read("proto_generator.go")) == ["Foo"]
    [outcome] = result.outcomes
    assert outcome.names == ["Foo"]
    assert [(item.name, item.reason) for item in outcome.skipped] == [("Baz", "alias type")]


def test_listing_is_sorted_across_files(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "z.go": "package demo\n\ntype Zebra struct{}\ntype Apple struct{}\n",
            "a.go": "package demo\n\ntype Mango struct{}\n",
        }
    )

    TreeWalker().walk(go_tree.path())

    assert _listing(go_tree.read("proto_generator.go")) == ["Apple", "Mango", "Zebra"]


def test_test_files_do_not_contribute(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "thing.go": "package demo\n\ntype Thing struct{}\n",
            "thing_test.go": "package demo\n\ntype Widget struct{}\n",
        }
    )

    TreeWalker().walk(go_tree.path())

    assert _listing(go_tree.read("proto_generator.go")) == ["Thing"]


def test_generated_file_is_never_input(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "proto_generator.go": """
                package demo

                type Stale struct{}
            """,
        }
    )

    result = TreeWalker().walk(go_tree.path())

    assert result.outcomes == []
    assert "Stale" in go_tree.read("proto_generator.go")


def test_self_exclusion_after_sources_removed(go_tree: GoTreeBuilder) -> None:
    go_tree.write({"types.go": "package demo\n\ntype Foo struct{}\n"})
    walker = TreeWalker()
    walker.walk(go_tree.path())

    (go_tree.path() / "types.go").unlink()
    go_tree.write({"doc.go": "// Package demo is empty now.\npackage demo\n"})
    walker.walk(go_tree.path())

    assert _listing(go_tree.read("proto_generator.go")) == []


def test_second_run_performs_no_writes(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "types.go": "package demo\n\ntype Foo struct{}\n",
            "sub/more.go": "package sub\n\ntype Bar struct{}\n",
        }
    )
    gate = CountingGate()
    walker = TreeWalker(write_gate=gate)

    first = walker.walk(go_tree.path())
    assert first.written_count == 2
    gate.writes.clear()

    second = walker.walk(go_tree.path())
    assert second.written_count == 0
    assert gate.writes == []


def test_recursion_writes_one_file_per_directory(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "a.go": "package a\n\ntype Outer struct{}\n",
            "b/b.go": "package b\n\ntype Inner struct{}\n",
        }
    )

    result = TreeWalker().walk(go_tree.path())

    assert _listing(go_tree.read("proto_generator.go")) == ["Outer"]
    assert _listing(go_tree.read("b/proto_generator.go")) == ["Inner"]
    assert "package b\n" in go_tree.read("b/proto_generator.go")
    assert result.directories == [go_tree.path(), go_tree.path("b")]


def test_change_detection_inserts_new_name_in_order(go_tree: GoTreeBuilder) -> None:
    go_tree.write({"types.go": "package demo\n\ntype Alpha struct{}\ntype Gamma struct{}\n"})
    walker = TreeWalker()
    walker.walk(go_tree.path())

    go_tree.write({"beta.go": "package demo\n\ntype Beta struct{ N int }\n"})
    result = walker.walk(go_tree.path())

    assert result.written_count == 1
    assert _listing(go_tree.read("proto_generator.go")) == ["Alpha", "Beta", "Gamma"]


def test_no_recurse_processes_root_only(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "a.go": "package a\n\ntype A struct{}\n",
            "b/b.go": "package b\n\ntype B struct{}\n",
        }
    )

    TreeWalker(GeneratorConfig(recurse=False)).walk(go_tree.path())

    assert (go_tree.path() / "proto_generator.go").exists()
    assert not (go_tree.path("b") / "proto_generator.go").exists()


def test_excluded_directories_are_skipped(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "a.go": "package a\n\ntype A struct{}\n",
            "vendor/lib/lib.go": "package lib\n\ntype L struct{}\n",
        }
    )

    TreeWalker(GeneratorConfig(exclude_dirs=("vendor",))).walk(go_tree.path())

    assert not (go_tree.path("vendor/lib") / "proto_generator.go").exists()


def test_custom_gofile_name(go_tree: GoTreeBuilder) -> None:
    go_tree.write({"a.go": "package a\n\ntype A struct{}\n"})

    TreeWalker(GeneratorConfig(gofile="structs_gen.go")).walk(go_tree.path())

    assert _listing(go_tree.read("structs_gen.go")) == ["A"]
    assert not (go_tree.path() / "proto_generator.go").exists()


def test_multiple_packages_get_separate_targets(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "lib.go": "package lib\n\ntype Lib struct{}\n",
            "gen.go": "//go:build ignore\n\npackage main\n\ntype Tool struct{}\n",
        }
    )
    walker = TreeWalker()

    result = walker.walk(go_tree.path())
    again = walker.walk(go_tree.path())

    assert _listing(go_tree.read("proto_generator.lib.go")) == ["Lib"]
    assert _listing(go_tree.read("proto_generator.main.go")) == ["Tool"]
    assert [outcome.package for outcome in result.outcomes] == ["lib", "main"]
    assert again.written_count == 0


def test_parse_error_is_scoped_to_its_directory(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "a.go": "package a\n\ntype A struct{}\n",
            "broken/bad.go": "package broken\n\nfunc (\n",
            "broken/child/c.go": "package child\n\ntype C struct{}\n",
            "ok/ok.go": "package ok\n\ntype O struct{}\n",
        }
    )

    result = TreeWalker().walk(go_tree.path())

    assert [error.directory for error in result.errors] == [go_tree.path("broken")]
    assert "bad.go" in result.errors[0].message
    assert not result.ok
    assert not (go_tree.path("broken") / "proto_generator.go").exists()
    assert _listing(go_tree.read("broken/child/proto_generator.go")) == ["C"]
    assert _listing(go_tree.read("ok/proto_generator.go")) == ["O"]


def test_fail_fast_reraises_parse_errors(go_tree: GoTreeBuilder) -> None:
    go_tree.write({"bad/bad.go": "package bad\n\nfunc (\n"})

    with pytest.raises(ParseError):
        TreeWalker(GeneratorConfig(fail_fast=True)).walk(go_tree.path())


def test_walk_rejects_missing_and_file_roots(tmp_path: Path) -> None:
    walker = TreeWalker()
    with pytest.raises(FileNotFoundError):
        walker.walk(tmp_path / "missing")

    file_root = tmp_path / "file.go"
    file_root.write_text("package x\n", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        walker.walk(file_root)


def test_stdout_mode_streams_and_leaves_tree_untouched(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "a.go": "package a\n\ntype A struct{}\n",
            "b/b.go": "package b\n\ntype B struct{}\n",
        }
    )
    stream = io.BytesIO()

    TreeWalker(GeneratorConfig(stdout=True), stream=stream).walk(go_tree.path())

    output = stream.getvalue().decode("utf-8")
    assert output.index("package a\n") < output.index("package b\n")
    assert output.count("// Code generated by goprotogen DO NOT EDIT.") == 2
    assert not (go_tree.path() / "proto_generator.go").exists()


def test_cancelled_walk_stops_before_next_directory(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "a.go": "package a\n\ntype A struct{}\n",
            "b/b.go": "package b\n\ntype B struct{}\n",
        }
    )
    event = threading.Event()
    walker = TreeWalker(cancel_event=event)
    original = walker.process_directory

    def _process_then_cancel(directory: Path):
        outcomes = original(directory)
        walker.cancel()
        return outcomes

    walker.process_directory = _process_then_cancel  # type: ignore[method-assign]
    result = walker.walk(go_tree.path())

    assert result.cancelled is True
    assert result.directories == [go_tree.path()]
    assert not (go_tree.path("b") / "proto_generator.go").exists()


def test_parallel_walk_matches_serial(go_tree: GoTreeBuilder) -> None:
    files = {f"pkg{index}/types.go": f"package pkg{index}\n\ntype T{index} struct{{}}\n" for index in range(6)}
    files["bad/bad.go"] = "package bad\n\nfunc (\n"
    go_tree.write(files)

    result = TreeWalker(GeneratorConfig(jobs=4)).walk(go_tree.path())

    assert [path.name for path in result.directories[1:]] == ["bad"] + [f"pkg{i}" for i in range(6)]
    assert [error.directory.name for error in result.errors] == ["bad"]
    for index in range(6):
        assert _listing(go_tree.read(f"pkg{index}/proto_generator.go")) == [f"T{index}"]


def test_parallel_stdout_keeps_packages_whole(go_tree: GoTreeBuilder) -> None:
    go_tree.write({f"p{index}/x.go": f"package p{index}\n\ntype X struct{{}}\n" for index in range(5)})
    stream = io.BytesIO()

    TreeWalker(GeneratorConfig(stdout=True, jobs=3), stream=stream).walk(go_tree.path())

    chunks = stream.getvalue().decode("utf-8").split("// Code generated by")[1:]
    assert len(chunks) == 5
    for chunk in chunks:
        assert chunk.count("package ") == 1
        assert chunk.rstrip().endswith("}")


def test_hand_written_files_sharing_the_target_stem_are_sources(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "a.go": "package demo\n\ntype A struct{}\n",
            "proto_generator.extra.go": "package demo\n\ntype Helper struct{}\n",
        }
    )

    TreeWalker().walk(go_tree.path())

    assert _listing(go_tree.read("proto_generator.go")) == ["A", "Helper"]
    assert "type Helper struct{}" in go_tree.read("proto_generator.extra.go")


def test_second_package_replaces_single_target_with_variants(go_tree: GoTreeBuilder) -> None:
    go_tree.write({"lib.go": "package lib\n\ntype Lib struct{}\n"})
    walker = TreeWalker()
    walker.walk(go_tree.path())

    go_tree.write({"gen.go": "//go:build ignore\n\npackage main\n\ntype Tool struct{}\n"})
    result = walker.walk(go_tree.path())

    generated = sorted(path.name for path in go_tree.path().glob("proto_generator*.go"))
    assert generated == ["proto_generator.lib.go", "proto_generator.main.go"]
    assert result.removed == [go_tree.path("proto_generator.go")]
    main_lines = go_tree.read("proto_generator.main.go").splitlines()
    assert main_lines[2:5] == ["//go:build ignore", "", "package main"]
    assert "//go:build" not in go_tree.read("proto_generator.lib.go")


def test_dropping_back_to_one_package_removes_variants(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "lib.go": "package lib\n\ntype Lib struct{}\n",
            "gen.go": "//go:build ignore\n\npackage main\n\ntype Tool struct{}\n",
        }
    )
    walker = TreeWalker()
    walker.walk(go_tree.path())

    (go_tree.path() / "gen.go").unlink()
    result = walker.walk(go_tree.path())

    generated = sorted(path.name for path in go_tree.path().glob("proto_generator*.go"))
    assert generated == ["proto_generator.go"]
    assert sorted(path.name for path in result.removed) == [
        "proto_generator.lib.go",
        "proto_generator.main.go",
    ]
    assert _listing(go_tree.read("proto_generator.go")) == ["Lib"]


def test_stdout_mode_never_removes_files(go_tree: GoTreeBuilder) -> None:
    go_tree.write({"lib.go": "package lib\n\ntype Lib struct{}\n"})
    TreeWalker().walk(go_tree.path())
    go_tree.write({"gen.go": "//go:build ignore\n\npackage main\n\ntype Tool struct{}\n"})

    result = TreeWalker(GeneratorConfig(stdout=True), stream=io.BytesIO()).walk(go_tree.path())

    assert result.removed == []
    assert (go_tree.path() / "proto_generator.go").exists()


def test_hand_written_variant_is_never_overwritten(go_tree: GoTreeBuilder) -> None:
    go_tree.write(
        {
            "proto_generator.extra.go": "package extra\n\ntype Mine struct{}\n",
            "gen.go": "//go:build ignore\n\npackage main\n\ntype Tool struct{}\n",
        }
    )

    with pytest.raises(GeneratedFileError):
        TreeWalker().walk(go_tree.path())
    assert "type Mine struct{}" in go_tree.read("proto_generator.extra.go")
