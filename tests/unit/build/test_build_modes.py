"""Tests for build mode selection and compile planning."""

from pathlib import Path

import pytest

from asmbuild.build.build_modes import (
    MODES,
    BuildMode,
    format_mode_banner,
    object_path_for,
    plan,
    select_link_set,
)
from asmbuild.build.source_scanner import SourceScanner


class TestBuildMode:
    def test_parse_is_case_insensitive(self):
        assert BuildMode.parse("SEPARATE") is BuildMode.SEPARATE
        assert BuildMode.parse(" include ") is BuildMode.INCLUDE

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown build mode"):
            BuildMode.parse("fast")

    def test_str(self):
        assert str(BuildMode.SEPARATE) == "separate"

    def test_separate_links_with_gc_sections(self):
        assert "--gc-sections" in MODES[BuildMode.SEPARATE].link_flags
        assert "--gc-sections" not in MODES[BuildMode.INCLUDE].link_flags

    def test_banner(self):
        assert format_mode_banner(BuildMode.INCLUDE, "nasm") == "MODE=include ASM=nasm"
        assert format_mode_banner(BuildMode.SEPARATE) == "MODE=separate"


class TestCompilePlan:
    @pytest.fixture
    def collection(self, project_dir):
        (project_dir / "src" / "utils" / "strlen.asm").write_text("; strlen\n")
        return SourceScanner(project_dir / "src", ["network", "utils"]).scan()

    @pytest.fixture
    def build_dir(self, project_dir) -> Path:
        return project_dir / "build"

    def test_include_mode_links_entry_only(self, collection, build_dir):
        entry = build_dir / "main.o"
        result = plan(BuildMode.INCLUDE, collection, entry, lambda s: object_path_for(s, build_dir))

        assert result.link_set == (entry,)
        assert result.compile_units == ()

    def test_separate_mode_links_every_source(self, collection, build_dir):
        entry = build_dir / "main.o"
        result = plan(BuildMode.SEPARATE, collection, entry, lambda s: object_path_for(s, build_dir))

        assert len(result.link_set) == 1 + collection.total == 4
        assert result.link_set[0] == entry
        assert result.link_set[1:] == (
            build_dir / "network" / "connect.o",
            build_dir / "network" / "socket.o",
            build_dir / "utils" / "strlen.o",
        )
        assert [obj for _, obj in result.compile_units] == list(result.link_set[1:])

    def test_object_paths_are_unique_per_category(self, tmp_path):
        src = tmp_path / "src"
        for category in ("network", "process"):
            (src / category).mkdir(parents=True)
            (src / category / "init.asm").write_text("")
        collection = SourceScanner(src, ["network", "process"]).scan()

        link_set = select_link_set(
            BuildMode.SEPARATE, collection, tmp_path / "main.o", lambda s: object_path_for(s, tmp_path)
        )

        assert len(set(link_set)) == len(link_set) == 3
