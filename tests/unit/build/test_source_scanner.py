"""Tests for module source discovery."""

from pathlib import Path

import pytest

from asmbuild.build.source_scanner import SourceCollection, SourceScanner
from asmbuild.config import DEFAULT_CATEGORIES


class TestSourceScanner:
    """Test per-category source scanning."""

    @pytest.fixture
    def src_dir(self, tmp_path):
        src = tmp_path / "src"
        (src / "network").mkdir(parents=True)
        (src / "process").mkdir()
        return src

    def test_scan_empty_directories(self, src_dir):
        """Every configured category is present, even with no files."""
        result = SourceScanner(src_dir, DEFAULT_CATEGORIES).scan()

        assert isinstance(result, SourceCollection)
        assert result.categories == list(DEFAULT_CATEGORIES)
        assert result.total == 0
        for category in DEFAULT_CATEGORIES:
            assert result.get(category) == ()

    def test_missing_category_directory_is_empty(self, src_dir):
        result = SourceScanner(src_dir, ["stealth"]).scan()
        assert result.count("stealth") == 0

    def test_sorted_by_file_name(self, src_dir):
        for name in ("socket.asm", "connect.asm", "bind.asm"):
            (src_dir / "network" / name).write_text("; x\n")

        sources = SourceScanner(src_dir, ["network"]).scan_category("network")

        assert [s.name for s in sources] == ["bind.asm", "connect.asm", "socket.asm"]
        assert all(s.category == "network" for s in sources)

    def test_only_matching_extension(self, src_dir):
        (src_dir / "network" / "socket.asm").write_text("; x\n")
        (src_dir / "network" / "notes.txt").write_text("notes\n")
        (src_dir / "network" / "helper.inc").write_text("; inc\n")

        sources = SourceScanner(src_dir, ["network"]).scan_category("network")

        assert [s.name for s in sources] == ["socket.asm"]

    def test_non_recursive(self, src_dir):
        nested = src_dir / "network" / "nested"
        nested.mkdir()
        (nested / "deep.asm").write_text("; deep\n")
        (src_dir / "network" / "top.asm").write_text("; top\n")

        sources = SourceScanner(src_dir, ["network"]).scan_category("network")

        assert [s.name for s in sources] == ["top.asm"]

    def test_directory_with_source_suffix_is_ignored(self, src_dir):
        (src_dir / "network" / "weird.asm").mkdir()
        assert SourceScanner(src_dir, ["network"]).scan_category("network") == ()

    def test_paths(self, src_dir):
        (src_dir / "process" / "fork.asm").write_text("; fork\n")

        (source,) = SourceScanner(src_dir, ["process"]).scan_category("process")

        assert source.path.is_absolute()
        assert source.path == (src_dir / "process" / "fork.asm").absolute()
        assert source.relative_path == Path("process") / "fork.asm"

    def test_all_sources_follow_category_order(self, src_dir):
        (src_dir / "network" / "b.asm").write_text("")
        (src_dir / "process" / "a.asm").write_text("")

        result = SourceScanner(src_dir, ["process", "network"]).scan()

        assert [s.name for s in result.all_sources()] == ["a.asm", "b.asm"]
        assert [category for category, _ in result] == ["process", "network"]
