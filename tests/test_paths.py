"""Tests for path normalization."""

from pathlib import Path

import pytest

from src.git_tools.paths import join_repo, normalize, unique_paths


class TestNormalize:
    """Test canonical path form."""

    def test_separator_agnostic(self):
        """Backslashes, dot segments and forward slashes agree."""
        assert normalize("a\\b/./c") == normalize("a/b/c") == "a/b/c"

    @pytest.mark.parametrize(
        "raw",
        ["./a/b.bin", ".\\a\\b.bin", "a//b.bin", "a/x/../b.bin", "././a/b.bin"],
    )
    def test_equivalent_forms(self, raw):
        assert normalize(raw) == "a/b.bin"

    @pytest.mark.parametrize(
        "raw",
        ["a\\b/./c", "./x", "..\\up/file", "//abs//path", "dir/", ".", ""],
    )
    def test_idempotent(self, raw):
        once = normalize(raw)
        assert normalize(once) == once

    def test_empty_and_none(self):
        assert normalize(None) == ""
        assert normalize("") == ""
        assert normalize("./") == ""

    def test_accepts_path_objects(self):
        assert normalize(Path("art") / "hero.psd") == "art/hero.psd"


class TestUniquePaths:
    """Test batch input deduplication."""

    def test_dedupes_after_normalizing(self):
        """Different spellings of one file collapse to a single entry."""
        assert unique_paths(["a/b.bin", "./a/b.bin", "a\\b.bin", "c.bin"]) == [
            "a/b.bin",
            "c.bin",
        ]

    def test_drops_empty_entries(self):
        assert unique_paths(["", None, "./", "x.bin"]) == ["x.bin"]


class TestJoinRepo:
    def test_joins_with_host_separator(self, tmp_path):
        assert join_repo(tmp_path, "a\\b/c.bin") == tmp_path / "a" / "b" / "c.bin"
