"""Tests for ignore patterns and the upload filter."""

from __future__ import annotations

from pathlib import Path

import pytest

from gitmirror.client.sync.filters import FileFilter, format_size
from gitmirror.client.sync.ignore import IgnorePatterns
from gitmirror.core.config import DEFAULT_IGNORE_PATTERNS


class TestIgnorePatterns:
    """Tests for ignore pattern matching."""

    @pytest.fixture
    def ignore(self) -> IgnorePatterns:
        return IgnorePatterns(DEFAULT_IGNORE_PATTERNS)

    def test_literal_directory(self, ignore: IgnorePatterns, tmp_path: Path) -> None:
        """Should ignore anything under node_modules."""
        path = tmp_path / "node_modules" / "lib" / "index.js"
        assert ignore.should_ignore(path, tmp_path) is True

    def test_extension_pattern(self, ignore: IgnorePatterns, tmp_path: Path) -> None:
        """Should ignore *.tmp files at any depth."""
        assert ignore.should_ignore(tmp_path / "notes.tmp", tmp_path) is True
        assert ignore.should_ignore(tmp_path / "a" / "b.tmp", tmp_path) is True

    def test_git_dir(self, ignore: IgnorePatterns, tmp_path: Path) -> None:
        assert ignore.should_ignore(tmp_path / ".git" / "HEAD", tmp_path) is True

    def test_normal_file_not_ignored(self, ignore: IgnorePatterns, tmp_path: Path) -> None:
        assert ignore.should_ignore(tmp_path / "docs" / "readme.md", tmp_path) is False

    def test_hidden_files_ignored(self, tmp_path: Path) -> None:
        """Should ignore hidden files and directories even without patterns."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(tmp_path / ".bashrc", tmp_path) is True
        assert ignore.should_ignore(tmp_path / ".cache" / "data.bin", tmp_path) is True

    def test_env_file_allowed(self, tmp_path: Path) -> None:
        """.env is the one hidden name that is still mirrored."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(tmp_path / ".env", tmp_path) is False
        assert ignore.should_ignore(tmp_path / "config" / ".env", tmp_path) is False

    def test_hidden_parent_of_root_not_ignored(self, tmp_path: Path) -> None:
        """Only segments below the watch root count as hidden."""
        root = tmp_path / ".config" / "app"
        ignore = IgnorePatterns()
        assert ignore.should_ignore(root / "settings.json", root) is False

    def test_substring_match(self, tmp_path: Path) -> None:
        """Literal patterns match anywhere in the relative path."""
        ignore = IgnorePatterns(["build"])
        assert ignore.should_ignore(tmp_path / "rebuild.txt", tmp_path) is True
        assert ignore.should_ignore(tmp_path / "src" / "main.py", tmp_path) is False

    def test_path_outside_base_uses_basename(self, tmp_path: Path) -> None:
        ignore = IgnorePatterns(["*.log"])
        assert ignore.should_ignore(Path("/elsewhere/app.log"), tmp_path) is True
        assert ignore.should_ignore(Path("/elsewhere/app.txt"), tmp_path) is False

    def test_add_pattern(self, tmp_path: Path) -> None:
        ignore = IgnorePatterns()
        test_file = tmp_path / "test.xyz"
        assert ignore.should_ignore(test_file, tmp_path) is False

        ignore.add_pattern("*.xyz")
        ignore.add_pattern("*.xyz")
        assert ignore.should_ignore(test_file, tmp_path) is True
        assert ignore.patterns == ["*.xyz"]

    def test_load_from_file(self, tmp_path: Path) -> None:
        """Should load patterns from an ignore file, skipping comments."""
        ignore_file = tmp_path / ".mirrorignore"
        ignore_file.write_text("*.bak\n# comment\n\ndist\n")

        ignore = IgnorePatterns()
        ignore.load_from_file(ignore_file)

        assert ignore.patterns == ["*.bak", "dist"]
        assert ignore.should_ignore(tmp_path / "backup.bak", tmp_path) is True

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """Should handle a missing ignore file gracefully."""
        ignore = IgnorePatterns()
        ignore.load_from_file(tmp_path / "nonexistent")
        assert ignore.patterns == []

    def test_backslash_paths(self) -> None:
        ignore = IgnorePatterns(["node_modules"])
        assert ignore.matches("src\\node_modules\\x.js") is True
        assert ignore.matches("") is False


class TestFileFilter:
    """Tests for the size and extension filter."""

    def test_allows_regular_file(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        decision = FileFilter().check(path)
        assert decision.allowed is True
        assert decision.reason == ""

    def test_rejects_large_file(self, tmp_path: Path) -> None:
        path = tmp_path / "big.bin"
        path.write_bytes(b"x" * 2048)
        decision = FileFilter(max_file_size=1024).check(path)
        assert decision.allowed is False
        assert "too large" in decision.reason

    def test_rejects_small_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.txt"
        path.touch()
        decision = FileFilter(min_file_size=1).check(path)
        assert decision.allowed is False
        assert "too small" in decision.reason

    def test_rejects_blocked_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "tool.EXE"
        path.write_text("MZ")
        decision = FileFilter().check(path)
        assert decision.allowed is False
        assert ".exe" in decision.reason

    def test_allowed_extensions(self, tmp_path: Path) -> None:
        md = tmp_path / "a.md"
        py = tmp_path / "a.py"
        md.write_text("# a")
        py.write_text("a = 1")
        file_filter = FileFilter(allowed_extensions=[".md"])
        assert file_filter.check(md).allowed is True
        assert file_filter.check(py).allowed is False

    def test_rejects_directory_and_missing(self, tmp_path: Path) -> None:
        assert FileFilter().check(tmp_path).allowed is False
        assert FileFilter().check(tmp_path / "missing.txt").allowed is False

    def test_filter_files(self, tmp_path: Path) -> None:
        good = tmp_path / "good.txt"
        bad = tmp_path / "bad.dll"
        good.write_text("ok")
        bad.write_text("no")

        allowed, rejected = FileFilter().filter_files([str(good), str(bad)])

        assert allowed == [str(good)]
        assert [d.path for d in rejected] == [str(bad)]


class TestFormatSize:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(512, "512 B"), (2048, "2.00 KB"), (5 * 1024 * 1024, "5.00 MB")],
    )
    def test_format_size(self, size: int, expected: str) -> None:
        assert format_size(size) == expected
