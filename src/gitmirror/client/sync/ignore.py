"""Ignore patterns for watched paths.

This module provides:
- IgnorePatterns: Exclusion policy for paths under a watch root
- IGNORE_FILE_NAME: Per-root file with extra patterns

A path is excluded when:
- a pattern equals its basename, or the pattern is contained in the path;
- a pattern starts with ``*`` and the path ends with the rest of it
  (``*.tmp`` excludes ``notes.tmp``);
- any segment of the path is hidden (starts with ``.``), except ``.env``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".mirrorignore"

# Hidden names that are still mirrored
HIDDEN_ALLOWED = frozenset({".env"})


def _segments(path: str) -> list[str]:
    return [part for part in path.replace("\\", "/").split("/") if part and part not in (".", "..")]


class IgnorePatterns:
    """Handles exclusion matching for paths relative to a watch root."""

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Literal or ``*``-suffix patterns.
        """
        self._patterns: list[str] = []
        for pattern in patterns or []:
            self.add_pattern(pattern)

    @property
    def patterns(self) -> list[str]:
        """Current patterns, in insertion order."""
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern."""
        pattern = pattern.strip()
        if pattern and pattern not in self._patterns:
            self._patterns.append(pattern)

    def load_from_file(self, path: Path) -> None:
        """Load patterns from an ignore file, one per line."""
        if not path.is_file():
            return
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    # Skip comments and empty lines
                    if line and not line.startswith("#"):
                        self.add_pattern(line)
        except OSError as e:
            logger.warning("Could not read ignore file %s: %s", path, e)

    def matches(self, path: str) -> bool:
        """Check a path (normally relative to the watch root) against the policy.

        Args:
            path: Path to check, with ``/`` or ``\\`` separators.

        Returns:
            True if the path is excluded.
        """
        segments = _segments(path)
        if not segments:
            return False

        normalized = "/".join(segments)
        basename = segments[-1]

        for pattern in self._patterns:
            if pattern.startswith("*"):
                if normalized.endswith(pattern[1:]):
                    return True
            elif basename == pattern or pattern in normalized:
                return True

        return any(part.startswith(".") and part not in HIDDEN_ALLOWED for part in segments)

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path under base_path should be ignored.

        Args:
            path: Absolute path to check.
            base_path: Watched directory the path belongs to.

        Returns:
            True if the path should be ignored.
        """
        try:
            rel_path = path.relative_to(base_path)
        except ValueError:
            rel_path = Path(path.name)
        return self.matches(str(rel_path))
