"""Upload filter for changed files.

FileFilter rejects files that should never be pushed to the remote even
when they pass the ignore patterns: directories, files that are too big or
too small, and blocked (or not allowed) extensions.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MB
DEFAULT_BLOCKED_EXTENSIONS = (".exe", ".dll", ".so", ".dylib")


def format_size(size: float) -> str:
    """Human-readable byte count."""
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} GB"


@dataclass
class FilterDecision:
    """Whether a file may be uploaded, and why not."""

    path: str
    allowed: bool
    reason: str = ""


@dataclass
class FileFilter:
    """Size and extension based upload filter."""

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    min_file_size: int = 0
    allowed_extensions: list[str] = field(default_factory=list)
    blocked_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_BLOCKED_EXTENSIONS))

    def check(self, path: str | Path) -> FilterDecision:
        """Decide whether a single file may be uploaded."""
        file_path = Path(path)
        try:
            stat = file_path.stat()
        except OSError as e:
            return FilterDecision(str(path), False, f"cannot access file: {e}")

        if file_path.is_dir():
            return FilterDecision(str(path), False, "is a directory")

        if stat.st_size > self.max_file_size:
            return FilterDecision(
                str(path),
                False,
                f"file too large ({format_size(stat.st_size)} > {format_size(self.max_file_size)})",
            )
        if stat.st_size < self.min_file_size:
            return FilterDecision(
                str(path),
                False,
                f"file too small ({format_size(stat.st_size)} < {format_size(self.min_file_size)})",
            )

        ext = file_path.suffix.lower()
        if ext in self.blocked_extensions:
            return FilterDecision(str(path), False, f"blocked file type: {ext}")
        if self.allowed_extensions and ext not in self.allowed_extensions:
            return FilterDecision(str(path), False, f"file type not allowed: {ext}")

        return FilterDecision(str(path), True)

    def filter_files(self, paths: Iterable[str]) -> tuple[list[str], list[FilterDecision]]:
        """Split paths into allowed ones and rejected decisions."""
        allowed: list[str] = []
        rejected: list[FilterDecision] = []
        for path in paths:
            decision = self.check(path)
            if decision.allowed:
                allowed.append(path)
            else:
                logger.debug("Filtered %s: %s", path, decision.reason)
                rejected.append(decision)
        return allowed, rejected
