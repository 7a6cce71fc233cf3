"""Shared types and dataclasses for the sync pipeline.

This module provides:
- WatchTarget: One monitored root plus its sync configuration
- ChangeBatch: A debounced set of changed paths for one target
- FileAction, FileResult, BatchResult: Outcome of processing a batch
- Type aliases for callbacks
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gitmirror.core.types import Priority


@dataclass
class WatchTarget:
    """One monitored filesystem root.

    Attributes:
        id: Unique identifier, owned by the caller.
        root_path: Absolute path of a file or directory.
        ignore_patterns: Exclusion patterns for this target.
        priority: Priority class of the batches this target produces.
        metadata: Opaque values forwarded to batch consumers
            (repo, branch, commit_message, group_id, ...).
    """

    id: str
    root_path: str
    ignore_patterns: list[str] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.priority = Priority.parse(self.priority)

    @classmethod
    def create(
        cls,
        root_path: str,
        ignore_patterns: Iterable[str] | None = None,
        priority: Priority | str = Priority.MEDIUM,
        metadata: Mapping[str, Any] | None = None,
    ) -> WatchTarget:
        """Create a target with a generated id."""
        return cls(
            id=uuid.uuid4().hex,
            root_path=root_path,
            ignore_patterns=list(ignore_patterns or []),
            priority=Priority.parse(priority),
            metadata=dict(metadata or {}),
        )


@dataclass(frozen=True)
class ChangeBatch:
    """A debounced set of filesystem changes for one target.

    Batches are never empty. Files keep first-seen order without duplicates.
    """

    target_id: str
    priority: Priority
    files: tuple[str, ...]
    enqueued_at: float
    metadata: Mapping[str, Any] = field(default_factory=dict)
    root_path: str = ""
    root_is_file: bool = False

    @classmethod
    def create(
        cls,
        target_id: str,
        priority: Priority | str,
        files: Iterable[str],
        metadata: Mapping[str, Any] | None = None,
        root_path: str = "",
        root_is_file: bool = False,
    ) -> ChangeBatch:
        """Create a batch stamped with the current time.

        Raises:
            ValueError: If no files are given.
        """
        unique = tuple(dict.fromkeys(files))
        if not unique:
            raise ValueError(f"Empty change batch for target {target_id}")
        return cls(
            target_id=target_id,
            priority=Priority.parse(priority),
            files=unique,
            enqueued_at=time.time(),
            metadata=dict(metadata or {}),
            root_path=root_path,
            root_is_file=root_is_file,
        )

    def __len__(self) -> int:
        return len(self.files)


class FileAction(Enum):
    """What was done with one file of a batch."""

    UPLOAD = "upload"
    DELETE = "delete"
    SKIP = "skip"


@dataclass
class FileResult:
    """Outcome for one file of a batch."""

    local_path: str
    repo_path: str
    action: FileAction
    success: bool
    error: str | None = None
    result: Any = None


@dataclass
class BatchResult:
    """Summary of processing one batch."""

    target_id: str
    results: list[FileResult] = field(default_factory=list)

    @property
    def uploaded(self) -> list[FileResult]:
        return [r for r in self.results if r.action is FileAction.UPLOAD and r.success]

    @property
    def deleted(self) -> list[FileResult]:
        return [r for r in self.results if r.action is FileAction.DELETE and r.success]

    @property
    def skipped(self) -> list[FileResult]:
        return [r for r in self.results if r.action is FileAction.SKIP]

    @property
    def failed(self) -> list[FileResult]:
        return [r for r in self.results if not r.success and r.action is not FileAction.SKIP]

    @property
    def success_count(self) -> int:
        return len(self.uploaded) + len(self.deleted)

    @property
    def fail_count(self) -> int:
        return len(self.failed)


# Type aliases for callbacks
BatchCallback = Callable[[list[str]], None]
BatchConsumer = Callable[[ChangeBatch], Any]
