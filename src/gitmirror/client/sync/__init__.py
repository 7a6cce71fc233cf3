"""Change detection and sync pipeline.

Architecture:
    ChangeWatcher → PriorityChangeQueue → BatchUploader → RemoteSyncClient

Components:
- **ChangeWatcher**: Watches one file or directory, debounces events into batches
- **WatchTargetRegistry**: Owns one watcher per watch target
- **PriorityChangeQueue**: Drains batches of all targets in priority order
- **BatchUploader**: Queue consumer that uploads and deletes remote files
- **IgnorePatterns / FileFilter**: Decide which files are mirrored

All public symbols are re-exported here.
"""

from gitmirror.client.sync.filters import FileFilter, FilterDecision
from gitmirror.client.sync.ignore import IGNORE_FILE_NAME, IgnorePatterns
from gitmirror.client.sync.queue import PriorityChangeQueue, QueueState
from gitmirror.client.sync.registry import WatchTargetRegistry
from gitmirror.client.sync.types import (
    BatchCallback,
    BatchConsumer,
    BatchResult,
    ChangeBatch,
    FileAction,
    FileResult,
    WatchTarget,
)
from gitmirror.client.sync.uploader import BatchUploader, render_commit_message, repo_path_for
from gitmirror.client.sync.watcher import ChangeWatcher, DebouncedBatchHandler

__all__ = [
    # Filters
    "FileFilter",
    "FilterDecision",
    "IGNORE_FILE_NAME",
    "IgnorePatterns",
    # Queue
    "PriorityChangeQueue",
    "QueueState",
    # Registry
    "WatchTargetRegistry",
    # Types
    "BatchCallback",
    "BatchConsumer",
    "BatchResult",
    "ChangeBatch",
    "FileAction",
    "FileResult",
    "WatchTarget",
    # Uploader
    "BatchUploader",
    "render_commit_message",
    "repo_path_for",
    # Watcher
    "ChangeWatcher",
    "DebouncedBatchHandler",
]
