"""File system watcher with debouncing for one watch root.

This module provides:
- DebouncedBatchHandler: Coalesces watchdog events into ordered batches
- ChangeWatcher: Watches a file or directory and reports debounced batches

A batch is reported once no new event arrived for ``debounce_ms``. Files
that were written less than ``settle_ms`` ago hold the batch back until
the write has settled.
"""

from __future__ import annotations

import logging
import stat
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from gitmirror.client.sync.ignore import IGNORE_FILE_NAME, IgnorePatterns
from gitmirror.core.errors import PathUnavailable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from watchdog.observers.api import BaseObserver

    from gitmirror.client.sync.types import BatchCallback

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 2000
DEFAULT_SETTLE_MS = 500
DEFAULT_RESCHEDULE_INTERVAL = 1.0  # seconds between attempts on a missing root


def _decode(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class DebouncedBatchHandler(FileSystemEventHandler):
    """Event handler that debounces file events into a single batch."""

    def __init__(
        self,
        root_path: Path,
        on_batch: BatchCallback,
        is_file: bool = False,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        settle_ms: int = DEFAULT_SETTLE_MS,
        ignore_patterns: IgnorePatterns | None = None,
    ) -> None:
        """Initialize the debounced handler.

        Args:
            root_path: Watched file or directory.
            on_batch: Called with the ordered list of changed paths.
            is_file: Whether root_path is a single file.
            debounce_ms: Quiet period before a batch is reported.
            settle_ms: Minimum age of a file's last write before reporting.
            ignore_patterns: Exclusion policy for directory roots.
        """
        super().__init__()
        self._root_path = root_path
        self._base_path = root_path.parent if is_file else root_path
        self._on_batch = on_batch
        self._is_file = is_file
        self._debounce_s = debounce_ms / 1000
        self._settle_s = settle_ms / 1000
        self._ignore = ignore_patterns or IgnorePatterns()

        # Pending paths in first-seen order
        self._pending: dict[str, None] = {}
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._stopped = False

    @property
    def pending(self) -> list[str]:
        """Paths waiting for the debounce timer."""
        with self._lock:
            return list(self._pending)

    def accepts(self, path: Path) -> bool:
        """Check whether an event path belongs to this watch root."""
        if self._is_file:
            return path == self._root_path
        if path == self._root_path:
            return False
        return not self._ignore.should_ignore(path, self._base_path)

    def record(self, path: str) -> None:
        """Add a path to the pending batch and restart the debounce timer."""
        with self._lock:
            if self._stopped:
                return
            if path not in self._pending:
                self._pending[path] = None
            self._schedule_flush(self._debounce_s)

    def _schedule_flush(self, delay: float) -> None:
        """Schedule a flush of pending changes. Caller holds the lock."""
        if self._timer:
            self._timer.cancel()

        self._generation += 1
        self._timer = threading.Timer(delay, self._flush, args=(self._generation,))
        self._timer.daemon = True
        self._timer.start()

    def _settle_remaining(self) -> float:
        """Seconds until every pending file has been quiet for settle_ms."""
        if self._settle_s <= 0:
            return 0.0
        now = time.time()
        remaining = 0.0
        for path in self._pending:
            try:
                age = now - Path(path).stat().st_mtime
            except OSError:
                continue
            if 0 <= age < self._settle_s:
                remaining = max(remaining, self._settle_s - age)
        return remaining

    def _flush(self, generation: int) -> None:
        """Report pending changes if no newer event rescheduled the timer."""
        with self._lock:
            if generation != self._generation or self._stopped:
                return
            self._timer = None
            if not self._pending:
                return

            wait = self._settle_remaining()
            if wait > 0:
                logger.debug("Writes still settling under %s, waiting %.2fs", self._root_path, wait)
                self._schedule_flush(wait)
                return

            files = list(self._pending)
            self._pending.clear()

        # Call back outside the lock
        logger.info("Detected %d changed file(s) under %s", len(files), self._root_path)
        try:
            self._on_batch(files)
        except Exception as e:
            logger.error("Batch callback failed for %s: %s", self._root_path, e, exc_info=True)

    def _handle_path(self, raw_path: str | bytes, kind: str) -> None:
        path = Path(_decode(raw_path))
        if not self.accepts(path):
            return
        logger.debug("File %s: %s", kind, path)
        self.record(str(path))

    def dispatch(self, event: FileSystemEvent) -> None:
        """Dispatch an event, logging instead of raising on failure."""
        if event.is_directory:
            return
        try:
            super().dispatch(event)
        except Exception as e:
            logger.error("Error handling %s event for %s: %s", event.event_type, event.src_path, e)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        self._handle_path(event.src_path, "added")

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event."""
        self._handle_path(event.src_path, "changed")

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        self._handle_path(event.src_path, "removed")

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event as a removal followed by an addition."""
        self._handle_path(event.src_path, "removed")
        self._handle_path(event.dest_path, "added")

    def stop(self) -> None:
        """Cancel the pending timer and drop pending paths."""
        with self._lock:
            self._stopped = True
            self._generation += 1
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._pending.clear()


class ChangeWatcher:
    """Watches one file or directory and reports debounced change batches."""

    def __init__(
        self,
        root_path: str | Path,
        on_batch: BatchCallback,
        ignore_patterns: Iterable[str] | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        settle_ms: int = DEFAULT_SETTLE_MS,
        reschedule_interval: float = DEFAULT_RESCHEDULE_INTERVAL,
    ) -> None:
        """Initialize the watcher.

        Args:
            root_path: File or directory to watch. It may not exist yet.
            on_batch: Called with each debounced list of changed paths.
            ignore_patterns: Exclusion patterns.
            debounce_ms: Debounce window in milliseconds.
            settle_ms: Write stabilization window in milliseconds.
            reschedule_interval: Seconds between attempts while the root is missing.
        """
        self._root_path = Path(root_path).expanduser().resolve()
        self._on_batch = on_batch
        self._ignore_patterns = list(ignore_patterns or [])
        self._debounce_ms = debounce_ms
        self._settle_ms = settle_ms
        self._reschedule_interval = reschedule_interval

        self._is_file = False
        self._handler: DebouncedBatchHandler | None = None
        self._observer: BaseObserver | None = None
        self._retry_timer: threading.Timer | None = None
        self._scheduled = False
        self._running = False
        self._lock = threading.RLock()

    @property
    def root_path(self) -> Path:
        """Get the watched path."""
        return self._root_path

    @property
    def is_file(self) -> bool:
        """Whether the root is a single file (decided when scheduled)."""
        return self._is_file

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    @property
    def is_scheduled(self) -> bool:
        """Check if the OS-level watch is active."""
        return self._scheduled

    def _detect_is_file(self) -> bool:
        try:
            return stat.S_ISREG(self._root_path.stat().st_mode)
        except OSError as e:
            logger.warning("Cannot stat %s (%s), assuming a directory", self._root_path, e)
            return False

    def _try_schedule(self) -> bool:
        """Schedule the OS-level watch if the root exists. Caller holds the lock."""
        if not self._running or self._observer is None:
            return False
        if not self._root_path.exists():
            return False

        self._is_file = self._detect_is_file()
        ignore = IgnorePatterns(self._ignore_patterns)
        if not self._is_file:
            ignore.load_from_file(self._root_path / IGNORE_FILE_NAME)

        self._handler = DebouncedBatchHandler(
            root_path=self._root_path,
            on_batch=self._on_batch,
            is_file=self._is_file,
            debounce_ms=self._debounce_ms,
            settle_ms=self._settle_ms,
            ignore_patterns=ignore,
        )

        watch_dir = self._root_path.parent if self._is_file else self._root_path
        try:
            self._observer.schedule(self._handler, str(watch_dir), recursive=not self._is_file)
        except OSError as e:
            logger.error("Failed to watch %s: %s", watch_dir, e)
            self._handler.stop()
            self._handler = None
            return False

        self._scheduled = True
        if self._is_file:
            logger.info("Watching file: %s", self._root_path)
        else:
            logger.info("Watching directory: %s", self._root_path)
        return True

    def _schedule_retry(self) -> None:
        """Try again later to watch a root that does not exist yet."""
        self._retry_timer = threading.Timer(self._reschedule_interval, self._retry)
        self._retry_timer.daemon = True
        self._retry_timer.start()

    def _retry(self) -> None:
        with self._lock:
            self._retry_timer = None
            if not self._running or self._scheduled:
                return
            if not self._try_schedule():
                self._schedule_retry()

    def start(self) -> ChangeWatcher:
        """Start watching for changes.

        A missing root is not an error: a warning is logged and the watch is
        set up as soon as the path appears.

        Returns:
            This watcher, which doubles as the handle passed to stop().
        """
        with self._lock:
            if self._running:
                return self

            self._observer = Observer()
            self._observer.start()
            self._running = True

            if not self._try_schedule():
                logger.warning("%s; watching continues until it appears", PathUnavailable(str(self._root_path)))
                self._schedule_retry()

        return self

    def stop(self) -> None:
        """Stop watching and cancel pending timers. Safe to call twice."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._scheduled = False

            if self._retry_timer:
                self._retry_timer.cancel()
                self._retry_timer = None
            if self._handler:
                self._handler.stop()
            observer = self._observer
            self._observer = None

        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)
        logger.debug("Stopped watching %s", self._root_path)

    def __enter__(self) -> ChangeWatcher:
        """Context manager entry."""
        return self.start()

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
