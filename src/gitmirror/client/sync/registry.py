"""Registry of active watch targets.

WatchTargetRegistry owns one ChangeWatcher per WatchTarget. Each watcher
reports its debounced batches to the shared PriorityChangeQueue.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gitmirror.client.sync.types import ChangeBatch, WatchTarget
from gitmirror.client.sync.watcher import DEFAULT_DEBOUNCE_MS, DEFAULT_SETTLE_MS, ChangeWatcher
from gitmirror.core.types import Priority

if TYPE_CHECKING:
    from gitmirror.client.sync.queue import PriorityChangeQueue

logger = logging.getLogger(__name__)

WatcherFactory = Callable[..., ChangeWatcher]


class WatchTargetRegistry:
    """Maps target ids to their watch target and running watcher."""

    def __init__(
        self,
        queue: PriorityChangeQueue,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        settle_ms: int = DEFAULT_SETTLE_MS,
        watcher_factory: WatcherFactory = ChangeWatcher,
    ) -> None:
        """Initialize the registry.

        Args:
            queue: Queue receiving the batches of every target.
            debounce_ms: Debounce window for new watchers.
            settle_ms: Write stabilization window for new watchers.
            watcher_factory: Builds watchers; takes the ChangeWatcher arguments.
        """
        self._queue = queue
        self._debounce_ms = debounce_ms
        self._settle_ms = settle_ms
        self._watcher_factory = watcher_factory

        self._lock = threading.RLock()
        self._targets: dict[str, WatchTarget] = {}
        self._watchers: dict[str, ChangeWatcher] = {}

    def add_target(
        self,
        target_id: str,
        root_path: str | Path,
        ignore_patterns: Iterable[str] | None = None,
        priority: Priority | str = Priority.MEDIUM,
        metadata: Mapping[str, Any] | None = None,
    ) -> bool:
        """Start watching a path under the given id.

        An existing target with the same id is replaced; its watcher is
        stopped before the new one starts.

        Args:
            target_id: Caller-owned identifier.
            root_path: File or directory to watch. It must exist.
            ignore_patterns: Exclusion patterns.
            priority: Priority of the batches this target produces.
            metadata: Values forwarded to the batch consumers.

        Returns:
            True if the target is being watched.
        """
        path = Path(root_path).expanduser()
        if not path.exists():
            logger.error("Cannot watch %s: path does not exist", path)
            return False

        target = WatchTarget(
            id=target_id,
            root_path=str(path.resolve()),
            ignore_patterns=list(ignore_patterns or []),
            priority=Priority.parse(priority),
            metadata=dict(metadata or {}),
        )

        with self._lock:
            if target_id in self._targets:
                logger.info("Replacing watch target %s", target_id)
                self._stop_watcher(target_id)

            watcher = self._watcher_factory(
                target.root_path,
                self._make_callback(target),
                ignore_patterns=target.ignore_patterns,
                debounce_ms=self._debounce_ms,
                settle_ms=self._settle_ms,
            )
            try:
                watcher.start()
            except Exception as e:
                logger.error("Failed to start watcher for %s: %s", target.root_path, e)
                return False

            self._targets[target_id] = target
            self._watchers[target_id] = watcher

        logger.info(
            "Added watch target %s: %s (%s priority)",
            target_id,
            target.root_path,
            target.priority.value,
        )
        return True

    def add(self, target: WatchTarget) -> bool:
        """Register a WatchTarget."""
        return self.add_target(
            target.id,
            target.root_path,
            ignore_patterns=target.ignore_patterns,
            priority=target.priority,
            metadata=target.metadata,
        )

    def _make_callback(self, target: WatchTarget) -> Callable[[list[str]], None]:
        """Build the watcher callback that turns changed paths into a batch.

        The callback belongs to one registration: once the target is removed
        or replaced, late flushes of its watcher are dropped.
        """
        target_id = target.id

        def on_batch(files: list[str]) -> None:
            with self._lock:
                current = self._targets.get(target_id) is target
                watcher = self._watchers.get(target_id) if current else None
            if watcher is None:
                logger.debug("Dropping changes for removed target %s", target_id)
                return
            if not files:
                return

            batch = ChangeBatch.create(
                target_id=target_id,
                priority=target.priority,
                files=files,
                metadata=target.metadata,
                root_path=str(watcher.root_path),
                root_is_file=watcher.is_file,
            )
            self._queue.enqueue(batch)

        return on_batch

    def _stop_watcher(self, target_id: str) -> None:
        """Stop and forget a watcher. Caller holds the lock."""
        watcher = self._watchers.pop(target_id, None)
        self._targets.pop(target_id, None)
        if watcher is None:
            return
        try:
            watcher.stop()
        except Exception as e:
            logger.error("Error stopping watcher for %s: %s", target_id, e)

    def remove_target(self, target_id: str) -> bool:
        """Stop watching a target.

        Returns:
            True if the target existed.
        """
        with self._lock:
            if target_id not in self._targets:
                return False
            self._stop_watcher(target_id)

        logger.info("Removed watch target %s", target_id)
        return True

    def update_priority(self, target_id: str, priority: Priority | str) -> bool:
        """Change the priority of future batches of a target.

        Returns:
            True if the target exists.
        """
        with self._lock:
            target = self._targets.get(target_id)
            if target is None:
                return False
            target.priority = Priority.parse(priority)
        logger.info("Target %s priority set to %s", target_id, target.priority.value)
        return True

    def get_target(self, target_id: str) -> WatchTarget | None:
        """Get a target by id."""
        with self._lock:
            return self._targets.get(target_id)

    def list_targets(self) -> list[WatchTarget]:
        """Get all targets, in registration order."""
        with self._lock:
            return list(self._targets.values())

    def targets_by_priority(self, priority: Priority | str) -> list[WatchTarget]:
        """Get the targets of one priority."""
        wanted = Priority.parse(priority)
        with self._lock:
            return [t for t in self._targets.values() if t.priority is wanted]

    def stop_all(self) -> None:
        """Stop every watcher and forget every target."""
        with self._lock:
            target_ids = list(self._targets)
            for target_id in target_ids:
                self._stop_watcher(target_id)
        if target_ids:
            logger.info("Stopped %d watch target(s)", len(target_ids))

    def __len__(self) -> int:
        with self._lock:
            return len(self._targets)

    def __contains__(self, target_id: object) -> bool:
        with self._lock:
            return target_id in self._targets
