"""Mirror service: wires watchers, queue, uploader and remote clients.

MirrorService owns every long-lived object of a running mirror, so
several independent services can live in one process (tests do this).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from gitmirror.client.api import RemoteSyncClient
from gitmirror.client.sync.queue import PriorityChangeQueue
from gitmirror.client.sync.registry import WatcherFactory, WatchTargetRegistry
from gitmirror.client.sync.uploader import BatchUploader, ClientFactory
from gitmirror.client.sync.watcher import ChangeWatcher
from gitmirror.core.classifier import ErrorClassifier
from gitmirror.core.config import MirrorSettings, RemoteConfig
from gitmirror.core.events import SyncStats

if TYPE_CHECKING:
    from gitmirror.client.sync.filters import FileFilter
    from gitmirror.client.sync.types import WatchTarget
    from gitmirror.core.errors import ConsumerError

logger = logging.getLogger(__name__)


class MirrorService:
    """Runs the watch -> queue -> upload pipeline for a set of targets."""

    def __init__(
        self,
        remote: RemoteConfig,
        settings: MirrorSettings | None = None,
        client_factory: ClientFactory | None = None,
        watcher_factory: WatcherFactory = ChangeWatcher,
        file_filter: FileFilter | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            remote: Default remote settings; targets may override repo/branch.
            settings: Pipeline settings.
            client_factory: Builds clients per (repo, branch). Defaults to
                RemoteSyncClient on a copy of ``remote``.
            watcher_factory: Builds the per-target watchers.
            file_filter: Upload filter.
        """
        self._remote = remote
        self._settings = settings or MirrorSettings()
        self._stats = SyncStats()

        self._queue = PriorityChangeQueue(on_error=self._on_consumer_error)
        self._registry = WatchTargetRegistry(
            self._queue,
            debounce_ms=self._settings.debounce_ms,
            settle_ms=self._settings.settle_ms,
            watcher_factory=watcher_factory,
        )
        self._uploader = BatchUploader(
            client_factory or self._build_client,
            file_filter=file_filter,
            default_message=self._settings.commit_message,
            stats=self._stats,
        )
        self._unsubscribe = self._queue.on_batch_processed(self._uploader)

    def _build_client(self, repo: str | None, branch: str | None) -> RemoteSyncClient:
        return RemoteSyncClient(self._remote.for_repo(repo or self._remote.repo, branch))

    @property
    def queue(self) -> PriorityChangeQueue:
        return self._queue

    @property
    def registry(self) -> WatchTargetRegistry:
        return self._registry

    @property
    def uploader(self) -> BatchUploader:
        return self._uploader

    @property
    def stats(self) -> SyncStats:
        """Get the sync counters."""
        return self._stats

    def _on_consumer_error(self, error: ConsumerError) -> None:
        logger.debug("%s", ErrorClassifier.generate_report(error.cause))

    def start(self, targets: Iterable[WatchTarget], initial_sync: bool = False) -> int:
        """Start watching the given targets.

        Args:
            targets: Targets to watch.
            initial_sync: Upload the current content of each target first.

        Returns:
            Number of targets being watched.
        """
        started = 0
        for target in targets:
            if not self._registry.add(target):
                logger.warning("Target %s (%s) was not started", target.id, target.root_path)
                continue
            started += 1

            if initial_sync:
                registered = self._registry.get_target(target.id)
                if registered is not None:
                    result = self._uploader.initial_sync(registered)
                    logger.info(
                        "Initial sync of %s: %d uploaded, %d failed",
                        target.id,
                        result.success_count,
                        result.fail_count,
                    )

        logger.info("Mirror service watching %d target(s)", started)
        return started

    def stop(self, timeout: float | None = 10.0) -> None:
        """Stop all watchers, finish queued batches and close the clients.

        Queued batches are never dropped: if the queue is still draining
        after ``timeout`` seconds, this keeps waiting for the running upload
        and the remaining batches before the clients are closed.
        """
        self._registry.stop_all()
        if not self._queue.close(timeout):
            waiting = {priority.value: count for priority, count in self._queue.pending().items() if count}
            logger.warning("Waiting for the running upload to finish, still queued: %s", waiting or "none")
            self._queue.wait_idle()
        self._unsubscribe()
        self._uploader.close()

        snapshot = self._stats.snapshot()
        logger.info(
            "Mirror service stopped: %d uploaded, %d failed, %d deleted",
            snapshot["uploads_success"],
            snapshot["uploads_failed"],
            snapshot["deletes"],
        )

    def __enter__(self) -> MirrorService:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
