"""Batch consumer that mirrors changed files to the remote repository.

BatchUploader is registered on the PriorityChangeQueue. For every batch it
uploads the files that still exist and deletes the ones that vanished,
recording one FileResult per file. A failing file never aborts the batch.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from gitmirror.client.api import FileUpload, RemoteSyncClient
from gitmirror.client.sync.filters import FileFilter
from gitmirror.client.sync.ignore import IGNORE_FILE_NAME, IgnorePatterns
from gitmirror.client.sync.types import (
    BatchResult,
    ChangeBatch,
    FileAction,
    FileResult,
    WatchTarget,
)
from gitmirror.core.classifier import ErrorClassifier
from gitmirror.core.config import DEFAULT_COMMIT_MESSAGE
from gitmirror.core.errors import RemoteAuthError
from gitmirror.core.events import SyncStats

logger = logging.getLogger(__name__)

# (repo, branch) -> client; None means the configured default
ClientFactory = Callable[[str | None, str | None], RemoteSyncClient]


class _Placeholders(dict[str, Any]):
    """format_map() mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def repo_path_for(file_path: str, root_path: str, root_is_file: bool) -> str:
    """Map a local path to its path inside the repository.

    A file target is stored under its basename. A directory target keeps
    the path relative to its root, with ``/`` separators.
    """
    path = Path(file_path)
    if root_is_file or not root_path:
        return path.name
    try:
        return path.relative_to(root_path).as_posix()
    except ValueError:
        return path.name


def render_commit_message(template: str, batch: ChangeBatch) -> str:
    """Fill ``{target}``, ``{group}`` and ``{count}`` in a commit message."""
    metadata = batch.metadata
    group = str(metadata.get("group_name") or metadata.get("group_id") or "")
    message = template.replace("[group]", group)
    try:
        return message.format_map(
            _Placeholders(target=batch.target_id, group=group, count=len(batch.files))
        )
    except (ValueError, IndexError):
        # Stray braces: use the template as written
        return message


class BatchUploader:
    """Turns ChangeBatch objects into remote uploads and deletes."""

    def __init__(
        self,
        client_factory: ClientFactory,
        file_filter: FileFilter | None = None,
        default_message: str = DEFAULT_COMMIT_MESSAGE,
        stats: SyncStats | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            client_factory: Builds a client for a (repo, branch) pair.
            file_filter: Size/extension filter applied before uploading.
            default_message: Commit message when a target has none.
            stats: Counters updated for every batch.
        """
        self._client_factory = client_factory
        self._filter = file_filter or FileFilter()
        self._default_message = default_message
        self._stats = stats or SyncStats()

        self._lock = threading.Lock()
        self._clients: dict[tuple[str | None, str | None], RemoteSyncClient] = {}
        self._unusable: set[str] = set()

    @property
    def stats(self) -> SyncStats:
        """Get the sync counters."""
        return self._stats

    def client_for(self, metadata: Mapping[str, Any]) -> RemoteSyncClient:
        """Get (or build) the client for a target's repository and branch."""
        repo = metadata.get("repo") or metadata.get("targetRepo") or None
        branch = metadata.get("branch") or None
        key = (repo, branch)
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._client_factory(repo, branch)
                self._clients[key] = client
            return client

    def is_usable(self, target_id: str) -> bool:
        """Check if batches of a target are still processed."""
        with self._lock:
            return target_id not in self._unusable

    def mark_unusable(self, target_id: str) -> None:
        """Skip later batches of a target."""
        with self._lock:
            self._unusable.add(target_id)

    def mark_usable(self, target_id: str) -> None:
        """Process batches of a target again, e.g. after fixing its credentials."""
        with self._lock:
            self._unusable.discard(target_id)

    def __call__(self, batch: ChangeBatch) -> BatchResult:
        """Mirror one batch.

        Args:
            batch: Changed paths of one target.

        Returns:
            Per-file results of the batch.
        """
        result = BatchResult(target_id=batch.target_id)

        def remote(path: str) -> str:
            return repo_path_for(path, batch.root_path, batch.root_is_file)

        if not self.is_usable(batch.target_id):
            logger.error(
                "Skipping %d file(s) from %s: remote credentials were rejected",
                len(batch.files),
                batch.target_id,
            )
            result.results = [
                FileResult(path, remote(path), FileAction.SKIP, False, "credentials rejected")
                for path in batch.files
            ]
            return result

        self._stats.record_file_changes(len(batch.files))
        message = render_commit_message(
            str(batch.metadata.get("commit_message") or self._default_message), batch
        )
        client = self.client_for(batch.metadata)

        existing = [path for path in batch.files if os.path.exists(path)]
        vanished = [path for path in batch.files if path not in existing]

        allowed, rejected = self._filter.filter_files(existing)
        for decision in rejected:
            logger.info("Skipping %s: %s", decision.path, decision.reason)
            result.results.append(
                FileResult(decision.path, remote(decision.path), FileAction.SKIP, False, decision.reason)
            )

        uploads = [FileUpload(local_path=path, repo_path=remote(path)) for path in allowed]
        outcomes = client.upload_many(uploads, message) if uploads else []
        for upload, outcome in zip(uploads, outcomes):
            result.results.append(
                FileResult(
                    upload.local_path,
                    upload.repo_path,
                    FileAction.UPLOAD,
                    outcome.success,
                    outcome.error,
                    outcome.result,
                )
            )
            if outcome.success:
                self._stats.record_upload_success(outcome.elapsed)
            else:
                self._stats.record_upload_failure()
                self._handle_failure(batch.target_id, outcome.exception)

        for path in vanished:
            repo_path = remote(path)
            if not self.is_usable(batch.target_id):
                result.results.append(
                    FileResult(path, repo_path, FileAction.SKIP, False, "credentials rejected")
                )
                continue
            try:
                response = client.delete_blob(repo_path, f"Delete file: {repo_path}")
            except Exception as e:
                logger.error("Failed to delete %s: %s", repo_path, e)
                result.results.append(FileResult(path, repo_path, FileAction.DELETE, False, str(e)))
                self._handle_failure(batch.target_id, e)
                continue
            if response is not None:
                self._stats.record_delete()
            result.results.append(FileResult(path, repo_path, FileAction.DELETE, True, result=response))

        logger.info(
            "Batch from %s: %d succeeded, %d failed",
            batch.target_id,
            result.success_count,
            result.fail_count,
        )
        for failure in result.failed:
            logger.warning("  %s: %s", failure.repo_path, failure.error)
        return result

    def _handle_failure(self, target_id: str, error: BaseException | None) -> None:
        """Log a classified report and stop using targets with bad credentials."""
        if error is None:
            return
        logger.debug("%s", ErrorClassifier.generate_report(error))
        if isinstance(error, RemoteAuthError) and self.is_usable(target_id):
            logger.error("Remote rejected the credentials for %s, pausing the target", target_id)
            self.mark_unusable(target_id)

    def initial_sync(self, target: WatchTarget) -> BatchResult:
        """Upload every non-ignored file of a target.

        Args:
            target: Target whose current content is mirrored.

        Returns:
            Per-file results. Empty if the target has no files.
        """
        root = Path(target.root_path)
        if root.is_file():
            files = [str(root)]
            root_is_file = True
        else:
            files = list(self._walk(root, target.ignore_patterns))
            root_is_file = False

        if not files:
            logger.info("Initial sync of %s: no files", target.id)
            return BatchResult(target_id=target.id)

        logger.info("Initial sync of %s: %d file(s)", target.id, len(files))
        started = time.monotonic()
        batch = ChangeBatch.create(
            target_id=target.id,
            priority=target.priority,
            files=files,
            metadata=target.metadata,
            root_path=str(root),
            root_is_file=root_is_file,
        )
        result = self(batch)
        logger.info("Initial sync of %s finished in %.1fs", target.id, time.monotonic() - started)
        return result

    @staticmethod
    def _walk(root: Path, ignore_patterns: list[str]) -> list[str]:
        """List files under root that pass the ignore patterns, sorted."""
        ignore = IgnorePatterns(ignore_patterns)
        ignore.load_from_file(root / IGNORE_FILE_NAME)

        files: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(d for d in dirnames if not ignore.should_ignore(current / d, root))
            for name in sorted(filenames):
                path = current / name
                if not ignore.should_ignore(path, root):
                    files.append(str(path))
        return files

    def close(self) -> None:
        """Close every cached client."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()
