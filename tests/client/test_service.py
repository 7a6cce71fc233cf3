"""Tests for the MirrorService pipeline wiring."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from gitmirror.client.api import BlobWriteResult, FileUpload, UploadOutcome
from gitmirror.client.service import MirrorService
from gitmirror.client.sync.types import ChangeBatch, WatchTarget
from gitmirror.core.config import MirrorSettings, RemoteConfig


class StubWatcher:
    """Watcher that only reports what a test fires."""

    def __init__(
        self,
        root_path: str | Path,
        on_batch: Callable[[list[str]], None],
        ignore_patterns: Iterable[str] | None = None,
        debounce_ms: int = 2000,
        settle_ms: int = 500,
    ) -> None:
        self.root_path = Path(root_path)
        self.on_batch = on_batch
        self.is_file = self.root_path.is_file()
        self.stopped = False

    def start(self) -> StubWatcher:
        return self

    def stop(self) -> None:
        self.stopped = True


class RecordingClient:
    """Remote client double that keeps every call."""

    def __init__(self, repo: str | None, branch: str | None) -> None:
        self.repo = repo
        self.branch = branch
        self.uploads: list[tuple[str, str]] = []
        self.deletes: list[str] = []
        self.closed = False

    def upload_many(self, files: Iterable[FileUpload], message: str) -> list[UploadOutcome]:
        outcomes = []
        for upload in files:
            self.uploads.append((upload.repo_path, message))
            outcomes.append(
                UploadOutcome(upload.repo_path, True, result=BlobWriteResult(upload.repo_path, "s", "c", True))
            )
        return outcomes

    def delete_blob(self, remote_path: str, message: str) -> dict[str, Any]:
        self.deletes.append(remote_path)
        return {"commit": {"sha": "c"}}

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clients() -> dict[tuple[str | None, str | None], RecordingClient]:
    return {}


@pytest.fixture
def watchers() -> list[StubWatcher]:
    return []


@pytest.fixture
def service(clients, watchers) -> MirrorService:  # type: ignore[no-untyped-def]
    def client_factory(repo: str | None, branch: str | None) -> RecordingClient:
        client = RecordingClient(repo, branch)
        clients[(repo, branch)] = client
        return client

    def watcher_factory(*args, **kwargs) -> StubWatcher:  # type: ignore[no-untyped-def]
        watcher = StubWatcher(*args, **kwargs)
        watchers.append(watcher)
        return watcher

    remote = RemoteConfig(token="t", owner="alice", repo="notes")
    return MirrorService(
        remote,
        settings=MirrorSettings(debounce_ms=50, settle_ms=0),
        client_factory=client_factory,  # type: ignore[arg-type]
        watcher_factory=watcher_factory,
    )


class TestMirrorService:
    """Tests for MirrorService."""

    def test_start_counts_started_targets(self, service: MirrorService, tmp_path: Path) -> None:
        targets = [
            WatchTarget("t1", str(tmp_path)),
            WatchTarget("t2", str(tmp_path / "missing")),
        ]

        assert service.start(targets) == 1
        assert "t1" in service.registry
        assert "t2" not in service.registry
        service.stop()

    def test_batches_flow_to_remote(self, service, clients, watchers, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        (tmp_path / "a.txt").write_text("a")
        service.start([WatchTarget("t1", str(tmp_path), metadata={"repo": "site", "branch": "dev"})])

        watchers[0].on_batch([str(tmp_path.resolve() / "a.txt"), str(tmp_path.resolve() / "gone.txt")])
        assert service.queue.wait_idle(timeout=5.0)

        client = clients[("site", "dev")]
        assert client.uploads == [("a.txt", "Auto-commit: file update")]
        assert client.deletes == ["gone.txt"]
        assert service.stats.uploads_success == 1
        assert service.stats.deletes == 1
        service.stop()

    def test_initial_sync(self, service, clients, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b.txt").write_text("b")

        service.start([WatchTarget("t1", str(tmp_path))], initial_sync=True)

        assert sorted(path for path, _ in clients[(None, None)].uploads) == ["a.txt", "b.txt"]
        service.stop()

    def test_stop_releases_everything(self, service, clients, watchers, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        service.start([WatchTarget("t1", str(tmp_path))])
        client = service.uploader.client_for({})

        service.stop()

        assert watchers[0].stopped
        assert service.queue.is_closed
        assert client.closed
        assert len(service.registry) == 0

    def test_context_manager_stops(self, service, watchers, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        with service:
            service.start([WatchTarget("t1", str(tmp_path))])

        assert watchers[0].stopped

    def test_stop_waits_for_queued_batches(self, service, clients, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A slow upload past the stop timeout still lets every queued batch through."""
        entered = threading.Event()
        release = threading.Event()
        seen: list[str] = []

        def slow_consumer(batch: ChangeBatch) -> None:
            seen.append(batch.target_id)
            if batch.target_id == "first":
                entered.set()
                release.wait(5.0)

        service.queue.on_batch_processed(slow_consumer)
        client = service.uploader.client_for({})

        service.queue.enqueue(ChangeBatch.create("first", "high", [str(tmp_path / "a.txt")], root_path=str(tmp_path)))
        assert entered.wait(5.0)
        service.queue.enqueue(ChangeBatch.create("second", "low", [str(tmp_path / "b.txt")], root_path=str(tmp_path)))

        stopper = threading.Thread(target=service.stop, kwargs={"timeout": 0.2})
        stopper.start()
        stopper.join(0.5)
        assert stopper.is_alive()
        assert not client.closed

        release.set()
        stopper.join(5.0)

        assert not stopper.is_alive()
        assert seen == ["first", "second"]
        assert client.deletes == ["a.txt", "b.txt"]
        assert client.closed
