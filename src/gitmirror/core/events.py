"""Structured sync events and counters.

Events are emitted as log records on the ``gitmirror.events`` logger, with
the event name and its fields attached as ``extra`` attributes. Any logging
handler can pick them up; the transport is up to the application.

SyncStats keeps running counters of file changes and upload outcomes.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

event_logger = logging.getLogger("gitmirror.events")


class SyncEventKind(str, Enum):
    """Names of the events emitted by the sync pipeline."""

    BATCH_ENQUEUED = "batch-enqueued"
    BATCH_DRAINED = "batch-drained"
    UPLOAD_ATTEMPT = "upload-attempt"
    UPLOAD_SUCCESS = "upload-success"
    UPLOAD_FAILURE = "upload-failure"
    RETRY_SCHEDULED = "retry-scheduled"


def emit_event(kind: SyncEventKind, level: int = logging.DEBUG, **fields: Any) -> None:
    """Emit a structured sync event.

    Args:
        kind: Event name.
        level: Log level of the record.
        **fields: Event payload, attached as ``record.fields``.
    """
    if not event_logger.isEnabledFor(level):
        return
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    event_logger.log(
        level,
        "%s %s",
        kind.value,
        details,
        extra={"event": kind.value, "fields": dict(fields)},
    )


@dataclass
class SyncStats:
    """Thread-safe counters for the sync pipeline."""

    file_changes: int = 0
    uploads_success: int = 0
    uploads_failed: int = 0
    deletes: int = 0
    total_upload_time: float = 0.0
    started_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_file_changes(self, count: int = 1) -> None:
        with self._lock:
            self.file_changes += count
            self.last_activity = time.time()

    def record_upload_success(self, elapsed: float = 0.0) -> None:
        with self._lock:
            self.uploads_success += 1
            self.total_upload_time += elapsed
            self.last_activity = time.time()

    def record_upload_failure(self) -> None:
        with self._lock:
            self.uploads_failed += 1
            self.last_activity = time.time()

    def record_delete(self) -> None:
        with self._lock:
            self.deletes += 1
            self.last_activity = time.time()

    @property
    def average_upload_time(self) -> float:
        """Mean duration of successful uploads in seconds."""
        if self.uploads_success == 0:
            return 0.0
        return self.total_upload_time / self.uploads_success

    def snapshot(self) -> dict[str, float | int]:
        """Get a copy of the counters."""
        with self._lock:
            return {
                "file_changes": self.file_changes,
                "uploads_success": self.uploads_success,
                "uploads_failed": self.uploads_failed,
                "deletes": self.deletes,
                "average_upload_time": self.average_upload_time,
                "uptime": time.time() - self.started_at,
            }
