"""Exception taxonomy for gitmirror.

This module provides:
- MirrorError: Base exception for all gitmirror errors
- PathUnavailable, LocalFileMissing: Local filesystem conditions
- RemoteAPIError and subclasses: Remote content API failures
- ConsumerError: A batch consumer raised while draining the queue
- StoreError, ConfigError: Startup errors
"""

from __future__ import annotations

from typing import Any


class MirrorError(Exception):
    """Base exception for gitmirror errors."""


class PathUnavailable(MirrorError):
    """A watch root does not exist (yet).

    Only ever logged as a warning: the watcher keeps trying and picks
    the path up once it is created.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Watch path does not exist: {path}")


class LocalFileMissing(MirrorError, FileNotFoundError):
    """A local file vanished between change detection and upload."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Local file does not exist: {path}")


class RemoteAPIError(MirrorError):
    """Base exception for remote content API errors.

    Attributes:
        status_code: HTTP status of the failed response.
        retry_after: Seconds requested by a ``retry-after`` header, if any.
        rate_limited: True when the response is a (secondary) rate limit.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
        rate_limited: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        self.rate_limited = rate_limited


class RemoteAuthError(RemoteAPIError):
    """Credentials rejected (401). Fatal for the sync operation."""


class RemoteTransient(RemoteAPIError):
    """Temporary failure (5xx, 429, rate-limited 403). Retried."""


class RemoteRejected(RemoteAPIError):
    """Request rejected (4xx other than 429 and rate limits). Not retried."""


class ConsumerError(MirrorError):
    """A registered batch consumer raised while processing a batch."""

    def __init__(self, consumer: Any, target_id: str, cause: BaseException) -> None:
        self.consumer = consumer
        self.target_id = target_id
        self.cause = cause
        name = getattr(consumer, "__qualname__", None) or type(consumer).__name__
        super().__init__(f"Consumer {name} failed on batch from {target_id}: {cause}")


class StoreError(MirrorError):
    """The watch target store could not be read."""


class ConfigError(MirrorError):
    """Configuration is missing or incomplete."""
