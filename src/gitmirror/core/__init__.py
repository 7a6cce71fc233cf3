"""Core module - Shared types, errors, retry policy and configuration."""

from gitmirror.core.classifier import (
    ErrorClassification,
    ErrorClassifier,
    ErrorKind,
    Severity,
)
from gitmirror.core.config import (
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_IGNORE_PATTERNS,
    MirrorSettings,
    RemoteConfig,
)
from gitmirror.core.errors import (
    ConfigError,
    ConsumerError,
    LocalFileMissing,
    MirrorError,
    PathUnavailable,
    RemoteAPIError,
    RemoteAuthError,
    RemoteRejected,
    RemoteTransient,
    StoreError,
)
from gitmirror.core.events import SyncEventKind, SyncStats, emit_event
from gitmirror.core.retry import (
    RetryAttempt,
    RetryPolicy,
    execute_with_retry,
    file_retry_condition,
    remote_api_retry_condition,
)
from gitmirror.core.types import PRIORITY_ORDER, Priority

__all__ = [
    # Classifier
    "ErrorClassification",
    "ErrorClassifier",
    "ErrorKind",
    "Severity",
    # Config
    "DEFAULT_COMMIT_MESSAGE",
    "DEFAULT_IGNORE_PATTERNS",
    "MirrorSettings",
    "RemoteConfig",
    # Errors
    "ConfigError",
    "ConsumerError",
    "LocalFileMissing",
    "MirrorError",
    "PathUnavailable",
    "RemoteAPIError",
    "RemoteAuthError",
    "RemoteRejected",
    "RemoteTransient",
    "StoreError",
    # Events
    "SyncEventKind",
    "SyncStats",
    "emit_event",
    # Retry
    "RetryAttempt",
    "RetryPolicy",
    "execute_with_retry",
    "file_retry_condition",
    "remote_api_retry_condition",
    # Types
    "PRIORITY_ORDER",
    "Priority",
]
