"""Error classification for logging and reporting.

ErrorClassifier maps a raw exception onto a small taxonomy (remote API,
network, filesystem, unknown) with a severity, a recoverability flag and
human-readable suggestions. It is only used to build reports; retry
decisions live in gitmirror.core.retry.
"""

from __future__ import annotations

import errno
from dataclasses import dataclass, field
from enum import Enum

from gitmirror.core.errors import LocalFileMissing, RemoteAPIError
from gitmirror.core.retry import is_network_error


class ErrorKind(str, Enum):
    """Broad category of a failure."""

    REMOTE_API = "remote_api"
    NETWORK = "network"
    FILESYSTEM = "filesystem"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """How badly a failure affects syncing."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class ErrorClassification:
    """Classification of a single error."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    severity: Severity = Severity.MEDIUM
    recoverable: bool = True
    user_message: str = "An unknown error occurred"
    technical_message: str = ""
    suggestions: list[str] = field(default_factory=list)


# status -> (severity, recoverable, user message, suggestions)
_REMOTE_STATUS_TABLE: dict[int, tuple[Severity, bool, str, list[str]]] = {
    401: (
        Severity.HIGH,
        False,
        "Remote authentication failed",
        ["Check that the access token is correct", "Check whether the token has expired"],
    ),
    403: (
        Severity.HIGH,
        True,
        "Remote access denied",
        [
            "Check the token permissions",
            "Check access to the repository",
            "Check whether a rate limit was hit",
        ],
    ),
    404: (
        Severity.MEDIUM,
        True,
        "Remote resource not found",
        ["Check the repository name", "Check that the branch exists"],
    ),
    429: (
        Severity.LOW,
        True,
        "Remote API rate limit reached",
        ["Retry later", "Reduce the request rate"],
    ),
    422: (
        Severity.MEDIUM,
        False,
        "Remote API rejected the request data",
        ["Check the file content", "Check the commit message"],
    ),
}

_SERVER_ERROR = (
    Severity.MEDIUM,
    True,
    "Remote server error",
    ["Retry later", "Check the status page of the remote service"],
)

# errno -> (severity, recoverable, user message, suggestions)
_FILESYSTEM_TABLE: dict[int, tuple[Severity, bool, str, list[str]]] = {
    errno.ENOENT: (
        Severity.HIGH,
        False,
        "File or directory does not exist",
        ["Check that the file path is correct"],
    ),
    errno.EACCES: (
        Severity.HIGH,
        False,
        "Insufficient file permissions",
        ["Check the file permissions", "Run with a user that can read the file"],
    ),
    errno.EPERM: (
        Severity.HIGH,
        False,
        "Insufficient file permissions",
        ["Check the file permissions", "Run with a user that can read the file"],
    ),
    errno.EBUSY: (
        Severity.LOW,
        True,
        "File is in use",
        ["Retry later", "Close the program holding the file"],
    ),
}


class ErrorClassifier:
    """Classifies errors and renders readable reports."""

    @staticmethod
    def classify(error: BaseException) -> ErrorClassification:
        """Classify an error.

        Args:
            error: The exception to classify.

        Returns:
            The classification. Unrecognized errors are UNKNOWN/MEDIUM.
        """
        result = ErrorClassification(technical_message=str(error))

        if isinstance(error, RemoteAPIError):
            result.kind = ErrorKind.REMOTE_API
            status = error.status_code or 0
            entry = _REMOTE_STATUS_TABLE.get(status)
            if entry is None and status >= 500:
                entry = _SERVER_ERROR
            if entry is None:
                result.user_message = f"Remote API error (HTTP {status or 'unknown'})"
                return result
            result.severity, result.recoverable, result.user_message, suggestions = entry
            result.suggestions = list(suggestions)
            return result

        if is_network_error(error):
            result.kind = ErrorKind.NETWORK
            result.user_message = "Network connection error"
            result.suggestions = ["Check the network connection", "Retry later"]
            return result

        if isinstance(error, LocalFileMissing):
            code: int | None = errno.ENOENT
        elif isinstance(error, OSError):
            code = error.errno
        else:
            return result

        result.kind = ErrorKind.FILESYSTEM
        entry = _FILESYSTEM_TABLE.get(code) if code is not None else None
        if entry is None:
            result.user_message = "Filesystem error"
            return result
        result.severity, result.recoverable, result.user_message, suggestions = entry
        result.suggestions = list(suggestions)
        return result

    @classmethod
    def generate_report(cls, error: BaseException) -> str:
        """Render a multi-line report for logging."""
        classification = cls.classify(error)

        lines = [
            f"Error kind: {classification.kind.value}",
            f"Severity: {classification.severity.value}",
            f"Message: {classification.user_message}",
        ]
        if classification.suggestions:
            lines.append("Suggestions:")
            lines.extend(
                f"  {index}. {suggestion}"
                for index, suggestion in enumerate(classification.suggestions, start=1)
            )
        lines.append(f"Details: {classification.technical_message}")
        return "\n".join(lines)
