"""Retry logic with exponential backoff.

This module provides:
- execute_with_retry: Run an operation, retrying with exponential backoff
- RetryPolicy: Reusable bundle of retry parameters
- remote_api_retry_condition: Which remote API failures are worth retrying
- file_retry_condition: Which filesystem failures are worth retrying
"""

from __future__ import annotations

import errno
import logging
import socket
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from gitmirror.core.errors import LocalFileMissing, RemoteAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCondition = Callable[[BaseException], bool]
RetryCallback = Callable[[BaseException, int], Any]

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 10.0  # seconds
DEFAULT_BACKOFF_FACTOR = 2.0

# Transport errors that indicate connectivity issues
NETWORK_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    socket.gaierror,
)

NETWORK_ERRNOS = frozenset({errno.ECONNRESET, errno.ETIMEDOUT, errno.ECONNREFUSED, errno.EHOSTUNREACH})

RETRYABLE_FILE_ERRNOS = frozenset({errno.EBUSY, errno.EMFILE, errno.ENFILE})
TERMINAL_FILE_ERRNOS = frozenset({errno.EACCES, errno.EPERM, errno.ENOENT})


@dataclass
class RetryAttempt:
    """One scheduled retry, handed to logging and event hooks."""

    attempt_number: int
    delay: float
    error: BaseException


def _always_retry(error: BaseException) -> bool:
    return True


def execute_with_retry(
    operation: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    retry_condition: RetryCondition | None = None,
    on_retry: RetryCallback | None = None,
) -> T:
    """Execute an operation with exponential backoff retry.

    Attempt 0 runs immediately. A failure is re-raised at once when it is
    the last attempt or when ``retry_condition`` rejects it; otherwise the
    operation is retried after ``min(base_delay * backoff_factor**attempt,
    max_delay)`` seconds.

    Args:
        operation: Callable to execute.
        max_retries: Maximum number of retries (total calls = max_retries + 1).
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any single delay, in seconds.
        backoff_factor: Multiplier applied per attempt.
        retry_condition: Predicate deciding whether an error is retryable.
            Defaults to retrying everything.
        on_retry: Optional hook called as ``on_retry(error, attempt_number)``
            before each wait. Errors raised by the hook are logged and ignored.

    Returns:
        Result of the first successful call.

    Raises:
        The last exception once retries are exhausted or not allowed.
    """
    condition = retry_condition or _always_retry

    for attempt in range(max_retries + 1):
        try:
            result = operation()
        except Exception as e:
            if attempt == max_retries:
                logger.error("Operation failed after %d attempts: %s", max_retries + 1, e)
                raise

            if not condition(e):
                logger.error("Operation failed with a non-retryable error: %s", e)
                raise

            delay = min(base_delay * (backoff_factor**attempt), max_delay)
            logger.warning(
                "Attempt %d/%d failed: %s. Retrying in %.1fs...",
                attempt + 1,
                max_retries + 1,
                e,
                delay,
            )

            if on_retry is not None:
                try:
                    on_retry(e, attempt + 1)
                except Exception as callback_error:
                    logger.error("Retry callback failed: %s", callback_error)

            time.sleep(delay)
            continue

        if attempt > 0:
            logger.info("Operation succeeded on attempt %d", attempt + 1)
        return result

    # range() always runs at least once and every path above returns or raises
    raise RuntimeError("Unexpected retry loop exit")


@dataclass
class RetryPolicy:
    """Retry parameters for a family of operations."""

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    retry_condition: RetryCondition | None = None

    @classmethod
    def for_remote_api(cls) -> RetryPolicy:
        """Policy used for blob uploads and deletes."""
        return cls(
            max_retries=3,
            base_delay=2.0,
            max_delay=30.0,
            retry_condition=remote_api_retry_condition,
        )

    @classmethod
    def for_file_operations(cls) -> RetryPolicy:
        """Policy used for local file reads."""
        return cls(
            max_retries=2,
            base_delay=0.5,
            max_delay=5.0,
            retry_condition=file_retry_condition,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before retrying after the given 0-based attempt."""
        return min(self.base_delay * (self.backoff_factor**attempt), self.max_delay)

    def execute(
        self,
        operation: Callable[[], T],
        on_retry: RetryCallback | None = None,
    ) -> T:
        """Run an operation under this policy."""
        return execute_with_retry(
            operation,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
            retry_condition=self.retry_condition,
            on_retry=on_retry,
        )


def is_network_error(error: BaseException) -> bool:
    """Check whether an error is a transient transport failure."""
    if isinstance(error, NETWORK_EXCEPTIONS):
        return True
    return isinstance(error, OSError) and error.errno in NETWORK_ERRNOS


def remote_api_retry_condition(error: BaseException) -> bool:
    """Decide whether a remote API failure should be retried.

    Network errors, 5xx and 429 are retried. A 403 is only retried when the
    server says it is a rate limit; any other 4xx is terminal.
    """
    if isinstance(error, LocalFileMissing):
        return False

    if isinstance(error, RemoteAPIError):
        status = error.status_code
        if status is None:
            return True
        if status >= 500 or status == 429:
            return True
        if status == 403:
            return error.rate_limited
        if 400 <= status < 500:
            return False
        return True

    if is_network_error(error):
        return True

    return True


def file_retry_condition(error: BaseException) -> bool:
    """Decide whether a filesystem failure should be retried."""
    if isinstance(error, OSError):
        if error.errno in RETRYABLE_FILE_ERRNOS:
            return True
        if error.errno in TERMINAL_FILE_ERRNOS or isinstance(error, LocalFileMissing):
            return False
    return True
