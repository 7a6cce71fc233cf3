"""Tests for retry with exponential backoff and retry conditions."""

from __future__ import annotations

import errno
from unittest.mock import patch

import httpx
import pytest

from gitmirror.core.errors import (
    LocalFileMissing,
    RemoteAuthError,
    RemoteRejected,
    RemoteTransient,
)
from gitmirror.core.retry import (
    RetryPolicy,
    execute_with_retry,
    file_retry_condition,
    is_network_error,
    remote_api_retry_condition,
)


class TestExecuteWithRetry:
    """Tests for execute_with_retry."""

    def test_succeeds_on_first_try(self) -> None:
        """Should return the result without sleeping."""
        counter = {"calls": 0}

        def succeed() -> str:
            counter["calls"] += 1
            return "success"

        with patch("gitmirror.core.retry.time.sleep") as mock_sleep:
            result = execute_with_retry(succeed, max_retries=3)

        assert result == "success"
        assert counter["calls"] == 1
        mock_sleep.assert_not_called()

    def test_retries_until_success(self) -> None:
        """Should retry on failure and return the first success."""
        counter = {"calls": 0}

        def fail_twice() -> str:
            counter["calls"] += 1
            if counter["calls"] < 3:
                raise ConnectionError("Network error")
            return "success"

        with patch("gitmirror.core.retry.time.sleep"):
            result = execute_with_retry(fail_twice, max_retries=5)

        assert result == "success"
        assert counter["calls"] == 3

    def test_raises_after_max_retries(self) -> None:
        """Should call max_retries + 1 times, then raise the last error."""
        counter = {"calls": 0}

        def always_fail() -> str:
            counter["calls"] += 1
            raise TimeoutError(f"Timeout {counter['calls']}")

        with patch("gitmirror.core.retry.time.sleep"), pytest.raises(TimeoutError, match="Timeout 3"):
            execute_with_retry(always_fail, max_retries=2)

        assert counter["calls"] == 3

    def test_backoff_delays(self) -> None:
        """Should sleep base_delay * factor**attempt, capped at max_delay."""
        sleep_times: list[float] = []

        def always_fail() -> str:
            raise OSError("Error")

        with patch("gitmirror.core.retry.time.sleep") as mock_sleep:
            mock_sleep.side_effect = lambda t: sleep_times.append(t)
            with pytest.raises(OSError):
                execute_with_retry(
                    always_fail,
                    max_retries=3,
                    base_delay=0.5,
                    max_delay=10.0,
                    backoff_factor=2.0,
                )

        assert sleep_times == [0.5, 1.0, 2.0]

    def test_max_delay_cap(self) -> None:
        """Should cap each delay at max_delay."""
        sleep_times: list[float] = []

        def always_fail() -> str:
            raise OSError("Error")

        with patch("gitmirror.core.retry.time.sleep") as mock_sleep:
            mock_sleep.side_effect = lambda t: sleep_times.append(t)
            with pytest.raises(OSError):
                execute_with_retry(always_fail, max_retries=5, base_delay=1.0, max_delay=5.0)

        # 1, 2, 4, 5 (capped), 5 (capped)
        assert sleep_times == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_condition_false_raises_immediately(self) -> None:
        """Should not retry or sleep when the condition rejects the error."""
        counter = {"calls": 0}

        def raise_value_error() -> str:
            counter["calls"] += 1
            raise ValueError("Invalid value")

        with patch("gitmirror.core.retry.time.sleep") as mock_sleep, pytest.raises(ValueError):
            execute_with_retry(
                raise_value_error,
                max_retries=3,
                retry_condition=lambda e: not isinstance(e, ValueError),
            )

        assert counter["calls"] == 1
        mock_sleep.assert_not_called()

    def test_on_retry_called_with_attempt_number(self) -> None:
        """Should call on_retry(error, attempt + 1) before each wait."""
        seen: list[tuple[str, int]] = []

        def always_fail() -> str:
            raise ConnectionError("down")

        with patch("gitmirror.core.retry.time.sleep"), pytest.raises(ConnectionError):
            execute_with_retry(
                always_fail,
                max_retries=2,
                on_retry=lambda e, attempt: seen.append((str(e), attempt)),
            )

        assert seen == [("down", 1), ("down", 2)]

    def test_on_retry_failure_is_ignored(self) -> None:
        """A failing on_retry hook should not stop the retries."""
        counter = {"calls": 0}

        def fail_once() -> str:
            counter["calls"] += 1
            if counter["calls"] == 1:
                raise ConnectionError("down")
            return "ok"

        def broken_hook(error: BaseException, attempt: int) -> None:
            raise RuntimeError("hook failed")

        with patch("gitmirror.core.retry.time.sleep"):
            result = execute_with_retry(fail_once, max_retries=2, on_retry=broken_hook)

        assert result == "ok"


class TestRetryPolicy:
    """Tests for RetryPolicy presets."""

    def test_remote_api_preset(self) -> None:
        """Remote API policy: 3 retries, 2s base, 30s cap."""
        policy = RetryPolicy.for_remote_api()
        assert policy.max_retries == 3
        assert policy.base_delay == 2.0
        assert policy.max_delay == 30.0
        assert policy.retry_condition is remote_api_retry_condition

    def test_file_operations_preset(self) -> None:
        """File policy: 2 retries, 0.5s base, 5s cap."""
        policy = RetryPolicy.for_file_operations()
        assert policy.max_retries == 2
        assert policy.base_delay == 0.5
        assert policy.max_delay == 5.0

    def test_delay_for(self) -> None:
        """Should compute the same delays as execute_with_retry."""
        policy = RetryPolicy(base_delay=2.0, max_delay=30.0)
        assert [policy.delay_for(n) for n in range(5)] == [2.0, 4.0, 8.0, 16.0, 30.0]

    def test_execute_uses_condition(self) -> None:
        """Should stop at once on a terminal remote error."""
        counter = {"calls": 0}

        def rejected() -> str:
            counter["calls"] += 1
            raise RemoteRejected("Validation failed", 422)

        with patch("gitmirror.core.retry.time.sleep"), pytest.raises(RemoteRejected):
            RetryPolicy.for_remote_api().execute(rejected)

        assert counter["calls"] == 1


class TestRemoteApiRetryCondition:
    """Tests for remote_api_retry_condition."""

    @pytest.mark.parametrize("status", [500, 502, 503, 429])
    def test_transient_statuses_retried(self, status: int) -> None:
        assert remote_api_retry_condition(RemoteTransient("busy", status)) is True

    @pytest.mark.parametrize("status", [400, 404, 409, 422])
    def test_client_errors_not_retried(self, status: int) -> None:
        assert remote_api_retry_condition(RemoteRejected("bad", status)) is False

    def test_auth_error_not_retried(self) -> None:
        assert remote_api_retry_condition(RemoteAuthError("Bad credentials", 401)) is False

    def test_plain_403_not_retried(self) -> None:
        """A permission 403 is terminal."""
        assert remote_api_retry_condition(RemoteRejected("Resource not accessible", 403)) is False

    def test_rate_limited_403_retried(self) -> None:
        """A rate-limit 403 is retried."""
        error = RemoteTransient("API rate limit exceeded", 403, rate_limited=True)
        assert remote_api_retry_condition(error) is True

    def test_local_file_missing_not_retried(self) -> None:
        assert remote_api_retry_condition(LocalFileMissing("/tmp/gone.txt")) is False

    def test_network_errors_retried(self) -> None:
        assert remote_api_retry_condition(httpx.ConnectError("refused")) is True
        assert remote_api_retry_condition(ConnectionResetError()) is True

    def test_unknown_errors_retried(self) -> None:
        assert remote_api_retry_condition(RuntimeError("odd")) is True


class TestFileRetryCondition:
    """Tests for file_retry_condition."""

    @pytest.mark.parametrize("code", [errno.EBUSY, errno.EMFILE, errno.ENFILE])
    def test_busy_errors_retried(self, code: int) -> None:
        assert file_retry_condition(OSError(code, "busy")) is True

    @pytest.mark.parametrize("code", [errno.EACCES, errno.EPERM, errno.ENOENT])
    def test_permission_and_missing_not_retried(self, code: int) -> None:
        assert file_retry_condition(OSError(code, "nope")) is False

    def test_local_file_missing_not_retried(self) -> None:
        assert file_retry_condition(LocalFileMissing("/tmp/gone.txt")) is False

    def test_other_errors_retried(self) -> None:
        assert file_retry_condition(ValueError("odd")) is True


class TestIsNetworkError:
    """Tests for is_network_error."""

    def test_transport_errors(self) -> None:
        assert is_network_error(httpx.ReadTimeout("slow")) is True
        assert is_network_error(TimeoutError()) is True

    def test_errno_based(self) -> None:
        assert is_network_error(OSError(errno.ECONNRESET, "reset")) is True

    def test_other_errors(self) -> None:
        assert is_network_error(OSError(errno.EACCES, "denied")) is False
        assert is_network_error(ValueError("x")) is False
