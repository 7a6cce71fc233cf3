"""HTTP client for the remote content API.

This module provides:
- RemoteSyncClient: Create, update and delete files through the GitHub
  Contents API (one commit per write)
- RemoteBlobRef, BlobWriteResult: Remote file state and write results
- FileUpload, UploadOutcome: Inputs and per-file results of upload_many

Writes are retried with RetryPolicy.for_remote_api(). A rate-limited
response carrying ``retry-after`` additionally waits that many seconds
before the next attempt.
"""

from __future__ import annotations

import base64
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from gitmirror.core.config import RemoteConfig
from gitmirror.core.errors import (
    LocalFileMissing,
    RemoteAPIError,
    RemoteAuthError,
    RemoteRejected,
    RemoteTransient,
)
from gitmirror.core.events import SyncEventKind, emit_event
from gitmirror.core.retry import (
    RetryAttempt,
    RetryCallback,
    RetryPolicy,
    execute_with_retry,
    remote_api_retry_condition,
)

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
ACCEPT_HEADER = "application/vnd.github+json"


@dataclass
class RemoteBlobRef:
    """A file as currently stored on the remote branch."""

    path: str
    content: bytes | None
    content_hash: str | None

    @property
    def exists(self) -> bool:
        """Check if the file exists remotely."""
        return self.content_hash is not None


@dataclass
class BlobWriteResult:
    """Result of creating or updating a remote file."""

    path: str
    content_hash: str | None
    commit_sha: str | None
    created: bool


@dataclass
class FileUpload:
    """A local file and the remote path it is written to."""

    local_path: str
    repo_path: str


@dataclass
class UploadOutcome:
    """Per-file result of upload_many."""

    file: str
    success: bool
    result: BlobWriteResult | None = None
    error: str | None = None
    exception: BaseException | None = field(default=None, repr=False)
    elapsed: float = 0.0


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _normalize_remote_path(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


class RemoteSyncClient:
    """HTTP client for one repository branch of the remote content API."""

    def __init__(
        self,
        config: RemoteConfig,
        retry_policy: RetryPolicy | None = None,
        file_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings (token, owner, repo, branch).
            retry_policy: Policy for remote writes and reads.
            file_policy: Policy for reading local files.
        """
        self._config = config
        self._retry_policy = retry_policy or RetryPolicy.for_remote_api()
        self._file_policy = file_policy or RetryPolicy.for_file_operations()
        self._client = httpx.Client(
            base_url=config.api_url,
            timeout=config.timeout,
            headers={
                "Authorization": f"token {config.token}",
                "Accept": ACCEPT_HEADER,
                "X-GitHub-Api-Version": API_VERSION,
            },
        )

    @property
    def config(self) -> RemoteConfig:
        """Get the connection settings."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> RemoteSyncClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _contents_url(self, path: str) -> str:
        return f"{self._config.repo_path}/contents/{quote(path, safe='/')}"

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text or response.reason_phrase or f"HTTP {response.status_code}"

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        status = response.status_code
        if status < 400:
            return response

        message = self._error_message(response)
        retry_after = _parse_retry_after(response.headers.get("retry-after"))

        if status == 401:
            raise RemoteAuthError(message, 401)
        if status == 429 or status >= 500:
            raise RemoteTransient(message, status, retry_after, rate_limited=status == 429)
        if status == 403:
            rate_limited = (
                retry_after is not None
                or response.headers.get("x-ratelimit-remaining") == "0"
                or "rate limit" in message.lower()
            )
            if rate_limited:
                raise RemoteTransient(message, 403, retry_after, rate_limited=True)
        raise RemoteRejected(message, status, retry_after)

    def _retry_hook(self, action: str, path: str) -> RetryCallback:
        """Build the on_retry hook used for one remote operation."""

        def on_retry(error: BaseException, attempt: int) -> None:
            retry = RetryAttempt(
                attempt_number=attempt,
                delay=self._retry_policy.delay_for(attempt - 1),
                error=error,
            )
            emit_event(
                SyncEventKind.RETRY_SCHEDULED,
                logging.INFO,
                action=action,
                path=path,
                attempt=retry.attempt_number,
                delay=retry.delay,
                error=str(retry.error),
            )
            if isinstance(error, RemoteAPIError) and error.rate_limited and error.retry_after:
                logger.warning("Rate limited, waiting %.0fs before retrying %s", error.retry_after, path)
                time.sleep(error.retry_after)

        return on_retry

    # === Read operations ===

    def _fetch_blob(self, path: str) -> RemoteBlobRef:
        """Single GET of a remote file, without retries."""
        response = self._client.get(self._contents_url(path), params={"ref": self._config.branch})
        if response.status_code == 404:
            return RemoteBlobRef(path=path, content=None, content_hash=None)

        data = self._handle_response(response).json()
        if not isinstance(data, dict):
            raise RemoteRejected(f"Remote path is a directory: {path}", 422)

        encoded = data.get("content") or ""
        return RemoteBlobRef(
            path=path,
            content=base64.b64decode(encoded) if encoded else b"",
            content_hash=data.get("sha"),
        )

    def get_blob(self, path: str) -> RemoteBlobRef:
        """Get the current remote state of a file.

        Args:
            path: Path inside the repository.

        Returns:
            The file reference; content and hash are None if it does not exist.
        """
        remote_path = _normalize_remote_path(path)
        return self._retry_policy.execute(
            lambda: self._fetch_blob(remote_path),
            on_retry=self._retry_hook("get", remote_path),
        )

    def get_latest_commit_sha(self) -> str:
        """Get the head commit of the configured branch."""

        def operation() -> str:
            url = f"{self._config.repo_path}/git/refs/heads/{quote(self._config.branch, safe='/')}"
            response = self._handle_response(self._client.get(url))
            return str(response.json()["object"]["sha"])

        return self._retry_policy.execute(operation, on_retry=self._retry_hook("ref", self._config.branch))

    def validate_credentials(self) -> bool:
        """Check that the token works and belongs to the configured user.

        Returns:
            True if the identity endpoint answers with the expected login.
        """

        def operation() -> Any:
            response = self._handle_response(self._client.get("/user"))
            return response.json()

        try:
            data = execute_with_retry(
                operation,
                max_retries=2,
                base_delay=1.0,
                retry_condition=remote_api_retry_condition,
            )
        except Exception as e:
            logger.error("Token validation failed: %s", e)
            return False

        if not isinstance(data, dict):
            logger.error("Unexpected identity response: %r", data)
            return False

        login = data.get("login")
        if login != self._config.username:
            logger.error("Token belongs to %s, expected %s", login, self._config.username)
            return False

        logger.info("Token validated for %s", login)
        return True

    # === Write operations ===

    def _read_local(self, local: Path) -> bytes:
        """Read a local file, retrying transient filesystem errors."""

        def read() -> bytes:
            try:
                return local.read_bytes()
            except FileNotFoundError as e:
                raise LocalFileMissing(str(local)) from e

        return self._file_policy.execute(read)

    def put_blob(self, local_file_path: str | Path, remote_path: str, message: str) -> BlobWriteResult:
        """Create or update a remote file from a local one.

        The current remote hash is fetched inside every attempt, so a retry
        after a concurrent change still sends the right hash.

        Args:
            local_file_path: File to upload.
            remote_path: Destination path inside the repository.
            message: Commit message.

        Returns:
            The write result.

        Raises:
            LocalFileMissing: If the local file does not exist.
            RemoteAPIError: If the write failed for good.
        """
        local = Path(local_file_path)
        if not local.is_file():
            raise LocalFileMissing(str(local))

        repo_path = _normalize_remote_path(remote_path)
        emit_event(SyncEventKind.UPLOAD_ATTEMPT, path=repo_path, repo=self._config.repo)

        def operation() -> BlobWriteResult:
            content = base64.b64encode(self._read_local(local)).decode("ascii")
            current = self._fetch_blob(repo_path)

            body: dict[str, Any] = {
                "message": message,
                "content": content,
                "branch": self._config.branch,
            }
            if current.content_hash:
                body["sha"] = current.content_hash

            response = self._handle_response(self._client.put(self._contents_url(repo_path), json=body))
            data = response.json()
            return BlobWriteResult(
                path=repo_path,
                content_hash=(data.get("content") or {}).get("sha"),
                commit_sha=(data.get("commit") or {}).get("sha"),
                created=current.content_hash is None,
            )

        try:
            result = self._retry_policy.execute(operation, on_retry=self._retry_hook("put", repo_path))
        except Exception as e:
            emit_event(SyncEventKind.UPLOAD_FAILURE, logging.WARNING, path=repo_path, error=str(e))
            raise

        emit_event(
            SyncEventKind.UPLOAD_SUCCESS,
            path=repo_path,
            created=result.created,
            commit=result.commit_sha,
        )
        logger.info("%s %s", "Created" if result.created else "Updated", repo_path)
        return result

    def delete_blob(self, remote_path: str, message: str) -> dict[str, Any] | None:
        """Delete a remote file.

        Args:
            remote_path: Path inside the repository.
            message: Commit message.

        Returns:
            The API response, or None if the file did not exist remotely.
        """
        repo_path = _normalize_remote_path(remote_path)

        def operation() -> dict[str, Any] | None:
            current = self._fetch_blob(repo_path)
            if current.content_hash is None:
                return None
            response = self._handle_response(
                self._client.request(
                    "DELETE",
                    self._contents_url(repo_path),
                    json={
                        "message": message,
                        "sha": current.content_hash,
                        "branch": self._config.branch,
                    },
                )
            )
            data: dict[str, Any] = response.json()
            return data

        result = self._retry_policy.execute(operation, on_retry=self._retry_hook("delete", repo_path))
        if result is None:
            logger.warning("%s does not exist remotely, nothing to delete", repo_path)
        else:
            logger.info("Deleted %s", repo_path)
        return result

    def upload_many(self, files: Iterable[FileUpload], message: str) -> list[UploadOutcome]:
        """Upload files one after another.

        A failed file is recorded and the remaining files are still uploaded.

        Returns:
            One outcome per file, in input order.
        """
        outcomes: list[UploadOutcome] = []
        for upload in files:
            started = time.monotonic()
            try:
                result = self.put_blob(upload.local_path, upload.repo_path, message)
            except Exception as e:
                logger.error("Failed to upload %s: %s", upload.repo_path, e)
                outcomes.append(
                    UploadOutcome(
                        file=upload.repo_path,
                        success=False,
                        error=str(e),
                        exception=e,
                        elapsed=time.monotonic() - started,
                    )
                )
                continue
            outcomes.append(
                UploadOutcome(
                    file=upload.repo_path,
                    success=True,
                    result=result,
                    elapsed=time.monotonic() - started,
                )
            )
        return outcomes
