"""Configuration classes for gitmirror.

This module defines:
- RemoteConfig: Connection settings for the remote content API
- MirrorSettings: Watcher and pipeline settings
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from gitmirror.core.errors import ConfigError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_BRANCH = "main"
DEFAULT_COMMIT_MESSAGE = "Auto-commit: file update"
DEFAULT_IGNORE_PATTERNS = ("node_modules", ".git", "*.tmp")


def split_patterns(value: str | list[str] | tuple[str, ...] | None) -> list[str]:
    """Split a comma-separated pattern string (or list) into clean patterns."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [item.strip() for item in items if item and item.strip()]


@dataclass
class RemoteConfig:
    """Configuration for talking to the remote content API.

    Attributes:
        token: Personal access token.
        owner: Account that owns the repository.
        repo: Repository name.
        branch: Branch that receives commits.
        api_url: Base URL of the API.
        timeout: Per-request timeout in seconds.
        username: Login expected from the identity endpoint (defaults to owner).
    """

    token: str
    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    api_url: str = DEFAULT_API_URL
    timeout: float = 10.0
    username: str | None = None

    def __post_init__(self) -> None:
        """Normalize API URL and username."""
        self.api_url = self.api_url.rstrip("/")
        if not self.username:
            self.username = self.owner

    @property
    def repo_path(self) -> str:
        """URL path prefix of the repository."""
        return f"/repos/{self.owner}/{self.repo}"

    def for_repo(self, repo: str, branch: str | None = None) -> RemoteConfig:
        """Copy of this config pointing at another repository/branch."""
        return replace(self, repo=repo, branch=branch or self.branch)

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        environ: Mapping[str, str] | None = None,
    ) -> RemoteConfig:
        """Build from a config file mapping, with environment overrides.

        Raises:
            ConfigError: If token, username or repository are missing.
        """
        env = os.environ if environ is None else environ
        token = env.get("GITHUB_TOKEN") or config.get("token")
        owner = env.get("GITHUB_USERNAME") or config.get("username") or config.get("owner")
        repo = env.get("GITHUB_REPO") or config.get("repo")
        branch = env.get("GITHUB_BRANCH") or config.get("branch") or DEFAULT_BRANCH

        missing = [
            name
            for name, value in (
                ("GITHUB_TOKEN", token),
                ("GITHUB_USERNAME", owner),
                ("GITHUB_REPO", repo),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

        return cls(
            token=str(token),
            owner=str(owner),
            repo=str(repo),
            branch=str(branch),
            api_url=str(config.get("api_url", DEFAULT_API_URL)),
            timeout=float(config.get("timeout", 10.0)),
        )


@dataclass
class MirrorSettings:
    """Settings of the watch/sync pipeline.

    Attributes:
        debounce_ms: Quiet period after the last event before a batch fires.
        settle_ms: Write stabilization window before a file is reported.
        ignore_patterns: Default exclusion patterns for new targets.
        commit_message: Default commit message template.
        targets_file: JSON file holding watch target definitions.
        watch_path: Single path to watch when no targets file is used.
        log_level: Logging level name.
        log_file: Optional log file path.
    """

    debounce_ms: int = 2000
    settle_ms: int = 500
    ignore_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    targets_file: Path | None = None
    watch_path: Path | None = None
    log_level: str = "INFO"
    log_file: Path | None = None

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        environ: Mapping[str, str] | None = None,
    ) -> MirrorSettings:
        """Build from a config file mapping, with environment overrides."""
        env = os.environ if environ is None else environ
        settings = cls()

        debounce = env.get("DEBOUNCE_TIME") or config.get("debounce_ms")
        if debounce:
            try:
                settings.debounce_ms = int(debounce)
            except ValueError as e:
                raise ConfigError(f"Invalid debounce time: {debounce}") from e

        if config.get("settle_ms") is not None:
            settings.settle_ms = int(config["settle_ms"])

        patterns = env.get("IGNORED_PATTERNS") or config.get("ignore_patterns")
        if patterns:
            settings.ignore_patterns = split_patterns(patterns)

        settings.commit_message = (
            env.get("COMMIT_MESSAGE") or config.get("commit_message") or DEFAULT_COMMIT_MESSAGE
        )

        targets_file = config.get("targets_file")
        if targets_file:
            settings.targets_file = Path(targets_file).expanduser()

        watch_path = env.get("WATCH_PATH") or config.get("watch_path")
        if watch_path:
            settings.watch_path = Path(watch_path).expanduser()

        settings.log_level = (env.get("LOG_LEVEL") or config.get("log_level") or "INFO").upper()

        log_file = config.get("log_file")
        if log_file:
            settings.log_file = Path(log_file).expanduser()

        return settings
