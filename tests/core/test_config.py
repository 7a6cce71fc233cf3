"""Tests for core configuration classes."""

from __future__ import annotations

from pathlib import Path

import pytest

from gitmirror.core.config import (
    DEFAULT_IGNORE_PATTERNS,
    MirrorSettings,
    RemoteConfig,
    split_patterns,
)
from gitmirror.core.errors import ConfigError


class TestRemoteConfig:
    """Tests for RemoteConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with defaults."""
        config = RemoteConfig(token="t0k3n", owner="alice", repo="notes")
        assert config.branch == "main"
        assert config.api_url == "https://api.github.com"
        assert config.timeout == 10.0
        assert config.username == "alice"
        assert config.repo_path == "/repos/alice/notes"

    def test_url_trailing_slash_removed(self) -> None:
        config = RemoteConfig(token="t", owner="o", repo="r", api_url="https://ghe.example.com/api/v3/")
        assert config.api_url == "https://ghe.example.com/api/v3"

    def test_for_repo(self) -> None:
        """Should copy the config for another repository."""
        config = RemoteConfig(token="t", owner="o", repo="r", branch="dev")
        other = config.for_repo("site")
        assert other.repo == "site"
        assert other.branch == "dev"
        assert other.token == "t"
        assert config.repo == "r"

        assert config.for_repo("site", "gh-pages").branch == "gh-pages"

    def test_from_mapping(self) -> None:
        config = RemoteConfig.from_mapping(
            {"token": "t", "username": "alice", "repo": "notes", "branch": "dev"},
            environ={},
        )
        assert config.owner == "alice"
        assert config.branch == "dev"

    def test_environment_overrides(self) -> None:
        config = RemoteConfig.from_mapping(
            {"token": "file-token", "username": "alice", "repo": "notes"},
            environ={"GITHUB_TOKEN": "env-token", "GITHUB_REPO": "other", "GITHUB_BRANCH": "live"},
        )
        assert config.token == "env-token"
        assert config.repo == "other"
        assert config.branch == "live"

    def test_missing_settings(self) -> None:
        with pytest.raises(ConfigError, match="GITHUB_TOKEN, GITHUB_REPO"):
            RemoteConfig.from_mapping({"username": "alice"}, environ={})


class TestMirrorSettings:
    """Tests for MirrorSettings class."""

    def test_defaults(self) -> None:
        settings = MirrorSettings()
        assert settings.debounce_ms == 2000
        assert settings.settle_ms == 500
        assert settings.ignore_patterns == list(DEFAULT_IGNORE_PATTERNS)
        assert settings.commit_message == "Auto-commit: file update"

    def test_from_mapping(self, tmp_path: Path) -> None:
        settings = MirrorSettings.from_mapping(
            {
                "debounce_ms": 500,
                "settle_ms": 0,
                "ignore_patterns": ["dist", "*.log"],
                "targets_file": str(tmp_path / "targets.json"),
                "log_level": "debug",
            },
            environ={},
        )
        assert settings.debounce_ms == 500
        assert settings.settle_ms == 0
        assert settings.ignore_patterns == ["dist", "*.log"]
        assert settings.targets_file == tmp_path / "targets.json"
        assert settings.log_level == "DEBUG"

    def test_environment_overrides(self) -> None:
        settings = MirrorSettings.from_mapping(
            {"debounce_ms": 500},
            environ={
                "DEBOUNCE_TIME": "3000",
                "IGNORED_PATTERNS": "node_modules, build ,*.bak",
                "COMMIT_MESSAGE": "sync [group]",
                "WATCH_PATH": "/srv/site",
            },
        )
        assert settings.debounce_ms == 3000
        assert settings.ignore_patterns == ["node_modules", "build", "*.bak"]
        assert settings.commit_message == "sync [group]"
        assert settings.watch_path == Path("/srv/site")

    def test_invalid_debounce(self) -> None:
        with pytest.raises(ConfigError):
            MirrorSettings.from_mapping({}, environ={"DEBOUNCE_TIME": "soon"})


class TestSplitPatterns:
    def test_string(self) -> None:
        assert split_patterns("a, b,,c ") == ["a", "b", "c"]

    def test_list(self) -> None:
        assert split_patterns(["a", " ", "b"]) == ["a", "b"]

    def test_none(self) -> None:
        assert split_patterns(None) == []
