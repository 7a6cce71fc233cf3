"""Configuration utilities for the gitmirror CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from gitmirror.core.config import MirrorSettings, RemoteConfig
from gitmirror.core.errors import ConfigError


def get_config_dir() -> Path:
    """Get the configuration directory for gitmirror.

    Returns:
        Path to ~/.gitmirror.
    """
    return Path.home() / ".gitmirror"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_targets_file() -> Path:
    """Get the default path of the watch target store."""
    return get_config_dir() / "targets.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file.

    Raises:
        ConfigError: If the file cannot be read or is not a JSON object.
    """
    config_file = get_config_file()
    if not config_file.exists():
        return {}
    try:
        config = json.loads(config_file.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
    if not isinstance(config, dict):
        raise ConfigError(f"Config file {config_file} must hold a JSON object")
    return config


def load_settings() -> MirrorSettings:
    """Load pipeline settings from the config file and environment."""
    settings = MirrorSettings.from_mapping(load_config())
    if settings.targets_file is None:
        settings.targets_file = get_targets_file()
    return settings


def load_remote_config() -> RemoteConfig:
    """Load remote settings from the config file and environment.

    Raises:
        ConfigError: If credentials or repository are missing.
    """
    return RemoteConfig.from_mapping(load_config())
