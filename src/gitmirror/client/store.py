"""Read side of the watch target store.

The store is a JSON array of records. A record is either a project, with a
single ``path``, or a file group, with a list of ``paths``. A group expands
to one watch target per path, with id ``<group id>_<index>``::

    [
      {"id": "p1", "name": "site", "path": "/srv/site", "repo": "site",
       "branch": "main", "ignoredPatterns": "node_modules,.git",
       "status": "active"},
      {"id": "g1", "name": "dotfiles", "paths": ["/home/me/.bashrc"],
       "targetRepo": "dotfiles", "priority": "high", "status": "active"}
    ]

Records whose ``status`` is set to anything but ``active`` are skipped.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from gitmirror.client.sync.types import WatchTarget
from gitmirror.core.config import split_patterns
from gitmirror.core.errors import StoreError
from gitmirror.core.types import Priority

logger = logging.getLogger(__name__)


def _ignore_patterns(record: Mapping[str, Any], default: list[str]) -> list[str]:
    for key in ("ignorePatterns", "ignoredPatterns", "ignore_patterns"):
        if record.get(key) is not None:
            return split_patterns(record[key])
    return list(default)


def _metadata(record: Mapping[str, Any]) -> dict[str, Any]:
    """Collect the consumer metadata of a record."""
    metadata: dict[str, Any] = dict(record.get("metadata") or {})
    repo = record.get("repo") or record.get("targetRepo")
    if repo:
        metadata.setdefault("repo", repo)
    if record.get("branch"):
        metadata.setdefault("branch", record["branch"])
    message = record.get("commitMessage") or record.get("commit_message")
    if message:
        metadata.setdefault("commit_message", message)
    if record.get("name"):
        metadata.setdefault("name", record["name"])
    return metadata


def targets_from_record(
    record: Mapping[str, Any],
    default_ignore: Iterable[str] | None = None,
) -> list[WatchTarget]:
    """Convert one store record into watch targets.

    Raises:
        StoreError: If the record has no path.
    """
    default = list(default_ignore or [])
    record_id = str(record.get("id") or uuid.uuid4().hex)
    ignore = _ignore_patterns(record, default)
    priority = Priority.parse(record.get("priority"))
    metadata = _metadata(record)

    paths = record.get("paths")
    if isinstance(paths, list):
        metadata.setdefault("group_id", record_id)
        if record.get("name"):
            metadata.setdefault("group_name", record["name"])
        return [
            WatchTarget(
                id=f"{record_id}_{index}",
                root_path=str(Path(path).expanduser()),
                ignore_patterns=list(ignore),
                priority=priority,
                metadata=dict(metadata),
            )
            for index, path in enumerate(paths)
        ]

    root_path = record.get("rootPath") or record.get("root_path") or record.get("path")
    if not root_path:
        raise StoreError(f"Store record {record_id} has no path")

    return [
        WatchTarget(
            id=record_id,
            root_path=str(Path(root_path).expanduser()),
            ignore_patterns=ignore,
            priority=priority,
            metadata=metadata,
        )
    ]


def load_targets(path: Path, default_ignore: Iterable[str] | None = None) -> list[WatchTarget]:
    """Load the active watch targets from a store file.

    Args:
        path: JSON store file.
        default_ignore: Patterns for records that define none.

    Returns:
        The active targets, in file order. Empty if the file does not exist.

    Raises:
        StoreError: If the file cannot be read or is malformed.
    """
    if not path.exists():
        logger.info("No target store at %s", path)
        return []

    try:
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise StoreError(f"Cannot read target store {path}: {e}") from e

    if not isinstance(records, list):
        raise StoreError(f"Target store {path} must hold a JSON array")

    default = list(default_ignore or [])
    targets: list[WatchTarget] = []
    for record in records:
        if not isinstance(record, dict):
            raise StoreError(f"Invalid record in {path}: {record!r}")
        status = record.get("status", "active")
        if status != "active":
            logger.debug("Skipping %s record %s", status, record.get("id"))
            continue
        targets.extend(targets_from_record(record, default))

    logger.info("Loaded %d watch target(s) from %s", len(targets), path)
    return targets
