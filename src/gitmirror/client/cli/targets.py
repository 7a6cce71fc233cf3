"""Targets command for the gitmirror CLI.

Commands:
- targets: List the active watch targets of the store
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from gitmirror.client.cli import config as cli_config
from gitmirror.client.store import load_targets
from gitmirror.core.errors import ConfigError, StoreError


@click.command()
@click.option(
    "--targets",
    "targets_file",
    type=click.Path(path_type=Path),
    help="JSON store of watch targets (default: ~/.gitmirror/targets.json).",
)
def targets(targets_file: Path | None) -> None:
    """List the active watch targets."""
    try:
        settings = cli_config.load_settings()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    store_path = targets_file or settings.targets_file or cli_config.get_targets_file()

    try:
        loaded = load_targets(store_path, settings.ignore_patterns)
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not loaded:
        click.echo(f"No active targets in {store_path}")
        return

    for target in loaded:
        repo = target.metadata.get("repo") or "(default repo)"
        exists = "" if Path(target.root_path).exists() else "  [missing]"
        click.echo(f"{target.id}  {target.priority.value:<6}  {target.root_path} -> {repo}{exists}")
