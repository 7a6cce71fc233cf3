"""Command-line interface for gitmirror.

This module provides the main CLI entry point and assembles all commands.

Commands:
- watch: Mirror local changes to the remote repository
- targets: List the active watch targets
- validate: Check the configured token
"""

from __future__ import annotations

import click

from gitmirror.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_targets_file,
    load_config,
)
from gitmirror.client.cli.targets import targets
from gitmirror.client.cli.validate import validate
from gitmirror.client.cli.watch import watch


@click.group()
@click.version_option(package_name="gitmirror")
def cli() -> None:
    """gitmirror - Mirror local file changes to a remote repository."""


cli.add_command(watch)
cli.add_command(targets)
cli.add_command(validate)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_targets_file",
    "load_config",
]
