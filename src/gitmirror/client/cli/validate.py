"""Validate command for the gitmirror CLI.

Commands:
- validate: Check the configured token against the remote API
"""

from __future__ import annotations

import sys

import click

from gitmirror.client.api import RemoteSyncClient
from gitmirror.client.cli import config as cli_config
from gitmirror.core.errors import ConfigError


@click.command()
def validate() -> None:
    """Check that the configured token works."""
    try:
        remote = cli_config.load_remote_config()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with RemoteSyncClient(remote) as client:
        valid = client.validate_credentials()

    if not valid:
        click.echo(f"Error: Token is not valid for {remote.username}.", err=True)
        sys.exit(1)

    click.echo(f"Token is valid for {remote.username} ({remote.owner}/{remote.repo}@{remote.branch}).")
