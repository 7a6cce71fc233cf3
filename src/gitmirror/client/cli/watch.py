"""Watch command for the gitmirror CLI.

Commands:
- watch: Mirror local changes to the remote repository until interrupted
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import click

from gitmirror.client.cli import config as cli_config
from gitmirror.client.service import MirrorService
from gitmirror.client.store import load_targets
from gitmirror.client.sync.types import WatchTarget
from gitmirror.core.errors import ConfigError, StoreError
from gitmirror.core.logging_config import setup_logging
from gitmirror.core.types import Priority

logger = logging.getLogger(__name__)


def wait_for_interrupt(interval: float = 1.0) -> None:
    """Block until Ctrl+C."""
    try:
        while True:
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("\nStopping...")


@click.command()
@click.option(
    "--targets",
    "targets_file",
    type=click.Path(path_type=Path),
    help="JSON store of watch targets (default: ~/.gitmirror/targets.json).",
)
@click.option(
    "--path",
    "watch_path",
    type=click.Path(path_type=Path),
    help="Watch a single file or directory instead of the target store.",
)
@click.option("--repo", help="Repository for --path (default: configured repository).")
@click.option("--branch", help="Branch for --path (default: configured branch).")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in Priority]),
    default=Priority.MEDIUM.value,
    show_default=True,
    help="Priority for --path.",
)
@click.option("--initial-sync", is_flag=True, help="Upload current content before watching.")
@click.option("--debounce-ms", type=int, help="Quiet period before changes are uploaded.")
@click.option("--skip-validation", is_flag=True, help="Do not check the token before starting.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def watch(
    targets_file: Path | None,
    watch_path: Path | None,
    repo: str | None,
    branch: str | None,
    priority: str,
    initial_sync: bool,
    debounce_ms: int | None,
    skip_validation: bool,
    verbose: bool,
) -> None:
    """Mirror file changes to the remote repository.

    Watches every active target of the store, or the single --path, and
    commits each debounced batch of changes. Runs until interrupted.
    """
    try:
        settings = cli_config.load_settings()
        remote = cli_config.load_remote_config()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_file)

    if debounce_ms is not None:
        settings.debounce_ms = debounce_ms

    watch_path = watch_path or settings.watch_path
    if watch_path is not None:
        metadata: dict[str, str] = {"commit_message": settings.commit_message}
        if repo:
            metadata["repo"] = repo
        if branch:
            metadata["branch"] = branch
        targets = [
            WatchTarget.create(
                str(watch_path.expanduser().resolve()),
                ignore_patterns=settings.ignore_patterns,
                priority=priority,
                metadata=metadata,
            )
        ]
    else:
        store_path = targets_file or settings.targets_file or cli_config.get_targets_file()
        try:
            targets = load_targets(store_path, settings.ignore_patterns)
        except StoreError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    if not targets:
        click.echo("Error: No watch targets. Use --path or add targets to the store.", err=True)
        sys.exit(1)

    service = MirrorService(remote, settings)

    if not skip_validation and not service.uploader.client_for({}).validate_credentials():
        click.echo("Error: Remote credentials are invalid.", err=True)
        service.stop()
        sys.exit(1)

    started = service.start(targets, initial_sync=initial_sync)
    if started == 0:
        click.echo("Error: No target could be watched.", err=True)
        service.stop()
        sys.exit(1)

    click.echo(f"Watching {started} target(s)... (Ctrl+C to stop)")
    try:
        wait_for_interrupt()
    finally:
        service.stop()

    stats = service.stats.snapshot()
    click.echo(
        f"Uploaded {stats['uploads_success']}, failed {stats['uploads_failed']}, "
        f"deleted {stats['deletes']}."
    )
