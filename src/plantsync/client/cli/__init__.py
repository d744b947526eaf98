"""Command-line interface for PlantSync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init: Write the CLI configuration
- add: Add a plant locally
- remove: Delete a plant locally and on the remote
- status: List plants with their sync state
- sync: Push pending local records to the remote
- pull: Merge remote records into the local store
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from plantsync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_db_path,
    load_config,
    save_config,
)
from plantsync.client.cli.plants import add, init, pull, remove, status
from plantsync.client.cli.sync import sync

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure logging for the plantsync logger.

    Args:
        verbose: Log at DEBUG level instead of WARNING.
        log_file: Optional file receiving the same records.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("plantsync")
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # Stderr handler (stdout is reserved for command output)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


@click.group()
@click.version_option(package_name="plantsync")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this file.",
)
def cli(verbose: bool, log_file: Path | None) -> None:
    """PlantSync - Offline-first plant collection sync."""
    setup_logging(verbose, log_file)


# Plant commands
cli.add_command(init)
cli.add_command(add)
cli.add_command(remove)
cli.add_command(status)

# Sync commands
cli.add_command(sync)
cli.add_command(pull)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    "setup_logging",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_db_path",
    "load_config",
    "save_config",
]
