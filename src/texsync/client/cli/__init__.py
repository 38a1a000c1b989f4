"""Command-line interface for texsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init: Configure the textures directory and access token
- status: Check for new commits in the reference repository
- sync: Download texture changes into the managed folder
- verify: Compare local and remote file counts
"""

from __future__ import annotations

import logging

import click

from texsync.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from texsync.client.cli.sync import init, status, sync, verify

LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def setup_logging(verbosity: int) -> None:
    """Send texsync logs to stderr at a level chosen by -v flags."""
    texsync_logger = logging.getLogger("texsync")
    for handler in texsync_logger.handlers[:]:
        texsync_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    texsync_logger.addHandler(handler)
    texsync_logger.setLevel(LOG_LEVELS.get(verbosity, logging.DEBUG))


@click.group()
@click.option("--verbose", "-v", count=True, help="Show more log output (repeatable).")
@click.version_option(package_name="texsync")
def cli(verbose: int) -> None:
    """texsync - Keep an emulator texture pack in sync with its repository."""
    setup_logging(verbose)


# Setup
cli.add_command(init)

# Sync commands
cli.add_command(status)
cli.add_command(sync)
cli.add_command(verify)


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
    "load_config",
    "save_config",
]
