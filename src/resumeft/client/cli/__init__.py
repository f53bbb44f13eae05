"""Command-line interface for resumeft.

This module provides the main CLI entry point and assembles all commands.

Commands:
- upload: Send a file to a server
- download: Fetch a file from a server
- serve: Run a server
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from resumeft.client.cli.config import (
    build_config,
    get_config_dir,
    get_config_file,
    load_config,
)
from resumeft.client.cli.server import serve
from resumeft.client.cli.transfer import download, upload


@click.group()
@click.version_option(package_name="resumeft")
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug).")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this file.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, log_file: Path | None) -> None:
    """resumeft - Resumable single-file transfer."""
    from resumeft.server.app import setup_logging

    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = level
    ctx.obj["log_file"] = log_file
    setup_logging(level, log_file)


# Transfer commands
cli.add_command(upload)
cli.add_command(download)

# Server command
cli.add_command(serve)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "build_config",
    "get_config_dir",
    "get_config_file",
    "load_config",
]
