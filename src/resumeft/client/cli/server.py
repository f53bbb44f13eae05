"""Server command for the resumeft CLI.

Commands:
- serve: Accept sessions and serve files under a root directory
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from resumeft.client.cli.config import build_config


@click.command()
@click.option("--host", default=None, help="Address to bind (default: 127.0.0.1).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default: 9000).")
@click.option(
    "--root",
    "-r",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to serve (default: current directory).",
)
@click.option("--chunk-size", type=int, default=None, help="Payload bytes per chunk.")
@click.option("--timeout", type=float, default=None, help="Per-connection socket timeout in seconds.")
@click.option(
    "--lock-timeout",
    type=float,
    default=None,
    help="Seconds a session waits for another session on the same file.",
)
@click.pass_context
def serve(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    root: Path | None,
    chunk_size: int | None,
    timeout: float | None,
    lock_timeout: float | None,
) -> None:
    """Serve files for upload and download.

    Each connection runs in its own thread. Sessions targeting the same
    file are serialised.

    Examples:

        # Serve ./files on all interfaces
        resumeft serve --host 0.0.0.0 --root ./files
    """
    from resumeft.server.app import ignore_broken_pipe, run_server, setup_logging

    try:
        config = build_config(
            host=host,
            port=port,
            root=root,
            chunk_size=chunk_size,
            timeout=timeout,
            lock_timeout=lock_timeout,
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    obj = ctx.find_object(dict) or {}
    level = obj.get("log_level", logging.WARNING)
    setup_logging(min(level, logging.INFO), obj.get("log_file"))
    ignore_broken_pipe()

    try:
        run_server(config)
    except OSError as e:
        click.echo(f"Error: cannot listen on {config.host}:{config.port}: {e}", err=True)
        sys.exit(1)
