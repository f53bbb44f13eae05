"""Transfer commands for the resumeft CLI.

Commands:
- upload: Send a local file to the server
- download: Fetch a file from the server
"""

from __future__ import annotations

import contextlib
import sys
from pathlib import Path
from types import TracebackType
from typing import Any

import click

from resumeft.client.cli.config import build_config
from resumeft.core.types import TransferError, TransferProgress, TransferResult


class ProgressDisplay:
    """Progress bar created on the first update, once the size is known."""

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._stack = contextlib.ExitStack()
        self._bar: Any = None
        self._shown = 0

    def __enter__(self) -> ProgressDisplay:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._stack.close()

    def __call__(self, progress: TransferProgress) -> None:
        if not self._enabled:
            return
        if self._bar is None:
            self._bar = self._stack.enter_context(
                click.progressbar(
                    length=progress.size,
                    label=f"{progress.intent.value} {progress.filename}",
                    file=sys.stderr,
                )
            )
        self._bar.update(progress.position - self._shown)
        self._shown = progress.position


def _options(func: Any) -> Any:
    """Connection options shared by upload and download."""
    func = click.option("--host", default=None, help="Server address (default: 127.0.0.1).")(func)
    func = click.option("--port", "-p", type=int, default=None, help="Server port (default: 9000).")(func)
    func = click.option("--chunk-size", type=int, default=None, help="Payload bytes per chunk.")(func)
    func = click.option("--timeout", type=float, default=None, help="Socket timeout in seconds.")(func)
    func = click.option("--no-progress", is_flag=True, help="Disable the progress bar.")(func)
    return func


def _run(action: str, local_path: Path, remote_name: str | None, no_progress: bool, **options: Any) -> TransferResult:
    from resumeft.client.initiator import TransferClient

    try:
        config = build_config(**options)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with ProgressDisplay(enabled=not no_progress) as display:
        client = TransferClient(config, progress_callback=display)
        try:
            if action == "upload":
                return client.upload(local_path, remote_name)
            return client.download(local_path, remote_name)
        except TransferError as e:
            click.echo(f"\nError: {e}", err=True)
            sys.exit(1)


def _summary(result: TransferResult) -> str:
    resumed = f", resumed at {result.offset}" if result.resumed else ""
    return (
        f"{result.filename}: {result.bytes_transferred} bytes transferred"
        f"{resumed} (size={result.size}, {result.elapsed:.2f}s)"
    )


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "-n", default=None, help="Filename on the server (default: FILE's name).")
@_options
def upload(file: Path, name: str | None, no_progress: bool, **options: Any) -> None:
    """Upload FILE, resuming from what the server already holds."""
    result = _run("upload", file, name, no_progress, **options)
    click.echo(f"Upload finished: {_summary(result)}")


@click.command()
@click.argument("name")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Local destination (default: NAME's file name in the current directory).",
)
@_options
def download(name: str, output: Path | None, no_progress: bool, **options: Any) -> None:
    """Download NAME from the server, resuming a partial local copy."""
    local_path = output or Path(Path(name).name)
    result = _run("download", local_path, name, no_progress, **options)
    click.echo(f"Download complete: {_summary(result)}")
