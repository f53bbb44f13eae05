"""TCP server for resumeft.

This module creates and runs the accept loop with:
- One worker thread per accepted connection
- A shared Responder (and its per-file lock registry)
- Process-wide logging and broken-pipe configuration

Usage:
    resumeft serve --root /srv/files --port 9000
"""

from __future__ import annotations

import logging
import signal
import socket
import socketserver
import sys
import threading
from pathlib import Path

from resumeft.core.config import TransferConfig
from resumeft.core.types import TransferResult
from resumeft.server.locks import PathLocks
from resumeft.server.responder import Responder

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, log_path: Path | None = None) -> None:
    """Configure logging to output to stdout and optionally a file.

    Args:
        level: Log level for the resumeft logger.
        log_path: Optional path to a log file.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("resumeft")
    root_logger.setLevel(level)

    # Avoid duplicate handlers when called more than once
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def ignore_broken_pipe() -> None:
    """Make writes to a closed peer raise instead of killing the process.

    Must be called from the main thread, once, at startup.
    """
    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, signal.SIG_IGN)


class _SessionHandler(socketserver.BaseRequestHandler):
    """Runs one session per accepted connection."""

    server: TransferServer

    def setup(self) -> None:
        timeout = self.server.config.timeout
        if timeout is not None:
            self.request.settimeout(timeout)

    def handle(self) -> None:
        host, port = self.client_address[:2]
        logger.info(f"Client connected: {host}:{port}")
        result = self.server.responder.handle(self.request)
        self.server.record_result(result)


class TransferServer(socketserver.ThreadingTCPServer):
    """Threaded TCP server serving files under config.root.

    Workers share no in-process state except the per-file lock registry.
    """

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, config: TransferConfig, bind_and_activate: bool = True) -> None:
        self.config = config
        self.locks = PathLocks()
        self.responder = Responder(
            config.root,
            chunk_size=config.chunk_size,
            max_filename_length=config.max_filename_length,
            locks=self.locks,
            lock_timeout=config.lock_timeout,
        )
        self.sessions_completed = 0
        self.sessions_failed = 0
        self._counter_lock = threading.Lock()
        super().__init__(config.address, _SessionHandler, bind_and_activate)

    @property
    def port(self) -> int:
        """Get the bound port (useful when configured with port 0)."""
        return int(self.server_address[1])

    def record_result(self, result: TransferResult | None) -> None:
        """Count a finished session; called from worker threads."""
        with self._counter_lock:
            if result is None:
                self.sessions_failed += 1
            else:
                self.sessions_completed += 1

    def handle_error(self, request: socket.socket, client_address: tuple[str, int]) -> None:  # type: ignore[override]
        logger.exception(f"Unhandled error in session from {client_address}")


def run_server(config: TransferConfig) -> None:
    """Serve until interrupted."""
    config.root.mkdir(parents=True, exist_ok=True)
    with TransferServer(config) as server:
        logger.info(
            f"Server listening on {config.host}:{server.port}, serving {config.root.resolve()}"
        )
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down")
