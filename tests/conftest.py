"""Shared pytest fixtures.

Two-peer protocol tests run one side in a background thread over a
socket pair; end-to-end tests run a real TransferServer on an
ephemeral port.
"""

from __future__ import annotations

import socket
import threading
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from resumeft.core.config import TransferConfig
from resumeft.server.app import TransferServer


def make_payload(size: int) -> bytes:
    """Deterministic, non-repeating-per-chunk test content."""
    return bytes((i * 7 + i // 251) % 256 for i in range(size))


class Peer:
    """Runs a callable in a thread and hands back its result or exception."""

    def __init__(self, func: Callable[[], Any]) -> None:
        self._func = func
        self._result: Any = None
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            self._result = self._func()
        except BaseException as e:  # re-raised in join()
            self._error = e

    def join(self, timeout: float = 10.0) -> Any:
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise TimeoutError("Peer thread did not finish")
        if self._error is not None:
            raise self._error
        return self._result


@pytest.fixture
def payload() -> Callable[[int], bytes]:
    """Factory for deterministic test content."""
    return make_payload


@pytest.fixture
def socket_pair() -> Generator[tuple[socket.socket, socket.socket], None, None]:
    """A connected pair of stream sockets with a safety timeout."""
    a, b = socket.socketpair()
    a.settimeout(10.0)
    b.settimeout(10.0)
    yield a, b
    a.close()
    b.close()


@pytest.fixture
def run_peer() -> Callable[[Callable[[], Any]], Peer]:
    """Start a callable in a background thread."""
    return Peer


@pytest.fixture
def served_root(tmp_path: Path) -> Path:
    """Directory served by the test server."""
    root = tmp_path / "served"
    root.mkdir()
    return root


@pytest.fixture
def transfer_server(served_root: Path) -> Generator[TransferServer, None, None]:
    """A running TransferServer bound to an ephemeral port."""
    config = TransferConfig(port=0, root=served_root, timeout=10.0, lock_timeout=5.0)
    server = TransferServer(config)
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join(timeout=5.0)


@pytest.fixture
def client_config(transfer_server: TransferServer) -> TransferConfig:
    """Client configuration pointing at the test server."""
    return TransferConfig(port=transfer_server.port, timeout=10.0)
