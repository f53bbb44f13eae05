"""Per-file mutual exclusion for concurrent sessions.

Sessions run in independent threads and share nothing but the
filesystem. Two sessions writing the same destination (or reading it
while another writes it) would corrupt both the file and its progress
record, so every session holds the lock for its resolved path for its
whole lifetime.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from resumeft.core.types import LocalIOError

logger = logging.getLogger(__name__)


class TransferBusyError(LocalIOError):
    """Another session holds the same file."""


class PathLocks:
    """Registry of one lock per path.

    Entries are reference counted and dropped once no session holds or
    waits for them, so the registry does not grow with every filename
    ever served.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Path, threading.Lock] = {}
        self._refs: dict[Path, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _retain(self, path: Path) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.Lock()
                self._locks[path] = lock
            self._refs[path] = self._refs.get(path, 0) + 1
            return lock

    def _release(self, path: Path) -> None:
        with self._guard:
            self._refs[path] -= 1
            if self._refs[path] == 0:
                del self._refs[path]
                del self._locks[path]

    @contextmanager
    def hold(self, path: Path, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for path.

        Args:
            path: Resolved file path.
            timeout: Seconds to wait; None waits forever.

        Raises:
            TransferBusyError: If the lock is not acquired in time.
        """
        lock = self._retain(path)
        try:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
            if not acquired:
                raise TransferBusyError(f"{path.name} is busy in another session")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release(path)
