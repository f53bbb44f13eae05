"""Durable progress records for resumable transfers.

This module provides:
- ProgressLedger: One record per target file, stored next to it
- LedgerWriteError: Raised when a record cannot be persisted

A record is a human-readable decimal byte count followed by a newline,
stored as ``<target>.progress``. Updates go through
``<target>.progress.tmp``: the temporary file is written, flushed and
fsynced, then atomically renamed over the record, so a reader only ever
sees the previous value or the new one.

The absence of a record means no known in-progress transfer.
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path

from resumeft.core.types import LocalIOError

logger = logging.getLogger(__name__)

LEDGER_SUFFIX = ".progress"
TMP_SUFFIX = ".tmp"


class LedgerWriteError(LocalIOError):
    """Failed to persist a progress record."""


def ledger_path_for(target: Path) -> Path:
    """Get the record path for a target file."""
    return target.with_name(target.name + LEDGER_SUFFIX)


def _fsync_directory(directory: Path) -> None:
    """Flush a directory entry change to disk where the platform allows it."""
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


class ProgressLedger:
    """Progress record for a single target file.

    The recorded value never decreases during the lifetime of one
    ledger instance, and callers record it only after the matching
    file bytes are durable.
    """

    def __init__(self, target: Path | str) -> None:
        """Initialize the ledger.

        Args:
            target: Path of the file being written.
        """
        self._target = Path(target)
        self._path = ledger_path_for(self._target)
        self._tmp_path = self._path.with_name(self._path.name + TMP_SUFFIX)
        self._last: int | None = None

    @property
    def target(self) -> Path:
        return self._target

    @property
    def path(self) -> Path:
        return self._path

    @property
    def tmp_path(self) -> Path:
        return self._tmp_path

    @property
    def exists(self) -> bool:
        """Check if a record is present on disk."""
        return self._path.exists()

    def read(self) -> int | None:
        """Read the recorded byte count.

        Returns:
            The recorded value, or None if there is no usable record.
        """
        try:
            text = self._path.read_text(encoding="ascii")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read progress record {self._path}: {e}")
            return None

        text = text.strip()
        if not text.isdigit():
            logger.warning(f"Ignoring malformed progress record {self._path}: {text[:32]!r}")
            return None
        return int(text)

    def record(self, value: int) -> None:
        """Atomically persist a new byte count.

        Args:
            value: Confirmed byte count.

        Raises:
            ValueError: If value is negative or lower than the last
                recorded value.
            LedgerWriteError: If the record cannot be written.
        """
        if value < 0:
            raise ValueError(f"Progress must not be negative: {value}")
        if self._last is not None and value < self._last:
            raise ValueError(
                f"Progress must not go backwards: {value} < {self._last}"
            )

        try:
            with open(self._tmp_path, "w", encoding="ascii") as f:
                f.write(f"{value}\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(self._tmp_path, self._path)
        except OSError as e:
            with contextlib.suppress(OSError):
                self._tmp_path.unlink()
            raise LedgerWriteError(
                f"Failed to write progress record {self._path}: {e}"
            ) from e

        _fsync_directory(self._path.parent)
        self._last = value

    def clear(self) -> None:
        """Remove the record and any stray temporary file."""
        for path in (self._path, self._tmp_path):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise LocalIOError(f"Failed to remove progress record {path}: {e}") from e
        self._last = None

    def __repr__(self) -> str:
        return f"ProgressLedger({str(self._target)!r})"
