"""Chunked transfer loops for the sending and receiving sides.

This module provides:
- TransferStats: Counters and timing for one session
- send_range: Stream a byte range of a local file to the peer
- prepare_destination: Open the destination positioned at the agreed offset
- receive_range: Receive bytes into the destination, recording progress

There are no chunk-level acknowledgements: flow control comes from the
transport. The receiving side is bounded by the size declared during
negotiation, never by end-of-stream, so an early disconnect is an error
and not a short "success".
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from resumeft.core.ledger import LedgerWriteError, ProgressLedger
from resumeft.core.types import LocalIOError
from resumeft.core.wire import ReliableStream

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8192

# Called after every chunk with (position, size)
ChunkCallback = Callable[[int, int], None]


@dataclass
class TransferStats:
    """Counters for one transfer loop.

    bytes_sent is purely observational: the sender never needs it for
    correctness since negotiation decides where to resume.
    """

    bytes_sent: int = 0
    bytes_received: int = 0
    chunks: int = 0
    ledger_failures: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def bytes_transferred(self) -> int:
        return self.bytes_sent + self.bytes_received

    @property
    def elapsed(self) -> float:
        end = self.end_ts if self.end_ts is not None else time.monotonic()
        return max(0.0, end - self.start_ts)


def _record_progress(ledger: ProgressLedger, value: int, stats: TransferStats) -> None:
    """Persist progress; a failure only costs a re-sent chunk on resume."""
    try:
        ledger.record(value)
    except LedgerWriteError as e:
        stats.ledger_failures += 1
        logger.warning(f"{e}; continuing without this update")


def _clear_progress(ledger: ProgressLedger) -> None:
    try:
        ledger.clear()
    except LocalIOError as e:
        logger.warning(str(e))


def send_range(
    stream: ReliableStream,
    fileobj: BinaryIO,
    offset: int,
    count: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    ledger: ProgressLedger | None = None,
    on_chunk: ChunkCallback | None = None,
) -> TransferStats:
    """Send count bytes of a file starting at offset.

    Args:
        stream: Connected stream.
        fileobj: Source file opened in binary read mode.
        offset: First byte to send.
        count: Exact number of bytes to send.
        chunk_size: Bytes per write.
        ledger: Optional record of bytes sent (observational only).
        on_chunk: Optional callback after each chunk.

    Returns:
        Stats for the loop.

    Raises:
        LocalIOError: If the file cannot be read or ends early.
        TransportError: If the peer stops accepting bytes.
    """
    stats = TransferStats()
    size = offset + count

    try:
        fileobj.seek(offset)
    except OSError as e:
        raise LocalIOError(f"Cannot seek to {offset}: {e}") from e

    remaining = count
    while remaining > 0:
        try:
            data = fileobj.read(min(chunk_size, remaining))
        except OSError as e:
            raise LocalIOError(f"Read failed at {offset + stats.bytes_sent}: {e}") from e
        if not data:
            raise LocalIOError(
                f"File ended at {offset + stats.bytes_sent}, expected {size} bytes "
                f"(changed during transfer?)"
            )

        stream.write_exact(data)
        stats.bytes_sent += len(data)
        stats.chunks += 1
        remaining -= len(data)
        position = offset + stats.bytes_sent

        if ledger is not None:
            _record_progress(ledger, position, stats)
        if on_chunk:
            on_chunk(position, size)

    stats.end_ts = time.monotonic()
    logger.debug(f"Sent {stats.bytes_sent} bytes in {stats.chunks} chunks")
    return stats


def prepare_destination(path: Path, offset: int) -> BinaryIO:
    """Open the destination for writing at exactly offset.

    Creates the file if missing. Bytes beyond offset (left over from an
    earlier attempt) are truncated away before any new bytes land.

    Args:
        path: Destination file.
        offset: Agreed offset.

    Returns:
        File object positioned at offset. Caller closes it.

    Raises:
        LocalIOError: If the file cannot be opened, truncated or is
            shorter than offset.
    """
    try:
        try:
            f = open(path, "r+b")
        except FileNotFoundError:
            path.parent.mkdir(parents=True, exist_ok=True)
            f = open(path, "w+b")
    except OSError as e:
        raise LocalIOError(f"Cannot open {path}: {e}") from e

    try:
        current = os.fstat(f.fileno()).st_size
        if current < offset:
            raise LocalIOError(
                f"{path} holds {current} bytes, less than agreed offset {offset}"
            )
        if current > offset:
            logger.info(f"Truncating {path.name} from {current} to {offset} bytes")
            f.truncate(offset)
            f.flush()
            os.fsync(f.fileno())
        f.seek(offset)
    except OSError as e:
        f.close()
        raise LocalIOError(f"Cannot prepare {path} at {offset}: {e}") from e
    except LocalIOError:
        f.close()
        raise
    return f


def receive_range(
    stream: ReliableStream,
    fileobj: BinaryIO,
    offset: int,
    size: int,
    ledger: ProgressLedger,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_chunk: ChunkCallback | None = None,
) -> TransferStats:
    """Receive bytes [offset, size) into fileobj, recording progress.

    Each chunk is written, flushed and fsynced before the ledger is
    updated, so the record never claims more than is on disk. On
    success the record is removed; on failure it keeps its last value.

    Args:
        stream: Connected stream.
        fileobj: Destination positioned at offset (see prepare_destination).
        offset: Agreed offset.
        size: Total size declared by the authoritative side.
        ledger: Progress ledger for the destination.
        chunk_size: Bytes per read.
        on_chunk: Optional callback after each chunk.

    Returns:
        Stats for the loop.

    Raises:
        TransportError: If the peer disconnects before size is reached.
        LocalIOError: If the destination cannot be written.
    """
    stats = TransferStats()

    recorded = ledger.read()
    if recorded is not None and recorded > offset:
        # Destination was truncated below the old record
        _record_progress(ledger, offset, stats)

    cursor = offset
    while cursor < size:
        data = stream.read_exact(min(chunk_size, size - cursor))
        try:
            fileobj.write(data)
            fileobj.flush()
            os.fsync(fileobj.fileno())
        except OSError as e:
            raise LocalIOError(f"Write failed at {cursor}: {e}") from e

        cursor += len(data)
        stats.bytes_received += len(data)
        stats.chunks += 1
        _record_progress(ledger, cursor, stats)
        if on_chunk:
            on_chunk(cursor, size)

    _clear_progress(ledger)
    stats.end_ts = time.monotonic()
    logger.debug(f"Received {stats.bytes_received} bytes in {stats.chunks} chunks")
    return stats
