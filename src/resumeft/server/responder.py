"""Transfer Responder (server role).

This module provides:
- resolve_target: Map a header filename to a path under the served root
- Responder: Runs the server side of one session on a connected stream

The Responder reads the header, reconciles its local file against the
peer's starting point, replies with the agreed offset and then streams
bytes. A malformed header is answered with silence: the caller closes
the connection.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from resumeft.core.header import MAX_FILENAME_LENGTH, read_header
from resumeft.core.ledger import LEDGER_SUFFIX, TMP_SUFFIX, ProgressLedger
from resumeft.core.negotiation import (
    local_resume_point,
    local_size,
    responder_accept_upload,
    responder_offer_download,
)
from resumeft.core.retry import DEFAULT_IO_POLICY, RetryPolicy
from resumeft.core.transfer import (
    DEFAULT_CHUNK_SIZE,
    prepare_destination,
    receive_range,
    send_range,
)
from resumeft.core.types import (
    Intent,
    LocalIOError,
    MalformedHeaderError,
    SessionHeader,
    TransferError,
    TransferResult,
)
from resumeft.core.wire import ByteStream, ReliableStream
from resumeft.server.locks import PathLocks

logger = logging.getLogger(__name__)


def resolve_target(root: Path, filename: str) -> Path:
    """Resolve a header filename against the served root.

    Args:
        root: Served directory.
        filename: Filename from the session header.

    Returns:
        Absolute path inside root.

    Raises:
        MalformedHeaderError: If the name is absolute, names the root,
            escapes it or names a progress record.
    """
    relative = Path(filename)
    if relative.name.endswith((LEDGER_SUFFIX, LEDGER_SUFFIX + TMP_SUFFIX)):
        raise MalformedHeaderError(f"Progress records cannot be transferred: {filename!r}")
    if relative.is_absolute():
        raise MalformedHeaderError(f"Absolute filename not allowed: {filename!r}")

    base = root.resolve()
    target = (base / relative).resolve()
    if target == base or base not in target.parents:
        raise MalformedHeaderError(f"Filename escapes served root: {filename!r}")
    return target


class Responder:
    """Serves sessions against files under a root directory."""

    def __init__(
        self,
        root: Path | str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_filename_length: int = MAX_FILENAME_LENGTH,
        locks: PathLocks | None = None,
        lock_timeout: float | None = None,
        policy: RetryPolicy = DEFAULT_IO_POLICY,
    ) -> None:
        """Initialize the responder.

        Args:
            root: Directory files are read from and written to.
            chunk_size: Payload bytes per chunk.
            max_filename_length: Largest filename accepted in a header.
            locks: Shared per-file lock registry.
            lock_timeout: Seconds to wait for a busy file.
            policy: Retry policy for transient I/O conditions.
        """
        self._root = Path(root)
        self._chunk_size = chunk_size
        self._max_filename_length = max_filename_length
        self._locks = locks if locks is not None else PathLocks()
        self._lock_timeout = lock_timeout
        self._policy = policy

    @property
    def root(self) -> Path:
        return self._root

    @property
    def locks(self) -> PathLocks:
        return self._locks

    def handle(self, stream: ByteStream) -> TransferResult | None:
        """Serve one session.

        Never raises for protocol, transport or local I/O failures: those
        abort the session, are logged, and yield None. The caller closes
        the connection either way.

        Args:
            stream: Connected byte stream.

        Returns:
            TransferResult on success, None if the session was aborted.
        """
        reliable = ReliableStream(stream, self._policy)
        try:
            header = read_header(reliable, self._max_filename_length)
        except MalformedHeaderError as e:
            logger.warning(f"Rejected session header: {e}")
            return None
        except TransferError as e:
            logger.warning(f"Session ended during header: {e}")
            return None

        try:
            return self.serve(reliable, header)
        except TransferError as e:
            logger.error(
                f"{header.intent.value} of {header.filename!r} aborted "
                f"({type(e).__name__}): {e}"
            )
            return None

    def serve(self, stream: ReliableStream, header: SessionHeader) -> TransferResult:
        """Run negotiation and transfer for an already-read header.

        Raises:
            TransferError: If the session fails.
        """
        target = resolve_target(self._root, header.filename)
        with self._locks.hold(target, self._lock_timeout):
            if header.intent is Intent.UPLOAD:
                return self._receive_upload(stream, header, target)
            return self._send_download(stream, header, target)

    def _receive_upload(
        self,
        stream: ReliableStream,
        header: SessionHeader,
        target: Path,
    ) -> TransferResult:
        start = time.monotonic()
        ledger = ProgressLedger(target)
        existing = local_resume_point(target, ledger)
        size, agreed = responder_accept_upload(stream, existing)
        logger.info(
            f"Upload {header.filename!r}: size={size}, existing={existing}, agreed={agreed}"
        )

        with prepare_destination(target, agreed) as dest:
            stats = receive_range(
                stream,
                dest,
                agreed,
                size,
                ledger,
                chunk_size=self._chunk_size,
            )

        logger.info(f"Upload {header.filename!r} complete: received={stats.bytes_received}")
        return TransferResult(
            intent=Intent.UPLOAD,
            filename=header.filename,
            size=size,
            offset=agreed,
            bytes_transferred=stats.bytes_transferred,
            elapsed=time.monotonic() - start,
        )

    def _send_download(
        self,
        stream: ReliableStream,
        header: SessionHeader,
        target: Path,
    ) -> TransferResult:
        start = time.monotonic()
        try:
            source = open(target, "rb")
        except OSError as e:
            raise LocalIOError(f"Cannot open {target}: {e}") from e

        with source:
            size = local_size(target)

            client_offset, server_offset = responder_offer_download(stream, size)
            logger.info(
                f"Download {header.filename!r}: size={size}, "
                f"client offset={client_offset}, server offset={server_offset}"
            )
            stats = send_range(
                stream,
                source,
                server_offset,
                size - server_offset,
                chunk_size=self._chunk_size,
            )

        logger.info(f"Download {header.filename!r} complete: sent={stats.bytes_sent}")
        return TransferResult(
            intent=Intent.DOWNLOAD,
            filename=header.filename,
            size=size,
            offset=server_offset,
            bytes_transferred=stats.bytes_transferred,
            elapsed=time.monotonic() - start,
        )
