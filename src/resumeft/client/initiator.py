"""Transfer Initiator (client role).

This module provides:
- Initiator: Runs one upload or download session over a connected stream
- TransferClient: Opens a TCP connection and runs an Initiator on it

Upload resumes from what the server proves it already holds on disk.
The client's own progress record for an upload is observational only
and is never used to pick the offset: if the server copy was truncated
or deleted between attempts, the server's answer is still correct.
"""

from __future__ import annotations

import logging
import socket
import time
from pathlib import Path

from resumeft.core.config import TransferConfig
from resumeft.core.header import MAX_FILENAME_LENGTH, send_header
from resumeft.core.ledger import ProgressLedger
from resumeft.core.negotiation import (
    initiator_offer_upload,
    initiator_request_download,
    local_resume_point,
)
from resumeft.core.retry import DEFAULT_IO_POLICY, RetryPolicy
from resumeft.core.transfer import (
    DEFAULT_CHUNK_SIZE,
    ChunkCallback,
    prepare_destination,
    receive_range,
    send_range,
)
from resumeft.core.types import (
    Intent,
    LocalIOError,
    ProgressCallback,
    SessionHeader,
    TransferProgress,
    TransferResult,
    TransportError,
)
from resumeft.core.wire import ByteStream, ReliableStream

logger = logging.getLogger(__name__)


class Initiator:
    """Runs the client side of a single session."""

    def __init__(
        self,
        stream: ByteStream,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: ProgressCallback | None = None,
        track_upload_progress: bool = True,
        max_filename_length: int = MAX_FILENAME_LENGTH,
        policy: RetryPolicy = DEFAULT_IO_POLICY,
    ) -> None:
        """Initialize the initiator.

        Args:
            stream: Connected byte stream (consumed by one session).
            chunk_size: Payload bytes per chunk.
            progress_callback: Optional callback for progress updates.
            track_upload_progress: Keep a progress record while uploading.
            max_filename_length: Largest filename the peer accepts.
            policy: Retry policy for transient I/O conditions.
        """
        self._stream = ReliableStream(stream, policy)
        self._chunk_size = chunk_size
        self._progress_callback = progress_callback
        self._track_upload_progress = track_upload_progress
        self._max_filename_length = max_filename_length

    def _reporter(self, filename: str, intent: Intent, offset: int) -> ChunkCallback | None:
        if not self._progress_callback:
            return None
        callback = self._progress_callback

        def report(position: int, size: int) -> None:
            callback(TransferProgress(
                filename=filename,
                intent=intent,
                size=size,
                position=position,
                bytes_transferred=position - offset,
            ))

        return report

    def upload(self, local_path: Path | str, remote_name: str | None = None) -> TransferResult:
        """Upload a local file, resuming from what the server already has.

        Args:
            local_path: File to send.
            remote_name: Filename announced to the server (defaults to
                the local file name).

        Returns:
            TransferResult for the session.

        Raises:
            TransferError: If the session fails at any step.
        """
        local_path = Path(local_path)
        filename = remote_name or local_path.name
        start = time.monotonic()

        try:
            source = open(local_path, "rb")
        except OSError as e:
            raise LocalIOError(f"Cannot open {local_path}: {e}") from e

        with source:
            try:
                size = local_path.stat().st_size
            except OSError as e:
                raise LocalIOError(f"Cannot stat {local_path}: {e}") from e

            header = SessionHeader(intent=Intent.UPLOAD, filename=filename)
            send_header(self._stream, header, self._max_filename_length)
            agreed = initiator_offer_upload(self._stream, size)
            logger.info(f"Uploading {filename}: size={size}, agreed offset={agreed}")

            ledger = ProgressLedger(local_path) if self._track_upload_progress else None
            stats = send_range(
                self._stream,
                source,
                agreed,
                size - agreed,
                chunk_size=self._chunk_size,
                ledger=ledger,
                on_chunk=self._reporter(filename, Intent.UPLOAD, agreed),
            )

        if ledger is not None:
            try:
                ledger.clear()
            except LocalIOError as e:
                logger.warning(str(e))

        result = TransferResult(
            intent=Intent.UPLOAD,
            filename=filename,
            size=size,
            offset=agreed,
            bytes_transferred=stats.bytes_transferred,
            elapsed=time.monotonic() - start,
        )
        logger.info(f"Upload finished: {filename} sent={stats.bytes_sent} total={size}")
        return result

    def download(self, local_path: Path | str, remote_name: str | None = None) -> TransferResult:
        """Download a file, resuming from what is already on disk.

        Args:
            local_path: Destination file.
            remote_name: Filename requested from the server (defaults to
                the local file name).

        Returns:
            TransferResult for the session.

        Raises:
            TransferError: If the session fails at any step.
        """
        local_path = Path(local_path)
        filename = remote_name or local_path.name
        start = time.monotonic()

        ledger = ProgressLedger(local_path)
        client_offset = local_resume_point(local_path, ledger)

        header = SessionHeader(intent=Intent.DOWNLOAD, filename=filename)
        send_header(self._stream, header, self._max_filename_length)
        size, server_offset = initiator_request_download(self._stream, client_offset)
        logger.info(
            f"Downloading {filename}: size={size}, client offset={client_offset}, "
            f"server offset={server_offset}"
        )

        with prepare_destination(local_path, server_offset) as dest:
            stats = receive_range(
                self._stream,
                dest,
                server_offset,
                size,
                ledger,
                chunk_size=self._chunk_size,
                on_chunk=self._reporter(filename, Intent.DOWNLOAD, server_offset),
            )

        result = TransferResult(
            intent=Intent.DOWNLOAD,
            filename=filename,
            size=size,
            offset=server_offset,
            bytes_transferred=stats.bytes_transferred,
            elapsed=time.monotonic() - start,
        )
        logger.info(f"Download complete: {filename} (size={size})")
        return result


class TransferClient:
    """Connects to a server and runs one session per call."""

    def __init__(
        self,
        config: TransferConfig,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self._config = config
        self._progress_callback = progress_callback

    def _connect(self) -> socket.socket:
        try:
            return socket.create_connection(self._config.address, timeout=self._config.timeout)
        except OSError as e:
            raise TransportError(
                f"Cannot connect to {self._config.host}:{self._config.port}: {e}"
            ) from e

    def _initiator(self, sock: socket.socket) -> Initiator:
        return Initiator(
            sock,
            chunk_size=self._config.chunk_size,
            progress_callback=self._progress_callback,
            track_upload_progress=self._config.track_upload_progress,
            max_filename_length=self._config.max_filename_length,
        )

    def upload(self, local_path: Path | str, remote_name: str | None = None) -> TransferResult:
        """Upload a file over a fresh connection."""
        with self._connect() as sock:
            return self._initiator(sock).upload(local_path, remote_name)

    def download(self, local_path: Path | str, remote_name: str | None = None) -> TransferResult:
        """Download a file over a fresh connection."""
        with self._connect() as sock:
            return self._initiator(sock).download(local_path, remote_name)
