"""Offset negotiation for both session directions.

Upload: the Initiator is authoritative for size. It sends the size, the
Responder replies with how much it already holds (clamped to size).

Download: the Responder is authoritative for size. The Initiator sends
how much it already holds, the Responder replies with the size and the
clamped offset.

In both directions an over-length candidate is clamped down to the
size and never treated as an error: the transfer is simply already
complete. Once agreed, the offset is fixed for the session.
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path

from resumeft.core.ledger import ProgressLedger
from resumeft.core.types import LocalIOError, ProtocolViolationError
from resumeft.core.wire import ReliableStream

logger = logging.getLogger(__name__)


def clamp_offset(candidate: int, size: int) -> int:
    """Clamp a candidate offset to the authoritative size."""
    if candidate < 0 or size < 0:
        raise ValueError(f"Offsets must not be negative: {candidate}, {size}")
    return min(candidate, size)


def check_offset(offset: int, size: int) -> None:
    """Validate an offset received from the peer.

    Raises:
        ProtocolViolationError: If offset is beyond size.
    """
    if offset > size:
        raise ProtocolViolationError(f"Peer offset {offset} exceeds file size {size}")


def local_size(path: Path) -> int:
    """Get the on-disk size of a file, 0 if it does not exist.

    Raises:
        LocalIOError: If the path cannot be inspected or is not a
            regular file.
    """
    try:
        st = path.stat()
    except FileNotFoundError:
        return 0
    except OSError as e:
        raise LocalIOError(f"Cannot stat {path}: {e}") from e
    if not stat.S_ISREG(st.st_mode):
        raise LocalIOError(f"Not a regular file: {path}")
    return st.st_size


def local_resume_point(path: Path, ledger: ProgressLedger | None = None) -> int:
    """Compute how many bytes the receiving side can claim to hold.

    Starts from the on-disk size. If a progress record exists and is
    smaller, it wins: after a crash the file may hold bytes that were
    never confirmed, and claiming them could skip unwritten data.

    Args:
        path: Destination file.
        ledger: Progress ledger for the destination, if any.

    Returns:
        Candidate resume offset.
    """
    on_disk = local_size(path)
    if ledger is None:
        return on_disk

    recorded = ledger.read()
    if recorded is not None and recorded < on_disk:
        logger.info(
            f"{path.name}: {on_disk} bytes on disk but only {recorded} confirmed, "
            f"resuming from {recorded}"
        )
        return recorded
    return on_disk


def initiator_offer_upload(stream: ReliableStream, size: int) -> int:
    """Send the upload size and receive the agreed offset.

    Returns:
        Agreed offset, validated against size.

    Raises:
        ProtocolViolationError: If the Responder agrees beyond size.
    """
    stream.write_u64(size)
    agreed = stream.read_u64()
    check_offset(agreed, size)
    return agreed


def responder_accept_upload(stream: ReliableStream, existing: int) -> tuple[int, int]:
    """Receive the upload size and reply with the agreed offset.

    Args:
        stream: Connected stream.
        existing: Bytes the Responder already holds for the target.

    Returns:
        Tuple of (size, agreed offset).
    """
    size = stream.read_u64()
    agreed = clamp_offset(existing, size)
    stream.write_u64(agreed)
    return size, agreed


def initiator_request_download(stream: ReliableStream, client_offset: int) -> tuple[int, int]:
    """Send the local offset and receive size and server offset.

    Returns:
        Tuple of (size, server offset), validated.

    Raises:
        ProtocolViolationError: If the server offset exceeds size.
    """
    stream.write_u64(client_offset)
    size = stream.read_u64()
    server_offset = stream.read_u64()
    check_offset(server_offset, size)
    return size, server_offset


def responder_offer_download(stream: ReliableStream, size: int) -> tuple[int, int]:
    """Receive the client offset and reply with size and server offset.

    Returns:
        Tuple of (client offset, server offset).
    """
    client_offset = stream.read_u64()
    server_offset = clamp_offset(client_offset, size)
    stream.write_u64(size)
    stream.write_u64(server_offset)
    return client_offset, server_offset
