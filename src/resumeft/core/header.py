"""Session header exchange.

The Initiator opens every session with two length-prefixed fields:
the intent token ("upload" or "download") and the target filename.
The Responder validates both before any offset logic runs. A header
that fails validation aborts the session without a reply.
"""

from __future__ import annotations

import logging

from resumeft.core.types import Intent, MalformedHeaderError, SessionHeader
from resumeft.core.wire import ReliableStream

logger = logging.getLogger(__name__)

# Field limits (inclusive upper bounds)
MAX_INTENT_LENGTH = 31
MAX_FILENAME_LENGTH = 511


def encode_filename(filename: str, max_length: int = MAX_FILENAME_LENGTH) -> bytes:
    """Validate and encode a filename for the wire.

    Args:
        filename: Target filename.
        max_length: Largest accepted encoded length.

    Returns:
        UTF-8 encoded filename.

    Raises:
        MalformedHeaderError: If the filename is empty, too long or
            contains a NUL byte.
    """
    raw = filename.encode("utf-8")
    if not raw:
        raise MalformedHeaderError("Empty filename")
    if len(raw) > max_length:
        raise MalformedHeaderError(
            f"Filename too long: {len(raw)} bytes (max {max_length})"
        )
    if b"\x00" in raw:
        raise MalformedHeaderError("Filename contains a NUL byte")
    return raw


def decode_filename(raw: bytes) -> str:
    """Decode a filename received from the peer."""
    if b"\x00" in raw:
        raise MalformedHeaderError("Filename contains a NUL byte")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedHeaderError(f"Filename is not valid UTF-8: {e}") from e


def send_header(
    stream: ReliableStream,
    header: SessionHeader,
    max_filename_length: int = MAX_FILENAME_LENGTH,
) -> None:
    """Send the session header (Initiator side).

    The filename is validated before anything is written, so a local
    mistake never leaves a half-sent header on the connection.
    """
    filename = encode_filename(header.filename, max_filename_length)
    stream.write_field(header.intent.wire_bytes)
    stream.write_field(filename)
    logger.debug(f"Sent header: {header.intent.value} {header.filename!r}")


def read_header(
    stream: ReliableStream,
    max_filename_length: int = MAX_FILENAME_LENGTH,
) -> SessionHeader:
    """Read and validate the session header (Responder side).

    Args:
        stream: Connected stream.
        max_filename_length: Largest accepted filename length.

    Returns:
        The validated SessionHeader.

    Raises:
        MalformedHeaderError: If a field is empty, oversized, or the
            intent is unknown.
        TransportError: If the connection fails mid-header.
    """
    intent = Intent.parse(stream.read_field(MAX_INTENT_LENGTH, "intent"))
    filename = decode_filename(stream.read_field(max_filename_length, "filename"))
    logger.debug(f"Received header: {intent.value} {filename!r}")
    return SessionHeader(intent=intent, filename=filename)
