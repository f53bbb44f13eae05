"""Reliable I/O primitives and fixed-width field codecs.

This module provides:
- ByteStream: Minimal interface the transport must offer (send/recv)
- write_exact / read_exact: Full-length writes and reads with retry
- pack/unpack and read/write helpers for uint32 and uint64 fields
- write_field / read_field: uint32 length-prefixed byte fields
- ReliableStream: A stream bound to a retry policy

These functions are the only place that touches the raw transport.
All integers are big-endian (network byte order).
"""

from __future__ import annotations

import logging
import struct
from typing import Protocol

from resumeft.core.retry import DEFAULT_IO_POLICY, RetryPolicy
from resumeft.core.types import MalformedHeaderError, TransportError

logger = logging.getLogger(__name__)

U32 = struct.Struct("!I")
U64 = struct.Struct("!Q")

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


class ByteStream(Protocol):
    """Reliable, ordered byte stream (a connected socket satisfies this)."""

    def send(self, data: bytes, /) -> int: ...

    def recv(self, bufsize: int, /) -> bytes: ...


def write_exact(
    stream: ByteStream,
    data: bytes,
    policy: RetryPolicy = DEFAULT_IO_POLICY,
) -> None:
    """Write all of data to the stream.

    Args:
        stream: Connected byte stream.
        data: Bytes to write.
        policy: Retry policy for interrupted / would-block conditions.

    Raises:
        TransportError: If the stream fails or stops accepting bytes.
    """
    view = memoryview(data)
    total = 0
    while total < len(view):
        remaining = view[total:]
        try:
            sent = policy.call(lambda: stream.send(remaining))
        except (TimeoutError, OSError) as e:
            raise TransportError(
                f"Send failed after {total}/{len(view)} bytes: {e}"
            ) from e
        if sent == 0:
            raise TransportError(f"Send returned 0 after {total}/{len(view)} bytes")
        total += sent


def read_exact(
    stream: ByteStream,
    count: int,
    policy: RetryPolicy = DEFAULT_IO_POLICY,
) -> bytes:
    """Read exactly count bytes from the stream.

    A zero-length read means the peer closed the connection, which is
    fatal here: there is no partial-field recovery.

    Args:
        stream: Connected byte stream.
        count: Number of bytes to read.
        policy: Retry policy for interrupted / would-block conditions.

    Returns:
        Exactly count bytes.

    Raises:
        TransportError: If the peer closes early or the stream fails.
    """
    if count < 0:
        raise ValueError(f"count must not be negative: {count}")
    buf = bytearray()
    while len(buf) < count:
        want = count - len(buf)
        try:
            part = policy.call(lambda: stream.recv(want))
        except (TimeoutError, OSError) as e:
            raise TransportError(
                f"Receive failed after {len(buf)}/{count} bytes: {e}"
            ) from e
        if not part:
            raise TransportError(
                f"Connection closed by peer after {len(buf)}/{count} bytes"
            )
        buf += part
    return bytes(buf)


def pack_u32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer."""
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"Value out of uint32 range: {value}")
    return U32.pack(value)


def unpack_u32(raw: bytes) -> int:
    """Decode an unsigned 32-bit integer."""
    return int(U32.unpack(raw)[0])


def pack_u64(value: int) -> bytes:
    """Encode an unsigned 64-bit integer."""
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"Value out of uint64 range: {value}")
    return U64.pack(value)


def unpack_u64(raw: bytes) -> int:
    """Decode an unsigned 64-bit integer."""
    return int(U64.unpack(raw)[0])


def write_u32(stream: ByteStream, value: int, policy: RetryPolicy = DEFAULT_IO_POLICY) -> None:
    write_exact(stream, pack_u32(value), policy)


def read_u32(stream: ByteStream, policy: RetryPolicy = DEFAULT_IO_POLICY) -> int:
    return unpack_u32(read_exact(stream, U32.size, policy))


def write_u64(stream: ByteStream, value: int, policy: RetryPolicy = DEFAULT_IO_POLICY) -> None:
    write_exact(stream, pack_u64(value), policy)


def read_u64(stream: ByteStream, policy: RetryPolicy = DEFAULT_IO_POLICY) -> int:
    return unpack_u64(read_exact(stream, U64.size, policy))


def write_field(
    stream: ByteStream,
    payload: bytes,
    policy: RetryPolicy = DEFAULT_IO_POLICY,
) -> None:
    """Write a uint32 length prefix followed by the payload."""
    write_exact(stream, pack_u32(len(payload)) + payload, policy)


def read_field(
    stream: ByteStream,
    max_length: int,
    name: str = "field",
    policy: RetryPolicy = DEFAULT_IO_POLICY,
) -> bytes:
    """Read a uint32 length-prefixed field.

    The length is validated before any payload is read, so a hostile
    peer cannot force a large allocation.

    Args:
        stream: Connected byte stream.
        max_length: Largest accepted payload length.
        name: Field name used in error messages.
        policy: Retry policy for the underlying reads.

    Returns:
        The field payload.

    Raises:
        MalformedHeaderError: If the length is zero or above max_length.
        TransportError: If the stream fails.
    """
    length = read_u32(stream, policy)
    if length == 0:
        raise MalformedHeaderError(f"Empty {name}")
    if length > max_length:
        raise MalformedHeaderError(
            f"{name.capitalize()} too long: {length} bytes (max {max_length})"
        )
    return read_exact(stream, length, policy)


class ReliableStream:
    """A byte stream bound to a retry policy.

    Session code passes this around instead of the raw socket so every
    field goes through the same full-length primitives.
    """

    def __init__(self, stream: ByteStream, policy: RetryPolicy = DEFAULT_IO_POLICY) -> None:
        self._stream = stream
        self._policy = policy

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def write_exact(self, data: bytes) -> None:
        write_exact(self._stream, data, self._policy)

    def read_exact(self, count: int) -> bytes:
        return read_exact(self._stream, count, self._policy)

    def write_u32(self, value: int) -> None:
        write_u32(self._stream, value, self._policy)

    def read_u32(self) -> int:
        return read_u32(self._stream, self._policy)

    def write_u64(self, value: int) -> None:
        write_u64(self._stream, value, self._policy)

    def read_u64(self) -> int:
        return read_u64(self._stream, self._policy)

    def write_field(self, payload: bytes) -> None:
        write_field(self._stream, payload, self._policy)

    def read_field(self, max_length: int, name: str = "field") -> bytes:
        return read_field(self._stream, max_length, name, self._policy)
