"""Shared types for resumeft.

This module provides:
- Intent: Declared purpose of a session (upload or download)
- SessionHeader: Intent + target filename sent at the start of a session
- TransferProgress, TransferResult: Progress and outcome dataclasses
- TransferError and subclasses: Session-aborting failures
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class TransferError(Exception):
    """Base exception for transfer errors.

    Any TransferError aborts the session. Recovery is a new connection
    and a fresh negotiation, which resumes from the durable state.
    """


class MalformedHeaderError(TransferError):
    """Session header field is empty, oversized or not understood."""


class ProtocolViolationError(TransferError):
    """Peer sent a value that breaks a protocol invariant."""


class TransportError(TransferError):
    """Short read/write, peer disconnect or socket failure."""


class LocalIOError(TransferError):
    """Local file or progress record could not be accessed."""


class Intent(str, Enum):
    """Declared purpose of a session.

    The value is the exact ASCII token sent on the wire.
    """

    UPLOAD = "upload"
    DOWNLOAD = "download"

    @property
    def wire_bytes(self) -> bytes:
        """Return the wire form of this intent."""
        return self.value.encode("ascii")

    @classmethod
    def parse(cls, raw: bytes) -> Intent:
        """Parse a wire intent token.

        Matching is exact and case-sensitive.

        Args:
            raw: Intent bytes as received from the peer.

        Returns:
            The matching Intent.

        Raises:
            MalformedHeaderError: If the token is not a known intent.
        """
        for intent in cls:
            if raw == intent.wire_bytes:
                return intent
        raise MalformedHeaderError(f"Unknown intent: {raw[:32]!r}")


@dataclass(frozen=True)
class SessionHeader:
    """Intent and target filename, exchanged once per connection."""

    intent: Intent
    filename: str


@dataclass
class TransferProgress:
    """Progress information for a running transfer.

    Attributes:
        filename: Target filename of the session.
        intent: Direction of the session.
        size: Total file size declared by the authoritative side.
        position: Current byte position (offset + bytes transferred).
        bytes_transferred: Payload bytes moved during this session.
    """

    filename: str
    intent: Intent
    size: int
    position: int
    bytes_transferred: int

    @property
    def percent(self) -> float:
        """Get progress percentage."""
        if self.size == 0:
            return 100.0
        return (self.position / self.size) * 100


# Type alias for progress callback
ProgressCallback = Callable[[TransferProgress], None]


@dataclass
class TransferResult:
    """Result of a completed session."""

    intent: Intent
    filename: str
    size: int
    offset: int
    bytes_transferred: int
    elapsed: float = 0.0

    @property
    def complete(self) -> bool:
        """Check if the file reached its full size."""
        return self.offset + self.bytes_transferred == self.size

    @property
    def resumed(self) -> bool:
        """Check if the session resumed from a previous offset."""
        return self.offset > 0
