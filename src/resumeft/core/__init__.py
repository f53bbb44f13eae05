"""Core module - Wire primitives, negotiation, transfer loops and progress records."""

from resumeft.core.config import TransferConfig
from resumeft.core.header import (
    MAX_FILENAME_LENGTH,
    MAX_INTENT_LENGTH,
    read_header,
    send_header,
)
from resumeft.core.ledger import LedgerWriteError, ProgressLedger
from resumeft.core.negotiation import (
    clamp_offset,
    initiator_offer_upload,
    initiator_request_download,
    local_resume_point,
    responder_accept_upload,
    responder_offer_download,
)
from resumeft.core.retry import DEFAULT_IO_POLICY, RetryPolicy, retry_with_backoff
from resumeft.core.transfer import (
    DEFAULT_CHUNK_SIZE,
    TransferStats,
    prepare_destination,
    receive_range,
    send_range,
)
from resumeft.core.types import (
    Intent,
    LocalIOError,
    MalformedHeaderError,
    ProgressCallback,
    ProtocolViolationError,
    SessionHeader,
    TransferError,
    TransferProgress,
    TransferResult,
    TransportError,
)
from resumeft.core.wire import ReliableStream, read_exact, write_exact

__all__ = [
    # Config
    "TransferConfig",
    # Header
    "MAX_FILENAME_LENGTH",
    "MAX_INTENT_LENGTH",
    "read_header",
    "send_header",
    # Ledger
    "LedgerWriteError",
    "ProgressLedger",
    # Negotiation
    "clamp_offset",
    "initiator_offer_upload",
    "initiator_request_download",
    "local_resume_point",
    "responder_accept_upload",
    "responder_offer_download",
    # Retry
    "DEFAULT_IO_POLICY",
    "RetryPolicy",
    "retry_with_backoff",
    # Transfer
    "DEFAULT_CHUNK_SIZE",
    "TransferStats",
    "prepare_destination",
    "receive_range",
    "send_range",
    # Types
    "Intent",
    "LocalIOError",
    "MalformedHeaderError",
    "ProgressCallback",
    "ProtocolViolationError",
    "SessionHeader",
    "TransferError",
    "TransferProgress",
    "TransferResult",
    "TransportError",
    # Wire
    "ReliableStream",
    "read_exact",
    "write_exact",
]
