"""Client module - Transfer Initiator and command-line interface."""

from resumeft.client.initiator import Initiator, TransferClient

__all__ = [
    "Initiator",
    "TransferClient",
]
