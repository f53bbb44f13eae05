"""Server module - Responder, accept loop and per-file locking."""

from resumeft.server.app import TransferServer, ignore_broken_pipe, run_server, setup_logging
from resumeft.server.locks import PathLocks, TransferBusyError
from resumeft.server.responder import Responder, resolve_target

__all__ = [
    "PathLocks",
    "Responder",
    "TransferBusyError",
    "TransferServer",
    "ignore_broken_pipe",
    "resolve_target",
    "run_server",
    "setup_logging",
]
