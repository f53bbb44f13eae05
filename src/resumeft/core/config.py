"""Shared configuration classes for resumeft.

This module defines configuration used by both the client (Initiator)
and server (Responder) components.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from resumeft.core.header import MAX_FILENAME_LENGTH
from resumeft.core.transfer import DEFAULT_CHUNK_SIZE

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9000
DEFAULT_LOCK_TIMEOUT = 30.0

ENV_PREFIX = "RESUMEFT_"


@dataclass
class TransferConfig:
    """Configuration for a transfer endpoint.

    Attributes:
        host: Server address to connect to or bind.
        port: TCP port.
        chunk_size: Payload bytes per chunk.
        max_filename_length: Largest filename accepted in a header.
        timeout: Socket timeout in seconds (None for blocking).
        root: Directory the server resolves filenames against.
        lock_timeout: Seconds a session waits for another session on the
            same file before giving up.
        track_upload_progress: Whether the uploading client keeps an
            observational progress record next to its source file.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_filename_length: int = MAX_FILENAME_LENGTH
    timeout: float | None = None
    root: Path = Path(".")
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    track_upload_progress: bool = True

    def __post_init__(self) -> None:
        """Validate and normalize values."""
        self.root = Path(self.root).expanduser()
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive: {self.chunk_size}")
        if not 1 <= self.max_filename_length <= 65535:
            raise ValueError(f"Invalid max filename length: {self.max_filename_length}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"Timeout must be positive: {self.timeout}")
        if self.lock_timeout < 0:
            raise ValueError(f"Lock timeout must not be negative: {self.lock_timeout}")

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        defaults: Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> TransferConfig:
        """Build configuration from RESUMEFT_* environment variables.

        Explicit overrides that are not None take precedence over the
        environment, which takes precedence over the given defaults
        (e.g. from a config file), then the field defaults.

        Args:
            environ: Environment mapping (defaults to os.environ).
            defaults: Lowest-priority field values.
            **overrides: Field values, e.g. from CLI options.

        Returns:
            A validated TransferConfig.

        Raises:
            ValueError: If a variable has an invalid value.
        """
        env = os.environ if environ is None else environ
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}

        for name, value in (defaults or {}).items():
            if name in known and value is not None:
                values[name] = value

        converters: dict[str, Any] = {
            "host": str,
            "port": int,
            "chunk_size": int,
            "max_filename_length": int,
            "timeout": float,
            "root": Path,
            "lock_timeout": float,
        }
        for name, convert in converters.items():
            var = ENV_PREFIX + name.upper()
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                values[name] = convert(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {var}: {raw!r}") from e

        for name, value in overrides.items():
            if name not in known:
                raise TypeError(f"Unknown configuration field: {name}")
            if value is not None:
                values[name] = value

        return cls(**values)
