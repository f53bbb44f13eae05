"""Retry logic with bounded backoff for transient I/O conditions.

This module provides:
- RetryPolicy: Bounded exponential backoff, bindable to any blocking call
- retry_with_backoff: Functional form of RetryPolicy.call
- DEFAULT_IO_POLICY: Policy used by the wire primitives

Only conditions that say "try again" are retried (interrupted system
calls and would-block on a non-blocking socket). Everything else
propagates to the caller on the first occurrence.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 1000
DEFAULT_INITIAL_BACKOFF = 0.001  # seconds
DEFAULT_MAX_BACKOFF = 0.05  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Exceptions that indicate a transient condition on a blocking primitive
TRANSIENT_IO_EXCEPTIONS: tuple[type[Exception], ...] = (
    InterruptedError,
    BlockingIOError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded-backoff retry policy.

    Attributes:
        max_attempts: Total attempts before the last exception propagates.
        initial_backoff: First sleep in seconds after a would-block.
        max_backoff: Upper bound for a single sleep.
        backoff_multiplier: Growth factor between sleeps.
        retryable_exceptions: Exception types that trigger a retry.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    retryable_exceptions: tuple[type[Exception], ...] = TRANSIENT_IO_EXCEPTIONS

    def __post_init__(self) -> None:
        """Validate policy bounds."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ValueError("backoff must not be negative")

    def call(self, func: Callable[[], Any]) -> Any:
        """Execute a function, retrying transient failures.

        Interrupted calls are retried immediately. Other retryable
        failures sleep for the current backoff first.

        Args:
            func: Function to execute.

        Returns:
            Result of the function.

        Raises:
            The last exception if all attempts fail, or any
            non-retryable exception immediately.
        """
        backoff = self.initial_backoff

        for attempt in range(1, self.max_attempts + 1):
            try:
                return func()
            except self.retryable_exceptions as e:
                if attempt == self.max_attempts:
                    logger.error(f"All {self.max_attempts} attempts failed: {e!r}")
                    raise
                if isinstance(e, InterruptedError):
                    continue
                logger.debug(
                    f"Attempt {attempt}/{self.max_attempts} would block. "
                    f"Retrying in {backoff * 1000:.1f}ms..."
                )
                time.sleep(backoff)
                backoff = min(backoff * self.backoff_multiplier, self.max_backoff)

        # Should not reach here, but satisfy type checker
        raise RuntimeError("Unexpected retry loop exit")


DEFAULT_IO_POLICY = RetryPolicy()


def retry_with_backoff(
    func: Callable[[], Any],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    retryable_exceptions: tuple[type[Exception], ...] = TRANSIENT_IO_EXCEPTIONS,
) -> Any:
    """Execute a function with bounded backoff retry.

    Args:
        func: Function to execute.
        max_attempts: Maximum number of attempts.
        initial_backoff: Initial backoff time in seconds.
        max_backoff: Maximum backoff time in seconds.
        backoff_multiplier: Multiplier for each retry.
        retryable_exceptions: Tuple of exception types to retry on.

    Returns:
        Result of the function.

    Raises:
        The last exception if all attempts fail.
    """
    policy = RetryPolicy(
        max_attempts=max_attempts,
        initial_backoff=initial_backoff,
        max_backoff=max_backoff,
        backoff_multiplier=backoff_multiplier,
        retryable_exceptions=retryable_exceptions,
    )
    return policy.call(func)
