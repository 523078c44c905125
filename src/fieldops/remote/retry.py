"""Bounded exponential backoff for remote calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from fieldops.errors import RecordNotFoundError, RemoteServiceError

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    How often a failed remote call is attempted.

    ``max_attempts=1`` means a single attempt: the error is surfaced once
    and nothing is retried. Only transport failures and server errors are
    retried; client errors (4xx) and missing records fail immediately.
    """

    max_attempts: int = 1
    base_delay: float = 0.5
    max_delay: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    @staticmethod
    def is_retryable(error: Exception) -> bool:
        if isinstance(error, RecordNotFoundError):
            return False
        if isinstance(error, RemoteServiceError):
            return error.status_code is None or error.status_code >= 500
        return False

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        logger: logging.Logger | None = None,
        description: str = "remote call",
    ) -> T:
        """Await ``operation`` until it succeeds or attempts run out."""
        log = logger or logging.getLogger(__name__)
        attempt = 1
        while True:
            try:
                return await operation()
            except RemoteServiceError as e:
                if attempt >= self.max_attempts or not self.is_retryable(e):
                    raise
                delay = self.delay_for(attempt)
                log.warning(
                    "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                    description,
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
                attempt += 1


NO_RETRY = RetryPolicy(max_attempts=1)
