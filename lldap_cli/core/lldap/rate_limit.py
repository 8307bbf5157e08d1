"""Bounded exponential backoff for HTTP 429 responses."""
from __future__ import annotations
import logging
import time
from typing import Callable, Optional, TypeVar

from .exceptions import LldapAPIError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RATE_LIMIT_RETRIES = 3
RATE_LIMIT_BACKOFF_SECONDS = 1.0


def is_rate_limited(error: BaseException) -> bool:
    """True if the error reports an HTTP 429 response."""
    return isinstance(error, LldapAPIError) and error.status_code == 429


class RateLimitedExecutor:
    """Run an operation, retrying it end-to-end while the server answers 429.

    The retry counter belongs to one executor (one client) and covers one
    logical operation: it goes back to 0 on success and when retries are
    exhausted. Any failure other than a 429 propagates on first occurrence.

    Usage:
        executor = RateLimitedExecutor()
        data = executor.execute(lambda: client._post_graphql(...))
    """

    def __init__(self, max_retries: int = MAX_RATE_LIMIT_RETRIES,
                 base_delay: float = RATE_LIMIT_BACKOFF_SECONDS,
                 sleep: Optional[Callable[[float], None]] = None):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.retry_count = 0
        self._sleep = sleep or time.sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before retry ``attempt`` (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)

    def execute(self, operation: Callable[[], T]) -> T:
        """Execute ``operation`` under rate-limit backoff.

        Raises:
            RateLimitError: If the operation is still rate limited after
                ``max_retries`` attempts
        """
        while self.retry_count < self.max_retries:
            try:
                result = operation()
            except Exception as e:
                if not is_rate_limited(e):
                    raise
                self.retry_count += 1
                if self.retry_count >= self.max_retries:
                    self.retry_count = 0
                    raise RateLimitError("Rate limit exceeded. Please try again later.") from e
                delay = self.backoff_delay(self.retry_count)
                logger.warning(
                    "Rate limited. Retrying in %dms... (attempt %d/%d)",
                    int(delay * 1000), self.retry_count, self.max_retries,
                )
                self._sleep(delay)
                continue
            self.retry_count = 0
            return result

        # max_retries < 1: nothing is attempted
        raise RateLimitError("Rate limit exceeded. Please try again later.")
