"""
bulkload.retry — Exponential backoff for collaborator calls.

Only errors flagged retryable are attempted again (transport failures,
5xx and 429 responses). Rejections such as a duplicate key or a bad
signature surface on the first attempt.
"""

import random
import time
from typing import Any, Callable, TypeVar

from bulkload.config import RetryConfig
from bulkload.errors import BulkLoadError
from bulkload.logger import get_logger

T = TypeVar("T")


class RetryExhausted(BulkLoadError):
    """Every attempt failed with a retryable error."""

    def __init__(self, sku: str, stage: str, attempts: int, last_error: Exception):
        super().__init__(
            sku=sku,
            stage=stage,
            message=f"All {attempts} attempts failed: {last_error}",
            http_status=getattr(last_error, "http_status", None),
            payload={
                "attempts": attempts,
                "last_error_type": type(last_error).__name__,
                "last_error_message": str(last_error),
            },
        )
        self.attempts = attempts
        self.last_error = last_error


class RetryHandler:
    """Runs a callable until it succeeds, fails permanently, or runs out of attempts."""

    def __init__(self, config: RetryConfig, sleep: Callable[[float], None] = time.sleep):
        self._config = config
        self._sleep = sleep
        self._logger = get_logger()

    def compute_delay(self, attempt: int) -> float:
        """Seconds to wait after ``attempt`` (1-indexed): doubling, capped, ±25% jitter."""
        base = self._config.initial_delay_ms / 1000.0
        cap = self._config.max_delay_ms / 1000.0

        delay = min(base * (2 ** (attempt - 1)), cap)
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return max(0.0, delay + jitter)

    def is_retryable(self, error: Exception) -> bool:
        return isinstance(error, BulkLoadError) and error.retryable

    def execute(
        self,
        func: Callable[..., T],
        *args: Any,
        sku: str = "",
        stage: str = "retry",
        **kwargs: Any,
    ) -> T:
        """
        Call ``func(*args, **kwargs)`` with retries.

        Raises:
            RetryExhausted: The last attempt still failed with a retryable error.
            Exception: The first non-retryable error, unchanged.
        """
        attempts = self._config.max_attempts

        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                if attempt == attempts:
                    raise RetryExhausted(
                        sku=sku,
                        stage=stage,
                        attempts=attempts,
                        last_error=e,
                    ) from e

                delay = self.compute_delay(attempt)
                self._logger.warn(
                    f"Attempt {attempt}/{attempts} failed, retrying in {delay:.2f}s: {e}",
                    sku=sku,
                    stage=stage,
                    error_type=type(e).__name__,
                )
                self._sleep(delay)

        raise ValueError("retry.max_attempts must be >= 1")
