"""
Retry Policy

This module re-attempts upstream calls that failed with a transient error.

Policy:
- At most `max_attempts` total attempts (the first call included)
- Only RETRYABLE_ERRORS (5xx, connection, timeout) are retried; client
  errors and not-found propagate on the first occurrence
- Linear, capped backoff: attempt N fails -> wait min(N * step, max_backoff)
  (1s, 2s with the defaults; the last attempt is never followed by a wait)
- Exhaustion re-raises the last observed error unchanged

Reference Documents:
- GUIDELINES pp. 2309: Retry with backoff for transient errors
- Release It! (Nygard): Retries must be bounded

Pattern: Retry with capped backoff
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from employee_gateway.core.config import Settings
from employee_gateway.core.exceptions import RETRYABLE_ERRORS
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.metrics import record_retry_attempt

T = TypeVar("T")

logger = get_logger(__name__)


DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_STEP_SECONDS = 1.0
DEFAULT_MAX_BACKOFF_SECONDS = 5.0


class RetryPolicy:
    """
    Bounded retry with linear capped backoff.

    The sleep between attempts is an await, so cancelling the caller aborts
    a pending backoff immediately.

    Example:
        >>> policy = RetryPolicy(max_attempts=3)
        >>> employees = await policy.execute("list", client.list_employees)
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_step_seconds: float = DEFAULT_BACKOFF_STEP_SECONDS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
        retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize RetryPolicy.

        Args:
            max_attempts: Total attempts including the first one
            backoff_step_seconds: Backoff increment per failed attempt
            max_backoff_seconds: Upper bound for one backoff
            retry_on: Exception types considered transient
            sleep: Async sleep function (injectable for tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self._max_attempts = max_attempts
        self._backoff_step_seconds = backoff_step_seconds
        self._max_backoff_seconds = max_backoff_seconds
        self._retry_on = retry_on
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Create a RetryPolicy from application settings."""
        return cls(
            max_attempts=settings.retry_max_attempts,
            backoff_step_seconds=settings.retry_backoff_step_seconds,
            max_backoff_seconds=settings.retry_max_backoff_seconds,
        )

    @property
    def max_attempts(self) -> int:
        """Total attempts including the first one."""
        return self._max_attempts

    def backoff_for(self, attempt: int) -> float:
        """
        Backoff to wait after the given (1-based) attempt failed.

        Args:
            attempt: Number of the attempt that just failed

        Returns:
            Seconds to wait before the next attempt
        """
        return min(attempt * self._backoff_step_seconds, self._max_backoff_seconds)

    def is_retryable(self, error: BaseException) -> bool:
        """Whether an error belongs to the transient classification."""
        return isinstance(error, self._retry_on)

    async def execute(
        self,
        operation: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function with retries.

        Args:
            operation: Operation name for logs and metrics
            func: Async function to call
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            The result of the first successful attempt

        Raises:
            Exception: The first non-retryable error, or the last retryable
                error once attempts are exhausted
        """
        attempt = 1
        while True:
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e):
                    record_retry_attempt(operation, "aborted")
                    raise

                if attempt >= self._max_attempts:
                    record_retry_attempt(operation, "exhausted")
                    logger.error(
                        "retries exhausted",
                        operation=operation,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise

                delay = self.backoff_for(attempt)
                record_retry_attempt(operation, "retry")
                logger.info(
                    "retrying after transient upstream error",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    backoff_seconds=delay,
                    error=str(e),
                )
                await self._sleep(delay)
                attempt += 1
                continue

            record_retry_attempt(operation, "success")
            return result
