"""
Rate Limiter

This module bounds the call rate towards the upstream employee service.

Algorithm: fixed refresh window
- `permits_per_period` permits are granted per `refresh_period_seconds`
- Refresh happens on cycle boundaries measured from limiter creation,
  independent of when permits are consumed (not a leaky bucket)
- Unused permits do not accumulate beyond one period's worth
- A caller finding no permit reserves one from a future cycle if that cycle
  starts within its timeout and sleeps until then; otherwise it is rejected
  immediately with RateLimitExceededError

Reference Documents:
- GUIDELINES: Token bucket algorithm for rate limiting
- GUIDELINES §2309: Bulkhead patterns for resource isolation

Thread Safety:
    The permit counter is owned by the limiter and only mutated under its
    asyncio.Lock. Waiting happens outside the lock, so a cancelled waiter
    never blocks other callers and returns its reserved permit.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from employee_gateway.core.config import Settings
from employee_gateway.core.exceptions import RateLimitExceededError
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.metrics import record_rate_limiter_acquisition

logger = get_logger(__name__)


DEFAULT_PERMITS_PER_PERIOD = 50
DEFAULT_REFRESH_PERIOD_SECONDS = 1.0
DEFAULT_TIMEOUT_SECONDS = 0.5


@dataclass(frozen=True)
class RateLimiterSnapshot:
    """
    Read-only view of a rate limiter, used by health reporting.

    Attributes:
        name: Rate limiter name
        available_permits: Permits left in the current cycle
        waiting_callers: Permits reserved from future cycles
        permits_per_period: Configured limit per cycle
    """

    name: str
    available_permits: int
    waiting_callers: int
    permits_per_period: int


class RateLimiter:
    """
    Fixed-window rate limiter with bounded waiting.

    Example:
        >>> limiter = RateLimiter(permits_per_period=50, refresh_period_seconds=1.0)
        >>> await limiter.acquire()  # may wait up to timeout_seconds
    """

    def __init__(
        self,
        name: str = "employee-api",
        permits_per_period: int = DEFAULT_PERMITS_PER_PERIOD,
        refresh_period_seconds: float = DEFAULT_REFRESH_PERIOD_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            name: Name for identification, logs and metrics
            permits_per_period: Permits granted per refresh period
            refresh_period_seconds: Length of one refresh cycle
            timeout_seconds: Default maximum wait for a permit
            clock: Monotonic time source (injectable for tests)
            sleep: Async sleep function (injectable for tests)
        """
        if permits_per_period < 1:
            raise ValueError("permits_per_period must be >= 1")
        if refresh_period_seconds <= 0:
            raise ValueError("refresh_period_seconds must be > 0")

        self._name = name
        self._limit = permits_per_period
        self._period = refresh_period_seconds
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._sleep = sleep

        self._origin = clock()
        self._cycle = 0
        # Negative values are permits reserved from future cycles.
        self._permits = permits_per_period

        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        name: str = "employee-api",
        clock: Callable[[], float] = time.monotonic,
    ) -> "RateLimiter":
        """Create a RateLimiter from application settings."""
        return cls(
            name=name,
            permits_per_period=settings.rate_limit_permits_per_period,
            refresh_period_seconds=settings.rate_limit_refresh_period_seconds,
            timeout_seconds=settings.rate_limit_timeout_seconds,
            clock=clock,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        """Name of this rate limiter."""
        return self._name

    @property
    def permits_per_period(self) -> int:
        """Permits granted per refresh period."""
        return self._limit

    @property
    def refresh_period_seconds(self) -> float:
        """Length of one refresh cycle."""
        return self._period

    @property
    def timeout_seconds(self) -> float:
        """Default maximum wait for a permit."""
        return self._timeout_seconds

    @property
    def available_permits(self) -> int:
        """Permits left in the current cycle."""
        self._refresh(self._clock())
        return max(self._permits, 0)

    def snapshot(self) -> RateLimiterSnapshot:
        """Return a read-only view of the limiter for health reporting."""
        self._refresh(self._clock())
        return RateLimiterSnapshot(
            name=self._name,
            available_permits=max(self._permits, 0),
            waiting_callers=max(-self._permits, 0),
            permits_per_period=self._limit,
        )

    # =========================================================================
    # Permit Accounting
    # =========================================================================

    def _refresh(self, now: float) -> None:
        cycle = int((now - self._origin) // self._period)
        if cycle > self._cycle:
            granted = (cycle - self._cycle) * self._limit
            self._permits = min(self._permits + granted, self._limit)
            self._cycle = cycle

    def _release(self) -> None:
        self._permits = min(self._permits + 1, self._limit)

    async def acquire(self, timeout_seconds: Optional[float] = None) -> float:
        """
        Acquire one permit, waiting at most the timeout.

        Args:
            timeout_seconds: Override of the configured acquire timeout

        Returns:
            Seconds spent waiting for the permit (0.0 if immediate)

        Raises:
            RateLimitExceededError: If no permit is available within the timeout
        """
        timeout = self._timeout_seconds if timeout_seconds is None else timeout_seconds

        async with self._lock:
            now = self._clock()
            self._refresh(now)

            if self._permits > 0:
                self._permits -= 1
                record_rate_limiter_acquisition(self._name, "acquired")
                return 0.0

            reserved = -self._permits
            cycles_ahead = reserved // self._limit + 1
            next_start = self._origin + (self._cycle + cycles_ahead) * self._period
            wait = next_start - now

            if wait > timeout:
                record_rate_limiter_acquisition(self._name, "rejected")
                logger.warning(
                    "rate limit exceeded",
                    limiter=self._name,
                    timeout_seconds=timeout,
                    wait_needed_seconds=round(wait, 4),
                    permits_per_period=self._limit,
                )
                raise RateLimitExceededError(self._name, timeout)

            self._permits -= 1

        try:
            await self._sleep(wait)
        except asyncio.CancelledError:
            self._release()
            raise

        record_rate_limiter_acquisition(self._name, "waited")
        logger.debug("rate limiter permit after wait", limiter=self._name, waited_seconds=wait)
        return wait
