"""
Resilience Pipeline

This module composes the rate limiter, circuit breaker, retry policy and
result cache around every upstream operation in one fixed order:

    cache (reads) -> RateLimiter -> CircuitBreaker -> RetryPolicy -> client

- A cache hit returns immediately; limiter, breaker and retry are not touched.
- The breaker sees one outcome per logical call (retries included), so the
  slow-call duration covers the backoff as well.
- Reads populate their cache with non-empty results only, and only if the
  cache was not invalidated while the call was in flight.
- Writes invalidate both caches once the upstream was attempted, whether the
  attempt succeeded or not.
- A terminal degradable failure is handed to the per-operation fallback table.

Fallback table:
    list_all             -> []
    get_by_id            -> None
    highest_salary       -> 0
    top_ten_by_earnings  -> []
    create / delete      -> UpstreamUnavailableError (writes never degrade)

Reference Documents:
- Release It! (Nygard): Stability patterns composed around integration points
- Building Reactive Microservices in Java (Escoffier) Ch.6: fallbacks

Pattern: Explicit pipeline object instead of decorator stacking
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from employee_gateway.core.config import Settings
from employee_gateway.core.exceptions import (
    DEGRADABLE_ERRORS,
    RateLimitExceededError,
    UpstreamUnavailableError,
)
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.circuit_breaker import CircuitBreaker
from employee_gateway.resilience.metrics import record_fallback
from employee_gateway.resilience.rate_limiter import RateLimiter
from employee_gateway.resilience.retry import RetryPolicy
from employee_gateway.services.cache import ResultCache, TTLCache

T = TypeVar("T")

logger = get_logger(__name__)


# =============================================================================
# Operations and Fallbacks
# =============================================================================


class Operation(str, Enum):
    """Logical operations guarded by the pipeline."""

    LIST_ALL = "list_all"
    GET_BY_ID = "get_by_id"
    HIGHEST_SALARY = "highest_salary"
    TOP_TEN = "top_ten_by_earnings"
    CREATE = "create"
    DELETE = "delete"

    @property
    def is_write(self) -> bool:
        """Whether the operation mutates upstream state."""
        return self in (Operation.CREATE, Operation.DELETE)


FALLBACK_VALUES: dict[Operation, Callable[[], Any]] = {
    Operation.LIST_ALL: list,
    Operation.GET_BY_ID: lambda: None,
    Operation.HIGHEST_SALARY: lambda: 0,
    Operation.TOP_TEN: list,
}
"""Factories for read fallbacks. Operations missing here fail loudly."""


def _is_cacheable(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple)) and not value:
        return False
    return True


# =============================================================================
# ResiliencePipeline
# =============================================================================


class ResiliencePipeline:
    """
    The single process-wide composition of resilience components.

    Each component keeps its own lock; the pipeline itself holds no lock
    and no per-call state.

    Example:
        >>> pipeline = ResiliencePipeline.from_settings(get_settings())
        >>> employees = await pipeline.execute(
        ...     Operation.LIST_ALL,
        ...     client.list_employees,
        ...     cache=pipeline.cache.collection,
        ...     cache_key=COLLECTION_KEY,
        ... )
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        circuit_breaker: CircuitBreaker,
        retry_policy: RetryPolicy,
        cache: ResultCache,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._circuit_breaker = circuit_breaker
        self._retry_policy = retry_policy
        self._cache = cache

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ResiliencePipeline":
        """
        Build every component from application settings.

        Args:
            settings: Application settings
            clock: Monotonic time source shared by breaker, limiter and caches
        """
        return cls(
            rate_limiter=RateLimiter.from_settings(settings, clock=clock),
            circuit_breaker=CircuitBreaker.from_settings(settings, clock=clock),
            retry_policy=RetryPolicy.from_settings(settings),
            cache=ResultCache.from_settings(settings, clock=clock),
        )

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def cache(self) -> ResultCache:
        return self._cache

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(
        self,
        operation: Operation,
        call: Callable[[], Awaitable[T]],
        *,
        cache: Optional[TTLCache[str, Any]] = None,
        cache_key: Optional[str] = None,
        use_fallback: bool = True,
    ) -> T:
        """
        Run one upstream call through the pipeline.

        Args:
            operation: Logical operation (selects retry labels and fallback)
            call: Zero-argument coroutine function performing the upstream call
            cache: Cache consulted before and populated after a read
            cache_key: Key within `cache`
            use_fallback: If False, degradable read errors propagate instead
                of being replaced by the fallback value

        Returns:
            The cached value, the upstream result, or the fallback value

        Raises:
            UpstreamUnavailableError: Write failed on a transient error or open circuit
            RateLimitExceededError: Write rejected by the rate limiter
            ClientRequestError, NotFoundError: Upstream answered with an error
        """
        generation: Optional[int] = None
        if cache is not None and cache_key is not None:
            cached = await cache.get(cache_key)
            if cached is not None:
                logger.debug("cache hit", operation=operation.value, cache=cache.name)
                return cached
            generation = cache.generation

        attempted = False

        async def attempt() -> T:
            nonlocal attempted
            attempted = True
            return await call()

        try:
            await self._rate_limiter.acquire()
            result = await self._circuit_breaker.execute(
                self._retry_policy.execute, operation.value, attempt
            )
        except DEGRADABLE_ERRORS as e:
            if not use_fallback:
                raise
            if operation.is_write and isinstance(e, RateLimitExceededError):
                raise
            return self.fallback(operation, e)
        finally:
            if operation.is_write and attempted:
                await self._cache.invalidate_all()

        if cache is not None and cache_key is not None and _is_cacheable(result):
            await cache.put(cache_key, result, generation=generation)
        return result

    async def derive(
        self,
        operation: Operation,
        source: Callable[[], Awaitable[Any]],
        compute: Callable[[Any], T],
    ) -> T:
        """
        Compute a derived read over data fetched through the pipeline.

        Args:
            operation: Derived operation (selects the fallback)
            source: Coroutine function fetching the input without fallback
            compute: Pure function applied to the fetched input

        Returns:
            compute(source()), or the operation's fallback value
        """
        try:
            data = await source()
        except DEGRADABLE_ERRORS as e:
            return self.fallback(operation, e)
        return compute(data)

    def fallback(self, operation: Operation, error: Exception) -> Any:
        """
        Apply the fallback of an operation.

        Args:
            operation: Operation that failed
            error: The terminal error

        Returns:
            A fresh fallback value for reads

        Raises:
            UpstreamUnavailableError: For operations without a fallback value
        """
        record_fallback(operation.value)
        logger.error(
            "upstream call failed, applying fallback",
            operation=operation.value,
            error_type=type(error).__name__,
            error=str(error),
        )

        factory = FALLBACK_VALUES.get(operation)
        if factory is None:
            raise UpstreamUnavailableError(operation.value) from error
        return factory()
