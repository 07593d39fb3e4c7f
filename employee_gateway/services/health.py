"""
Health Check Service

This module reports the health of the upstream employee service together
with the state of the resilience components guarding it.

The upstream probe is a direct, time-bounded GET on the collection endpoint.
It bypasses the cache, rate limiter and circuit breaker: a probe never
consumes caller budget and never trips the breaker.

Reference Documents:
- Building Microservices (Newman) pp. 273-275: Synthetic monitoring
- Architecture Patterns with Python (Percival & Gregory) p. 157: Test doubles

Pattern: Graceful degradation (Building Microservices p. 274)
"""

import asyncio
from typing import Literal, Optional

from pydantic import BaseModel, Field

from employee_gateway.clients.employee_api import EmployeeApiClient
from employee_gateway.core.exceptions import EmployeeGatewayError
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.circuit_breaker import CircuitBreakerSnapshot
from employee_gateway.resilience.pipeline import ResiliencePipeline
from employee_gateway.services.cache import CacheStats

logger = get_logger(__name__)


DEFAULT_PROBE_TIMEOUT_SECONDS = 2.0

STATUS_UP = "up"
STATUS_DOWN = "down"


# =============================================================================
# Response Models
# =============================================================================


class CircuitBreakerHealth(BaseModel):
    """Circuit breaker part of the health report."""

    name: str
    state: str
    failure_rate: float = Field(ge=0.0, le=100.0)
    slow_call_rate: float = Field(ge=0.0, le=100.0)
    buffered_calls: int = Field(ge=0)


class RateLimiterHealth(BaseModel):
    """Rate limiter part of the health report."""

    name: str
    available_permits: int = Field(ge=0)
    waiting_callers: int = Field(ge=0)


class HealthReport(BaseModel):
    """
    Health of the upstream and of the resilience components.

    Attributes:
        status: up if the upstream answered the probe, down otherwise
        upstream_url: Probed URL
        error: Why the probe failed (None when up)
        circuit_breaker: Breaker state and rates (percent)
        rate_limiter: Permits left in the current cycle
        caches: Statistics keyed by cache name
    """

    status: Literal["up", "down"]
    upstream_url: str
    error: Optional[str] = None
    circuit_breaker: CircuitBreakerHealth
    rate_limiter: RateLimiterHealth
    caches: dict[str, CacheStats]


# =============================================================================
# HealthChecker
# =============================================================================


class HealthChecker:
    """
    Builds HealthReports for the employee gateway.

    Example:
        >>> checker = HealthChecker(client, pipeline)
        >>> report = await checker.check()
        >>> report.status
        'up'
    """

    def __init__(
        self,
        client: EmployeeApiClient,
        pipeline: ResiliencePipeline,
        probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._pipeline = pipeline
        self._probe_timeout_seconds = probe_timeout_seconds

    async def probe_upstream(self) -> Optional[str]:
        """
        Probe the upstream once.

        Returns:
            None if the upstream answered, otherwise a description of the failure
        """
        try:
            await asyncio.wait_for(self._client.ping(), timeout=self._probe_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "upstream health probe timed out",
                timeout_seconds=self._probe_timeout_seconds,
            )
            return f"probe timed out after {self._probe_timeout_seconds}s"
        except EmployeeGatewayError as e:
            logger.warning("upstream health probe failed", error=str(e))
            return str(e)
        return None

    async def check(self) -> HealthReport:
        """
        Build a health report. Never raises for upstream failures.

        Returns:
            HealthReport with status down if the probe failed
        """
        error = await self.probe_upstream()

        breaker = await self._current_breaker_snapshot()
        limiter = self._pipeline.rate_limiter.snapshot()

        return HealthReport(
            status=STATUS_UP if error is None else STATUS_DOWN,
            upstream_url=self._client.base_url,
            error=error,
            circuit_breaker=CircuitBreakerHealth(
                name=breaker.name,
                state=breaker.state,
                failure_rate=breaker.failure_rate,
                slow_call_rate=breaker.slow_call_rate,
                buffered_calls=breaker.buffered_calls,
            ),
            rate_limiter=RateLimiterHealth(
                name=limiter.name,
                available_permits=limiter.available_permits,
                waiting_callers=limiter.waiting_callers,
            ),
            caches=self._pipeline.cache.stats(),
        )

    async def _current_breaker_snapshot(self) -> CircuitBreakerSnapshot:
        breaker = self._pipeline.circuit_breaker
        # Applies a pending OPEN -> HALF_OPEN transition before reading.
        await breaker.get_state()
        return breaker.snapshot()
