"""
Resilience module for the Employee Gateway.

This module contains the stability patterns guarding the upstream service:
- CircuitBreaker: count-based sliding window state machine
- RateLimiter: fixed-window permit budget with bounded waiting
- RetryPolicy: bounded retry with linear capped backoff

The composition of these around the result cache lives in
`employee_gateway.resilience.pipeline`; import it from there.
"""

from employee_gateway.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerSnapshot,
    CircuitBreakerState,
)
from employee_gateway.resilience.rate_limiter import RateLimiter, RateLimiterSnapshot
from employee_gateway.resilience.retry import RetryPolicy

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerSnapshot",
    "CircuitBreakerState",
    "RateLimiter",
    "RateLimiterSnapshot",
    "RetryPolicy",
]
