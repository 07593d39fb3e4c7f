"""
Resilience Metrics

This module provides Prometheus metrics for the circuit breaker, rate limiter,
retry policy, result caches, fallbacks and upstream calls.

Metrics Provided:
- Circuit breaker state transitions (counter) and current state (gauge)
- Circuit breaker call outcomes (counter)
- Rate limiter acquisitions (counter)
- Retry attempts (counter)
- Fallback invocations (counter)
- Cache operations (counter)
- Upstream request duration (histogram)

Reference Documents:
- GUIDELINES pp. 2309-2319: Prometheus for metrics collection
- Newman (Building Microservices pp. 273-275): expose response times and error rates
"""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Constants
# =============================================================================

METRIC_CIRCUIT_TRANSITIONS = "employee_gateway_circuit_breaker_state_transitions_total"
METRIC_CIRCUIT_STATE = "employee_gateway_circuit_breaker_state"
METRIC_CIRCUIT_CALLS = "employee_gateway_circuit_breaker_calls_total"
METRIC_RATE_LIMITER = "employee_gateway_rate_limiter_acquisitions_total"
METRIC_RETRY_ATTEMPTS = "employee_gateway_retry_attempts_total"
METRIC_FALLBACKS = "employee_gateway_fallbacks_total"
METRIC_CACHE_OPERATIONS = "employee_gateway_cache_operations_total"
METRIC_UPSTREAM_DURATION = "employee_gateway_upstream_request_duration_seconds"


# =============================================================================
# Circuit Breaker Metrics
# =============================================================================

CIRCUIT_STATE_TRANSITIONS = Counter(
    name=METRIC_CIRCUIT_TRANSITIONS,
    documentation="Total number of circuit breaker state transitions",
    labelnames=["circuit_name", "to_state", "from_state"],
)

CIRCUIT_STATE_GAUGE = Gauge(
    name=METRIC_CIRCUIT_STATE,
    documentation="Current state of circuit breaker (0=closed, 1=half_open, 2=open)",
    labelnames=["circuit_name"],
)

CIRCUIT_CALLS = Counter(
    name=METRIC_CIRCUIT_CALLS,
    documentation="Calls seen by the circuit breaker, by outcome",
    labelnames=["circuit_name", "outcome"],
)

_STATE_TO_NUMERIC = {
    "closed": 0,
    "half_open": 1,
    "open": 2,
}


def record_circuit_state_transition(
    circuit_name: str,
    to_state: str,
    from_state: str,
) -> None:
    """
    Record a circuit breaker state transition.

    Args:
        circuit_name: Name of the circuit breaker
        to_state: State transitioning to (closed, open, half_open)
        from_state: State transitioning from (closed, open, half_open)
    """
    CIRCUIT_STATE_TRANSITIONS.labels(
        circuit_name=circuit_name,
        to_state=to_state,
        from_state=from_state,
    ).inc()

    CIRCUIT_STATE_GAUGE.labels(circuit_name=circuit_name).set(
        _STATE_TO_NUMERIC.get(to_state, 0)
    )


def record_circuit_call(circuit_name: str, outcome: str) -> None:
    """
    Record a call outcome seen by a circuit breaker.

    Args:
        circuit_name: Name of the circuit breaker
        outcome: success, failure, slow or rejected
    """
    CIRCUIT_CALLS.labels(circuit_name=circuit_name, outcome=outcome).inc()


# =============================================================================
# Rate Limiter Metrics
# =============================================================================

RATE_LIMITER_ACQUISITIONS = Counter(
    name=METRIC_RATE_LIMITER,
    documentation="Rate limiter permit acquisitions, by result",
    labelnames=["limiter_name", "result"],
)


def record_rate_limiter_acquisition(limiter_name: str, result: str) -> None:
    """
    Record a rate limiter acquisition.

    Args:
        limiter_name: Name of the rate limiter
        result: acquired, waited or rejected
    """
    RATE_LIMITER_ACQUISITIONS.labels(limiter_name=limiter_name, result=result).inc()


# =============================================================================
# Retry / Fallback Metrics
# =============================================================================

RETRY_ATTEMPTS = Counter(
    name=METRIC_RETRY_ATTEMPTS,
    documentation="Retry policy attempts, by operation and outcome",
    labelnames=["operation", "outcome"],
)

FALLBACKS = Counter(
    name=METRIC_FALLBACKS,
    documentation="Fallback invocations, by operation",
    labelnames=["operation"],
)


def record_retry_attempt(operation: str, outcome: str) -> None:
    """
    Record a single attempt made by the retry policy.

    Args:
        operation: Operation being attempted
        outcome: success, retry, exhausted or aborted
    """
    RETRY_ATTEMPTS.labels(operation=operation, outcome=outcome).inc()


def record_fallback(operation: str) -> None:
    """
    Record a fallback invocation.

    Args:
        operation: Operation whose fallback was applied
    """
    FALLBACKS.labels(operation=operation).inc()


# =============================================================================
# Cache Metrics
# =============================================================================

CACHE_OPERATIONS = Counter(
    name=METRIC_CACHE_OPERATIONS,
    documentation="Result cache operations, by cache and result",
    labelnames=["cache_name", "result"],
)


def record_cache_operation(cache_name: str, result: str) -> None:
    """
    Record a cache operation.

    Args:
        cache_name: collection or by-id
        result: hit, miss, eviction, expiration or invalidation
    """
    CACHE_OPERATIONS.labels(cache_name=cache_name, result=result).inc()


# =============================================================================
# Upstream Metrics
# =============================================================================

UPSTREAM_DURATION = Histogram(
    name=METRIC_UPSTREAM_DURATION,
    documentation="Duration of upstream employee API requests",
    labelnames=["operation", "outcome"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)


def record_upstream_request(operation: str, outcome: str, duration_seconds: float) -> None:
    """
    Record the duration of one upstream HTTP request.

    Args:
        operation: list, get, create or delete
        outcome: success or the error class name
        duration_seconds: Wall-clock duration of the request
    """
    UPSTREAM_DURATION.labels(operation=operation, outcome=outcome).observe(duration_seconds)
