"""
Circuit Breaker State Machine

This module implements a count-based sliding-window circuit breaker guarding
the upstream employee service.

Reference Documents:
- Building Reactive Microservices in Java (Escoffier) Ch.6, pp.54-62
- Release It! (Nygard): Stability patterns
- Microservices Anti-Patterns and Pitfalls (Richards) Ch.3, pp.19-28

State Machine:
    CLOSED: Calls pass through. Every outcome (success, failure, slow) is
        recorded in a fixed-size sliding window. Once the window is full, a
        failure rate or slow-call rate at or above its threshold opens the
        circuit.
    OPEN: Calls fail fast with CircuitOpenError, the upstream is not touched.
        After the wait duration the circuit moves to HALF_OPEN on its own.
    HALF_OPEN: A fixed number of trial calls are permitted. Any failure
        reopens the circuit (restarting the wait); when every trial has
        completed successfully the circuit closes with an empty window.

Thread Safety:
    All state reads/writes and window updates are protected by an
    asyncio.Lock owned by the breaker. An outcome is applied to whatever
    state is current when the call completes, not when it started.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Optional, TypeVar

from employee_gateway.core.config import Settings
from employee_gateway.core.exceptions import CircuitOpenError, UPSTREAM_ANSWERED_ERRORS
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.metrics import (
    record_circuit_call,
    record_circuit_state_transition,
)

T = TypeVar("T")

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_WINDOW_SIZE = 10
DEFAULT_FAILURE_RATE_THRESHOLD = 50.0
DEFAULT_SLOW_CALL_RATE_THRESHOLD = 50.0
DEFAULT_SLOW_CALL_DURATION_SECONDS = 2.0
DEFAULT_WAIT_DURATION_SECONDS = 30.0
DEFAULT_HALF_OPEN_CALLS = 3


# =============================================================================
# State Enum
# =============================================================================


class CircuitBreakerState(Enum):
    """
    State of a circuit breaker.

    States:
        CLOSED: Normal operation, all requests pass through
        OPEN: Circuit is tripped, requests fail immediately
        HALF_OPEN: Recovery testing, limited requests pass through
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CallOutcome:
    """One recorded call: whether it failed and whether it was slow."""

    failed: bool
    slow: bool


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """
    Read-only view of a circuit breaker, used by health reporting.

    Attributes:
        name: Circuit breaker name
        state: Current state value
        failure_rate: Failure percentage over buffered calls
        slow_call_rate: Slow-call percentage over buffered calls
        buffered_calls: Number of outcomes in the sliding window
        window_size: Capacity of the sliding window
    """

    name: str
    state: str
    failure_rate: float
    slow_call_rate: float
    buffered_calls: int
    window_size: int


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitBreaker:
    """
    Sliding-window circuit breaker for protecting against cascading failures.

    One instance exists per upstream dependency for the lifetime of the
    process; it is shared by every caller.

    Example:
        >>> breaker = CircuitBreaker(name="employee-api")
        >>> employees = await breaker.execute(client.list_employees)

    Attributes:
        name: Identifier for this circuit breaker
        window_size: Number of outcomes evaluated when closed
        wait_duration_seconds: Seconds spent open before half-open
        half_open_calls: Trial calls permitted while half-open
    """

    def __init__(
        self,
        name: str,
        window_size: int = DEFAULT_WINDOW_SIZE,
        failure_rate_threshold: float = DEFAULT_FAILURE_RATE_THRESHOLD,
        slow_call_rate_threshold: float = DEFAULT_SLOW_CALL_RATE_THRESHOLD,
        slow_call_duration_seconds: float = DEFAULT_SLOW_CALL_DURATION_SECONDS,
        wait_duration_seconds: float = DEFAULT_WAIT_DURATION_SECONDS,
        half_open_calls: int = DEFAULT_HALF_OPEN_CALLS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize CircuitBreaker.

        Args:
            name: Name for identification, logs and metrics
            window_size: Sliding window size (number of calls)
            failure_rate_threshold: Failure percentage that opens the circuit
            slow_call_rate_threshold: Slow-call percentage that opens the circuit
            slow_call_duration_seconds: Calls longer than this are slow
            wait_duration_seconds: Time spent OPEN before HALF_OPEN
            half_open_calls: Trial calls permitted in HALF_OPEN
            clock: Monotonic time source (injectable for tests)
        """
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        if half_open_calls < 1:
            raise ValueError("half_open_calls must be >= 1")

        self._name = name
        self._window_size = window_size
        self._failure_rate_threshold = failure_rate_threshold
        self._slow_call_rate_threshold = slow_call_rate_threshold
        self._slow_call_duration_seconds = slow_call_duration_seconds
        self._wait_duration_seconds = wait_duration_seconds
        self._half_open_calls = half_open_calls
        self._clock = clock

        self._state = CircuitBreakerState.CLOSED
        self._window: Deque[CallOutcome] = deque(maxlen=window_size)
        self._opened_at: Optional[float] = None
        self._half_open_permits_issued = 0
        self._half_open_outcomes: list[CallOutcome] = []

        self._lock = asyncio.Lock()

    # =========================================================================
    # Factory Methods
    # =========================================================================

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        name: str = "employee-api",
        clock: Callable[[], float] = time.monotonic,
    ) -> "CircuitBreaker":
        """
        Create a CircuitBreaker from application settings.

        Args:
            settings: Application settings
            name: Name for identification
            clock: Monotonic time source

        Returns:
            Configured CircuitBreaker instance
        """
        return cls(
            name=name,
            window_size=settings.circuit_breaker_window_size,
            failure_rate_threshold=settings.circuit_breaker_failure_rate_threshold,
            slow_call_rate_threshold=settings.circuit_breaker_slow_call_rate_threshold,
            slow_call_duration_seconds=settings.circuit_breaker_slow_call_duration_seconds,
            wait_duration_seconds=settings.circuit_breaker_wait_duration_seconds,
            half_open_calls=settings.circuit_breaker_half_open_calls,
            clock=clock,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        """Name of this circuit breaker."""
        return self._name

    @property
    def window_size(self) -> int:
        """Capacity of the sliding window."""
        return self._window_size

    @property
    def wait_duration_seconds(self) -> float:
        """Seconds spent OPEN before moving to HALF_OPEN."""
        return self._wait_duration_seconds

    @property
    def half_open_calls(self) -> int:
        """Trial calls permitted in HALF_OPEN."""
        return self._half_open_calls

    @property
    def slow_call_duration_seconds(self) -> float:
        """Calls longer than this are recorded as slow."""
        return self._slow_call_duration_seconds

    @property
    def state(self) -> CircuitBreakerState:
        """
        Last known state of the circuit breaker.

        Note: This does not apply the time-based OPEN -> HALF_OPEN
        transition. Use get_state() for that.
        """
        return self._state

    @property
    def buffered_calls(self) -> int:
        """Number of outcomes currently in the sliding window."""
        return len(self._window)

    @property
    def failure_rate(self) -> float:
        """Failure percentage over the buffered calls (0.0 when empty)."""
        return _rate(self._window, lambda o: o.failed)

    @property
    def slow_call_rate(self) -> float:
        """Slow-call percentage over the buffered calls (0.0 when empty)."""
        return _rate(self._window, lambda o: o.slow)

    def snapshot(self) -> CircuitBreakerSnapshot:
        """Return a read-only view of the breaker for health reporting."""
        return CircuitBreakerSnapshot(
            name=self._name,
            state=self._state.value,
            failure_rate=self.failure_rate,
            slow_call_rate=self.slow_call_rate,
            buffered_calls=self.buffered_calls,
            window_size=self._window_size,
        )

    # =========================================================================
    # State Management (lock must be held)
    # =========================================================================

    def _wait_elapsed(self) -> bool:
        if self._opened_at is None:
            return False
        return self._clock() - self._opened_at >= self._wait_duration_seconds

    def _transition(self, new_state: CircuitBreakerState) -> None:
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        if new_state == CircuitBreakerState.OPEN:
            self._opened_at = self._clock()
        if new_state == CircuitBreakerState.CLOSED:
            self._window.clear()
            self._opened_at = None
        self._half_open_permits_issued = 0
        self._half_open_outcomes = []

        record_circuit_state_transition(self._name, new_state.value, old_state.value)
        log = logger.warning if new_state == CircuitBreakerState.OPEN else logger.info
        log(
            "circuit breaker state transition",
            circuit=self._name,
            from_state=old_state.value,
            to_state=new_state.value,
            failure_rate=self.failure_rate,
            slow_call_rate=self.slow_call_rate,
        )

    def _refresh_state(self) -> CircuitBreakerState:
        if self._state == CircuitBreakerState.OPEN and self._wait_elapsed():
            self._transition(CircuitBreakerState.HALF_OPEN)
        return self._state

    def _evaluate_window(self) -> None:
        if len(self._window) < self._window_size:
            return
        if (
            self.failure_rate >= self._failure_rate_threshold
            or self.slow_call_rate >= self._slow_call_rate_threshold
        ):
            self._transition(CircuitBreakerState.OPEN)

    def _evaluate_trials(self, outcome: CallOutcome) -> None:
        if outcome.failed:
            self._transition(CircuitBreakerState.OPEN)
            return

        self._half_open_outcomes.append(outcome)
        if len(self._half_open_outcomes) < self._half_open_calls:
            return

        if _rate(self._half_open_outcomes, lambda o: o.slow) >= self._slow_call_rate_threshold:
            self._transition(CircuitBreakerState.OPEN)
        else:
            self._transition(CircuitBreakerState.CLOSED)

    # =========================================================================
    # Public State API (thread-safe)
    # =========================================================================

    async def get_state(self) -> CircuitBreakerState:
        """
        Get current state with atomic OPEN -> HALF_OPEN transition check.

        Returns:
            Current CircuitBreakerState after any transitions
        """
        async with self._lock:
            return self._refresh_state()

    async def acquire_permission(self) -> None:
        """
        Ask the breaker whether a call may be attempted.

        Raises:
            CircuitOpenError: If the circuit is OPEN, or HALF_OPEN with every
                trial permit already handed out
        """
        async with self._lock:
            state = self._refresh_state()

            if state == CircuitBreakerState.OPEN:
                record_circuit_call(self._name, "rejected")
                raise CircuitOpenError(
                    self._name,
                    f"Circuit is open - failing fast (wait={self._wait_duration_seconds}s)",
                )

            if state == CircuitBreakerState.HALF_OPEN:
                if self._half_open_permits_issued >= self._half_open_calls:
                    record_circuit_call(self._name, "rejected")
                    raise CircuitOpenError(
                        self._name,
                        f"Circuit is half-open - all {self._half_open_calls} trial calls in flight",
                    )
                self._half_open_permits_issued += 1

    def _release_permission(self) -> None:
        # No await: atomic with respect to other tasks on the loop.
        if (
            self._state == CircuitBreakerState.HALF_OPEN
            and self._half_open_permits_issued > 0
        ):
            self._half_open_permits_issued -= 1

    async def record_outcome(self, failed: bool, duration_seconds: float) -> None:
        """
        Record the outcome of a completed call.

        The outcome is applied to the state current at completion time.
        Outcomes arriving while OPEN are ignored.

        Args:
            failed: Whether the call failed
            duration_seconds: How long the call took
        """
        outcome = CallOutcome(
            failed=failed,
            slow=duration_seconds > self._slow_call_duration_seconds,
        )
        if outcome.failed:
            record_circuit_call(self._name, "failure")
        elif outcome.slow:
            record_circuit_call(self._name, "slow")
        else:
            record_circuit_call(self._name, "success")

        async with self._lock:
            state = self._refresh_state()
            if state == CircuitBreakerState.CLOSED:
                self._window.append(outcome)
                self._evaluate_window()
            elif state == CircuitBreakerState.HALF_OPEN:
                self._evaluate_trials(outcome)

    async def record_success(self, duration_seconds: float = 0.0) -> None:
        """Record a successful call."""
        await self.record_outcome(failed=False, duration_seconds=duration_seconds)

    async def record_failure(self, duration_seconds: float = 0.0) -> None:
        """Record a failed call."""
        await self.record_outcome(failed=True, duration_seconds=duration_seconds)

    async def reset(self) -> None:
        """Force the breaker back to CLOSED with an empty window."""
        async with self._lock:
            self._transition(CircuitBreakerState.CLOSED)
            self._window.clear()

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function through the circuit breaker.

        Errors proving the upstream answered (not-found, other 4xx) are
        recorded as healthy calls; every other exception is a failure.
        A cancelled call records nothing.

        Args:
            func: Async function to call
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            The result of the function call

        Raises:
            CircuitOpenError: If the circuit rejects the call
            Exception: Any exception raised by the wrapped function
        """
        await self.acquire_permission()

        started = self._clock()
        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            self._release_permission()
            raise
        except UPSTREAM_ANSWERED_ERRORS:
            await self.record_success(self._clock() - started)
            raise
        except Exception:
            await self.record_failure(self._clock() - started)
            raise

        await self.record_success(self._clock() - started)
        return result


def _rate(outcomes: Any, predicate: Callable[[CallOutcome], bool]) -> float:
    total = len(outcomes)
    if total == 0:
        return 0.0
    return sum(1 for o in outcomes if predicate(o)) * 100.0 / total
