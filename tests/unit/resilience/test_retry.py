"""
Tests for the Retry Policy.

Reference Documents:
- Release It! (Nygard): Retries must be bounded

This module tests:
- Only transient errors are retried
- Linear capped backoff between attempts
- Exhaustion re-raises the last observed error
- Cancellation aborts a pending backoff
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from employee_gateway.core.exceptions import (
    CircuitOpenError,
    ClientRequestError,
    NotFoundError,
    TransientUpstreamError,
)
from employee_gateway.resilience.retry import RetryPolicy


@pytest.fixture
def policy(recording_sleep):
    """Default policy: 3 attempts, 1s step, 5s cap."""
    return RetryPolicy(sleep=recording_sleep)


class TestRetryOnTransientErrors:
    """Transient failures are re-attempted."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, policy, recording_sleep) -> None:
        func = AsyncMock(return_value=["employee"])

        assert await policy.execute("list_all", func) == ["employee"]

        func.assert_awaited_once()
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, policy, recording_sleep) -> None:
        """Attempt 1 fails -> wait 1s, attempt 2 fails -> wait 2s, attempt 3 succeeds."""
        func = AsyncMock(
            side_effect=[
                TransientUpstreamError("502", status_code=502),
                TransientUpstreamError("timeout"),
                "ok",
            ]
        )

        assert await policy.execute("get_by_id", func) == "ok"

        assert func.await_count == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self, policy, recording_sleep) -> None:
        errors = [TransientUpstreamError(f"failure {i}") for i in range(3)]
        func = AsyncMock(side_effect=errors)

        with pytest.raises(TransientUpstreamError) as exc_info:
            await policy.execute("list_all", func)

        assert exc_info.value is errors[-1]
        assert func.await_count == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_passes_arguments_through(self, policy) -> None:
        func = AsyncMock(return_value="found")

        await policy.execute("get_by_id", func, "42", verbose=True)

        func.assert_awaited_once_with("42", verbose=True)


class TestNoRetryOnPermanentErrors:
    """Non-transient errors propagate on the first occurrence."""

    @pytest.mark.parametrize(
        "error",
        [
            ClientRequestError("bad request", status_code=400),
            NotFoundError("missing", resource_id="42"),
            CircuitOpenError("employee-api"),
            ValueError("bug"),
        ],
    )
    @pytest.mark.asyncio
    async def test_not_retried(self, policy, recording_sleep, error) -> None:
        func = AsyncMock(side_effect=error)

        with pytest.raises(type(error)):
            await policy.execute("create", func)

        func.assert_awaited_once()
        assert recording_sleep.delays == []


class TestBackoff:
    """Linear capped backoff."""

    def test_backoff_is_linear(self, policy) -> None:
        assert policy.backoff_for(1) == 1.0
        assert policy.backoff_for(2) == 2.0
        assert policy.backoff_for(4) == 4.0

    def test_backoff_is_capped(self, policy) -> None:
        assert policy.backoff_for(5) == 5.0
        assert policy.backoff_for(9) == 5.0

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_from_settings(self, test_settings) -> None:
        policy = RetryPolicy.from_settings(test_settings)

        assert policy.max_attempts == test_settings.retry_max_attempts
        assert policy.backoff_for(1) == 0.0


class TestCancellation:
    """A pending backoff is aborted by cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self) -> None:
        sleeping = asyncio.Event()

        async def block(seconds: float) -> None:
            sleeping.set()
            await asyncio.Event().wait()

        policy = RetryPolicy(sleep=block)
        func = AsyncMock(side_effect=TransientUpstreamError("boom"))

        task = asyncio.create_task(policy.execute("list_all", func))
        await sleeping.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        func.assert_awaited_once()
