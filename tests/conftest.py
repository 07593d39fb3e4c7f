"""
Pytest configuration for the Employee Gateway test suite.

Reference Documents:
- GUIDELINES pp. 155-157: "high and low gear" testing philosophy
- GUIDELINES pp. 157: FakeRepository pattern using duck typing

This configuration sets up:
- Test discovery paths
- Test markers for categorization
- A fake clock and a recording sleep for deterministic timing
- A fake upstream employee directory served through httpx.MockTransport
- Test settings with fast retry backoff
"""

import json
import sys
from pathlib import Path
from typing import Any, Optional, Union
from unittest.mock import AsyncMock

import httpx
import pytest

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


TEST_BASE_URL = "http://upstream.test/api/v1/employee"
TEST_BASE_PATH = "/api/v1/employee"


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    - unit: Low gear tests for individual components
    - integration: High gear tests wiring the service to a fake upstream
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for service interactions")


# =============================================================================
# Time Doubles
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep double that records delays and advances a FakeClock."""

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Create a fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def recording_sleep(fake_clock) -> RecordingSleep:
    """Create a sleep double bound to the fake clock."""
    return RecordingSleep(fake_clock)


# =============================================================================
# Employee Payloads
# =============================================================================


def employee_payload(
    employee_id: Union[str, int],
    name: str,
    salary: int,
    age: int = 30,
    title: str = "Engineer",
    email: Optional[str] = None,
) -> dict[str, Any]:
    """Build an employee in the upstream wire format."""
    return {
        "id": str(employee_id),
        "employee_name": name,
        "employee_salary": salary,
        "employee_age": age,
        "employee_title": title,
        "employee_email": email,
    }


@pytest.fixture
def sample_payloads() -> list[dict[str, Any]]:
    """Three employees in upstream wire format."""
    return [
        employee_payload("1", "Tiger Nixon", 320800, 61, "System Architect"),
        employee_payload("2", "Garrett Winters", 170750, 63, "Accountant"),
        employee_payload("3", "Ashton Cox", 86000, 66, "Junior Technical Author"),
    ]


# =============================================================================
# Fake Upstream
# =============================================================================


class FakeUpstream:
    """
    In-memory employee directory speaking the upstream HTTP contract.

    Failures can be queued with `fail_with(...)`; each queued failure is
    consumed by the next request. A failure is either an HTTP status code
    or an exception to raise from the transport.
    """

    def __init__(self, employees: Optional[list[dict[str, Any]]] = None) -> None:
        self.employees: list[dict[str, Any]] = [dict(e) for e in employees or []]
        self.requests: list[httpx.Request] = []
        self._failures: list[Union[int, Exception]] = []
        self._next_id = 1000

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def fail_with(self, *failures: Union[int, Exception]) -> None:
        self._failures.extend(failures)

    def count(self, method: str, path: Optional[str] = None) -> int:
        return sum(
            1
            for r in self.requests
            if r.method == method and (path is None or r.url.path == path)
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self._failures:
            failure = self._failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return httpx.Response(failure, json={"status": "error"})

        path = request.url.path
        if path == TEST_BASE_PATH:
            if request.method == "GET":
                return httpx.Response(200, json={"data": self.employees})
            if request.method == "POST":
                return self._create(json.loads(request.content))
            if request.method == "DELETE":
                return self._delete(json.loads(request.content))

        if path.startswith(TEST_BASE_PATH + "/") and request.method == "GET":
            employee_id = path.rsplit("/", 1)[1]
            for employee in self.employees:
                if employee["id"] == employee_id:
                    return httpx.Response(200, json={"data": employee})
            return httpx.Response(404, json={"status": "not found"})

        return httpx.Response(405, json={"status": "method not allowed"})

    def _create(self, body: dict[str, Any]) -> httpx.Response:
        self._next_id += 1
        created = employee_payload(
            self._next_id, body["name"], body["salary"], body["age"], body["title"]
        )
        self.employees.append(created)
        return httpx.Response(200, json={"data": created})

    def _delete(self, body: dict[str, Any]) -> httpx.Response:
        for index, employee in enumerate(self.employees):
            if employee["employee_name"] == body["name"]:
                del self.employees[index]
                return httpx.Response(200, json={"data": True})
        return httpx.Response(200, json={"data": False})


@pytest.fixture
def fake_upstream(sample_payloads) -> FakeUpstream:
    """Create a fake upstream seeded with the sample employees."""
    return FakeUpstream(sample_payloads)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings():
    """
    Create test settings with safe defaults.

    - Fake upstream host
    - No retry backoff (attempt count unchanged)
    - Rate limit high enough not to interfere
    """
    from employee_gateway.core.config import Settings

    return Settings(
        service_name="employee-gateway-test",
        environment="development",
        log_level="DEBUG",
        upstream_base_url=TEST_BASE_URL,
        retry_backoff_step_seconds=0.0,
        retry_max_backoff_seconds=0.0,
        rate_limit_permits_per_period=1000,
    )


@pytest.fixture
def mock_http_client():
    """
    Create a mock HTTP client for client fixtures.

    Returns:
        AsyncMock: A mock httpx.AsyncClient
    """
    return AsyncMock(spec=httpx.AsyncClient)


@pytest.fixture
def payload_factory():
    """Expose employee_payload() to tests."""
    return employee_payload


@pytest.fixture
def upstream_factory():
    """Expose FakeUpstream to tests needing a custom directory."""
    return FakeUpstream
