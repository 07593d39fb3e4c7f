"""
Integration Test Infrastructure

This module provides fixtures for integration tests. Most integration tests
wire the full gateway to the in-process fake upstream from tests/conftest.py;
tests marked as live run against a real employee directory and are skipped
when none is reachable.

Reference Documents:
- GUIDELINES pp. 155-157: "high and low gear" testing philosophy
"""

import os

import httpx
import pytest


# =============================================================================
# Live Upstream Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def live_upstream_url() -> str:
    """
    Employee directory URL for live tests.

    Returns URL from environment or the default local deployment URL.
    """
    return os.getenv("INTEGRATION_EMPLOYEE_API_URL", "http://localhost:8112/api/v1/employee")


@pytest.fixture(scope="session")
def live_upstream_available(live_upstream_url: str) -> bool:
    """
    Check if the live employee directory is reachable.

    Returns:
        True if the collection endpoint answers 200, False otherwise
    """
    try:
        with httpx.Client(timeout=2.0) as client:
            response = client.get(live_upstream_url)
            return response.status_code == 200
    except (httpx.ConnectError, httpx.TimeoutException):
        return False


@pytest.fixture
def skip_if_no_upstream(live_upstream_available: bool) -> None:
    """
    Skip test if the live employee directory is not available.

    Example:
        def test_something(skip_if_no_upstream, live_settings):
            # Skipped unless the directory is running
            pass
    """
    if not live_upstream_available:
        pytest.skip("Employee directory not available - set INTEGRATION_EMPLOYEE_API_URL")


@pytest.fixture
def live_settings(test_settings, live_upstream_url):
    """Test settings pointed at the live employee directory."""
    return test_settings.model_copy(update={"upstream_base_url": live_upstream_url})
