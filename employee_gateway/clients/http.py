"""
HTTP Client Module

This module provides the HTTP client factory used for the upstream employee
service, with connection pooling and split connect/read/pool timeouts.

Reference Documents:
- GUIDELINES pp. 2309: Connection pooling per downstream service (Newman)
- GUIDELINES pp. 2319: Timeout configuration and logging

Pattern: Factory pattern for creating configured HTTP clients

Note: Transport-level retries are disabled. Retrying is owned by the
resilience pipeline so that every attempt is visible to the circuit breaker.
"""

from typing import Optional

import httpx

from employee_gateway import __version__
from employee_gateway.core.config import Settings


# =============================================================================
# Default Configuration Constants
# =============================================================================

DEFAULT_CONNECT_TIMEOUT_SECONDS: float = 3.0
DEFAULT_READ_TIMEOUT_SECONDS: float = 5.0
DEFAULT_POOL_TIMEOUT_SECONDS: float = 2.0

DEFAULT_MAX_CONNECTIONS: int = 100
"""Maximum number of connections in the pool."""

DEFAULT_MAX_KEEPALIVE: int = 20
"""Maximum number of keepalive connections.

Pattern: Bulkhead pattern - connection isolation
Reference: GUIDELINES pp. 2313 - Newman Building Microservices pp. 359-360
"""

DEFAULT_KEEPALIVE_EXPIRY_SECONDS: float = 30.0
"""Idle pooled connections are closed after this many seconds."""


# =============================================================================
# HTTP Client Factory
# =============================================================================


def create_http_client(
    base_url: Optional[str] = None,
    connect_timeout_seconds: Optional[float] = None,
    read_timeout_seconds: Optional[float] = None,
    pool_timeout_seconds: Optional[float] = None,
    max_connections: Optional[int] = None,
    max_keepalive: Optional[int] = None,
    headers: Optional[dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create a configured HTTP client with connection pooling and timeouts.

    Args:
        base_url: Base URL for all requests
        connect_timeout_seconds: Connection timeout (default: 3.0)
        read_timeout_seconds: Read/write timeout (default: 5.0)
        pool_timeout_seconds: Timeout waiting for a pooled connection (default: 2.0)
        max_connections: Maximum connections in pool (default: 100)
        max_keepalive: Maximum keepalive connections (default: 20)
        headers: Additional headers to include in all requests
        transport: Custom transport (e.g. httpx.MockTransport in tests)

    Returns:
        httpx.AsyncClient: Configured async HTTP client

    Example:
        >>> client = create_http_client(read_timeout_seconds=10.0)
        >>> async with client:
        ...     response = await client.get("http://localhost:8112/api/v1/employee")
    """
    connect = (
        connect_timeout_seconds
        if connect_timeout_seconds is not None
        else DEFAULT_CONNECT_TIMEOUT_SECONDS
    )
    read = read_timeout_seconds if read_timeout_seconds is not None else DEFAULT_READ_TIMEOUT_SECONDS
    pool = pool_timeout_seconds if pool_timeout_seconds is not None else DEFAULT_POOL_TIMEOUT_SECONDS
    max_conn = max_connections if max_connections is not None else DEFAULT_MAX_CONNECTIONS
    max_keep = max_keepalive if max_keepalive is not None else DEFAULT_MAX_KEEPALIVE

    # Pattern: Bulkhead - separate pools prevent resource exhaustion
    limits = httpx.Limits(
        max_connections=max_conn,
        max_keepalive_connections=max_keep,
        keepalive_expiry=DEFAULT_KEEPALIVE_EXPIRY_SECONDS,
    )

    # Pattern: Timeouts prevent cascading failures
    timeout_config = httpx.Timeout(
        connect=connect,
        read=read,
        write=read,
        pool=pool,
    )

    default_headers = {
        "User-Agent": f"employee-gateway/{__version__}",
        "Accept": "application/json",
    }
    if headers:
        default_headers.update(headers)

    if transport is None:
        transport = httpx.AsyncHTTPTransport(retries=0, limits=limits)

    return httpx.AsyncClient(
        base_url=base_url or "",
        timeout=timeout_config,
        headers=default_headers,
        transport=transport,
    )


def create_http_client_from_settings(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the upstream HTTP client from application settings.

    Args:
        settings: Application settings
        transport: Custom transport (tests)

    Returns:
        httpx.AsyncClient: Configured async HTTP client
    """
    return create_http_client(
        connect_timeout_seconds=settings.upstream_connect_timeout_seconds,
        read_timeout_seconds=settings.upstream_read_timeout_seconds,
        pool_timeout_seconds=settings.upstream_pool_timeout_seconds,
        max_connections=settings.upstream_max_connections,
        max_keepalive=settings.upstream_max_keepalive,
        transport=transport,
    )
