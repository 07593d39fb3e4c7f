"""
Dependencies - Composition Root

This module wires the Employee Gateway together: one resilience pipeline
(one breaker, one rate limiter, one retry policy, one pair of caches) per
upstream dependency, the upstream client, and the services using them.

Reference Documents:
- GUIDELINES: Sinha pp. 89-91 (Dependency injection patterns)
- Architecture Patterns with Python (Percival & Gregory): Bootstrap script

Pattern: Factory functions that tests can call with their own settings,
transport and clock instead of patching module globals.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

import httpx

from employee_gateway.clients.employee_api import EmployeeApiClient
from employee_gateway.core.config import Settings, get_settings
from employee_gateway.observability.logging import configure_from_settings, get_logger
from employee_gateway.resilience.pipeline import ResiliencePipeline
from employee_gateway.services.employees import EmployeeService
from employee_gateway.services.health import HealthChecker

logger = get_logger(__name__)


def build_employee_service(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Callable[[], float] = time.monotonic,
) -> EmployeeService:
    """
    Build the employee service with its own pipeline and upstream client.

    Call once per process and share the result; every call creates a new
    breaker, limiter and cache pair.

    Args:
        settings: Application settings (default: get_settings())
        transport: Custom HTTP transport (tests)
        clock: Monotonic time source for breaker, limiter and caches

    Returns:
        EmployeeService; release it with `await service.aclose()`
    """
    settings = settings or get_settings()
    configure_from_settings(settings)

    pipeline = ResiliencePipeline.from_settings(settings, clock=clock)
    client = EmployeeApiClient.from_settings(settings, transport=transport)

    logger.info(
        "employee service built",
        service=settings.service_name,
        environment=settings.environment,
        upstream=settings.upstream_base_url,
    )
    return EmployeeService(client=client, pipeline=pipeline)


def build_health_checker(service: EmployeeService) -> HealthChecker:
    """
    Build a health checker sharing the service's client and pipeline.

    Args:
        service: Service returned by build_employee_service()
    """
    return HealthChecker(client=service.client, pipeline=service.pipeline)


@asynccontextmanager
async def employee_service_context(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncGenerator[EmployeeService, None]:
    """
    Lifespan helper: build the service and close it on exit.

    Example:
        >>> async with employee_service_context() as service:
        ...     employees = await service.list_all()
    """
    service = build_employee_service(settings, transport=transport)
    try:
        yield service
    finally:
        await service.aclose()
        logger.info("employee service closed")
