"""
Clients Package

This package provides the HTTP client factory and the client for the
upstream employee directory service.

Reference Documents:
- GUIDELINES pp. 2309: Connection pooling per downstream service
"""

from employee_gateway.clients.employee_api import DEFAULT_BASE_URL, EmployeeApiClient
from employee_gateway.clients.http import (
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_MAX_KEEPALIVE,
    create_http_client,
    create_http_client_from_settings,
)

__all__ = [
    # HTTP Client Factory
    "create_http_client",
    "create_http_client_from_settings",
    "DEFAULT_MAX_CONNECTIONS",
    "DEFAULT_MAX_KEEPALIVE",
    # Employee API Client
    "EmployeeApiClient",
    "DEFAULT_BASE_URL",
]
