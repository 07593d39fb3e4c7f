"""
Core module for the Employee Gateway.

This module contains configuration and the typed error set.
"""

from employee_gateway.core.config import Settings, get_settings
from employee_gateway.core.exceptions import (
    DEGRADABLE_ERRORS,
    RETRYABLE_ERRORS,
    UPSTREAM_ANSWERED_ERRORS,
    CircuitOpenError,
    ClientRequestError,
    EmployeeGatewayError,
    ErrorCode,
    InvalidArgumentError,
    NotFoundError,
    RateLimitExceededError,
    TransientUpstreamError,
    UpstreamError,
    UpstreamUnavailableError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "ErrorCode",
    "EmployeeGatewayError",
    "UpstreamError",
    "TransientUpstreamError",
    "ClientRequestError",
    "NotFoundError",
    "RateLimitExceededError",
    "CircuitOpenError",
    "UpstreamUnavailableError",
    "InvalidArgumentError",
    # Classification
    "RETRYABLE_ERRORS",
    "DEGRADABLE_ERRORS",
    "UPSTREAM_ANSWERED_ERRORS",
]
