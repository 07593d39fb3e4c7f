"""
Custom exceptions for the Employee Gateway.

This module provides the typed error set surfaced by the upstream client,
the resilience pipeline and the employee service. All exceptions inherit from
EmployeeGatewayError and carry an error code so the (external) routing layer
can map them to transport status codes without string matching.

Taxonomy:
    TransientUpstreamError   5xx, network, timeout, malformed payload (retryable)
    ClientRequestError       4xx other than 404 (never retried, surfaced as-is)
    NotFoundError            upstream 404 / unresolvable id (never retried)
    RateLimitExceededError   no permit within the acquire timeout
    CircuitOpenError         breaker is open, call not attempted
    UpstreamUnavailableError terminal failure of a write
    InvalidArgumentError     local validation failure, never reaches upstream

Reference:
- Release It! (Nygard): Fail fast, distinguish transient from permanent faults
- GUIDELINES: Specific exceptions, always capture with 'as e'
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# Error Codes
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for Employee Gateway exceptions.

    These codes provide a consistent way to identify error types
    across the facade boundary and in logging.
    """

    GATEWAY_ERROR = "GATEWAY_ERROR"
    TRANSIENT_UPSTREAM_ERROR = "TRANSIENT_UPSTREAM_ERROR"
    CLIENT_REQUEST_ERROR = "CLIENT_REQUEST_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"


# =============================================================================
# Base Exception
# =============================================================================


class EmployeeGatewayError(Exception):
    """
    Base exception for all Employee Gateway errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.GATEWAY_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# Upstream Errors
# =============================================================================


class UpstreamError(EmployeeGatewayError):
    """
    Common parent for errors produced while talking to the upstream service.

    Attributes:
        status_code: HTTP status code observed (None for transport failures).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: str = ErrorCode.GATEWAY_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.status_code = status_code


class TransientUpstreamError(UpstreamError):
    """
    Retryable upstream failure.

    Raised for 5xx responses, connection errors, timeouts and payloads the
    client could not decode.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: str = ErrorCode.TRANSIENT_UPSTREAM_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, status_code, error_code, **kwargs)


class ClientRequestError(UpstreamError):
    """
    Upstream rejected the request with a 4xx other than 404.

    Never retried: repeating the same request yields the same answer.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: str = ErrorCode.CLIENT_REQUEST_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, status_code, error_code, **kwargs)


class NotFoundError(UpstreamError):
    """
    The requested employee does not exist.

    Attributes:
        resource_id: Identifier (id or name) that did not resolve.
    """

    def __init__(
        self,
        message: str,
        resource_id: Optional[str] = None,
        status_code: Optional[int] = 404,
        error_code: str = ErrorCode.NOT_FOUND,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, status_code, error_code, **kwargs)
        self.resource_id = resource_id


# =============================================================================
# Resilience Errors
# =============================================================================


class RateLimitExceededError(EmployeeGatewayError):
    """
    No rate limiter permit became available within the acquire timeout.

    Attributes:
        limiter_name: Name of the rate limiter that rejected the call.
        timeout_seconds: The acquire timeout that elapsed.
    """

    def __init__(
        self,
        limiter_name: str,
        timeout_seconds: float,
        error_code: str = ErrorCode.RATE_LIMIT_EXCEEDED,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"RateLimitExceededError[{limiter_name}]: no permit within "
            f"{timeout_seconds:.3f}s",
            error_code,
            **kwargs,
        )
        self.limiter_name = limiter_name
        self.timeout_seconds = timeout_seconds


class CircuitOpenError(EmployeeGatewayError):
    """
    Exception raised when a circuit breaker is open.

    This indicates that the upstream service is considered unhealthy
    and requests should fail fast rather than waiting for timeout.

    Attributes:
        circuit_name: Name of the circuit breaker that is open.
    """

    def __init__(
        self,
        circuit_name: str,
        message: str = "Circuit is open",
        error_code: str = ErrorCode.CIRCUIT_OPEN,
        **kwargs: Any,
    ) -> None:
        super().__init__(f"CircuitOpenError[{circuit_name}]: {message}", error_code, **kwargs)
        self.circuit_name = circuit_name


class UpstreamUnavailableError(EmployeeGatewayError):
    """
    A write could not be completed because the upstream is unavailable.

    Writes never degrade to a silent default; this error is raised instead,
    with the triggering error chained as __cause__.

    Attributes:
        operation: Name of the failed operation (create, delete).
    """

    def __init__(
        self,
        operation: str,
        message: str = "Upstream service unavailable",
        error_code: str = ErrorCode.UPSTREAM_UNAVAILABLE,
        **kwargs: Any,
    ) -> None:
        super().__init__(f"{message} during '{operation}'", error_code, **kwargs)
        self.operation = operation


# =============================================================================
# Validation Errors
# =============================================================================


class InvalidArgumentError(EmployeeGatewayError):
    """
    Local input validation failure.

    Raised before any rate limiter, breaker or upstream resource is touched.

    Attributes:
        field: Name of the first offending field (if known).
        errors: Every validation message collected.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[list[str]] = None,
        error_code: str = ErrorCode.INVALID_ARGUMENT,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.field = field
        self.errors = errors or [message]


# =============================================================================
# Classification Helpers
# =============================================================================

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (TransientUpstreamError,)
"""Errors the retry policy re-attempts."""

DEGRADABLE_ERRORS: tuple[type[Exception], ...] = (
    TransientUpstreamError,
    CircuitOpenError,
    RateLimitExceededError,
)
"""Errors that trigger the read fallback instead of propagating."""

UPSTREAM_ANSWERED_ERRORS: tuple[type[Exception], ...] = (
    ClientRequestError,
    NotFoundError,
)
"""Errors proving the upstream is reachable; recorded as healthy calls."""
