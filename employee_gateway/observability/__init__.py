"""
Observability Package

This package provides structured JSON logging with correlation IDs.
Resilience metrics live in employee_gateway.resilience.metrics.
"""

from employee_gateway.observability.logging import (
    clear_correlation_id,
    configure_from_settings,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)

__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
]
