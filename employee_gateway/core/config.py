"""
Core configuration module for the Employee Gateway.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the EMPLOYEE_GATEWAY_ prefix.

Defaults mirror the resilience profile of the upstream employee service:
- Circuit breaker: count-based window of 10, 50% failure / slow-call rate,
  slow call > 2s, 30s open wait, 3 half-open trial calls
- Rate limiter: 50 permits per 1s period, 500ms acquire timeout
- Retry: 3 attempts, linear backoff of 1s per attempt capped at 5s
- Caches: collection 60s TTL (capacity 1), by-id 300s TTL (capacity 500)

Reference:
- GUIDELINES: Sinha pp. 193-195 - Pydantic BaseSettings pattern
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the EMPLOYEE_GATEWAY_ prefix for environment variables.
    Example: EMPLOYEE_GATEWAY_UPSTREAM_BASE_URL=http://mock-api:8112/api/v1/employee
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="employee-gateway",
        description="Name of the service for logging and identification",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    # =========================================================================
    # Upstream HTTP Client
    # =========================================================================
    upstream_base_url: str = Field(
        default="http://localhost:8112/api/v1/employee",
        description="Base URL of the upstream employee collection resource",
    )
    upstream_connect_timeout_seconds: float = Field(
        default=3.0,
        gt=0.0,
        le=60.0,
        description="Timeout for establishing an upstream connection",
    )
    upstream_read_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        description="Timeout for reading an upstream response",
    )
    upstream_pool_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        le=60.0,
        description="Timeout for acquiring a pooled connection",
    )
    upstream_max_connections: int = Field(
        default=100,
        ge=1,
        description="Maximum connections in the upstream pool",
    )
    upstream_max_keepalive: int = Field(
        default=20,
        ge=0,
        description="Maximum keepalive connections in the upstream pool",
    )

    # =========================================================================
    # Result Caches
    # =========================================================================
    collection_cache_ttl_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="TTL of the whole-collection cache entry",
    )
    collection_cache_capacity: int = Field(
        default=1,
        ge=1,
        description="Capacity of the collection cache",
    )
    by_id_cache_ttl_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="TTL of by-id cache entries",
    )
    by_id_cache_capacity: int = Field(
        default=500,
        ge=1,
        description="Capacity of the by-id cache (LRU beyond this)",
    )

    # =========================================================================
    # Circuit Breaker
    # =========================================================================
    circuit_breaker_window_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Number of recent outcomes kept in the sliding window",
    )
    circuit_breaker_failure_rate_threshold: float = Field(
        default=50.0,
        gt=0.0,
        le=100.0,
        description="Failure rate (percent) at which the circuit opens",
    )
    circuit_breaker_slow_call_rate_threshold: float = Field(
        default=50.0,
        gt=0.0,
        le=100.0,
        description="Slow-call rate (percent) at which the circuit opens",
    )
    circuit_breaker_slow_call_duration_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Calls slower than this count as slow",
    )
    circuit_breaker_wait_duration_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=600.0,
        description="Seconds the circuit stays open before half-open",
    )
    circuit_breaker_half_open_calls: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Trial calls permitted in half-open state",
    )

    # =========================================================================
    # Rate Limiter
    # =========================================================================
    rate_limit_permits_per_period: int = Field(
        default=50,
        ge=1,
        description="Permits granted per refresh period",
    )
    rate_limit_refresh_period_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Length of the permit refresh period",
    )
    rate_limit_timeout_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Maximum time a caller waits for a permit",
    )

    # =========================================================================
    # Retry
    # =========================================================================
    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts, including the first one",
    )
    retry_backoff_step_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Backoff grows by this amount per failed attempt",
    )
    retry_max_backoff_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Upper bound for a single backoff",
    )

    # =========================================================================
    # Environment Prefix Configuration
    # =========================================================================
    model_config = {
        "env_prefix": "EMPLOYEE_GATEWAY_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    # =========================================================================
    # Field Validators
    # =========================================================================
    @field_validator("upstream_base_url")
    @classmethod
    def validate_upstream_base_url(cls, v: str) -> str:
        """Validate upstream URL scheme and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Upstream URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level value."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
