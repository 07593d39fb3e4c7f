"""
Unit tests for employee_gateway/core/config.py - Settings Class and Singleton.

Reference:
- GUIDELINES: Sinha pp. 193-195 - Pydantic BaseSettings pattern
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


class TestSettingsDefaults:
    """Defaults mirror the upstream resilience profile."""

    def test_settings_extends_base_settings(self):
        """Settings extends pydantic_settings.BaseSettings."""
        from pydantic_settings import BaseSettings

        from employee_gateway.core.config import Settings

        assert issubclass(Settings, BaseSettings)

    def test_upstream_defaults(self):
        """Upstream URL points at the local employee API by default."""
        from employee_gateway.core.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.upstream_base_url == "http://localhost:8112/api/v1/employee"
        assert settings.upstream_connect_timeout_seconds == 3.0
        assert settings.upstream_read_timeout_seconds == 5.0

    def test_circuit_breaker_defaults(self):
        """Window 10, 50% thresholds, 2s slow calls, 30s wait, 3 trial calls."""
        from employee_gateway.core.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.circuit_breaker_window_size == 10
        assert settings.circuit_breaker_failure_rate_threshold == 50.0
        assert settings.circuit_breaker_slow_call_rate_threshold == 50.0
        assert settings.circuit_breaker_slow_call_duration_seconds == 2.0
        assert settings.circuit_breaker_wait_duration_seconds == 30.0
        assert settings.circuit_breaker_half_open_calls == 3

    def test_rate_limit_and_retry_defaults(self):
        """50 permits per second with 500ms timeout; 3 attempts, 1s step, 5s cap."""
        from employee_gateway.core.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.rate_limit_permits_per_period == 50
        assert settings.rate_limit_refresh_period_seconds == 1.0
        assert settings.rate_limit_timeout_seconds == 0.5
        assert settings.retry_max_attempts == 3
        assert settings.retry_backoff_step_seconds == 1.0
        assert settings.retry_max_backoff_seconds == 5.0

    def test_cache_defaults(self):
        """by-id TTL is five times the collection TTL."""
        from employee_gateway.core.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.collection_cache_capacity == 1
        assert settings.by_id_cache_capacity == 500
        assert settings.by_id_cache_ttl_seconds == 5 * settings.collection_cache_ttl_seconds


class TestSettingsEnvPrefix:
    """Settings load from EMPLOYEE_GATEWAY_ prefixed variables."""

    def test_loads_from_prefixed_env_vars(self):
        """Prefixed variables override defaults."""
        from employee_gateway.core.config import Settings

        env = {
            "EMPLOYEE_GATEWAY_UPSTREAM_BASE_URL": "https://employees.internal/api/v1/employee",
            "EMPLOYEE_GATEWAY_CIRCUIT_BREAKER_WINDOW_SIZE": "20",
            "EMPLOYEE_GATEWAY_RATE_LIMIT_TIMEOUT_SECONDS": "0.25",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.upstream_base_url == "https://employees.internal/api/v1/employee"
        assert settings.circuit_breaker_window_size == 20
        assert settings.rate_limit_timeout_seconds == 0.25

    def test_unprefixed_env_vars_are_ignored(self):
        """Variables without the prefix do not leak into settings."""
        from employee_gateway.core.config import Settings

        with patch.dict(os.environ, {"RETRY_MAX_ATTEMPTS": "9"}, clear=True):
            settings = Settings()

        assert settings.retry_max_attempts == 3


class TestSettingsValidation:
    """Field validators reject bad values."""

    def test_rejects_non_http_upstream_url(self):
        """Upstream URL must use http or https."""
        from employee_gateway.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(upstream_base_url="ftp://employees.internal")

    def test_strips_trailing_slash_from_upstream_url(self):
        """Trailing slash is removed."""
        from employee_gateway.core.config import Settings

        settings = Settings(upstream_base_url="http://upstream.test/api/v1/employee/")

        assert settings.upstream_base_url == "http://upstream.test/api/v1/employee"

    def test_rejects_unknown_environment(self):
        """Environment is one of development, staging, production."""
        from employee_gateway.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_log_level_is_uppercased(self):
        """Log level is normalized to upper case."""
        from employee_gateway.core.config import Settings

        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_rejects_zero_window(self):
        """Window size must be at least 1."""
        from employee_gateway.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(circuit_breaker_window_size=0)


class TestSettingsSingleton:
    """get_settings() returns one cached instance."""

    def test_get_settings_returns_same_instance(self):
        """Repeated calls return the same object."""
        from employee_gateway.core.config import get_settings

        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
