"""Tests for configuration models, merging and Settings.

Verifies that:
- RetryConfig / CircuitBreakerConfig carry typed defaults and are frozen
- Invalid values are rejected at construction or merge time
- merge_config only changes the keys it is given
- Settings reads RESILIENT_HTTP_ prefixed env vars
"""

import pytest
from pydantic import ValidationError

from resilient_http.core.config import (
    CircuitBreakerConfig,
    RetryConfig,
    Settings,
    build_config,
    merge_config,
)
from resilient_http.core.errors import ConfigurationError


class TestRetryConfigDefaults:
    def test_defaults(self):
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.timeout == 30.0
        assert config.base_delay == 1.0
        assert config.max_delay == 30.0
        assert config.jitter is True

    def test_default_retryable_sets(self):
        config = RetryConfig()
        assert config.retryable_statuses == {408, 429, 500, 502, 503, 504}
        assert config.retryable_error_codes == {"ECONNRESET", "ECONNREFUSED", "ETIMEDOUT", "ENOTFOUND"}

    def test_is_frozen(self):
        config = RetryConfig()
        with pytest.raises(ValidationError):
            config.max_retries = 10

    def test_statuses_accept_lists(self):
        assert RetryConfig(retryable_statuses=[503, 503]).retryable_statuses == frozenset({503})


class TestRetryConfigValidation:
    @pytest.mark.parametrize(
        "values",
        [
            {"max_retries": -1},
            {"timeout": 0},
            {"base_delay": 0},
            {"max_delay": -1.0},
            {"base_delay": 2.0, "max_delay": 1.0},
            {"unknown_field": 1},
        ],
    )
    def test_rejects_invalid_values(self, values):
        with pytest.raises(ConfigurationError):
            build_config(RetryConfig, values)

    def test_zero_retries_allowed(self):
        assert build_config(RetryConfig, {"max_retries": 0}).max_retries == 0

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            build_config(RetryConfig, {"timeout": -5})


class TestCircuitBreakerConfig:
    def test_defaults(self):
        config = CircuitBreakerConfig()
        assert config.enabled is True
        assert config.failure_threshold == 5
        assert config.success_threshold == 2
        assert config.open_timeout == 60.0
        assert config.half_open_max_calls is None

    @pytest.mark.parametrize(
        "values",
        [
            {"failure_threshold": 0},
            {"success_threshold": 0},
            {"open_timeout": 0},
            {"half_open_max_calls": 0},
        ],
    )
    def test_rejects_invalid_values(self, values):
        with pytest.raises(ConfigurationError):
            build_config(CircuitBreakerConfig, values)


class TestMergeConfig:
    def test_only_given_fields_change(self):
        base = RetryConfig(max_retries=5, timeout=10.0)
        merged = merge_config(base, {"timeout": 2.0})
        assert merged.timeout == 2.0
        assert merged.max_retries == 5
        assert base.timeout == 10.0

    def test_empty_overrides_return_base(self):
        base = RetryConfig()
        assert merge_config(base, {}) is base
        assert merge_config(base, None) is base

    def test_merge_revalidates(self):
        with pytest.raises(ConfigurationError, match="max_delay"):
            merge_config(RetryConfig(base_delay=1.0, max_delay=5.0), {"max_delay": 0.5})

    def test_merges_breaker_config(self):
        base = CircuitBreakerConfig(failure_threshold=8)
        merged = merge_config(base, {"open_timeout": 1.5})
        assert merged == CircuitBreakerConfig(failure_threshold=8, open_timeout=1.5)


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.MAX_RETRIES == 3
        assert settings.TIMEOUT == 30.0
        assert settings.CIRCUIT_BREAKER_ENABLED is True
        assert settings.LOG_LEVEL == "WARNING"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("RESILIENT_HTTP_TIMEOUT", "4.5")
        monkeypatch.setenv("RESILIENT_HTTP_JITTER", "false")
        monkeypatch.setenv("RESILIENT_HTTP_RETRYABLE_STATUSES", "[503]")
        monkeypatch.setenv("RESILIENT_HTTP_CIRCUIT_BREAKER_OPEN_TIMEOUT", "12")

        settings = Settings()
        retry = settings.retry_config()
        breaker = settings.circuit_breaker_config()

        assert retry.timeout == 4.5
        assert retry.jitter is False
        assert retry.retryable_statuses == {503}
        assert breaker.open_timeout == 12.0

    def test_invalid_env_values_raise_configuration_error(self, monkeypatch):
        monkeypatch.setenv("RESILIENT_HTTP_BASE_DELAY", "10")
        monkeypatch.setenv("RESILIENT_HTTP_MAX_DELAY", "1")
        with pytest.raises(ConfigurationError):
            Settings().retry_config()
