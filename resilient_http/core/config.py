"""Configuration for resilient-http.

``RetryConfig`` and ``CircuitBreakerConfig`` are frozen value objects.
Overrides never mutate them; ``merge_config`` derives a validated copy.

``Settings`` loads process-wide defaults from environment variables with
the ``RESILIENT_HTTP_`` prefix.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings

from resilient_http.core.errors import ConfigurationError

DEFAULT_RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
DEFAULT_RETRYABLE_ERROR_CODES = frozenset({"ECONNRESET", "ECONNREFUSED", "ETIMEDOUT", "ENOTFOUND"})


class RetryConfig(BaseModel):
    """Per-request retry policy.

    Attributes:
        max_retries:           Retries after the first attempt (0 = one attempt).
        timeout:               Seconds allowed for a single attempt.
        base_delay:            Backoff delay for attempt 0, in seconds.
        max_delay:             Upper bound on any backoff delay, in seconds.
        jitter:                Use full jitter instead of the raw exponential delay.
        retryable_statuses:    HTTP statuses worth retrying.
        retryable_error_codes: Symbolic network error codes worth retrying.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int = Field(default=3, ge=0)
    timeout: float = Field(default=30.0, gt=0)
    base_delay: float = Field(default=1.0, gt=0)
    max_delay: float = Field(default=30.0, gt=0)
    jitter: bool = True
    retryable_statuses: frozenset[int] = DEFAULT_RETRYABLE_STATUSES
    retryable_error_codes: frozenset[str] = DEFAULT_RETRYABLE_ERROR_CODES

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryConfig":
        if self.max_delay < self.base_delay:
            raise ValueError(f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})")
        return self


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker thresholds.

    ``half_open_max_calls`` caps concurrent probes while half-open;
    ``None`` lets every call through as a probe.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True
    failure_threshold: int = Field(default=5, gt=0)
    success_threshold: int = Field(default=2, gt=0)
    open_timeout: float = Field(default=60.0, gt=0)
    half_open_max_calls: int | None = Field(default=None, gt=0)


ConfigT = TypeVar("ConfigT", RetryConfig, CircuitBreakerConfig)


def build_config(model: type[ConfigT], values: Mapping[str, Any] | None = None) -> ConfigT:
    """Validate *values* into *model*, raising ``ConfigurationError`` on failure."""
    try:
        return model.model_validate(dict(values or {}))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {model.__name__}: {exc}") from exc


def merge_config(base: ConfigT, overrides: Mapping[str, Any] | None) -> ConfigT:
    """Return *base* with *overrides* applied field by field.

    Only the keys present in *overrides* change.  The result is
    re-validated, so an override that breaks an invariant
    (e.g. ``max_delay < base_delay``) raises ``ConfigurationError``.
    """
    if not overrides:
        return base
    values = base.model_dump()
    values.update(overrides)
    return build_config(type(base), values)


class Settings(BaseSettings):
    """Environment-driven defaults.

    All fields can be overridden by environment variables prefixed with
    ``RESILIENT_HTTP_``.  For example, ``RESILIENT_HTTP_MAX_RETRIES=5``.
    """

    # ── Retry ───────────────────────────────────────────────────────
    TIMEOUT: float = 30.0  # Seconds per attempt
    MAX_RETRIES: int = 3
    BASE_DELAY: float = 1.0  # Seconds, doubled per attempt
    MAX_DELAY: float = 30.0
    JITTER: bool = True
    RETRYABLE_STATUSES: list[int] = sorted(DEFAULT_RETRYABLE_STATUSES)
    RETRYABLE_ERROR_CODES: list[str] = sorted(DEFAULT_RETRYABLE_ERROR_CODES)

    # ── Circuit breaker ─────────────────────────────────────────────
    CIRCUIT_BREAKER_ENABLED: bool = True
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5  # Consecutive failures before OPEN
    CIRCUIT_BREAKER_SUCCESS_THRESHOLD: int = 2  # Probe successes before CLOSED
    CIRCUIT_BREAKER_OPEN_TIMEOUT: float = 60.0  # Seconds before HALF_OPEN probe

    # ── Logging ─────────────────────────────────────────────────────
    LOG_LEVEL: str = "WARNING"

    model_config = {
        "env_prefix": "RESILIENT_HTTP_",
    }

    def retry_config(self) -> RetryConfig:
        return build_config(
            RetryConfig,
            {
                "max_retries": self.MAX_RETRIES,
                "timeout": self.TIMEOUT,
                "base_delay": self.BASE_DELAY,
                "max_delay": self.MAX_DELAY,
                "jitter": self.JITTER,
                "retryable_statuses": frozenset(self.RETRYABLE_STATUSES),
                "retryable_error_codes": frozenset(self.RETRYABLE_ERROR_CODES),
            },
        )

    def circuit_breaker_config(self) -> CircuitBreakerConfig:
        return build_config(
            CircuitBreakerConfig,
            {
                "enabled": self.CIRCUIT_BREAKER_ENABLED,
                "failure_threshold": self.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                "success_threshold": self.CIRCUIT_BREAKER_SUCCESS_THRESHOLD,
                "open_timeout": self.CIRCUIT_BREAKER_OPEN_TIMEOUT,
            },
        )
