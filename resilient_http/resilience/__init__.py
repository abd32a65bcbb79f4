"""Resilience patterns: circuit breaker and retry with backoff.

The breaker gates whole logical calls; the retry executor runs the
attempts of one call.  Neither logs: observability goes through hooks.
"""

from resilient_http.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitSnapshot,
    CircuitState,
)
from resilient_http.resilience.retry import (
    RetryExecutor,
    calculate_delay,
    is_retryable,
)

__all__ = [
    "CircuitBreaker",
    "CircuitSnapshot",
    "CircuitState",
    "RetryExecutor",
    "calculate_delay",
    "is_retryable",
]
