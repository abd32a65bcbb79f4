"""resilient-http: HTTP requests with retries, backoff and a circuit breaker."""

from resilient_http.client import ResilientClient, fetch
from resilient_http.core.config import CircuitBreakerConfig, RetryConfig, Settings, merge_config
from resilient_http.core.errors import (
    AttemptError,
    CircuitOpenError,
    ConfigurationError,
    ErrorKind,
    HTTPStatusError,
    NetworkError,
    RequestAbortedError,
    RequestTimeoutError,
    ResilientHTTPError,
    TransportError,
)
from resilient_http.models import RequestDescriptor, Response
from resilient_http.resilience import (
    CircuitBreaker,
    CircuitSnapshot,
    CircuitState,
    RetryExecutor,
    calculate_delay,
    is_retryable,
)
from resilient_http.transport import HttpxTransport, Transport

__all__ = [
    "AttemptError",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitSnapshot",
    "CircuitState",
    "ConfigurationError",
    "ErrorKind",
    "HTTPStatusError",
    "HttpxTransport",
    "NetworkError",
    "RequestAbortedError",
    "RequestDescriptor",
    "RequestTimeoutError",
    "ResilientClient",
    "ResilientHTTPError",
    "Response",
    "RetryConfig",
    "RetryExecutor",
    "Settings",
    "Transport",
    "TransportError",
    "calculate_delay",
    "fetch",
    "is_retryable",
    "merge_config",
]
