"""Error taxonomy for resilient-http.

Every failure raised by the library inherits from ``ResilientHTTPError``.
Failures of a single attempt are ``AttemptError`` subclasses and carry the
classification data (status code, symbolic error code, kind) consumed by
``is_retryable``.  ``CircuitOpenError`` is raised around the retry loop and
is never retried.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from resilient_http.models import Response


class ErrorKind(str, Enum):
    """Discriminator for ``AttemptError`` variants."""

    STATUS = "status"
    NETWORK = "network"
    TIMEOUT = "timeout"
    ABORT = "abort"
    OTHER = "other"


class ResilientHTTPError(Exception):
    """Base exception for all resilient-http errors."""


class ConfigurationError(ResilientHTTPError, ValueError):
    """Raised when a retry or circuit breaker configuration is invalid.

    Always raised at construction or merge time, never mid-request.
    """


class AttemptError(ResilientHTTPError):
    """A single attempt failed.

    Attributes:
        kind:        Which variant of failure this is.
        status_code: HTTP status, only for ``ErrorKind.STATUS``.
        error_code:  Symbolic network error (e.g. ``ECONNRESET``).
        attempts:    Attempts made when the error was surfaced.
    """

    kind: ErrorKind = ErrorKind.OTHER
    status_code: int | None = None
    error_code: str | None = None

    def __init__(self, message: str) -> None:
        self.message = message
        self.attempts = 1
        super().__init__(message)


class TransportError(AttemptError):
    """Base class for failures reported by a Transport."""


class HTTPStatusError(TransportError):
    """The remote endpoint answered with a non-2xx status."""

    kind = ErrorKind.STATUS

    def __init__(self, status_code: int, reason: str = "", response: Response | None = None) -> None:
        self.status_code = status_code
        self.reason = reason
        self.response = response
        msg = f"HTTP {status_code}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NetworkError(TransportError):
    """The request never produced a response (refused, reset, DNS...)."""

    kind = ErrorKind.NETWORK

    def __init__(self, error_code: str, detail: str = "") -> None:
        self.error_code = error_code
        self.detail = detail
        msg = f"Network error {error_code}"
        if detail:
            msg += f" — {detail}"
        super().__init__(msg)


class RequestTimeoutError(TransportError):
    """A single attempt exceeded its timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Request timeout after {timeout_seconds}s")


class RequestAbortedError(TransportError):
    """The in-flight request was aborted before completing."""

    kind = ErrorKind.ABORT

    def __init__(self, detail: str = "Request aborted") -> None:
        super().__init__(detail)


class CircuitOpenError(ResilientHTTPError):
    """Raised when a call is rejected because the circuit is open.

    Attributes:
        name:        Name of the circuit breaker that rejected the call.
        retry_after: Seconds until the circuit will admit a probe.
    """

    def __init__(self, name: str, retry_after: float) -> None:
        self.name = name
        self.retry_after = max(0.0, retry_after)
        super().__init__(f"Circuit open for '{name}' — retry after {self.retry_after:.1f}s")


class ErrorResponse(BaseModel):
    """Machine-readable description of a failed request.

    ``{"error": str, "code": str, "attempts": int | None}``, no stack traces.
    """

    error: str
    code: str
    attempts: int | None = None

    @classmethod
    def from_exception(cls, exc: Exception) -> "ErrorResponse":
        """Map *exc* to an error code; never leaks details of unknown errors."""
        if isinstance(exc, CircuitOpenError):
            return cls(error=str(exc), code="CIRCUIT_OPEN")
        if isinstance(exc, ConfigurationError):
            return cls(error=str(exc), code="CONFIGURATION_ERROR")
        if isinstance(exc, RequestTimeoutError):
            return cls(error=str(exc), code="TIMEOUT", attempts=exc.attempts)
        if isinstance(exc, HTTPStatusError):
            return cls(error=str(exc), code=f"HTTP_{exc.status_code}", attempts=exc.attempts)
        if isinstance(exc, NetworkError):
            return cls(error=str(exc), code=exc.error_code, attempts=exc.attempts)
        if isinstance(exc, AttemptError):
            return cls(error=str(exc), code="REQUEST_FAILED", attempts=exc.attempts)
        if isinstance(exc, ResilientHTTPError):
            return cls(error=str(exc), code="CLIENT_ERROR")
        return cls(error="An internal error occurred", code="INTERNAL_ERROR")
