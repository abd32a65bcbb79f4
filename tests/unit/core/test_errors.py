"""Error taxonomy tests.

Covers the exception hierarchy, the classification fields each variant
carries, and the ErrorResponse mapping (no internal details leaked).
"""

from resilient_http.core.errors import (
    AttemptError,
    CircuitOpenError,
    ConfigurationError,
    ErrorKind,
    ErrorResponse,
    HTTPStatusError,
    NetworkError,
    RequestAbortedError,
    RequestTimeoutError,
    ResilientHTTPError,
    TransportError,
)

# ── Hierarchy ──────────────────────────────────────────────────────────


class TestErrorHierarchy:
    """All library errors inherit from ResilientHTTPError."""

    def test_transport_errors_are_attempt_errors(self) -> None:
        for cls in (HTTPStatusError, NetworkError, RequestTimeoutError, RequestAbortedError):
            assert issubclass(cls, TransportError)
            assert issubclass(cls, AttemptError)

    def test_circuit_open_is_not_an_attempt_error(self) -> None:
        assert issubclass(CircuitOpenError, ResilientHTTPError)
        assert not issubclass(CircuitOpenError, AttemptError)

    def test_configuration_error_is_value_error(self) -> None:
        assert issubclass(ConfigurationError, ResilientHTTPError)
        assert issubclass(ConfigurationError, ValueError)


# ── Classification fields ──────────────────────────────────────────────


class TestClassificationFields:
    def test_status_error(self) -> None:
        err = HTTPStatusError(503, "Service Unavailable")
        assert err.kind == ErrorKind.STATUS
        assert err.status_code == 503
        assert err.error_code is None
        assert str(err) == "HTTP 503: Service Unavailable"

    def test_network_error(self) -> None:
        err = NetworkError("ECONNRESET", "peer reset")
        assert err.kind == ErrorKind.NETWORK
        assert err.error_code == "ECONNRESET"
        assert err.status_code is None
        assert "ECONNRESET" in str(err)

    def test_timeout_error(self) -> None:
        err = RequestTimeoutError(2.5)
        assert err.kind == ErrorKind.TIMEOUT
        assert err.timeout_seconds == 2.5
        assert str(err) == "Request timeout after 2.5s"

    def test_abort_error(self) -> None:
        assert RequestAbortedError().kind == ErrorKind.ABORT

    def test_attempts_default_to_one(self) -> None:
        assert AttemptError("boom").attempts == 1

    def test_circuit_open_attributes(self) -> None:
        exc = CircuitOpenError("payments", 25.5)
        assert exc.name == "payments"
        assert exc.retry_after == 25.5
        assert "payments" in str(exc)

    def test_circuit_open_negative_retry_clamped(self) -> None:
        assert CircuitOpenError("test", -5.0).retry_after == 0.0


# ── ErrorResponse ──────────────────────────────────────────────────────


class TestErrorResponse:
    def test_circuit_open(self) -> None:
        resp = ErrorResponse.from_exception(CircuitOpenError("svc", 3.0))
        assert resp.code == "CIRCUIT_OPEN"
        assert resp.attempts is None

    def test_status_error_carries_attempts(self) -> None:
        err = HTTPStatusError(502)
        err.attempts = 4
        resp = ErrorResponse.from_exception(err)
        assert resp.code == "HTTP_502"
        assert resp.attempts == 4

    def test_network_error_uses_error_code(self) -> None:
        assert ErrorResponse.from_exception(NetworkError("ENOTFOUND")).code == "ENOTFOUND"

    def test_timeout(self) -> None:
        assert ErrorResponse.from_exception(RequestTimeoutError(1.0)).code == "TIMEOUT"

    def test_configuration_error(self) -> None:
        assert ErrorResponse.from_exception(ConfigurationError("bad")).code == "CONFIGURATION_ERROR"

    def test_unknown_exception_hides_details(self) -> None:
        resp = ErrorResponse.from_exception(RuntimeError("secret path /etc/passwd"))
        assert resp.code == "INTERNAL_ERROR"
        assert "secret" not in resp.error

    def test_serialises(self) -> None:
        resp = ErrorResponse.from_exception(RequestTimeoutError(1.0))
        assert resp.model_dump() == {"error": "Request timeout after 1.0s", "code": "TIMEOUT", "attempts": 1}
