"""ResilientClient: a circuit breaker around a retry loop around one Transport.

    request()
      └─ CircuitBreaker.execute          (shared across calls)
           └─ RetryExecutor.run          (one per call)
                └─ Transport.call × (max_retries + 1)

The client owns exactly one breaker and one base ``RetryConfig``.  Share
the client to share the breaker's health signal across call sites.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from resilient_http.core.config import (
    CircuitBreakerConfig,
    RetryConfig,
    Settings,
    build_config,
    merge_config,
)
from resilient_http.models import RequestDescriptor, Response
from resilient_http.resilience.circuit_breaker import CircuitBreaker, CircuitSnapshot
from resilient_http.resilience.retry import RetryExecutor, RetryHook
from resilient_http.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class ResilientClient:
    """HTTP client with bounded retries and a circuit breaker.

    Args:
        retry_config:           Base retry policy, as a ``RetryConfig`` or a
                                mapping of its fields.
        circuit_breaker_config: Breaker thresholds, as a
                                ``CircuitBreakerConfig`` or a mapping.
        transport:              Performs single attempts.  Defaults to an
                                ``HttpxTransport`` owned (and closed) by
                                the client.
        name:                   Target name used in ``CircuitOpenError``.
        on_retry:               ``(attempt_number, error)`` before each backoff.
        on_circuit_open:        Called when the breaker opens.
        on_circuit_close:       Called when the breaker closes again.
        sleep:                  Backoff sleep primitive.
        clock:                  Breaker time source.

    Raises:
        ConfigurationError: If either configuration is invalid.
    """

    def __init__(
        self,
        retry_config: RetryConfig | Mapping[str, Any] | None = None,
        circuit_breaker_config: CircuitBreakerConfig | Mapping[str, Any] | None = None,
        *,
        transport: Transport | None = None,
        name: str = "default",
        on_retry: RetryHook | None = None,
        on_circuit_open: Callable[[], None] | None = None,
        on_circuit_close: Callable[[], None] | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not isinstance(retry_config, RetryConfig):
            retry_config = build_config(RetryConfig, retry_config)
        if not isinstance(circuit_breaker_config, CircuitBreakerConfig):
            circuit_breaker_config = build_config(CircuitBreakerConfig, circuit_breaker_config)

        self.name = name
        self.on_retry = on_retry
        self.on_circuit_open = on_circuit_open
        self.on_circuit_close = on_circuit_close

        self._retry_config = retry_config
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport()
        self._executor = RetryExecutor(sleep=sleep)
        self._breaker = CircuitBreaker(
            circuit_breaker_config,
            name=name,
            on_open=self._handle_circuit_open,
            on_close=self._handle_circuit_close,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> "ResilientClient":
        """Build a client from environment-driven ``Settings``."""
        settings = settings or Settings()
        return cls(settings.retry_config(), settings.circuit_breaker_config(), **kwargs)

    # ── Configuration ───────────────────────────────────────────────

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    @property
    def circuit_breaker_config(self) -> CircuitBreakerConfig:
        return self._breaker.config

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    def update_config(self, **fields: Any) -> None:
        """Replace base configuration fields for all future calls.

        Retry fields are given as keywords.  ``circuit_breaker`` takes a
        mapping and merges only the keys it contains.  Both configurations
        are validated before either is applied.  Calls already in flight
        keep the configuration they started with.
        """
        breaker_overrides = fields.pop("circuit_breaker", None)
        retry_config = merge_config(self._retry_config, fields)
        breaker_config = merge_config(self._breaker.config, breaker_overrides)
        self._retry_config = retry_config
        self._breaker.config = breaker_config

    # ── Requests ────────────────────────────────────────────────────

    async def request(self, request: RequestDescriptor, **overrides: Any) -> Response:
        """Send *request* with retries, through the circuit breaker.

        *overrides* (and ``request.overrides``) replace base ``RetryConfig``
        fields for this call only, e.g. ``timeout=5.0`` or ``max_retries=0``.
        A ``circuit_breaker`` mapping replaces only the breaker fields it
        names, e.g. ``circuit_breaker={"enabled": False}`` to bypass the
        breaker for one call.  Call overrides win over ``request.overrides``.

        Returns:
            The ``Response`` of the first successful attempt.

        Raises:
            CircuitOpenError: The breaker rejected the call; no attempt was made.
            TransportError: The final attempt's failure.
            ConfigurationError: The overrides produce an invalid configuration.
        """
        retry_overrides = dict(request.overrides)
        breaker_overrides = dict(retry_overrides.pop("circuit_breaker", None) or {})
        call_overrides = dict(overrides)
        breaker_overrides.update(call_overrides.pop("circuit_breaker", None) or {})
        retry_overrides.update(call_overrides)

        config = merge_config(self._retry_config, retry_overrides)
        breaker_config = merge_config(self._breaker.config, breaker_overrides)

        async def attempt(_: int) -> Response:
            return await self._transport.call(request, config.timeout)

        def on_retry(attempt_number: int, error: Exception) -> None:
            logger.warning(
                "%s for %s %s (retry %d/%d)",
                error,
                request.method,
                request.url,
                attempt_number,
                config.max_retries,
            )
            if self.on_retry is not None:
                self.on_retry(attempt_number, error)

        return await self._breaker.execute(
            lambda: self._executor.run(attempt, config, on_retry),
            breaker_config,
        )

    async def get(self, url: str, *, headers: Mapping[str, str] | None = None, **overrides: Any) -> Response:
        return await self.request(RequestDescriptor(url, "GET", headers or {}), **overrides)

    async def delete(self, url: str, *, headers: Mapping[str, str] | None = None, **overrides: Any) -> Response:
        return await self.request(RequestDescriptor(url, "DELETE", headers or {}), **overrides)

    async def post(
        self, url: str, data: Any = None, *, headers: Mapping[str, str] | None = None, **overrides: Any
    ) -> Response:
        return await self.request(_json_request("POST", url, data, headers), **overrides)

    async def put(
        self, url: str, data: Any = None, *, headers: Mapping[str, str] | None = None, **overrides: Any
    ) -> Response:
        return await self.request(_json_request("PUT", url, data, headers), **overrides)

    async def patch(
        self, url: str, data: Any = None, *, headers: Mapping[str, str] | None = None, **overrides: Any
    ) -> Response:
        return await self.request(_json_request("PATCH", url, data, headers), **overrides)

    # ── Circuit breaker inspection ──────────────────────────────────

    def get_circuit_breaker_state(self) -> CircuitSnapshot:
        return self._breaker.get_state()

    async def reset_circuit_breaker(self) -> None:
        await self._breaker.reset()

    def _handle_circuit_open(self) -> None:
        logger.warning("Circuit breaker '%s' opened", self.name)
        if self.on_circuit_open is not None:
            self.on_circuit_open()

    def _handle_circuit_close(self) -> None:
        logger.info("Circuit breaker '%s' closed", self.name)
        if self.on_circuit_close is not None:
            self.on_circuit_close()

    # ── Lifecycle ───────────────────────────────────────────────────

    async def close(self) -> None:
        """Close the transport if the client created it."""
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            await self._transport.close()

    async def __aenter__(self) -> "ResilientClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def _json_request(method: str, url: str, data: Any, headers: Mapping[str, str] | None) -> RequestDescriptor:
    """Build a request whose body is *data* serialised as JSON."""
    request = RequestDescriptor(url, method, headers or {})
    if data is None:
        return request
    request_headers = dict(request.headers)
    if not request.has_header("Content-Type"):
        request_headers["Content-Type"] = JSON_CONTENT_TYPE
    return dataclasses.replace(request, headers=request_headers, body=json.dumps(data))


async def fetch(
    url: str,
    method: str = "GET",
    *,
    headers: Mapping[str, str] | None = None,
    body: bytes | str | None = None,
    transport: Transport | None = None,
    **config: Any,
) -> Response:
    """Send one request through a throwaway ``ResilientClient``.

    *config* holds ``RetryConfig`` fields plus an optional
    ``circuit_breaker`` mapping.
    """
    breaker_config = config.pop("circuit_breaker", None)
    async with ResilientClient(config, breaker_config, transport=transport) as client:
        return await client.request(RequestDescriptor(url, method, headers or {}, body))
