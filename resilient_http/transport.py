"""Transport: the single HTTP attempt behind the retry loop.

A Transport sends one ``RequestDescriptor`` and returns a ``Response`` for
a 2xx answer.  Everything else is raised as a ``TransportError``:

- non-2xx status          → ``HTTPStatusError``   (carries the status code)
- connection-level error  → ``NetworkError``      (carries e.g. ``ECONNRESET``)
- attempt exceeds timeout → ``RequestTimeoutError``

``HttpxTransport`` is the bundled implementation on top of
``httpx.AsyncClient``.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import socket
import time
from typing import Protocol

import httpx

from resilient_http.core.errors import HTTPStatusError, NetworkError, RequestTimeoutError
from resilient_http.models import RequestDescriptor, Response

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can perform one bounded HTTP attempt."""

    async def call(self, request: RequestDescriptor, timeout: float) -> Response: ...


def _network_error_code(exc: httpx.TransportError) -> str:
    """Best-effort symbolic error code (``ECONNREFUSED``...) for *exc*."""
    seen: set[int] = set()
    cause = exc.__cause__ or exc.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        if isinstance(cause, socket.gaierror):
            return "ENOTFOUND"
        if isinstance(cause, OSError) and cause.errno in errno.errorcode:
            return errno.errorcode[cause.errno]
        cause = cause.__cause__ or cause.__context__

    if isinstance(exc, httpx.ConnectError):
        return "ECONNREFUSED"
    if isinstance(exc, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
        return "ECONNRESET"
    return "ENETWORK"


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    The per-attempt timeout bounds the whole attempt (connect, send and
    read together) via ``asyncio.wait_for``.  Cancelling the calling task
    cancels the in-flight request.

    Args:
        client: Client to send requests with.  When omitted, one is created
                lazily and closed by ``close()``; an injected client (e.g.
                one using ``httpx.MockTransport``) is left to its owner.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def call(self, request: RequestDescriptor, timeout: float) -> Response:
        """Send *request* once; raise a ``TransportError`` on any failure."""
        client = self._get_client()
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.request(
                    request.method,
                    request.url,
                    headers=dict(request.headers),
                    content=request.body,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.debug("%s %s timed out after %.1fs", request.method, request.url, timeout)
            raise RequestTimeoutError(timeout) from None
        except httpx.TransportError as exc:
            code = _network_error_code(exc)
            logger.debug("%s %s failed: %s (%s)", request.method, request.url, code, exc)
            raise NetworkError(code, str(exc)) from exc

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug("%s %s → %d in %.1fms", request.method, request.url, response.status_code, elapsed_ms)

        result = Response(
            status_code=response.status_code,
            headers=dict(response.headers),
            content=response.content,
            elapsed_ms=round(elapsed_ms, 2),
        )
        if not response.is_success:
            raise HTTPStatusError(response.status_code, response.reason_phrase, response=result)
        return result

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
