"""Request/response descriptors.

``RequestDescriptor`` is built once per call by the caller and never
mutated.  ``Response`` is what a Transport returns for a 2xx answer; the
library hands it to the caller and keeps no reference to it.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class RequestDescriptor:
    """A single logical HTTP request.

    Attributes:
        url:       Target URL.
        method:    HTTP verb, normalised to upper case.
        headers:   Request headers; names are matched case-insensitively.
        body:      Optional payload sent as-is.
        overrides: Per-request ``RetryConfig`` overrides (e.g. ``timeout``).
    """

    url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | str | None = None
    overrides: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))

    def has_header(self, name: str) -> bool:
        """Return True if *name* is present, ignoring case."""
        lowered = name.lower()
        return any(key.lower() == lowered for key in self.headers)


@dataclass
class Response:
    """Structured response from a successful Transport call.

    Attributes:
        status_code: HTTP status code.
        headers:     Response headers as a plain dict.
        content:     Raw response body.
        elapsed_ms:  Round-trip time of the attempt that succeeded.
    """

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    elapsed_ms: float = 0.0

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return "application/octet-stream"

    def json(self) -> Any:
        return json.loads(self.content)
