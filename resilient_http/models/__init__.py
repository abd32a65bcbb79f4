"""Request and response descriptors exchanged with a Transport."""

from resilient_http.models.schemas import RequestDescriptor, Response

__all__ = [
    "RequestDescriptor",
    "Response",
]
