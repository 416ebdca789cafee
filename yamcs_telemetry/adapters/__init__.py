"""Adapter modules for external integrations."""

from .mdb import MdbClient, UpstreamFetchError
from .websocket import TransportError, WebSocketTransport, build_ws_url

__all__ = [
    "MdbClient",
    "TransportError",
    "UpstreamFetchError",
    "WebSocketTransport",
    "build_ws_url",
]
