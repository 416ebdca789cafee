"""Yamcs telemetry catalog and realtime subscription client."""

from .adapters import MdbClient, TransportError, UpstreamFetchError, WebSocketTransport
from .config import TelemetryClientConfig, load_config
from .core import Node, TelemetryPoint
from .dictionary import ObjectProvider
from .identifiers import MalformedIdentifier, to_identifier, to_qualified_name
from .plugin import YamcsPlugin
from .realtime import ConnectionState, RealtimeTelemetryProvider, ReconnectBackoff
from .version import __version__

__all__ = [
    "ConnectionState",
    "MalformedIdentifier",
    "MdbClient",
    "Node",
    "ObjectProvider",
    "RealtimeTelemetryProvider",
    "ReconnectBackoff",
    "TelemetryClientConfig",
    "TelemetryPoint",
    "TransportError",
    "UpstreamFetchError",
    "WebSocketTransport",
    "YamcsPlugin",
    "__version__",
    "load_config",
    "to_identifier",
    "to_qualified_name",
]
