"""Core primitives for yamcs-telemetry."""

from .models import Node, TelemetryMetadata, TelemetryPoint, ValueDescriptor
from .protocols import (
    CapabilityRegistry,
    ObjectLookup,
    RealtimeTransport,
    SampleCallback,
    TelemetrySubscriber,
    TransportFactory,
    Unsubscribe,
)

__all__ = [
    "CapabilityRegistry",
    "Node",
    "ObjectLookup",
    "RealtimeTransport",
    "SampleCallback",
    "TelemetryMetadata",
    "TelemetryPoint",
    "TelemetrySubscriber",
    "TransportFactory",
    "Unsubscribe",
    "ValueDescriptor",
]
