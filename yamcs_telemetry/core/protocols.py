"""Protocol definitions for transports, callbacks and host registries."""

from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from .models import Node, TelemetryPoint


SampleCallback = Callable[[TelemetryPoint], Awaitable[None] | None]
Unsubscribe = Callable[[], Awaitable[None]]


class RealtimeTransport(Protocol):
    """Minimal contract for a bidirectional text-frame connection."""

    @property
    def closed(self) -> bool:
        ...

    async def open(self) -> None:
        """Establish the connection.

        Raises:
            TransportError: If the connection cannot be opened.
        """
        ...

    async def send(self, payload: str) -> None:
        """Write one text frame.

        Raises:
            TransportError: If the frame cannot be written.
        """
        ...

    def frames(self) -> AsyncIterator[str]:
        """Yield inbound text frames until the connection ends."""
        ...

    async def close(self) -> None:
        """Close the connection; safe to call more than once."""
        ...


TransportFactory = Callable[[], RealtimeTransport]


class ObjectLookup(Protocol):
    """Catalog lookup capability exposed to the host."""

    async def get_node(self, identifier: str) -> Optional[Node]:
        ...


class TelemetrySubscriber(Protocol):
    """Realtime subscription capability exposed to the host."""

    def supports_subscribe(self, node: Node) -> bool:
        ...

    async def subscribe(
        self, identifier: str, on_sample: SampleCallback
    ) -> Unsubscribe:
        ...


class CapabilityRegistry(Protocol):
    """What a host application offers for installing providers."""

    def register_object_provider(self, namespace: str, provider: ObjectLookup) -> None:
        ...

    def register_telemetry_provider(self, provider: TelemetrySubscriber) -> None:
        ...
