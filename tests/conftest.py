import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import pytest

from yamcs_telemetry.adapters.websocket import TransportError


class FakeTransport:
    """In-memory stand-in for a websocket connection."""

    def __init__(self, hub: "FakeTransportHub") -> None:
        self.hub = hub
        self.url = "ws://fake/_websocket/myproject"
        self._inbound: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        self.hub.open_attempts += 1
        if self.hub.unexpected_failures > 0:
            self.hub.unexpected_failures -= 1
            raise RuntimeError("Simulated bug in transport")
        if self.hub.failures > 0:
            self.hub.failures -= 1
            raise TransportError("Simulated connection refused")
        self._closed = False

    async def send(self, payload: str) -> None:
        if self._closed:
            raise TransportError("Simulated send on closed socket")
        if self.hub.fail_next_send:
            self.hub.fail_next_send = False
            raise TransportError("Simulated send failure")
        frame = json.loads(payload)
        if self.hub.before_send is not None:
            # Suspend mid-write so other tasks can run.
            await asyncio.sleep(0)
            await self.hub.before_send(frame)
        self.hub.sent.append(frame)

    async def frames(self):
        while True:
            frame = await self._inbound.get()
            if frame is None:
                return
            yield frame

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._inbound.put_nowait(None)

    def push(self, frame: Any) -> None:
        self._inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self._closed = True
        self._inbound.put_nowait(None)


class FakeTransportHub:
    """Transport factory recording every connection it hands out."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.fail_next_send = False
        self.unexpected_failures = 0
        self.before_send: Optional[Callable[[list[Any]], Awaitable[None]]] = None
        self.open_attempts = 0
        self.transports: list[FakeTransport] = []
        self.sent: list[list[Any]] = []

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(self)
        self.transports.append(transport)
        return transport

    @property
    def current(self) -> FakeTransport:
        return self.transports[-1]

    def commands(self) -> list[tuple[str, str]]:
        return [
            (frame[3]["parameter"], frame[3]["data"]["id"][0]["name"])
            for frame in self.sent
        ]


@pytest.fixture
def transport_hub() -> Callable[..., FakeTransportHub]:
    return FakeTransportHub


@pytest.fixture
def wait_until():
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.005)

    return _wait


def parameter_frame(*samples: dict[str, Any]) -> list[Any]:
    return [1, 2, 7, {"dt": "PARAMETER", "data": {"parameter": list(samples)}}]


def float_sample(name: str, value: float, **extra: Any) -> dict[str, Any]:
    sample = {
        "id": {"name": name},
        "generationTimeUTC": "2024-05-01T12:00:00.000Z",
        "engValue": {"type": "FLOAT", "floatValue": value},
    }
    sample.update(extra)
    return sample


@pytest.fixture
def frames():
    class _Frames:
        parameter = staticmethod(parameter_frame)
        float_sample = staticmethod(float_sample)

    return _Frames
