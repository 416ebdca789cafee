"""Realtime parameter subscriptions over the Yamcs websocket.

One websocket carries every subscription. Commands issued while the socket is
down are queued and replayed, in order, once it comes back. Lost connections
are retried forever following a fixed backoff schedule.

Connection state changes only inside :meth:`RealtimeTelemetryProvider._transition`.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, Iterable, Mapping, Optional

from . import constants
from .adapters.websocket import TransportError, WebSocketTransport
from .config import RealtimeConfig, YamcsConfig
from .core.models import Node, TelemetryPoint
from .core.protocols import (
    RealtimeTransport,
    SampleCallback,
    TransportFactory,
    Unsubscribe,
)
from .identifiers import to_identifier, to_qualified_name
from .values import add_limit_information, get_value

LOGGER = logging.getLogger(__name__)

PARAMETER_DATA_TYPE = "PARAMETER"


class ConnectionState(str, Enum):
    """Current state of the realtime websocket."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionEvent(str, Enum):
    """Inputs accepted by the connection state machine."""

    CONNECTING = "connecting"
    OPENED = "opened"
    LOST = "lost"
    STOPPED = "stopped"


class ReconnectBackoff:
    """Walks a fixed schedule of reconnect delays, holding at the last one."""

    def __init__(self, schedule: Iterable[float] = constants.RECONNECT_SCHEDULE_SECONDS) -> None:
        self.schedule = tuple(float(delay) for delay in schedule)
        if not self.schedule:
            raise ValueError("Reconnect schedule must not be empty")
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    def next_delay(self) -> float:
        delay = self.schedule[self._index]
        if self._index < len(self.schedule) - 1:
            self._index += 1
        return delay

    def reset(self) -> None:
        self._index = 0


def subscribe_command(qualified_name: str) -> Dict[str, Any]:
    return {
        "parameter": "subscribe",
        "data": {"id": [{"name": qualified_name}], "sendFromCache": False},
    }


def unsubscribe_command(qualified_name: str) -> Dict[str, Any]:
    return {"parameter": "unsubscribe", "data": {"id": [{"name": qualified_name}]}}


def decode_sample(sample: Mapping[str, Any]) -> Optional[TelemetryPoint]:
    """Turn one ``parameter`` entry of a data frame into a point.

    Returns ``None`` when the entry cannot be decoded.
    """

    try:
        identifier = to_identifier(sample["id"]["name"])
        value = get_value(sample.get("engValue"))
    except (KeyError, TypeError, ValueError, AttributeError):
        return None

    point = TelemetryPoint(
        id=identifier,
        timestamp=sample.get("generationTimeUTC") or sample.get("generationTime"),
        value=value,
    )
    add_limit_information(sample, point)
    return point


class RealtimeTelemetryProvider:
    """Multiplexes parameter subscriptions over a single websocket."""

    def __init__(
        self,
        config: YamcsConfig,
        *,
        realtime: Optional[RealtimeConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self.config = config
        self.realtime = realtime or RealtimeConfig()
        self.backoff = ReconnectBackoff(self.realtime.reconnect_schedule_seconds)

        self._transport_factory: TransportFactory = transport_factory or (
            lambda: WebSocketTransport.from_config(config)
        )
        self._state = ConnectionState.DISCONNECTED
        self._listeners: Dict[str, SampleCallback] = {}
        self._pending: Deque[Dict[str, Any]] = deque()
        self._seq_no = 0
        self._running = False
        self._draining = False
        self._transport: Optional[RealtimeTransport] = None
        self._reader_task: Optional[asyncio.Task[None]] = None
        self._reconnect_task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def subscriptions(self) -> frozenset[str]:
        return frozenset(self._listeners)

    @property
    def pending_commands(self) -> tuple[Dict[str, Any], ...]:
        return tuple(self._pending)

    def supports_subscribe(self, node: Node) -> bool:
        return node.kind in constants.TELEMETRY_TYPES

    async def start(self) -> None:
        """Open the websocket, retrying in the background on failure."""

        self._running = True
        await self._connect()

    async def stop(self) -> None:
        """Close the websocket and cancel any pending reconnect.

        Subscriptions are kept, so a later :meth:`start` restores them.
        """

        self._running = False
        if self._reconnect_task is not None:
            task, self._reconnect_task = self._reconnect_task, None
            if task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        await self._transition(ConnectionEvent.STOPPED)

    async def subscribe(self, identifier: str, on_sample: SampleCallback) -> Unsubscribe:
        """Deliver samples for ``identifier`` to ``on_sample``.

        A second subscription to the same identifier replaces the first.
        Returns an async handle that cancels the subscription.
        """

        qualified_name = to_qualified_name(identifier)
        self._listeners[identifier] = on_sample
        self._drop_pending_unsubscribe(qualified_name)

        if self.is_connected:
            await self._send_or_queue(subscribe_command(qualified_name))

        async def unsubscribe() -> None:
            # A newer subscription for the identifier owns it now.
            if self._listeners.get(identifier) is not on_sample:
                return
            del self._listeners[identifier]
            await self._send_or_queue(unsubscribe_command(qualified_name))

        return unsubscribe

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    async def _transition(self, event: ConnectionEvent) -> None:
        previous = self._state

        if event is ConnectionEvent.CONNECTING:
            self._state = ConnectionState.CONNECTING

        elif event is ConnectionEvent.OPENED:
            self._state = ConnectionState.CONNECTED
            self.backoff.reset()
            LOGGER.info("Established websocket connection to %s", self._describe_transport())
            self._reader_task = asyncio.create_task(self._read_loop(self._transport))
            self._queue_resubscribe_all()
            self._draining = True
            try:
                await self._flush_queue()
            finally:
                self._draining = False

        elif event is ConnectionEvent.LOST:
            self._state = ConnectionState.DISCONNECTED
            await self._discard_transport()
            self._schedule_reconnect()

        elif event is ConnectionEvent.STOPPED:
            self._state = ConnectionState.DISCONNECTED
            await self._discard_transport()

        if previous is not self._state:
            LOGGER.debug(
                "Realtime connection %s -> %s (%s)",
                previous.value,
                self._state.value,
                event.value,
            )

    async def _connect(self) -> None:
        if not self._running or self._state is not ConnectionState.DISCONNECTED:
            return

        await self._transition(ConnectionEvent.CONNECTING)
        try:
            transport = self._transport_factory()
            await transport.open()
        except TransportError as exc:
            LOGGER.warning("Websocket connection failed: %s", exc)
            await self._transition(ConnectionEvent.LOST)
            return
        except Exception:
            LOGGER.exception("Unexpected error while opening websocket")
            await self._transition(ConnectionEvent.LOST)
            return

        if not self._running:
            await transport.close()
            await self._transition(ConnectionEvent.STOPPED)
            return

        self._transport = transport
        await self._transition(ConnectionEvent.OPENED)

    def _schedule_reconnect(self) -> None:
        if not self._running:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return

        delay = self.backoff.next_delay()
        LOGGER.warning("Websocket unavailable, reconnecting in %.1fs", delay)
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        await self._connect()

    async def _discard_transport(self) -> None:
        transport, self._transport = self._transport, None
        reader, self._reader_task = self._reader_task, None

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        if transport is not None:
            try:
                await transport.close()
            except Exception as exc:
                LOGGER.debug("Ignoring error while closing websocket: %s", exc)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    def _queue_resubscribe_all(self) -> None:
        """Put a subscribe for every listener ahead of the queued commands."""

        resubscribe = [
            subscribe_command(to_qualified_name(identifier)) for identifier in self._listeners
        ]
        queued = [command for command in self._pending if command not in resubscribe]
        self._pending = deque(resubscribe + queued)

    async def _flush_queue(self) -> None:
        # Commands issued meanwhile land at the tail, so the drain stays FIFO.
        while self._pending and self.is_connected:
            command = self._pending.popleft()
            try:
                await self._send_request(command)
            except TransportError as exc:
                LOGGER.warning("Error while flushing queued commands: %s", exc)
                self._pending.appendleft(command)
                await self._transition(ConnectionEvent.LOST)
                return

    async def _send_or_queue(self, command: Dict[str, Any]) -> bool:
        if not self.is_connected or self._draining:
            self._pending.append(command)
            return False

        try:
            await self._send_request(command)
        except TransportError as exc:
            LOGGER.warning("Error while sending to websocket, reconnecting: %s", exc)
            self._pending.append(command)
            await self._transition(ConnectionEvent.LOST)
            return False
        return True

    async def _send_request(self, command: Dict[str, Any]) -> None:
        transport = self._transport
        if transport is None:
            raise TransportError("Websocket is not open")

        seq_no = self._seq_no + 1
        await transport.send(json.dumps([1, 1, seq_no, command]))
        self._seq_no = seq_no

    def _drop_pending_unsubscribe(self, qualified_name: str) -> None:
        stale = unsubscribe_command(qualified_name)
        if stale in self._pending:
            self._pending = deque(command for command in self._pending if command != stale)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    async def _read_loop(self, transport: Optional[RealtimeTransport]) -> None:
        if transport is None:
            return

        try:
            async for frame in transport.frames():
                await self._handle_frame(frame)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Websocket error: %s", exc)

        if self._running and transport is self._transport:
            LOGGER.warning("Websocket closed, attempting to reconnect")
            await self._transition(ConnectionEvent.LOST)

    async def _handle_frame(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except ValueError:
            return

        if not isinstance(data, list) or len(data) < 4:
            return

        body = data[3]
        if not isinstance(body, dict) or body.get("dt") != PARAMETER_DATA_TYPE:
            return

        payload = body.get("data")
        samples = payload.get("parameter") if isinstance(payload, dict) else None
        if not isinstance(samples, list):
            return

        for sample in samples:
            if not isinstance(sample, dict):
                continue
            point = decode_sample(sample)
            if point is None:
                continue
            await self._deliver(point)

    async def _deliver(self, point: TelemetryPoint) -> None:
        callback = self._listeners.get(point.id)
        if callback is None:
            return

        try:
            result = callback(point)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            LOGGER.exception("Telemetry callback failed for %s", point.id)

    def _describe_transport(self) -> str:
        return getattr(self._transport, "url", None) or self.config.realtime_url
