"""aiohttp websocket transport for the Yamcs realtime endpoint."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import aiohttp

from ..config import YamcsConfig

LOGGER = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when the websocket cannot be opened or written to."""


def build_ws_url(realtime_url: str, instance: str) -> str:
    return f"{realtime_url.rstrip('/')}/_websocket/{instance}"


class WebSocketTransport:
    """One websocket connection; a new instance is used per connect attempt."""

    def __init__(
        self,
        url: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        heartbeat: Optional[float] = None,
    ) -> None:
        self.url = url
        self.heartbeat = heartbeat

        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

    @classmethod
    def from_config(
        cls, config: YamcsConfig, *, session: Optional[aiohttp.ClientSession] = None
    ) -> "WebSocketTransport":
        return cls(build_ws_url(config.realtime_url, config.instance), session=session)

    @property
    def closed(self) -> bool:
        return self._ws is None or self._ws.closed

    async def open(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat)
        except (aiohttp.ClientError, OSError) as exc:
            await self._release_session()
            raise TransportError(f"Cannot open websocket {self.url}: {exc}") from exc

    async def send(self, payload: str) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            raise TransportError("Websocket is not open")
        try:
            await ws.send_str(payload)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise TransportError(f"Cannot write to websocket: {exc}") from exc

    async def frames(self) -> AsyncIterator[str]:
        ws = self._ws
        if ws is None:
            return

        async for message in ws:
            if message.type == aiohttp.WSMsgType.TEXT:
                yield message.data
            elif message.type == aiohttp.WSMsgType.BINARY:
                pass  # Yamcs JSON protocol only uses text frames
            elif message.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"Websocket error: {ws.exception()}")

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()
        await self._release_session()

    async def _release_session(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
