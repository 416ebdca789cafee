"""Bundles the catalog and realtime providers for installation into a host."""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from .adapters.mdb import MdbClient
from .config import TelemetryClientConfig, load_config
from .core.protocols import CapabilityRegistry, TransportFactory
from .dictionary import ObjectProvider
from .realtime import RealtimeTelemetryProvider

LOGGER = logging.getLogger(__name__)


class YamcsPlugin:
    """Owns one object provider and one realtime provider built from config.

    The host registers both through :meth:`install` and then drives them:
    ``object_provider.get_node`` for catalog lookups and
    ``telemetry_provider.subscribe`` for live samples.
    """

    def __init__(
        self,
        config: Optional[TelemetryClientConfig] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self.config = config or load_config()
        self.mdb_client = MdbClient(
            self.config.yamcs, dictionary=self.config.dictionary, session=session
        )
        self.object_provider = ObjectProvider(
            self.mdb_client, folder_name=self.config.yamcs.folder
        )
        self.telemetry_provider = RealtimeTelemetryProvider(
            self.config.yamcs,
            realtime=self.config.realtime,
            transport_factory=transport_factory,
        )

    def install(self, registry: CapabilityRegistry) -> None:
        registry.register_object_provider(
            self.object_provider.namespace, self.object_provider
        )
        registry.register_telemetry_provider(self.telemetry_provider)
        LOGGER.info(
            "Installed Yamcs providers for instance %s", self.config.yamcs.instance
        )

    async def start(self) -> None:
        await self.telemetry_provider.start()

    async def aclose(self) -> None:
        await self.telemetry_provider.stop()
        await self.mdb_client.aclose()

    async def __aenter__(self) -> "YamcsPlugin":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
