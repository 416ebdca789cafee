"""Mission Database (MDB) HTTP client with continuation-token paging."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from ..config import DictionaryConfig, YamcsConfig

LOGGER = logging.getLogger(__name__)


class UpstreamFetchError(RuntimeError):
    """Raised when a metadata page cannot be fetched."""

    def __init__(self, message: str, *, url: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class MdbClient:
    """Reads space systems and parameters from the Yamcs MDB API."""

    def __init__(
        self,
        config: YamcsConfig,
        *,
        dictionary: Optional[DictionaryConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config
        self.dictionary = dictionary or DictionaryConfig()

        self._base_url = f"{config.dictionary_url.rstrip('/')}/api/mdb/{config.instance}"
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    async def fetch_space_systems(self) -> List[Dict[str, Any]]:
        return await self.accumulate("space-systems", "spaceSystems")

    async def fetch_parameters(self) -> List[Dict[str, Any]]:
        return await self.accumulate(
            "parameters", "parameters", params={"details": "yes"}
        )

    async def accumulate(
        self,
        operation: str,
        key: str,
        *,
        params: Optional[Mapping[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """Collect ``key`` from every page of ``operation``.

        Pages are requested one after another, passing each response's
        ``continuationToken`` back as ``next`` until no token is returned.

        Raises:
            UpstreamFetchError: If any page request fails.
        """

        url = f"{self._base_url}/{operation}"
        results: List[Dict[str, Any]] = []
        token: Optional[str] = None
        pages = 0

        while True:
            query = dict(params or {})
            query["limit"] = str(self.dictionary.page_limit)
            if token:
                query["next"] = token

            payload = await self._get_json(url, query)
            pages += 1
            results.extend(payload.get(key) or [])

            token = payload.get("continuationToken")
            if not token:
                break

        LOGGER.debug(
            "Fetched %d %s across %d page(s) from %s", len(results), key, pages, url
        )
        return results

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def _get_json(self, url: str, query: Mapping[str, str]) -> Dict[str, Any]:
        session = await self._ensure_session()
        timeout = self.dictionary.request_timeout_seconds

        try:
            async with asyncio.timeout(timeout):
                async with session.get(url, params=query) as response:
                    if response.status >= 400:
                        detail = await response.text()
                        raise UpstreamFetchError(
                            f"MDB request failed with status {response.status}: {detail.strip()[:200]}",
                            url=url,
                            status=response.status,
                        )
                    payload = await response.json(content_type=None)
        except asyncio.TimeoutError as exc:
            LOGGER.warning("MDB request timed out after %.1fs (url=%s)", timeout, url)
            raise UpstreamFetchError(
                f"MDB request timed out after {timeout:.1f}s", url=url
            ) from exc
        except (aiohttp.ClientError, ValueError) as exc:
            LOGGER.warning("MDB request failed (url=%s): %s", url, exc)
            raise UpstreamFetchError(f"MDB request failed: {exc}", url=url) from exc

        if not isinstance(payload, dict):
            raise UpstreamFetchError("MDB response is not a JSON object", url=url)
        return payload
