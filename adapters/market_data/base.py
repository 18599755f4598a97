"""Shared HTTP plumbing for the JSON market data providers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from core.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
USER_AGENT = "Mozilla/5.0"


def chunked(items: Sequence[str], size: int) -> list[list[str]]:
    size = max(size, 1)
    return [list(items[index : index + size]) for index in range(0, len(items), size)]


def parse_number(value: Any) -> float | None:
    """Coerce provider numbers, including formatted strings like "1,234.50" or "+0.5%"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    text = str(value).strip().replace(",", "").replace("%", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


class HttpMarketDataProvider:
    """Base class for providers that speak JSON over HTTP."""

    name: str = ""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        concurrency: int = 8,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT})
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def _get_json(self, url: str, *, params: Mapping[str, Any] | None = None) -> Any:
        logger.debug("HTTP GET %s", url)
        try:
            async with self._semaphore:
                response = await self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, f"request failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(self.name, f"malformed JSON payload: {exc}") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
