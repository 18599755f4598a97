from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from redis.asyncio import Redis

from core.domain.market_data import PriceCacheEntry
from core.domain.snapshot import Snapshot
from core.ports.snapshot_cache import SnapshotFastCache

logger = logging.getLogger(__name__)


class RedisSnapshotCache(SnapshotFastCache):
    """Redis-backed mirror of portfolio snapshots and the shared price cache."""

    def __init__(
        self,
        redis_url: str,
        *,
        namespace: str = "portfolio",
        ttl_seconds: int | None = None,
        client: Redis | None = None,
    ) -> None:
        self._client = client or Redis.from_url(redis_url, decode_responses=True)
        self._namespace = namespace
        self._ttl_seconds = ttl_seconds

    def _key(self, kind: str, identifier: str | None = None) -> str:
        parts = [self._namespace, kind]
        if identifier:
            parts.append(identifier)
        return ":".join(parts)

    def _snapshot_key(self, portfolio_id: str) -> str:
        return self._key("snapshot", portfolio_id.lower())

    def _price_key(self, ticker: str) -> str:
        return self._key("price", ticker.upper())

    async def _set(self, key: str, payload: str) -> None:
        if self._ttl_seconds:
            await self._client.set(key, payload, ex=self._ttl_seconds)
        else:
            await self._client.set(key, payload)

    async def store_snapshot(self, snapshot: Snapshot) -> None:
        await self._set(self._snapshot_key(snapshot.portfolio_id), snapshot.model_dump_json())

    async def get_snapshot(self, portfolio_id: str) -> Snapshot | None:
        payload = await self._client.get(self._snapshot_key(portfolio_id))
        if not payload:
            return None
        try:
            return Snapshot.model_validate_json(payload)
        except ValueError:
            logger.exception("Failed to decode snapshot payload for %s", portfolio_id)
            return None

    async def store_prices(self, entries: Sequence[PriceCacheEntry]) -> None:
        for entry in entries:
            await self._set(self._price_key(entry.ticker), entry.model_dump_json())

    async def get_prices(self, tickers: Iterable[str]) -> dict[str, PriceCacheEntry]:
        ticker_list = [ticker.strip().upper() for ticker in tickers if ticker and ticker.strip()]
        if not ticker_list:
            return {}
        payloads = await self._client.mget([self._price_key(ticker) for ticker in ticker_list])
        results: dict[str, PriceCacheEntry] = {}
        for ticker, payload in zip(ticker_list, payloads, strict=False):
            if not payload:
                continue
            try:
                results[ticker] = PriceCacheEntry.model_validate_json(payload)
            except ValueError:
                logger.exception("Failed to decode price payload for %s", ticker)
        return results

    async def close(self) -> None:
        await self._client.close()
