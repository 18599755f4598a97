"""Dual-write snapshot cache: the durable store is the record, Redis is the fast path."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta

from core.domain.market_data import PriceCacheEntry
from core.domain.snapshot import Snapshot, SnapshotView
from core.ports.portfolio_store import PortfolioStore
from core.ports.snapshot_cache import SnapshotFastCache

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = timedelta(minutes=10)


class SnapshotCache:
    def __init__(
        self,
        store: PortfolioStore,
        fast_cache: SnapshotFastCache | None = None,
        *,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        self._store = store
        self._fast_cache = fast_cache
        self._stale_after = stale_after

    def is_stale(self, snapshot: Snapshot, now: datetime | None = None) -> bool:
        return self.age_seconds(snapshot, now) > self._stale_after.total_seconds()

    @staticmethod
    def age_seconds(snapshot: Snapshot, now: datetime | None = None) -> float:
        now = now or datetime.now(UTC)
        return max((now - snapshot.updated_at).total_seconds(), 0.0)

    async def write(self, portfolio_id: str, snapshot: Snapshot) -> None:
        """Durable store first; a fast cache failure is logged and otherwise ignored."""
        portfolio_id = portfolio_id.strip().lower()
        if snapshot.portfolio_id != portfolio_id:
            snapshot = snapshot.model_copy(update={"portfolio_id": portfolio_id})
        await asyncio.to_thread(self._store.upsert_snapshot, snapshot)
        await self._mirror(snapshot)

    async def read(self, portfolio_id: str) -> Snapshot | None:
        snapshot, _ = await self._read_with_source(portfolio_id)
        return snapshot

    async def read_view(self, portfolio_id: str, *, now: datetime | None = None) -> SnapshotView | None:
        snapshot, source = await self._read_with_source(portfolio_id)
        if snapshot is None:
            return None
        now = now or datetime.now(UTC)
        return SnapshotView(
            snapshot=snapshot,
            is_stale=self.is_stale(snapshot, now),
            age_seconds=self.age_seconds(snapshot, now),
            source=source,
        )

    async def record_error(self, portfolio_id: str, message: str, *, now: datetime | None = None) -> Snapshot:
        """Flag the last good snapshot with the failure, or store a placeholder if there is none."""
        now = now or datetime.now(UTC)
        previous = await self.read(portfolio_id)
        if previous is None:
            snapshot = Snapshot.placeholder(portfolio_id, message=message, at=now)
        else:
            snapshot = previous.model_copy(update={"last_error": message, "last_error_at": now})
        await self.write(portfolio_id, snapshot)
        logger.warning("Recorded refresh error for %s: %s", portfolio_id, message)
        return snapshot

    async def write_prices(self, entries: Sequence[PriceCacheEntry]) -> None:
        if not entries:
            return
        await asyncio.to_thread(self._store.upsert_prices, list(entries))
        if self._fast_cache is None:
            return
        try:
            await self._fast_cache.store_prices(entries)
        except Exception:
            logger.exception("Fast cache price write failed")

    async def read_prices(self, tickers: Iterable[str]) -> dict[str, PriceCacheEntry]:
        wanted = list(dict.fromkeys(ticker.strip().upper() for ticker in tickers if ticker.strip()))
        if not wanted:
            return {}
        found: dict[str, PriceCacheEntry] = {}
        if self._fast_cache is not None:
            try:
                found = await self._fast_cache.get_prices(wanted)
            except Exception:
                logger.exception("Fast cache price read failed")
        missing = [ticker for ticker in wanted if ticker not in found]
        if missing:
            from_store = await asyncio.to_thread(self._store.get_prices, missing)
            found.update(from_store)
        return found

    async def _read_with_source(self, portfolio_id: str) -> tuple[Snapshot | None, str]:
        portfolio_id = portfolio_id.strip().lower()
        if self._fast_cache is not None:
            try:
                cached = await self._fast_cache.get_snapshot(portfolio_id)
            except Exception:
                logger.exception("Fast cache read failed for %s", portfolio_id)
                cached = None
            if cached is not None:
                return cached, "cache"

        snapshot = await asyncio.to_thread(self._store.get_snapshot, portfolio_id)
        if snapshot is not None:
            await self._mirror(snapshot)
        return snapshot, "store"

    async def _mirror(self, snapshot: Snapshot) -> None:
        if self._fast_cache is None:
            return
        try:
            await self._fast_cache.store_snapshot(snapshot)
        except Exception:
            logger.exception("Fast cache write failed for %s", snapshot.portfolio_id)
