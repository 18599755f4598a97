from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from core.domain.market_data import PriceCacheEntry
from core.domain.snapshot import Snapshot


class SnapshotFastCache(Protocol):
    """Key/value mirror of snapshots and price cache entries."""

    async def store_snapshot(self, snapshot: Snapshot) -> None:
        """Persist the snapshot under its portfolio id."""

    async def get_snapshot(self, portfolio_id: str) -> Snapshot | None:
        """Return the cached snapshot, if any."""

    async def store_prices(self, entries: Sequence[PriceCacheEntry]) -> None:
        """Persist price cache entries keyed by ticker."""

    async def get_prices(self, tickers: Iterable[str]) -> dict[str, PriceCacheEntry]:
        """Fetch cached price entries for the tickers."""

    async def close(self) -> None:
        """Close any underlying resources."""
