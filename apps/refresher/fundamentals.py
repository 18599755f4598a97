from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from core.domain.market_data import Fundamentals
from core.ports.portfolio_store import PortfolioStore
from core.ports.quotes import FundamentalsProvider

logger = logging.getLogger(__name__)


class FundamentalsService:
    """Durably cached fundamentals; a failed fetch falls back to whatever is cached."""

    def __init__(
        self,
        store: PortfolioStore,
        provider: FundamentalsProvider | None,
        *,
        stale_after: timedelta = timedelta(hours=12),
    ) -> None:
        self._store = store
        self._provider = provider
        self._stale_after = stale_after

    def is_stale(self, entry: Fundamentals | None, now: datetime) -> bool:
        return entry is None or now - entry.updated_at > self._stale_after

    async def get_fundamentals(self, tickers: Iterable[str], *, now: datetime | None = None) -> dict[str, Fundamentals]:
        symbols = list(dict.fromkeys(ticker.strip().upper() for ticker in tickers if ticker.strip()))
        if not symbols:
            return {}
        now = now or datetime.now(UTC)

        try:
            cached = await asyncio.to_thread(self._store.get_fundamentals, symbols)
        except Exception:
            logger.exception("Failed to read cached fundamentals")
            cached = {}

        stale = [symbol for symbol in symbols if self.is_stale(cached.get(symbol), now)]
        if not stale or self._provider is None:
            return cached

        logger.info("Fetching fundamentals for %d stale tickers", len(stale))
        try:
            fresh = await self._provider.get_fundamentals(stale)
        except Exception as exc:
            logger.warning("Fundamentals fetch failed, using cached data: %s", exc)
            return cached

        updates = [entry.model_copy(update={"updated_at": now}) for entry in fresh.values()]
        for entry in updates:
            cached[entry.ticker] = entry
        if updates:
            try:
                await asyncio.to_thread(self._store.upsert_fundamentals, updates)
            except Exception:
                logger.exception("Failed to store fundamentals for %d tickers", len(updates))
        return cached
