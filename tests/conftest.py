from __future__ import annotations

import sys
from collections.abc import Iterable, Sequence
from datetime import date
from pathlib import Path

import pytest

# Ensure the application package is importable when running tests directly via pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.domain.market_data import Fundamentals, HistoricalPricePoint, PriceCacheEntry  # noqa: E402
from core.domain.portfolio import Holding  # noqa: E402
from core.domain.snapshot import Snapshot  # noqa: E402


class InMemoryPortfolioStore:
    """PortfolioStore double; set ``fail`` to a method name to make it raise."""

    def __init__(self) -> None:
        self.holdings: dict[str, list[Holding]] = {}
        self.prices: dict[str, PriceCacheEntry] = {}
        self.daily: dict[tuple[str, date], float] = {}
        self.fundamentals: dict[str, Fundamentals] = {}
        self.snapshots: dict[str, Snapshot] = {}
        self.fail: set[str] = set()
        self.snapshot_writes: list[Snapshot] = []

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    def list_portfolio_ids(self) -> list[str]:
        self._check("list_portfolio_ids")
        return sorted(self.holdings)

    def list_holdings(self, portfolio_id: str) -> list[Holding]:
        self._check("list_holdings")
        return list(self.holdings.get(portfolio_id.lower(), []))

    def replace_holdings(self, portfolio_id: str, holdings: Sequence[Holding]) -> None:
        self.holdings[portfolio_id.lower()] = list(holdings)

    def upsert_prices(self, entries: Sequence[PriceCacheEntry]) -> None:
        self._check("upsert_prices")
        for entry in entries:
            self.prices[entry.ticker] = entry

    def get_prices(self, tickers: Iterable[str]) -> dict[str, PriceCacheEntry]:
        return {ticker: self.prices[ticker] for ticker in tickers if ticker in self.prices}

    def list_daily_prices(self, tickers: Iterable[str], since: date) -> list[HistoricalPricePoint]:
        wanted = set(tickers)
        return [
            HistoricalPricePoint(ticker=ticker, date=day, close=close)
            for (ticker, day), close in sorted(self.daily.items())
            if ticker in wanted and day >= since
        ]

    def upsert_daily_prices(self, points: Sequence[HistoricalPricePoint]) -> None:
        for point in points:
            self.daily[(point.ticker, point.date)] = point.close

    def get_fundamentals(self, tickers: Iterable[str]) -> dict[str, Fundamentals]:
        return {ticker: self.fundamentals[ticker] for ticker in tickers if ticker in self.fundamentals}

    def upsert_fundamentals(self, entries: Sequence[Fundamentals]) -> None:
        for entry in entries:
            self.fundamentals[entry.ticker] = entry

    def get_snapshot(self, portfolio_id: str) -> Snapshot | None:
        return self.snapshots.get(portfolio_id.lower())

    def upsert_snapshot(self, snapshot: Snapshot) -> None:
        self._check("upsert_snapshot")
        self.snapshots[snapshot.portfolio_id] = snapshot
        self.snapshot_writes.append(snapshot)

    def close(self) -> None:
        return None


class FakeFastCache:
    def __init__(self) -> None:
        self.snapshots: dict[str, Snapshot] = {}
        self.prices: dict[str, PriceCacheEntry] = {}
        self.broken = False

    def _check(self) -> None:
        if self.broken:
            raise ConnectionError("redis down")

    async def store_snapshot(self, snapshot: Snapshot) -> None:
        self._check()
        self.snapshots[snapshot.portfolio_id] = snapshot

    async def get_snapshot(self, portfolio_id: str) -> Snapshot | None:
        self._check()
        return self.snapshots.get(portfolio_id)

    async def store_prices(self, entries: Sequence[PriceCacheEntry]) -> None:
        self._check()
        for entry in entries:
            self.prices[entry.ticker] = entry

    async def get_prices(self, tickers: Iterable[str]) -> dict[str, PriceCacheEntry]:
        self._check()
        return {ticker: self.prices[ticker] for ticker in tickers if ticker in self.prices}

    async def close(self) -> None:
        return None


@pytest.fixture
def memory_store() -> InMemoryPortfolioStore:
    return InMemoryPortfolioStore()


@pytest.fixture
def fast_cache() -> FakeFastCache:
    return FakeFastCache()
