from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Protocol

from core.domain.market_data import Fundamentals, HistoricalPricePoint, PriceCacheEntry
from core.domain.portfolio import Holding
from core.domain.snapshot import Snapshot


class PortfolioStore(Protocol):
    """Durable relational store for holdings, prices and snapshots."""

    def list_portfolio_ids(self) -> list[str]:
        """Return every portfolio id."""

    def list_holdings(self, portfolio_id: str) -> list[Holding]:
        """Load the current holdings of a portfolio."""

    def replace_holdings(self, portfolio_id: str, holdings: Sequence[Holding]) -> None:
        """Rewrite the full holdings set of a portfolio."""

    def upsert_prices(self, entries: Sequence[PriceCacheEntry]) -> None:
        """Upsert price cache rows keyed by ticker."""

    def get_prices(self, tickers: Iterable[str]) -> dict[str, PriceCacheEntry]:
        """Load price cache rows for the tickers."""

    def list_daily_prices(self, tickers: Iterable[str], since: date) -> list[HistoricalPricePoint]:
        """Load stored daily closes on or after ``since``."""

    def upsert_daily_prices(self, points: Sequence[HistoricalPricePoint]) -> None:
        """Upsert daily closes keyed by (ticker, date)."""

    def get_fundamentals(self, tickers: Iterable[str]) -> dict[str, Fundamentals]:
        """Load cached fundamentals."""

    def upsert_fundamentals(self, entries: Sequence[Fundamentals]) -> None:
        """Upsert fundamentals keyed by ticker."""

    def get_snapshot(self, portfolio_id: str) -> Snapshot | None:
        """Load the persisted snapshot of a portfolio."""

    def upsert_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the persisted snapshot of a portfolio."""

    def close(self) -> None:
        """Release connections."""
