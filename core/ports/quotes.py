from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol

from core.domain.market_data import DailyClose, Fundamentals, IntradayClose, Quote
from core.domain.portfolio import InstrumentKind


class QuoteProvider(Protocol):
    """Current-price source; tickers it cannot price are left out of the result."""

    name: str
    kinds: frozenset[InstrumentKind]

    async def get_quotes(self, tickers: Sequence[str]) -> dict[str, Quote]:
        """Fetch quotes for the tickers this provider can serve."""


class HistoryProvider(Protocol):
    """Daily and intraday close series for one ticker."""

    name: str

    async def get_daily(self, ticker: str, start: date, end: date) -> list[DailyClose]:
        """Return daily closes in ascending date order."""

    async def get_intraday(self, ticker: str, start: datetime, end: datetime) -> list[IntradayClose]:
        """Return one-minute closes in ascending time order."""


class FundamentalsProvider(Protocol):
    name: str

    async def get_fundamentals(self, tickers: Sequence[str]) -> dict[str, Fundamentals]:
        """Fetch fundamentals for a batch of tickers."""
