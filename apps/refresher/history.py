"""Per-ticker daily and intraday series with an incremental daily cache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta

from core.domain.market_data import DailyClose, HistoricalPricePoint, IntradayClose
from core.errors import ProviderError
from core.ports.portfolio_store import PortfolioStore
from core.ports.quotes import HistoryProvider

logger = logging.getLogger(__name__)


def needs_refetch(stored: Sequence[DailyClose], today: date) -> bool:
    """Stored closes are trusted through yesterday; anything older is re-fetched."""
    if not stored:
        return True
    latest = max(point.date for point in stored)
    return latest < today - timedelta(days=1)


class HistoricalReconstructor:
    def __init__(
        self,
        store: PortfolioStore,
        *,
        daily_providers: Sequence[HistoryProvider],
        intraday_provider: HistoryProvider | None = None,
    ) -> None:
        self._store = store
        self._daily_providers = list(daily_providers)
        self._intraday_provider = intraday_provider

    async def get_daily_series(
        self, ticker: str, start: date, end: date, *, today: date | None = None
    ) -> list[DailyClose]:
        series = await self.get_daily_series_many([ticker], start, end, today=today)
        return series.get(ticker.strip().upper(), [])

    async def get_daily_series_many(
        self,
        tickers: Iterable[str],
        start: date,
        end: date,
        *,
        today: date | None = None,
    ) -> dict[str, list[DailyClose]]:
        symbols = list(dict.fromkeys(ticker.strip().upper() for ticker in tickers if ticker.strip()))
        if not symbols:
            return {}
        today = today or end

        stored_points = await self._load_stored(symbols, start)
        stored: dict[str, list[DailyClose]] = {symbol: [] for symbol in symbols}
        for point in stored_points:
            if point.date <= end and point.ticker in stored:
                stored[point.ticker].append(DailyClose(date=point.date, close=point.close))

        stale = [symbol for symbol in symbols if needs_refetch(stored[symbol], today)]
        if stale:
            logger.info("Fetching daily history for %d of %d tickers", len(stale), len(symbols))
        fetched = await asyncio.gather(*(self._fetch_daily(symbol, start, end) for symbol in stale))

        new_points: list[HistoricalPricePoint] = []
        for symbol, points in zip(stale, fetched, strict=True):
            known = {point.date for point in stored[symbol]}
            for point in points:
                if point.date in known or point.close <= 0:
                    continue
                known.add(point.date)
                stored[symbol].append(point)
                new_points.append(HistoricalPricePoint(ticker=symbol, date=point.date, close=point.close))
        if new_points:
            await self._save(new_points)

        return {
            symbol: sorted((point for point in points if start <= point.date <= end), key=lambda p: p.date)
            for symbol, points in stored.items()
        }

    async def get_intraday_series(self, ticker: str, day_start: datetime, now: datetime) -> list[IntradayClose]:
        if self._intraday_provider is None:
            return []
        symbol = ticker.strip().upper()
        try:
            points = await self._intraday_provider.get_intraday(symbol, day_start, now)
        except ProviderError as exc:
            logger.warning("Intraday history unavailable for %s: %s", symbol, exc)
            return []
        except Exception:
            logger.exception("Intraday history failed for %s", symbol)
            return []
        return sorted(
            (point for point in points if day_start <= point.timestamp <= now),
            key=lambda point: point.timestamp,
        )

    async def get_intraday_series_many(
        self, tickers: Iterable[str], day_start: datetime, now: datetime
    ) -> dict[str, list[IntradayClose]]:
        symbols = list(dict.fromkeys(ticker.strip().upper() for ticker in tickers if ticker.strip()))
        series = await asyncio.gather(*(self.get_intraday_series(symbol, day_start, now) for symbol in symbols))
        return dict(zip(symbols, series, strict=True))

    async def _fetch_daily(self, ticker: str, start: date, end: date) -> list[DailyClose]:
        for provider in self._daily_providers:
            try:
                points = await provider.get_daily(ticker, start, end)
            except ProviderError as exc:
                logger.warning("Daily history from %s failed for %s: %s", provider.name, ticker, exc)
                continue
            except Exception:
                logger.exception("Daily history from %s failed for %s", provider.name, ticker)
                continue
            if points:
                return points
        logger.warning("No daily history for %s from any provider", ticker)
        return []

    async def _load_stored(self, tickers: list[str], since: date) -> list[HistoricalPricePoint]:
        try:
            return await asyncio.to_thread(self._store.list_daily_prices, tickers, since)
        except Exception:
            logger.exception("Failed to read stored daily prices; fetching everything")
            return []

    async def _save(self, points: list[HistoricalPricePoint]) -> None:
        try:
            await asyncio.to_thread(self._store.upsert_daily_prices, points)
        except Exception:
            logger.exception("Failed to store %d daily prices", len(points))
        else:
            logger.info("Stored %d new daily prices", len(points))
