from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

import httpx

from adapters.market_data.base import DEFAULT_TIMEOUT_SECONDS, HttpMarketDataProvider, parse_number
from core.domain.market_data import DailyClose, IntradayClose, Quote, change_percent
from core.domain.portfolio import InstrumentKind
from core.errors import ProviderError

logger = logging.getLogger(__name__)

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{ticker}"


class YahooChartProvider(HttpMarketDataProvider):
    """Yahoo v8 chart endpoint: last-resort quotes plus daily and one-minute closes."""

    name = "yahoo"
    kinds = frozenset({InstrumentKind.EQUITY, InstrumentKind.ETF, InstrumentKind.MUTUAL_FUND})

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        concurrency: int = 8,
    ) -> None:
        super().__init__(client=client, timeout=timeout, concurrency=concurrency)

    async def _chart(self, ticker: str, params: dict[str, Any]) -> dict[str, Any] | None:
        payload = await self._get_json(YAHOO_CHART_URL.format(ticker=ticker), params=params)
        if not isinstance(payload, dict):
            raise ProviderError(self.name, f"unexpected chart payload for {ticker}")
        results = (payload.get("chart") or {}).get("result") or []
        if not results or not isinstance(results[0], dict):
            return None
        return results[0]

    @staticmethod
    def _closes(result: dict[str, Any] | None) -> list[tuple[int, float]]:
        if not result:
            return []
        timestamps = result.get("timestamp") or []
        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        closes = quotes[0].get("close") or []
        pairs: list[tuple[int, float]] = []
        for stamp, close in zip(timestamps, closes, strict=False):
            value = parse_number(close)
            if stamp is None or value is None:
                continue
            pairs.append((int(stamp), value))
        return pairs

    async def get_quotes(self, tickers: Sequence[str]) -> dict[str, Quote]:
        results = await asyncio.gather(*(self._quote_one(ticker) for ticker in tickers))
        return {quote.ticker: quote for quote in results if quote is not None}

    async def _quote_one(self, ticker: str) -> Quote | None:
        try:
            result = await self._chart(ticker, {"interval": "1d", "range": "1d"})
        except ProviderError as exc:
            logger.warning("Yahoo quote failed for %s: %s", ticker, exc)
            return None
        meta = (result or {}).get("meta") or {}
        price = parse_number(meta.get("regularMarketPrice"))
        if not price:
            logger.info("No Yahoo data for %s", ticker)
            return None
        previous = parse_number(meta.get("chartPreviousClose"))
        if previous is None:
            previous = price
        return Quote(
            ticker=ticker,
            current_price=price,
            previous_close=previous,
            change_percent=change_percent(price, previous),
            as_of=meta.get("regularMarketTime"),
            source=self.name,
        )

    async def get_daily(self, ticker: str, start: date, end: date) -> list[DailyClose]:
        period1 = datetime.combine(start, time.min, tzinfo=UTC)
        period2 = datetime.combine(end + timedelta(days=1), time.min, tzinfo=UTC)
        result = await self._chart(
            ticker,
            {"period1": int(period1.timestamp()), "period2": int(period2.timestamp()), "interval": "1d"},
        )
        by_date: dict[date, float] = {}
        for stamp, close in self._closes(result):
            by_date[datetime.fromtimestamp(stamp, tz=UTC).date()] = close
        return [DailyClose(date=day, close=close) for day, close in sorted(by_date.items())]

    async def get_intraday(self, ticker: str, start: datetime, end: datetime) -> list[IntradayClose]:
        result = await self._chart(
            ticker,
            {"period1": int(start.timestamp()), "period2": int(end.timestamp()), "interval": "1m"},
        )
        return [IntradayClose(timestamp=stamp, close=close) for stamp, close in self._closes(result)]
