from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

import httpx

from adapters.market_data.base import DEFAULT_TIMEOUT_SECONDS, HttpMarketDataProvider, chunked, parse_number
from core.domain.market_data import DailyClose, IntradayClose, Quote, change_percent
from core.domain.portfolio import InstrumentKind
from core.errors import ProviderError

logger = logging.getLogger(__name__)

FMP_STABLE_URL = "https://financialmodelingprep.com/stable"


class FmpQuoteProvider(HttpMarketDataProvider):
    """Batch quotes from the FMP stable ``/quote`` endpoint (equities and ETFs)."""

    name = "fmp"
    kinds = frozenset({InstrumentKind.EQUITY, InstrumentKind.ETF})

    def __init__(
        self,
        api_key: str | None,
        *,
        batch_size: int = 10,
        batch_delay_seconds: float = 0.25,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not api_key:
            raise RuntimeError(f"{self.__class__.__name__}: API key required")
        super().__init__(client=client, timeout=timeout)
        self._api_key = api_key
        self._batch_size = batch_size
        self._batch_delay_seconds = batch_delay_seconds

    async def get_quotes(self, tickers: Sequence[str]) -> dict[str, Quote]:
        results: dict[str, Quote] = {}
        batches = chunked(tickers, self._batch_size)
        failures: list[ProviderError] = []
        for index, batch in enumerate(batches):
            if index and self._batch_delay_seconds:
                await asyncio.sleep(self._batch_delay_seconds)
            try:
                payload = await self._get_json(
                    f"{FMP_STABLE_URL}/quote", params={"symbol": ",".join(batch), "apikey": self._api_key}
                )
                results.update(self._parse_quotes(payload))
            except ProviderError as exc:
                logger.warning("FMP quote batch %s failed: %s", ",".join(batch), exc)
                failures.append(exc)
        # only a provider-wide outage is surfaced as an error
        if failures and len(failures) == len(batches):
            raise failures[-1]
        return results

    def _parse_quotes(self, payload: Any) -> dict[str, Quote]:
        if not isinstance(payload, list):
            raise ProviderError(self.name, "expected a list of quotes")
        quotes: dict[str, Quote] = {}
        for item in payload:
            if not isinstance(item, dict) or not item.get("symbol"):
                continue
            price = parse_number(item.get("price"))
            if not price:
                continue
            previous = parse_number(item.get("previousClose"))
            if previous is None:
                previous = price
            pct = parse_number(item.get("changePercentage"))
            quote = Quote(
                ticker=item["symbol"],
                current_price=price,
                previous_close=previous,
                change_percent=pct if pct is not None else change_percent(price, previous),
                as_of=item.get("timestamp"),
                source=self.name,
            )
            quotes[quote.ticker] = quote
        return quotes


class FmpHistoryProvider(HttpMarketDataProvider):
    """Daily closes from ``/historical-price-eod/full``; FMP has no free intraday feed."""

    name = "fmp"

    def __init__(
        self,
        api_key: str | None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        concurrency: int = 8,
    ) -> None:
        if not api_key:
            raise RuntimeError(f"{self.__class__.__name__}: API key required")
        super().__init__(client=client, timeout=timeout, concurrency=concurrency)
        self._api_key = api_key

    async def get_daily(self, ticker: str, start: date, end: date) -> list[DailyClose]:
        payload = await self._get_json(
            f"{FMP_STABLE_URL}/historical-price-eod/full",
            params={
                "symbol": ticker,
                "from": start.isoformat(),
                "to": end.isoformat(),
                "apikey": self._api_key,
            },
        )
        if isinstance(payload, dict):
            payload = payload.get("historical", [])
        if not isinstance(payload, list):
            raise ProviderError(self.name, f"unexpected daily payload for {ticker}")

        closes: list[DailyClose] = []
        for item in payload:
            close = parse_number(item.get("close")) if isinstance(item, dict) else None
            if close is None or not item.get("date"):
                continue
            closes.append(DailyClose(date=date.fromisoformat(str(item["date"])[:10]), close=close))
        # newest first on the wire
        closes.sort(key=lambda point: point.date)
        return closes

    async def get_intraday(self, ticker: str, start: datetime, end: datetime) -> list[IntradayClose]:
        raise ProviderError(self.name, "intraday series are not available")
