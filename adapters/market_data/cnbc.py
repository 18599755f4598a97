from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from adapters.market_data.base import DEFAULT_TIMEOUT_SECONDS, HttpMarketDataProvider, parse_number
from core.domain.market_data import Quote
from core.domain.portfolio import InstrumentKind
from core.errors import ProviderError

logger = logging.getLogger(__name__)

CNBC_QUOTE_URL = "https://quote.cnbc.com/quote-html-webservice/restQuote/symbolType/symbol"


def _parse_change(value: Any) -> float:
    # CNBC reports an unchanged session as the literal "UNCH".
    if value is None or str(value).strip().upper() == "UNCH":
        return 0.0
    return parse_number(value) or 0.0


class CnbcQuoteProvider(HttpMarketDataProvider):
    """Single-symbol scrape endpoint; the only source that reliably prices mutual funds."""

    name = "cnbc"
    kinds = frozenset({InstrumentKind.EQUITY, InstrumentKind.ETF, InstrumentKind.MUTUAL_FUND})

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        concurrency: int = 8,
    ) -> None:
        super().__init__(client=client, timeout=timeout, concurrency=concurrency)

    async def get_quotes(self, tickers: Sequence[str]) -> dict[str, Quote]:
        results = await asyncio.gather(*(self._fetch_one(ticker) for ticker in tickers))
        return {quote.ticker: quote for quote in results if quote is not None}

    async def _fetch_one(self, ticker: str) -> Quote | None:
        try:
            payload = await self._get_json(
                CNBC_QUOTE_URL,
                params={"symbols": ticker, "requestMethod": "itv", "noform": 1, "output": "json"},
            )
            return self.parse_quote(ticker, payload)
        except ProviderError as exc:
            logger.warning("CNBC quote failed for %s: %s", ticker, exc)
            return None

    def parse_quote(self, ticker: str, payload: Any) -> Quote | None:
        if not isinstance(payload, dict):
            raise ProviderError(self.name, f"unexpected payload for {ticker}")
        formatted = (payload.get("FormattedQuoteResult") or {}).get("FormattedQuote") or []
        if not formatted or not isinstance(formatted[0], dict):
            logger.info("No CNBC data for %s", ticker)
            return None
        raw = formatted[0]
        price = parse_number(raw.get("last"))
        if not price:
            return None
        change = _parse_change(raw.get("change"))
        return Quote(
            ticker=ticker,
            current_price=price,
            previous_close=price - change,
            change_percent=_parse_change(raw.get("change_pct")),
            source=self.name,
        )
