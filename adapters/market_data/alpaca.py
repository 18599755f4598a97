from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from alpaca.common.exceptions import APIError
from alpaca.data import StockHistoricalDataClient
from alpaca.data.requests import StockSnapshotRequest

from core.domain.market_data import Quote, change_percent
from core.domain.portfolio import InstrumentKind
from core.errors import ProviderError

logger = logging.getLogger(__name__)


class AlpacaSnapshotProvider:
    """Quotes from Alpaca stock snapshots: latest trade price and previous daily bar close."""

    name = "alpaca"
    kinds = frozenset({InstrumentKind.EQUITY, InstrumentKind.ETF})

    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | None = None,
        *,
        data_feed: str = "iex",
        client: Any | None = None,
    ) -> None:
        if client is None:
            if not (api_key and api_secret):
                raise RuntimeError(f"{self.__class__.__name__}: API key and secret required")
            client = StockHistoricalDataClient(api_key=api_key, secret_key=api_secret)
        self._client = client
        self._data_feed = data_feed

    def _fetch_snapshots(self, symbols: list[str]) -> dict[str, Any]:
        request = StockSnapshotRequest(symbol_or_symbols=symbols, feed=self._data_feed)
        try:
            return self._client.get_stock_snapshot(request)
        except APIError as exc:
            raise ProviderError(self.name, f"snapshot request failed: {exc}") from exc

    async def get_quotes(self, tickers: Sequence[str]) -> dict[str, Quote]:
        symbols = list(dict.fromkeys(ticker.upper() for ticker in tickers))
        if not symbols:
            return {}
        response = await asyncio.to_thread(self._fetch_snapshots, symbols)

        quotes: dict[str, Quote] = {}
        for symbol in symbols:
            snapshot = response.get(symbol) if response else None
            if snapshot is None:
                continue
            trade = getattr(snapshot, "latest_trade", None)
            previous_bar = getattr(snapshot, "previous_daily_bar", None)
            price = float(trade.price) if trade is not None and trade.price else None
            if not price:
                continue
            previous = float(previous_bar.close) if previous_bar is not None and previous_bar.close else price
            quotes[symbol] = Quote(
                ticker=symbol,
                current_price=price,
                previous_close=previous,
                change_percent=change_percent(price, previous),
                as_of=getattr(trade, "timestamp", None),
                source=self.name,
            )
        return quotes
