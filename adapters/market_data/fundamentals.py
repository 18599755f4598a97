from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from adapters.market_data.base import DEFAULT_TIMEOUT_SECONDS, HttpMarketDataProvider, chunked
from core.domain.market_data import Fundamentals
from core.errors import ProviderError

logger = logging.getLogger(__name__)

COMPANIES_MARKETCAP_URL = "https://www.companiesmarketcap.org/api/company"
FUNDAMENTAL_FIELDS = (
    "revenue",
    "earnings",
    "forwardEPS",
    "week52High",
    "operatingMargin",
    "revenueGrowth3Y",
    "epsGrowth3Y",
)


class CompaniesMarketCapProvider(HttpMarketDataProvider):
    name = "companiesmarketcap"

    def __init__(
        self,
        *,
        batch_size: int = 50,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._batch_size = batch_size

    async def get_fundamentals(self, tickers: Sequence[str]) -> dict[str, Fundamentals]:
        results: dict[str, Fundamentals] = {}
        for batch in chunked(tickers, self._batch_size):
            payload = await self._get_json(
                COMPANIES_MARKETCAP_URL,
                params={"symbols": ",".join(batch), "fields": ",".join(FUNDAMENTAL_FIELDS)},
            )
            if not isinstance(payload, dict):
                raise ProviderError(self.name, "expected an object payload")
            companies = payload.get("companies") or {}
            for ticker in batch:
                data = companies.get(ticker)
                if data:
                    results[ticker] = Fundamentals.from_payload(ticker, data)
        logger.debug("Fetched fundamentals for %d of %d tickers", len(results), len(tickers))
        return results
