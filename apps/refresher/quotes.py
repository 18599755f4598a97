"""Current-price lookups across an ordered chain of quote providers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from core.classification import group_by_kind
from core.domain.market_data import Quote
from core.domain.portfolio import InstrumentKind
from core.errors import NoDataError, ProviderError
from core.ports.quotes import QuoteProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderAttempt:
    """Outcome of asking one provider for a set of tickers."""

    provider: str
    found: dict[str, Quote] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)


def _normalize(tickers: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ticker.strip().upper() for ticker in tickers if ticker and ticker.strip()))


class QuoteSourceAdapter:
    """Routes each ticker to the providers that serve its instrument kind, in order.

    Providers are tried one after another on whatever the previous ones left
    unresolved. A provider failure counts as "not found" for the tickers it was
    asked about, so the next provider gets a chance at them.
    """

    def __init__(
        self,
        providers: Sequence[QuoteProvider],
        *,
        mutual_funds: Collection[str] = (),
    ) -> None:
        self._providers = list(providers)
        self._mutual_funds = frozenset(symbol.upper() for symbol in mutual_funds)

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    def chain_for(self, kind: InstrumentKind) -> list[QuoteProvider]:
        return [provider for provider in self._providers if kind in provider.kinds]

    async def get_quote(self, ticker: str, *, instrument_type: str | None = None) -> Quote:
        symbol = ticker.strip().upper()
        quotes = await self.get_many_quotes([symbol], hints={symbol: instrument_type})
        quote = quotes.get(symbol)
        if quote is None:
            raise NoDataError(symbol)
        return quote

    async def get_many_quotes(
        self,
        tickers: Iterable[str],
        *,
        hints: Mapping[str, str | None] | None = None,
    ) -> dict[str, Quote]:
        """Quotes for every ticker some provider could price; the rest are absent."""
        symbols = _normalize(tickers)
        if not symbols:
            return {}
        groups = group_by_kind(symbols, mutual_funds=self._mutual_funds, hints=dict(hints or {}))
        chains = await asyncio.gather(*(self._run_chain(kind, group) for kind, group in groups.items()))

        quotes: dict[str, Quote] = {}
        for found in chains:
            quotes.update(found)
        missing = [symbol for symbol in symbols if symbol not in quotes]
        if missing:
            logger.warning("No quote from any provider for %s", ", ".join(missing))
        logger.info("Resolved %d of %d quotes", len(quotes), len(symbols))
        return quotes

    async def _run_chain(self, kind: InstrumentKind, tickers: list[str]) -> dict[str, Quote]:
        found: dict[str, Quote] = {}
        remaining = list(tickers)
        for provider in self.chain_for(kind):
            if not remaining:
                break
            attempt = await self._attempt(provider, remaining)
            found.update(attempt.found)
            remaining = attempt.missing
        return found

    async def _attempt(self, provider: QuoteProvider, tickers: list[str]) -> ProviderAttempt:
        attempt = ProviderAttempt(provider=provider.name)
        try:
            quotes = await provider.get_quotes(tickers)
        except ProviderError as exc:
            logger.warning("Quote provider %s failed: %s", provider.name, exc)
            quotes = {}
        except Exception:
            logger.exception("Quote provider %s raised unexpectedly", provider.name)
            quotes = {}

        for ticker in tickers:
            quote = quotes.get(ticker)
            if quote is not None and quote.current_price > 0:
                attempt.found[ticker] = quote
            else:
                attempt.missing.append(ticker)
        if attempt.found:
            logger.debug("%s priced %d of %d tickers", provider.name, len(attempt.found), len(tickers))
        return attempt
