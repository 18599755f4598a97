from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from adapters.cache.redis_snapshot_cache import RedisSnapshotCache
from adapters.market_data.alpaca import AlpacaSnapshotProvider
from adapters.market_data.cnbc import CnbcQuoteProvider
from adapters.market_data.fmp import FmpHistoryProvider, FmpQuoteProvider
from adapters.market_data.fundamentals import CompaniesMarketCapProvider
from adapters.market_data.yahoo import YahooChartProvider
from adapters.storage.sqlalchemy_store import SqlAlchemyPortfolioStore
from apps.refresher.fundamentals import FundamentalsService
from apps.refresher.history import HistoricalReconstructor
from apps.refresher.quotes import QuoteSourceAdapter
from apps.refresher.snapshot_cache import SnapshotCache
from core.domain.market_data import DailyClose, Fundamentals, IntradayClose, PriceCacheEntry
from core.domain.portfolio import Holding, tradeable_tickers
from core.domain.snapshot import BenchmarkPoint, MarketStatus, Snapshot
from core.errors import PortfolioComputeError, RunFailure, UnknownPortfolioError
from core.market_hours import get_market_status, start_of_trading_day
from core.ports.portfolio_store import PortfolioStore
from core.ports.quotes import HistoryProvider, QuoteProvider
from core.reconstruction import benchmark_curve, merge_daily, merge_intraday
from core.settings import Settings
from core.valuation import compute_holdings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class RefreshContext:
    """Everything a refresh run touches, wired once and passed in."""

    settings: Settings
    store: PortfolioStore
    quotes: QuoteSourceAdapter
    history: HistoricalReconstructor
    fundamentals: FundamentalsService
    snapshots: SnapshotCache
    clock: Callable[[], datetime] = _utcnow
    closers: list[Callable[[], Awaitable[None] | None]] = field(default_factory=list)

    async def aclose(self) -> None:
        for closer in reversed(self.closers):
            try:
                result = closer()
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Failed to close refresh resource")


@dataclass
class RefreshSummary:
    started_at: datetime
    finished_at: datetime | None = None
    tickers: int = 0
    quotes: int = 0
    refreshed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    snapshots: dict[str, Snapshot] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def as_dict(self) -> dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "tickers": self.tickers,
            "quotes": self.quotes,
            "refreshed": list(self.refreshed),
            "failed": dict(self.failed),
        }


def _build_quote_providers(settings: Settings) -> list[QuoteProvider]:
    timeout = settings.http_timeout_seconds
    providers: list[QuoteProvider] = []
    for name in settings.quote_providers:
        if name == "fmp":
            if not settings.fmp_api_key:
                continue
            providers.append(
                FmpQuoteProvider(
                    settings.fmp_api_key,
                    batch_size=settings.quote_batch_size,
                    batch_delay_seconds=settings.quote_batch_delay_seconds,
                    timeout=timeout,
                )
            )
        elif name == "alpaca":
            if not settings.alpaca_enabled:
                continue
            providers.append(
                AlpacaSnapshotProvider(
                    settings.alpaca_api_key, settings.alpaca_api_secret, data_feed=settings.alpaca_data_feed
                )
            )
        elif name == "cnbc":
            providers.append(CnbcQuoteProvider(timeout=timeout, concurrency=settings.provider_concurrency))
        elif name == "yahoo":
            providers.append(YahooChartProvider(timeout=timeout, concurrency=settings.provider_concurrency))
    return providers


def build_context(settings: Settings) -> RefreshContext:
    store = SqlAlchemyPortfolioStore(settings.database_url)
    fast_cache = RedisSnapshotCache(settings.redis_url, namespace=settings.cache_namespace)
    quote_providers = _build_quote_providers(settings)

    yahoo = YahooChartProvider(timeout=settings.http_timeout_seconds, concurrency=settings.provider_concurrency)
    daily_providers: list[HistoryProvider] = [yahoo]
    if settings.fmp_api_key:
        daily_providers.append(
            FmpHistoryProvider(
                settings.fmp_api_key,
                timeout=settings.http_timeout_seconds,
                concurrency=settings.provider_concurrency,
            )
        )
    fundamentals_provider = CompaniesMarketCapProvider(timeout=settings.http_timeout_seconds)
    quotes = QuoteSourceAdapter(quote_providers, mutual_funds=settings.mutual_fund_symbols)

    logger.info(
        "Refresh context ready providers=%s benchmark=%s",
        ",".join(quotes.provider_names) or "none",
        settings.benchmark_ticker,
    )

    closers: list[Callable[[], Awaitable[None] | None]] = [store.close, fast_cache.close]
    for provider in [*quote_providers, *daily_providers, fundamentals_provider]:
        aclose = getattr(provider, "aclose", None)
        if aclose is not None:
            closers.append(aclose)

    return RefreshContext(
        settings=settings,
        store=store,
        quotes=quotes,
        history=HistoricalReconstructor(store, daily_providers=daily_providers, intraday_provider=yahoo),
        fundamentals=FundamentalsService(
            store,
            fundamentals_provider,
            stale_after=timedelta(hours=settings.fundamentals_stale_hours),
        ),
        snapshots=SnapshotCache(
            store,
            fast_cache,
            stale_after=timedelta(seconds=settings.snapshot_stale_seconds),
        ),
        closers=closers,
    )


@dataclass
class _MarketInputs:
    prices: dict[str, PriceCacheEntry]
    fundamentals: dict[str, Fundamentals]
    daily: dict[str, list[DailyClose]]
    intraday: dict[str, list[IntradayClose]]
    benchmark: list[BenchmarkPoint]


class RefreshOrchestrator:
    """Pulls market data once per run and writes one snapshot per portfolio."""

    def __init__(self, context: RefreshContext) -> None:
        self._context = context
        self._settings = context.settings

    async def refresh_portfolio(self, portfolio_id: str) -> Snapshot:
        portfolio_id = portfolio_id.strip().lower()
        holdings = await self._load_holdings([portfolio_id], require=True)
        summary = await self._run(holdings)
        snapshot = summary.snapshots.get(portfolio_id)
        if snapshot is None:
            raise PortfolioComputeError(portfolio_id, summary.failed.get(portfolio_id, "no snapshot written"))
        return snapshot

    async def has_portfolio(self, portfolio_id: str) -> bool:
        try:
            known = await asyncio.to_thread(self._context.store.list_portfolio_ids)
        except Exception as exc:
            raise RunFailure(f"Could not enumerate portfolios: {exc}") from exc
        return portfolio_id.strip().lower() in known

    async def refresh_all(self) -> RefreshSummary:
        try:
            portfolio_ids = await asyncio.to_thread(self._context.store.list_portfolio_ids)
        except Exception as exc:
            raise RunFailure(f"Could not enumerate portfolios: {exc}") from exc
        holdings = await self._load_holdings(portfolio_ids)
        return await self._run(holdings)

    async def _load_holdings(self, portfolio_ids: Sequence[str], *, require: bool = False) -> dict[str, list[Holding]]:
        store = self._context.store
        try:
            if require:
                known = await asyncio.to_thread(store.list_portfolio_ids)
                missing = [portfolio_id for portfolio_id in portfolio_ids if portfolio_id not in known]
                if missing:
                    raise UnknownPortfolioError(missing[0])
            loaded = await asyncio.gather(
                *(asyncio.to_thread(store.list_holdings, portfolio_id) for portfolio_id in portfolio_ids)
            )
        except RunFailure:
            raise
        except Exception as exc:
            raise RunFailure(f"Could not load holdings: {exc}") from exc
        return dict(zip(portfolio_ids, loaded, strict=True))

    async def _run(self, holdings_by_portfolio: Mapping[str, list[Holding]]) -> RefreshSummary:
        now = self._context.clock()
        summary = RefreshSummary(started_at=now)
        logger.info("Refresh run starting portfolios=%d", len(holdings_by_portfolio))

        inputs = await self._gather_inputs(holdings_by_portfolio, now, summary)
        market_status = get_market_status(now, timezone=self._settings.market_timezone)

        for portfolio_id, holdings in holdings_by_portfolio.items():
            try:
                snapshot = self._build_snapshot(portfolio_id, holdings, inputs, now, market_status)
                await self._context.snapshots.write(portfolio_id, snapshot)
            except Exception as exc:
                error = PortfolioComputeError(portfolio_id, str(exc))
                logger.exception("Snapshot refresh failed for %s", portfolio_id)
                summary.failed[portfolio_id] = str(error)
                try:
                    summary.snapshots[portfolio_id] = await self._context.snapshots.record_error(
                        portfolio_id, str(error), now=now
                    )
                except Exception:
                    logger.exception("Could not record refresh error for %s", portfolio_id)
                continue
            summary.refreshed.append(portfolio_id)
            summary.snapshots[portfolio_id] = snapshot

        summary.finished_at = self._context.clock()
        logger.info(
            "Refresh run finished refreshed=%d failed=%d quotes=%d/%d",
            len(summary.refreshed),
            len(summary.failed),
            summary.quotes,
            summary.tickers,
        )
        return summary

    async def _gather_inputs(
        self,
        holdings_by_portfolio: Mapping[str, list[Holding]],
        now: datetime,
        summary: RefreshSummary,
    ) -> _MarketInputs:
        settings = self._settings
        benchmark = settings.benchmark_ticker
        hints: dict[str, str | None] = {}
        portfolio_tickers: list[str] = []
        for holdings in holdings_by_portfolio.values():
            for holding in holdings:
                if not holding.is_static:
                    hints.setdefault(holding.ticker, holding.instrument_type)
            portfolio_tickers.extend(tradeable_tickers(holdings))
        portfolio_tickers = list(dict.fromkeys(portfolio_tickers))
        all_tickers = list(dict.fromkeys([*portfolio_tickers, benchmark]))
        summary.tickers = len(all_tickers)

        prices = await self._refresh_prices(all_tickers, hints, now, summary)
        fundamentals = await self._refresh_fundamentals(portfolio_tickers, now)

        today = now.astimezone(ZoneInfo(settings.market_timezone)).date()
        start = today - timedelta(days=settings.history_lookback_days)
        day_start = start_of_trading_day(now, timezone=settings.market_timezone)
        daily, intraday = await asyncio.gather(
            self._context.history.get_daily_series_many(all_tickers, start, today, today=today),
            self._context.history.get_intraday_series_many(portfolio_tickers, day_start, now),
        )

        return _MarketInputs(
            prices=prices,
            fundamentals=fundamentals,
            daily=daily,
            intraday=intraday,
            benchmark=benchmark_curve(daily.get(benchmark, []), window=settings.history_window_points),
        )

    async def _refresh_prices(
        self,
        tickers: list[str],
        hints: dict[str, str | None],
        now: datetime,
        summary: RefreshSummary,
    ) -> dict[str, PriceCacheEntry]:
        quotes = await self._context.quotes.get_many_quotes(tickers, hints=hints)
        summary.quotes = len(quotes)
        entries = [quote.to_cache_entry(updated_at=now) for quote in quotes.values()]
        try:
            await self._context.snapshots.write_prices(entries)
        except Exception:
            logger.exception("Failed to persist %d price cache entries", len(entries))

        # only this run's quotes are valued; unpriced holdings drop out
        return {entry.ticker: entry for entry in entries}

    async def _refresh_fundamentals(self, tickers: list[str], now: datetime) -> dict[str, Fundamentals]:
        try:
            return await self._context.fundamentals.get_fundamentals(tickers, now=now)
        except Exception:
            logger.exception("Fundamentals unavailable for this run")
            return {}

    def _build_snapshot(
        self,
        portfolio_id: str,
        holdings: list[Holding],
        inputs: _MarketInputs,
        now: datetime,
        market_status: MarketStatus,
    ) -> Snapshot:
        valuation = compute_holdings(holdings, inputs.prices, inputs.fundamentals)
        return Snapshot(
            portfolio_id=portfolio_id,
            total_value=valuation.total_value,
            day_change=valuation.total_day_change,
            day_change_percent=valuation.total_day_change_percent,
            total_gain=valuation.total_gain,
            total_gain_percent=valuation.total_gain_percent,
            holdings=valuation.holdings,
            history_30d=merge_daily(holdings, inputs.daily, window=self._settings.history_window_points),
            history_1d=merge_intraday(holdings, inputs.intraday, inputs.prices),
            benchmark_30d=inputs.benchmark,
            market_status=market_status,
            updated_at=now,
        )


__all__ = ["RefreshContext", "RefreshOrchestrator", "RefreshSummary", "build_context"]
