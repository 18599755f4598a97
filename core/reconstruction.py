"""Merge per-ticker price series into portfolio value curves.

Every merge forward-fills: a ticker without a point at an exact date or
timestamp is priced at its most recent earlier point. No interpolation is
performed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import pandas as pd

from core.domain.market_data import DailyClose, IntradayClose, PriceCacheEntry, Quote
from core.domain.portfolio import Holding
from core.domain.snapshot import BenchmarkPoint, HistoryPoint

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 30


def _series(points: Sequence[Any], key: str) -> pd.Series:
    if not points:
        return pd.Series(dtype="float64")
    index = [getattr(point, key) for point in points]
    values = [point.close for point in points]
    series = pd.Series(values, index=pd.Index(index), dtype="float64")
    series = series[series > 0]
    series = series[~series.index.duplicated(keep="last")]
    return series.sort_index()


def _shares_by_ticker(holdings: Sequence[Holding]) -> dict[str, float]:
    shares: dict[str, float] = {}
    for holding in holdings:
        if holding.is_static:
            continue
        shares[holding.ticker] = shares.get(holding.ticker, 0.0) + holding.shares
    return shares


def _static_total(holdings: Sequence[Holding]) -> float:
    return sum(holding.static_value or 0.0 for holding in holdings if holding.is_static)


def _price_frame(series_by_ticker: Mapping[str, Sequence[Any]], tickers: Sequence[str], key: str) -> pd.DataFrame:
    columns = {ticker: _series(series_by_ticker.get(ticker, []), key) for ticker in tickers}
    frame = pd.DataFrame(columns)
    if frame.empty:
        return frame
    return frame.sort_index().ffill()


def _emit(totals: pd.Series, formatter) -> list[HistoryPoint]:
    positive = totals[totals > 0]
    return [HistoryPoint(date=formatter(index), value=float(value)) for index, value in positive.items()]


def merge_daily(
    holdings: Sequence[Holding],
    series_by_ticker: Mapping[str, Sequence[DailyClose]],
    *,
    window: int = DEFAULT_WINDOW,
) -> list[HistoryPoint]:
    """Daily portfolio value over the union of the holdings' trading dates."""
    shares = _shares_by_ticker(holdings)
    tickers = list(shares)
    for ticker in tickers:
        if not series_by_ticker.get(ticker):
            logger.warning("No daily history for %s; it contributes 0 to the 30-day curve", ticker)

    frame = _price_frame(series_by_ticker, tickers, "date")
    if frame.empty:
        return []

    frame = frame.fillna(0.0)
    totals = frame.mul(pd.Series(shares)).sum(axis=1) + _static_total(holdings)
    points = _emit(totals, lambda value: value.isoformat())
    return points[-window:] if window > 0 else points


def merge_intraday(
    holdings: Sequence[Holding],
    series_by_ticker: Mapping[str, Sequence[IntradayClose]],
    prices: Mapping[str, Quote | PriceCacheEntry],
) -> list[HistoryPoint]:
    """Intraday portfolio value; the current quote fills gaps nothing else can."""
    shares = _shares_by_ticker(holdings)
    tickers = list(shares)

    frame = _price_frame(series_by_ticker, tickers, "timestamp")
    if frame.empty:
        return []

    fallbacks: dict[str, float] = {}
    for ticker in tickers:
        price = prices.get(ticker)
        if price is not None:
            fallbacks[ticker] = price.current_price
        elif frame[ticker].isna().all():
            logger.warning("No intraday or current price for %s; it contributes 0 to the 1-day curve", ticker)
    frame = frame.fillna(value=fallbacks).fillna(0.0)

    totals = frame.mul(pd.Series(shares)).sum(axis=1) + _static_total(holdings)
    return _emit(totals, lambda value: pd.Timestamp(value).isoformat())


def benchmark_curve(points: Sequence[DailyClose], *, window: int = DEFAULT_WINDOW) -> list[BenchmarkPoint]:
    """Percent change of the reference ticker, rebased to 0 at the window start."""
    series = _series(points, "date")
    if series.empty:
        return []
    if window > 0:
        series = series.iloc[-window:]
    start = float(series.iloc[0])
    return [
        BenchmarkPoint(date=index.isoformat(), percent_change=(float(close) - start) / start * 100)
        for index, close in series.items()
    ]


__all__ = ["benchmark_curve", "merge_daily", "merge_intraday"]
