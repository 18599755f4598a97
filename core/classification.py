"""Pure instrument classification used to route tickers to quote providers."""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable

from core.domain.portfolio import Holding, InstrumentKind

# NASDAQ mutual fund symbols are five letters ending in X (VFIAX, FXAIX, ...).
_MUTUAL_FUND_PATTERN = re.compile(r"^[A-Z]{4}X$")

_TYPE_HINTS = {
    "mutual fund": InstrumentKind.MUTUAL_FUND,
    "money market": InstrumentKind.MUTUAL_FUND,
    "mutualfund": InstrumentKind.MUTUAL_FUND,
    "moneymarket": InstrumentKind.MUTUAL_FUND,
    "etf": InstrumentKind.ETF,
    "common stock": InstrumentKind.EQUITY,
    "equity": InstrumentKind.EQUITY,
}


def classify_ticker(
    ticker: str,
    instrument_type: str | None = None,
    *,
    mutual_funds: Collection[str] = (),
) -> InstrumentKind:
    """Classify a tradeable ticker; never raises and never returns STATIC."""
    symbol = (ticker or "").strip().upper()
    if symbol in mutual_funds:
        return InstrumentKind.MUTUAL_FUND
    hint = _TYPE_HINTS.get((instrument_type or "").strip().lower())
    if hint is not None:
        return hint
    if _MUTUAL_FUND_PATTERN.match(symbol):
        return InstrumentKind.MUTUAL_FUND
    return InstrumentKind.EQUITY


def classify_holding(holding: Holding, *, mutual_funds: Collection[str] = ()) -> InstrumentKind:
    if holding.is_static:
        return InstrumentKind.STATIC
    return classify_ticker(holding.ticker, holding.instrument_type, mutual_funds=mutual_funds)


def group_by_kind(
    tickers: Iterable[str],
    *,
    mutual_funds: Collection[str] = (),
    hints: dict[str, str | None] | None = None,
) -> dict[InstrumentKind, list[str]]:
    hints = hints or {}
    groups: dict[InstrumentKind, list[str]] = {}
    for ticker in tickers:
        kind = classify_ticker(ticker, hints.get(ticker), mutual_funds=mutual_funds)
        groups.setdefault(kind, []).append(ticker)
    return groups


__all__ = ["classify_holding", "classify_ticker", "group_by_kind"]
