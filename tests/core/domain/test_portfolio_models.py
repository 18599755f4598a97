from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from core.domain.portfolio import Holding, Portfolio, tradeable_tickers
from core.domain.snapshot import MarketStatus, Snapshot


def test_holding_requires_ticker() -> None:
    with pytest.raises(ValidationError):
        Holding(ticker="  ")


def test_static_holding_defaults_value() -> None:
    holding = Holding(ticker="house", is_static=True)

    assert holding.static_value == 0.0
    assert holding.display_name == "HOUSE"


def test_portfolio_accepts_id_alias() -> None:
    portfolio = Portfolio.model_validate({"id": "Family", "holdings": [{"ticker": "vti", "shares": 3}]})

    assert portfolio.portfolio_id == "family"
    assert portfolio.holdings[0].ticker == "VTI"


def test_tradeable_tickers_skip_static_and_duplicates() -> None:
    holdings = [
        Holding(ticker="AAPL", shares=1),
        Holding(ticker="Cash", is_static=True, static_value=5),
        Holding(ticker="aapl", shares=2),
        Holding(ticker="MSFT", shares=1),
    ]

    assert tradeable_tickers(holdings) == ["AAPL", "MSFT"]


def test_placeholder_snapshot_is_zeroed() -> None:
    at = datetime(2024, 3, 6, 15, 0, tzinfo=UTC)

    snapshot = Snapshot.placeholder("Family", message="boom", at=at)

    assert snapshot.portfolio_id == "family"
    assert snapshot.total_value == 0
    assert snapshot.holdings == []
    assert snapshot.market_status == MarketStatus.UNKNOWN
    assert snapshot.last_error_at == at
    assert snapshot.has_error


def test_snapshot_json_round_trip_keeps_market_status() -> None:
    snapshot = Snapshot(portfolio_id="a", market_status=MarketStatus.PRE_MARKET)

    restored = Snapshot.model_validate_json(snapshot.model_dump_json())

    assert restored.market_status == MarketStatus.PRE_MARKET
    assert '"pre-market"' in snapshot.model_dump_json()
