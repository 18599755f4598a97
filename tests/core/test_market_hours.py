from __future__ import annotations

from datetime import UTC, datetime

from core.domain.snapshot import MarketStatus
from core.market_hours import get_market_status, start_of_trading_day


def test_regular_session_is_open() -> None:
    # 2024-03-06 is a Wednesday; 15:00 UTC is 10:00 EST
    assert get_market_status(datetime(2024, 3, 6, 15, 0, tzinfo=UTC)) == MarketStatus.OPEN


def test_pre_and_after_hours() -> None:
    assert get_market_status(datetime(2024, 3, 6, 10, 0, tzinfo=UTC)) == MarketStatus.PRE_MARKET
    assert get_market_status(datetime(2024, 3, 6, 22, 0, tzinfo=UTC)) == MarketStatus.AFTER_HOURS
    assert get_market_status(datetime(2024, 3, 7, 2, 0, tzinfo=UTC)) == MarketStatus.CLOSED


def test_session_boundaries() -> None:
    assert get_market_status(datetime(2024, 3, 6, 14, 30, tzinfo=UTC)) == MarketStatus.OPEN
    assert get_market_status(datetime(2024, 3, 6, 21, 0, tzinfo=UTC)) == MarketStatus.AFTER_HOURS


def test_weekend_is_closed() -> None:
    assert get_market_status(datetime(2024, 3, 9, 16, 0, tzinfo=UTC)) == MarketStatus.CLOSED


def test_naive_datetimes_are_treated_as_utc() -> None:
    assert get_market_status(datetime(2024, 3, 6, 15, 0)) == MarketStatus.OPEN


def test_start_of_trading_day_is_eastern_midnight() -> None:
    # summer: EDT is UTC-4
    assert start_of_trading_day(datetime(2024, 7, 10, 18, 0, tzinfo=UTC)) == datetime(2024, 7, 10, 4, 0, tzinfo=UTC)
    # 02:00 UTC is still the previous day in New York
    assert start_of_trading_day(datetime(2024, 1, 10, 2, 0, tzinfo=UTC)) == datetime(2024, 1, 9, 5, 0, tzinfo=UTC)
