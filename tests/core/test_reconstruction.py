from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from core.domain.market_data import DailyClose, IntradayClose, Quote
from core.domain.portfolio import Holding
from core.reconstruction import benchmark_curve, merge_daily, merge_intraday

D0 = date(2024, 3, 4)
D1 = date(2024, 3, 5)
D2 = date(2024, 3, 6)


def test_daily_merge_forward_fills_missing_dates() -> None:
    holdings = [Holding(ticker="AAA", shares=2), Holding(ticker="BBB", shares=1)]
    series = {
        "AAA": [DailyClose(date=D0, close=10), DailyClose(date=D2, close=30)],
        "BBB": [DailyClose(date=D0, close=5), DailyClose(date=D1, close=6), DailyClose(date=D2, close=7)],
    }

    points = merge_daily(holdings, series)

    assert [point.date for point in points] == [D0.isoformat(), D1.isoformat(), D2.isoformat()]
    # D1 uses AAA's D0 close, neither interpolated (20) nor zero
    assert [point.value for point in points] == pytest.approx([25, 26, 67])


def test_daily_merge_counts_zero_before_first_point_and_adds_static() -> None:
    holdings = [
        Holding(ticker="AAA", shares=1),
        Holding(ticker="LATE", shares=10),
        Holding(ticker="Cash", is_static=True, static_value=100),
    ]
    series = {
        "AAA": [DailyClose(date=D0, close=1), DailyClose(date=D1, close=2)],
        "LATE": [DailyClose(date=D1, close=3)],
    }

    points = merge_daily(holdings, series)

    assert [point.value for point in points] == pytest.approx([101, 132])


def test_daily_merge_drops_non_positive_totals_and_truncates() -> None:
    holdings = [Holding(ticker="AAA", shares=1)]
    start = date(2024, 1, 1)
    series = {"AAA": [DailyClose(date=start + timedelta(days=offset), close=offset) for offset in range(40)]}

    points = merge_daily(holdings, series, window=30)

    assert len(points) == 30
    assert points[-1].date == (start + timedelta(days=39)).isoformat()
    assert all(point.value > 0 for point in points)


def test_daily_merge_handles_missing_series() -> None:
    holdings = [Holding(ticker="AAA", shares=1), Holding(ticker="GONE", shares=5)]
    series = {"AAA": [DailyClose(date=D0, close=10)]}

    points = merge_daily(holdings, series)

    assert [point.value for point in points] == pytest.approx([10])
    assert merge_daily(holdings, {}) == []


def test_intraday_merge_falls_back_to_current_quote() -> None:
    t0 = datetime(2024, 3, 4, 14, 30, tzinfo=UTC)
    t1 = t0 + timedelta(minutes=1)
    holdings = [
        Holding(ticker="AAA", shares=1),
        Holding(ticker="FUNDX", shares=2),
        Holding(ticker="Cash", is_static=True, static_value=50),
    ]
    series = {
        "AAA": [IntradayClose(timestamp=t0, close=10), IntradayClose(timestamp=t1, close=11)],
        "FUNDX": [],
    }
    prices = {
        "AAA": Quote(ticker="AAA", current_price=11, previous_close=10),
        "FUNDX": Quote(ticker="FUNDX", current_price=100, previous_close=99),
    }

    points = merge_intraday(holdings, series, prices)

    assert [point.date for point in points] == [t0.isoformat(), t1.isoformat()]
    assert [point.value for point in points] == pytest.approx([260, 261])


def test_intraday_merge_forward_fills_before_fallback() -> None:
    t0 = datetime(2024, 3, 4, 14, 30, tzinfo=UTC)
    t1 = t0 + timedelta(minutes=1)
    t2 = t0 + timedelta(minutes=2)
    holdings = [Holding(ticker="AAA", shares=1), Holding(ticker="BBB", shares=1)]
    series = {
        "AAA": [
            IntradayClose(timestamp=t0, close=10),
            IntradayClose(timestamp=t1, close=10),
            IntradayClose(timestamp=t2, close=12),
        ],
        "BBB": [IntradayClose(timestamp=t1, close=5)],
    }
    prices = {"BBB": Quote(ticker="BBB", current_price=7, previous_close=5)}

    points = merge_intraday(holdings, series, prices)

    # t0 has no earlier BBB point, so the quote fills it; t2 forward-fills t1
    assert [point.value for point in points] == pytest.approx([17, 15, 17])


def test_intraday_merge_empty_without_points() -> None:
    holdings = [Holding(ticker="AAA", shares=1)]

    assert merge_intraday(holdings, {"AAA": []}, {}) == []


def test_benchmark_curve_rebases_last_window() -> None:
    start = date(2024, 1, 1)
    points = [DailyClose(date=start + timedelta(days=offset), close=100 + offset) for offset in range(35)]

    curve = benchmark_curve(points, window=30)

    assert len(curve) == 30
    assert curve[0].date == (start + timedelta(days=5)).isoformat()
    assert curve[0].percent_change == 0
    assert curve[-1].percent_change == pytest.approx((134 - 105) / 105 * 100)


def test_benchmark_curve_empty() -> None:
    assert benchmark_curve([]) == []
