from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import httpx
import pytest

from adapters.market_data.yahoo import YahooChartProvider
from core.errors import ProviderError


def _chart(timestamps: list[int], closes: list[float | None], meta: dict | None = None) -> dict:
    return {
        "chart": {
            "result": [
                {
                    "meta": meta or {},
                    "timestamp": timestamps,
                    "indicators": {"quote": [{"close": closes}]},
                }
            ]
        }
    }


def _provider(handler) -> YahooChartProvider:
    return YahooChartProvider(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_quote_uses_chart_meta() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/SPY"):
            return httpx.Response(
                200,
                json=_chart([], [], meta={"regularMarketPrice": 510.0, "chartPreviousClose": 500.0}),
            )
        return httpx.Response(404, json={"chart": {"result": None}})

    quotes = asyncio.run(_provider(handler).get_quotes(["SPY", "NOPE"]))

    assert set(quotes) == {"SPY"}
    assert quotes["SPY"].change_percent == pytest.approx(2.0)
    assert quotes["SPY"].source == "yahoo"


def test_daily_closes_keyed_by_utc_date_and_skip_nulls() -> None:
    day1 = int(datetime(2024, 3, 4, 14, 30, tzinfo=UTC).timestamp())
    day2 = int(datetime(2024, 3, 5, 14, 30, tzinfo=UTC).timestamp())
    day3 = int(datetime(2024, 3, 6, 14, 30, tzinfo=UTC).timestamp())

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["interval"] == "1d"
        assert int(request.url.params["period1"]) == int(datetime(2024, 3, 4, tzinfo=UTC).timestamp())
        assert int(request.url.params["period2"]) == int(datetime(2024, 3, 7, tzinfo=UTC).timestamp())
        return httpx.Response(200, json=_chart([day1, day2, day3], [170.0, None, 172.0]))

    closes = asyncio.run(_provider(handler).get_daily("AAPL", date(2024, 3, 4), date(2024, 3, 6)))

    assert [(point.date, point.close) for point in closes] == [
        (date(2024, 3, 4), 170.0),
        (date(2024, 3, 6), 172.0),
    ]


def test_intraday_closes_are_timestamped() -> None:
    stamp = int(datetime(2024, 3, 6, 14, 31, tzinfo=UTC).timestamp())

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["interval"] == "1m"
        return httpx.Response(200, json=_chart([stamp], [150.25]))

    start = datetime(2024, 3, 6, 5, 0, tzinfo=UTC)
    end = datetime(2024, 3, 6, 15, 0, tzinfo=UTC)
    closes = asyncio.run(_provider(handler).get_intraday("AAPL", start, end))

    assert closes[0].timestamp == datetime(2024, 3, 6, 14, 31, tzinfo=UTC)
    assert closes[0].close == 150.25


def test_history_failure_raises_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(ProviderError):
        asyncio.run(_provider(handler).get_daily("AAPL", date(2024, 3, 4), date(2024, 3, 6)))
