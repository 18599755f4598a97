from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

from apps.refresher.history import HistoricalReconstructor, needs_refetch
from core.domain.market_data import DailyClose, IntradayClose
from core.errors import ProviderError


class FakeHistoryProvider:
    def __init__(self, name: str, daily: dict[str, list[DailyClose]] | None = None, *, error: bool = False) -> None:
        self.name = name
        self._daily = daily or {}
        self._error = error
        self.daily_calls: list[str] = []
        self.intraday: dict[str, list[IntradayClose]] = {}

    async def get_daily(self, ticker: str, start: date, end: date) -> list[DailyClose]:
        self.daily_calls.append(ticker)
        if self._error:
            raise ProviderError(self.name, "down")
        return list(self._daily.get(ticker, []))

    async def get_intraday(self, ticker: str, start: datetime, end: datetime) -> list[IntradayClose]:
        if self._error:
            raise ProviderError(self.name, "down")
        return list(self.intraday.get(ticker, []))


def test_needs_refetch_trusts_yesterday() -> None:
    today = date(2024, 3, 6)

    assert needs_refetch([], today)
    assert not needs_refetch([DailyClose(date=date(2024, 3, 5), close=1)], today)
    assert needs_refetch([DailyClose(date=date(2024, 3, 4), close=1)], today)


def test_stored_history_through_yesterday_skips_provider(memory_store) -> None:
    memory_store.daily[("AAPL", date(2024, 3, 4))] = 170.0
    memory_store.daily[("AAPL", date(2024, 3, 5))] = 171.0
    provider = FakeHistoryProvider("yahoo")
    history = HistoricalReconstructor(memory_store, daily_providers=[provider])

    series = asyncio.run(
        history.get_daily_series("AAPL", date(2024, 2, 5), date(2024, 3, 6), today=date(2024, 3, 6))
    )

    assert provider.daily_calls == []
    assert [point.close for point in series] == [170.0, 171.0]


def test_missing_history_is_fetched_and_stored(memory_store) -> None:
    failing = FakeHistoryProvider("fmp", error=True)
    provider = FakeHistoryProvider(
        "yahoo",
        {
            "MSFT": [
                DailyClose(date=date(2024, 3, 4), close=400.0),
                DailyClose(date=date(2024, 3, 5), close=0.0),
                DailyClose(date=date(2024, 3, 6), close=405.0),
            ]
        },
    )
    history = HistoricalReconstructor(memory_store, daily_providers=[failing, provider])

    series = asyncio.run(history.get_daily_series_many(["msft"], date(2024, 3, 1), date(2024, 3, 6)))

    assert failing.daily_calls == ["MSFT"]
    assert [point.date for point in series["MSFT"]] == [date(2024, 3, 4), date(2024, 3, 6)]
    assert memory_store.daily == {("MSFT", date(2024, 3, 4)): 400.0, ("MSFT", date(2024, 3, 6)): 405.0}


def test_stale_store_is_merged_with_new_dates(memory_store) -> None:
    memory_store.daily[("VTI", date(2024, 3, 1))] = 240.0
    provider = FakeHistoryProvider(
        "yahoo",
        {"VTI": [DailyClose(date=date(2024, 3, 1), close=999.0), DailyClose(date=date(2024, 3, 5), close=245.0)]},
    )
    history = HistoricalReconstructor(memory_store, daily_providers=[provider])

    series = asyncio.run(history.get_daily_series("VTI", date(2024, 2, 28), date(2024, 3, 6)))

    assert [(point.date, point.close) for point in series] == [
        (date(2024, 3, 1), 240.0),
        (date(2024, 3, 5), 245.0),
    ]


def test_intraday_is_filtered_and_failures_are_empty(memory_store) -> None:
    start = datetime(2024, 3, 6, 5, 0, tzinfo=UTC)
    now = datetime(2024, 3, 6, 15, 0, tzinfo=UTC)
    provider = FakeHistoryProvider("yahoo")
    provider.intraday["AAPL"] = [
        IntradayClose(timestamp=datetime(2024, 3, 6, 15, 30, tzinfo=UTC), close=152.0),
        IntradayClose(timestamp=datetime(2024, 3, 6, 14, 31, tzinfo=UTC), close=151.0),
        IntradayClose(timestamp=datetime(2024, 3, 6, 14, 30, tzinfo=UTC), close=150.0),
    ]
    history = HistoricalReconstructor(memory_store, daily_providers=[], intraday_provider=provider)
    broken = HistoricalReconstructor(
        memory_store, daily_providers=[], intraday_provider=FakeHistoryProvider("yahoo", error=True)
    )

    series = asyncio.run(history.get_intraday_series_many(["AAPL", "MSFT"], start, now))

    assert [point.close for point in series["AAPL"]] == [150.0, 151.0]
    assert series["MSFT"] == []
    assert asyncio.run(broken.get_intraday_series("AAPL", start, now)) == []
