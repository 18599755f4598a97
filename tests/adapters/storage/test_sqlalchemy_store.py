from __future__ import annotations

from datetime import UTC, date, datetime

from adapters.storage.sqlalchemy_store import SqlAlchemyPortfolioStore
from core.domain.market_data import Fundamentals, HistoricalPricePoint, PriceCacheEntry
from core.domain.portfolio import Holding
from core.domain.snapshot import BenchmarkPoint, HistoryPoint, MarketStatus, Snapshot, SnapshotHolding


def _store(tmp_path) -> SqlAlchemyPortfolioStore:
    return SqlAlchemyPortfolioStore(f"sqlite:///{tmp_path / 'nested' / 'snapshots.db'}")


def test_replace_and_list_holdings(tmp_path) -> None:
    store = _store(tmp_path)
    holdings = [
        Holding(ticker="AAPL", shares=10, cost_basis=1000, instrument_type="Common Stock"),
        Holding(ticker="Cash", is_static=True, static_value=500),
    ]

    store.replace_holdings("Family", holdings)
    store.replace_holdings("solo", [Holding(ticker="VTI", shares=1)])

    assert store.list_portfolio_ids() == ["family", "solo"]
    loaded = store.list_holdings("family")
    assert [item.ticker for item in loaded] == ["AAPL", "CASH"]
    assert loaded[0].cost_basis == 1000
    assert loaded[1].is_static and loaded[1].static_value == 500

    store.replace_holdings("family", [holdings[0]])
    assert [item.ticker for item in store.list_holdings("family")] == ["AAPL"]

    store.close()


def test_price_cache_upserts_by_ticker(tmp_path) -> None:
    store = _store(tmp_path)
    first = PriceCacheEntry(ticker="AAPL", current_price=150, previous_close=140, change_percent=7.1)
    second = PriceCacheEntry(ticker="AAPL", current_price=155, previous_close=150, change_percent=3.3)

    store.upsert_prices([first])
    store.upsert_prices([second])
    prices = store.get_prices(["aapl", "MSFT"])

    assert set(prices) == {"AAPL"}
    assert prices["AAPL"].current_price == 155
    assert prices["AAPL"].updated_at.tzinfo is not None

    store.close()


def test_daily_prices_upsert_on_conflict(tmp_path) -> None:
    store = _store(tmp_path)
    store.upsert_daily_prices(
        [
            HistoricalPricePoint(ticker="AAPL", date=date(2024, 3, 4), close=170),
            HistoricalPricePoint(ticker="AAPL", date=date(2024, 3, 5), close=171),
            HistoricalPricePoint(ticker="MSFT", date=date(2024, 3, 5), close=400),
        ]
    )
    store.upsert_daily_prices([HistoricalPricePoint(ticker="AAPL", date=date(2024, 3, 5), close=172)])

    points = store.list_daily_prices(["AAPL"], date(2024, 3, 5))

    assert [(point.date, point.close) for point in points] == [(date(2024, 3, 5), 172)]

    store.close()


def test_fundamentals_round_trip(tmp_path) -> None:
    store = _store(tmp_path)
    stamp = datetime(2024, 3, 6, 12, 0, tzinfo=UTC)
    store.upsert_fundamentals([Fundamentals(ticker="NVDA", forward_eps=3.4, week_52_high=974, updated_at=stamp)])

    loaded = store.get_fundamentals(["NVDA", "AMD"])

    assert set(loaded) == {"NVDA"}
    assert loaded["NVDA"].forward_eps == 3.4
    assert loaded["NVDA"].updated_at == stamp

    store.close()


def test_snapshot_upsert_replaces_whole_row(tmp_path) -> None:
    store = _store(tmp_path)
    stamp = datetime(2024, 3, 6, 15, 0, tzinfo=UTC)
    snapshot = Snapshot(
        portfolio_id="family",
        total_value=2000,
        day_change=100,
        day_change_percent=5.26,
        total_gain=500,
        total_gain_percent=50,
        holdings=[
            SnapshotHolding(
                ticker="AAPL", name="AAPL", shares=10, current_price=150, previous_close=140, value=1500, allocation=75
            )
        ],
        history_30d=[HistoryPoint(date="2024-03-05", value=1900)],
        history_1d=[HistoryPoint(date="2024-03-06T14:30:00+00:00", value=1950)],
        benchmark_30d=[BenchmarkPoint(date="2024-03-05", percent_change=0)],
        market_status=MarketStatus.OPEN,
        updated_at=stamp,
    )

    store.upsert_snapshot(snapshot)
    loaded = store.get_snapshot("FAMILY")

    assert loaded is not None
    assert loaded.total_gain == 500
    assert loaded.holdings[0].allocation == 75
    assert loaded.history_1d[0].value == 1950
    assert loaded.market_status == MarketStatus.OPEN
    assert loaded.updated_at == stamp

    store.upsert_snapshot(Snapshot.placeholder("family", message="boom", at=stamp))
    replaced = store.get_snapshot("family")
    assert replaced is not None
    assert replaced.holdings == []
    assert replaced.last_error == "boom"
    assert store.get_snapshot("missing") is None

    store.close()
