from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine, delete, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from adapters.storage.models import (
    Base,
    DailyPriceRecord,
    FundamentalsRecord,
    HoldingRecord,
    PortfolioRecord,
    PriceCacheRecord,
    SnapshotRecord,
)
from core.domain.market_data import Fundamentals, HistoricalPricePoint, PriceCacheEntry
from core.domain.portfolio import Holding
from core.domain.snapshot import BenchmarkPoint, HistoryPoint, MarketStatus, Snapshot, SnapshotHolding

logger = logging.getLogger(__name__)


class SqlAlchemyPortfolioStore:
    def __init__(self, database_url: str, *, create_tables: bool = True) -> None:
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self._engine: Engine = create_engine(database_url, connect_args=connect_args, future=True)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(self._engine)

    def list_portfolio_ids(self) -> list[str]:
        with self._session_factory() as session:
            declared = set(session.execute(select(PortfolioRecord.id)).scalars())
            declared.update(session.execute(select(HoldingRecord.portfolio_id).distinct()).scalars())
        return sorted(declared)

    def list_holdings(self, portfolio_id: str) -> list[Holding]:
        with self._session_factory() as session:
            records = session.execute(
                select(HoldingRecord)
                .where(HoldingRecord.portfolio_id == portfolio_id.lower())
                .order_by(HoldingRecord.id)
            ).scalars()
            return [self._record_to_holding(record) for record in records]

    def replace_holdings(self, portfolio_id: str, holdings: Sequence[Holding]) -> None:
        portfolio_id = portfolio_id.lower()
        with self._session_factory() as session:
            if session.get(PortfolioRecord, portfolio_id) is None:
                session.add(PortfolioRecord(id=portfolio_id))
            self._replace_holdings(session, portfolio_id, holdings)
            session.commit()
        logger.info("Stored %d holdings for portfolio %s", len(holdings), portfolio_id)

    def upsert_prices(self, entries: Sequence[PriceCacheEntry]) -> None:
        if not entries:
            return
        with self._session_factory() as session:
            for entry in entries:
                session.merge(
                    PriceCacheRecord(
                        ticker=entry.ticker,
                        current_price=entry.current_price,
                        previous_close=entry.previous_close,
                        change_percent=entry.change_percent,
                        updated_at=entry.updated_at,
                    )
                )
            session.commit()
        logger.debug("Upserted %d price cache rows", len(entries))

    def get_prices(self, tickers: Iterable[str]) -> dict[str, PriceCacheEntry]:
        wanted = sorted({ticker.upper() for ticker in tickers})
        if not wanted:
            return {}
        with self._session_factory() as session:
            records = session.execute(select(PriceCacheRecord).where(PriceCacheRecord.ticker.in_(wanted))).scalars()
            return {
                record.ticker: PriceCacheEntry(
                    ticker=record.ticker,
                    current_price=record.current_price,
                    previous_close=record.previous_close,
                    change_percent=record.change_percent,
                    updated_at=record.updated_at,
                )
                for record in records
            }

    def list_daily_prices(self, tickers: Iterable[str], since: date) -> list[HistoricalPricePoint]:
        wanted = sorted({ticker.upper() for ticker in tickers})
        if not wanted:
            return []
        with self._session_factory() as session:
            records = session.execute(
                select(DailyPriceRecord)
                .where(DailyPriceRecord.ticker.in_(wanted), DailyPriceRecord.date >= since)
                .order_by(DailyPriceRecord.ticker, DailyPriceRecord.date)
            ).scalars()
            return [
                HistoricalPricePoint(ticker=record.ticker, date=record.date, close=record.close_price)
                for record in records
            ]

    def upsert_daily_prices(self, points: Sequence[HistoricalPricePoint]) -> None:
        if not points:
            return
        with self._session_factory() as session:
            for point in points:
                session.merge(DailyPriceRecord(ticker=point.ticker, date=point.date, close_price=point.close))
            session.commit()
        logger.debug("Upserted %d daily price rows", len(points))

    def get_fundamentals(self, tickers: Iterable[str]) -> dict[str, Fundamentals]:
        wanted = sorted({ticker.upper() for ticker in tickers})
        if not wanted:
            return {}
        with self._session_factory() as session:
            records = session.execute(
                select(FundamentalsRecord).where(FundamentalsRecord.ticker.in_(wanted))
            ).scalars()
            return {
                record.ticker: Fundamentals(
                    ticker=record.ticker,
                    revenue=record.revenue,
                    earnings=record.earnings,
                    forward_eps=record.forward_eps,
                    week_52_high=record.week_52_high,
                    operating_margin=record.operating_margin,
                    revenue_growth_3y=record.revenue_growth_3y,
                    eps_growth_3y=record.eps_growth_3y,
                    updated_at=record.updated_at,
                )
                for record in records
            }

    def upsert_fundamentals(self, entries: Sequence[Fundamentals]) -> None:
        if not entries:
            return
        with self._session_factory() as session:
            for entry in entries:
                session.merge(
                    FundamentalsRecord(
                        ticker=entry.ticker,
                        revenue=entry.revenue,
                        earnings=entry.earnings,
                        forward_eps=entry.forward_eps,
                        week_52_high=entry.week_52_high,
                        operating_margin=entry.operating_margin,
                        revenue_growth_3y=entry.revenue_growth_3y,
                        eps_growth_3y=entry.eps_growth_3y,
                        updated_at=entry.updated_at,
                    )
                )
            session.commit()

    def get_snapshot(self, portfolio_id: str) -> Snapshot | None:
        with self._session_factory() as session:
            record = session.get(SnapshotRecord, portfolio_id.lower())
            if record is None:
                return None
            return self._record_to_snapshot(record)

    def upsert_snapshot(self, snapshot: Snapshot) -> None:
        with self._session_factory() as session:
            session.merge(self._snapshot_to_record(snapshot))
            session.commit()
        logger.info("Stored snapshot for portfolio %s", snapshot.portfolio_id)

    def close(self) -> None:
        self._engine.dispose()

    def _replace_holdings(self, session: Session, portfolio_id: str, holdings: Sequence[Holding]) -> None:
        session.execute(delete(HoldingRecord).where(HoldingRecord.portfolio_id == portfolio_id))
        for holding in holdings:
            session.add(self._holding_to_record(portfolio_id, holding))

    @staticmethod
    def _holding_to_record(portfolio_id: str, holding: Holding) -> HoldingRecord:
        return HoldingRecord(
            portfolio_id=portfolio_id,
            ticker=holding.ticker,
            name=holding.name,
            shares=holding.shares,
            is_static=holding.is_static,
            static_value=holding.static_value,
            cost_basis=holding.cost_basis,
            instrument_type=holding.instrument_type,
        )

    @staticmethod
    def _record_to_holding(record: HoldingRecord) -> Holding:
        return Holding(
            ticker=record.ticker,
            name=record.name,
            shares=record.shares or 0.0,
            is_static=bool(record.is_static),
            static_value=record.static_value,
            cost_basis=record.cost_basis,
            instrument_type=record.instrument_type,
        )

    @staticmethod
    def _snapshot_to_record(snapshot: Snapshot) -> SnapshotRecord:
        return SnapshotRecord(
            portfolio_id=snapshot.portfolio_id,
            total_value=snapshot.total_value,
            day_change=snapshot.day_change,
            day_change_percent=snapshot.day_change_percent,
            total_gain=snapshot.total_gain,
            total_gain_percent=snapshot.total_gain_percent,
            holdings_json=[item.model_dump() for item in snapshot.holdings],
            history_30d_json=[point.model_dump() for point in snapshot.history_30d],
            history_1d_json=[point.model_dump() for point in snapshot.history_1d],
            benchmark_30d_json=[point.model_dump() for point in snapshot.benchmark_30d],
            market_status=snapshot.market_status.value,
            updated_at=snapshot.updated_at,
            last_error=snapshot.last_error,
            last_error_at=snapshot.last_error_at,
        )

    @staticmethod
    def _record_to_snapshot(record: SnapshotRecord) -> Snapshot:
        return Snapshot(
            portfolio_id=record.portfolio_id,
            total_value=record.total_value,
            day_change=record.day_change,
            day_change_percent=record.day_change_percent,
            total_gain=record.total_gain,
            total_gain_percent=record.total_gain_percent,
            holdings=[SnapshotHolding.model_validate(item) for item in record.holdings_json or []],
            history_30d=[HistoryPoint.model_validate(item) for item in record.history_30d_json or []],
            history_1d=[HistoryPoint.model_validate(item) for item in record.history_1d_json or []],
            benchmark_30d=[BenchmarkPoint.model_validate(item) for item in record.benchmark_30d_json or []],
            market_status=MarketStatus(record.market_status or MarketStatus.UNKNOWN.value),
            updated_at=record.updated_at,
            last_error=record.last_error,
            last_error_at=record.last_error_at,
        )
