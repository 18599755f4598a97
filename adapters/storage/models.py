from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class PortfolioRecord(Base):
    __tablename__ = "portfolios"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class HoldingRecord(Base):
    __tablename__ = "holdings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    portfolio_id: Mapped[str] = mapped_column(String(64), index=True)
    ticker: Mapped[str] = mapped_column(String(64))
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    shares: Mapped[float] = mapped_column(Float, default=0.0)
    is_static: Mapped[bool] = mapped_column(Boolean, default=False)
    static_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    cost_basis: Mapped[float | None] = mapped_column(Float, nullable=True)
    instrument_type: Mapped[str | None] = mapped_column(String(32), nullable=True)


class PriceCacheRecord(Base):
    __tablename__ = "price_cache"

    ticker: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_price: Mapped[float] = mapped_column(Float)
    previous_close: Mapped[float] = mapped_column(Float)
    change_percent: Mapped[float] = mapped_column(Float, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class DailyPriceRecord(Base):
    __tablename__ = "daily_prices"

    ticker: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[date] = mapped_column(Date, primary_key=True)
    close_price: Mapped[float] = mapped_column(Float)


class FundamentalsRecord(Base):
    __tablename__ = "fundamentals_cache"

    ticker: Mapped[str] = mapped_column(String(64), primary_key=True)
    revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    earnings: Mapped[float | None] = mapped_column(Float, nullable=True)
    forward_eps: Mapped[float | None] = mapped_column(Float, nullable=True)
    week_52_high: Mapped[float | None] = mapped_column(Float, nullable=True)
    operating_margin: Mapped[float | None] = mapped_column(Float, nullable=True)
    revenue_growth_3y: Mapped[float | None] = mapped_column(Float, nullable=True)
    eps_growth_3y: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class SnapshotRecord(Base):
    __tablename__ = "portfolio_snapshots"

    portfolio_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_value: Mapped[float] = mapped_column(Float, default=0.0)
    day_change: Mapped[float] = mapped_column(Float, default=0.0)
    day_change_percent: Mapped[float] = mapped_column(Float, default=0.0)
    total_gain: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_gain_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    holdings_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    history_30d_json: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    history_1d_json: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    benchmark_30d_json: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    market_status: Mapped[str] = mapped_column(String(16), default="unknown")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
