from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MarketStatus(str, Enum):
    OPEN = "open"
    PRE_MARKET = "pre-market"
    AFTER_HOURS = "after-hours"
    CLOSED = "closed"
    UNKNOWN = "unknown"


class SnapshotHolding(BaseModel):
    """Valued holding as presented to readers."""

    ticker: str
    name: str
    shares: float
    current_price: float
    previous_close: float
    value: float
    allocation: float = 0.0
    day_change: float = 0.0
    day_change_percent: float = 0.0
    is_static: bool = False
    instrument_type: str = "Other"
    cost_basis: float | None = None
    profit_loss: float | None = None
    profit_loss_percent: float | None = None
    revenue: float | None = None
    earnings: float | None = None
    forward_pe: float | None = None
    pct_to_52_week_high: float | None = None
    operating_margin: float | None = None
    revenue_growth_3y: float | None = None
    eps_growth_3y: float | None = None


class HistoryPoint(BaseModel):
    date: str
    value: float


class BenchmarkPoint(BaseModel):
    date: str
    percent_change: float


class Snapshot(BaseModel):
    """The single, fully replaced valuation artifact for one portfolio."""

    portfolio_id: str
    total_value: float = 0.0
    day_change: float = 0.0
    day_change_percent: float = 0.0
    total_gain: float | None = None
    total_gain_percent: float | None = None
    holdings: list[SnapshotHolding] = Field(default_factory=list)
    history_30d: list[HistoryPoint] = Field(default_factory=list)
    history_1d: list[HistoryPoint] = Field(default_factory=list)
    benchmark_30d: list[BenchmarkPoint] = Field(default_factory=list)
    market_status: MarketStatus = MarketStatus.UNKNOWN
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_error: str | None = None
    last_error_at: datetime | None = None

    model_config = ConfigDict(use_enum_values=False)

    @field_validator("portfolio_id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("updated_at", "last_error_at", mode="before")
    @classmethod
    def _ensure_aware(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @classmethod
    def placeholder(cls, portfolio_id: str, *, message: str, at: datetime) -> Snapshot:
        """Zero-valued snapshot recording a failure for a portfolio never computed."""
        return cls(
            portfolio_id=portfolio_id,
            market_status=MarketStatus.UNKNOWN,
            updated_at=at,
            last_error=message,
            last_error_at=at,
        )

    @property
    def has_error(self) -> bool:
        return self.last_error is not None


class SnapshotView(BaseModel):
    """Snapshot plus the read-time staleness verdict."""

    snapshot: Snapshot
    is_stale: bool
    age_seconds: float
    source: str = "cache"


__all__ = [
    "BenchmarkPoint",
    "HistoryPoint",
    "MarketStatus",
    "Snapshot",
    "SnapshotHolding",
    "SnapshotView",
]
