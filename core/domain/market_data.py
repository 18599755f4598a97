from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_mapping(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if isinstance(value, dict):
        return value
    if hasattr(value, "__dict__"):
        return dict(value.__dict__)
    return {}


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def change_percent(current_price: float, previous_close: float) -> float:
    if previous_close <= 0:
        return 0.0
    return (current_price - previous_close) / previous_close * 100


class Quote(BaseModel):
    """Normalized current-price quote for one ticker."""

    ticker: str
    current_price: float
    previous_close: float
    change_percent: float = 0.0
    as_of: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("ticker")
    @classmethod
    def _normalize_ticker(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("as_of", mode="before")
    @classmethod
    def _parse_as_of(cls, value: Any) -> datetime:
        return _parse_timestamp(value) or datetime.now(UTC)

    def to_cache_entry(self, *, updated_at: datetime | None = None) -> PriceCacheEntry:
        return PriceCacheEntry(
            ticker=self.ticker,
            current_price=self.current_price,
            previous_close=self.previous_close,
            change_percent=self.change_percent,
            updated_at=updated_at or datetime.now(UTC),
        )


class PriceCacheEntry(BaseModel):
    """Latest persisted quote for a ticker, shared by every portfolio holding it."""

    ticker: str
    current_price: float
    previous_close: float
    change_percent: float = 0.0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("ticker")
    @classmethod
    def _normalize_ticker(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("updated_at", mode="before")
    @classmethod
    def _parse_updated_at(cls, value: Any) -> datetime:
        return _parse_timestamp(value) or datetime.now(UTC)

    def to_quote(self) -> Quote:
        return Quote(
            ticker=self.ticker,
            current_price=self.current_price,
            previous_close=self.previous_close,
            change_percent=self.change_percent,
            as_of=self.updated_at,
            source="cache",
        )


class HistoricalPricePoint(BaseModel):
    """Stored daily close; one row per (ticker, date)."""

    ticker: str
    date: date
    close: float

    @field_validator("ticker")
    @classmethod
    def _normalize_ticker(cls, value: str) -> str:
        return value.strip().upper()


class DailyClose(BaseModel):
    date: date
    close: float


class IntradayClose(BaseModel):
    timestamp: datetime
    close: float

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp_field(cls, value: Any) -> datetime | None:
        return _parse_timestamp(value)


class Fundamentals(BaseModel):
    """Slow-moving company metrics cached alongside quotes."""

    ticker: str
    revenue: float | None = None
    earnings: float | None = None
    forward_eps: float | None = None
    week_52_high: float | None = None
    operating_margin: float | None = None
    revenue_growth_3y: float | None = None
    eps_growth_3y: float | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("ticker")
    @classmethod
    def _normalize_ticker(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("updated_at", mode="before")
    @classmethod
    def _parse_updated_at(cls, value: Any) -> datetime:
        return _parse_timestamp(value) or datetime.now(UTC)

    @classmethod
    def from_payload(cls, ticker: str, payload: Any) -> Fundamentals:
        raw = _to_mapping(payload)
        return cls(
            ticker=ticker,
            revenue=raw.get("revenue"),
            earnings=raw.get("earnings"),
            forward_eps=raw.get("forwardEPS"),
            week_52_high=raw.get("week52High"),
            operating_margin=raw.get("operatingMargin"),
            revenue_growth_3y=raw.get("revenueGrowth3Y"),
            eps_growth_3y=raw.get("epsGrowth3Y"),
        )


__all__ = [
    "DailyClose",
    "Fundamentals",
    "HistoricalPricePoint",
    "IntradayClose",
    "PriceCacheEntry",
    "Quote",
    "change_percent",
]
