from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class InstrumentKind(str, Enum):
    STATIC = "static"
    EQUITY = "equity"
    ETF = "etf"
    MUTUAL_FUND = "mutual_fund"


class Holding(BaseModel):
    """One line of a user-declared portfolio: a priced ticker or a fixed dollar value."""

    ticker: str
    name: str | None = None
    shares: float = 0.0
    is_static: bool = False
    static_value: float | None = None
    cost_basis: float | None = None
    instrument_type: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("ticker")
    @classmethod
    def _normalize_ticker(cls, value: str) -> str:
        ticker = value.strip().upper()
        if not ticker:
            raise ValueError("ticker is required")
        return ticker

    @model_validator(mode="after")
    def _check_static_value(self) -> Holding:
        if self.is_static and self.static_value is None:
            self.static_value = 0.0
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.ticker


class Portfolio(BaseModel):
    portfolio_id: str = Field(validation_alias=AliasChoices("portfolio_id", "id"))
    display_name: str | None = None
    holdings: list[Holding] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("portfolio_id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        return value.strip().lower()


def tradeable_tickers(holdings: list[Holding]) -> list[str]:
    seen: set[str] = set()
    tickers: list[str] = []
    for holding in holdings:
        if holding.is_static or holding.ticker in seen:
            continue
        seen.add(holding.ticker)
        tickers.append(holding.ticker)
    return tickers


__all__ = ["Holding", "InstrumentKind", "Portfolio", "tradeable_tickers"]
