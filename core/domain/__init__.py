"""Domain models."""

from core.domain.market_data import (
    DailyClose,
    Fundamentals,
    HistoricalPricePoint,
    IntradayClose,
    PriceCacheEntry,
    Quote,
)
from core.domain.portfolio import Holding, InstrumentKind, Portfolio
from core.domain.snapshot import (
    BenchmarkPoint,
    HistoryPoint,
    MarketStatus,
    Snapshot,
    SnapshotHolding,
    SnapshotView,
)

__all__ = [
    "BenchmarkPoint",
    "DailyClose",
    "Fundamentals",
    "HistoricalPricePoint",
    "HistoryPoint",
    "Holding",
    "InstrumentKind",
    "IntradayClose",
    "MarketStatus",
    "Portfolio",
    "PriceCacheEntry",
    "Quote",
    "Snapshot",
    "SnapshotHolding",
    "SnapshotView",
]
