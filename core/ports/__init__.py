"""Port interfaces for adapters."""

from core.ports.portfolio_store import PortfolioStore
from core.ports.quotes import FundamentalsProvider, HistoryProvider, QuoteProvider
from core.ports.snapshot_cache import SnapshotFastCache

__all__ = ["FundamentalsProvider", "HistoryProvider", "PortfolioStore", "QuoteProvider", "SnapshotFastCache"]
