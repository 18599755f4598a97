from __future__ import annotations


class SnapshotError(Exception):
    """Base class for valuation and refresh failures."""


class NoDataError(SnapshotError):
    """No provider returned a quote or history for the ticker."""

    def __init__(self, ticker: str, message: str | None = None) -> None:
        self.ticker = ticker
        super().__init__(message or f"No data available for {ticker}")


class ProviderError(SnapshotError):
    """A provider call failed or returned a payload we could not parse."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class PortfolioComputeError(SnapshotError):
    def __init__(self, portfolio_id: str, message: str) -> None:
        self.portfolio_id = portfolio_id
        super().__init__(f"Failed to compute snapshot for {portfolio_id}: {message}")


class RunFailure(SnapshotError):
    """The refresh run could not start; nothing was written."""


class UnknownPortfolioError(RunFailure):
    def __init__(self, portfolio_id: str) -> None:
        self.portfolio_id = portfolio_id
        super().__init__(f"Unknown portfolio {portfolio_id}")


__all__ = [
    "NoDataError",
    "PortfolioComputeError",
    "ProviderError",
    "RunFailure",
    "SnapshotError",
    "UnknownPortfolioError",
]
