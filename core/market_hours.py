from __future__ import annotations

from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo

from core.domain.snapshot import MarketStatus

DEFAULT_MARKET_TIMEZONE = "America/New_York"

PRE_MARKET_OPEN = time(4, 0)
MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)
AFTER_HOURS_CLOSE = time(20, 0)


def _local_now(now: datetime | None, timezone: str) -> datetime:
    current = now or datetime.now(UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return current.astimezone(ZoneInfo(timezone))


def get_market_status(now: datetime | None = None, *, timezone: str = DEFAULT_MARKET_TIMEZONE) -> MarketStatus:
    """US equity session for the given instant; holidays are treated as trading days."""
    local = _local_now(now, timezone)
    if local.weekday() >= 5:
        return MarketStatus.CLOSED
    clock = local.time()
    if MARKET_OPEN <= clock < MARKET_CLOSE:
        return MarketStatus.OPEN
    if PRE_MARKET_OPEN <= clock < MARKET_OPEN:
        return MarketStatus.PRE_MARKET
    if MARKET_CLOSE <= clock < AFTER_HOURS_CLOSE:
        return MarketStatus.AFTER_HOURS
    return MarketStatus.CLOSED


def start_of_trading_day(now: datetime | None = None, *, timezone: str = DEFAULT_MARKET_TIMEZONE) -> datetime:
    """Midnight in the market timezone for the current exchange-local date, as UTC."""
    local = _local_now(now, timezone)
    midnight = datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)
    return midnight.astimezone(UTC)


__all__ = ["get_market_status", "start_of_trading_day"]
