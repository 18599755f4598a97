"""Turn holdings plus a price snapshot into per-holding and aggregate metrics."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from core.domain.market_data import Fundamentals, PriceCacheEntry, Quote
from core.domain.portfolio import Holding
from core.domain.snapshot import SnapshotHolding

logger = logging.getLogger(__name__)

PriceLike = Quote | PriceCacheEntry


@dataclass(slots=True)
class Valuation:
    holdings: list[SnapshotHolding] = field(default_factory=list)
    total_value: float = 0.0
    total_day_change: float = 0.0
    total_gain: float | None = None
    total_gain_percent: float | None = None

    @property
    def total_day_change_percent(self) -> float:
        return day_change_percent(self.total_day_change, self.total_value - self.total_day_change)


def day_change_percent(change: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return change / baseline * 100


def _profit_loss(value: float, cost_basis: float | None) -> tuple[float | None, float | None]:
    if cost_basis is None:
        return None, None
    profit_loss = value - cost_basis
    if cost_basis <= 0:
        return profit_loss, None
    return profit_loss, profit_loss / cost_basis * 100


def _forward_pe(price: float, fundamentals: Fundamentals | None) -> float | None:
    if fundamentals is None or not fundamentals.forward_eps or fundamentals.forward_eps <= 0 or price <= 0:
        return None
    return price / fundamentals.forward_eps


def _pct_to_high(price: float, fundamentals: Fundamentals | None) -> float | None:
    if fundamentals is None or not fundamentals.week_52_high or fundamentals.week_52_high <= 0 or price <= 0:
        return None
    return (fundamentals.week_52_high - price) / price * 100


def _value_static(holding: Holding) -> SnapshotHolding:
    value = holding.static_value or 0.0
    profit_loss, profit_loss_percent = _profit_loss(value, holding.cost_basis)
    return SnapshotHolding(
        ticker=holding.ticker,
        name=holding.display_name,
        shares=holding.shares,
        current_price=value,
        previous_close=value,
        value=value,
        day_change=0.0,
        day_change_percent=0.0,
        is_static=True,
        instrument_type=holding.instrument_type or "Other",
        cost_basis=holding.cost_basis,
        profit_loss=profit_loss,
        profit_loss_percent=profit_loss_percent,
    )


def _value_tradeable(holding: Holding, price: PriceLike, fundamentals: Fundamentals | None) -> SnapshotHolding:
    value = holding.shares * price.current_price
    previous_value = holding.shares * price.previous_close
    change = value - previous_value
    profit_loss, profit_loss_percent = _profit_loss(value, holding.cost_basis)
    return SnapshotHolding(
        ticker=holding.ticker,
        name=holding.display_name,
        shares=holding.shares,
        current_price=price.current_price,
        previous_close=price.previous_close,
        value=value,
        day_change=change,
        day_change_percent=day_change_percent(change, previous_value),
        is_static=False,
        instrument_type=holding.instrument_type or "Other",
        cost_basis=holding.cost_basis,
        profit_loss=profit_loss,
        profit_loss_percent=profit_loss_percent,
        revenue=fundamentals.revenue if fundamentals else None,
        earnings=fundamentals.earnings if fundamentals else None,
        forward_pe=_forward_pe(price.current_price, fundamentals),
        pct_to_52_week_high=_pct_to_high(price.current_price, fundamentals),
        operating_margin=fundamentals.operating_margin if fundamentals else None,
        revenue_growth_3y=fundamentals.revenue_growth_3y if fundamentals else None,
        eps_growth_3y=fundamentals.eps_growth_3y if fundamentals else None,
    )


def compute_holdings(
    holdings: Sequence[Holding],
    prices: Mapping[str, PriceLike],
    fundamentals: Mapping[str, Fundamentals] | None = None,
) -> Valuation:
    """Value every holding that has a price.

    Tradeable holdings without a price are left out entirely so that a missing
    quote cannot skew allocations. Gain totals only consider holdings that
    carry a cost basis and are ``None`` when none does.
    """
    fundamentals = fundamentals or {}
    valued: list[SnapshotHolding] = []
    total_value = 0.0
    total_day_change = 0.0
    cost_basis_total = 0.0
    value_with_cost_basis = 0.0
    has_cost_basis = False

    for holding in holdings:
        if holding.is_static:
            item = _value_static(holding)
        else:
            price = prices.get(holding.ticker)
            if price is None:
                logger.warning("No price data for %s; excluded from valuation", holding.ticker)
                continue
            item = _value_tradeable(holding, price, fundamentals.get(holding.ticker))

        valued.append(item)
        total_value += item.value
        total_day_change += item.day_change
        if holding.cost_basis is not None:
            has_cost_basis = True
            cost_basis_total += holding.cost_basis
            value_with_cost_basis += item.value

    for item in valued:
        item.allocation = item.value / total_value * 100 if total_value > 0 else 0.0
    valued.sort(key=lambda item: item.value, reverse=True)

    total_gain: float | None = None
    total_gain_percent: float | None = None
    if has_cost_basis:
        total_gain = value_with_cost_basis - cost_basis_total
        total_gain_percent = total_gain / cost_basis_total * 100 if cost_basis_total > 0 else None

    return Valuation(
        holdings=valued,
        total_value=total_value,
        total_day_change=total_day_change,
        total_gain=total_gain,
        total_gain_percent=total_gain_percent,
    )


__all__ = ["Valuation", "compute_holdings", "day_change_percent"]
