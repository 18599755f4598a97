"""portfolio, price cache, history and snapshot tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "portfolios",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "holdings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("portfolio_id", sa.String(length=64), nullable=False),
        sa.Column("ticker", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=True),
        sa.Column("shares", sa.Float(), nullable=False),
        sa.Column("is_static", sa.Boolean(), nullable=False),
        sa.Column("static_value", sa.Float(), nullable=True),
        sa.Column("cost_basis", sa.Float(), nullable=True),
        sa.Column("instrument_type", sa.String(length=32), nullable=True),
    )
    op.create_index("ix_holdings_portfolio_id", "holdings", ["portfolio_id"])
    op.create_table(
        "price_cache",
        sa.Column("ticker", sa.String(length=64), primary_key=True),
        sa.Column("current_price", sa.Float(), nullable=False),
        sa.Column("previous_close", sa.Float(), nullable=False),
        sa.Column("change_percent", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "daily_prices",
        sa.Column("ticker", sa.String(length=64), primary_key=True),
        sa.Column("date", sa.Date(), primary_key=True),
        sa.Column("close_price", sa.Float(), nullable=False),
    )
    op.create_table(
        "fundamentals_cache",
        sa.Column("ticker", sa.String(length=64), primary_key=True),
        sa.Column("revenue", sa.Float(), nullable=True),
        sa.Column("earnings", sa.Float(), nullable=True),
        sa.Column("forward_eps", sa.Float(), nullable=True),
        sa.Column("week_52_high", sa.Float(), nullable=True),
        sa.Column("operating_margin", sa.Float(), nullable=True),
        sa.Column("revenue_growth_3y", sa.Float(), nullable=True),
        sa.Column("eps_growth_3y", sa.Float(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "portfolio_snapshots",
        sa.Column("portfolio_id", sa.String(length=64), primary_key=True),
        sa.Column("total_value", sa.Float(), nullable=False),
        sa.Column("day_change", sa.Float(), nullable=False),
        sa.Column("day_change_percent", sa.Float(), nullable=False),
        sa.Column("total_gain", sa.Float(), nullable=True),
        sa.Column("total_gain_percent", sa.Float(), nullable=True),
        sa.Column("holdings_json", sa.JSON(), nullable=False),
        sa.Column("history_30d_json", sa.JSON(), nullable=True),
        sa.Column("history_1d_json", sa.JSON(), nullable=True),
        sa.Column("benchmark_30d_json", sa.JSON(), nullable=True),
        sa.Column("market_status", sa.String(length=16), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_error_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("portfolio_snapshots")
    op.drop_table("fundamentals_cache")
    op.drop_table("daily_prices")
    op.drop_table("price_cache")
    op.drop_index("ix_holdings_portfolio_id", table_name="holdings")
    op.drop_table("holdings")
    op.drop_table("portfolios")
