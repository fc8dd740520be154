"""Initial catalogue, price history, sync log and price alert schema.

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18

Creates every table the sync pipeline reads and writes. ``users`` only
carries the columns alert delivery needs; the web application owns the rest.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""
    # ==========================================================================
    # CATALOGUE
    # ==========================================================================

    op.create_table(
        "investment_options",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("symbol", sa.String(64)),
        sa.Column("unit_price", sa.Numeric(18, 4)),
        sa.Column("min_lump_sum", sa.Numeric(14, 2)),
        sa.Column("min_sip", sa.Numeric(14, 2)),
        sa.Column("subtype_mf", sa.String(20)),
        sa.Column("subtype_etf", sa.String(20)),
        sa.Column("market_cap", sa.String(10)),
        sa.Column("pe_ratio", sa.Numeric(12, 4)),
        sa.Column("beta", sa.Numeric(8, 4)),
        sa.Column("market_cap_value", sa.Numeric(24, 2)),
        sa.Column("risk_level", sa.String(10)),
        sa.Column("risk_reason", sa.String(200)),
        sa.Column("price_hash", sa.String(64)),
        sa.Column("nav_hash", sa.String(64)),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_investment_options_symbol", "investment_options", ["symbol"])
    op.create_index(
        "idx_investment_options_category_symbol", "investment_options", ["category", "symbol"]
    )
    op.create_index(
        "idx_investment_options_active",
        "investment_options",
        ["active"],
        postgresql_where=sa.text("active = TRUE"),
    )

    op.create_table(
        "historical_prices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("symbol", sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("close", sa.Numeric(18, 4), nullable=False),
        sa.Column("source", sa.String(20)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("symbol", "date", name="uq_historical_prices_symbol_date"),
    )
    op.create_index(
        "idx_historical_prices_date",
        "historical_prices",
        ["date"],
        postgresql_ops={"date": "DESC"},
    )

    # ==========================================================================
    # JOBS
    # ==========================================================================

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_id", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        sa.Column("processed", sa.Integer(), server_default=sa.text("0")),
        sa.Column("updated", sa.Integer(), server_default=sa.text("0")),
        sa.Column("skipped", sa.Integer(), server_default=sa.text("0")),
        sa.Column("failed", sa.Integer(), server_default=sa.text("0")),
        sa.Column("details", postgresql.JSONB()),
    )
    op.create_index("idx_sync_logs_job_started", "sync_logs", ["job_id", "started_at"])
    op.create_index("idx_sync_logs_status", "sync_logs", ["status"])

    # ==========================================================================
    # USERS & ALERTS
    # ==========================================================================

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("name", sa.String(255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "price_alerts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "option_id",
            sa.Integer(),
            sa.ForeignKey("investment_options.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("target_price", sa.Numeric(18, 4), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("triggered_at", sa.DateTime(timezone=True)),
        sa.Column("note", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_price_alerts_option_active", "price_alerts", ["option_id", "active"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("price_alerts")
    op.drop_table("users")
    op.drop_table("sync_logs")
    op.drop_table("historical_prices")
    op.drop_table("investment_options")
