"""SQLAlchemy ORM models for the InvestoScope catalogue.

Defines the tables the sync pipeline reads and writes, using SQLAlchemy 2.0
ORM style with async support via the asyncpg driver.

Usage:
    from investoscope.database.orm import InvestmentOption
    from investoscope.database.connection import get_session

    async with get_session() as session:
        option = await session.get(InvestmentOption, 1)
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


# Naming convention for constraints and indexes (deterministic names for Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# Category values
STOCK = "STOCK"
ETF = "ETF"
MUTUAL_FUND = "MUTUAL_FUND"


# =============================================================================
# CATALOGUE
# =============================================================================


class InvestmentOption(Base):
    """A stock, ETF or mutual fund offered in the catalogue."""
    __tablename__ = "investment_options"

    id: Mapped[int] = mapped_column(primary_key=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)  # STOCK | ETF | MUTUAL_FUND
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    # Vendor ticker (RELIANCE.NS) or AMFI scheme code
    symbol: Mapped[str | None] = mapped_column(String(64))

    unit_price: Mapped[float | None] = mapped_column(Numeric(18, 4, asdecimal=False))
    min_lump_sum: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False))
    min_sip: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False))

    subtype_mf: Mapped[str | None] = mapped_column(String(20))  # INDEX | EQUITY | DEBT | HYBRID
    subtype_etf: Mapped[str | None] = mapped_column(String(20))  # BROAD_MARKET | SECTOR | GOLD | INTERNATIONAL
    market_cap: Mapped[str | None] = mapped_column(String(10))  # LARGE | MID | SMALL

    pe_ratio: Mapped[float | None] = mapped_column(Numeric(12, 4, asdecimal=False))
    beta: Mapped[float | None] = mapped_column(Numeric(8, 4, asdecimal=False))
    market_cap_value: Mapped[float | None] = mapped_column(Numeric(24, 2, asdecimal=False))

    risk_level: Mapped[str | None] = mapped_column(String(10))  # low | medium | high
    risk_reason: Mapped[str | None] = mapped_column(String(200))

    # Fingerprints of the recent price/NAV tail
    price_hash: Mapped[str | None] = mapped_column(String(64))
    nav_hash: Mapped[str | None] = mapped_column(String(64))

    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    price_alerts: Mapped[list[PriceAlert]] = relationship(back_populates="option")

    __table_args__ = (
        Index("idx_investment_options_symbol", "symbol"),
        Index("idx_investment_options_category_symbol", "category", "symbol"),
        Index("idx_investment_options_active", "active", postgresql_where=text("active = TRUE")),
    )


class HistoricalPrice(Base):
    """Daily close (or NAV, symbol prefixed MF:) observation."""
    __tablename__ = "historical_prices"

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    close: Mapped[float] = mapped_column(Numeric(18, 4, asdecimal=False), nullable=False)
    source: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("symbol", "date", name="uq_historical_prices_symbol_date"),
        Index("idx_historical_prices_date", "date", postgresql_ops={"date": "DESC"}),
    )


# =============================================================================
# JOBS
# =============================================================================


class SyncLog(Base):
    """One row per sync job execution."""
    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    job_id: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="running")
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processed: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    updated: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    skipped: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    failed: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    details: Mapped[dict | None] = mapped_column(JSONB)

    __table_args__ = (
        Index("idx_sync_logs_job_started", "job_id", "started_at"),
        Index("idx_sync_logs_status", "status"),
    )


# =============================================================================
# USERS & ALERTS
# =============================================================================


class User(Base):
    """Registered user. Only the fields needed for alert delivery are mapped."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    name: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    price_alerts: Mapped[list[PriceAlert]] = relationship(back_populates="user")


class PriceAlert(Base):
    """One-shot price threshold watch on an investment option."""
    __tablename__ = "price_alerts"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    option_id: Mapped[int] = mapped_column(
        ForeignKey("investment_options.id", ondelete="CASCADE"), nullable=False
    )
    direction: Mapped[str] = mapped_column(String(10), nullable=False)  # above | below
    target_price: Mapped[float] = mapped_column(Numeric(18, 4, asdecimal=False), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    triggered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    note: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user: Mapped[User] = relationship(back_populates="price_alerts")
    option: Mapped[InvestmentOption] = relationship(back_populates="price_alerts")

    __table_args__ = (
        Index("idx_price_alerts_option_active", "option_id", "active"),
    )
