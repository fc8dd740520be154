"""Database module: SQLAlchemy async engine, sessions and ORM models."""

from .connection import (
    close_database,
    get_async_database_url,
    get_session,
    init_database,
)
from .orm import (
    ETF,
    MUTUAL_FUND,
    STOCK,
    Base,
    HistoricalPrice,
    InvestmentOption,
    PriceAlert,
    SyncLog,
    User,
)


__all__ = [
    "ETF",
    "MUTUAL_FUND",
    "STOCK",
    "Base",
    "HistoricalPrice",
    "InvestmentOption",
    "PriceAlert",
    "SyncLog",
    "User",
    "close_database",
    "get_async_database_url",
    "get_session",
    "init_database",
]
