"""Data access layer repositories.

Each repository module provides async functions for database operations
using SQLAlchemy ORM models from `investoscope.database.orm` with the
`get_session()` context manager.

- catalogue_orm: investment options (stocks, ETFs, mutual funds)
- historical_prices_orm: daily closes and MF:<code> NAV rows
- sync_logs_orm: one row per job execution
- price_alerts_orm: one-shot user price alerts
"""

from . import catalogue_orm
from . import historical_prices_orm
from . import price_alerts_orm
from . import sync_logs_orm

__all__ = [
    "catalogue_orm",
    "historical_prices_orm",
    "price_alerts_orm",
    "sync_logs_orm",
]
