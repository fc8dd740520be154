"""Historical price repository using SQLAlchemy ORM.

Mutual fund NAV rows share the table under ``MF:<scheme code>`` symbols.

Usage:
    from investoscope.repositories import historical_prices_orm as prices_repo

    latest = await prices_repo.get_latest("TCS.NS")
    await prices_repo.insert_points("TCS.NS", points, source="yahoo")
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert

from investoscope.core.logging import get_logger
from investoscope.database.connection import get_session
from investoscope.database.orm import HistoricalPrice
from investoscope.services.series import PricePoint


logger = get_logger("repositories.historical_prices_orm")


async def get_latest(symbol: str) -> HistoricalPrice | None:
    """Most recent stored observation for ``symbol``."""
    async with get_session() as session:
        result = await session.execute(
            select(HistoricalPrice)
            .where(HistoricalPrice.symbol == symbol)
            .order_by(HistoricalPrice.date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


async def get_latest_date() -> date | None:
    """Newest observation date across all symbols."""
    async with get_session() as session:
        result = await session.execute(select(func.max(HistoricalPrice.date)))
        return result.scalar_one_or_none()


async def insert_points(symbol: str, points: Sequence[PricePoint], source: str) -> int:
    """Append observations, ignoring dates that already exist for the symbol."""
    if not points:
        return 0

    rows = [
        {"symbol": symbol, "date": point.date, "close": point.close, "source": source}
        for point in points
    ]
    async with get_session() as session:
        stmt = insert(HistoricalPrice).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=["symbol", "date"])
        result = await session.execute(stmt)
        await session.commit()
        return result.rowcount or 0


async def update_close(symbol: str, day: date, close: float, source: str) -> int:
    """Overwrite the close of an existing (symbol, date) row."""
    async with get_session() as session:
        result = await session.execute(
            update(HistoricalPrice)
            .where(HistoricalPrice.symbol == symbol, HistoricalPrice.date == day)
            .values(close=close, source=source)
        )
        await session.commit()
        return result.rowcount or 0


async def replace_point(symbol: str, day: date, close: float, source: str) -> None:
    """Delete then insert the (symbol, date) row in one transaction."""
    async with get_session() as session:
        await session.execute(
            delete(HistoricalPrice).where(
                HistoricalPrice.symbol == symbol, HistoricalPrice.date == day
            )
        )
        session.add(HistoricalPrice(symbol=symbol, date=day, close=close, source=source))
        await session.commit()
