"""Investment option repository using SQLAlchemy ORM.

Usage:
    from investoscope.repositories import catalogue_orm as catalogue_repo

    matches = await catalogue_repo.find_by_symbol("RELIANCE.NS")
    await catalogue_repo.deactivate_options([3, 7])
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import select, update

from investoscope.core.logging import get_logger
from investoscope.database.connection import get_session
from investoscope.database.orm import InvestmentOption


logger = get_logger("repositories.catalogue_orm")


async def find_by_symbol(symbol: str, category: str | None = None) -> Sequence[InvestmentOption]:
    """All records (active or not) carrying ``symbol``, optionally within one category."""
    async with get_session() as session:
        stmt = select(InvestmentOption).where(InvestmentOption.symbol == symbol)
        if category is not None:
            stmt = stmt.where(InvestmentOption.category == category)
        result = await session.execute(stmt)
        return result.scalars().all()


async def create_option(**fields: Any) -> InvestmentOption:
    async with get_session() as session:
        option = InvestmentOption(**fields)
        session.add(option)
        await session.commit()
        return option


async def update_option(option_id: int, **fields: Any) -> None:
    if not fields:
        return
    async with get_session() as session:
        await session.execute(
            update(InvestmentOption)
            .where(InvestmentOption.id == option_id)
            .values(**fields)
        )
        await session.commit()


async def deactivate_options(option_ids: Iterable[int]) -> int:
    """Batch soft-delete. Returns number of rows touched."""
    ids = list(option_ids)
    if not ids:
        return 0
    async with get_session() as session:
        result = await session.execute(
            update(InvestmentOption)
            .where(InvestmentOption.id.in_(ids))
            .values(active=False)
        )
        await session.commit()
        return result.rowcount or 0


async def list_active_symbols(categories: Iterable[str]) -> list[tuple[int, str]]:
    """(id, symbol) for every active record with a symbol in ``categories``."""
    async with get_session() as session:
        result = await session.execute(
            select(InvestmentOption.id, InvestmentOption.symbol).where(
                InvestmentOption.active.is_(True),
                InvestmentOption.category.in_(list(categories)),
                InvestmentOption.symbol.is_not(None),
            )
        )
        return [(row.id, row.symbol) for row in result.all()]


async def list_active(
    categories: Iterable[str] | None = None,
    limit: int | None = None,
    with_symbol: bool = False,
) -> Sequence[InvestmentOption]:
    """Active records, optionally filtered by category and capped at ``limit``."""
    async with get_session() as session:
        stmt = select(InvestmentOption).where(InvestmentOption.active.is_(True))
        if categories is not None:
            stmt = stmt.where(InvestmentOption.category.in_(list(categories)))
        if with_symbol:
            stmt = stmt.where(InvestmentOption.symbol.is_not(None))
        stmt = stmt.order_by(InvestmentOption.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()
