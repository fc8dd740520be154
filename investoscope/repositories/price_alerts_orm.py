"""Price alert repository using SQLAlchemy ORM."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from investoscope.database.connection import get_session
from investoscope.database.orm import PriceAlert


async def get_active_alerts(option_id: int) -> Sequence[PriceAlert]:
    """Active alerts on an option, with the owning user loaded."""
    async with get_session() as session:
        result = await session.execute(
            select(PriceAlert)
            .options(selectinload(PriceAlert.user))
            .where(PriceAlert.option_id == option_id, PriceAlert.active.is_(True))
        )
        return result.scalars().all()


async def deactivate_alerts(alert_ids: Iterable[int], triggered_at: datetime) -> int:
    ids = list(alert_ids)
    if not ids:
        return 0
    async with get_session() as session:
        result = await session.execute(
            update(PriceAlert)
            .where(PriceAlert.id.in_(ids))
            .values(active=False, triggered_at=triggered_at)
        )
        await session.commit()
        return result.rowcount or 0
