"""Sync log repository using SQLAlchemy ORM."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update

from investoscope.core.logging import get_logger
from investoscope.database.connection import get_session
from investoscope.database.orm import SyncLog


logger = get_logger("repositories.sync_logs_orm")


async def create_log(job_id: str) -> int:
    """Open a ``running`` log row and return its id."""
    async with get_session() as session:
        log = SyncLog(job_id=job_id, status="running", started_at=datetime.now(UTC))
        session.add(log)
        await session.commit()
        return log.id


async def finish_log(
    log_id: int,
    status: str,
    *,
    processed: int = 0,
    updated: int = 0,
    skipped: int = 0,
    failed: int = 0,
    details: dict[str, Any] | None = None,
) -> None:
    """Write the terminal state of a job run."""
    async with get_session() as session:
        await session.execute(
            update(SyncLog)
            .where(SyncLog.id == log_id)
            .values(
                status=status,
                finished_at=datetime.now(UTC),
                processed=processed,
                updated=updated,
                skipped=skipped,
                failed=failed,
                details=details,
            )
        )
        await session.commit()


async def list_logs(
    job_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
) -> Sequence[SyncLog]:
    """Newest-first log rows, optionally filtered."""
    async with get_session() as session:
        stmt = select(SyncLog)
        if job_id:
            stmt = stmt.where(SyncLog.job_id == job_id)
        if status:
            stmt = stmt.where(SyncLog.status == status)
        result = await session.execute(
            stmt.order_by(SyncLog.started_at.desc()).limit(limit)
        )
        return result.scalars().all()


async def get_latest_log(job_ids: Iterable[str]) -> SyncLog | None:
    async with get_session() as session:
        result = await session.execute(
            select(SyncLog)
            .where(SyncLog.job_id.in_(list(job_ids)))
            .order_by(SyncLog.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
