"""Data freshness report behind ``GET /health/sync-status``."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

from investoscope.core.config import settings
from investoscope.database.orm import SyncLog
from investoscope.repositories import historical_prices_orm as prices_repo
from investoscope.repositories import sync_logs_orm as sync_logs_repo


HEALTHY = "healthy"
WARNING = "warning"
CRITICAL = "critical"

# Jobs whose runs keep prices fresh
PRICE_JOB_IDS = ("sync-prices", "run-maintenance")


@dataclass
class SyncStatus:
    status: str
    message: str
    latest_price_date: date | None
    is_data_fresh: bool
    latest_sync: dict[str, Any] | None
    is_sync_recent: bool
    timestamp: datetime


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def evaluate_sync_status(
    latest_price_date: date | None,
    latest_sync: SyncLog | None,
    now: datetime | None = None,
) -> SyncStatus:
    """Classify freshness as healthy, warning or critical."""
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(hours=settings.stale_data_hours)

    is_data_fresh = (
        latest_price_date is not None
        and datetime.combine(latest_price_date, time.min, tzinfo=UTC) >= cutoff
    )
    is_sync_recent = (
        latest_sync is not None
        and latest_sync.started_at is not None
        and _as_utc(latest_sync.started_at) >= cutoff
    )

    status, message = HEALTHY, "All systems operational"
    if latest_price_date is None:
        status, message = CRITICAL, "No price data found - sync jobs may not have run"
    elif not is_data_fresh:
        status, message = WARNING, f"Data is stale - last update: {latest_price_date.isoformat()}"
    elif not is_sync_recent and (latest_sync is None or latest_sync.status != "completed"):
        job_id = latest_sync.job_id if latest_sync else None
        sync_state = latest_sync.status if latest_sync else None
        status, message = WARNING, f"Last sync ({job_id}) status: {sync_state}"

    return SyncStatus(
        status=status,
        message=message,
        latest_price_date=latest_price_date,
        is_data_fresh=is_data_fresh,
        latest_sync=(
            {
                "job_id": latest_sync.job_id,
                "status": latest_sync.status,
                "started_at": latest_sync.started_at,
                "finished_at": latest_sync.finished_at,
            }
            if latest_sync
            else None
        ),
        is_sync_recent=is_sync_recent,
        timestamp=now,
    )


async def get_sync_status() -> SyncStatus:
    latest_price_date = await prices_repo.get_latest_date()
    latest_sync = await sync_logs_repo.get_latest_log(PRICE_JOB_IDS)
    return evaluate_sync_status(latest_price_date, latest_sync)
