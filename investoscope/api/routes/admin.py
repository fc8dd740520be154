"""Admin routes: live progress, sync logs and duplicate repair."""

from __future__ import annotations

from collections import Counter
from typing import Optional

from fastapi import APIRouter, Depends, Query

from investoscope.api.dependencies import require_cron_key
from investoscope.repositories import sync_logs_orm as sync_logs_repo
from investoscope.schemas.jobs import (
    DuplicateCleanResponse,
    DuplicateReportResponse,
    ProgressResponse,
    SyncLogEntry,
    SyncLogListResponse,
    SyncLogSummary,
)
from investoscope.services import reconciler
from investoscope.services.progress import get_progress_tracker


router = APIRouter(dependencies=[Depends(require_cron_key)])

DEFAULT_LOG_LIMIT = 50
MAX_LOG_LIMIT = 200


def _filter_value(value: Optional[str]) -> Optional[str]:
    """``all`` and empty values mean no filter."""
    if not value or value == "all":
        return None
    return value


def clamp_limit(limit: Optional[int]) -> int:
    return min(max(limit or DEFAULT_LOG_LIMIT, 1), MAX_LOG_LIMIT)


@router.get(
    "/progress/{job_id}",
    response_model=ProgressResponse,
    summary="Live job progress",
    description="Progress of the current or last run; unknown jobs read as not started.",
)
async def get_progress(job_id: str) -> ProgressResponse:
    progress = await get_progress_tracker().get(job_id)
    return ProgressResponse(**progress.to_dict())


@router.get(
    "/jobs/logs",
    response_model=SyncLogListResponse,
    summary="Sync job logs",
)
async def list_sync_logs(
    job_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
) -> SyncLogListResponse:
    logs = await sync_logs_repo.list_logs(
        job_id=_filter_value(job_id),
        status=_filter_value(status),
        limit=clamp_limit(limit),
    )
    return SyncLogListResponse(
        logs=[SyncLogEntry.model_validate(log) for log in logs],
        summary=SyncLogSummary(
            total=len(logs),
            by_status=dict(Counter(log.status for log in logs)),
            by_job=dict(Counter(log.job_id for log in logs)),
        ),
    )


@router.get(
    "/duplicates",
    response_model=DuplicateReportResponse,
    summary="Report duplicate catalogue records",
)
async def report_duplicates() -> DuplicateReportResponse:
    return DuplicateReportResponse(**await reconciler.find_duplicates())


@router.post(
    "/duplicates",
    response_model=DuplicateCleanResponse,
    summary="Deactivate duplicate catalogue records",
    description="Keeps the most recently updated record of each (category, symbol) group.",
)
async def clean_duplicates() -> DuplicateCleanResponse:
    cleaned = await reconciler.clean_duplicates()
    return DuplicateCleanResponse(cleaned=cleaned, message=f"Deactivated {cleaned} duplicate items")
