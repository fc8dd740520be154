"""Job, progress and sync log schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class JobQueuedResponse(BaseModel):
    """Background job submission."""

    ok: bool = True
    job_id: str = Field(..., description="Job name")
    task_id: str = Field(..., description="Celery task id")


class TaskStatusResponse(BaseModel):
    task_id: str
    status: str
    result: Any | None = None
    error: str | None = None


class ProgressResponse(BaseModel):
    """Live progress of a job run."""

    job_id: str
    total: int = Field(0, description="Items the run expects to handle")
    processed: int = Field(0, description="Items handled so far")
    current: str = Field("", description="Human-readable step")
    status: str = Field(..., description="running, completed or error")
    error: str | None = None


class SyncLogEntry(BaseModel):
    """One job execution."""

    id: int
    job_id: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    details: dict[str, Any] | None = None

    model_config = {"from_attributes": True}


class SyncLogSummary(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_job: dict[str, int] = Field(default_factory=dict)


class SyncLogListResponse(BaseModel):
    ok: bool = True
    logs: list[SyncLogEntry]
    summary: SyncLogSummary


class DuplicateGroup(BaseModel):
    key: str = Field(..., description="category:symbol")
    count: int
    ids: list[int]
    names: list[str]


class DuplicateReportResponse(BaseModel):
    ok: bool = True
    duplicates: int = Field(..., description="Number of duplicated keys")
    total_duplicate_items: int = Field(..., description="Rows that would be deactivated")
    details: list[DuplicateGroup]


class DuplicateCleanResponse(BaseModel):
    ok: bool = True
    cleaned: int
    message: str


class LatestSync(BaseModel):
    job_id: str
    status: str
    started_at: datetime | None = None
    finished_at: datetime | None = None


class SyncStatusData(BaseModel):
    latest_price_date: date | None
    is_data_fresh: bool
    latest_sync: LatestSync | None
    is_sync_recent: bool
    timestamp: datetime


class SyncStatusResponse(BaseModel):
    ok: bool = True
    status: str = Field(..., description="healthy, warning or critical")
    message: str
    data: SyncStatusData
