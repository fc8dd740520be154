"""Job execution: locking, sync log bookkeeping, progress, alerts and status mapping.

Every job function receives a ``JobContext`` and returns a ``JobReport``.
``execute_job`` wraps it so that callers (HTTP trigger, Celery task) always
get a ``JobOutcome`` with the response body and HTTP status to surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from investoscope.cache.distributed_lock import job_lock
from investoscope.core.config import settings
from investoscope.core.exceptions import (
    AppException,
    JobAlreadyRunningError,
    NotFoundError,
    is_rate_limit_error,
)
from investoscope.core.logging import get_logger, job_id_var
from investoscope.repositories import sync_logs_orm as sync_logs_repo
from investoscope.services.notifications import alerts
from investoscope.services.progress import ProgressTracker, get_progress_tracker

from .registry import get_job
from .utils import elapsed_ms, job_timer, log_job_success


logger = get_logger("jobs.executor")

RATE_LIMIT_PREFIX = "Rate limit error: "


@dataclass
class JobContext:
    """Handle passed to job functions for progress reporting."""

    job_id: str
    tracker: ProgressTracker
    # Failures seen so far, reported on the error path if the job aborts
    failed: int = 0

    async def progress(
        self,
        *,
        total: int | None = None,
        processed: int | None = None,
        current: str | None = None,
    ) -> None:
        await self.tracker.update(self.job_id, total=total, processed=processed, current=current)


@dataclass
class JobReport:
    """What a job function returns on success."""

    result: dict[str, Any] = field(default_factory=dict)
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    details: dict[str, Any] | None = None
    summary: str = "Completed"
    # Operators are warned when warning_count reaches sync_failed_alert_threshold
    warning_count: int = 0
    warning_message: str | None = None


@dataclass
class JobOutcome:
    job_id: str
    ok: bool
    status_code: int
    body: dict[str, Any]


def _error_body(message: str, exc: BaseException) -> dict[str, Any]:
    body: dict[str, Any] = {"ok": False, "error": message}
    if isinstance(exc, AppException) and exc.details:
        body["details"] = exc.details
    return body


async def _finish_log(log_id: int | None, status: str, **fields: Any) -> None:
    if log_id is None:
        return
    try:
        await sync_logs_repo.finish_log(log_id, status, **fields)
    except Exception as log_exc:
        logger.warning(f"Failed to write sync log {log_id}: {log_exc}")


async def _run_locked(job_id: str, job_func: Any, tracker: ProgressTracker) -> JobOutcome:
    ctx = JobContext(job_id=job_id, tracker=tracker)
    log_id: int | None = None
    start = job_timer()

    try:
        log_id = await sync_logs_repo.create_log(job_id)
        await tracker.start(job_id)
        report: JobReport = await job_func(ctx)
    except Exception as e:
        rate_limited = is_rate_limit_error(e)
        message = str(e) or type(e).__name__
        if rate_limited and not message.startswith(RATE_LIMIT_PREFIX):
            message = f"{RATE_LIMIT_PREFIX}{message}"
        status_code = 429 if rate_limited else 500

        logger.exception(
            f"Job {job_id} failed after {elapsed_ms(start)}ms",
            extra={"extra_fields": {"job": job_id, "rate_limited": rate_limited}},
        )
        await tracker.fail(job_id, message)
        await _finish_log(
            log_id,
            "error",
            failed=max(ctx.failed, 1),
            details={"error": message},
        )
        await alerts.send_job_alert(job_id, alerts.ERROR, message)
        return JobOutcome(job_id, False, status_code, _error_body(message, e))

    await tracker.complete(job_id, report.summary)
    await _finish_log(
        log_id,
        "completed",
        processed=report.processed,
        updated=report.updated,
        skipped=report.skipped,
        failed=report.failed,
        details=report.details,
    )

    if report.warning_message and report.warning_count >= settings.sync_failed_alert_threshold:
        await alerts.send_job_alert(job_id, alerts.WARNING, report.warning_message, report.details)

    log_job_success(
        job_id,
        report.summary,
        processed=report.processed,
        updated=report.updated,
        skipped=report.skipped,
        failed=report.failed,
        duration_ms=elapsed_ms(start),
    )
    return JobOutcome(job_id, True, 200, {"ok": True, **report.result})


async def execute_job(job_id: str, tracker: ProgressTracker | None = None) -> JobOutcome:
    """
    Run a registered job once.

    Only one run per job id executes at a time. A concurrent trigger gets a
    409 outcome without touching the sync log.

    Raises:
        NotFoundError: If no job is registered under ``job_id``
    """
    job_func = get_job(job_id)
    if job_func is None:
        raise NotFoundError(message=f"Unknown job: {job_id}", error_code="UNKNOWN_JOB")

    tracker = tracker or get_progress_tracker()
    try:
        async with job_lock(job_id):
            token = job_id_var.set(job_id)
            try:
                return await _run_locked(job_id, job_func, tracker)
            finally:
                job_id_var.reset(token)
    except JobAlreadyRunningError as e:
        logger.info(f"Skipped {job_id}: already running")
        return JobOutcome(job_id, False, e.status_code, {"ok": False, "error": e.message})
