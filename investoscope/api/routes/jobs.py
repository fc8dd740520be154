"""Job trigger routes.

``POST /jobs/{job_name}`` runs a job inline and answers with the job
envelope: ``{"ok": true, ...counts}`` on success, ``{"ok": false, "error"}``
with 401, 409, 429 or 500 otherwise.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from investoscope.api.dependencies import require_cron_key
from investoscope.core.logging import get_logger
from investoscope.jobs import execute_job
from investoscope.jobs.dispatch import enqueue_job, get_task_status
from investoscope.schemas.jobs import JobQueuedResponse, TaskStatusResponse


router = APIRouter(dependencies=[Depends(require_cron_key)])

logger = get_logger("api.jobs")


def _validate_job_name(job_name: str = Path(..., min_length=1, max_length=50)) -> str:
    """Normalize the path name: ``SYNC_PRICES`` and ``sync-prices`` are the same job."""
    return job_name.strip().lower().replace("_", "-")


@router.post(
    "/{job_name}",
    summary="Trigger a sync job",
    description="Run a sync job now. Requires the X-CRON-KEY header.",
    responses={
        404: {"description": "Unknown job"},
        409: {"description": "Job already running"},
        429: {"description": "Vendor rate limit"},
        500: {"description": "Job failed"},
    },
)
async def trigger_job(
    job_name: str = Depends(_validate_job_name),
    background: bool = Query(False, description="Queue on Celery instead of running inline"),
) -> JSONResponse:
    if background:
        task_id = enqueue_job(job_name)
        logger.info(f"Queued {job_name} as task {task_id}")
        queued = JobQueuedResponse(job_id=job_name, task_id=task_id)
        return JSONResponse(status_code=202, content=queued.model_dump())

    outcome = await execute_job(job_name)
    return JSONResponse(status_code=outcome.status_code, content=jsonable_encoder(outcome.body))


@router.get(
    "/tasks/{task_id}",
    response_model=TaskStatusResponse,
    summary="Queued job status",
)
async def task_status(task_id: str) -> TaskStatusResponse:
    return TaskStatusResponse(**get_task_status(task_id))
