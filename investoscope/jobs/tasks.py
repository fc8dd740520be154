"""Celery tasks for background jobs."""

from __future__ import annotations

import asyncio
from typing import Any

import investoscope.jobs.definitions  # noqa: F401 - register jobs
from investoscope.celery_app import celery_app
from investoscope.core.exceptions import JobError
from investoscope.core.logging import get_logger
from investoscope.jobs.executor import execute_job


logger = get_logger("jobs.celery_tasks")

# Per-worker event loop for Celery prefork pool
_worker_loop: asyncio.AbstractEventLoop | None = None


def _get_worker_loop() -> asyncio.AbstractEventLoop:
    """Get or create a persistent event loop for the worker process."""
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_worker_loop)
    return _worker_loop


def _run_async(coro: Any) -> Any:
    """Run async coroutine in the worker's event loop.

    Uses a persistent event loop so pooled Valkey and database connections
    stay bound to the loop that created them.
    """
    loop = _get_worker_loop()
    return loop.run_until_complete(coro)


def _run_job(job_name: str) -> dict[str, Any]:
    outcome = _run_async(execute_job(job_name))
    if outcome.status_code == 409:
        logger.info(f"Skipped {job_name}: already running")
        return outcome.body
    if not outcome.ok:
        # Mark the Celery task failed; the sync log and alerts are already written
        raise JobError(
            message=outcome.body.get("error", f"{job_name} failed"),
            details={"job_name": job_name, "status_code": outcome.status_code},
        )
    return outcome.body


@celery_app.task(name="jobs.sync-catalogue")
def sync_catalogue_task() -> dict[str, Any]:
    return _run_job("sync-catalogue")


@celery_app.task(name="jobs.sync-prices")
def sync_prices_task() -> dict[str, Any]:
    return _run_job("sync-prices")


@celery_app.task(name="jobs.sync-mf-nav")
def sync_mf_nav_task() -> dict[str, Any]:
    return _run_job("sync-mf-nav")


@celery_app.task(name="jobs.sync-nse-universe")
def sync_nse_universe_task() -> dict[str, Any]:
    return _run_job("sync-nse-universe")


@celery_app.task(name="jobs.sync-mf-universe")
def sync_mf_universe_task() -> dict[str, Any]:
    return _run_job("sync-mf-universe")


@celery_app.task(name="jobs.run-maintenance")
def run_maintenance_task() -> dict[str, Any]:
    return _run_job("run-maintenance")


@celery_app.task(name="jobs.auto-sync-if-stale")
def auto_sync_if_stale_task() -> dict[str, Any]:
    return _run_job("auto-sync-if-stale")
