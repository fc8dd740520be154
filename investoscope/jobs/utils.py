"""Timing and completion logging for job runs."""

from __future__ import annotations

import time
from typing import Any

from investoscope.core.logging import get_logger


logger = get_logger("jobs.utils")


def log_job_success(job_id: str, summary: str, **counts: Any) -> None:
    """Emit one structured completion line for a job.

    ``counts`` land both in the human message (``key=value`` pairs) and in
    the JSON ``extra_fields`` so the log pipeline can chart them per job.
    """
    fields = {"job": job_id, "status": "completed", **counts}
    rendered = " ".join(f"{key}={value}" for key, value in counts.items())
    logger.info(f"{job_id} completed: {summary} | {rendered}", extra={"extra_fields": fields})


def job_timer() -> float:
    return time.monotonic()


def elapsed_ms(start: float) -> int:
    """Milliseconds since a ``job_timer()`` reading."""
    return int((time.monotonic() - start) * 1000)
