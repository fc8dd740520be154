"""Shared defaults for scheduled jobs.

Only the orchestrators are scheduled. The remaining jobs exist for manual
triggers through ``POST /jobs/{job_name}``.
"""

from __future__ import annotations


# Format: job_name -> (cron_expression, human_description)
# Cron expressions are evaluated in settings.scheduler_timezone (IST)
DEFAULT_SCHEDULES: dict[str, tuple[str, str]] = {
    "run-maintenance": (
        "30 23 * * *",
        "Daily maintenance - price/NAV sync followed by the NSE + AMFI catalogue sync "
        "and staleness sweep. Runs after AMFI publishes the day's NAVs.",
    ),
    "auto-sync-if-stale": (
        "0 * * * *",
        "Hourly freshness check - runs the price sync when the newest stored price "
        "is older than STALE_DATA_HOURS.",
    ),
}

JOB_PRIORITIES: dict[str, dict[str, int | str]] = {
    "run-maintenance": {"queue": "batch", "priority": 9},
    "sync-catalogue": {"queue": "batch", "priority": 7},
    "sync-prices": {"queue": "high", "priority": 8},
    "sync-mf-nav": {"queue": "default", "priority": 6},
    "sync-nse-universe": {"queue": "default", "priority": 5},
    "sync-mf-universe": {"queue": "default", "priority": 5},
    "auto-sync-if-stale": {"queue": "high", "priority": 7},
}


def get_job_schedule(name: str) -> tuple[str, str] | None:
    """Return (cron, description) for a scheduled job, None for manual-only jobs."""
    return DEFAULT_SCHEDULES.get(name)


def get_job_priority(name: str) -> dict[str, int | str]:
    """Return queue/priority for a job."""
    return JOB_PRIORITIES.get(name, {"queue": "default", "priority": 5})
