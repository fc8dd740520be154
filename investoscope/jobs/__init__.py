"""Sync jobs: registry, execution and Celery dispatch."""

from .executor import JobContext, JobOutcome, JobReport, execute_job
from .registry import get_job, list_job_names, register_job


__all__ = [
    "JobContext",
    "JobOutcome",
    "JobReport",
    "execute_job",
    "get_job",
    "list_job_names",
    "register_job",
]
