"""Valkey-backed coordination: connection pool and job locks."""

from .client import close_valkey_client, get_valkey_client
from .distributed_lock import DistributedLock, LocalLock, job_lock


__all__ = [
    "DistributedLock",
    "LocalLock",
    "close_valkey_client",
    "get_valkey_client",
    "job_lock",
]
