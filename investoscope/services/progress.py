"""Live job progress for polling clients.

Per job id the state machine is ``(none) -> running -> completed | error``.
``start`` clears any previous entry, ``update`` merges partial snapshots and
``complete``/``fail`` write the single terminal state. Once an entry is
terminal only a new ``start`` changes it.

The backing store is injected. ``InMemoryProgressStore`` serves a single
process and tests, ``ValkeyProgressStore`` shares state between API and
worker instances.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from investoscope.core.config import settings
from investoscope.core.logging import get_logger


logger = get_logger("services.progress")

RUNNING = "running"
COMPLETED = "completed"
ERROR = "error"
TERMINAL = frozenset({COMPLETED, ERROR})

PROGRESS_PREFIX = "investoscope:progress"


@dataclass
class Progress:
    job_id: str
    total: int = 0
    processed: int = 0
    current: str = ""
    status: str = RUNNING
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data["error"] is None:
            data.pop("error")
        return data


class ProgressStore(Protocol):
    async def get(self, job_id: str) -> dict[str, Any] | None: ...

    async def set(self, job_id: str, value: dict[str, Any]) -> None: ...

    async def clear(self, job_id: str) -> None: ...


class InMemoryProgressStore:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, job_id: str) -> dict[str, Any] | None:
        value = self._data.get(job_id)
        return dict(value) if value is not None else None

    async def set(self, job_id: str, value: dict[str, Any]) -> None:
        self._data[job_id] = dict(value)

    async def clear(self, job_id: str) -> None:
        self._data.pop(job_id, None)


class ValkeyProgressStore:
    """JSON values in Valkey with a TTL so abandoned runs expire."""

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self.ttl = ttl_seconds or settings.progress_ttl_seconds

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{PROGRESS_PREFIX}:{job_id}"

    async def get(self, job_id: str) -> dict[str, Any] | None:
        from investoscope.cache.client import get_valkey_client

        client = await get_valkey_client()
        raw = await client.get(self._key(job_id))
        return json.loads(raw) if raw else None

    async def set(self, job_id: str, value: dict[str, Any]) -> None:
        from investoscope.cache.client import get_valkey_client

        client = await get_valkey_client()
        await client.set(self._key(job_id), json.dumps(value), ex=self.ttl)

    async def clear(self, job_id: str) -> None:
        from investoscope.cache.client import get_valkey_client

        client = await get_valkey_client()
        await client.delete(self._key(job_id))


class ProgressTracker:
    def __init__(self, store: ProgressStore) -> None:
        self.store = store

    async def start(self, job_id: str, current: str = "Starting...") -> Progress:
        await self.store.clear(job_id)
        progress = Progress(job_id=job_id, current=current)
        await self.store.set(job_id, progress.to_dict())
        return progress

    async def _merge(self, job_id: str, **fields: Any) -> Progress | None:
        existing = await self.store.get(job_id)
        if existing and existing.get("status") in TERMINAL:
            logger.debug(f"Ignoring progress write for finished job {job_id}")
            return None
        base = existing or Progress(job_id=job_id).to_dict()
        base.update({k: v for k, v in fields.items() if v is not None})
        progress = Progress(**base)
        await self.store.set(job_id, progress.to_dict())
        return progress

    async def update(
        self,
        job_id: str,
        *,
        total: int | None = None,
        processed: int | None = None,
        current: str | None = None,
    ) -> Progress | None:
        return await self._merge(job_id, total=total, processed=processed, current=current)

    async def complete(
        self,
        job_id: str,
        current: str = "Completed",
        *,
        total: int | None = None,
        processed: int | None = None,
    ) -> Progress | None:
        return await self._merge(
            job_id, total=total, processed=processed, current=current, status=COMPLETED
        )

    async def fail(self, job_id: str, error: str) -> Progress | None:
        return await self._merge(job_id, current=f"Error: {error}", status=ERROR, error=error)

    async def get(self, job_id: str) -> Progress:
        """Current progress; a job with no entry yet reads as running."""
        existing = await self.store.get(job_id)
        if existing is None:
            return Progress(job_id=job_id, current="Not started", status=RUNNING)
        return Progress(**existing)


_tracker: ProgressTracker | None = None


def get_progress_tracker() -> ProgressTracker:
    """Process-wide tracker backed by the configured store."""
    global _tracker
    if _tracker is None:
        store: ProgressStore
        if settings.progress_backend == "valkey":
            store = ValkeyProgressStore()
        else:
            store = InMemoryProgressStore()
        _tracker = ProgressTracker(store)
    return _tracker


def set_progress_tracker(tracker: ProgressTracker | None) -> None:
    """Replace the process-wide tracker (None resets to the configured default)."""
    global _tracker
    _tracker = tracker
