"""Per-job mutual exclusion.

Two backends share one interface:

- ``DistributedLock`` keeps a lease in Valkey (SET NX EX, token-checked
  release) so only one instance in a deployment runs a given job.
- ``LocalLock`` guards a single process with ``asyncio.Lock`` objects keyed by
  name. It is the default when no Valkey is deployed.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager

from investoscope.core.config import settings
from investoscope.core.exceptions import JobAlreadyRunningError
from investoscope.core.logging import get_logger

from .client import get_valkey_client


logger = get_logger("cache.lock")

LOCK_PREFIX = "investoscope:lock"

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class DistributedLock:
    """Non-blocking lease held in Valkey."""

    def __init__(self, name: str, timeout: int = 60 * 30):
        self.name = name
        self.key = f"{LOCK_PREFIX}:{name}"
        self.timeout = timeout
        self.token = str(uuid.uuid4())
        self._acquired = False

    async def acquire(self) -> bool:
        client = await get_valkey_client()
        acquired = await client.set(self.key, self.token, ex=self.timeout, nx=True)
        if acquired:
            self._acquired = True
            logger.debug(f"Lock acquired: {self.name}")
            return True
        return False

    async def release(self) -> bool:
        """Release the lease if this holder still owns it."""
        if not self._acquired:
            return False

        client = await get_valkey_client()
        try:
            result = await client.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        except Exception as e:
            logger.error(f"Lock release error: {e}")
            return False
        finally:
            self._acquired = False

        if result:
            logger.debug(f"Lock released: {self.name}")
            return True
        logger.warning(f"Lock release failed (token mismatch): {self.name}")
        return False


_local_locks: dict[str, asyncio.Lock] = {}


class LocalLock:
    """Non-blocking in-process lock."""

    def __init__(self, name: str, timeout: int = 0):
        self.name = name
        self._lock = _local_locks.setdefault(name, asyncio.Lock())
        self._acquired = False

    async def acquire(self) -> bool:
        if self._lock.locked():
            return False
        await self._lock.acquire()
        self._acquired = True
        return True

    async def release(self) -> bool:
        if not self._acquired:
            return False
        self._lock.release()
        self._acquired = False
        return True


def _make_lock(name: str, backend: str, timeout: int) -> DistributedLock | LocalLock | None:
    if backend == "valkey":
        return DistributedLock(name, timeout=timeout)
    if backend == "memory":
        return LocalLock(name)
    return None


@asynccontextmanager
async def job_lock(job_id: str, backend: str | None = None):
    """
    Hold the lock for ``job_id`` for the duration of the block.

    Raises JobAlreadyRunningError when another execution holds it. The
    ``none`` backend disables locking.
    """
    lock = _make_lock(
        f"job:{job_id}",
        backend or settings.job_lock_backend,
        settings.job_lock_timeout_seconds,
    )
    if lock is None:
        yield
        return

    if not await lock.acquire():
        raise JobAlreadyRunningError(
            message=f"{job_id} is already running",
            details={"job_id": job_id},
        )
    try:
        yield
    finally:
        await lock.release()
