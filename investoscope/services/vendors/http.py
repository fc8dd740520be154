"""Shared httpx client construction for vendor adapters."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from investoscope.core.config import settings


@asynccontextmanager
async def vendor_client(
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
    headers: dict[str, str] | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` if given, otherwise a short-lived client closed on exit."""
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(
        timeout=timeout if timeout is not None else settings.vendor_timeout_seconds,
        headers=headers,
        follow_redirects=True,
    ) as owned:
        yield owned
