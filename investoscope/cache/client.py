"""Valkey client per event loop.

The API process and each Celery worker run their own event loop, and a
redis.asyncio pool cannot be shared across loops, so clients are keyed by
the id of the running loop.
"""

from __future__ import annotations

import asyncio

from redis.asyncio import ConnectionPool, Redis

from investoscope.core.config import settings
from investoscope.core.logging import get_logger


logger = get_logger("cache.client")

_clients: dict[int, Redis] = {}


def _loop_key() -> int:
    try:
        return id(asyncio.get_running_loop())
    except RuntimeError:
        return 0


def _new_client() -> Redis:
    pool = ConnectionPool.from_url(
        settings.valkey_url,
        max_connections=settings.valkey_max_connections,
        decode_responses=True,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    return Redis(connection_pool=pool)


async def get_valkey_client() -> Redis:
    """Client bound to the running loop, created on first use."""
    key = _loop_key()
    client = _clients.get(key)
    if client is None:
        client = _clients[key] = _new_client()
        logger.info("Valkey pool opened", extra={"extra_fields": {"loop_id": key}})
    return client


async def close_valkey_client() -> None:
    """Close the running loop's client and its pool, if one was opened."""
    client = _clients.pop(_loop_key(), None)
    if client is None:
        return
    await client.aclose(close_connection_pool=True)
    logger.info("Valkey pool closed")
