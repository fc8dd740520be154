"""
Retry helpers for vendor calls.

Vendors in this pipeline rate-limit aggressively, so a failed call sleeps a
fixed delay (default 10s) before trying again and gives up after one retry.
When retries run out the original exception propagates unchanged, which
keeps rate-limit detection working on the caller's side.

Usage:
    from investoscope.services.vendors.resilience import retry_async, with_retry

    rows = await retry_async(fetch_nse_securities)

    @with_retry()
    async def fetch_something():
        ...
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import TypeVar

from investoscope.core.config import settings
from investoscope.core.logging import get_logger


logger = get_logger("vendors.resilience")

T = TypeVar("T")

DEFAULT_RETRY_EXCEPTIONS: tuple[type[Exception], ...] = (Exception,)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retries: int | None = None,
    delay: float | None = None,
    retry_on: tuple[type[Exception], ...] = DEFAULT_RETRY_EXCEPTIONS,
) -> T:
    """
    Call ``func`` and retry it after a fixed sleep.

    Args:
        func: Zero-argument async callable
        retries: Retries after the first attempt (default from settings)
        delay: Seconds to sleep before each retry (default from settings)
        retry_on: Exception types that trigger a retry

    Raises:
        The last exception raised by ``func`` once retries are exhausted.
    """
    remaining = settings.vendor_retry_attempts if retries is None else retries
    wait = settings.vendor_retry_delay_seconds if delay is None else delay
    name = getattr(getattr(func, "func", func), "__name__", "call")
    attempt = 1

    while True:
        try:
            return await func()
        except retry_on as e:
            if remaining <= 0:
                if attempt > 1:
                    logger.warning(f"Retry exhausted for {name} after {attempt} attempts: {e}")
                raise
            logger.debug(f"Attempt {attempt} of {name} failed, retrying in {wait:.1f}s: {e}")
            remaining -= 1
            attempt += 1
            await asyncio.sleep(wait)


def with_retry(
    retries: int | None = None,
    delay: float | None = None,
    retry_on: tuple[type[Exception], ...] = DEFAULT_RETRY_EXCEPTIONS,
) -> Callable:
    """Decorator form of ``retry_async``."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            call = functools.partial(func, *args, **kwargs)
            return await retry_async(call, retries=retries, delay=delay, retry_on=retry_on)

        return wrapper

    return decorator
