"""
Tests for the vendor retry helpers.
"""

import pytest

from investoscope.core.config import settings
from investoscope.services.vendors.resilience import retry_async, with_retry


class Flaky:
    """Fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures: int, value: str = "ok", error: type[Exception] = RuntimeError):
        self.failures = failures
        self.value = value
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"attempt {self.calls} failed")
        return self.value


class TestRetryAsync:
    async def test_success_first_try(self):
        call = Flaky(0)
        assert await retry_async(call, retries=1, delay=0) == "ok"
        assert call.calls == 1

    async def test_retries_once_then_succeeds(self):
        call = Flaky(1)
        assert await retry_async(call, retries=1, delay=0) == "ok"
        assert call.calls == 2

    async def test_exhausted_retries_raise_original_error(self):
        call = Flaky(5)
        with pytest.raises(RuntimeError, match="attempt 2 failed"):
            await retry_async(call, retries=1, delay=0)
        assert call.calls == 2

    async def test_zero_retries(self):
        call = Flaky(1)
        with pytest.raises(RuntimeError):
            await retry_async(call, retries=0, delay=0)
        assert call.calls == 1

    async def test_non_matching_exception_is_not_retried(self):
        call = Flaky(1, error=KeyError)
        with pytest.raises(KeyError):
            await retry_async(call, retries=3, delay=0, retry_on=(ValueError,))
        assert call.calls == 1

    async def test_defaults_come_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "vendor_retry_attempts", 2)
        call = Flaky(2)
        assert await retry_async(call) == "ok"
        assert call.calls == 3


class TestWithRetry:
    async def test_decorator_passes_arguments(self):
        attempts = []

        @with_retry(retries=1, delay=0)
        async def fetch(symbol: str, *, since: int = 0) -> str:
            attempts.append((symbol, since))
            if len(attempts) == 1:
                raise ConnectionError("reset")
            return f"{symbol}:{since}"

        assert await fetch("TCS.NS", since=3) == "TCS.NS:3"
        assert attempts == [("TCS.NS", 3), ("TCS.NS", 3)]
        assert fetch.__name__ == "fetch"
