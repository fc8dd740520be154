"""Pytest configuration and fixtures.

Repository modules are swapped for an in-memory ``FakeStore`` so jobs and
services run end to end without PostgreSQL. Vendors are patched per test.
"""

from __future__ import annotations

import itertools
from collections import defaultdict
from collections.abc import Generator
from datetime import UTC, date, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from investoscope.core.config import settings
from investoscope.database.orm import STOCK
from investoscope.jobs import definitions, registry  # noqa: F401 (registers the built-in jobs)
from investoscope.repositories import catalogue_orm, historical_prices_orm, price_alerts_orm, sync_logs_orm
from investoscope.services.notifications import alerts
from investoscope.services.progress import InMemoryProgressStore, ProgressTracker, set_progress_tracker


CRON_KEY = "test-cron-key"

OLD_TIMESTAMP = datetime(2024, 1, 1, tzinfo=UTC)


class FakeStore:
    """In-memory stand-in for the four repository modules."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._log_ids = itertools.count(1)
        self.options: dict[int, SimpleNamespace] = {}
        # symbol -> date -> (close, source)
        self.prices: dict[str, dict[date, tuple[float, str]]] = defaultdict(dict)
        self.logs: list[SimpleNamespace] = []
        self.alerts: list[SimpleNamespace] = []
        self.option_updates: list[tuple[int, dict]] = []
        self.fail_updates_for: set[int] = set()

    # ------------------------------------------------------------------ seeding

    def add_option(self, **fields) -> SimpleNamespace:
        option = SimpleNamespace(
            id=next(self._ids),
            category=STOCK,
            name="Unnamed",
            symbol=None,
            unit_price=None,
            min_lump_sum=None,
            min_sip=None,
            subtype_mf=None,
            subtype_etf=None,
            market_cap=None,
            pe_ratio=None,
            beta=None,
            market_cap_value=None,
            risk_level=None,
            risk_reason=None,
            price_hash=None,
            nav_hash=None,
            active=True,
            last_updated=OLD_TIMESTAMP,
        )
        for key, value in fields.items():
            setattr(option, key, value)
        self.options[option.id] = option
        return option

    def add_price(self, symbol: str, day: date, close: float, source: str = "seed") -> None:
        self.prices[symbol][day] = (close, source)

    def add_alert(self, option_id: int, direction: str, target_price: float, email: str | None = "user@example.com"):
        alert = SimpleNamespace(
            id=len(self.alerts) + 1,
            option_id=option_id,
            direction=direction,
            target_price=target_price,
            active=True,
            triggered_at=None,
            user=SimpleNamespace(email=email, name="Asha Rao") if email else None,
        )
        self.alerts.append(alert)
        return alert

    def active_options(self, category: str | None = None) -> list[SimpleNamespace]:
        return [
            o for o in self.options.values()
            if o.active and (category is None or o.category == category)
        ]

    # ---------------------------------------------------------------- catalogue

    async def find_by_symbol(self, symbol, category=None):
        return [
            o for o in self.options.values()
            if o.symbol == symbol and (category is None or o.category == category)
        ]

    async def create_option(self, **fields):
        return self.add_option(**fields)

    async def update_option(self, option_id, **fields):
        if option_id in self.fail_updates_for:
            raise RuntimeError(f"write failed for {option_id}")
        if not fields:
            return
        self.option_updates.append((option_id, dict(fields)))
        for key, value in fields.items():
            setattr(self.options[option_id], key, value)

    async def deactivate_options(self, option_ids):
        ids = list(option_ids)
        for option_id in ids:
            self.options[option_id].active = False
        return len(ids)

    async def list_active_symbols(self, categories):
        categories = set(categories)
        return [
            (o.id, o.symbol) for o in self.options.values()
            if o.active and o.category in categories and o.symbol is not None
        ]

    async def list_active(self, categories=None, limit=None, with_symbol=False):
        rows = [
            o for o in sorted(self.options.values(), key=lambda o: o.id)
            if o.active
            and (categories is None or o.category in set(categories))
            and (not with_symbol or o.symbol is not None)
        ]
        return rows[:limit] if limit is not None else rows

    # ------------------------------------------------------------------- prices

    async def get_latest(self, symbol):
        series = self.prices.get(symbol)
        if not series:
            return None
        day = max(series)
        close, source = series[day]
        return SimpleNamespace(symbol=symbol, date=day, close=close, source=source)

    async def get_latest_date(self):
        days = [day for series in self.prices.values() for day in series]
        return max(days) if days else None

    async def insert_points(self, symbol, points, source):
        inserted = 0
        for point in points:
            if point.date not in self.prices[symbol]:
                self.prices[symbol][point.date] = (point.close, source)
                inserted += 1
        return inserted

    async def update_close(self, symbol, day, close, source):
        if day not in self.prices.get(symbol, {}):
            return 0
        self.prices[symbol][day] = (close, source)
        return 1

    async def replace_point(self, symbol, day, close, source):
        self.prices[symbol][day] = (close, source)

    # --------------------------------------------------------------------- logs

    async def create_log(self, job_id):
        log = SimpleNamespace(
            id=next(self._log_ids),
            job_id=job_id,
            status="running",
            started_at=datetime.now(UTC),
            finished_at=None,
            processed=0,
            updated=0,
            skipped=0,
            failed=0,
            details=None,
        )
        self.logs.append(log)
        return log.id

    async def finish_log(self, log_id, status, *, processed=0, updated=0, skipped=0, failed=0, details=None):
        log = next(log for log in self.logs if log.id == log_id)
        log.status = status
        log.finished_at = datetime.now(UTC)
        log.processed = processed
        log.updated = updated
        log.skipped = skipped
        log.failed = failed
        log.details = details

    async def list_logs(self, job_id=None, status=None, limit=50):
        rows = [
            log for log in sorted(self.logs, key=lambda log: log.started_at, reverse=True)
            if (job_id is None or log.job_id == job_id) and (status is None or log.status == status)
        ]
        return rows[:limit]

    async def get_latest_log(self, job_ids):
        rows = [log for log in self.logs if log.job_id in set(job_ids)]
        return max(rows, key=lambda log: log.started_at) if rows else None

    def logs_for(self, job_id: str) -> list[SimpleNamespace]:
        return [log for log in self.logs if log.job_id == job_id]

    # ------------------------------------------------------------------- alerts

    async def get_active_alerts(self, option_id):
        return [a for a in self.alerts if a.option_id == option_id and a.active]

    async def deactivate_alerts(self, alert_ids, triggered_at):
        ids = set(alert_ids)
        for alert in self.alerts:
            if alert.id in ids:
                alert.active = False
                alert.triggered_at = triggered_at
        return len(ids)

    # -------------------------------------------------------------------- setup

    def install(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "find_by_symbol",
            "create_option",
            "update_option",
            "deactivate_options",
            "list_active_symbols",
            "list_active",
        ):
            monkeypatch.setattr(catalogue_orm, name, getattr(self, name))
        for name in ("get_latest", "get_latest_date", "insert_points", "update_close", "replace_point"):
            monkeypatch.setattr(historical_prices_orm, name, getattr(self, name))
        for name in ("create_log", "finish_log", "list_logs", "get_latest_log"):
            monkeypatch.setattr(sync_logs_orm, name, getattr(self, name))
        for name in ("get_active_alerts", "deactivate_alerts"):
            monkeypatch.setattr(price_alerts_orm, name, getattr(self, name))


@pytest.fixture(autouse=True)
def test_settings(monkeypatch: pytest.MonkeyPatch):
    """Deterministic settings: no retry sleeps, no network lookups during reconcile."""
    monkeypatch.setattr(settings, "vendor_retry_delay_seconds", 0.0)
    monkeypatch.setattr(settings, "catalogue_fetch_prices", False)
    monkeypatch.setattr(settings, "cron_secret", CRON_KEY)
    monkeypatch.setattr(settings, "job_lock_backend", "memory")
    monkeypatch.setattr(settings, "alert_slack_webhook_url", "")
    monkeypatch.setattr(settings, "alert_email_to", "")
    return settings


@pytest.fixture(autouse=True)
def progress_tracker() -> Generator[ProgressTracker, None, None]:
    """Fresh in-memory progress store per test."""
    tracker = ProgressTracker(InMemoryProgressStore())
    set_progress_tracker(tracker)
    yield tracker
    set_progress_tracker(None)


@pytest.fixture(autouse=True)
def job_alerts(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    """Capture job alerts instead of delivering them."""
    mock = AsyncMock()
    monkeypatch.setattr(alerts, "send_job_alert", mock)
    return mock


@pytest.fixture
def price_alert_emails(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr(alerts, "send_price_alert_email", mock)
    return mock


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> FakeStore:
    """Install an empty in-memory store in place of the repositories."""
    fake = FakeStore()
    fake.install(monkeypatch)
    return fake


@pytest.fixture
def client(store: FakeStore) -> Generator[TestClient, None, None]:
    """Test client for the FastAPI app, backed by the in-memory store."""
    from investoscope.api.app import create_api_app

    app = create_api_app()
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"X-CRON-KEY": CRON_KEY}


@pytest.fixture
def stub_job(monkeypatch: pytest.MonkeyPatch):
    """Register (or replace) a job function for the duration of a test."""

    def register(name: str, func):
        monkeypatch.setitem(registry._registry, name, func)
        return func

    return register
