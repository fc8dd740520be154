"""Per-symbol price and NAV refresh used by the price sync job.

``refresh_security`` and ``refresh_mutual_fund`` return the outcome for one
catalogue record and raise on failure. ``run_batches`` fans them out in
fixed-size batches and tallies outcomes, counting exceptions as failures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, TypeVar

from investoscope.core.config import settings
from investoscope.core.logging import get_logger
from investoscope.database.orm import InvestmentOption
from investoscope.repositories import catalogue_orm as catalogue_repo
from investoscope.repositories import historical_prices_orm as prices_repo
from investoscope.services import price_alerts
from investoscope.services.change_detection import (
    hash_series,
    plan_series_write,
    should_update_price,
)
from investoscope.services.series import PriceSeries
from investoscope.services.vendors import fundamentals as fundamentals_vendor
from investoscope.services.vendors import mfapi
from investoscope.services.vendors import prices as price_vendor
from investoscope.services.vendors.resilience import retry_async


logger = get_logger("services.price_sync")

UPDATED = "updated"
FRESH = "fresh"
NO_CHANGE = "no_change"

MF_PREFIX = "MF:"

T = TypeVar("T")


@dataclass
class PriceSyncCounts:
    updated: int = 0
    skipped_fresh: int = 0
    skipped_no_change: int = 0
    failed: int = 0

    def tally(self, outcome: str) -> None:
        if outcome == UPDATED:
            self.updated += 1
        elif outcome == FRESH:
            self.skipped_fresh += 1
        else:
            self.skipped_no_change += 1

    @property
    def skipped(self) -> int:
        return self.skipped_fresh + self.skipped_no_change

    def summary(self) -> str:
        return (
            f"Updated {self.updated}, Fresh {self.skipped_fresh}, "
            f"No change {self.skipped_no_change}, Failed {self.failed}"
        )


def nav_symbol(scheme_code: str) -> str:
    return f"{MF_PREFIX}{scheme_code}"


def is_fresh(last_date: date, now: datetime | None = None) -> bool:
    """Whether the newest stored observation is younger than ``price_fresh_hours``."""
    now = now or datetime.now(UTC)
    stored_at = datetime.combine(last_date, time.min, tzinfo=UTC)
    return now - stored_at < timedelta(hours=settings.price_fresh_hours)


async def _apply_series(symbol: str, series: PriceSeries, last_date: date | None, last_close: float | None) -> int:
    """Persist appended points or a same-date correction. Returns rows written."""
    plan = plan_series_write(series.points, last_date, last_close)
    if plan.new_points:
        await prices_repo.insert_points(symbol, plan.new_points, series.source)
    elif plan.correction is not None:
        await prices_repo.update_close(symbol, plan.correction.date, plan.correction.close, series.source)
    return plan.writes


async def _fundamentals_updates(option: InvestmentOption, price_moved: bool) -> dict[str, Any]:
    needs_fundamentals = (
        not option.pe_ratio or not option.market_cap_value or not option.beta or price_moved
    )
    if not needs_fundamentals:
        return {}

    fundamentals = await fundamentals_vendor.fetch_fundamentals(option.symbol)
    if fundamentals is None or fundamentals.is_empty():
        return {}

    updates: dict[str, Any] = {}
    if fundamentals.pe_ratio is not None:
        updates["pe_ratio"] = fundamentals.pe_ratio
    if fundamentals.beta is not None:
        updates["beta"] = fundamentals.beta
    if fundamentals.market_cap is not None:
        updates["market_cap_value"] = fundamentals.market_cap
    return updates


async def refresh_security(option: InvestmentOption) -> str:
    """Refresh the price series, unit price and fundamentals of one stock or ETF."""
    symbol = option.symbol
    existing = await prices_repo.get_latest(symbol)
    if existing is not None and is_fresh(existing.date):
        return FRESH

    last_date = existing.date if existing else None
    last_close = existing.close if existing else None
    series = await retry_async(lambda: price_vendor.fetch_daily_prices(symbol, since=last_date))
    if not series:
        return NO_CHANGE

    latest = series.latest
    current_hash = hash_series(series.points)
    if option.price_hash and current_hash == option.price_hash:
        return NO_CHANGE

    writes = await _apply_series(symbol, series, last_date, last_close)
    price_moved = should_update_price(latest.close, option.unit_price)
    updates = await _fundamentals_updates(option, price_moved)

    now = datetime.now(UTC)
    if price_moved:
        updates.update(unit_price=latest.close, last_updated=now, price_hash=current_hash)
    elif not updates:
        updates.update(price_hash=current_hash, last_updated=now)
    # A fundamentals-only change leaves price_hash and last_updated untouched
    await catalogue_repo.update_option(option.id, **updates)

    await price_alerts.check_price_alerts(option.id, option.name, symbol, latest.close)

    return UPDATED if writes or price_moved else NO_CHANGE


async def refresh_mutual_fund(option: InvestmentOption) -> str:
    """Refresh the NAV history and unit price of one mutual fund."""
    code = (option.symbol or "").strip()
    if not code:
        return NO_CHANGE

    hp_symbol = nav_symbol(code)
    existing = await prices_repo.get_latest(hp_symbol)
    last_date = existing.date if existing else None
    last_close = existing.close if existing else None

    # Dates on or after the last stored one, so a restated NAV is visible
    series = await retry_async(lambda: mfapi.fetch_nav_history(code, since=last_date))
    if not series:
        return NO_CHANGE

    current_hash = hash_series(series.points)
    if option.nav_hash and current_hash == option.nav_hash:
        return NO_CHANGE

    writes = await _apply_series(hp_symbol, series, last_date, last_close)
    latest = series.latest
    nav_moved = should_update_price(latest.close, option.unit_price)

    now = datetime.now(UTC)
    if nav_moved:
        await catalogue_repo.update_option(
            option.id, unit_price=latest.close, last_updated=now, nav_hash=current_hash
        )
    else:
        await catalogue_repo.update_option(option.id, nav_hash=current_hash, last_updated=now)

    await price_alerts.check_price_alerts(option.id, option.name, code, latest.close)

    return UPDATED if writes or nav_moved else NO_CHANGE


async def run_batches(
    items: Sequence[T],
    batch_size: int,
    worker: Callable[[T], Awaitable[str]],
    counts: PriceSyncCounts,
    describe: Callable[[T], str],
    on_batch: Callable[[int], Awaitable[Any]] | None = None,
) -> None:
    """
    Run ``worker`` over ``items`` in concurrent batches of ``batch_size``.

    A batch starts only after the previous one has fully resolved.
    ``on_batch`` receives the number of items handled so far.
    """
    done = 0
    for start in range(0, len(items), batch_size):
        chunk = items[start : start + batch_size]
        results = await asyncio.gather(*(worker(item) for item in chunk), return_exceptions=True)
        for item, result in zip(chunk, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                counts.failed += 1
                logger.warning(
                    f"Failed to update {describe(item)}: {result}",
                    extra={"extra_fields": {"symbol": describe(item)}},
                )
            else:
                counts.tally(result)
        done += len(chunk)
        if on_batch is not None:
            await on_batch(done)
