"""Built-in job definitions.

Jobs:
- sync-catalogue: NSE + AMFI reconciliation followed by the staleness sweep
- sync-prices: Price/NAV refresh for active stocks, ETFs and mutual funds
- sync-mf-nav: Latest AMFI NAV of every active mutual fund into the price history
- sync-nse-universe: NSE reconciliation only, no sweep
- sync-mf-universe: AMFI reconciliation only, no sweep
- run-maintenance: sync-prices then sync-catalogue (daily)
- auto-sync-if-stale: sync-prices when the newest stored price is too old (hourly)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, time

from investoscope.core.config import settings
from investoscope.core.exceptions import JobError, RateLimitError
from investoscope.core.logging import get_logger
from investoscope.database.orm import ETF, MUTUAL_FUND, STOCK
from investoscope.repositories import catalogue_orm as catalogue_repo
from investoscope.repositories import historical_prices_orm as prices_repo
from investoscope.services import catalogue_sync, price_sync, staleness
from investoscope.services.vendors import amfi as amfi_vendor
from investoscope.services.vendors import nse as nse_vendor
from investoscope.services.vendors.resilience import retry_async

from .executor import JobContext, JobOutcome, JobReport, execute_job
from .registry import register_job


logger = get_logger("jobs.definitions")

NAV_PROGRESS_EVERY = 50


def _ingest_progress(ctx: JobContext, offset: int = 0, grand_total: int | None = None) -> Callable[[int, int, str], Awaitable[None]]:
    async def on_progress(total: int, processed: int, current: str) -> None:
        await ctx.progress(
            total=grand_total if grand_total is not None else total,
            processed=offset + processed,
            current=current,
        )

    return on_progress


def _subjob_error(message: str, outcome: JobOutcome) -> JobError | RateLimitError:
    if outcome.status_code == 429:
        return RateLimitError(message=message, details=outcome.body)
    return JobError(message=message, details=outcome.body)


# =============================================================================
# CATALOGUE
# =============================================================================


@register_job("sync-catalogue")
async def sync_catalogue_job(ctx: JobContext) -> JobReport:
    """
    Reconcile the NSE equity list and the AMFI scheme master into the catalogue.

    Each universe is snapshotted before ingest and swept afterwards, so
    records the vendor stopped listing are deactivated unless the feed
    looks truncated.
    """
    await ctx.progress(current="Fetching NSE securities...")
    existing_securities = await catalogue_repo.list_active_symbols([STOCK, ETF])
    nse_rows = await retry_async(nse_vendor.fetch_nse_securities)

    await ctx.progress(total=len(nse_rows), processed=0, current=f"Processing {len(nse_rows)} NSE securities...")
    securities = await catalogue_sync.ingest_securities(nse_rows, _ingest_progress(ctx))
    ctx.failed += securities.failed
    securities_sweep = await staleness.sweep_stale("securities", existing_securities, securities.seen)

    await ctx.progress(current="Fetching AMFI mutual fund list...")
    existing_funds = await catalogue_repo.list_active_symbols([MUTUAL_FUND])
    schemes = await retry_async(amfi_vendor.fetch_amfi_scheme_master)

    grand_total = len(nse_rows) + len(schemes)
    await ctx.progress(
        total=grand_total,
        processed=len(nse_rows),
        current=f"Processing {len(schemes)} mutual funds...",
    )
    funds = await catalogue_sync.ingest_mutual_funds(schemes, _ingest_progress(ctx, len(nse_rows), grand_total))
    ctx.failed += funds.failed
    funds_sweep = await staleness.sweep_stale("mutual funds", existing_funds, funds.seen)

    failed = securities.failed + funds.failed
    deactivated = securities_sweep.deactivated + funds_sweep.deactivated
    result = {
        "stock_created": securities.created,
        "stock_updated": securities.updated,
        "stock_deactivated": securities_sweep.deactivated,
        "mf_created": funds.created,
        "mf_updated": funds.updated,
        "mf_deactivated": funds_sweep.deactivated,
        "failed": failed,
        **catalogue_sync.security_counts(securities),
    }
    details = {
        **result,
        "securities_sweep_skipped": not securities_sweep.guard_passed,
        "funds_sweep_skipped": not funds_sweep.guard_passed,
    }

    warnings = []
    if deactivated:
        warnings.append(f"{deactivated} instruments were deactivated during catalogue sync")
    if failed:
        warnings.append(f"{failed} rows failed to reconcile")

    return JobReport(
        result=result,
        processed=len(nse_rows) + len(schemes),
        updated=securities.updated + funds.updated,
        skipped=securities.skipped + funds.skipped,
        failed=failed,
        details=details,
        summary=(
            f"Stocks +{securities.created}/~{securities.updated}/-{securities_sweep.deactivated}, "
            f"MFs +{funds.created}/~{funds.updated}/-{funds_sweep.deactivated}"
        ),
        warning_count=deactivated + failed,
        warning_message="; ".join(warnings) or None,
    )


@register_job("sync-nse-universe")
async def sync_nse_universe_job(ctx: JobContext) -> JobReport:
    """Reconcile the NSE equity list without deactivating anything."""
    await ctx.progress(current="Fetching NSE securities...")
    rows = await retry_async(nse_vendor.fetch_nse_securities)
    await ctx.progress(total=len(rows), processed=0)
    ingested = await catalogue_sync.ingest_securities(rows, _ingest_progress(ctx))
    ctx.failed += ingested.failed
    upserts = ingested.created + ingested.updated
    return JobReport(
        result={"upserts": upserts},
        processed=ingested.rows,
        updated=upserts,
        skipped=ingested.skipped,
        failed=ingested.failed,
        details={"created": ingested.created, "updated": ingested.updated},
        summary=f"{upserts} NSE securities upserted",
        warning_count=ingested.failed,
        warning_message=f"{ingested.failed} NSE rows failed to reconcile",
    )


@register_job("sync-mf-universe")
async def sync_mf_universe_job(ctx: JobContext) -> JobReport:
    """Reconcile the AMFI scheme master without deactivating anything."""
    await ctx.progress(current="Fetching AMFI mutual fund list...")
    schemes = await retry_async(amfi_vendor.fetch_amfi_scheme_master)
    await ctx.progress(total=len(schemes), processed=0)
    ingested = await catalogue_sync.ingest_mutual_funds(schemes, _ingest_progress(ctx))
    ctx.failed += ingested.failed
    upserts = ingested.created + ingested.updated
    return JobReport(
        result={"upserts": upserts},
        processed=ingested.rows,
        updated=upserts,
        skipped=ingested.skipped,
        failed=ingested.failed,
        details={"created": ingested.created, "updated": ingested.updated},
        summary=f"{upserts} mutual funds upserted",
        warning_count=ingested.failed,
        warning_message=f"{ingested.failed} AMFI rows failed to reconcile",
    )


# =============================================================================
# PRICES
# =============================================================================


@register_job("sync-prices")
async def sync_prices_job(ctx: JobContext) -> JobReport:
    """
    Refresh prices for active stocks/ETFs and NAVs for active mutual funds.

    Symbols are processed in concurrent batches; a failing symbol is counted
    and never aborts the run.
    """
    stocks = await catalogue_repo.list_active([STOCK, ETF], limit=settings.price_sync_limit, with_symbol=True)
    funds = await catalogue_repo.list_active([MUTUAL_FUND], limit=settings.price_sync_limit, with_symbol=True)
    total = len(stocks) + len(funds)
    counts = price_sync.PriceSyncCounts()

    await ctx.progress(
        total=total,
        processed=0,
        current=f"Syncing {len(stocks)} stocks/ETFs and {len(funds)} mutual funds...",
    )

    async def on_stock_batch(done: int) -> None:
        ctx.failed = counts.failed
        await ctx.progress(processed=done, current=counts.summary())

    async def on_fund_batch(done: int) -> None:
        ctx.failed = counts.failed
        await ctx.progress(processed=len(stocks) + done, current=counts.summary())

    await price_sync.run_batches(
        stocks,
        settings.price_sync_batch_size,
        price_sync.refresh_security,
        counts,
        lambda option: option.symbol,
        on_stock_batch,
    )
    await price_sync.run_batches(
        funds,
        settings.nav_sync_batch_size,
        price_sync.refresh_mutual_fund,
        counts,
        lambda option: f"MF {option.symbol}",
        on_fund_batch,
    )

    return JobReport(
        result={
            "updated": counts.updated,
            "skipped_fresh": counts.skipped_fresh,
            "skipped_no_change": counts.skipped_no_change,
            "failed": counts.failed,
            "total": total,
        },
        processed=total,
        updated=counts.updated,
        skipped=counts.skipped,
        failed=counts.failed,
        details={
            "skipped_fresh": counts.skipped_fresh,
            "skipped_no_change": counts.skipped_no_change,
            "stock_count": len(stocks),
            "mutual_fund_count": len(funds),
        },
        summary=counts.summary(),
        warning_count=counts.failed,
        warning_message=f"{counts.failed} symbols failed during price sync",
    )


@register_job("sync-mf-nav")
async def sync_mf_nav_job(ctx: JobContext) -> JobReport:
    """Write the latest AMFI NAV of every active mutual fund into the price history."""
    await ctx.progress(current="Loading mutual funds...")
    funds = await catalogue_repo.list_active_symbols([MUTUAL_FUND])
    await ctx.progress(total=len(funds), processed=0, current="Fetching latest NAVs from AMFI...")
    nav_map = await retry_async(amfi_vendor.fetch_amfi_latest_nav_map)

    writes = 0
    failed = 0
    for index, (_, code) in enumerate(funds, start=1):
        entry = nav_map.get(str(code)) if code else None
        if entry is not None:
            try:
                await prices_repo.replace_point(price_sync.nav_symbol(code), entry.date, entry.nav, "amfi")
                writes += 1
            except Exception as e:
                failed += 1
                ctx.failed = failed
                logger.warning(f"Failed to store NAV for scheme {code}: {e}")
        if index % NAV_PROGRESS_EVERY == 0 or index == len(funds):
            await ctx.progress(processed=index, current=f"Updated NAV for {writes} funds...")

    return JobReport(
        result={"writes": writes},
        processed=len(funds),
        updated=writes,
        skipped=len(funds) - writes - failed,
        failed=failed,
        summary=f"Updated NAV for {writes} funds",
        warning_count=failed,
        warning_message=f"{failed} NAVs failed to store",
    )


# =============================================================================
# ORCHESTRATION
# =============================================================================


@register_job("run-maintenance")
async def run_maintenance_job(ctx: JobContext) -> JobReport:
    """Price sync followed by catalogue sync. Stops at the first failing step."""
    await ctx.progress(total=2, processed=0, current="Running price sync...")
    price = await execute_job("sync-prices", ctx.tracker)
    if not price.ok:
        raise _subjob_error("Price sync failed", price)

    await ctx.progress(processed=1, current="Running catalogue sync...")
    catalogue = await execute_job("sync-catalogue", ctx.tracker)
    if not catalogue.ok:
        raise _subjob_error("Catalogue sync failed", catalogue)

    return JobReport(
        result={"price": price.body, "catalogue": catalogue.body},
        processed=2,
        details={"price": price.body, "catalogue": catalogue.body},
        summary="Price and catalogue sync completed",
    )


@register_job("auto-sync-if-stale")
async def auto_sync_if_stale_job(ctx: JobContext) -> JobReport:
    """Trigger a price sync when the newest stored price is older than ``stale_data_hours``."""
    latest = await prices_repo.get_latest_date()
    if latest is None:
        reason = "No price data found"
    else:
        stored_at = datetime.combine(latest, time.min, tzinfo=UTC)
        hours_old = (datetime.now(UTC) - stored_at).total_seconds() / 3600
        if hours_old <= settings.stale_data_hours:
            reason = f"Data is fresh ({round(hours_old)} hours old)"
            return JobReport(result={"action": "no_action", "reason": reason}, summary=reason)
        reason = f"Data is {round(hours_old)} hours old (stale)"

    logger.info(f"Triggering price sync: {reason}")
    outcome = await execute_job("sync-prices", ctx.tracker)
    # The price sync records and alerts on its own failure
    return JobReport(
        result={"action": "triggered_sync", "reason": reason, "sync": outcome.body},
        processed=1,
        details={"reason": reason, "sync_status": outcome.status_code},
        summary=reason,
    )
