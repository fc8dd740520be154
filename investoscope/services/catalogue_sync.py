"""Catalogue ingestion: reconcile every vendor row, then sweep stale records."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from investoscope.core.logging import get_logger
from investoscope.database.orm import ETF, STOCK
from investoscope.services import reconciler
from investoscope.services.reconciler import CREATED, SKIPPED, UPDATED, ReconcileResult
from investoscope.services.vendors.amfi import AmfiScheme


logger = get_logger("services.catalogue_sync")

# Progress is pushed every N rows
PROGRESS_EVERY = 50

ProgressCallback = Callable[[int, int, str], Awaitable[Any]]


@dataclass
class IngestResult:
    rows: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    created_by_category: dict[str, int] = field(default_factory=dict)
    updated_by_category: dict[str, int] = field(default_factory=dict)
    seen: set[str] = field(default_factory=set)

    def record(self, result: ReconcileResult) -> None:
        if result.status == SKIPPED:
            self.skipped += 1
            return
        if result.symbol:
            self.seen.add(result.symbol)
        bucket = self.created_by_category if result.status == CREATED else self.updated_by_category
        if result.status == CREATED:
            self.created += 1
        elif result.status == UPDATED:
            self.updated += 1
        if result.category:
            bucket[result.category] = bucket.get(result.category, 0) + 1


async def _ingest(
    rows: list,
    reconcile: Callable[[Any], Awaitable[ReconcileResult]],
    describe: Callable[[Any], str],
    row_symbol: Callable[[Any], str],
    on_progress: ProgressCallback | None,
) -> IngestResult:
    result = IngestResult(rows=len(rows))
    for index, row in enumerate(rows):
        try:
            result.record(await reconcile(row))
        except Exception as e:
            # The feed still lists this symbol, so the sweep must not deactivate it
            symbol = row_symbol(row)
            if symbol:
                result.seen.add(symbol)
            result.failed += 1
            logger.warning(
                f"Failed to reconcile {describe(row)}: {e}",
                extra={"extra_fields": {"row": describe(row)}},
            )
        if on_progress and (index % PROGRESS_EVERY == 0 or index == len(rows) - 1):
            await on_progress(len(rows), index + 1, f"Processing {describe(row) or 'row'}...")
    return result


async def ingest_securities(
    rows: Iterable[Mapping[str, Any]],
    on_progress: ProgressCallback | None = None,
) -> IngestResult:
    """Reconcile NSE rows one by one. A failing row is counted, not raised."""
    return await _ingest(
        list(rows),
        reconciler.reconcile_security,
        reconciler.nse_row_symbol,
        reconciler.nse_row_vendor_symbol,
        on_progress,
    )


async def ingest_mutual_funds(
    rows: Iterable[AmfiScheme],
    on_progress: ProgressCallback | None = None,
) -> IngestResult:
    """Reconcile AMFI schemes one by one. A failing row is counted, not raised."""
    return await _ingest(
        list(rows),
        reconciler.reconcile_mutual_fund,
        lambda row: row.scheme_code,
        lambda row: (row.scheme_code or "").strip(),
        on_progress,
    )


def security_counts(result: IngestResult) -> dict[str, int]:
    """Created/updated split by STOCK and ETF."""
    return {
        "stock_only_created": result.created_by_category.get(STOCK, 0),
        "stock_only_updated": result.updated_by_category.get(STOCK, 0),
        "etf_created": result.created_by_category.get(ETF, 0),
        "etf_updated": result.updated_by_category.get(ETF, 0),
    }
