"""Map vendor rows onto catalogue records.

Each reconcile call looks up every record carrying the row's symbol and then
creates, updates, or repairs duplicates before updating. Duplicate repair
lives here because the lookup already returned the whole candidate set.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from investoscope.core.config import settings
from investoscope.core.logging import get_logger
from investoscope.database.orm import MUTUAL_FUND, InvestmentOption
from investoscope.repositories import catalogue_orm as catalogue_repo
from investoscope.services.classification import (
    classify_mutual_fund,
    classify_security,
    normalize_vendor_symbol,
)
from investoscope.services.vendors import prices as price_vendor
from investoscope.services.vendors.amfi import AmfiScheme


logger = get_logger("services.reconciler")

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"

DEFAULT_MIN_AMOUNT = 100

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    status: str
    symbol: str | None = None
    category: str | None = None


def _first_present(row: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def nse_row_symbol(row: Mapping[str, Any]) -> str:
    return _first_present(row, "SYMBOL", "Symbol", "symbol")


def nse_row_name(row: Mapping[str, Any]) -> str:
    return _first_present(row, "NAME OF COMPANY", "NAME", "Name", "name")


def nse_row_vendor_symbol(row: Mapping[str, Any]) -> str:
    """Catalogue symbol a row maps to, or "" when the row has no symbol."""
    symbol = nse_row_symbol(row)
    return normalize_vendor_symbol(symbol) if symbol else ""


def pick_survivor(records: Sequence[InvestmentOption]) -> tuple[InvestmentOption, list[InvestmentOption]]:
    """Most recently updated record first; the rest are duplicates."""
    ordered = sorted(records, key=lambda r: r.last_updated or _EPOCH, reverse=True)
    return ordered[0], ordered[1:]


async def _upsert(
    matches: Sequence[InvestmentOption],
    updates: dict[str, Any],
    create_fields: dict[str, Any],
) -> str:
    if not matches:
        await catalogue_repo.create_option(**create_fields)
        return CREATED

    keep = matches[0]
    if len(matches) > 1:
        keep, duplicates = pick_survivor(matches)
        await catalogue_repo.deactivate_options([d.id for d in duplicates])
        logger.info(
            f"Deactivated {len(duplicates)} duplicate(s) of {keep.symbol}",
            extra={"extra_fields": {"symbol": keep.symbol, "kept_id": keep.id}},
        )

    await catalogue_repo.update_option(keep.id, **updates)
    return UPDATED


async def _current_price(vendor_symbol: str) -> float | None:
    """Latest close, or None. Failures are left for the price sync to fix."""
    if not settings.catalogue_fetch_prices:
        return None
    try:
        series = await price_vendor.fetch_daily_prices(vendor_symbol)
    except Exception as e:
        logger.debug(f"Price lookup failed for {vendor_symbol}: {e}")
        return None
    latest = series.latest
    return latest.close if latest else None


async def reconcile_security(row: Mapping[str, Any]) -> ReconcileResult:
    """Upsert one NSE securities row as a STOCK or ETF."""
    symbol = nse_row_symbol(row)
    name = nse_row_name(row)
    if not symbol or not name:
        return ReconcileResult(SKIPPED)

    classified = classify_security(symbol, name)
    vendor_symbol = classified.vendor_symbol
    price = await _current_price(vendor_symbol)
    now = datetime.now(UTC)

    updates: dict[str, Any] = {
        "active": True,
        "category": classified.category,
        "name": name,
        "last_updated": now,
    }
    if price:
        updates["unit_price"] = price
    # None for a STOCK, clearing a subtype left over from an earlier ETF listing
    updates["subtype_etf"] = classified.subtype_etf

    # Any category: a symbol may move between STOCK and ETF
    matches = await catalogue_repo.find_by_symbol(vendor_symbol)
    status = await _upsert(
        matches,
        updates,
        {
            "category": classified.category,
            "name": name,
            "symbol": vendor_symbol,
            "unit_price": price,
            "subtype_etf": classified.subtype_etf,
            "risk_level": classified.risk_level,
            "risk_reason": classified.risk_reason,
            "active": True,
            "last_updated": now,
        },
    )
    return ReconcileResult(status, vendor_symbol, classified.category)


async def reconcile_mutual_fund(row: AmfiScheme) -> ReconcileResult:
    """Upsert one AMFI scheme, keyed by scheme code."""
    code = (row.scheme_code or "").strip()
    name = (row.scheme_name or "").strip()
    if not code or not name:
        return ReconcileResult(SKIPPED)

    classified = classify_mutual_fund(name)
    now = datetime.now(UTC)

    matches = await catalogue_repo.find_by_symbol(code, category=MUTUAL_FUND)
    status = await _upsert(
        matches,
        {
            "active": True,
            "name": name,
            "subtype_mf": classified.subtype_mf,
            "last_updated": now,
        },
        {
            "category": MUTUAL_FUND,
            "name": name,
            "symbol": code,
            "subtype_mf": classified.subtype_mf,
            "min_lump_sum": DEFAULT_MIN_AMOUNT,
            "min_sip": DEFAULT_MIN_AMOUNT,
            "unit_price": None,
            "risk_level": classified.risk_level,
            "risk_reason": classified.risk_reason,
            "active": True,
            "last_updated": now,
        },
    )
    return ReconcileResult(status, code, MUTUAL_FUND)


# =============================================================================
# Catalogue-wide duplicate scan (admin)
# =============================================================================


def group_duplicates(options: Iterable[InvestmentOption]) -> dict[str, list[InvestmentOption]]:
    """Active records grouped by ``category:symbol``; only groups of two or more."""
    groups: dict[str, list[InvestmentOption]] = defaultdict(list)
    for option in options:
        groups[f"{option.category}:{option.symbol or 'NO_SYMBOL'}"].append(option)
    return {key: items for key, items in groups.items() if len(items) > 1}


async def find_duplicates() -> dict[str, Any]:
    groups = group_duplicates(await catalogue_repo.list_active())
    return {
        "duplicates": len(groups),
        "total_duplicate_items": sum(len(items) - 1 for items in groups.values()),
        "details": [
            {
                "key": key,
                "count": len(items),
                "ids": [item.id for item in items],
                "names": [item.name for item in items],
            }
            for key, items in groups.items()
        ],
    }


async def clean_duplicates() -> int:
    """Deactivate all but the most recently updated record in each duplicate group."""
    to_deactivate: list[int] = []
    for items in group_duplicates(await catalogue_repo.list_active()).values():
        _, duplicates = pick_survivor(items)
        to_deactivate.extend(d.id for d in duplicates)

    if to_deactivate:
        await catalogue_repo.deactivate_options(to_deactivate)
        logger.info(f"Deactivated {len(to_deactivate)} duplicate catalogue records")
    return len(to_deactivate)
