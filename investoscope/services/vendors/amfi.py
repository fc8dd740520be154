"""AMFI scheme master / NAV feed adapter.

NAVAll.txt is a semicolon-delimited dump of every open scheme with its latest
NAV, interleaved with AMC and scheme-category heading lines.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime

import httpx

from investoscope.core.exceptions import VendorUnavailableError
from investoscope.core.logging import get_logger

from .http import vendor_client


logger = get_logger("vendors.amfi")

AMFI_NAV_URL = "https://www.amfiindia.com/spages/NAVAll.txt"

AMFI_COLUMNS = (
    "Scheme Code",
    "ISIN Div Payout/ISIN Growth",
    "ISIN Div Reinvestment",
    "Scheme Name",
    "Net Asset Value",
    "Date",
)


@dataclass(frozen=True, slots=True)
class AmfiScheme:
    scheme_code: str
    scheme_name: str
    nav: str
    date: str
    isin_growth: str = ""
    isin_reinvestment: str = ""


@dataclass(frozen=True, slots=True)
class NavEntry:
    date: date
    nav: float


def parse_nav_value(raw: str) -> float | None:
    try:
        value = float(raw.replace(",", "").strip())
    except (AttributeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def parse_amfi_date(raw: str) -> date | None:
    """AMFI prints dates as 17-Oct-2026."""
    raw = (raw or "").strip()
    for fmt in ("%d-%b-%Y", "%d-%m-%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def parse_amfi_text(text: str) -> list[AmfiScheme]:
    """Parse NAVAll.txt into scheme rows.

    Heading lines have fewer than six fields and the column header line has
    a non-numeric scheme code; both are skipped.
    """
    schemes: list[AmfiScheme] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = [part.strip() for part in line.split(";")]
        if len(parts) < len(AMFI_COLUMNS):
            continue
        code, isin_growth, isin_reinvest, name, nav, nav_date = parts[: len(AMFI_COLUMNS)]
        if not code.isdigit():
            continue
        schemes.append(
            AmfiScheme(
                scheme_code=code,
                scheme_name=name,
                nav=nav,
                date=nav_date,
                isin_growth=isin_growth,
                isin_reinvestment=isin_reinvest,
            )
        )
    return schemes


async def fetch_amfi_scheme_master(client: httpx.AsyncClient | None = None) -> list[AmfiScheme]:
    """
    Fetch the AMFI scheme master.

    Raises:
        VendorUnavailableError: non-2xx response or transport failure.
    """
    async with vendor_client(client) as http:
        try:
            response = await http.get(AMFI_NAV_URL)
        except httpx.HTTPError as e:
            raise VendorUnavailableError(
                message=f"AMFI master fetch failed: {e or e.__class__.__name__}",
                vendor="amfi",
            ) from e

    if not response.is_success:
        raise VendorUnavailableError(
            message=f"AMFI master fetch failed: {response.status_code}",
            vendor="amfi",
            http_status=response.status_code,
        )

    schemes = parse_amfi_text(response.text)
    logger.info(f"Fetched {len(schemes)} AMFI schemes")
    return schemes


async def fetch_amfi_latest_nav_map(client: httpx.AsyncClient | None = None) -> dict[str, NavEntry]:
    """Scheme code to latest NAV. Rows with a non-numeric NAV or unreadable date are skipped."""
    nav_map: dict[str, NavEntry] = {}
    for scheme in await fetch_amfi_scheme_master(client):
        nav = parse_nav_value(scheme.nav)
        nav_date = parse_amfi_date(scheme.date)
        if nav is None or nav_date is None:
            continue
        nav_map[scheme.scheme_code] = NavEntry(date=nav_date, nav=nav)
    return nav_map
