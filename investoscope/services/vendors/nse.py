"""NSE securities list adapter.

NSE blocks non-browser traffic and moves its download endpoints around, so
the list is requested from several URLs in order with browser-like headers.
The first one that returns a parseable, non-trivial payload wins.
"""

from __future__ import annotations

import io
import json
from typing import Any

import httpx
import pandas as pd

from investoscope.core.config import settings
from investoscope.core.exceptions import VendorUnavailableError
from investoscope.core.logging import get_logger

from .http import vendor_client


logger = get_logger("vendors.nse")

NSE_URLS = (
    "https://www.nseindia.com/api/reportDownload?reportName=equities_t2t&fileName=cm_securities_available_for_trading.csv",
    "https://archives.nseindia.com/content/equities/EQUITY_L.csv",
    "https://www.nseindia.com/api/equity-stockIndices?index=SECURITIES%20IN%20F%26O",
)

NSE_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/csv,application/json,*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Referer": "https://www.nseindia.com/",
    "Origin": "https://www.nseindia.com",
}

# Anything shorter is an error page or an empty file
MIN_PAYLOAD_CHARS = 100

REMEDIES = (
    "Try: 1) Check internet connection, 2) Disable VPN, "
    "3) Wait a few minutes (NSE rate-limits), "
    "4) Use manual data import or alternative data source."
)


def _rows_from_json(payload: Any) -> list[dict[str, str]]:
    """Map the index constituents JSON onto the CSV column names."""
    items = payload.get("data") if isinstance(payload, dict) else payload
    rows: list[dict[str, str]] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        meta = item.get("meta") or {}
        symbol = str(item.get("symbol") or meta.get("symbol") or "").strip()
        name = str(meta.get("companyName") or item.get("companyName") or "").strip()
        # The index row itself ("SECURITIES IN F&O") has no company metadata
        if symbol and name:
            rows.append({"SYMBOL": symbol, "NAME OF COMPANY": name})
    return rows


def parse_nse_payload(text: str) -> list[dict[str, str]]:
    """Parse an NSE download (CSV or JSON) into raw row dicts.

    Raises ValueError when the payload cannot be interpreted.
    """
    stripped = text.lstrip()
    if stripped.startswith("{") or stripped.startswith("["):
        return _rows_from_json(json.loads(stripped))

    frame = pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
        skip_blank_lines=True,
    )
    frame.columns = [str(col).strip() for col in frame.columns]
    frame = frame.apply(lambda col: col.str.strip())
    return frame.to_dict(orient="records")


async def fetch_nse_securities(client: httpx.AsyncClient | None = None) -> list[dict[str, str]]:
    """
    Fetch the NSE securities list.

    Each URL gets one attempt bounded by the vendor timeout. HTTP errors,
    undersized payloads and parse failures move on to the next URL.

    Raises:
        VendorUnavailableError: every URL failed. The message carries the last
            error and suggested remedies.
    """
    last_error = "Unknown error"
    last_status: int | None = None

    async with vendor_client(client, timeout=settings.vendor_timeout_seconds, headers=NSE_HEADERS) as http:
        for url in NSE_URLS:
            try:
                response = await http.get(url, headers=NSE_HEADERS)
            except httpx.TimeoutException:
                last_error = f"NSE request timed out ({settings.vendor_timeout_seconds}s)"
                logger.warning(last_error, extra={"extra_fields": {"url": url}})
                continue
            except httpx.HTTPError as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning(f"NSE request failed: {last_error}", extra={"extra_fields": {"url": url}})
                continue

            if response.status_code >= 400:
                last_status = response.status_code
                last_error = f"NSE fetch failed: {response.status_code} {response.reason_phrase}"
                logger.warning(last_error, extra={"extra_fields": {"url": url}})
                continue

            text = response.text
            if not text or len(text) < MIN_PAYLOAD_CHARS:
                last_error = "NSE returned empty or invalid data"
                logger.warning(last_error, extra={"extra_fields": {"url": url}})
                continue

            try:
                rows = parse_nse_payload(text)
            except (ValueError, pd.errors.ParserError) as e:
                last_error = f"CSV parse failed: {e}"
                logger.warning(last_error, extra={"extra_fields": {"url": url}})
                continue

            if rows:
                logger.info(f"Fetched {len(rows)} NSE securities", extra={"extra_fields": {"url": url}})
                return rows
            last_error = "NSE returned no rows"

    raise VendorUnavailableError(
        message=(
            "NSE securities CSV fetch failed. NSE may be blocking requests or the "
            f"endpoint has changed. Last error: {last_error}. {REMEDIES}"
        ),
        vendor="nse",
        http_status=last_status,
    )
