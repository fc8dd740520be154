"""MFAPI mutual fund NAV history adapter."""

from __future__ import annotations

from datetime import date, datetime
from urllib.parse import quote

import httpx

from investoscope.core.exceptions import VendorUnavailableError
from investoscope.services.series import PricePoint, PriceSeries, normalize_points

from .amfi import parse_nav_value
from .http import vendor_client


MFAPI_URL = "https://api.mfapi.in/mf/{code}"
SOURCE = "mfapi"


def parse_mfapi_payload(payload: dict) -> list[PricePoint]:
    """MFAPI returns newest-first ``{"date": "dd-mm-yyyy", "nav": "12.3456"}`` entries."""
    points: list[PricePoint] = []
    for item in payload.get("data") or []:
        raw_date = str(item.get("date") or "").strip()
        nav = parse_nav_value(str(item.get("nav") or ""))
        if not raw_date or nav is None:
            continue
        try:
            day = datetime.strptime(raw_date, "%d-%m-%Y").date()
        except ValueError:
            continue
        points.append(PricePoint(day, nav))
    return normalize_points(points)


async def fetch_nav_history(
    scheme_code: str,
    since: date | None = None,
    client: httpx.AsyncClient | None = None,
) -> PriceSeries:
    """Ascending NAV history, limited to dates on or after ``since`` when given."""
    async with vendor_client(client) as http:
        response = await http.get(MFAPI_URL.format(code=quote(scheme_code, safe="")))

    if not response.is_success:
        raise VendorUnavailableError(
            f"MFAPI returned {response.status_code}",
            vendor=SOURCE,
            http_status=response.status_code,
        )

    points = parse_mfapi_payload(response.json())
    if since is not None:
        points = [p for p in points if p.date >= since]
    return PriceSeries(points=points, source=SOURCE)
