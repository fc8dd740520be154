"""Daily price adapters with provider fallback.

Providers are tried in priority order: TwelveData, AlphaVantage, then Yahoo
Finance. A provider is only consulted when its API key is configured (Yahoo
needs none). The first non-empty series wins.

Adding or removing a vendor means editing ``DEFAULT_PROVIDERS``.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime, timedelta
from typing import Protocol

import httpx
import pandas as pd
import yfinance as yf

from investoscope.core.config import settings
from investoscope.core.exceptions import VendorUnavailableError
from investoscope.core.logging import get_logger
from investoscope.services.series import PricePoint, PriceSeries, normalize_points

from .http import vendor_client


logger = get_logger("vendors.prices")

# Single executor for blocking yfinance calls
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="yfinance")

YAHOO_DEFAULT_LOOKBACK = timedelta(days=2 * 365)


def _to_float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class PriceProvider(Protocol):
    name: str

    def enabled(self) -> bool: ...

    async def fetch(
        self, symbol: str, since: date | None, client: httpx.AsyncClient
    ) -> list[PricePoint]: ...


class TwelveDataProvider:
    name = "twelvedata"
    url = "https://api.twelvedata.com/time_series"

    def enabled(self) -> bool:
        return bool(settings.twelvedata_api_key)

    async def fetch(self, symbol: str, since: date | None, client: httpx.AsyncClient) -> list[PricePoint]:
        # Smaller page when only recent points are needed
        response = await client.get(
            self.url,
            params={
                "symbol": symbol,
                "interval": "1day",
                "outputsize": "200" if since else "5000",
                "apikey": settings.twelvedata_api_key,
            },
        )
        if response.status_code == 429:
            raise VendorUnavailableError("TwelveData rate limit", vendor=self.name, http_status=429)
        if not response.is_success:
            return []

        payload = response.json()
        if payload.get("status") == "error":
            code = payload.get("code")
            raise VendorUnavailableError(
                f"TwelveData error {code}: {payload.get('message', '')}",
                vendor=self.name,
                http_status=code if isinstance(code, int) else None,
            )

        points: list[PricePoint] = []
        for value in payload.get("values") or []:
            close = _to_float(value.get("close"))
            raw_date = str(value.get("datetime", ""))[:10]
            try:
                day = date.fromisoformat(raw_date)
            except ValueError:
                continue
            if close is not None:
                points.append(PricePoint(day, close))
        return points


class AlphaVantageProvider:
    name = "alphavantage"
    url = "https://www.alphavantage.co/query"

    def enabled(self) -> bool:
        return bool(settings.alphavantage_api_key)

    async def fetch(self, symbol: str, since: date | None, client: httpx.AsyncClient) -> list[PricePoint]:
        response = await client.get(
            self.url,
            params={
                "function": "TIME_SERIES_DAILY",
                "symbol": symbol,
                "outputsize": "full",
                "apikey": settings.alphavantage_api_key,
            },
        )
        if not response.is_success:
            return []

        payload = response.json()
        # Throttled responses come back 200 with a "Note"/"Information" message
        note = payload.get("Note") or payload.get("Information")
        if note and "Time Series (Daily)" not in payload:
            raise VendorUnavailableError(
                f"AlphaVantage rate limit: {note}", vendor=self.name, http_status=429
            )

        points: list[PricePoint] = []
        for raw_date, values in (payload.get("Time Series (Daily)") or {}).items():
            close = _to_float((values or {}).get("4. close"))
            try:
                day = date.fromisoformat(raw_date)
            except ValueError:
                continue
            if close is not None:
                points.append(PricePoint(day, close))
        return points


class YahooProvider:
    name = "yahoo"

    def enabled(self) -> bool:
        return True

    @staticmethod
    def _history_sync(symbol: str, start: date) -> pd.DataFrame:
        """Blocking yfinance call."""
        return yf.Ticker(symbol).history(
            start=start.isoformat(),
            interval="1d",
            auto_adjust=False,
            actions=False,
            raise_errors=True,
        )

    async def fetch(self, symbol: str, since: date | None, client: httpx.AsyncClient) -> list[PricePoint]:
        start = since or (datetime.now(UTC) - YAHOO_DEFAULT_LOOKBACK).date()
        loop = asyncio.get_running_loop()
        frame = await loop.run_in_executor(_executor, self._history_sync, symbol, start)
        if frame is None or frame.empty or "Close" not in frame.columns:
            return []

        closes = frame["Close"].dropna()
        return [
            PricePoint(pd.Timestamp(index).date(), float(value))
            for index, value in closes.items()
        ]


DEFAULT_PROVIDERS: tuple[PriceProvider, ...] = (
    TwelveDataProvider(),
    AlphaVantageProvider(),
    YahooProvider(),
)


async def fetch_daily_prices(
    symbol: str,
    since: date | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    providers: tuple[PriceProvider, ...] | None = None,
) -> PriceSeries:
    """
    Fetch an ascending daily close series for ``symbol``.

    ``since`` only shrinks the page requested from vendors; callers still
    filter by date themselves.

    Returns:
        The first non-empty series, tagged with its provider. An empty
        series when every enabled provider answered without data.

    Raises:
        The last provider error when every enabled provider raised.
    """
    chain = [p for p in (providers or DEFAULT_PROVIDERS) if p.enabled()]
    last_error: Exception | None = None
    answered = False

    async with vendor_client(client) as http:
        for provider in chain:
            try:
                points = normalize_points(await provider.fetch(symbol, since, http))
            except Exception as e:
                last_error = e
                logger.debug(f"{provider.name} prices failed for {symbol}: {e}")
                continue
            answered = True
            if points:
                return PriceSeries(points=points, source=provider.name)

    if last_error is not None and not answered:
        raise last_error
    return PriceSeries(points=[], source="none")
