"""External data vendors: NSE, AMFI, MFAPI, TwelveData, AlphaVantage, Yahoo Finance."""

from .amfi import AmfiScheme, NavEntry, fetch_amfi_latest_nav_map, fetch_amfi_scheme_master
from .fundamentals import Fundamentals, fetch_fundamentals
from .mfapi import fetch_nav_history
from .nse import fetch_nse_securities
from .prices import fetch_daily_prices
from .resilience import retry_async, with_retry


__all__ = [
    "AmfiScheme",
    "Fundamentals",
    "NavEntry",
    "fetch_amfi_latest_nav_map",
    "fetch_amfi_scheme_master",
    "fetch_daily_prices",
    "fetch_fundamentals",
    "fetch_nav_history",
    "fetch_nse_securities",
    "retry_async",
    "with_retry",
]
