"""Best-effort fundamentals enrichment from Yahoo Finance."""

from __future__ import annotations

import asyncio
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import yfinance as yf

from investoscope.core.logging import get_logger


logger = get_logger("vendors.fundamentals")

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="yfinance-info")


@dataclass(frozen=True, slots=True)
class Fundamentals:
    pe_ratio: float | None = None
    beta: float | None = None
    market_cap: float | None = None
    expense_ratio: float | None = None

    def is_empty(self) -> bool:
        return all(
            v is None for v in (self.pe_ratio, self.beta, self.market_cap, self.expense_ratio)
        )


def _first_finite(info: dict[str, Any], *keys: str) -> float | None:
    for key in keys:
        value = info.get(key)
        if value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            return number
    return None


def parse_fundamentals(info: dict[str, Any]) -> Fundamentals:
    return Fundamentals(
        pe_ratio=_first_finite(info, "trailingPE", "forwardPE"),
        beta=_first_finite(info, "beta"),
        market_cap=_first_finite(info, "marketCap"),
        expense_ratio=_first_finite(info, "netExpenseRatio", "annualReportExpenseRatio", "expenseRatio"),
    )


def _info_sync(symbol: str) -> dict[str, Any]:
    """Blocking yfinance call."""
    return yf.Ticker(symbol).info or {}


async def fetch_fundamentals(symbol: str) -> Fundamentals | None:
    """P/E, beta and market cap for ``symbol``, or None on any failure."""
    try:
        loop = asyncio.get_running_loop()
        info = await loop.run_in_executor(_executor, _info_sync, symbol)
    except Exception as e:
        logger.debug(f"Fundamentals unavailable for {symbol}: {e}")
        return None

    if not isinstance(info, dict):
        return None
    return parse_fundamentals(info)
