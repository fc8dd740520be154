"""Keyword heuristics that classify vendor rows into catalogue categories.

Pure functions of (symbol, name). Nothing here touches the network or the
database, so the rules can be swapped or tuned in isolation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from investoscope.database.orm import ETF, MUTUAL_FUND, STOCK


# ETF subtypes
GOLD = "GOLD"
BROAD_MARKET = "BROAD_MARKET"
SECTOR = "SECTOR"
INTERNATIONAL = "INTERNATIONAL"

# Mutual fund subtypes
INDEX = "INDEX"
EQUITY = "EQUITY"
DEBT = "DEBT"
HYBRID = "HYBRID"

NSE_SUFFIX = ".NS"

_BROAD_KEYWORDS = ("nifty", "sensex", "broad")
_SECTOR_KEYWORDS = ("bank", "pharma", "auto", "infra", "sector")
_INTERNATIONAL_KEYWORDS = ("international", "nasdaq")
# Short tokens only count as whole words ("it" must not match "Unity")
_SECTOR_WORDS = re.compile(r"\bit\b")
_INTERNATIONAL_WORDS = re.compile(r"\bus\b")


@dataclass(frozen=True, slots=True)
class SecurityClass:
    category: str
    vendor_symbol: str
    subtype_etf: str | None
    risk_level: str
    risk_reason: str


@dataclass(frozen=True, slots=True)
class FundClass:
    subtype_mf: str
    risk_level: str
    risk_reason: str


def normalize_vendor_symbol(symbol: str) -> str:
    """Qualify a bare NSE ticker with the exchange suffix."""
    symbol = symbol.strip()
    return symbol if "." in symbol else f"{symbol}{NSE_SUFFIX}"


def looks_like_etf(symbol: str, name: str) -> bool:
    lower = name.lower()
    upper_sym = symbol.upper()
    return (
        "etf" in lower
        or upper_sym.endswith("BEES")
        or "BEES" in upper_sym
        or "ETF" in upper_sym
        or "exchange traded fund" in lower
        or "exchange-traded fund" in lower
        or ("index fund" in lower and "mutual fund" not in lower)
    )


def classify_etf_subtype(symbol: str, name: str) -> str:
    """Bucket an ETF by what it tracks; ambiguous names are broad market."""
    lower = name.lower()
    if "gold" in lower or "gold" in symbol.lower():
        return GOLD
    if any(k in lower for k in _BROAD_KEYWORDS):
        return BROAD_MARKET
    if any(k in lower for k in _SECTOR_KEYWORDS) or _SECTOR_WORDS.search(lower):
        return SECTOR
    if any(k in lower for k in _INTERNATIONAL_KEYWORDS) or _INTERNATIONAL_WORDS.search(lower):
        return INTERNATIONAL
    return BROAD_MARKET


def classify_security(symbol: str, name: str) -> SecurityClass:
    if looks_like_etf(symbol, name):
        return SecurityClass(
            category=ETF,
            vendor_symbol=normalize_vendor_symbol(symbol),
            subtype_etf=classify_etf_subtype(symbol, name),
            risk_level="medium",
            risk_reason="Tracks a basket/index; lower fees",
        )
    return SecurityClass(
        category=STOCK,
        vendor_symbol=normalize_vendor_symbol(symbol),
        subtype_etf=None,
        risk_level="high",
        risk_reason="Single company; market swings",
    )


def classify_mutual_fund(name: str) -> FundClass:
    lower = name.lower()
    if "index" in lower:
        subtype = INDEX
    elif "liquid" in lower or "debt" in lower or "bond" in lower:
        subtype = DEBT
    elif "hybrid" in lower or "balanced" in lower:
        subtype = HYBRID
    else:
        subtype = EQUITY

    if subtype == DEBT:
        return FundClass(subtype, "low", "Debt/liquid; lower volatility")
    if subtype == INDEX:
        return FundClass(subtype, "medium", "Index-tracking; diversified")
    return FundClass(subtype, "high", "Equity heavy; volatile")


__all__ = [
    "BROAD_MARKET",
    "DEBT",
    "EQUITY",
    "ETF",
    "GOLD",
    "HYBRID",
    "INDEX",
    "INTERNATIONAL",
    "MUTUAL_FUND",
    "SECTOR",
    "STOCK",
    "FundClass",
    "SecurityClass",
    "classify_etf_subtype",
    "classify_mutual_fund",
    "classify_security",
    "looks_like_etf",
    "normalize_vendor_symbol",
]
