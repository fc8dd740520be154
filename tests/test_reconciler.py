"""Tests for vendor row reconciliation and duplicate repair."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

from investoscope.core.config import settings
from investoscope.database.orm import ETF, MUTUAL_FUND, STOCK
from investoscope.services import reconciler
from investoscope.services.reconciler import CREATED, SKIPPED, UPDATED
from investoscope.services.series import PricePoint, PriceSeries
from investoscope.services.vendors import prices as price_vendor
from investoscope.services.vendors.amfi import AmfiScheme


def _nse_row(symbol: str, name: str) -> dict[str, str]:
    return {"SYMBOL": symbol, "NAME OF COMPANY": name, "SERIES": "EQ"}


def _scheme(code: str, name: str) -> AmfiScheme:
    return AmfiScheme(scheme_code=code, scheme_name=name, nav="10.0", date="17-Oct-2026")


class TestReconcileSecurity:
    async def test_creates_missing_stock(self, store):
        result = await reconciler.reconcile_security(_nse_row("RELIANCE", "Reliance Industries Limited"))

        assert result.status == CREATED
        assert result.symbol == "RELIANCE.NS"
        assert result.category == STOCK
        (option,) = store.options.values()
        assert option.symbol == "RELIANCE.NS"
        assert option.risk_level == "high"
        assert option.active

    async def test_updates_and_reactivates_existing(self, store):
        existing = store.add_option(symbol="TCS.NS", name="Old name", active=False)

        result = await reconciler.reconcile_security(_nse_row("TCS", "Tata Consultancy Services Limited"))

        assert result.status == UPDATED
        assert existing.active
        assert existing.name == "Tata Consultancy Services Limited"
        assert len(store.options) == 1

    async def test_symbol_moves_from_stock_to_etf(self, store):
        existing = store.add_option(symbol="NIFTYBEES.NS", name="Nifty BeES", category=STOCK)

        result = await reconciler.reconcile_security(_nse_row("NIFTYBEES", "Nippon India ETF Nifty BeES"))

        assert result.category == ETF
        assert existing.category == ETF
        assert existing.subtype_etf == "BROAD_MARKET"

    async def test_symbol_moving_back_to_stock_drops_etf_subtype(self, store):
        existing = store.add_option(
            symbol="GOLDCO.NS", name="Gold Co ETF", category=ETF, subtype_etf="GOLD"
        )

        result = await reconciler.reconcile_security(_nse_row("GOLDCO", "Goldco Industries Limited"))

        assert result.category == STOCK
        assert existing.category == STOCK
        assert existing.subtype_etf is None

    async def test_duplicates_keep_most_recent(self, store):
        older = store.add_option(symbol="INFY.NS", name="Infosys", last_updated=datetime(2025, 1, 1, tzinfo=UTC))
        newer = store.add_option(symbol="INFY.NS", name="Infosys", last_updated=datetime(2026, 1, 1, tzinfo=UTC))

        result = await reconciler.reconcile_security(_nse_row("INFY", "Infosys Limited"))

        assert result.status == UPDATED
        assert not older.active
        assert newer.active
        assert newer.name == "Infosys Limited"

    async def test_rows_without_name_are_skipped(self, store):
        result = await reconciler.reconcile_security({"SYMBOL": "XYZ", "NAME OF COMPANY": "  "})
        assert result.status == SKIPPED
        assert store.options == {}

    async def test_current_price_is_looked_up_when_enabled(self, store, monkeypatch):
        monkeypatch.setattr(settings, "catalogue_fetch_prices", True)
        fetch = AsyncMock(
            return_value=PriceSeries([PricePoint(datetime(2026, 10, 16).date(), 1450.5)], "yahoo")
        )
        monkeypatch.setattr(price_vendor, "fetch_daily_prices", fetch)

        await reconciler.reconcile_security(_nse_row("HDFCBANK", "HDFC Bank Limited"))

        fetch.assert_awaited_once_with("HDFCBANK.NS")
        (option,) = store.options.values()
        assert option.unit_price == 1450.5

    async def test_price_lookup_failure_still_creates(self, store, monkeypatch):
        monkeypatch.setattr(settings, "catalogue_fetch_prices", True)
        monkeypatch.setattr(price_vendor, "fetch_daily_prices", AsyncMock(side_effect=RuntimeError("down")))

        result = await reconciler.reconcile_security(_nse_row("ITC", "ITC Limited"))

        assert result.status == CREATED
        (option,) = store.options.values()
        assert option.unit_price is None


class TestReconcileMutualFund:
    async def test_creates_with_minimum_amounts(self, store):
        result = await reconciler.reconcile_mutual_fund(_scheme("120465", "Axis Bluechip Fund - Direct Growth"))

        assert result.status == CREATED
        (option,) = store.options.values()
        assert option.category == MUTUAL_FUND
        assert option.min_lump_sum == 100
        assert option.min_sip == 100
        assert option.subtype_mf == "EQUITY"

    async def test_matches_only_mutual_funds(self, store):
        """A stock sharing the scheme code is not touched."""
        stock = store.add_option(symbol="120465", name="Unrelated", category=STOCK)

        result = await reconciler.reconcile_mutual_fund(_scheme("120465", "Axis Liquid Fund"))

        assert result.status == CREATED
        assert stock.name == "Unrelated"
        assert len(store.active_options(MUTUAL_FUND)) == 1

    async def test_updates_existing_fund(self, store):
        fund = store.add_option(symbol="119551", name="Old", category=MUTUAL_FUND, active=False)

        result = await reconciler.reconcile_mutual_fund(_scheme("119551", "ABSL Banking & PSU Debt Fund"))

        assert result.status == UPDATED
        assert fund.active
        assert fund.subtype_mf == "DEBT"


class TestDuplicateScan:
    async def test_find_and_clean(self, store):
        store.add_option(symbol="SBIN.NS", name="SBI a", last_updated=datetime(2025, 1, 1, tzinfo=UTC))
        keep = store.add_option(symbol="SBIN.NS", name="SBI b", last_updated=datetime(2026, 1, 1, tzinfo=UTC))
        store.add_option(symbol=None, name="No symbol 1", category=MUTUAL_FUND)
        store.add_option(symbol=None, name="No symbol 2", category=MUTUAL_FUND)
        store.add_option(symbol="SBIN.NS", name="SBI ETF", category=ETF)

        report = await reconciler.find_duplicates()
        assert report["duplicates"] == 2
        assert report["total_duplicate_items"] == 2
        keys = {group["key"] for group in report["details"]}
        assert keys == {f"{STOCK}:SBIN.NS", f"{MUTUAL_FUND}:NO_SYMBOL"}

        cleaned = await reconciler.clean_duplicates()
        assert cleaned == 2
        assert keep.active
        assert (await reconciler.find_duplicates())["duplicates"] == 0
