"""Tests for vendor adapters, driven through httpx.MockTransport."""

from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from investoscope.core.config import settings
from investoscope.core.exceptions import VendorUnavailableError, is_rate_limit_error
from investoscope.services.series import PricePoint
from investoscope.services.vendors import amfi, mfapi, nse
from investoscope.services.vendors.fundamentals import parse_fundamentals
from investoscope.services.vendors.prices import (
    AlphaVantageProvider,
    TwelveDataProvider,
    fetch_daily_prices,
)


NSE_CSV = (
    "SYMBOL,NAME OF COMPANY, SERIES, DATE OF LISTING\n"
    "RELIANCE, Reliance Industries Limited, EQ, 29-NOV-1995\n"
    "NIFTYBEES, Nippon India ETF Nifty BeES, EQ, 08-JAN-2002\n"
)

AMFI_TEXT = """Scheme Code;ISIN Div Payout/ ISIN Growth;ISIN Div Reinvestment;Scheme Name;Net Asset Value;Date

Open Ended Schemes(Debt Scheme - Banking and PSU Fund)

Aditya Birla Sun Life Mutual Fund

119551;INF209KA12Z1;INF209KA13Z9;Aditya Birla Sun Life Banking & PSU Debt Fund - DIRECT - IDCW;105.3012;17-Oct-2026
120465;INF846K01EW2;-;Axis Bluechip Fund - Direct Plan - Growth;62.41;17-Oct-2026
999999;-;-;Wound Up Scheme;N.A.;17-Oct-2026
"""


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# NSE
# =============================================================================


class TestParseNsePayload:
    def test_csv_columns_and_values_are_stripped(self):
        rows = nse.parse_nse_payload(NSE_CSV)
        assert rows[0]["SYMBOL"] == "RELIANCE"
        assert rows[0]["NAME OF COMPANY"] == "Reliance Industries Limited"
        assert rows[1]["SERIES"] == "EQ"

    def test_index_json(self):
        payload = {
            "data": [
                {"symbol": "SECURITIES IN F&O"},
                {"symbol": "TCS", "meta": {"companyName": "Tata Consultancy Services Limited"}},
            ]
        }
        rows = nse.parse_nse_payload(json.dumps(payload))
        assert rows == [{"SYMBOL": "TCS", "NAME OF COMPANY": "Tata Consultancy Services Limited"}]


class TestFetchNseSecurities:
    async def test_falls_back_to_next_url(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if request.url.host == "archives.nseindia.com":
                return httpx.Response(200, text=NSE_CSV)
            return httpx.Response(403, text="Access Denied")

        async with _client(handler) as client:
            rows = await nse.fetch_nse_securities(client)

        assert [row["SYMBOL"] for row in rows] == ["RELIANCE", "NIFTYBEES"]
        assert len(requested) == 2
        assert "archives.nseindia.com" in requested[-1]

    async def test_undersized_payload_is_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "archives.nseindia.com":
                return httpx.Response(200, text="SYMBOL\n")
            if "equity-stockIndices" in str(request.url):
                return httpx.Response(200, text=NSE_CSV)
            return httpx.Response(500)

        async with _client(handler) as client:
            rows = await nse.fetch_nse_securities(client)
        assert len(rows) == 2

    async def test_all_urls_failing_raises_with_remedies(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403)

        async with _client(handler) as client:
            with pytest.raises(VendorUnavailableError) as exc_info:
                await nse.fetch_nse_securities(client)

        error = exc_info.value
        assert error.vendor == "nse"
        assert error.http_status == 403
        assert "Try:" in error.message
        assert not is_rate_limit_error(error)

    async def test_rate_limited_urls_classify_as_rate_limit(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429)

        async with _client(handler) as client:
            with pytest.raises(VendorUnavailableError) as exc_info:
                await nse.fetch_nse_securities(client)
        assert is_rate_limit_error(exc_info.value)


# =============================================================================
# AMFI
# =============================================================================


class TestAmfi:
    def test_parse_skips_headings_and_header_line(self):
        schemes = amfi.parse_amfi_text(AMFI_TEXT)
        assert [s.scheme_code for s in schemes] == ["119551", "120465", "999999"]
        assert schemes[1].scheme_name == "Axis Bluechip Fund - Direct Plan - Growth"
        assert schemes[0].isin_growth == "INF209KA12Z1"

    def test_parse_amfi_date(self):
        assert amfi.parse_amfi_date("17-Oct-2026") == date(2026, 10, 17)
        assert amfi.parse_amfi_date("garbage") is None

    async def test_latest_nav_map_skips_unparseable_navs(self):
        async with _client(lambda request: httpx.Response(200, text=AMFI_TEXT)) as client:
            nav_map = await amfi.fetch_amfi_latest_nav_map(client)

        assert set(nav_map) == {"119551", "120465"}
        assert nav_map["120465"] == amfi.NavEntry(date=date(2026, 10, 17), nav=62.41)

    async def test_non_2xx_raises(self):
        async with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(VendorUnavailableError) as exc_info:
                await amfi.fetch_amfi_scheme_master(client)
        assert exc_info.value.http_status == 503


# =============================================================================
# MFAPI
# =============================================================================


class TestMfapi:
    PAYLOAD = {
        "meta": {"scheme_code": 120465},
        "data": [
            {"date": "17-10-2026", "nav": "62.41000"},
            {"date": "16-10-2026", "nav": "62.10000"},
            {"date": "15-10-2026", "nav": "61.90000"},
            {"date": "bad", "nav": "1"},
        ],
    }

    async def test_history_is_ascending_and_filtered_inclusively(self):
        seen_urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_urls.append(str(request.url))
            return httpx.Response(200, json=self.PAYLOAD)

        async with _client(handler) as client:
            series = await mfapi.fetch_nav_history("120465", since=date(2026, 10, 16), client=client)

        assert seen_urls == ["https://api.mfapi.in/mf/120465"]
        assert series.source == "mfapi"
        assert series.points == [
            PricePoint(date(2026, 10, 16), 62.1),
            PricePoint(date(2026, 10, 17), 62.41),
        ]

    async def test_rate_limit_status_is_preserved(self):
        async with _client(lambda request: httpx.Response(429)) as client:
            with pytest.raises(VendorUnavailableError) as exc_info:
                await mfapi.fetch_nav_history("120465", client=client)
        assert exc_info.value.http_status == 429
        assert is_rate_limit_error(exc_info.value)


# =============================================================================
# Daily prices
# =============================================================================


class StubProvider:
    def __init__(self, name, points=None, error=None, enabled=True):
        self.name = name
        self.points = points or []
        self.error = error
        self._enabled = enabled
        self.calls = 0

    def enabled(self):
        return self._enabled

    async def fetch(self, symbol, since, client):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.points


class TestFetchDailyPrices:
    POINTS = [PricePoint(date(2026, 10, 16), 10.0), PricePoint(date(2026, 10, 15), 9.5)]

    async def test_first_non_empty_provider_wins(self):
        failing = StubProvider("first", error=RuntimeError("down"))
        empty = StubProvider("second")
        good = StubProvider("third", points=self.POINTS)
        never = StubProvider("fourth", points=self.POINTS)

        async with _client(lambda request: httpx.Response(500)) as client:
            series = await fetch_daily_prices(
                "TCS.NS", client=client, providers=(failing, empty, good, never)
            )

        assert series.source == "third"
        assert [p.close for p in series.points] == [9.5, 10.0]
        assert never.calls == 0

    async def test_disabled_providers_are_not_consulted(self):
        disabled = StubProvider("keyless", points=self.POINTS, enabled=False)
        fallback = StubProvider("yahoo", points=self.POINTS)

        async with _client(lambda request: httpx.Response(500)) as client:
            series = await fetch_daily_prices("TCS.NS", client=client, providers=(disabled, fallback))

        assert disabled.calls == 0
        assert series.source == "yahoo"

    async def test_raises_last_error_when_every_provider_raised(self):
        providers = (
            StubProvider("a", error=RuntimeError("first")),
            StubProvider("b", error=VendorUnavailableError("rate limit", http_status=429)),
        )
        async with _client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(VendorUnavailableError):
                await fetch_daily_prices("TCS.NS", client=client, providers=providers)

    async def test_empty_series_when_a_provider_answered(self):
        providers = (StubProvider("a", error=RuntimeError("down")), StubProvider("b"))
        async with _client(lambda request: httpx.Response(500)) as client:
            series = await fetch_daily_prices("TCS.NS", client=client, providers=providers)
        assert not series
        assert series.source == "none"


class TestHttpProviders:
    async def test_twelvedata_parses_values(self, monkeypatch):
        monkeypatch.setattr(settings, "twelvedata_api_key", "key")
        payload = {"values": [{"datetime": "2026-10-16", "close": "3875.2"}, {"datetime": "x", "close": "1"}]}

        async with _client(lambda request: httpx.Response(200, json=payload)) as client:
            points = await TwelveDataProvider().fetch("TCS.NS", None, client)
        assert points == [PricePoint(date(2026, 10, 16), 3875.2)]

    async def test_twelvedata_429_is_rate_limit(self, monkeypatch):
        monkeypatch.setattr(settings, "twelvedata_api_key", "key")
        async with _client(lambda request: httpx.Response(429)) as client:
            with pytest.raises(VendorUnavailableError) as exc_info:
                await TwelveDataProvider().fetch("TCS.NS", None, client)
        assert is_rate_limit_error(exc_info.value)

    async def test_alphavantage_note_is_rate_limit(self, monkeypatch):
        monkeypatch.setattr(settings, "alphavantage_api_key", "key")
        payload = {"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."}

        async with _client(lambda request: httpx.Response(200, json=payload)) as client:
            with pytest.raises(VendorUnavailableError) as exc_info:
                await AlphaVantageProvider().fetch("TCS.BSE", None, client)
        assert exc_info.value.http_status == 429

    def test_providers_disabled_without_keys(self, monkeypatch):
        monkeypatch.setattr(settings, "twelvedata_api_key", "")
        monkeypatch.setattr(settings, "alphavantage_api_key", "")
        assert not TwelveDataProvider().enabled()
        assert not AlphaVantageProvider().enabled()


def test_parse_fundamentals_picks_first_finite_value():
    fundamentals = parse_fundamentals(
        {
            "trailingPE": "Infinity",
            "forwardPE": 21.5,
            "beta": 0.9,
            "marketCap": 1.4e13,
            "annualReportExpenseRatio": 0.0005,
        }
    )
    assert fundamentals.pe_ratio == 21.5
    assert fundamentals.beta == 0.9
    assert fundamentals.market_cap == 1.4e13
    assert fundamentals.expense_ratio == 0.0005
    assert parse_fundamentals({}).is_empty()
