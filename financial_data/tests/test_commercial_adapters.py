"""
Unit tests for the Finnhub, FMP and Alpha Vantage adapters.
"""

from datetime import date, datetime, timezone

import pytest

from ..adapters import AlphaVantageAdapter, FinnhubAdapter, FMPAdapter
from ..errors import DataNotFoundError, DataProviderError, RateLimitError, MISSING_CONFIG
from ..interfaces import GetFinancialDataOptions, PeerCapableProvider, RealTimePriceProvider
from .conftest import make_alpha_vantage_adapter, make_finnhub_adapter, make_fmp_adapter
from .fixtures import FakeResponse, FakeSession


class TestConstruction:
    """API keys are required up front."""

    @pytest.mark.parametrize("adapter_cls", [FinnhubAdapter, FMPAdapter, AlphaVantageAdapter])
    def test_api_key_required(self, adapter_cls):
        with pytest.raises(DataProviderError) as exc_info:
            adapter_cls()

        assert exc_info.value.code == MISSING_CONFIG

    def test_cleared_key_makes_operations_fail(self, fmp_adapter):
        adapter, session = fmp_adapter
        adapter.configure({"api_key": ""})

        with pytest.raises(DataProviderError) as exc_info:
            adapter.get_company_metadata("AAPL")

        assert exc_info.value.code == MISSING_CONFIG
        assert session.calls == []

    def test_optional_interfaces(self, finnhub_adapter, fmp_adapter, alpha_vantage_adapter):
        assert isinstance(finnhub_adapter[0], PeerCapableProvider)
        assert isinstance(fmp_adapter[0], PeerCapableProvider)
        assert not isinstance(alpha_vantage_adapter[0], PeerCapableProvider)
        assert isinstance(alpha_vantage_adapter[0], RealTimePriceProvider)


class TestFinnhubAdapter:
    """Tests for FinnhubAdapter."""

    def test_metadata(self, finnhub_adapter):
        adapter, session = finnhub_adapter
        company = adapter.get_company_metadata("aapl")

        assert company.id == ""
        assert company.name == "Apple Inc"
        assert company.industry == "Technology"
        assert session.calls[0]['params']['token'] == "test-finnhub-key"

    def test_search_filters_foreign_and_non_common(self, finnhub_adapter):
        adapter, _ = finnhub_adapter

        assert [c.ticker for c in adapter.search_companies("apple")] == ["AAPL"]

    def test_series_periods(self, finnhub_adapter):
        adapter, _ = finnhub_adapter
        data = adapter.get_financial_data("AAPL", GetFinancialDataOptions(concepts=["CurrentRatio"]))

        periods = [(m.fiscal_year, m.fiscal_period) for m in data.metrics]
        assert periods[0] == (2023, "Q4")
        assert set(periods) == {(2023, "Q4"), (2023, "Q3"), (2023, "FY"), (2022, "FY")}
        assert all(m.unit == "pure" for m in data.metrics)

    def test_null_series_values_dropped(self, finnhub_adapter):
        adapter, _ = finnhub_adapter
        data = adapter.get_financial_data("AAPL", GetFinancialDataOptions(concepts=["NetProfitMargin"]))

        assert all(m.fiscal_period == "FY" for m in data.metrics)

    def test_peers_skip_self_and_unknown(self, finnhub_adapter):
        adapter, _ = finnhub_adapter
        peers = adapter.get_peers("AAPL")

        assert [p.ticker for p in peers] == ["MSFT", "DELL"]
        assert peers[0].market_cap == 2780000.0 * 1_000_000
        assert peers[0].similarity is None

    def test_peer_limit(self, finnhub_adapter):
        adapter, _ = finnhub_adapter

        assert [p.ticker for p in adapter.get_peers("AAPL", limit=1)] == ["MSFT"]

    def test_real_time_price(self, finnhub_adapter):
        adapter, _ = finnhub_adapter
        quote = adapter.get_real_time_price("AAPL")

        assert quote.price == 189.84
        assert quote.change_percent == 0.636
        assert quote.timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert quote.source == "Finnhub"

    def test_zero_quote_is_not_found(self, finnhub_adapter):
        adapter, _ = finnhub_adapter

        with pytest.raises(DataNotFoundError):
            adapter.get_real_time_price("ZZZZ")

    def test_body_level_rate_limit(self):
        session = FakeSession([("/stock/profile2", None, {"error": "API limit reached. Please try again later."})])
        adapter = make_finnhub_adapter(session)

        with pytest.raises(RateLimitError):
            adapter.get_company_metadata("AAPL")
        assert adapter.is_rate_limited()
        assert adapter.health_check() is False


class TestFMPAdapter:
    """Tests for FMPAdapter."""

    def test_metadata_carries_cik(self, fmp_adapter):
        adapter, _ = fmp_adapter
        company = adapter.get_company_metadata("AAPL")

        assert company.id == "0000320193"
        assert company.sector == "Technology"
        assert company.industry == "Consumer Electronics"

    def test_search(self, fmp_adapter):
        adapter, _ = fmp_adapter

        assert [c.ticker for c in adapter.search_companies("apple")] == ["AAPL", "APLE"]
        assert adapter.search_companies("nothing") == []

    def test_ratios(self, fmp_adapter):
        adapter, _ = fmp_adapter
        data = adapter.get_latest_metrics("AAPL", ["PriceToEarningsRatio", "DividendYieldRatio"])

        assert len(data.metrics) == 1
        metric = data.metrics[0]
        assert metric.value == 29.8
        assert metric.period_end == date(2023, 9, 30)
        assert metric.fiscal_year == 2023
        assert metric.unit == "pure"

    def test_peers_exclude_self(self, fmp_adapter):
        adapter, session = fmp_adapter
        peers = adapter.get_peers("AAPL", limit=2)

        assert [p.ticker for p in peers] == ["SONY", "XIACY"]
        assert peers[0].market_cap == 110000000000
        screener = [c for c in session.calls if "stock-screener" in c['url']][0]
        assert screener['params']['limit'] == 3

    def test_real_time_price(self, fmp_adapter):
        adapter, _ = fmp_adapter
        quote = adapter.get_real_time_price("AAPL")

        assert quote.price == 189.84
        assert quote.volume == 48000000

    def test_error_message_body(self):
        session = FakeSession([("/profile/", None, {"Error Message": "Invalid API KEY."})])
        adapter = make_fmp_adapter(session)

        with pytest.raises(DataProviderError) as exc_info:
            adapter.get_company_metadata("AAPL")

        assert exc_info.value.code == "API_ERROR"
        assert not isinstance(exc_info.value, RateLimitError)

    def test_server_error_is_retryable(self):
        session = FakeSession([("/profile/", None, FakeResponse(503, {}))])
        adapter = make_fmp_adapter(session)

        with pytest.raises(DataProviderError) as exc_info:
            adapter.get_company_metadata("AAPL")

        assert exc_info.value.http_status == 502
        assert exc_info.value.is_retryable is True


class TestAlphaVantageAdapter:
    """Tests for AlphaVantageAdapter."""

    def test_metadata(self, alpha_vantage_adapter):
        adapter, _ = alpha_vantage_adapter
        company = adapter.get_company_metadata("AAPL")

        assert company.id == "0000320193"
        assert company.fiscal_year_end == "0930"
        assert company.sector == "TECHNOLOGY"

    def test_statement_line_items(self, alpha_vantage_adapter):
        adapter, _ = alpha_vantage_adapter
        data = adapter.get_financial_data("AAPL", GetFinancialDataOptions(concepts=["Revenues", "Assets"]))

        revenues = [m for m in data.metrics if m.concept == "Revenues"]
        assert [(m.fiscal_year, m.fiscal_period) for m in revenues] == [(2023, "Q4"), (2023, "FY"), (2022, "FY")]
        assets = [m for m in data.metrics if m.concept == "Assets"]
        assert assets[0].is_instant is True
        assert assets[0].value == 352583000000

    def test_none_strings_omitted(self, alpha_vantage_adapter):
        adapter, _ = alpha_vantage_adapter
        data = adapter.get_financial_data("AAPL", GetFinancialDataOptions(concepts=["CostOfRevenue"]))

        assert data.metrics == ()

    def test_global_quote(self, alpha_vantage_adapter):
        adapter, _ = alpha_vantage_adapter
        quote = adapter.get_real_time_price("AAPL")

        assert quote.price == 189.84
        assert quote.change_percent == 0.64
        assert quote.volume == 48000000
        assert quote.timestamp == datetime(2023, 11, 14, tzinfo=timezone.utc)

    def test_search(self, alpha_vantage_adapter):
        adapter, _ = alpha_vantage_adapter

        assert [c.name for c in adapter.search_companies("apple")] == ["Apple Inc", "Apple Hospitality REIT Inc"]

    @pytest.mark.parametrize("key", ["Note", "Information"])
    def test_throttle_notice(self, key):
        session = FakeSession([("alphavantage", None, {key: "Thank you for using Alpha Vantage! ..."})])
        adapter = make_alpha_vantage_adapter(session)

        with pytest.raises(RateLimitError) as exc_info:
            adapter.get_real_time_price("AAPL")

        assert exc_info.value.retry_after == 60
        assert adapter.is_rate_limited()

    def test_error_message_is_not_found(self):
        session = FakeSession([("alphavantage", None, {"Error Message": "Invalid API call."})])
        adapter = make_alpha_vantage_adapter(session)

        with pytest.raises(DataNotFoundError):
            adapter.get_company_metadata("BAD")
