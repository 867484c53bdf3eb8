"""
Alpha Vantage Data Provider Adapter

Provides access to Alpha Vantage API for:
- Symbol search (SYMBOL_SEARCH)
- Company overview (OVERVIEW)
- Annual and quarterly statements (INCOME_STATEMENT, BALANCE_SHEET)
- Real-time quotes (GLOBAL_QUOTE)

Requires an API key.
Free tier: 5 requests/minute, 500 requests/day
"""

import calendar
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from ..concepts import ALPHA_VANTAGE_CONCEPTS, infer_unit, is_instant_concept, normalize_cik
from ..config import AlphaVantageConfig, SEARCH_RESULT_LIMIT, merge_config
from ..deduplicator import unique_by_key
from ..errors import DataNotFoundError, RateLimitError, missing_config
from ..interfaces import (
    CompanyMetadata, FinancialData, FinancialMetric, GetFinancialDataOptions,
    ProviderCapabilities, RealTimePrice, RealTimePriceProvider,
)
from .base import BaseAdapter, parse_date, safe_float, safe_int, safe_str, translate_errors

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Alpha Vantage"

_MONTHS = {name.lower(): number for number, name in enumerate(calendar.month_name) if name}


def _fiscal_year_end(month_name: Optional[str]) -> Optional[str]:
    """'September' -> '0930' (MMDD of the month's last day)."""
    if not month_name:
        return None
    month = _MONTHS.get(month_name.strip().lower())
    if month is None:
        return None
    # Non-leap year so February ends on the 28th
    last_day = calendar.monthrange(2001, month)[1]
    return f"{month:02d}{last_day:02d}"


def _percent(value) -> Optional[float]:
    """'0.5000%' -> 0.5"""
    if isinstance(value, str):
        value = value.strip().rstrip('%')
    return safe_float(value)


class AlphaVantageAdapter(BaseAdapter, RealTimePriceProvider):
    """
    Alpha Vantage API data provider adapter.

    Serves company overview, statement line items and quotes. Identifiers are
    tickers. Throttling is reported in the response body ("Note" /
    "Information") rather than with HTTP 429.
    """

    _CAPABILITIES = ProviderCapabilities(
        has_regulatory_filings=False,
        has_fundamentals=True,
        has_real_time_price=True,
        has_peer_data=False,
        has_historical_data=True,
        has_ratio_data=False,
        max_history_years=20,
        rate_limit_per_minute=5,
    )

    def __init__(
        self,
        config: Optional[AlphaVantageConfig] = None,
        session: Optional[requests.Session] = None,
        **options: Any,
    ):
        config = merge_config(config or AlphaVantageConfig(), options)
        if not config.api_key:
            raise missing_config(PROVIDER_NAME, "api_key")
        super().__init__(config, session)

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self._CAPABILITIES

    def _make_request(self, identifier: str, **params: str) -> Dict[str, Any]:
        """Make API request and translate body-level errors."""
        params["apikey"] = self._config.api_key
        data = self._request_json(self._config.base_url, params=params)

        if not isinstance(data, dict):
            return {}

        if "Error Message" in data:
            logger.warning(f"[AlphaVantage] API Error: {data['Error Message']}")
            raise DataNotFoundError(self.name, identifier)

        if "Note" in data:
            logger.warning(f"[AlphaVantage] Rate limit: {data['Note']}")
            raise RateLimitError(self.name, retry_after=60)

        if "Information" in data:
            logger.warning(f"[AlphaVantage] API limit: {data['Information']}")
            raise RateLimitError(self.name, retry_after=60)

        return data

    def _overview(self, ticker: str) -> Dict[str, Any]:
        data = self._make_request(ticker, function="OVERVIEW", symbol=ticker.strip().upper())
        if not data.get("Symbol") or not safe_str(data.get("Name")):
            raise DataNotFoundError(self.name, ticker)
        return data

    def _to_metadata(self, overview: Dict[str, Any]) -> CompanyMetadata:
        return CompanyMetadata(
            id=normalize_cik(safe_str(overview.get("CIK"), "")) or "",
            ticker=overview["Symbol"],
            name=overview["Name"],
            fiscal_year_end=_fiscal_year_end(safe_str(overview.get("FiscalYearEnd"))),
            sector=safe_str(overview.get("Sector")),
            industry=safe_str(overview.get("Industry")),
        )

    @translate_errors
    def search_companies(self, query: str) -> List[CompanyMetadata]:
        text = (query or "").strip()
        if not text:
            return []
        data = self._make_request(text, function="SYMBOL_SEARCH", keywords=text)
        results = []
        for match in data.get("bestMatches") or []:
            symbol = safe_str(match.get("1. symbol"))
            name = safe_str(match.get("2. name"))
            if not symbol or not name:
                continue
            results.append(CompanyMetadata(id="", ticker=symbol, name=name))
            if len(results) >= SEARCH_RESULT_LIMIT:
                break
        return results

    @translate_errors
    def get_company_metadata(self, identifier: str) -> CompanyMetadata:
        return self._to_metadata(self._overview(identifier))

    @translate_errors
    def get_financial_data(
        self,
        identifier: str,
        options: Optional[GetFinancialDataOptions] = None,
    ) -> FinancialData:
        """Statement line items from the income statement and balance sheet."""
        company = self._to_metadata(self._overview(identifier))

        metrics = []
        for function in ("INCOME_STATEMENT", "BALANCE_SHEET"):
            data = self._make_request(identifier, function=function, symbol=company.ticker)
            for key, annual in (("annualReports", True), ("quarterlyReports", False)):
                for report in data.get(key) or []:
                    metrics.extend(self._report_metrics(report, annual))

        metrics = unique_by_key(metrics)
        if options is not None:
            metrics = options.apply(metrics)
        else:
            metrics.sort(key=lambda m: m.period_end, reverse=True)
        return FinancialData(company=company, metrics=metrics, source=self.name)

    def _report_metrics(self, report: Dict[str, Any], annual: bool) -> List[FinancialMetric]:
        period_end = parse_date(report.get("fiscalDateEnding"))
        if period_end is None:
            return []
        currency = safe_str(report.get("reportedCurrency"), "USD")
        fiscal_period = "FY" if annual else f"Q{(period_end.month - 1) // 3 + 1}"

        metrics = []
        for field_name, concept in ALPHA_VANTAGE_CONCEPTS.items():
            # Alpha Vantage reports missing line items as the string "None"
            value = safe_float(report.get(field_name))
            if value is None:
                continue
            metrics.append(FinancialMetric(
                concept=concept,
                value=value,
                unit=infer_unit(concept, currency),
                period_end=period_end,
                is_instant=is_instant_concept(concept),
                fiscal_year=period_end.year,
                fiscal_period=fiscal_period,
            ))
        return metrics

    @translate_errors
    def get_real_time_price(self, ticker: str) -> RealTimePrice:
        """Get real-time quote using GLOBAL_QUOTE endpoint."""
        symbol = ticker.strip().upper()
        data = self._make_request(ticker, function="GLOBAL_QUOTE", symbol=symbol)
        quote = data.get("Global Quote") or {}

        price = safe_float(quote.get("05. price"))
        if price is None:
            raise DataNotFoundError(self.name, ticker)

        trading_day = parse_date(quote.get("07. latest trading day"))
        return RealTimePrice(
            ticker=safe_str(quote.get("01. symbol"), symbol),
            price=price,
            change=safe_float(quote.get("09. change")),
            change_percent=_percent(quote.get("10. change percent")),
            volume=safe_int(quote.get("06. volume")),
            timestamp=(
                datetime(trading_day.year, trading_day.month, trading_day.day, tzinfo=timezone.utc)
                if trading_day else None
            ),
            source=self.name,
        )

    def _probe(self) -> bool:
        data = self._make_request("AAPL", function="GLOBAL_QUOTE", symbol="AAPL")
        return "Global Quote" in data
