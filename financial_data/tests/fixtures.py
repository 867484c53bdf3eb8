"""
Canned upstream payloads and in-memory test doubles.

FakeSession stands in for requests.Session: routes match on a URL fragment
plus a subset of query params, first match wins, anything unmatched is a 404.
Payload shapes follow the real SEC EDGAR, Finnhub, FMP and Alpha Vantage
responses (trimmed to the fields the adapters read).
"""

from datetime import date
from typing import Any, Dict, List, Optional

from requests.structures import CaseInsensitiveDict

from ..errors import DataNotFoundError
from ..interfaces import (
    CompanyMetadata, FinancialData, FinancialDataProvider, FinancialMetric,
    GetFinancialDataOptions, PeerCapableProvider, PeerCompany,
    ProviderCapabilities, RealTimePrice, RealTimePriceProvider,
)
from ..deduplicator import select_latest

INVALID_JSON = object()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self._payload = payload
        self.headers = CaseInsensitiveDict(headers or {})
        self.text = "" if payload is INVALID_JSON else str(payload)

    def json(self):
        if self._payload is INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Minimal requests.Session replacement that records every GET."""

    def __init__(self, routes=None):
        self.routes: List[tuple] = []
        self.calls: List[Dict[str, Any]] = []
        for route in routes or []:
            self.add(*route)

    def add(self, fragment: str, params: Optional[Dict[str, Any]], response) -> 'FakeSession':
        """`response` is a FakeResponse, an exception to raise, or a payload for a 200."""
        if not isinstance(response, (FakeResponse, Exception)):
            response = FakeResponse(200, response)
        self.routes.append((fragment, params or {}, response))
        return self

    def prepend(self, fragment: str, params: Optional[Dict[str, Any]], response) -> 'FakeSession':
        self.add(fragment, params, response)
        self.routes.insert(0, self.routes.pop())
        return self

    def get(self, url, params=None, headers=None, timeout=None):
        params = params or {}
        self.calls.append({'url': url, 'params': dict(params), 'headers': headers, 'timeout': timeout})
        for fragment, match, response in self.routes:
            if fragment in url and all(params.get(k) == v for k, v in match.items()):
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404, {'error': 'not found'})

    def urls(self) -> List[str]:
        return [c['url'] for c in self.calls]


class ExplodingSession:
    """Every request raises."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or RuntimeError("boom")
        self.calls = 0

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls += 1
        raise self.error


# ----------------------------------------------------------------------
# SEC EDGAR
# ----------------------------------------------------------------------

APPLE_CIK = "0000320193"

SEC_TICKERS = {
    "0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."},
    "1": {"cik_str": 789019, "ticker": "MSFT", "title": "MICROSOFT CORP"},
    "2": {"cik_str": 1652044, "ticker": "GOOGL", "title": "Alphabet Inc."},
    "3": {"cik_str": 1652044, "ticker": "GOOG", "title": "Alphabet Inc."},
    "4": {"cik_str": 1418091, "ticker": "APLE", "title": "Apple Hospitality REIT, Inc."},
}

SEC_SUBMISSIONS_AAPL = {
    "cik": "320193",
    "entityType": "operating",
    "sic": "3571",
    "sicDescription": "Electronic Computers",
    "name": "Apple Inc.",
    "tickers": ["AAPL"],
    "exchanges": ["Nasdaq"],
    "fiscalYearEnd": "0928",
}

_FY23 = {"accn": "0000320193-23-000106", "fy": 2023, "fp": "FY", "form": "10-K", "filed": "2023-11-03"}
_FY22 = {"accn": "0000320193-22-000108", "fy": 2022, "fp": "FY", "form": "10-K", "filed": "2022-10-28"}
_Q323 = {"accn": "0000320193-23-000077", "fy": 2023, "fp": "Q3", "form": "10-Q", "filed": "2023-08-04"}

SEC_COMPANY_FACTS_AAPL = {
    "cik": 320193,
    "entityName": "Apple Inc.",
    "facts": {
        "dei": {
            "EntityCommonStockSharesOutstanding": {
                "units": {"shares": [{"end": "2023-10-20", "val": 15552752000, **_FY23}]}
            },
        },
        "us-gaap": {
            "RevenueFromContractWithCustomerExcludingAssessedTax": {
                "label": "Revenue from Contract with Customer, Excluding Assessed Tax",
                "units": {"USD": [
                    {"start": "2021-09-26", "end": "2022-09-24", "val": 394328000000, **_FY22},
                    {"start": "2022-09-25", "end": "2023-09-30", "val": 383285000000, **_FY23},
                    # Prior-year comparative repeated in the FY2023 10-K
                    {"start": "2021-09-26", "end": "2022-09-24", "val": 394328000000, **_FY23},
                    # Three-month quarter and nine-month year-to-date share fy/fp
                    {"start": "2023-04-02", "end": "2023-07-01", "val": 81797000000, **_Q323},
                    {"start": "2022-09-25", "end": "2023-07-01", "val": 289519000000, **_Q323},
                ]},
            },
            "NetIncomeLoss": {
                "units": {"USD": [
                    {"start": "2021-09-26", "end": "2022-09-24", "val": 99803000000, **_FY22},
                    {"start": "2022-09-25", "end": "2023-09-30", "val": 96995000000, **_FY23},
                ]},
            },
            "Assets": {
                "units": {"USD": [
                    {"end": "2022-09-24", "val": 352755000000, **_FY22},
                    {"end": "2023-09-30", "val": 352583000000, **_FY23},
                ]},
            },
            "EarningsPerShareDiluted": {
                "units": {"USD/shares": [
                    {"start": "2022-09-25", "end": "2023-09-30", "val": 6.13, **_FY23},
                ]},
            },
            "AccountsPayableCurrent": {
                "units": {"USD": [{"end": "2023-09-30", "val": 62611000000, **_FY23}]},
            },
        },
    },
}


def sec_session() -> FakeSession:
    return FakeSession([
        ("company_tickers.json", None, SEC_TICKERS),
        (f"/submissions/CIK{APPLE_CIK}.json", None, SEC_SUBMISSIONS_AAPL),
        (f"/companyfacts/CIK{APPLE_CIK}.json", None, SEC_COMPANY_FACTS_AAPL),
    ])


# ----------------------------------------------------------------------
# Finnhub
# ----------------------------------------------------------------------

FINNHUB_PROFILES = {
    "AAPL": {"country": "US", "currency": "USD", "finnhubIndustry": "Technology",
             "marketCapitalization": 2950000.0, "name": "Apple Inc", "ticker": "AAPL"},
    "MSFT": {"country": "US", "currency": "USD", "finnhubIndustry": "Technology",
             "marketCapitalization": 2780000.0, "name": "Microsoft Corp", "ticker": "MSFT"},
    "DELL": {"country": "US", "currency": "USD", "finnhubIndustry": "Technology",
             "marketCapitalization": 52000.0, "name": "Dell Technologies Inc", "ticker": "DELL"},
}

FINNHUB_PEERS_AAPL = ["AAPL", "MSFT", "DELL", "HPQ"]

FINNHUB_METRIC_AAPL = {
    "metric": {"52WeekHigh": 199.62, "currentRatioAnnual": 0.988},
    "metricType": "all",
    "symbol": "AAPL",
    "series": {
        "annual": {
            "currentRatio": [{"period": "2023-09-30", "v": 0.988}, {"period": "2022-09-24", "v": 0.8794}],
            "netMargin": [{"period": "2023-09-30", "v": 0.2531}, {"period": "2022-09-24", "v": 0.2531}],
            "eps": [{"period": "2023-09-30", "v": 6.13}],
            "inventoryTurnover": [{"period": "2023-09-30", "v": 37.98}],
        },
        "quarterly": {
            "currentRatio": [{"period": "2023-12-30", "v": 1.0728}, {"period": "2023-09-30", "v": 0.988}],
            "netMargin": [{"period": "2023-12-30", "v": None}],
        },
    },
}

FINNHUB_QUOTE_AAPL = {"c": 189.84, "d": 1.2, "dp": 0.636, "h": 190.9, "l": 188.1, "o": 188.6, "pc": 188.64, "t": 1700000000}

FINNHUB_SEARCH_APPLE = {
    "count": 3,
    "result": [
        {"description": "APPLE INC", "displaySymbol": "AAPL", "symbol": "AAPL", "type": "Common Stock"},
        {"description": "APPLE INC", "displaySymbol": "AAPL.SW", "symbol": "AAPL.SW", "type": "Common Stock"},
        {"description": "APPLE HOSPITALITY REIT INC", "displaySymbol": "APLE", "symbol": "APLE", "type": "REIT"},
    ],
}


def finnhub_session() -> FakeSession:
    session = FakeSession()
    for symbol, profile in FINNHUB_PROFILES.items():
        session.add("/stock/profile2", {"symbol": symbol}, profile)
    return (
        session
        .add("/stock/profile2", None, {})
        .add("/stock/peers", {"symbol": "AAPL"}, FINNHUB_PEERS_AAPL)
        .add("/stock/metric", {"symbol": "AAPL"}, FINNHUB_METRIC_AAPL)
        .add("/quote", {"symbol": "AAPL"}, FINNHUB_QUOTE_AAPL)
        .add("/quote", None, {"c": 0, "d": None, "dp": None, "h": 0, "l": 0, "o": 0, "pc": 0, "t": 0})
        .add("/search", {"q": "apple"}, FINNHUB_SEARCH_APPLE)
        .add("/search", None, {"count": 0, "result": []})
    )


# ----------------------------------------------------------------------
# Financial Modeling Prep
# ----------------------------------------------------------------------

FMP_PROFILE_AAPL = [{
    "symbol": "AAPL", "companyName": "Apple Inc.", "cik": "0000320193",
    "sector": "Technology", "industry": "Consumer Electronics", "mktCap": 2950000000000,
}]

FMP_RATIOS_AAPL = [
    {"symbol": "AAPL", "date": "2023-09-30", "calendarYear": "2023", "period": "FY",
     "currentRatio": 0.988, "netProfitMargin": 0.2531, "priceEarningsRatio": 29.8, "dividendYield": None},
    {"symbol": "AAPL", "date": "2022-09-24", "calendarYear": "2022", "period": "FY",
     "currentRatio": 0.8794, "netProfitMargin": 0.2531, "priceEarningsRatio": 24.4},
]

FMP_SCREENER_CONSUMER_ELECTRONICS = [
    {"symbol": "AAPL", "companyName": "Apple Inc.", "marketCap": 2950000000000},
    {"symbol": "SONY", "companyName": "Sony Group Corporation", "marketCap": 110000000000},
    {"symbol": "XIACY", "companyName": "Xiaomi Corporation", "marketCap": 50000000000},
]

FMP_QUOTE_AAPL = [{"symbol": "AAPL", "price": 189.84, "changesPercentage": 0.64, "change": 1.2,
                   "volume": 48000000, "timestamp": 1700000000}]

FMP_SEARCH_APPLE = [
    {"symbol": "AAPL", "name": "Apple Inc.", "exchangeShortName": "NASDAQ"},
    {"symbol": "APLE", "name": "Apple Hospitality REIT, Inc.", "exchangeShortName": "NYSE"},
]


def fmp_session() -> FakeSession:
    return FakeSession([
        ("/profile/AAPL", None, FMP_PROFILE_AAPL),
        ("/profile/", None, []),
        ("/ratios/AAPL", None, FMP_RATIOS_AAPL),
        ("/stock-screener", {"industry": "Consumer Electronics"}, FMP_SCREENER_CONSUMER_ELECTRONICS),
        ("/quote/AAPL", None, FMP_QUOTE_AAPL),
        ("/quote/", None, []),
        ("/search", {"query": "apple"}, FMP_SEARCH_APPLE),
        ("/search", None, []),
    ])


# ----------------------------------------------------------------------
# Alpha Vantage
# ----------------------------------------------------------------------

AV_OVERVIEW_AAPL = {
    "Symbol": "AAPL", "AssetType": "Common Stock", "Name": "Apple Inc", "CIK": "320193",
    "Sector": "TECHNOLOGY", "Industry": "ELECTRONIC COMPUTERS", "FiscalYearEnd": "September",
}

AV_INCOME_STATEMENT_AAPL = {
    "symbol": "AAPL",
    "annualReports": [
        {"fiscalDateEnding": "2023-09-30", "reportedCurrency": "USD", "totalRevenue": "383285000000",
         "netIncome": "96995000000", "grossProfit": "169148000000", "costOfRevenue": "None"},
        {"fiscalDateEnding": "2022-09-30", "reportedCurrency": "USD", "totalRevenue": "394328000000",
         "netIncome": "99803000000"},
    ],
    "quarterlyReports": [
        {"fiscalDateEnding": "2023-12-31", "reportedCurrency": "USD", "totalRevenue": "119575000000",
         "netIncome": "33916000000"},
    ],
}

AV_BALANCE_SHEET_AAPL = {
    "symbol": "AAPL",
    "annualReports": [
        {"fiscalDateEnding": "2023-09-30", "reportedCurrency": "USD", "totalAssets": "352583000000",
         "totalShareholderEquity": "62146000000"},
    ],
    "quarterlyReports": [],
}

AV_GLOBAL_QUOTE_AAPL = {
    "Global Quote": {
        "01. symbol": "AAPL", "05. price": "189.8400", "06. volume": "48000000",
        "07. latest trading day": "2023-11-14", "09. change": "1.2000", "10. change percent": "0.6400%",
    }
}

AV_SYMBOL_SEARCH_APPLE = {
    "bestMatches": [
        {"1. symbol": "AAPL", "2. name": "Apple Inc", "4. region": "United States"},
        {"1. symbol": "APLE", "2. name": "Apple Hospitality REIT Inc", "4. region": "United States"},
    ]
}


def alpha_vantage_session() -> FakeSession:
    return FakeSession([
        ("alphavantage", {"function": "OVERVIEW", "symbol": "AAPL"}, AV_OVERVIEW_AAPL),
        ("alphavantage", {"function": "OVERVIEW"}, {}),
        ("alphavantage", {"function": "INCOME_STATEMENT", "symbol": "AAPL"}, AV_INCOME_STATEMENT_AAPL),
        ("alphavantage", {"function": "BALANCE_SHEET", "symbol": "AAPL"}, AV_BALANCE_SHEET_AAPL),
        ("alphavantage", {"function": "GLOBAL_QUOTE", "symbol": "AAPL"}, AV_GLOBAL_QUOTE_AAPL),
        ("alphavantage", {"function": "GLOBAL_QUOTE"}, {"Global Quote": {}}),
        ("alphavantage", {"function": "SYMBOL_SEARCH", "keywords": "apple"}, AV_SYMBOL_SEARCH_APPLE),
        ("alphavantage", {"function": "SYMBOL_SEARCH"}, {"bestMatches": []}),
    ])


# ----------------------------------------------------------------------
# In-memory providers for routing tests
# ----------------------------------------------------------------------

def make_metric(concept: str, value: float, period_end: date, fiscal_period: str = "FY") -> FinancialMetric:
    return FinancialMetric(
        concept=concept,
        value=value,
        unit="USD",
        period_end=period_end,
        is_instant=False,
        fiscal_year=period_end.year,
        fiscal_period=fiscal_period,
    )


class StubProvider(FinancialDataProvider):
    """
    Scripted provider. `failures` maps an operation name to the
    exception it raises; every call is appended to `calls`.
    """

    def __init__(
        self,
        name: str,
        capabilities: Optional[ProviderCapabilities] = None,
        companies: Optional[List[CompanyMetadata]] = None,
        metrics: Optional[List[FinancialMetric]] = None,
        failures: Optional[Dict[str, Exception]] = None,
        healthy: Any = True,
    ):
        self._name = name
        self._capabilities = capabilities or ProviderCapabilities(has_fundamentals=True)
        self.companies = companies if companies is not None else [
            CompanyMetadata(id="0000320193", ticker="AAPL", name=f"Apple Inc. via {name}")
        ]
        self.metrics = metrics or []
        self.failures = failures or {}
        self.healthy = healthy
        self.calls: List[str] = []
        self.configured: List[Any] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self._capabilities

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failures:
            raise self.failures[operation]

    def search_companies(self, query: str) -> List[CompanyMetadata]:
        self._enter("search_companies")
        return list(self.companies)

    def get_company_metadata(self, identifier: str) -> CompanyMetadata:
        self._enter("get_company_metadata")
        if not self.companies:
            raise DataNotFoundError(self.name, identifier)
        return self.companies[0]

    def get_financial_data(self, identifier: str, options: Optional[GetFinancialDataOptions] = None) -> FinancialData:
        self._enter("get_financial_data")
        metrics = options.apply(self.metrics) if options else list(self.metrics)
        return FinancialData(company=self.companies[0], metrics=metrics, source=self.name)

    def get_latest_metrics(self, identifier: str, concepts) -> FinancialData:
        self._enter("get_latest_metrics")
        return FinancialData(
            company=self.companies[0], metrics=select_latest(self.metrics, concepts), source=self.name
        )

    def health_check(self) -> bool:
        self.calls.append("health_check")
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy

    def configure(self, options=None) -> None:
        self.configured.append(options)


class StubMarketProvider(StubProvider, PeerCapableProvider, RealTimePriceProvider):
    """StubProvider that also serves peers and quotes."""

    def __init__(self, name: str, peers: Optional[List[PeerCompany]] = None, price: float = 100.0, **kwargs):
        kwargs.setdefault("capabilities", ProviderCapabilities(
            has_fundamentals=True, has_peer_data=True, has_real_time_price=True,
        ))
        super().__init__(name, **kwargs)
        self.peers = peers or []
        self.price = price
        self.peer_limits: List[Optional[int]] = []

    def get_peers(self, identifier: str, limit: Optional[int] = None) -> List[PeerCompany]:
        self._enter("get_peers")
        self.peer_limits.append(limit)
        return list(self.peers)

    def get_real_time_price(self, ticker: str) -> RealTimePrice:
        self._enter("get_real_time_price")
        return RealTimePrice(ticker=ticker, price=self.price, source=self.name)


def peer(ticker: str, cik: str = "") -> PeerCompany:
    return PeerCompany(id=cik, ticker=ticker, name=f"{ticker} Corp")
