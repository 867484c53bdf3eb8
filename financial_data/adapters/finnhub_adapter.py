"""
Finnhub Data Provider Adapter

Provides access to the Finnhub API for:
- Symbol search and company profiles
- Annual and quarterly ratio series (/stock/metric?metric=all)
- Peer tickers (/stock/peers)
- Real-time quotes

Requires an API key. Free tier: 60 requests/minute.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from ..concepts import FINNHUB_CONCEPTS, infer_unit, is_instant_concept
from ..config import FinnhubConfig, SEARCH_RESULT_LIMIT, merge_config
from ..deduplicator import unique_by_key
from ..errors import DataNotFoundError, DataProviderError, RateLimitError, missing_config, API_ERROR
from ..interfaces import (
    CompanyMetadata, FinancialData, FinancialMetric, GetFinancialDataOptions,
    PeerCapableProvider, PeerCompany, ProviderCapabilities, RealTimePrice,
    RealTimePriceProvider,
)
from .base import BaseAdapter, parse_date, safe_float, safe_int, safe_str, translate_errors

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Finnhub"
DEFAULT_PEER_LIMIT = 10

# Finnhub reports marketCapitalization in millions
MARKET_CAP_MULTIPLIER = 1_000_000


def _fiscal_period(period_end, annual: bool) -> str:
    if annual:
        return "FY"
    return f"Q{(period_end.month - 1) // 3 + 1}"


class FinnhubAdapter(BaseAdapter, PeerCapableProvider, RealTimePriceProvider):
    """
    Finnhub market-data adapter.

    Identifiers are tickers; Finnhub does not expose CIKs so `id` is empty.
    """

    _CAPABILITIES = ProviderCapabilities(
        has_regulatory_filings=False,
        has_fundamentals=True,
        has_real_time_price=True,
        has_peer_data=True,
        has_historical_data=True,
        has_ratio_data=True,
        max_history_years=30,
        rate_limit_per_minute=60,
    )

    def __init__(
        self,
        config: Optional[FinnhubConfig] = None,
        session: Optional[requests.Session] = None,
        **options: Any,
    ):
        config = merge_config(config or FinnhubConfig(), options)
        if not config.api_key:
            raise missing_config(PROVIDER_NAME, "api_key")
        super().__init__(config, session)

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self._CAPABILITIES

    def _get(self, endpoint: str, **params: Any) -> Any:
        params['token'] = self._config.api_key
        data = self._request_json(f"{self._config.base_url}{endpoint}", params=params)

        if isinstance(data, dict) and data.get('error'):
            message = str(data['error'])
            if 'limit' in message.lower():
                logger.warning(f"[Finnhub] Rate limit: {message}")
                raise RateLimitError(self.name)
            raise DataProviderError(f"Finnhub error: {message}", self.name, API_ERROR, 502, False)
        return data

    def _profile(self, ticker: str) -> Dict[str, Any]:
        profile = self._get('/stock/profile2', symbol=ticker.strip().upper())
        if not isinstance(profile, dict) or not profile.get('name') or not profile.get('ticker'):
            raise DataNotFoundError(self.name, ticker)
        return profile

    def _to_metadata(self, profile: Dict[str, Any]) -> CompanyMetadata:
        return CompanyMetadata(
            id="",
            ticker=profile['ticker'],
            name=profile['name'],
            industry=safe_str(profile.get('finnhubIndustry')),
        )

    @translate_errors
    def search_companies(self, query: str) -> List[CompanyMetadata]:
        text = (query or "").strip()
        if not text:
            return []
        response = self._get('/search', q=text)
        results = []
        for item in (response or {}).get('result') or []:
            symbol = safe_str(item.get('symbol'))
            description = safe_str(item.get('description'))
            # US common stock only; foreign listings carry an exchange suffix
            if not symbol or not description or '.' in symbol:
                continue
            if item.get('type') != 'Common Stock':
                continue
            results.append(CompanyMetadata(id="", ticker=symbol, name=description))
            if len(results) >= SEARCH_RESULT_LIMIT:
                break
        return results

    @translate_errors
    def get_company_metadata(self, identifier: str) -> CompanyMetadata:
        return self._to_metadata(self._profile(identifier))

    @translate_errors
    def get_financial_data(
        self,
        identifier: str,
        options: Optional[GetFinancialDataOptions] = None,
    ) -> FinancialData:
        company = self._to_metadata(self._profile(identifier))
        response = self._get('/stock/metric', symbol=company.ticker, metric='all')
        series = (response or {}).get('series') or {}

        metrics = []
        for frequency in ('annual', 'quarterly'):
            for field_name, points in (series.get(frequency) or {}).items():
                concept = FINNHUB_CONCEPTS.get(field_name)
                if concept is None:
                    continue
                for point in points or []:
                    metric = self._to_metric(concept, point, annual=frequency == 'annual')
                    if metric is not None:
                        metrics.append(metric)

        metrics = unique_by_key(metrics)
        if options is not None:
            metrics = options.apply(metrics)
        else:
            metrics.sort(key=lambda m: m.period_end, reverse=True)
        return FinancialData(company=company, metrics=metrics, source=self.name)

    def _to_metric(self, concept: str, point: Dict[str, Any], annual: bool) -> Optional[FinancialMetric]:
        value = safe_float(point.get('v'))
        period_end = parse_date(point.get('period'))
        if value is None or period_end is None:
            return None
        return FinancialMetric(
            concept=concept,
            value=value,
            unit=infer_unit(concept),
            period_end=period_end,
            is_instant=is_instant_concept(concept),
            fiscal_year=period_end.year,
            fiscal_period=_fiscal_period(period_end, annual),
        )

    @translate_errors
    def get_peers(self, identifier: str, limit: Optional[int] = None) -> List[PeerCompany]:
        """Peer tickers from /stock/peers, each enriched with its profile."""
        ticker = identifier.strip().upper()
        symbols = self._get('/stock/peers', symbol=ticker)
        if not isinstance(symbols, list):
            return []

        wanted = limit if limit is not None else DEFAULT_PEER_LIMIT
        peers = []
        for symbol in symbols:
            if len(peers) >= wanted:
                break
            if not isinstance(symbol, str) or symbol.upper() == ticker:
                continue
            try:
                profile = self._profile(symbol)
            except DataNotFoundError:
                logger.debug(f"[Finnhub] No profile for peer {symbol}, skipping")
                continue
            market_cap = safe_float(profile.get('marketCapitalization'))
            peers.append(PeerCompany(
                id="",
                ticker=profile['ticker'],
                name=profile['name'],
                market_cap=market_cap * MARKET_CAP_MULTIPLIER if market_cap is not None and market_cap >= 0 else None,
            ))
        return peers

    @translate_errors
    def get_real_time_price(self, ticker: str) -> RealTimePrice:
        symbol = ticker.strip().upper()
        quote = self._get('/quote', symbol=symbol)
        price = safe_float((quote or {}).get('c'))
        # Finnhub answers unknown symbols with an all-zero quote
        if not price:
            raise DataNotFoundError(self.name, ticker)
        ts = safe_int(quote.get('t'))
        return RealTimePrice(
            ticker=symbol,
            price=price,
            change=safe_float(quote.get('d')),
            change_percent=safe_float(quote.get('dp')),
            timestamp=datetime.fromtimestamp(ts, tz=timezone.utc) if ts else None,
            source=self.name,
        )

    def _probe(self) -> bool:
        quote = self._get('/quote', symbol='AAPL')
        return isinstance(quote, dict)
