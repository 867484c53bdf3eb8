"""
Financial Modeling Prep (FMP) Data Provider Adapter

Provides access to the FMP v3 API for:
- Company search and profiles
- Historical financial ratios (/ratios/{ticker})
- Peers by industry (/stock-screener)
- Real-time quotes

Requires an API key.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from ..concepts import FMP_RATIO_CONCEPTS, infer_unit, normalize_cik
from ..config import FMPConfig, SEARCH_RESULT_LIMIT, merge_config
from ..deduplicator import unique_by_key
from ..errors import DataNotFoundError, DataProviderError, RateLimitError, missing_config, API_ERROR
from ..interfaces import (
    CompanyMetadata, FinancialData, FinancialMetric, GetFinancialDataOptions,
    PeerCapableProvider, PeerCompany, ProviderCapabilities, RealTimePrice,
    RealTimePriceProvider,
)
from .base import BaseAdapter, parse_date, safe_float, safe_int, safe_str, translate_errors

logger = logging.getLogger(__name__)

PROVIDER_NAME = "FMP"
RATIO_HISTORY_LIMIT = 40
DEFAULT_PEER_LIMIT = 10


class FMPAdapter(BaseAdapter, PeerCapableProvider, RealTimePriceProvider):
    """FMP market-data adapter. Identifiers are tickers."""

    _CAPABILITIES = ProviderCapabilities(
        has_regulatory_filings=False,
        has_fundamentals=True,
        has_real_time_price=True,
        has_peer_data=True,
        has_historical_data=True,
        has_ratio_data=True,
        max_history_years=30,
        rate_limit_per_minute=250,
    )

    def __init__(
        self,
        config: Optional[FMPConfig] = None,
        session: Optional[requests.Session] = None,
        **options: Any,
    ):
        config = merge_config(config or FMPConfig(), options)
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
        params['apikey'] = self._config.api_key
        data = self._request_json(f"{self._config.base_url}{endpoint}", params=params)

        if isinstance(data, dict) and data.get('Error Message'):
            message = str(data['Error Message'])
            if 'limit' in message.lower():
                logger.warning(f"[FMP] Rate limit: {message}")
                raise RateLimitError(self.name)
            raise DataProviderError(f"FMP error: {message}", self.name, API_ERROR, 502, False)
        return data

    def _profile(self, ticker: str) -> Dict[str, Any]:
        response = self._get(f"/profile/{ticker.strip().upper()}")
        if not isinstance(response, list) or not response:
            raise DataNotFoundError(self.name, ticker)
        profile = response[0]
        if not profile.get('symbol') or not profile.get('companyName'):
            raise DataNotFoundError(self.name, ticker)
        return profile

    def _to_metadata(self, profile: Dict[str, Any]) -> CompanyMetadata:
        return CompanyMetadata(
            id=normalize_cik(safe_str(profile.get('cik'), "")) or "",
            ticker=profile['symbol'],
            name=profile['companyName'],
            sector=safe_str(profile.get('sector')),
            industry=safe_str(profile.get('industry')),
        )

    @translate_errors
    def search_companies(self, query: str) -> List[CompanyMetadata]:
        text = (query or "").strip()
        if not text:
            return []
        response = self._get('/search', query=text, limit=SEARCH_RESULT_LIMIT)
        if not isinstance(response, list):
            return []
        results = []
        for item in response:
            symbol = safe_str(item.get('symbol'))
            name = safe_str(item.get('name'))
            if not symbol or not name:
                continue
            results.append(CompanyMetadata(id="", ticker=symbol, name=name))
        return results[:SEARCH_RESULT_LIMIT]

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
        rows = self._get(f"/ratios/{company.ticker}", limit=RATIO_HISTORY_LIMIT)

        metrics = []
        for row in rows if isinstance(rows, list) else []:
            period_end = parse_date(row.get('date'))
            if period_end is None:
                continue
            fiscal_year = safe_int(row.get('calendarYear'), period_end.year)
            fiscal_period = safe_str(row.get('period'), "FY")
            for field_name, concept in FMP_RATIO_CONCEPTS.items():
                value = safe_float(row.get(field_name))
                if value is None:
                    continue
                metrics.append(FinancialMetric(
                    concept=concept,
                    value=value,
                    unit=infer_unit(concept),
                    period_end=period_end,
                    is_instant=False,
                    fiscal_year=fiscal_year,
                    fiscal_period=fiscal_period,
                ))

        metrics = unique_by_key(metrics)
        if options is not None:
            metrics = options.apply(metrics)
        else:
            metrics.sort(key=lambda m: m.period_end, reverse=True)
        return FinancialData(company=company, metrics=metrics, source=self.name)

    @translate_errors
    def get_peers(self, identifier: str, limit: Optional[int] = None) -> List[PeerCompany]:
        """Actively traded companies in the same industry, largest first as FMP returns them."""
        ticker = identifier.strip().upper()
        profile = self._profile(ticker)
        industry = safe_str(profile.get('industry'))
        if not industry:
            return []

        wanted = limit if limit is not None else DEFAULT_PEER_LIMIT
        response = self._get(
            '/stock-screener',
            industry=industry,
            isActivelyTrading='true',
            limit=wanted + 1,
        )
        peers = []
        for item in response if isinstance(response, list) else []:
            if len(peers) >= wanted:
                break
            symbol = safe_str(item.get('symbol'))
            name = safe_str(item.get('companyName'))
            if not symbol or not name or symbol.upper() == ticker:
                continue
            market_cap = safe_float(item.get('marketCap'))
            peers.append(PeerCompany(
                id=normalize_cik(safe_str(item.get('cik'), "")) or "",
                ticker=symbol,
                name=name,
                market_cap=market_cap if market_cap is not None and market_cap >= 0 else None,
            ))
        return peers

    @translate_errors
    def get_real_time_price(self, ticker: str) -> RealTimePrice:
        response = self._get(f"/quote/{ticker.strip().upper()}")
        if not isinstance(response, list) or not response:
            raise DataNotFoundError(self.name, ticker)
        quote = response[0]
        price = safe_float(quote.get('price'))
        if price is None:
            raise DataNotFoundError(self.name, ticker)
        ts = safe_int(quote.get('timestamp'))
        return RealTimePrice(
            ticker=safe_str(quote.get('symbol'), ticker.strip().upper()),
            price=price,
            change=safe_float(quote.get('change')),
            change_percent=safe_float(quote.get('changesPercentage')),
            volume=safe_int(quote.get('volume')),
            timestamp=datetime.fromtimestamp(ts, tz=timezone.utc) if ts else None,
            source=self.name,
        )

    def _probe(self) -> bool:
        response = self._get('/quote/AAPL')
        return isinstance(response, list)
