"""
SEC EDGAR Data Provider Adapter

Provides access to the SEC's public JSON APIs for:
- Ticker/CIK lookup and company search (company_tickers.json)
- Company metadata (submissions/CIK##########.json)
- Reported XBRL financial facts (api/xbrl/companyfacts/CIK##########.json)

No API key, but the SEC requires a descriptive User-Agent
("Company Name admin@company.com") and at most 10 requests per second.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

import requests

from ..concepts import normalize_cik
from ..config import SECEdgarConfig, SEARCH_RESULT_LIMIT, merge_config
from ..errors import DataNotFoundError, missing_config
from ..interfaces import (
    CompanyMetadata, FinancialData, FinancialDataProvider,
    GetFinancialDataOptions, ProviderCapabilities,
)
from .base import BaseAdapter, safe_str, translate_errors
from .xbrl import parse_company_facts

logger = logging.getLogger(__name__)

PROVIDER_NAME = "SEC-EDGAR"
HEALTH_CHECK_CIK = "0000320193"


class SECEdgarAdapter(BaseAdapter, FinancialDataProvider):
    """
    SEC EDGAR regulatory-filings adapter.

    Accepts a CIK (any padding, optional "CIK" prefix) or a ticker; tickers are
    resolved through the SEC ticker table, which is loaded once per adapter.
    """

    _required_setting = "user_agent"

    _CAPABILITIES = ProviderCapabilities(
        has_regulatory_filings=True,
        has_fundamentals=True,
        has_historical_data=True,
        max_history_years=10,
        rate_limit_per_minute=600,
    )

    def __init__(
        self,
        config: Optional[SECEdgarConfig] = None,
        session: Optional[requests.Session] = None,
        **options: Any,
    ):
        config = merge_config(config or SECEdgarConfig(), options)
        if not config.user_agent:
            raise missing_config(PROVIDER_NAME, "user_agent")
        super().__init__(config, session)
        self._ticker_entries: Optional[List[Dict[str, str]]] = None
        self._ticker_lock = threading.Lock()

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self._CAPABILITIES

    def _get(self, url: str) -> Any:
        return self._request_json(url, headers={
            'User-Agent': self._config.user_agent,
            'Accept': 'application/json',
        })

    def _ticker_table(self) -> List[Dict[str, str]]:
        """SEC ticker table as [{cik, ticker, name}], fetched on first use."""
        with self._ticker_lock:
            if self._ticker_entries is not None:
                return self._ticker_entries

        payload = self._get(self._config.tickers_url)
        rows = payload.values() if isinstance(payload, dict) else payload
        entries = []
        for row in rows:
            cik = normalize_cik(str(row.get('cik_str', '')))
            ticker = safe_str(row.get('ticker'))
            title = safe_str(row.get('title'))
            if cik and ticker and title:
                entries.append({'cik': cik, 'ticker': ticker.upper(), 'name': title})

        with self._ticker_lock:
            self._ticker_entries = entries
        logger.info(f"[SEC-EDGAR] Loaded {len(entries)} ticker mappings")
        return entries

    def _resolve_cik(self, identifier: str) -> str:
        cik = normalize_cik(identifier)
        if cik:
            return cik
        ticker = (identifier or "").strip().upper()
        if ticker:
            for entry in self._ticker_table():
                if entry['ticker'] == ticker:
                    return entry['cik']
        raise DataNotFoundError(self.name, identifier)

    def _ticker_for(self, cik: str) -> Optional[str]:
        for entry in self._ticker_table():
            if entry['cik'] == cik:
                return entry['ticker']
        return None

    @translate_errors
    def search_companies(self, query: str) -> List[CompanyMetadata]:
        """
        Match the query against tickers and company names.

        Exact ticker or CIK matches come first, then ticker prefixes, then
        name substrings.
        """
        text = (query or "").strip()
        if not text:
            return []
        upper = text.upper()
        cik = normalize_cik(text)

        exact, prefix, by_name = [], [], []
        for entry in self._ticker_table():
            if entry['ticker'] == upper or entry['cik'] == cik:
                exact.append(entry)
            elif entry['ticker'].startswith(upper):
                prefix.append(entry)
            elif upper in entry['name'].upper():
                by_name.append(entry)

        results = []
        seen = set()
        for entry in exact + prefix + by_name:
            # The table lists one row per ticker; several share a CIK
            if entry['cik'] in seen:
                continue
            seen.add(entry['cik'])
            results.append(CompanyMetadata(id=entry['cik'], ticker=entry['ticker'], name=entry['name']))
            if len(results) >= SEARCH_RESULT_LIMIT:
                break
        return results

    @translate_errors
    def get_company_metadata(self, identifier: str) -> CompanyMetadata:
        cik = self._resolve_cik(identifier)
        data = self._get(f"{self._config.base_url}/submissions/CIK{cik}.json")

        name = safe_str(data.get('name'))
        if not name:
            raise DataNotFoundError(self.name, identifier)

        tickers = [t for t in (data.get('tickers') or []) if safe_str(t)]
        ticker = tickers[0] if tickers else self._ticker_for(cik)
        if not ticker:
            raise DataNotFoundError(self.name, identifier)

        return CompanyMetadata(
            id=cik,
            ticker=ticker.upper(),
            name=name,
            classification_code=safe_str(data.get('sic')),
            fiscal_year_end=safe_str(data.get('fiscalYearEnd')),
            industry=safe_str(data.get('sicDescription')),
        )

    @translate_errors
    def get_financial_data(
        self,
        identifier: str,
        options: Optional[GetFinancialDataOptions] = None,
    ) -> FinancialData:
        company = self.get_company_metadata(identifier)
        facts = self._get(f"{self._config.base_url}/api/xbrl/companyfacts/CIK{company.id}.json")

        metrics = parse_company_facts(facts)
        if options is not None:
            metrics = options.apply(metrics)

        logger.debug(f"[SEC-EDGAR] {company.ticker}: {len(metrics)} metrics")
        return FinancialData(company=company, metrics=metrics, source=self.name)

    def _probe(self) -> bool:
        data = self._get(f"{self._config.base_url}/submissions/CIK{HEALTH_CHECK_CIK}.json")
        return bool(data.get('name'))
