"""
Financial Data Interfaces and Data Classes

Defines the abstract provider interfaces and the standardized, immutable data
structures that every provider returns, so callers see one consistent shape
no matter which upstream served the request.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Sequence, Tuple


class Capability(Enum):
    """Categories of data a provider can serve (maps to ProviderCapabilities flags)."""
    REGULATORY_FILINGS = "has_regulatory_filings"
    FUNDAMENTALS = "has_fundamentals"
    REAL_TIME_PRICE = "has_real_time_price"
    PEER_DATA = "has_peer_data"
    HISTORICAL_DATA = "has_historical_data"
    RATIO_DATA = "has_ratio_data"


def _require_text(value: Any, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")


def _require_finite(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{field_name} must be a finite number, got {value!r}")


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class CompanyMetadata:
    """Standardized company metadata.

    `id` is the regulatory identifier (10-digit CIK). Providers that cannot
    supply one use the empty string.
    """
    id: str
    ticker: str
    name: str
    classification_code: Optional[str] = None  # SIC
    fiscal_year_end: Optional[str] = None      # MMDD
    sector: Optional[str] = None
    industry: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.id, str):
            raise ValueError("id must be a string (empty when unsupported)")
        _require_text(self.ticker, "ticker")
        _require_text(self.name, "name")

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'ticker': self.ticker,
            'name': self.name,
            'classificationCode': self.classification_code,
            'fiscalYearEnd': self.fiscal_year_end,
            'sector': self.sector,
            'industry': self.industry,
        })


@dataclass(frozen=True)
class FinancialMetric:
    """A single reported (or derived) financial fact under a canonical concept name."""
    concept: str
    value: float
    unit: str
    period_end: date
    is_instant: bool
    fiscal_year: int
    fiscal_period: str
    period_start: Optional[date] = None
    filing_ref: Optional[str] = None  # accession number
    form: Optional[str] = None
    filed_at: Optional[date] = None

    def __post_init__(self):
        _require_text(self.concept, "concept")
        _require_finite(self.value, "value")
        _require_text(self.unit, "unit")
        _require_text(self.fiscal_period, "fiscal_period")
        if not isinstance(self.period_end, date):
            raise ValueError("period_end must be a date")
        if self.period_start is not None and self.period_start > self.period_end:
            raise ValueError("period_start must not be after period_end")
        if isinstance(self.fiscal_year, bool) or not isinstance(self.fiscal_year, int):
            raise ValueError("fiscal_year must be an integer")

    @property
    def key(self) -> Tuple[str, int, str]:
        """Address of this metric within one company's result set."""
        return (self.concept, self.fiscal_year, self.fiscal_period)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'concept': self.concept,
            'value': self.value,
            'unit': self.unit,
            'periodEnd': _iso(self.period_end),
            'periodStart': _iso(self.period_start),
            'isInstant': self.is_instant,
            'fiscalYear': self.fiscal_year,
            'fiscalPeriod': self.fiscal_period,
            'filingRef': self.filing_ref,
            'form': self.form,
            'filedAt': _iso(self.filed_at),
        })


@dataclass(frozen=True)
class FinancialData:
    """One company's metrics as produced by a single provider for a single request."""
    company: CompanyMetadata
    metrics: Tuple[FinancialMetric, ...]
    source: str
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, 'metrics', tuple(self.metrics))
        _require_text(self.source, "source")

    def with_metrics(self, metrics: Iterable[FinancialMetric]) -> 'FinancialData':
        return replace(self, metrics=tuple(metrics))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'company': self.company.to_dict(),
            'metrics': [m.to_dict() for m in self.metrics],
            'lastUpdated': self.last_updated.isoformat(),
            'source': self.source,
        }


@dataclass(frozen=True)
class PeerCompany:
    """A company considered comparable to the one requested."""
    id: str
    ticker: str
    name: str
    market_cap: Optional[float] = None
    similarity: Optional[float] = None  # 0-1

    def __post_init__(self):
        if not isinstance(self.id, str):
            raise ValueError("id must be a string (empty when unsupported)")
        _require_text(self.ticker, "ticker")
        _require_text(self.name, "name")
        if self.market_cap is not None:
            _require_finite(self.market_cap, "market_cap")
            if self.market_cap < 0:
                raise ValueError("market_cap must not be negative")
        if self.similarity is not None:
            _require_finite(self.similarity, "similarity")
            if not 0.0 <= self.similarity <= 1.0:
                raise ValueError("similarity must be within [0, 1]")

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'ticker': self.ticker,
            'name': self.name,
            'marketCap': self.market_cap,
            'similarity': self.similarity,
        })


@dataclass(frozen=True)
class RealTimePrice:
    """Latest traded price for a ticker."""
    ticker: str
    price: float
    change: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[int] = None
    timestamp: Optional[datetime] = None
    source: str = ""

    def __post_init__(self):
        _require_text(self.ticker, "ticker")
        _require_finite(self.price, "price")

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'ticker': self.ticker,
            'price': self.price,
            'change': self.change,
            'changePercent': self.change_percent,
            'volume': self.volume,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'source': self.source,
        })


def _max_optional(current: Optional[int], candidate: Optional[int]) -> Optional[int]:
    if candidate is None:
        return current
    if current is None:
        return candidate
    return max(current, candidate)


@dataclass(frozen=True)
class ProviderCapabilities:
    """What one provider can serve. Fixed when the provider is constructed."""
    has_regulatory_filings: bool = False
    has_fundamentals: bool = False
    has_real_time_price: bool = False
    has_peer_data: bool = False
    has_historical_data: bool = False
    has_ratio_data: bool = False
    max_history_years: Optional[int] = None
    rate_limit_per_minute: Optional[int] = None

    def supports(self, capability: Capability) -> bool:
        return bool(getattr(self, capability.value))

    @classmethod
    def combine(cls, capabilities: Iterable['ProviderCapabilities']) -> 'ProviderCapabilities':
        """Logical OR of every boolean flag, maximum of every numeric flag."""
        flags = {cap.value: False for cap in Capability}
        max_history = None
        rate_limit = None
        for caps in capabilities:
            for cap in Capability:
                flags[cap.value] = flags[cap.value] or caps.supports(cap)
            max_history = _max_optional(max_history, caps.max_history_years)
            rate_limit = _max_optional(rate_limit, caps.rate_limit_per_minute)
        return cls(max_history_years=max_history, rate_limit_per_minute=rate_limit, **flags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hasRegulatoryFilings': self.has_regulatory_filings,
            'hasFundamentals': self.has_fundamentals,
            'hasRealTimePrice': self.has_real_time_price,
            'hasPeerData': self.has_peer_data,
            'hasHistoricalData': self.has_historical_data,
            'hasRatioData': self.has_ratio_data,
            'maxHistoryYears': self.max_history_years,
            'rateLimitPerMinute': self.rate_limit_per_minute,
        }


@dataclass(frozen=True)
class GetFinancialDataOptions:
    """Post-normalization filters for get_financial_data."""
    concepts: Optional[Sequence[str]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    forms: Optional[Sequence[str]] = None
    max_results: Optional[int] = None

    def apply(self, metrics: Iterable[FinancialMetric]) -> List[FinancialMetric]:
        """
        Filter normalized metrics (fetch-then-filter).

        Ordering is period_end descending (stable), so max_results keeps
        the most recent facts.
        """
        result = list(metrics)
        if self.concepts:
            wanted = set(self.concepts)
            result = [m for m in result if m.concept in wanted]
        if self.start_date:
            result = [m for m in result if m.period_end >= self.start_date]
        if self.end_date:
            result = [m for m in result if m.period_end <= self.end_date]
        if self.forms:
            forms = set(self.forms)
            result = [m for m in result if m.form in forms]

        result.sort(key=lambda m: m.period_end, reverse=True)

        if self.max_results and self.max_results > 0:
            result = result[:self.max_results]
        return result


class FinancialDataProvider(ABC):
    """
    Abstract base class for all financial data providers.

    Each adapter implements the same interface for a different upstream
    (SEC EDGAR, Finnhub, FMP, Alpha Vantage); the composite router
    implements it too.

    Implementations must:
    1. Raise only DataProviderError (or its RateLimitError / DataNotFoundError
       subtypes) from data operations
    2. Return an empty list, not an error, for a search with no matches
    3. Never raise from health_check()
    4. Accept configure({}) as a no-op
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in errors, logs and metrics."""

    @property
    @abstractmethod
    def capabilities(self) -> ProviderCapabilities:
        """Capability flags, fixed at construction."""

    @abstractmethod
    def search_companies(self, query: str) -> List[CompanyMetadata]:
        """Find companies matching a free-text query (at most 10)."""

    @abstractmethod
    def get_company_metadata(self, identifier: str) -> CompanyMetadata:
        """Resolve an identifier (CIK or ticker) to company metadata."""

    @abstractmethod
    def get_financial_data(
        self,
        identifier: str,
        options: Optional[GetFinancialDataOptions] = None,
    ) -> FinancialData:
        """Fetch normalized metrics, filtered after normalization by `options`."""

    @abstractmethod
    def get_latest_metrics(self, identifier: str, concepts: Sequence[str]) -> FinancialData:
        """Most recent metric per requested concept; missing concepts are omitted."""

    @abstractmethod
    def health_check(self) -> bool:
        """True when the upstream is reachable and usable. Never raises."""

    @abstractmethod
    def configure(self, options: Optional[Dict[str, Any]] = None) -> None:
        """Apply new settings (credentials, timeouts). Idempotent."""


class PeerCapableProvider(FinancialDataProvider):
    """Provider that can list comparable companies."""

    @abstractmethod
    def get_peers(self, identifier: str, limit: Optional[int] = None) -> List[PeerCompany]:
        """Comparable companies for the identifier, at most `limit` when given."""


class RealTimePriceProvider(FinancialDataProvider):
    """Provider that can serve a current quote."""

    @abstractmethod
    def get_real_time_price(self, ticker: str) -> RealTimePrice:
        """Latest price for a ticker."""
