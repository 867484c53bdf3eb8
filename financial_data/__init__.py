"""
Financial Data Gateway

Unified access to company financial data from several upstream providers
behind one interface, with automatic fallback between them.

Providers:
- SEC EDGAR: reported XBRL facts from regulatory filings (free, User-Agent required)
- Financial Modeling Prep: ratios, peers, quotes (API key)
- Finnhub: metric series, peers, quotes (API key)
- Alpha Vantage: statements and quotes (API key)

Usage:
    from financial_data import load_settings, build_registry, build_composite

    settings = load_settings()
    registry = build_registry(settings)
    composite = build_composite(registry, settings)

    apple = composite.get_company_metadata("AAPL")
    latest = composite.get_latest_metrics("0000320193", ["Revenues", "NetIncomeLoss"])
    peers = composite.get_peers("AAPL", limit=5)
"""

from .interfaces import (
    Capability,
    CompanyMetadata,
    FinancialMetric,
    FinancialData,
    PeerCompany,
    RealTimePrice,
    ProviderCapabilities,
    GetFinancialDataOptions,
    FinancialDataProvider,
    PeerCapableProvider,
    RealTimePriceProvider,
)
from .errors import DataProviderError, RateLimitError, DataNotFoundError
from .cancellation import CancellationScope, OperationCancelled
from .registry import ProviderRegistry
from .composite import CompositeProvider
from .metrics import MetricsCollector
from .settings import Settings, load_settings
from .bootstrap import build_registry, build_composite
from .adapters import SECEdgarAdapter, FinnhubAdapter, FMPAdapter, AlphaVantageAdapter

__version__ = "1.0.0"

__all__ = [
    # Data classes and interfaces
    'Capability',
    'CompanyMetadata',
    'FinancialMetric',
    'FinancialData',
    'PeerCompany',
    'RealTimePrice',
    'ProviderCapabilities',
    'GetFinancialDataOptions',
    'FinancialDataProvider',
    'PeerCapableProvider',
    'RealTimePriceProvider',
    # Errors
    'DataProviderError',
    'RateLimitError',
    'DataNotFoundError',
    # Routing
    'CancellationScope',
    'OperationCancelled',
    'ProviderRegistry',
    'CompositeProvider',
    'MetricsCollector',
    # Wiring
    'Settings',
    'load_settings',
    'build_registry',
    'build_composite',
    # Adapters
    'SECEdgarAdapter',
    'FinnhubAdapter',
    'FMPAdapter',
    'AlphaVantageAdapter',
]
