"""
Financial Data Configuration

Defines per-adapter configurations, default provider priorities and the
limits shared by the composite router.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional, TypeVar

DEFAULT_TIMEOUT_SECONDS = 10
SEARCH_RESULT_LIMIT = 10

# Higher = tried first
DEFAULT_PROVIDER_PRIORITIES: Dict[str, int] = {
    "SEC-EDGAR": 100,
    "FMP": 50,
    "Finnhub": 40,
    "Alpha Vantage": 30,
}

SEC_BASE_URL = "https://data.sec.gov"
SEC_TICKERS_URL = "https://www.sec.gov/files/company_tickers.json"
FINNHUB_BASE_URL = "https://finnhub.io/api/v1"
FMP_BASE_URL = "https://financialmodelingprep.com/api/v3"
ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"


@dataclass(frozen=True)
class AdapterConfig:
    """Settings common to every upstream adapter."""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    min_request_interval_ms: int = 0   # Spacing between upstream requests
    cooldown_seconds: int = 60         # Fail-fast window after an upstream 429


@dataclass(frozen=True)
class SECEdgarConfig(AdapterConfig):
    user_agent: str = ""               # SEC requires "Company contact@email"
    base_url: str = SEC_BASE_URL
    tickers_url: str = SEC_TICKERS_URL
    min_request_interval_ms: int = 100  # SEC fair access: 10 req/sec


@dataclass(frozen=True)
class FinnhubConfig(AdapterConfig):
    api_key: str = ""
    base_url: str = FINNHUB_BASE_URL


@dataclass(frozen=True)
class FMPConfig(AdapterConfig):
    api_key: str = ""
    base_url: str = FMP_BASE_URL


@dataclass(frozen=True)
class AlphaVantageConfig(AdapterConfig):
    api_key: str = ""
    base_url: str = ALPHA_VANTAGE_BASE_URL
    cooldown_seconds: int = 120        # Free tier: 5 req/min, 500 req/day


C = TypeVar('C', bound=AdapterConfig)


def merge_config(config: C, options: Optional[Dict[str, Any]]) -> C:
    """Return `config` with known keys from `options` applied; unknown keys are ignored."""
    if not options:
        return config
    known = {f.name for f in fields(config)}
    updates = {k: v for k, v in options.items() if k in known}
    if not updates:
        return config
    return replace(config, **updates)
