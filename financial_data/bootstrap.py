"""
Explicit construction of the provider graph.

    settings = load_settings()
    registry = build_registry(settings)
    composite = build_composite(registry, settings, metrics=MetricsCollector())
"""

import logging
from typing import Optional

import requests

from .adapters import AlphaVantageAdapter, FinnhubAdapter, FMPAdapter, SECEdgarAdapter
from .composite import CompositeProvider
from .config import AlphaVantageConfig, FinnhubConfig, FMPConfig, SECEdgarConfig
from .metrics import MetricsCollector
from .registry import ProviderRegistry
from .settings import Settings

logger = logging.getLogger(__name__)


def build_registry(settings: Settings, session: Optional[requests.Session] = None) -> ProviderRegistry:
    """
    Construct and register every configured adapter.

    SEC EDGAR is always registered and is the primary; a missing
    SEC_USER_AGENT raises MISSING_CONFIG. Commercial adapters are registered
    only when their API key is set. `session` is shared by all adapters when
    given (tests pass a fake one).
    """
    registry = ProviderRegistry()
    timeout = settings.timeout_seconds

    registry.register(
        SECEdgarAdapter(
            SECEdgarConfig(
                user_agent=settings.sec_user_agent,
                min_request_interval_ms=settings.sec_request_delay_ms,
                timeout_seconds=timeout,
            ),
            session=session,
        ),
        is_primary=True,
    )

    if settings.fmp_api_key:
        registry.register(FMPAdapter(
            FMPConfig(api_key=settings.fmp_api_key, timeout_seconds=timeout), session=session
        ))
    if settings.finnhub_api_key:
        registry.register(FinnhubAdapter(
            FinnhubConfig(api_key=settings.finnhub_api_key, timeout_seconds=timeout), session=session
        ))
    if settings.alpha_vantage_api_key:
        registry.register(AlphaVantageAdapter(
            AlphaVantageConfig(api_key=settings.alpha_vantage_api_key, timeout_seconds=timeout),
            session=session,
        ))

    logger.info(f"[Bootstrap] Registered providers: {registry.names()}")
    return registry


def build_composite(
    registry: ProviderRegistry,
    settings: Settings,
    metrics: Optional[MetricsCollector] = None,
) -> CompositeProvider:
    """Wrap every registered adapter in a CompositeProvider using the configured priorities."""
    composite = CompositeProvider(metrics=metrics)
    for provider in registry.get_all():
        composite.add_provider(provider, settings.priority_for(provider.name))
    return composite
