"""
Provider Registry

Holds the configured adapters by name and answers lookups by name,
primary status and capability. The table is replaced copy-on-write under a
lock, so readers always see a consistent snapshot without locking.
"""

import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from .interfaces import Capability, FinancialDataProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Name -> adapter table with an optional primary adapter.

    Usage:
        registry = ProviderRegistry()
        registry.register(SECEdgarAdapter(user_agent="Acme ops@acme.com"), is_primary=True)
        registry.register(FMPAdapter(api_key="..."))

        primary = registry.get_primary()
        peer_sources = registry.get_by_capability(Capability.PEER_DATA)
    """

    def __init__(self):
        self._providers: Dict[str, FinancialDataProvider] = {}
        self._primary: Optional[str] = None
        self._lock = threading.Lock()

    def register(self, provider: FinancialDataProvider, is_primary: bool = False) -> None:
        """Add or replace an adapter by name; `is_primary` makes it the primary (last call wins)."""
        if not isinstance(provider, FinancialDataProvider):
            raise TypeError(
                f"Expected a FinancialDataProvider, got {type(provider).__name__}"
            )
        name = provider.name
        with self._lock:
            providers = dict(self._providers)
            replaced = name in providers
            providers[name] = provider
            self._providers = providers
            if is_primary:
                self._primary = name

        logger.info(
            f"[Registry] {'Replaced' if replaced else 'Registered'} provider {name}"
            f"{' (primary)' if is_primary else ''}"
        )

    def unregister(self, name: str) -> bool:
        """Remove an adapter; returns False when no adapter had that name."""
        with self._lock:
            if name not in self._providers:
                return False
            providers = dict(self._providers)
            del providers[name]
            self._providers = providers
            if self._primary == name:
                self._primary = None
        logger.info(f"[Registry] Unregistered provider {name}")
        return True

    def get(self, name: str) -> Optional[FinancialDataProvider]:
        return self._providers.get(name)

    def get_primary(self) -> Optional[FinancialDataProvider]:
        providers, primary = self._providers, self._primary
        return providers.get(primary) if primary else None

    def get_all(self) -> List[FinancialDataProvider]:
        """All adapters in registration order."""
        return list(self._providers.values())

    def get_by_capability(self, capability: Capability) -> List[FinancialDataProvider]:
        return [p for p in self._providers.values() if p.capabilities.supports(capability)]

    def names(self) -> List[str]:
        return list(self._providers)

    def health_check_all(self) -> Dict[str, bool]:
        """
        Run every adapter's health check concurrently.

        A check that raises (or returns a non-bool) is recorded as False; one
        slow or failing adapter does not affect the others.
        """
        providers = self.get_all()
        if not providers:
            return {}

        with ThreadPoolExecutor(max_workers=len(providers), thread_name_prefix="health") as executor:
            futures = {
                p.name: executor.submit(contextvars.copy_context().run, p.health_check)
                for p in providers
            }
            results = {}
            for name, future in futures.items():
                try:
                    results[name] = future.result() is True
                except Exception as e:
                    logger.warning(f"[Registry] Health check for {name} raised: {e}")
                    results[name] = False

        logger.debug(f"[Registry] Health: {results}")
        return results

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers
