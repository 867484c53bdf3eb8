"""
Composite Provider Router

Composes many adapters into one logical provider:
- Single-value lookups fall back through candidates in priority order
- Union operations (search, peers) query every eligible adapter
  concurrently, then merge and deduplicate in priority order
- Capabilities and health are aggregated across members

The candidate list is an immutable tuple that is replaced wholesale on
add/remove, so an in-flight call never sees a half-updated list.
"""

import contextvars
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from . import cancellation
from .config import SEARCH_RESULT_LIMIT
from .deduplicator import dedupe_companies, dedupe_peers, merge_latest_metrics
from .errors import (
    DataProviderError, ALL_PROVIDERS_FAILED, CANCELLED, CAPABILITY_NOT_AVAILABLE, NOT_FOUND, UNKNOWN,
)
from .interfaces import (
    Capability, CompanyMetadata, FinancialData, FinancialDataProvider,
    GetFinancialDataOptions, PeerCapableProvider, PeerCompany,
    ProviderCapabilities, RealTimePrice, RealTimePriceProvider,
)
from .metrics import MetricsCollector

logger = logging.getLogger(__name__)

COMPOSITE_NAME = "Composite"

T = TypeVar('T')


def _scope_cancelled() -> bool:
    scope = cancellation.current_scope()
    return scope is not None and scope.cancelled


@dataclass(frozen=True)
class ProviderEntry:
    """A member adapter and its routing priority (higher is tried first)."""
    provider: FinancialDataProvider
    priority: int


@dataclass
class _Outcome:
    entry: ProviderEntry
    result: Any = None
    error: Optional[DataProviderError] = None


class CompositeProvider(PeerCapableProvider, RealTimePriceProvider):
    """
    Priority-ordered fallback router over several providers.

    Usage:
        composite = CompositeProvider(metrics=MetricsCollector())
        composite.add_provider(sec_adapter, priority=100)
        composite.add_provider(fmp_adapter, priority=50)

        data = composite.get_financial_data("AAPL")   # SEC first, then FMP
        peers = composite.get_peers("AAPL", limit=5)  # union of peer sources
    """

    def __init__(
        self,
        providers: Iterable[Tuple[FinancialDataProvider, int]] = (),
        metrics: Optional[MetricsCollector] = None,
    ):
        self._entries: Tuple[ProviderEntry, ...] = ()
        self._lock = threading.Lock()
        self._metrics = metrics if metrics is not None else MetricsCollector()
        for provider, priority in providers:
            self.add_provider(provider, priority)

    @property
    def name(self) -> str:
        return COMPOSITE_NAME

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities.combine(e.provider.capabilities for e in self._entries)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_provider(self, provider: FinancialDataProvider, priority: int = 0) -> None:
        """Insert (or replace, by name) a member; members stay sorted by descending priority."""
        if not isinstance(provider, FinancialDataProvider):
            raise TypeError(f"Expected a FinancialDataProvider, got {type(provider).__name__}")
        with self._lock:
            entries = [e for e in self._entries if e.provider.name != provider.name]
            entries.append(ProviderEntry(provider, priority))
            # sort() is stable: equal priorities keep insertion order
            entries.sort(key=lambda e: e.priority, reverse=True)
            self._entries = tuple(entries)
        logger.info(f"[Composite] Added {provider.name} (priority {priority})")

    def remove_provider(self, name: str) -> None:
        with self._lock:
            entries = tuple(e for e in self._entries if e.provider.name != name)
            removed = len(entries) != len(self._entries)
            self._entries = entries
        if removed:
            logger.info(f"[Composite] Removed {name}")

    def get_providers(self) -> List[Tuple[FinancialDataProvider, int]]:
        """Snapshot of (provider, priority) in routing order."""
        return [(e.provider, e.priority) for e in self._entries]

    # ------------------------------------------------------------------
    # Candidate selection
    # ------------------------------------------------------------------

    @staticmethod
    def _prefer(entries: Sequence[ProviderEntry], capability: Capability) -> List[ProviderEntry]:
        """Members with the capability, or every member when none has it."""
        restricted = [e for e in entries if e.provider.capabilities.supports(capability)]
        return restricted or list(entries)

    @staticmethod
    def _require(
        entries: Sequence[ProviderEntry],
        interface: type,
        capability: Capability,
        operation: str,
    ) -> List[ProviderEntry]:
        """Members implementing `interface` and flagging `capability`; raises when there are none."""
        eligible = [
            e for e in entries
            if isinstance(e.provider, interface) and e.provider.capabilities.supports(capability)
        ]
        if not eligible:
            raise DataProviderError(
                f"No configured provider supports {operation}",
                COMPOSITE_NAME, CAPABILITY_NOT_AVAILABLE, 501, False,
            )
        return eligible

    # ------------------------------------------------------------------
    # Routing primitives
    # ------------------------------------------------------------------

    def _record(
        self,
        operation: str,
        identifier: str,
        started: float,
        tried: List[str],
        succeeded: List[str],
        failures: Dict[str, str],
        error: Optional[DataProviderError] = None,
    ) -> None:
        self._metrics.record_call(
            operation=operation,
            identifier=identifier,
            providers_tried=tried,
            providers_succeeded=succeeded,
            latency_ms=(time.perf_counter() - started) * 1000,
            failures=failures,
            error_type=error.code if error else None,
            error_message=error.message if error else None,
        )

    def _cancelled(self, operation: str) -> DataProviderError:
        return DataProviderError(
            f"{operation} cancelled by caller", COMPOSITE_NAME, CANCELLED, 499, False
        )

    @staticmethod
    def _unexpected(provider: FinancialDataProvider, error: Exception) -> DataProviderError:
        """Wrap an exception a member let escape untranslated."""
        logger.error(f"[Composite] {provider.name} raised {type(error).__name__}: {error}")
        wrapped = DataProviderError(
            f"Unexpected {type(error).__name__}: {error}", provider.name, UNKNOWN, 500, False
        )
        wrapped.__cause__ = error
        return wrapped

    @staticmethod
    def _aggregate(operation: str, identifier: str, errors: List[DataProviderError]) -> DataProviderError:
        """One error carrying every attempt's reason."""
        if errors:
            detail = "; ".join(f"{e.provider}: {e.message}" for e in errors)
        else:
            detail = "no providers configured"
        all_not_found = bool(errors) and all(e.code == NOT_FOUND for e in errors)
        return DataProviderError(
            f"All providers failed for {operation}({identifier}): {detail}",
            COMPOSITE_NAME,
            ALL_PROVIDERS_FAILED,
            404 if all_not_found else None,
            any(e.is_retryable for e in errors),
        )

    def _first_success(
        self,
        operation: str,
        identifier: str,
        entries: Sequence[ProviderEntry],
        call: Callable[[FinancialDataProvider], T],
    ) -> T:
        """Try candidates in order and return the first success."""
        started = time.perf_counter()
        tried: List[str] = []
        failures: Dict[str, str] = {}
        errors: List[DataProviderError] = []

        for entry in entries:
            provider = entry.provider
            if _scope_cancelled():
                error = self._cancelled(operation)
                self._record(operation, identifier, started, tried, [], failures, error)
                raise error

            tried.append(provider.name)
            try:
                result = call(provider)
            except DataProviderError as e:
                if e.code == CANCELLED:
                    error = self._cancelled(operation)
                    self._record(operation, identifier, started, tried, [], failures, error)
                    raise error from e
                failures[provider.name] = e.code
                errors.append(e)
                logger.warning(
                    f"[Composite] {operation} failed on {provider.name} for {identifier}: "
                    f"{e.code} {e.message}"
                )
                continue
            except Exception as e:
                error = self._unexpected(provider, e)
                failures[provider.name] = error.code
                errors.append(error)
                continue

            if failures:
                logger.info(f"[Composite] {operation} for {identifier} served by fallback {provider.name}")
            self._record(operation, identifier, started, tried, [provider.name], failures)
            return result

        error = self._aggregate(operation, identifier, errors)
        self._record(operation, identifier, started, tried, [], failures, error)
        raise error

    def _fan_out(
        self,
        operation: str,
        identifier: str,
        entries: Sequence[ProviderEntry],
        call: Callable[[FinancialDataProvider], T],
    ) -> List[_Outcome]:
        """
        Run `call` on every entry concurrently and join all of them.

        Outcomes keep the order of `entries`. Raises the aggregate error when
        every entry failed, and CANCELLED when the caller's scope was cancelled.
        """
        started = time.perf_counter()
        outcomes = [_Outcome(entry) for entry in entries]

        if entries:
            with ThreadPoolExecutor(max_workers=len(entries), thread_name_prefix="composite") as executor:
                futures = [
                    executor.submit(contextvars.copy_context().run, call, entry.provider)
                    for entry in entries
                ]
                for outcome, future in zip(outcomes, futures):
                    try:
                        outcome.result = future.result()
                    except DataProviderError as e:
                        outcome.error = e
                    except Exception as e:
                        outcome.error = self._unexpected(outcome.entry.provider, e)

        tried = [o.entry.provider.name for o in outcomes]
        succeeded = [o.entry.provider.name for o in outcomes if o.error is None]
        failures = {o.entry.provider.name: o.error.code for o in outcomes if o.error is not None}

        if _scope_cancelled() or CANCELLED in failures.values():
            error = self._cancelled(operation)
            self._record(operation, identifier, started, tried, [], failures, error)
            raise error

        for outcome in outcomes:
            if outcome.error is not None:
                logger.warning(
                    f"[Composite] {operation} failed on {outcome.entry.provider.name} "
                    f"for {identifier}: {outcome.error.code} {outcome.error.message}"
                )

        if not succeeded:
            error = self._aggregate(operation, identifier, [o.error for o in outcomes if o.error])
            self._record(operation, identifier, started, tried, [], failures, error)
            raise error

        self._record(operation, identifier, started, tried, succeeded, failures)
        return outcomes

    # ------------------------------------------------------------------
    # FinancialDataProvider
    # ------------------------------------------------------------------

    def search_companies(self, query: str) -> List[CompanyMetadata]:
        """Union of every member's matches, deduplicated, at most 10."""
        if not (query or "").strip():
            return []
        outcomes = self._fan_out(
            "search_companies", query, self._entries,
            lambda p: p.search_companies(query),
        )
        return dedupe_companies(
            (o.result for o in outcomes if o.error is None),
            limit=SEARCH_RESULT_LIMIT,
        )

    def get_company_metadata(self, identifier: str) -> CompanyMetadata:
        return self._first_success(
            "get_company_metadata", identifier, self._entries,
            lambda p: p.get_company_metadata(identifier),
        )

    def get_financial_data(
        self,
        identifier: str,
        options: Optional[GetFinancialDataOptions] = None,
    ) -> FinancialData:
        candidates = self._prefer(self._entries, Capability.REGULATORY_FILINGS)
        return self._first_success(
            "get_financial_data", identifier, candidates,
            lambda p: p.get_financial_data(identifier, options),
        )

    def get_latest_metrics(self, identifier: str, concepts: Sequence[str]) -> FinancialData:
        candidates = self._prefer(self._entries, Capability.REGULATORY_FILINGS)
        return self._first_success(
            "get_latest_metrics", identifier, candidates,
            lambda p: p.get_latest_metrics(identifier, concepts),
        )

    def get_peers(self, identifier: str, limit: Optional[int] = None) -> List[PeerCompany]:
        """
        Union of every peer-capable member's peers.

        `limit` is applied after merging; members receive it only as a hint.
        """
        eligible = self._require(self._entries, PeerCapableProvider, Capability.PEER_DATA, "get_peers")
        outcomes = self._fan_out(
            "get_peers", identifier, eligible,
            lambda p: p.get_peers(identifier, limit),
        )
        return dedupe_peers((o.result for o in outcomes if o.error is None), limit=limit)

    def get_real_time_price(self, ticker: str) -> RealTimePrice:
        eligible = self._require(
            self._entries, RealTimePriceProvider, Capability.REAL_TIME_PRICE, "get_real_time_price"
        )
        return self._first_success(
            "get_real_time_price", ticker, eligible,
            lambda p: p.get_real_time_price(ticker),
        )

    def get_merged_latest_metrics(self, identifier: str, concepts: Sequence[str]) -> FinancialData:
        """
        Latest value per concept across every fundamentals-capable member.

        A larger period_end wins; on equal period_end the higher-priority
        member wins. Company metadata comes from the highest-priority member
        that answered.
        """
        candidates = self._prefer(self._entries, Capability.FUNDAMENTALS)
        outcomes = self._fan_out(
            "get_merged_latest_metrics", identifier, candidates,
            lambda p: p.get_latest_metrics(identifier, concepts),
        )
        answered = [o for o in outcomes if o.error is None]
        merged, sources = merge_latest_metrics(
            [(o.entry.provider.name, o.result.metrics) for o in answered],
            concepts,
        )
        logger.debug(f"[Composite] Merged latest metrics for {identifier}: {sources}")
        return FinancialData(company=answered[0].result.company, metrics=merged, source=COMPOSITE_NAME)

    def health_check(self) -> bool:
        """Healthy when at least one member is healthy."""
        for entry in self._entries:
            try:
                if entry.provider.health_check() is True:
                    return True
            except Exception as e:
                logger.warning(f"[Composite] Health check for {entry.provider.name} raised: {e}")
        return False

    def configure(self, options: Optional[Dict[str, Any]] = None) -> None:
        """Apply the same options to every member."""
        for entry in self._entries:
            entry.provider.configure(options)
