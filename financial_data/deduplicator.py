"""
Result Deduplicator

Merges result lists coming from several providers into one:
1. Companies and peers match on regulatory id, or on the upper-cased
   ticker when either side lacks an id
2. The first occurrence wins, so callers pass lists in priority order
3. Latest-metric selection keeps one metric per concept
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

from .interfaces import CompanyMetadata, FinancialMetric, PeerCompany

logger = logging.getLogger(__name__)

K = TypeVar('K', CompanyMetadata, PeerCompany)


def _dedupe_by_identity(groups: Iterable[Iterable[K]], limit: Optional[int]) -> List[K]:
    """
    An item repeats an earlier one when the ids match, or when the
    upper-cased tickers match and either side has no id. Two entries with
    different ids are distinct even if they share a ticker.
    """
    if limit is not None and limit <= 0:
        return []
    seen_ids = set()
    # ticker -> ids already kept under it ("" when one came without an id)
    seen_tickers: Dict[str, Set[str]] = {}
    merged: List[K] = []
    for group in groups:
        for item in group:
            ticker = item.ticker.upper()
            ids_for_ticker = seen_tickers.get(ticker, set())
            if item.id:
                duplicate = item.id in seen_ids or "" in ids_for_ticker
            else:
                duplicate = bool(ids_for_ticker)
            if duplicate:
                continue
            if item.id:
                seen_ids.add(item.id)
            seen_tickers.setdefault(ticker, set()).add(item.id)
            merged.append(item)
            if limit is not None and len(merged) >= limit:
                return merged
    return merged


def dedupe_companies(
    groups: Iterable[Iterable[CompanyMetadata]],
    limit: Optional[int] = None,
) -> List[CompanyMetadata]:
    """Join company lists (priority order), dropping repeats; stop at `limit`."""
    return _dedupe_by_identity(groups, limit)


def dedupe_peers(
    groups: Iterable[Iterable[PeerCompany]],
    limit: Optional[int] = None,
) -> List[PeerCompany]:
    """Join peer lists (priority order), dropping repeats; truncate to `limit`."""
    return _dedupe_by_identity(groups, limit)


def select_latest(metrics: Iterable[FinancialMetric], concepts: Sequence[str]) -> List[FinancialMetric]:
    """
    Pick the metric with the greatest period_end for each requested concept.

    Output follows the order of `concepts`; repeated concepts in the request
    and concepts without data are skipped. Ties on period_end keep the
    earlier metric.
    """
    latest: Dict[str, FinancialMetric] = {}
    for metric in metrics:
        current = latest.get(metric.concept)
        if current is None or metric.period_end > current.period_end:
            latest[metric.concept] = metric

    result = []
    emitted = set()
    for concept in concepts:
        if concept in emitted or concept not in latest:
            continue
        emitted.add(concept)
        result.append(latest[concept])
    return result


def merge_latest_metrics(
    ranked: Sequence[Tuple[str, Sequence[FinancialMetric]]],
    concepts: Sequence[str],
) -> Tuple[List[FinancialMetric], Dict[str, str]]:
    """
    Merge per-provider latest metrics into one value per concept.

    `ranked` holds (provider name, metrics) in descending priority. A larger
    period_end wins; on equal period_end the higher-priority provider wins.

    Returns the merged metrics (request order) and the provider chosen for
    each concept.
    """
    best: Dict[str, FinancialMetric] = {}
    chosen: Dict[str, str] = {}
    for provider, metrics in ranked:
        for metric in metrics:
            current = best.get(metric.concept)
            if current is None or metric.period_end > current.period_end:
                best[metric.concept] = metric
                chosen[metric.concept] = provider

    result = []
    emitted = set()
    for concept in concepts:
        if concept in emitted or concept not in best:
            continue
        emitted.add(concept)
        result.append(best[concept])

    if chosen:
        logger.debug(f"[Dedup] Latest metric sources: {chosen}")
    return result, {c: chosen[c] for c in emitted}


def unique_by_key(metrics: Iterable[FinancialMetric]) -> List[FinancialMetric]:
    """Keep one metric per (concept, fiscal_year, fiscal_period), the one with the latest period_end."""
    by_key: Dict[Tuple[str, int, str], FinancialMetric] = {}
    for metric in metrics:
        current = by_key.get(metric.key)
        if current is None or metric.period_end > current.period_end:
            by_key[metric.key] = metric
    return list(by_key.values())
