"""
XBRL Company Facts Parser

Flattens the SEC companyfacts document

    facts -> taxonomy -> concept -> units -> unit -> [fact, ...]

into canonical FinancialMetric objects, one per
(concept, fiscal_year, fiscal_period).
"""

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from ..concepts import XBRL_CONCEPTS, XBRL_PREFERENCE
from ..interfaces import FinancialMetric
from .base import safe_float, safe_int, safe_str, parse_date

logger = logging.getLogger(__name__)

_UNIT_ALIASES = {
    'usd': 'USD',
    'shares': 'shares',
    'usd/shares': 'USD/shares',
    'usd-per-shares': 'USD/shares',
    'pure': 'pure',
}

_DEDUPE_KEY = ['concept', 'fiscal_year', 'fiscal_period']

# Nominal length of each fiscal period in days
_PERIOD_DAYS = {
    'FY': 365,
    'H1': 182,
    'H2': 182,
    'Q1': 91,
    'Q2': 91,
    'Q3': 91,
    'Q4': 91,
}


def normalize_unit(unit: str) -> str:
    return _UNIT_ALIASES.get(unit.strip().lower(), unit.strip())


def _duration_gap(fiscal_period: str, period_start, period_end) -> int:
    """
    Distance in days between a fact's duration and the length its fiscal
    period implies. A 10-K tags the 3-month Q4 next to the full year under
    fp=FY, and a 10-Q tags year-to-date next to the quarter under fp=Qn.
    Instant facts score 0; unknown periods fall back to the raw duration.
    """
    if period_start is None:
        return 0
    days = (period_end - period_start).days
    expected = _PERIOD_DAYS.get(fiscal_period.upper())
    if expected is None:
        return days
    return abs(days - expected)


def _fact_rows(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows = []
    for concepts in (payload.get("facts") or {}).values():
        if not isinstance(concepts, dict):
            continue
        for tag, body in concepts.items():
            canonical = XBRL_CONCEPTS.get(tag)
            if canonical is None:
                continue
            for unit_key, facts in ((body or {}).get('units') or {}).items():
                unit = normalize_unit(unit_key)
                for fact in facts or []:
                    value = safe_float(fact.get('val'))
                    period_end = parse_date(fact.get('end'))
                    fiscal_year = safe_int(fact.get('fy'))
                    fiscal_period = safe_str(fact.get('fp'))
                    if value is None or period_end is None or fiscal_year is None or fiscal_period is None:
                        continue
                    period_start = parse_date(fact.get('start'))
                    filed_at = parse_date(fact.get('filed'))
                    rows.append({
                        'concept': canonical,
                        'value': value,
                        'unit': unit,
                        'period_start': period_start,
                        'period_end': period_end,
                        'fiscal_year': fiscal_year,
                        'fiscal_period': fiscal_period,
                        'filing_ref': safe_str(fact.get('accn')),
                        'form': safe_str(fact.get('form')),
                        'filed_at': filed_at,
                        # Sort keys
                        'end_ord': period_end.toordinal(),
                        'duration_gap': _duration_gap(fiscal_period, period_start, period_end),
                        'filed_ord': filed_at.toordinal() if filed_at else 0,
                        'preference': XBRL_PREFERENCE[tag],
                    })
    return rows


def parse_company_facts(payload: Dict[str, Any]) -> List[FinancialMetric]:
    """
    Parse a companyfacts payload into deduplicated metrics.

    Per (concept, fiscal_year, fiscal_period) the kept fact has the latest
    period end, then the duration closest to the fiscal period's length
    (a year for FY, a quarter for Qn), then the latest filing date,
    then the most preferred source tag. Non-numeric values are dropped.
    Result is ordered by period_end descending.
    """
    rows = _fact_rows(payload)
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df = df.sort_values(
        by=['end_ord', 'duration_gap', 'filed_ord', 'preference'],
        ascending=[False, True, False, True],
        kind='mergesort',
    )
    df = df.drop_duplicates(subset=_DEDUPE_KEY, keep='first')

    logger.debug(f"[XBRL] {len(rows)} facts reduced to {len(df)} metrics")

    metrics = []
    for record in df.to_dict('records'):
        metrics.append(FinancialMetric(
            concept=record['concept'],
            value=float(record['value']),
            unit=record['unit'],
            period_end=record['period_end'],
            period_start=_optional(record['period_start']),
            is_instant=_optional(record['period_start']) is None,
            fiscal_year=int(record['fiscal_year']),
            fiscal_period=record['fiscal_period'],
            filing_ref=_optional(record['filing_ref']),
            form=_optional(record['form']),
            filed_at=_optional(record['filed_at']),
        ))
    return metrics


def _optional(value) -> Optional[Any]:
    """Undo pandas' None -> NaN/NaT coercion in object columns."""
    if value is None or pd.isna(value):
        return None
    return value
