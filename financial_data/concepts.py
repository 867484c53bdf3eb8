"""
Canonical Financial Concepts

Provider-agnostic concept names (US-GAAP style), the static lookup tables
that translate each upstream's field names into them, and regulatory
identifier (CIK) normalization.
"""

import re
from typing import Dict, Optional

# Income statement (duration)
REVENUES = "Revenues"
COST_OF_REVENUE = "CostOfRevenue"
GROSS_PROFIT = "GrossProfit"
OPERATING_INCOME = "OperatingIncomeLoss"
NET_INCOME = "NetIncomeLoss"
EPS_DILUTED = "EarningsPerShareDiluted"
EPS_BASIC = "EarningsPerShareBasic"
DILUTED_SHARES = "WeightedAverageNumberOfDilutedSharesOutstanding"

# Balance sheet (instant)
ASSETS = "Assets"
ASSETS_CURRENT = "AssetsCurrent"
LIABILITIES = "Liabilities"
LIABILITIES_CURRENT = "LiabilitiesCurrent"
STOCKHOLDERS_EQUITY = "StockholdersEquity"
CASH = "CashAndCashEquivalentsAtCarryingValue"
LONG_TERM_DEBT = "LongTermDebtNoncurrent"

# Cash flow (duration)
OPERATING_CASH_FLOW = "NetCashProvidedByUsedInOperatingActivities"
INVESTING_CASH_FLOW = "NetCashProvidedByUsedInInvestingActivities"
FINANCING_CASH_FLOW = "NetCashProvidedByUsedInFinancingActivities"

# Ratios and per-share figures
CURRENT_RATIO = "CurrentRatio"
QUICK_RATIO = "QuickRatio"
CASH_RATIO = "CashRatio"
GROSS_MARGIN = "GrossProfitMargin"
OPERATING_MARGIN = "OperatingProfitMargin"
NET_MARGIN = "NetProfitMargin"
RETURN_ON_EQUITY = "ReturnOnEquity"
RETURN_ON_ASSETS = "ReturnOnAssets"
RETURN_ON_INVESTED_CAPITAL = "ReturnOnInvestedCapital"
DEBT_TO_EQUITY = "DebtToEquityRatio"
DEBT_RATIO = "DebtRatio"
ASSET_TURNOVER = "AssetTurnover"
PRICE_TO_EARNINGS = "PriceToEarningsRatio"
PRICE_TO_BOOK = "PriceToBookRatio"
PRICE_TO_SALES = "PriceToSalesRatio"
DIVIDEND_YIELD = "DividendYieldRatio"
BOOK_VALUE_PER_SHARE = "BookValuePerShare"
SALES_PER_SHARE = "SalesPerShare"
CASH_PER_SHARE = "CashPerShare"
FREE_CASH_FLOW_PER_SHARE = "FreeCashFlowPerShare"

INSTANT_CONCEPTS = frozenset({
    ASSETS, ASSETS_CURRENT, LIABILITIES, LIABILITIES_CURRENT,
    STOCKHOLDERS_EQUITY, CASH, LONG_TERM_DEBT,
})

# XBRL concept -> canonical concept. Several filers report the same fact under
# different tags; order matters, earlier tags are preferred on collisions.
XBRL_CONCEPTS: Dict[str, str] = {
    'Revenues': REVENUES,
    'RevenueFromContractWithCustomerExcludingAssessedTax': REVENUES,
    'SalesRevenueNet': REVENUES,
    'CostOfRevenue': COST_OF_REVENUE,
    'CostOfGoodsAndServicesSold': COST_OF_REVENUE,
    'GrossProfit': GROSS_PROFIT,
    'OperatingIncomeLoss': OPERATING_INCOME,
    'NetIncomeLoss': NET_INCOME,
    'EarningsPerShareDiluted': EPS_DILUTED,
    'EarningsPerShareBasic': EPS_BASIC,
    'WeightedAverageNumberOfDilutedSharesOutstanding': DILUTED_SHARES,
    'Assets': ASSETS,
    'AssetsCurrent': ASSETS_CURRENT,
    'Liabilities': LIABILITIES,
    'LiabilitiesCurrent': LIABILITIES_CURRENT,
    'StockholdersEquity': STOCKHOLDERS_EQUITY,
    'CashAndCashEquivalentsAtCarryingValue': CASH,
    'LongTermDebtNoncurrent': LONG_TERM_DEBT,
    'NetCashProvidedByUsedInOperatingActivities': OPERATING_CASH_FLOW,
    'NetCashProvidedByUsedInInvestingActivities': INVESTING_CASH_FLOW,
    'NetCashProvidedByUsedInFinancingActivities': FINANCING_CASH_FLOW,
}

XBRL_PREFERENCE: Dict[str, int] = {tag: rank for rank, tag in enumerate(XBRL_CONCEPTS)}

# Finnhub /stock/metric series names
FINNHUB_CONCEPTS: Dict[str, str] = {
    'currentRatio': CURRENT_RATIO,
    'quickRatio': QUICK_RATIO,
    'cashRatio': CASH_RATIO,
    'grossMargin': GROSS_MARGIN,
    'operatingMargin': OPERATING_MARGIN,
    'netMargin': NET_MARGIN,
    'roe': RETURN_ON_EQUITY,
    'roa': RETURN_ON_ASSETS,
    'roic': RETURN_ON_INVESTED_CAPITAL,
    'totalDebtToEquity': DEBT_TO_EQUITY,
    'totalDebtToTotalAsset': DEBT_RATIO,
    'totalAssetTurnover': ASSET_TURNOVER,
    'pe': PRICE_TO_EARNINGS,
    'pb': PRICE_TO_BOOK,
    'bookValuePerShare': BOOK_VALUE_PER_SHARE,
    'ps': PRICE_TO_SALES,
    'salesPerShare': SALES_PER_SHARE,
    'eps': EPS_DILUTED,
}

# FMP /ratios fields
FMP_RATIO_CONCEPTS: Dict[str, str] = {
    'currentRatio': CURRENT_RATIO,
    'quickRatio': QUICK_RATIO,
    'cashRatio': CASH_RATIO,
    'grossProfitMargin': GROSS_MARGIN,
    'operatingProfitMargin': OPERATING_MARGIN,
    'netProfitMargin': NET_MARGIN,
    'returnOnEquity': RETURN_ON_EQUITY,
    'returnOnAssets': RETURN_ON_ASSETS,
    'returnOnCapitalEmployed': RETURN_ON_INVESTED_CAPITAL,
    'debtEquityRatio': DEBT_TO_EQUITY,
    'debtRatio': DEBT_RATIO,
    'assetTurnover': ASSET_TURNOVER,
    'priceEarningsRatio': PRICE_TO_EARNINGS,
    'priceToBookRatio': PRICE_TO_BOOK,
    'priceToSalesRatio': PRICE_TO_SALES,
    'dividendYield': DIVIDEND_YIELD,
    'cashPerShare': CASH_PER_SHARE,
    'freeCashFlowPerShare': FREE_CASH_FLOW_PER_SHARE,
}

# Alpha Vantage INCOME_STATEMENT / BALANCE_SHEET report fields
ALPHA_VANTAGE_CONCEPTS: Dict[str, str] = {
    'totalRevenue': REVENUES,
    'costOfRevenue': COST_OF_REVENUE,
    'grossProfit': GROSS_PROFIT,
    'operatingIncome': OPERATING_INCOME,
    'netIncome': NET_INCOME,
    'totalAssets': ASSETS,
    'totalCurrentAssets': ASSETS_CURRENT,
    'totalLiabilities': LIABILITIES,
    'totalCurrentLiabilities': LIABILITIES_CURRENT,
    'totalShareholderEquity': STOCKHOLDERS_EQUITY,
    'cashAndCashEquivalentsAtCarryingValue': CASH,
    'longTermDebtNoncurrent': LONG_TERM_DEBT,
}


def translate(table: Dict[str, str], upstream_name: str) -> Optional[str]:
    """Canonical name for an upstream field, None when the field is not mapped."""
    return table.get(upstream_name)


def infer_unit(concept: str, currency: str = "USD") -> str:
    """
    Infer the unit of a concept from its name when the upstream does not say.

    Ratios, margins, returns and turnover are dimensionless ('pure'),
    per-share figures are currency per share, everything else is currency.
    """
    if concept == DILUTED_SHARES:
        return "shares"
    if concept.startswith("EarningsPerShare") or concept.endswith("PerShare"):
        return f"{currency}/shares"
    if any(marker in concept for marker in ("Ratio", "Margin", "Return", "Turnover")):
        return "pure"
    return currency


def is_instant_concept(concept: str) -> bool:
    return concept in INSTANT_CONCEPTS


_CIK_PATTERN = re.compile(r'[0-9]+')


def normalize_cik(identifier: Optional[str]) -> Optional[str]:
    """
    Canonical 10-digit CIK, or None when the identifier is not a CIK.

    Strips whitespace and an optional "CIK" prefix, then zero-pads.
    normalize_cik(normalize_cik(x)) == normalize_cik(x).
    """
    if identifier is None:
        return None
    text = str(identifier).strip()
    if text[:3].upper() == "CIK":
        text = text[3:].strip()
    if not _CIK_PATTERN.fullmatch(text):
        return None
    digits = text.lstrip('0') or '0'
    if len(digits) > 10:
        return None
    return digits.zfill(10)
