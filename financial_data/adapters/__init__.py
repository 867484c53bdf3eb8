"""
Data Provider Adapters

Each adapter implements the FinancialDataProvider interface for a specific
upstream (SEC EDGAR, Finnhub, Financial Modeling Prep, Alpha Vantage).
"""

from .sec_edgar_adapter import SECEdgarAdapter
from .finnhub_adapter import FinnhubAdapter
from .fmp_adapter import FMPAdapter
from .alphavantage_adapter import AlphaVantageAdapter

__all__ = [
    "SECEdgarAdapter",
    "FinnhubAdapter",
    "FMPAdapter",
    "AlphaVantageAdapter",
]
