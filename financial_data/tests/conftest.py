"""
Shared fixtures. No test touches the network: every adapter gets a
FakeSession preloaded with the canned payloads from fixtures.py.
"""
import pytest

from ..adapters import AlphaVantageAdapter, FinnhubAdapter, FMPAdapter, SECEdgarAdapter
from ..config import AlphaVantageConfig, FinnhubConfig, FMPConfig, SECEdgarConfig
from .fixtures import alpha_vantage_session, finnhub_session, fmp_session, sec_session

TEST_USER_AGENT = "Test Suite tests@example.com"


def make_sec_adapter(session):
    return SECEdgarAdapter(
        SECEdgarConfig(user_agent=TEST_USER_AGENT, min_request_interval_ms=0), session=session
    )


def make_finnhub_adapter(session):
    return FinnhubAdapter(FinnhubConfig(api_key="test-finnhub-key"), session=session)


def make_fmp_adapter(session):
    return FMPAdapter(FMPConfig(api_key="test-fmp-key"), session=session)


def make_alpha_vantage_adapter(session):
    return AlphaVantageAdapter(AlphaVantageConfig(api_key="test-av-key"), session=session)


# name -> (adapter factory, session factory)
ADAPTER_FACTORIES = {
    "SEC-EDGAR": (make_sec_adapter, sec_session),
    "Finnhub": (make_finnhub_adapter, finnhub_session),
    "FMP": (make_fmp_adapter, fmp_session),
    "Alpha Vantage": (make_alpha_vantage_adapter, alpha_vantage_session),
}


@pytest.fixture
def sec_adapter():
    session = sec_session()
    return make_sec_adapter(session), session


@pytest.fixture
def finnhub_adapter():
    session = finnhub_session()
    return make_finnhub_adapter(session), session


@pytest.fixture
def fmp_adapter():
    session = fmp_session()
    return make_fmp_adapter(session), session


@pytest.fixture
def alpha_vantage_adapter():
    session = alpha_vantage_session()
    return make_alpha_vantage_adapter(session), session
