"""
Environment settings.

The only module that reads the process environment. Everything else receives
explicit configuration objects built from a `Settings` instance.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .config import DEFAULT_PROVIDER_PRIORITIES, DEFAULT_TIMEOUT_SECONDS, SECEdgarConfig

logger = logging.getLogger(__name__)

_DEFAULT_SEC_DELAY_MS = SECEdgarConfig.min_request_interval_ms


def priority_env_var(provider_name: str) -> str:
    """'Alpha Vantage' -> 'ALPHA_VANTAGE_PRIORITY'"""
    return re.sub(r'[^A-Z0-9]', '_', provider_name.upper()) + '_PRIORITY'


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[Settings] Ignoring non-integer {key}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    sec_user_agent: str = ""
    sec_request_delay_ms: int = _DEFAULT_SEC_DELAY_MS
    finnhub_api_key: str = ""
    fmp_api_key: str = ""
    alpha_vantage_api_key: str = ""
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    priorities: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PROVIDER_PRIORITIES))

    def priority_for(self, provider_name: str) -> int:
        return self.priorities.get(provider_name, 0)


def load_settings(dotenv_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from a .env file and the environment.

    Args:
        dotenv_path: .env file to load (python-dotenv searches upward when None)
        environ: Mapping to read instead of os.environ (skips .env loading)
    """
    if environ is None:
        load_dotenv(dotenv_path)
        environ = os.environ

    priorities = {
        name: _int(environ, priority_env_var(name), default)
        for name, default in DEFAULT_PROVIDER_PRIORITIES.items()
    }

    settings = Settings(
        sec_user_agent=environ.get('SEC_USER_AGENT', '').strip(),
        sec_request_delay_ms=_int(environ, 'SEC_REQUEST_DELAY_MS', _DEFAULT_SEC_DELAY_MS),
        finnhub_api_key=environ.get('FINNHUB_API_KEY', '').strip(),
        fmp_api_key=environ.get('FMP_API_KEY', '').strip(),
        alpha_vantage_api_key=environ.get('ALPHA_VANTAGE_API_KEY', '').strip(),
        timeout_seconds=_int(environ, 'PROVIDER_TIMEOUT_SECONDS', DEFAULT_TIMEOUT_SECONDS),
        priorities=priorities,
    )

    configured = [
        name for name, present in (
            ("SEC-EDGAR", settings.sec_user_agent),
            ("Finnhub", settings.finnhub_api_key),
            ("FMP", settings.fmp_api_key),
            ("Alpha Vantage", settings.alpha_vantage_api_key),
        ) if present
    ]
    logger.info(f"[Settings] Configured providers: {configured or 'none'}")
    return settings
