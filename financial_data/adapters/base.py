"""
Base Adapter with Common Utilities

Provides shared functionality for all upstream adapters:
- One requests.Session per adapter with a bounded per-request timeout
- Request spacing (RequestThrottle) and 429 cooldown (RateLimitTracker)
- Translation of upstream failures into the provider error taxonomy
- Missing-value-safe numeric and date coercion
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from datetime import date
from functools import wraps
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

import numpy as np
import pandas as pd
import requests

from .. import cancellation
from ..config import AdapterConfig, merge_config
from ..deduplicator import select_latest
from ..errors import (
    DataProviderError, RateLimitError, DataNotFoundError, missing_config,
    API_ERROR, CANCELLED, INVALID_RESPONSE, NETWORK_ERROR, RATE_LIMIT, TIMEOUT, UNKNOWN,
)
from ..interfaces import FinancialData, GetFinancialDataOptions

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


class UpstreamHTTPError(Exception):
    """Non-2xx response from an upstream API."""

    def __init__(self, status: int, url: str, retry_after: Optional[float] = None, body: str = ""):
        super().__init__(f"HTTP {status} from {url}")
        self.status = status
        self.url = url
        self.retry_after = retry_after
        self.body = body


class UpstreamPayloadError(Exception):
    """Upstream answered 2xx with a body that cannot be used."""


class RequestThrottle:
    """Enforces a minimum interval between upstream requests."""

    def __init__(self, min_interval_ms: int = 0):
        self._min_interval = max(0, min_interval_ms) / 1000.0
        self._next_allowed = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Block until the next request slot; interrupted by cancellation."""
        if self._min_interval <= 0:
            return
        with self._lock:
            now = time.monotonic()
            delay = max(0.0, self._next_allowed - now)
            self._next_allowed = max(now, self._next_allowed) + self._min_interval
        cancellation.sleep(delay)


class RateLimitTracker:
    """Tracks the cooldown entered after an upstream rate-limit response."""

    def __init__(self, cooldown_seconds: int = 60):
        self._cooldown_seconds = cooldown_seconds
        self._limited_until: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def is_rate_limited(self) -> bool:
        return self.remaining_seconds > 0

    @property
    def remaining_seconds(self) -> float:
        with self._lock:
            if self._limited_until is None:
                return 0.0
            remaining = self._limited_until - time.monotonic()
            if remaining <= 0:
                self._limited_until = None
                logger.info("Rate limit cooldown expired, resuming normal operation")
                return 0.0
            return remaining

    def mark_rate_limited(self, retry_after: Optional[float] = None) -> None:
        cooldown = retry_after if retry_after and retry_after > 0 else self._cooldown_seconds
        with self._lock:
            until = time.monotonic() + cooldown
            if self._limited_until is None or until > self._limited_until:
                self._limited_until = until
        logger.warning(f"Rate limit triggered, cooling down for {cooldown:.0f}s")

    def reset(self) -> None:
        with self._lock:
            self._limited_until = None


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header (delta-seconds form only)."""
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def safe_float(value, default: Optional[float] = None) -> Optional[float]:
    """Convert to a finite float; absent, null, "None" and NaN become `default`."""
    if value is None:
        return default
    try:
        if pd.isna(value) or (isinstance(value, float) and np.isnan(value)):
            return default
        result = float(value)
    except (ValueError, TypeError):
        return default
    return result if math.isfinite(result) else default


def safe_int(value, default: Optional[int] = None) -> Optional[int]:
    """Safely convert a value to int."""
    result = safe_float(value)
    return int(result) if result is not None else default


def safe_str(value, default: Optional[str] = None) -> Optional[str]:
    """Stripped non-empty string, or `default` for missing placeholders."""
    if value is None:
        return default
    text = str(value).strip()
    if not text or text in ("None", "null", "-", "N/A"):
        return default
    return text


def parse_date(value) -> Optional[date]:
    """Parse an upstream date string; unparseable or missing values give None."""
    if value is None or value == "":
        return None
    parsed = pd.to_datetime(value, errors='coerce')
    if pd.isna(parsed):
        return None
    return parsed.date()


def translate_errors(method: F) -> F:
    """
    Route every exception leaving an adapter operation through the adapter's
    translate_error(), so only DataProviderError kinds cross the boundary.

    The first positional argument (identifier, query or ticker) is used in
    NotFound errors.
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except Exception as e:
            identifier = str(args[0]) if args else ""
            error = self.translate_error(e, identifier)
            if error.code == RATE_LIMIT and not self._rate_limiter.is_rate_limited:
                self._rate_limiter.mark_rate_limited(getattr(error, 'retry_after', None))
            if error is e:
                raise
            raise error from e
    return wrapper  # type: ignore[return-value]


class BaseAdapter(ABC):
    """
    Base class for upstream adapters.

    Subclasses supply `name`, `capabilities`, the data operations and
    `_probe()` (a cheap upstream call used by health_check). Every upstream
    request must go through `_request_json()`.

    Thread-safe for concurrent access.
    """

    # Credential that must be non-empty for the adapter to be usable
    _required_setting = "api_key"

    def __init__(self, config: AdapterConfig, session: Optional[requests.Session] = None):
        self._config = config
        self._session = session or requests.Session()
        self._throttle = RequestThrottle(config.min_request_interval_ms)
        self._rate_limiter = RateLimitTracker(config.cooldown_seconds)

    @property
    def config(self) -> AdapterConfig:
        return self._config

    def is_rate_limited(self) -> bool:
        return self._rate_limiter.is_rate_limited

    def _is_available(self) -> bool:
        """Whether required credentials are present."""
        return bool(getattr(self._config, self._required_setting, ""))

    def _ensure_available(self) -> None:
        if not self._is_available():
            raise missing_config(self.name, self._required_setting)

    # ------------------------------------------------------------------
    # Upstream transport
    # ------------------------------------------------------------------

    def _request_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """GET `url` and decode JSON, honouring cooldown, spacing, timeout and cancellation."""
        self._ensure_available()
        cancellation.raise_if_cancelled()

        remaining = self._rate_limiter.remaining_seconds
        if remaining > 0:
            logger.debug(f"[{self.name}] In cooldown, failing fast ({remaining:.0f}s left)")
            raise RateLimitError(self.name, retry_after=remaining)

        self._throttle.wait()
        cancellation.raise_if_cancelled()

        timeout = cancellation.effective_timeout(self._config.timeout_seconds)
        logger.debug(f"[{self.name}] GET {url}")
        response = self._session.get(url, params=params, headers=headers, timeout=timeout)

        if response.status_code >= 400:
            raise UpstreamHTTPError(
                response.status_code,
                url,
                retry_after=parse_retry_after(response.headers.get('Retry-After')),
                body=(response.text or "")[:200],
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamPayloadError(f"Undecodable JSON from {url}: {e}") from e

    # ------------------------------------------------------------------
    # Error boundary
    # ------------------------------------------------------------------

    def translate_error(self, error: Exception, identifier: str = "") -> DataProviderError:
        """Map an upstream-native failure to the provider error taxonomy."""
        if isinstance(error, DataProviderError):
            return error

        if isinstance(error, cancellation.OperationCancelled):
            return DataProviderError(
                f"Request to {self.name} cancelled", self.name, CANCELLED, 499, False
            )

        if isinstance(error, UpstreamHTTPError):
            if error.status == 404:
                return DataNotFoundError(self.name, identifier)
            if error.status == 429:
                return RateLimitError(self.name, retry_after=error.retry_after)
            if error.status >= 500:
                return DataProviderError(
                    f"{self.name} upstream error: HTTP {error.status}",
                    self.name, API_ERROR, 502, True,
                )
            return DataProviderError(
                f"{self.name} rejected the request: HTTP {error.status}",
                self.name, API_ERROR, 502, False,
            )

        if isinstance(error, requests.Timeout):
            return DataProviderError(
                f"{self.name} request timed out", self.name, TIMEOUT, 504, True
            )

        if isinstance(error, requests.ConnectionError):
            return DataProviderError(
                f"{self.name} connection failed: {error}", self.name, NETWORK_ERROR, 503, True
            )

        if isinstance(error, (UpstreamPayloadError, ValueError, KeyError, TypeError)):
            return DataProviderError(
                f"{self.name} returned an unusable response: {error}",
                self.name, INVALID_RESPONSE, 502, False,
            )

        logger.warning(f"[{self.name}] Unclassified error for {identifier}: {error!r}")
        return DataProviderError(
            f"{self.name} failed: {error}", self.name, UNKNOWN, 500, False
        )

    # ------------------------------------------------------------------
    # Shared provider behaviour
    # ------------------------------------------------------------------

    @translate_errors
    def get_latest_metrics(self, identifier: str, concepts: Sequence[str]) -> FinancialData:
        """Most recent metric per requested concept, in request order."""
        data = self.get_financial_data(identifier, GetFinancialDataOptions(concepts=list(concepts)))
        return data.with_metrics(select_latest(data.metrics, concepts))

    def configure(self, options: Optional[Dict[str, Any]] = None) -> None:
        """Merge known keys into the adapter config; `{}` is a no-op."""
        new_config = merge_config(self._config, options)
        if new_config == self._config:
            return
        self._config = new_config
        self._throttle = RequestThrottle(new_config.min_request_interval_ms)
        self._rate_limiter = RateLimitTracker(new_config.cooldown_seconds)
        logger.info(f"[{self.name}] Reconfigured (available={self._is_available()})")

    def health_check(self) -> bool:
        """True when credentials are present, no cooldown is active and the probe succeeds."""
        if not self._is_available():
            return False
        if self._rate_limiter.is_rate_limited:
            return False
        try:
            return bool(self._probe())
        except Exception as e:
            logger.warning(f"[{self.name}] Health check failed: {e}")
            return False

    @abstractmethod
    def _probe(self) -> bool:
        """Cheap upstream call proving the adapter can serve requests."""

