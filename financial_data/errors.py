"""
Provider Error Taxonomy

Every failure that leaves an adapter is one of three kinds:
- DataProviderError: generic failure with a machine-readable code
- RateLimitError: upstream throttled the request (retryable)
- DataNotFoundError: the identifier resolved to nothing (not retryable)

Callers decide retry-vs-surface from `is_retryable` and `http_status` alone.
"""

from typing import Optional, Dict, Any


# Error codes
ALL_PROVIDERS_FAILED = "ALL_PROVIDERS_FAILED"
CAPABILITY_NOT_AVAILABLE = "CAPABILITY_NOT_AVAILABLE"
NOT_SUPPORTED = "NOT_SUPPORTED"
MISSING_CONFIG = "MISSING_CONFIG"
RATE_LIMIT = "RATE_LIMIT"
NOT_FOUND = "NOT_FOUND"
TIMEOUT = "TIMEOUT"
NETWORK_ERROR = "NETWORK_ERROR"
INVALID_RESPONSE = "INVALID_RESPONSE"
API_ERROR = "API_ERROR"
CANCELLED = "CANCELLED"
UNKNOWN = "UNKNOWN"


class DataProviderError(Exception):
    """Base error raised by providers, the registry and the composite router."""

    def __init__(
        self,
        message: str,
        provider: str,
        code: str = UNKNOWN,
        http_status: Optional[int] = None,
        is_retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.code = code
        self.http_status = http_status
        self.is_retryable = is_retryable

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(provider={self.provider!r}, code={self.code!r}, "
            f"http_status={self.http_status!r}, message={self.message!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for the route layer."""
        return {
            'error': type(self).__name__,
            'message': self.message,
            'provider': self.provider,
            'code': self.code,
            'httpStatus': self.http_status or 500,
            'isRetryable': self.is_retryable,
        }


class RateLimitError(DataProviderError):
    """Upstream rejected the request because of rate limiting."""

    def __init__(self, provider: str, retry_after: Optional[float] = None):
        message = f"Rate limit exceeded for {provider}"
        if retry_after is not None:
            message += f" (retry after {retry_after:.0f}s)"
        super().__init__(message, provider, RATE_LIMIT, 429, True)
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['retryAfter'] = self.retry_after
        return data


class DataNotFoundError(DataProviderError):
    """The identifier does not resolve to anything at this provider."""

    def __init__(self, provider: str, identifier: str):
        super().__init__(
            f"Data not found for {identifier} in {provider}",
            provider, NOT_FOUND, 404, False,
        )
        self.identifier = identifier


def missing_config(provider: str, setting: str) -> DataProviderError:
    """Error raised when a required credential or setting is absent."""
    return DataProviderError(
        f"{provider} requires '{setting}' to be configured",
        provider, MISSING_CONFIG, 500, False,
    )


def not_supported(provider: str, operation: str) -> DataProviderError:
    """
    Error for a route layer that rejects an operation outright (501).

    Adapters never raise it: a missing optional operation is expressed by
    not implementing PeerCapableProvider / RealTimePriceProvider, and the
    composite reports that as CAPABILITY_NOT_AVAILABLE.
    """
    return DataProviderError(
        f"{provider} does not support {operation}",
        provider, NOT_SUPPORTED, 501, False,
    )
