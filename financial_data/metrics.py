"""
Provider Call Metrics - Statistics and Monitoring

Provides statistics tracking for routed provider calls:
- Per-provider call tracking
- Success/failure rates
- Response time monitoring
- Fallback usage statistics

Storage:
- In-memory ring buffer for recent calls (configurable size)
- Structured JSON logging for ops visibility
- Exposure via get_stats()

The collector is an ordinary object: construct one and hand it to the
composite router (see bootstrap.build_composite).
"""

import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

from .errors import CANCELLED, RATE_LIMIT, TIMEOUT

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CallResult(Enum):
    """Result of a routed call."""
    SUCCESS = "success"
    FALLBACK = "fallback"       # Succeeded after an earlier provider failed
    FAILURE = "failure"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CANCELLED = "cancelled"


_ERROR_RESULTS = (CallResult.FAILURE, CallResult.TIMEOUT, CallResult.RATE_LIMITED)


@dataclass
class CallRecord:
    """Record of a single routed operation."""
    timestamp: datetime
    operation: str
    identifier: str
    providers_tried: List[str]
    providers_succeeded: List[str]
    result: CallResult
    latency_ms: float
    fallback_used: bool
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'timestamp': self.timestamp.isoformat(),
            'operation': self.operation,
            'identifier': self.identifier,
            'providers_tried': self.providers_tried,
            'providers_succeeded': self.providers_succeeded,
            'result': self.result.value,
            'latency_ms': round(self.latency_ms, 2),
            'fallback_used': self.fallback_used,
            'error_type': self.error_type,
            'error_message': self.error_message,
        }


@dataclass
class ProviderMetrics:
    """Aggregated metrics for a single provider."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    timeout_calls: int = 0
    rate_limited_calls: int = 0
    total_latency_ms: float = 0
    min_latency_ms: float = float('inf')
    max_latency_ms: float = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total_calls == 0:
            return 0.0
        return (self.successful_calls / self.total_calls) * 100

    @property
    def avg_latency_ms(self) -> float:
        if self.successful_calls == 0:
            return 0.0
        return self.total_latency_ms / self.successful_calls

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_calls': self.total_calls,
            'successful_calls': self.successful_calls,
            'failed_calls': self.failed_calls,
            'timeout_calls': self.timeout_calls,
            'rate_limited_calls': self.rate_limited_calls,
            'success_rate': round(self.success_rate, 2),
            'avg_latency_ms': round(self.avg_latency_ms, 2),
            'min_latency_ms': round(self.min_latency_ms, 2) if self.min_latency_ms != float('inf') else None,
            'max_latency_ms': round(self.max_latency_ms, 2),
            'last_error': self.last_error,
            'last_error_time': self.last_error_time.isoformat() if self.last_error_time else None,
            'last_success_time': self.last_success_time.isoformat() if self.last_success_time else None,
        }


@dataclass
class OperationMetrics:
    """Aggregated metrics for one router operation (search_companies, get_peers, ...)."""
    total_calls: int = 0
    fallback_used: int = 0
    failures: int = 0

    @property
    def fallback_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return (self.fallback_used / self.total_calls) * 100

    @property
    def failure_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return (self.failures / self.total_calls) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_calls': self.total_calls,
            'fallback_used': self.fallback_used,
            'fallback_rate': round(self.fallback_rate, 2),
            'failures': self.failures,
            'failure_rate': round(self.failure_rate, 2),
        }


class MetricsCollector:
    """
    Collects and aggregates metrics for routed provider calls.

    Features:
    - Thread-safe metrics collection
    - In-memory ring buffer for recent call records
    - Per-provider and per-operation statistics
    - Structured JSON logging for ops visibility

    Usage:
        collector = MetricsCollector()

        collector.record_call(
            operation="get_company_metadata",
            identifier="AAPL",
            providers_tried=["SEC-EDGAR", "FMP"],
            providers_succeeded=["FMP"],
            latency_ms=150.5,
            failures={"SEC-EDGAR": "RATE_LIMIT"},
        )

        stats = collector.get_stats()
    """

    MAX_RECORDS = 10000
    LOG_TO_JSON = True

    def __init__(self, max_records: int = MAX_RECORDS):
        self._records: Deque[CallRecord] = deque(maxlen=max_records)
        self._provider_metrics: Dict[str, ProviderMetrics] = {}
        self._operation_metrics: Dict[str, OperationMetrics] = {}
        self._start_time: datetime = _now()
        self._lock = Lock()

    def record_call(
        self,
        operation: str,
        identifier: str,
        providers_tried: List[str],
        providers_succeeded: List[str],
        latency_ms: float,
        failures: Optional[Dict[str, str]] = None,
        error_type: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """
        Record a routed operation.

        Args:
            operation: Router operation name
            identifier: Identifier, ticker or query the caller passed
            providers_tried: Providers attempted, in order
            providers_succeeded: Providers that returned data
            latency_ms: Total response time
            failures: Error code per provider that failed
            error_type: Error code of the operation's own failure, if any
            error_message: Error message of the operation's own failure
        """
        failures = failures or {}
        success = bool(providers_succeeded)
        fallback_used = success and bool(failures)

        if success:
            result = CallResult.FALLBACK if fallback_used else CallResult.SUCCESS
        elif error_type == CANCELLED:
            result = CallResult.CANCELLED
        elif failures and all(code == TIMEOUT for code in failures.values()):
            result = CallResult.TIMEOUT
        elif failures and all(code == RATE_LIMIT for code in failures.values()):
            result = CallResult.RATE_LIMITED
        else:
            result = CallResult.FAILURE

        now = _now()
        record = CallRecord(
            timestamp=now,
            operation=operation,
            identifier=identifier,
            providers_tried=list(providers_tried),
            providers_succeeded=list(providers_succeeded),
            result=result,
            latency_ms=latency_ms,
            fallback_used=fallback_used,
            error_type=error_type,
            error_message=error_message,
        )

        with self._lock:
            self._records.append(record)

            op_metrics = self._operation_metrics.setdefault(operation, OperationMetrics())
            op_metrics.total_calls += 1
            if fallback_used:
                op_metrics.fallback_used += 1
            if not success:
                op_metrics.failures += 1

            for provider in providers_tried:
                pm = self._provider_metrics.setdefault(provider, ProviderMetrics())
                pm.total_calls += 1

                if provider in providers_succeeded:
                    pm.successful_calls += 1
                    pm.total_latency_ms += latency_ms
                    pm.min_latency_ms = min(pm.min_latency_ms, latency_ms)
                    pm.max_latency_ms = max(pm.max_latency_ms, latency_ms)
                    pm.last_success_time = now
                elif provider in failures:
                    code = failures[provider]
                    pm.failed_calls += 1
                    if code == TIMEOUT:
                        pm.timeout_calls += 1
                    if code == RATE_LIMIT:
                        pm.rate_limited_calls += 1
                    pm.last_error = code
                    pm.last_error_time = now

        if self.LOG_TO_JSON:
            self._log_record(record)

    def _log_record(self, record: CallRecord) -> None:
        """Log a single record as structured JSON."""
        log_data = {
            'event': 'provider_call',
            **record.to_dict()
        }
        if record.result in _ERROR_RESULTS:
            logger.info(f"[Metrics] {json.dumps(log_data)}")
        else:
            logger.debug(f"[Metrics] {json.dumps(log_data)}")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get comprehensive statistics.

        Returns:
            Dict containing uptime, totals, by_provider, by_operation,
            recent_errors and buffer_size.
        """
        with self._lock:
            total_calls = sum(om.total_calls for om in self._operation_metrics.values())
            total_failures = sum(om.failures for om in self._operation_metrics.values())
            total_fallbacks = sum(om.fallback_used for om in self._operation_metrics.values())

            recent_errors = [
                r.to_dict() for r in self._records if r.result in _ERROR_RESULTS
            ][-50:]

            return {
                'uptime': {
                    'start_time': self._start_time.isoformat(),
                    'uptime_seconds': (_now() - self._start_time).total_seconds(),
                },
                'totals': {
                    'total_calls': total_calls,
                    'failures': total_failures,
                    'failure_rate': round(total_failures / total_calls * 100, 2) if total_calls > 0 else 0,
                    'fallback_used': total_fallbacks,
                    'fallback_rate': round(total_fallbacks / total_calls * 100, 2) if total_calls > 0 else 0,
                },
                'by_provider': {
                    name: pm.to_dict() for name, pm in self._provider_metrics.items()
                },
                'by_operation': {
                    name: om.to_dict() for name, om in self._operation_metrics.items()
                },
                'recent_errors': recent_errors,
                'buffer_size': len(self._records),
            }

    def get_provider_health(self, provider_name: str) -> Dict[str, Any]:
        """
        Health status for a provider derived from its success rate:
        healthy >= 95%, degraded >= 80%, otherwise unhealthy.
        """
        with self._lock:
            if provider_name not in self._provider_metrics:
                return {'status': 'unknown', 'message': 'No data for this provider'}

            pm = self._provider_metrics[provider_name]

            if pm.total_calls == 0:
                status = 'unknown'
            elif pm.success_rate >= 95:
                status = 'healthy'
            elif pm.success_rate >= 80:
                status = 'degraded'
            else:
                status = 'unhealthy'

            recent_errors = [
                r.to_dict() for r in self._records
                if provider_name in r.providers_tried
                and provider_name not in r.providers_succeeded
                and r.result in _ERROR_RESULTS + (CallResult.FALLBACK,)
            ][-10:]

            return {
                'status': status,
                'metrics': pm.to_dict(),
                'recent_errors': recent_errors,
            }

    def get_recent_calls(
        self,
        limit: int = 100,
        operation: Optional[str] = None,
        provider: Optional[str] = None,
        errors_only: bool = False,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            records = list(self._records)

        if operation:
            records = [r for r in records if r.operation == operation]
        if provider:
            records = [r for r in records if provider in r.providers_tried]
        if errors_only:
            records = [r for r in records if r.result in _ERROR_RESULTS]

        return [r.to_dict() for r in records[-limit:]]

    def get_latency_percentiles(
        self,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> Dict[str, float]:
        """
        Calculate latency percentiles of successful calls.

        Returns:
            Dict with p50, p90, p95, p99 latencies in ms
        """
        with self._lock:
            records = [
                r for r in self._records
                if r.result in (CallResult.SUCCESS, CallResult.FALLBACK)
            ]

        if provider:
            records = [r for r in records if provider in r.providers_succeeded]
        if operation:
            records = [r for r in records if r.operation == operation]

        if not records:
            return {'p50': 0, 'p90': 0, 'p95': 0, 'p99': 0}

        latencies = sorted(r.latency_ms for r in records)
        n = len(latencies)

        return {
            'p50': round(latencies[int(n * 0.50)], 2),
            'p90': round(latencies[int(n * 0.90)], 2),
            'p95': round(latencies[int(n * 0.95)], 2),
            'p99': round(latencies[min(int(n * 0.99), n - 1)], 2),
        }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._records.clear()
            self._provider_metrics.clear()
            self._operation_metrics.clear()
            self._start_time = _now()
        logger.info("[Metrics] Metrics reset")
