"""
Shared metrics configuration for the Salesforce connector.
"""

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, REGISTRY
from typing import Dict, Any, Optional
import time
import threading
from contextlib import contextmanager


class ConnectorMetrics:
    """Prometheus instruments for the credential cache and token exchange."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up credential cache metrics."""
        self._metrics["credential_cache_requests_total"] = Counter(
            "credential_cache_requests_total",
            "Credential cache lookups",
            ["service", "result"],
            registry=self.registry
        )

        self._metrics["credential_acquisitions_total"] = Counter(
            "credential_acquisitions_total",
            "Token exchanges performed against the issuer",
            ["service", "flow", "status"],
            registry=self.registry
        )

        self._metrics["credential_acquisition_duration_seconds"] = Histogram(
            "credential_acquisition_duration_seconds",
            "Token exchange duration in seconds",
            ["service", "flow"],
            registry=self.registry
        )

        self._metrics["credential_cache_entries"] = Gauge(
            "credential_cache_entries",
            "Cached credentials by validity state",
            ["service", "state"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_lookup(self, hit: bool):
        """Record a cache hit or miss."""
        self._metrics["credential_cache_requests_total"].labels(
            service=self.service_name,
            result="hit" if hit else "miss"
        ).inc()

    def record_acquisition(self, flow: str, status: str, duration: float):
        """Record a token exchange outcome."""
        self._metrics["credential_acquisitions_total"].labels(
            service=self.service_name,
            flow=flow,
            status=status
        ).inc()

        self._metrics["credential_acquisition_duration_seconds"].labels(
            service=self.service_name,
            flow=flow
        ).observe(duration)

    def record_cache_stats(self, valid: int, expired: int):
        """Publish the current cache population."""
        with self._lock:
            entries = self._metrics["credential_cache_entries"]
            entries.labels(service=self.service_name, state="valid").set(valid)
            entries.labels(service=self.service_name, state="expired").set(expired)

    @contextmanager
    def time_acquisition(self, flow: str):
        """Time a token exchange and record its outcome."""
        start_time = time.time()
        status = "error"
        try:
            yield
            status = "success"
        finally:
            self.record_acquisition(flow, status, time.time() - start_time)


# Global metrics instance bound to the default registry
_metrics: Optional[ConnectorMetrics] = None
_metrics_lock = threading.Lock()


def get_metrics(service_name: str = "connector", registry: Optional[CollectorRegistry] = None) -> ConnectorMetrics:
    """Get the process-wide metrics, or a fresh set bound to ``registry``."""
    global _metrics
    if registry is not None:
        return ConnectorMetrics(service_name, registry)

    with _metrics_lock:
        if _metrics is None:
            _metrics = ConnectorMetrics(service_name)
        return _metrics
