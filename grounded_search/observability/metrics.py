"""
Grounded Search - Prometheus Metrics
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    REGISTRY,
    generate_latest,
)

from grounded_search.core.logging import get_logger

logger = get_logger(__name__)


class MetricsCollector:
    """
    Prometheus metrics collector for the search pipeline.

    Tracks:
    - Search counts and latencies per mode
    - Per-leg failures
    - Fallback activations
    - Result cache hits, misses and evictions
    """

    def __init__(
        self,
        namespace: str = "grounded_search",
        registry: Optional[CollectorRegistry] = None,
    ):
        self.namespace = namespace
        self.registry = registry or REGISTRY

        self.search_count = Counter(
            f"{namespace}_searches_total",
            "Total number of searches",
            ["mode", "status"],
            registry=self.registry,
        )

        self.search_latency = Histogram(
            f"{namespace}_search_latency_seconds",
            "Search latency in seconds",
            ["mode"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
            registry=self.registry,
        )

        self.search_results = Histogram(
            f"{namespace}_search_results_count",
            "Documents returned per search",
            ["mode"],
            buckets=[0, 1, 3, 5, 10, 20, 50, 100],
            registry=self.registry,
        )

        self.leg_failures = Counter(
            f"{namespace}_leg_failures_total",
            "Retrieval legs that failed or timed out",
            ["leg", "error_type"],
            registry=self.registry,
        )

        self.fallbacks = Counter(
            f"{namespace}_fallbacks_total",
            "Degraded paths taken",
            ["kind"],
            registry=self.registry,
        )

        self.cache_hits = Counter(
            f"{namespace}_cache_hits_total",
            "Cache hit count",
            ["cache_type"],
            registry=self.registry,
        )

        self.cache_misses = Counter(
            f"{namespace}_cache_misses_total",
            "Cache miss count",
            ["cache_type"],
            registry=self.registry,
        )

        self.cache_evictions = Counter(
            f"{namespace}_cache_evictions_total",
            "Entries evicted to stay within capacity",
            ["cache_type"],
            registry=self.registry,
        )

    def track_search(
        self,
        mode: str,
        status: str,
        latency: float,
        result_count: int,
    ) -> None:
        """Track one completed search call."""
        self.search_count.labels(mode=mode, status=status).inc()
        self.search_latency.labels(mode=mode).observe(latency)
        self.search_results.labels(mode=mode).observe(result_count)

    def track_leg_failure(self, leg: str, error_type: str) -> None:
        self.leg_failures.labels(leg=leg, error_type=error_type).inc()

    def track_fallback(self, kind: str) -> None:
        self.fallbacks.labels(kind=kind).inc()

    def track_cache(self, cache_type: str, hit: bool) -> None:
        """Track cache hit/miss."""
        if hit:
            self.cache_hits.labels(cache_type=cache_type).inc()
        else:
            self.cache_misses.labels(cache_type=cache_type).inc()

    def track_cache_eviction(self, cache_type: str) -> None:
        self.cache_evictions.labels(cache_type=cache_type).inc()

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry)


# Global metrics instance
_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get the metrics collector singleton."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def safe_track(method: str, *args, **kwargs) -> None:
    """Record a metric without ever failing the caller."""
    try:
        getattr(get_metrics(), method)(*args, **kwargs)
    except Exception as e:
        logger.debug("Metric tracking failed", metric=method, error=str(e))
