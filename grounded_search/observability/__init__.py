"""
Grounded Search - Observability Module

Provides Prometheus metrics for the search pipeline.
"""

from __future__ import annotations

from grounded_search.observability.metrics import (
    MetricsCollector,
    get_metrics,
    safe_track,
)

__all__ = [
    "MetricsCollector",
    "get_metrics",
    "safe_track",
]
