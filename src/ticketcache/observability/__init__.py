"""Observability module for ticketcache.

Provides metrics and structured logging:
- Prometheus metrics for cache hits, misses and data source calls
- JSON structured logging with bucket/operation context
"""

from ticketcache.observability.logging import (
    LogContext,
    bucket_var,
    configure_logging,
    get_logger,
    operation_var,
)
from ticketcache.observability.metrics import (
    MetricsRegistry,
    NoOpMetric,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "LogContext",
    "bucket_var",
    "operation_var",
    # Metrics
    "MetricsRegistry",
    "NoOpMetric",
    "metrics_registry",
    "get_metrics",
]
