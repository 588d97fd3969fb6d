"""Prometheus metrics for ticketcache.

Provides:
- Cache metrics (hits, misses, entries per bucket)
- Data source metrics (fetch count and latency)

Usage:
    from ticketcache.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.labels(cache_type="Widget").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from ticketcache.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class NoOpMetric:
    """Stand-in accepting the prometheus calls ticketcache makes, doing nothing."""

    def labels(self, **kwargs: Any) -> NoOpMetric:
        """Labels are ignored."""
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def set(self, value: float) -> None:
        pass

    def observe(self, value: float) -> None:
        pass


@dataclass
class MetricsRegistry:
    """Collectors for cache and data source traffic."""

    # Cache metrics
    cache_hits_total: Any = None
    cache_misses_total: Any = None
    cache_entries: Any = None

    # Data source metrics
    source_fetches_total: Any = None
    source_fetch_duration_seconds: Any = None

    # Set by initialize()
    _initialized: bool = field(default=False, repr=False)
    _registry: CollectorRegistry | None = field(default=None, repr=False)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(
        self,
        registry: CollectorRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Create the metric collectors.

        ``registry`` defaults to the process-wide prometheus registry.
        """
        if self._initialized:
            return

        settings = settings or default_settings
        if not settings.enable_metrics:
            noop = NoOpMetric()
            self.cache_hits_total = noop
            self.cache_misses_total = noop
            self.cache_entries = noop
            self.source_fetches_total = noop
            self.source_fetch_duration_seconds = noop
            self._initialized = True
            logger.info("Metrics are disabled")
            return

        self._registry = registry if registry is not None else REGISTRY

        self.cache_hits_total = Counter(
            "ticketcache_cache_hits_total",
            "Cache hits",
            ["cache_type"],
            registry=self._registry,
        )

        self.cache_misses_total = Counter(
            "ticketcache_cache_misses_total",
            "Cache misses",
            ["cache_type"],
            registry=self._registry,
        )

        self.cache_entries = Gauge(
            "ticketcache_cache_entries",
            "Entries physically held per bucket, expired ones included",
            ["cache_type"],
            registry=self._registry,
        )

        self.source_fetches_total = Counter(
            "ticketcache_source_fetches_total",
            "Calls made to the backing data source",
            ["cache_type", "operation"],
            registry=self._registry,
        )

        self.source_fetch_duration_seconds = Histogram(
            "ticketcache_source_fetch_duration_seconds",
            "Data source call latency in seconds",
            ["cache_type", "operation"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self._registry,
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Render this registry in the text exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"

        from prometheus_client import generate_latest

        return generate_latest(self._registry)


# Process-wide default, used by wrappers that are not given their own
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Return the process-wide MetricsRegistry.

    Collectors are registered on the default prometheus registry the first
    time this is called.
    """
    if not metrics_registry.initialized:
        metrics_registry.initialize()
    return metrics_registry
