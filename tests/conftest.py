"""Global pytest configuration and fixtures."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from tests.samples import AsyncWidgetSource, FakeClock, Widget, WidgetSource
from ticketcache.cache.registry import CacheRegistry
from ticketcache.cache.store import Cache
from ticketcache.config import Settings
from ticketcache.observability.metrics import MetricsRegistry


@pytest.fixture
def clock() -> FakeClock:
    """Fresh fake clock."""
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(
        default_ttl_seconds=120,
        bulk_ttl_seconds=120,
        copy_values=True,
        enable_metrics=True,
        _env_file=None,
    )


@pytest.fixture
def cache(clock: FakeClock, test_settings: Settings) -> Cache:
    """Empty cache bucket on the fake clock."""
    return Cache("Widget", clock=clock, settings=test_settings)


@pytest.fixture
def registry(clock: FakeClock, test_settings: Settings) -> CacheRegistry:
    """Empty registry on the fake clock."""
    return CacheRegistry(test_settings, clock=clock)


@pytest.fixture
def metrics(test_settings: Settings) -> MetricsRegistry:
    """Metrics bound to a private prometheus registry."""
    registry = MetricsRegistry()
    registry.initialize(registry=CollectorRegistry(), settings=test_settings)
    return registry


@pytest.fixture
def widget_source() -> WidgetSource:
    """Source holding two widgets."""
    return WidgetSource(records={1: Widget(1, "a"), 2: Widget(2, "b")})


@pytest.fixture
def async_widget_source() -> AsyncWidgetSource:
    """Async source holding two widgets."""
    return AsyncWidgetSource(records={1: Widget(1, "a"), 2: Widget(2, "b")})
