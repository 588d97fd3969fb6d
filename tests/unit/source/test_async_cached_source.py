"""Tests for the asynchronous caching wrapper."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from tests.samples import AsyncWidgetSource, FakeClock, Widget, WidgetSource
from ticketcache.cache.registry import CacheRegistry
from ticketcache.errors import SourceUnavailableError
from ticketcache.observability.metrics import MetricsRegistry
from ticketcache.source import AsyncCachedDataSource, CachedDataSource


@pytest.fixture
def widgets(
    registry: CacheRegistry, async_widget_source: AsyncWidgetSource, metrics: MetricsRegistry
) -> AsyncCachedDataSource[Widget]:
    """Async caching wrapper over the in-memory widget source."""
    return AsyncCachedDataSource(
        async_widget_source,
        registry.get_bucket(Widget),
        Widget,
        metrics=metrics,
        settings=registry.settings,
    )


class TestAsyncReads:
    """Async reads mirror the synchronous wrapper."""

    async def test_get_one_miss_then_hit(
        self, widgets: AsyncCachedDataSource[Widget], async_widget_source: AsyncWidgetSource
    ) -> None:
        """First read fetches, second is served from cache."""
        assert await widgets.get_one(1) == Widget(1, "a")
        assert await widgets.get_one(1) == Widget(1, "a")
        assert async_widget_source.fetch_one_calls == 1

    async def test_get_one_unknown(self, widgets: AsyncCachedDataSource[Widget]) -> None:
        """Unknown records come back as None."""
        assert await widgets.get_one(99) is None

    async def test_get_all_uses_call_ticket(
        self,
        widgets: AsyncCachedDataSource[Widget],
        async_widget_source: AsyncWidgetSource,
        clock: FakeClock,
    ) -> None:
        """Bulk fetch is memoized until the ticket expires."""
        await widgets.get_all()
        await widgets.get_all()
        assert async_widget_source.fetch_all_calls == 1

        clock.advance(120)
        await widgets.get_all()
        assert async_widget_source.fetch_all_calls == 2

    async def test_refetch_drops_records_deleted_at_source(
        self,
        widgets: AsyncCachedDataSource[Widget],
        async_widget_source: AsyncWidgetSource,
        clock: FakeClock,
    ) -> None:
        """A refetch replaces the cached collection rather than merging into it."""
        await widgets.get_all()
        del async_widget_source.records[2]
        clock.advance(121)

        assert [w.id for w in await widgets.get_all()] == [1]
        assert [w.id for w in await widgets.get_all()] == [1]
        assert async_widget_source.fetch_all_calls == 2

    async def test_find(self, widgets: AsyncCachedDataSource[Widget]) -> None:
        """find filters the collection."""
        assert await widgets.find(lambda w: w.id == 1) == [Widget(1, "a")]

    async def test_same_results_as_sync_wrapper(
        self, clock: FakeClock, metrics: MetricsRegistry
    ) -> None:
        """Sync and async wrappers return equal results for equal sources."""
        records = {1: Widget(1, "a"), 2: Widget(2, "b")}
        sync_widgets = CachedDataSource(
            WidgetSource(records=dict(records)),
            CacheRegistry(clock=clock).get_bucket(Widget),
            Widget,
            metrics=metrics,
        )
        async_widgets = AsyncCachedDataSource(
            AsyncWidgetSource(records=dict(records)),
            CacheRegistry(clock=clock).get_bucket(Widget),
            Widget,
            metrics=metrics,
        )

        for _ in range(2):
            sync_all = sorted(sync_widgets.get_all(), key=lambda w: w.id)
            async_all = sorted(await async_widgets.get_all(), key=lambda w: w.id)
            assert sync_all == async_all
            assert sync_widgets.get_one(2) == await async_widgets.get_one(2)

    async def test_source_failure_propagates(self, registry: CacheRegistry) -> None:
        """Async source errors pass through without caching anything."""
        source = AsyncMock()
        source.fetch_all.side_effect = SourceUnavailableError("widgets-api", "503")
        widgets = AsyncCachedDataSource(source, registry.get_bucket(Widget), Widget)

        with pytest.raises(SourceUnavailableError):
            await widgets.get_all()
        assert widgets.cache.has_any() is False


class TestAsyncSave:
    """Async write-first persistence."""

    async def test_save(
        self, widgets: AsyncCachedDataSource[Widget], async_widget_source: AsyncWidgetSource
    ) -> None:
        """A successful save updates cache and source."""
        await widgets.save(Widget(3, "c"))

        assert async_widget_source.records[3] == Widget(3, "c")
        assert widgets.cache.contains(Widget, 3) is True

    async def test_failed_save_rolls_back(
        self, widgets: AsyncCachedDataSource[Widget], async_widget_source: AsyncWidgetSource
    ) -> None:
        """A failed persist undoes the optimistic cache write."""
        async_widget_source.fail_persist = True

        with pytest.raises(RuntimeError):
            await widgets.save(Widget(3, "c"))

        assert widgets.cache.contains(Widget, 3) is False


class TestConcurrentMisses:
    """Known race: concurrent misses may all fetch, and the cache converges."""

    async def test_concurrent_get_all_converges(
        self, registry: CacheRegistry, metrics: MetricsRegistry
    ) -> None:
        """Overlapping bulk misses leave one consistent entry per record."""
        source = AsyncWidgetSource(records={1: Widget(1, "a"), 2: Widget(2, "b")}, delay=0.01)
        widgets = AsyncCachedDataSource(source, registry.get_bucket(Widget), Widget, metrics=metrics)

        results = await asyncio.gather(*(widgets.get_all() for _ in range(5)))

        assert source.fetch_all_calls >= 1
        for result in results:
            assert sorted(w.id for w in result) == [1, 2]
        assert sorted(w.id for w in widgets.cache.get_all(Widget)) == [1, 2]
        assert len(widgets.cache) == 2

    async def test_concurrent_get_one_last_write_wins(
        self, registry: CacheRegistry, metrics: MetricsRegistry
    ) -> None:
        """Racing single-record misses converge on one value."""
        source = AsyncWidgetSource(records={1: Widget(1, "a")}, delay=0.01)
        widgets = AsyncCachedDataSource(source, registry.get_bucket(Widget), Widget, metrics=metrics)

        async def read_then_rename(name: str) -> None:
            await widgets.get_one(1)
            source.records[1] = Widget(1, name)

        await asyncio.gather(read_then_rename("x"), read_then_rename("y"))

        cached = widgets.cache.get_all(Widget)
        assert len(cached) == 1
        assert cached[0].id == 1
        assert widgets.cache.contains(Widget, 1) is True
