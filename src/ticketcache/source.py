"""Caching wrappers over a data source.

A data source is anything exposing ``fetch_all``, ``fetch_one`` and
``persist``. The wrappers hold a source and a cache bucket and apply the
cache-aside pattern:

- get_one: serve a fresh entry, otherwise fetch and store
- get_all: serve stored entries while the bulk call ticket is valid,
  otherwise fetch everything, replace the stored set with the result and
  renew the ticket
- save: write-first; the cache entry is rolled back if persisting fails

Check-then-populate is not atomic. Two concurrent misses may both call the
source; both results are stored and the last write wins.

Example:
    registry = CacheRegistry()
    widgets = CachedDataSource(WidgetApi(), registry.get_bucket(Widget), Widget)
    widget = widgets.get_one(1)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Generic, Protocol, TypeVar

from ticketcache.cache.keys import Identifier, type_name_of
from ticketcache.cache.store import Cache
from ticketcache.cache.tickets import ExpiryTicket
from ticketcache.config import Settings, settings as default_settings
from ticketcache.errors import NotFoundError
from ticketcache.observability.logging import LogContext
from ticketcache.observability.metrics import MetricsRegistry, get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataSource(Protocol[T]):
    """Synchronous backing store."""

    def fetch_all(self) -> Sequence[T]: ...

    def fetch_one(self, identifier: Identifier) -> T | None: ...

    def persist(self, value: T) -> None: ...


class AsyncDataSource(Protocol[T]):
    """Asynchronous backing store."""

    async def fetch_all(self) -> Sequence[T]: ...

    async def fetch_one(self, identifier: Identifier) -> T | None: ...

    async def persist(self, value: T) -> None: ...


class _CachingPolicy(Generic[T]):
    """Cache bookkeeping shared by the sync and async wrappers.

    Only the source calls differ between the two; everything touching the
    cache is synchronous.
    """

    def __init__(
        self,
        cache: Cache,
        type_: Any,
        *,
        bulk_ttl: float | None = None,
        metrics: MetricsRegistry | None = None,
        settings: Settings | None = None,
    ):
        self.cache = cache
        self.type_name = type_name_of(type_)
        settings = settings or default_settings
        self.bulk_ttl = settings.bulk_ttl_seconds if bulk_ttl is None else bulk_ttl
        self.bulk_operation = f"{self.type_name}.fetch_all"
        self.metrics = metrics or get_metrics()

    def _cached_one(self, identifier: Identifier) -> tuple[bool, T | None]:
        if self.cache.contains(self.type_name, identifier):
            try:
                value = self.cache.get_one(self.type_name, identifier)
            except NotFoundError:
                # Removed between the check and the read; treat as a miss
                pass
            else:
                self.metrics.cache_hits_total.labels(cache_type=self.type_name).inc()
                return True, value
        self.metrics.cache_misses_total.labels(cache_type=self.type_name).inc()
        return False, None

    def _bulk_is_fresh(self) -> bool:
        fresh = self.cache.has_any(self.type_name) and not self.cache.is_operation_expired(
            self.bulk_operation
        )
        counter = self.metrics.cache_hits_total if fresh else self.metrics.cache_misses_total
        counter.labels(cache_type=self.type_name).inc()
        return fresh

    def _store_one(self, value: T | None) -> T | None:
        if value is not None:
            self.cache.put(value)
            self._update_gauge()
        return value

    def _store_all(self, values: Sequence[T]) -> list[T]:
        items = list(values)
        dropped = self.cache.replace_all(self.type_name, items)
        self.cache.mark_operation(
            self.bulk_operation, ExpiryTicket.from_duration(self.bulk_ttl, clock=self.cache.clock)
        )
        self._update_gauge()
        logger.info(
            f"Cached {len(items)} {self.type_name} records from bulk fetch, "
            f"dropped {dropped} no longer in the source"
        )
        return items

    def _update_gauge(self) -> None:
        count = self.cache.stats().by_type.get(self.type_name, 0)
        self.metrics.cache_entries.labels(cache_type=self.type_name).set(count)

    @contextmanager
    def _timed(self, operation: str) -> Iterator[None]:
        self.metrics.source_fetches_total.labels(
            cache_type=self.type_name, operation=operation
        ).inc()
        start = time.perf_counter()
        with LogContext(bucket=self.cache.name, operation=operation):
            try:
                yield
            finally:
                self.metrics.source_fetch_duration_seconds.labels(
                    cache_type=self.type_name, operation=operation
                ).observe(time.perf_counter() - start)

    def evict(self, identifier: Identifier) -> None:
        """Drop one record and expire the bulk ticket.

        The next ``get_all`` refetches so the collection is complete again.
        """
        self.cache.remove(self.type_name, identifier)
        self.cache.invalidate_operation(self.bulk_operation)

    def refresh(self) -> None:
        """Expire the bulk ticket; the next ``get_all`` goes to the source."""
        self.cache.invalidate_operation(self.bulk_operation)


class CachedDataSource(_CachingPolicy[T]):
    """Cache-aside wrapper around a synchronous DataSource."""

    def __init__(
        self,
        source: DataSource[T],
        cache: Cache,
        type_: Any,
        *,
        bulk_ttl: float | None = None,
        metrics: MetricsRegistry | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(cache, type_, bulk_ttl=bulk_ttl, metrics=metrics, settings=settings)
        self.source = source

    def get_one(self, identifier: Identifier) -> T | None:
        """Return the record, from cache when fresh, else from the source.

        Returns None if the source does not know the record either.
        """
        hit, value = self._cached_one(identifier)
        if hit:
            return value

        with self._timed("fetch_one"):
            try:
                value = self.source.fetch_one(identifier)
            except NotFoundError:
                value = None
        return self._store_one(value)

    def get_all(self) -> list[T]:
        """Return every record of the type."""
        if self._bulk_is_fresh():
            return self.cache.get_all(self.type_name)

        with self._timed("fetch_all"):
            values = self.source.fetch_all()
        return self._store_all(values)

    def find(self, predicate: Callable[[T], bool]) -> list[T]:
        """Return the records of ``get_all`` matching ``predicate``."""
        return [value for value in self.get_all() if predicate(value)]

    def save(self, value: T) -> None:
        """Cache ``value`` then persist it; undo the cache write on failure."""
        with self.cache.write_through(value):
            self.source.persist(value)


class AsyncCachedDataSource(_CachingPolicy[T]):
    """Cache-aside wrapper around an AsyncDataSource.

    Results match CachedDataSource; only the source calls are awaited.
    """

    def __init__(
        self,
        source: AsyncDataSource[T],
        cache: Cache,
        type_: Any,
        *,
        bulk_ttl: float | None = None,
        metrics: MetricsRegistry | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(cache, type_, bulk_ttl=bulk_ttl, metrics=metrics, settings=settings)
        self.source = source

    async def get_one(self, identifier: Identifier) -> T | None:
        """Return the record, from cache when fresh, else from the source."""
        hit, value = self._cached_one(identifier)
        if hit:
            return value

        with self._timed("fetch_one"):
            try:
                value = await self.source.fetch_one(identifier)
            except NotFoundError:
                value = None
        return self._store_one(value)

    async def get_all(self) -> list[T]:
        """Return every record of the type."""
        if self._bulk_is_fresh():
            return self.cache.get_all(self.type_name)

        with self._timed("fetch_all"):
            values = await self.source.fetch_all()
        return self._store_all(values)

    async def find(self, predicate: Callable[[T], bool]) -> list[T]:
        """Return the records of ``get_all`` matching ``predicate``."""
        return [value for value in await self.get_all() if predicate(value)]

    async def save(self, value: T) -> None:
        """Cache ``value`` then persist it; undo the cache write on failure."""
        with self.cache.write_through(value):
            await self.source.persist(value)
