"""Runtime wiring for ticketcache.

Builds the objects an application owns for the cache layer: the registry,
an optional event bus for notifications and an optional expiry sweeper.
Nothing here is a module-level singleton; the application keeps the runtime
and hands ``runtime.registry`` to whatever needs a bucket.

Example:
    async with create_runtime(with_events=True) as runtime:
        widgets = CachedDataSource(api, runtime.registry.get_bucket(Widget), Widget)
"""

from __future__ import annotations

import logging
from types import TracebackType

from ticketcache.cache.registry import CacheRegistry
from ticketcache.cache.sweeper import ExpirySweeper
from ticketcache.cache.tickets import Clock, utc_now
from ticketcache.config import Settings, settings as default_settings
from ticketcache.events.bus import InMemoryEventBus
from ticketcache.observability.logging import configure_logging

logger = logging.getLogger(__name__)


class CacheRuntime:
    """Owns a registry and its optional background companions."""

    def __init__(
        self,
        registry: CacheRegistry,
        event_bus: InMemoryEventBus | None = None,
        sweeper: ExpirySweeper | None = None,
    ):
        self.registry = registry
        self.event_bus = event_bus
        self.sweeper = sweeper

    async def start(self) -> None:
        """Start the event bus and sweeper, if configured."""
        if self.event_bus is not None:
            await self.event_bus.start()
            logger.info("Cache event bus started")
        if self.sweeper is not None:
            await self.sweeper.start()

    async def stop(self) -> None:
        """Stop background tasks. Cache contents are kept."""
        if self.sweeper is not None:
            await self.sweeper.stop()
        if self.event_bus is not None:
            await self.event_bus.stop()
            logger.info("Cache event bus stopped")

    async def __aenter__(self) -> CacheRuntime:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


def create_runtime(
    settings: Settings | None = None,
    *,
    clock: Clock = utc_now,
    with_events: bool = False,
    setup_logging: bool = False,
) -> CacheRuntime:
    """Create a cache runtime based on configuration.

    Args:
        settings: Configuration, defaults to the environment-derived settings
        clock: Time source shared by every bucket
        with_events: Wire an InMemoryEventBus as the notification hook
        setup_logging: Apply ``log_level``/``log_json`` to the root logger
    """
    settings = settings or default_settings

    if setup_logging:
        configure_logging(json_format=settings.log_json, level=settings.log_level)

    event_bus = InMemoryEventBus(settings=settings) if with_events else None
    registry = CacheRegistry(
        settings,
        clock=clock,
        on_event=event_bus.publish_nowait if event_bus is not None else None,
    )
    sweeper = ExpirySweeper(registry) if settings.sweep_enabled else None

    return CacheRuntime(registry, event_bus=event_bus, sweeper=sweeper)
