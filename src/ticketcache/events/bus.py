"""Event bus for cache notifications.

Provides pub/sub for cache change events:
- EventBus: abstract interface
- InMemoryEventBus: asyncio.Queue backed, single-process

``InMemoryEventBus.publish_nowait`` matches the synchronous hook signature a
Cache accepts, so a bus can be wired in directly:

    bus = InMemoryEventBus()
    registry = CacheRegistry(on_event=bus.publish_nowait)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from ticketcache.config import Settings, settings as default_settings
from ticketcache.events.schemas import CacheEvent

logger = logging.getLogger(__name__)


EventHandler = Callable[[CacheEvent], Awaitable[None]]
EventHook = Callable[[CacheEvent], None]


class EventBus(ABC):
    """Fan-out of cache events to async subscribers."""

    @abstractmethod
    async def publish(self, event: CacheEvent) -> None:
        """Queue ``event`` for delivery."""
        pass

    @abstractmethod
    def publish_nowait(self, event: CacheEvent) -> None:
        """Publish without waiting; drops the event if it cannot be queued."""
        pass

    @abstractmethod
    async def subscribe(self, handler: EventHandler) -> None:
        """Subscribe a handler to receive events."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Begin delivering queued events."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop delivering; undelivered events stay queued."""
        pass


class InMemoryEventBus(EventBus):
    """Single-process bus over an ``asyncio.Queue``.

    Events are delivered in FIFO order to every subscribed handler. A failing
    handler is logged and does not stop delivery to the others.

    ``publish_nowait`` may be called from any thread. Once the bus is started,
    calls made off its event loop are handed to the loop with
    ``call_soon_threadsafe``, since ``asyncio.Queue`` is not thread-safe.
    """

    def __init__(self, max_size: int | None = None, settings: Settings | None = None):
        settings = settings or default_settings
        self._queue: asyncio.Queue[CacheEvent] = asyncio.Queue(
            maxsize=max_size if max_size is not None else settings.event_queue_size
        )
        self._handlers: list[EventHandler] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._task is not None

    async def publish(self, event: CacheEvent) -> None:
        """Queue ``event``, waiting for room if the queue is full."""
        await self._queue.put(event)

    def publish_nowait(self, event: CacheEvent) -> None:
        """Queue an event without blocking.

        Cache notifications are fire-and-forget: a full queue drops the event.
        """
        loop = self._loop
        if loop is not None and not loop.is_closed() and not self._on_loop(loop):
            loop.call_soon_threadsafe(self._enqueue, event)
            return
        self._enqueue(event)

    @staticmethod
    def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    def _enqueue(self, event: CacheEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Event queue full, dropped %s event for %s",
                event.event_type.value,
                event.type_name,
            )

    async def subscribe(self, handler: EventHandler) -> None:
        """Register ``handler`` for every event delivered after this call."""
        self._handlers.append(handler)

    async def start(self) -> None:
        """Start the delivery task. No-op if already running."""
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._deliver_forever())

    async def stop(self) -> None:
        """Cancel the delivery task. Events still queued are kept."""
        task, self._task = self._task, None
        self._loop = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _deliver_forever(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                for handler in list(self._handlers):
                    try:
                        await handler(event)
                    except Exception:
                        logger.exception(
                            "Cache event handler failed on %s event", event.event_type.value
                        )
            finally:
                self._queue.task_done()

    @property
    def pending_count(self) -> int:
        """Events queued but not yet delivered."""
        return self._queue.qsize()

    async def drain(self) -> None:
        """Block until every queued event has been handed to all handlers."""
        await self._queue.join()
