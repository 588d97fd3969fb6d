"""Cache change notifications.

Caches emit CacheEvent values through an optional synchronous hook. The hook
is fire-and-forget: failures are logged and never affect cache state.
InMemoryEventBus adapts the hook to async subscribers.
"""

from ticketcache.events.bus import EventBus, EventHandler, EventHook, InMemoryEventBus
from ticketcache.events.schemas import CacheEvent, CacheEventType

__all__ = [
    # Event types
    "CacheEvent",
    "CacheEventType",
    # Bus
    "EventBus",
    "EventHandler",
    "EventHook",
    "InMemoryEventBus",
]
