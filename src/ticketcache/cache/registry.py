"""Registry of cache buckets.

Each consumer-declared type gets exactly one Cache for the registry's
lifetime, so unrelated consumers never share key space or expiry timing.
The registry is an ordinary object: construct it with the application and
pass it to whatever needs a bucket.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from ticketcache.cache.keys import type_name_of
from ticketcache.cache.store import Cache
from ticketcache.cache.tickets import Clock, utc_now
from ticketcache.config import Settings, settings as default_settings
from ticketcache.events.bus import EventHook

logger = logging.getLogger(__name__)


class CacheRegistry:
    """Lazily creates and memoizes one Cache per type discriminator."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        clock: Clock = utc_now,
        on_event: EventHook | None = None,
    ):
        self.settings = settings or default_settings
        self.clock = clock
        self._on_event = on_event
        self._buckets: dict[str, Cache] = {}
        self._lock = threading.Lock()

    def get_bucket(self, type_: Any) -> Cache:
        """Return the Cache for ``type_``, creating it on first request."""
        name = type_name_of(type_)
        with self._lock:
            bucket = self._buckets.get(name)
            if bucket is None:
                bucket = Cache(
                    name,
                    clock=self.clock,
                    on_event=self._on_event,
                    settings=self.settings,
                )
                self._buckets[name] = bucket
                logger.info(f"Created cache bucket {name}")
            return bucket

    def buckets(self) -> dict[str, Cache]:
        """Snapshot of all buckets created so far."""
        with self._lock:
            return dict(self._buckets)

    def force_refresh(self) -> None:
        """Invalidate every ticket in every bucket."""
        for bucket in self.buckets().values():
            bucket.force_refresh()

    def purge_expired(self) -> int:
        """Remove expired entries from every bucket. Returns the total removed."""
        return sum(bucket.purge_expired() for bucket in self.buckets().values())

    def clear(self) -> None:
        """Empty every bucket. The buckets themselves are kept."""
        for bucket in self.buckets().values():
            bucket.clear()

    def __contains__(self, type_: Any) -> bool:
        with self._lock:
            return type_name_of(type_) in self._buckets

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)
