"""In-process cache bucket.

A Cache maps structured keys to entries and keeps a second map of call
tickets, recording when a bulk operation (e.g. "fetch every widget") was
last satisfied.

Expiry is lazy. ``contains`` treats expired entries as absent, while
``has_any``, ``get_all`` and ``get_one`` report whatever is physically
present. Nothing is removed on read; entries leave only
through ``remove``, ``replace_all``, ``clear`` or ``purge_expired``.

Every public operation holds a single re-entrant lock for its duration. No
operation performs I/O, so the lock is only ever held briefly.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import Counter
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from ticketcache.cache.entry import CacheEntry
from ticketcache.cache.keys import CacheKey, type_name_of
from ticketcache.cache.tickets import Clock, ExpiryTicket, utc_now
from ticketcache.config import Settings, settings as default_settings
from ticketcache.errors import InvalidKeyError, NotFoundError
from ticketcache.events.bus import EventHook
from ticketcache.events.schemas import CacheEvent, CacheEventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time snapshot of a cache bucket."""

    name: str
    entries: int
    expired_entries: int
    operations: int
    expired_operations: int
    by_type: dict[str, int] = field(default_factory=dict)


class Cache:
    """Key/entry store with call tickets for bulk operations."""

    def __init__(
        self,
        name: str = "default",
        *,
        default_ttl: float | None = None,
        copy_values: bool | None = None,
        clock: Clock = utc_now,
        on_event: EventHook | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or default_settings
        self.name = name
        self.default_ttl = settings.default_ttl_seconds if default_ttl is None else default_ttl
        self.copy_values = settings.copy_values if copy_values is None else copy_values
        self.clock = clock
        self._on_event = on_event
        self._entries: dict[CacheKey, CacheEntry[Any]] = {}
        self._call_tickets: dict[str, ExpiryTicket] = {}
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _copy(self, value: Any) -> Any:
        return copy.deepcopy(value) if self.copy_values else value

    def _keys_of_type(self, type_name: str) -> list[CacheKey]:
        return [key for key in self._entries if key.type_name == type_name]

    def _store(self, key: CacheKey, value: Any, ttl: float | None) -> CacheEntry[Any]:
        ticket = ExpiryTicket.from_duration(
            self.default_ttl if ttl is None else ttl, clock=self.clock
        )
        entry = CacheEntry(self._copy(value), ticket)
        self._entries[key] = entry
        return entry

    def _emit(self, event_type: CacheEventType, **kwargs: Any) -> None:
        """Send a notification through the hook, if any.

        Hook failures are logged and never propagate into cache operations.
        """
        if self._on_event is None:
            return
        try:
            self._on_event(CacheEvent(event_type=event_type, **kwargs))
        except Exception:
            logger.exception(f"Cache event hook failed for bucket {self.name}")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def contains(self, type_: Any, identifier: Any) -> bool:
        """True iff a non-expired entry exists for (type, identifier)."""
        key = CacheKey.derive(type_, identifier)
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.ticket.is_valid()

    def has_any(self, type_: Any = None) -> bool:
        """True iff at least one entry is present, expired or not.

        With no type, true iff the cache holds any entry at all.
        """
        with self._lock:
            if type_ is None:
                return bool(self._entries)
            type_name = type_name_of(type_)
            return any(key.type_name == type_name for key in self._entries)

    def get_one(self, type_: Any, identifier: Any) -> Any:
        """Return the value stored for (type, identifier).

        Raises NotFoundError if no entry exists. Expiry is not checked here;
        gate on ``contains`` first when freshness matters.
        """
        key = CacheKey.derive(type_, identifier)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                raise NotFoundError(key.type_name, identifier)
            return self._copy(entry.unwrap())

    def get_all(self, type_: Any = None) -> list[Any]:
        """Return every stored value of a type (or of every type), unordered."""
        with self._lock:
            if type_ is None:
                entries = list(self._entries.values())
            else:
                entries = [self._entries[key] for key in self._keys_of_type(type_name_of(type_))]
            return [self._copy(entry.unwrap()) for entry in entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def put(self, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` under its own key, replacing any existing entry.

        ``ttl`` overrides the bucket's default time-to-live in seconds.
        """
        key = CacheKey.for_value(value)
        with self._lock:
            self._store(key, value, ttl)
        logger.debug(f"Cached {key.type_name} {key.identifier!r} in bucket {self.name}")
        self._emit(CacheEventType.STORED, type_name=key.type_name, identifier=key.identifier)

    def replace_all(self, type_: Any, values: Iterable[Any], ttl: float | None = None) -> int:
        """Make ``values`` the complete set of entries of ``type_``.

        Entries of the type whose key is not among ``values`` are removed in
        the same critical section. Returns the number of entries removed.
        """
        type_name = type_name_of(type_)
        keyed = [(CacheKey.for_value(value), value) for value in values]
        for key, value in keyed:
            if key.type_name != type_name:
                raise InvalidKeyError(f"{value!r} is not a {type_name}")

        fresh = {key for key, _ in keyed}
        with self._lock:
            stale = [key for key in self._keys_of_type(type_name) if key not in fresh]
            for key in stale:
                del self._entries[key]
            for key, value in keyed:
                self._store(key, value, ttl)

        logger.debug(
            f"Replaced {type_name} in bucket {self.name}: "
            f"{len(keyed)} stored, {len(stale)} dropped"
        )
        for key in stale:
            self._emit(CacheEventType.REMOVED, type_name=key.type_name, identifier=key.identifier)
        for key, _ in keyed:
            self._emit(CacheEventType.STORED, type_name=key.type_name, identifier=key.identifier)
        return len(stale)

    @contextmanager
    def write_through(self, value: Any, ttl: float | None = None) -> Iterator[None]:
        """Put ``value`` first, then run the body (typically persistence).

        If the body raises, the previous entry is restored (or the new one
        removed), unless another write has replaced it in the meantime.
        """
        key = CacheKey.for_value(value)
        with self._lock:
            previous = self._entries.get(key)
            entry = self._store(key, value, ttl)
        self._emit(CacheEventType.STORED, type_name=key.type_name, identifier=key.identifier)

        try:
            yield
        except BaseException:
            with self._lock:
                restored = self._entries.get(key) is entry
                if restored:
                    if previous is None:
                        del self._entries[key]
                    else:
                        self._entries[key] = previous
            if restored:
                logger.warning(
                    f"Rolled back cached {key.type_name} {key.identifier!r} "
                    f"in bucket {self.name} after failed write"
                )
                self._emit(
                    CacheEventType.REMOVED if previous is None else CacheEventType.STORED,
                    type_name=key.type_name,
                    identifier=key.identifier,
                )
            raise

    def remove(self, type_: Any, identifier: Any) -> None:
        """Delete the entry for (type, identifier); no-op when absent."""
        key = CacheKey.derive(type_, identifier)
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"Removed {key.type_name} {identifier!r} from bucket {self.name}")
            self._emit(CacheEventType.REMOVED, type_name=key.type_name, identifier=key.identifier)

    def clear(self, type_: Any = None) -> None:
        """Delete every entry of exactly this type, or everything.

        A full clear also forgets all call tickets.
        """
        with self._lock:
            if type_ is None:
                type_name = None
                count = len(self._entries)
                self._entries.clear()
                self._call_tickets.clear()
            else:
                type_name = type_name_of(type_)
                keys = self._keys_of_type(type_name)
                for key in keys:
                    del self._entries[key]
                count = len(keys)
        logger.info(f"Cleared {count} entries of {type_name or 'all types'} from bucket {self.name}")
        self._emit(CacheEventType.CLEARED, type_name=type_name, count=count)

    def invalidate(self, type_: Any, identifier: Any) -> bool:
        """Expire one entry in place. Returns False if there was no entry."""
        key = CacheKey.derive(type_, identifier)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.ticket.invalidate()
        self._emit(CacheEventType.INVALIDATED, type_name=key.type_name, identifier=key.identifier)
        return True

    # -------------------------------------------------------------------------
    # Call tickets
    # -------------------------------------------------------------------------

    def mark_operation(self, name: str, ticket: ExpiryTicket) -> None:
        """Record that bulk operation ``name`` was satisfied under ``ticket``."""
        with self._lock:
            self._call_tickets[name] = ticket
        logger.debug(f"Marked operation {name} in bucket {self.name} until {ticket.deadline}")
        self._emit(CacheEventType.OPERATION_MARKED, identifier=name)

    def is_operation_expired(self, name: str) -> bool:
        """True if ``name`` was never marked or its ticket is no longer valid."""
        with self._lock:
            ticket = self._call_tickets.get(name)
            return ticket is None or not ticket.is_valid()

    def invalidate_operation(self, name: str) -> None:
        """Expire the call ticket of ``name``, if any."""
        with self._lock:
            ticket = self._call_tickets.get(name)
            if ticket is not None:
                ticket.invalidate()

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def force_refresh(self) -> None:
        """Invalidate every entry ticket and call ticket in the bucket."""
        with self._lock:
            for entry in self._entries.values():
                entry.ticket.invalidate()
            for ticket in self._call_tickets.values():
                ticket.invalidate()
            count = len(self._entries)
        logger.info(f"Forced refresh of bucket {self.name} ({count} entries)")
        self._emit(CacheEventType.INVALIDATED, count=count)

    def purge_expired(self) -> int:
        """Remove expired entries and call tickets.

        Returns the number of entries removed.
        """
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired]
            for key in expired:
                del self._entries[key]
            for name in [n for n, t in self._call_tickets.items() if t.is_expired]:
                del self._call_tickets[name]
        if expired:
            logger.debug(f"Purged {len(expired)} expired entries from bucket {self.name}")
            self._emit(CacheEventType.PURGED, count=len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        """Snapshot entry and ticket counts."""
        with self._lock:
            return CacheStats(
                name=self.name,
                entries=len(self._entries),
                expired_entries=sum(1 for e in self._entries.values() if e.is_expired),
                operations=len(self._call_tickets),
                expired_operations=sum(1 for t in self._call_tickets.values() if t.is_expired),
                by_type=dict(Counter(key.type_name for key in self._entries)),
            )

    def __repr__(self) -> str:
        return f"Cache(name={self.name!r}, entries={len(self)})"
