"""Cache layer for ticketcache.

Provides an in-process, per-type cache with lazy expiry:
- Structured keys so type-scoped operations never match by substring
- Entries carry their own expiry ticket (TTL plus manual invalidation)
- Call tickets memoize bulk operations independently of record expiry
- A registry hands out one bucket per type
"""

from ticketcache.cache.entry import CacheEntry
from ticketcache.cache.keys import CacheKey, Identifier, cacheable, type_name_of
from ticketcache.cache.registry import CacheRegistry
from ticketcache.cache.store import Cache, CacheStats
from ticketcache.cache.sweeper import ExpirySweeper
from ticketcache.cache.tickets import Clock, ExpiryTicket, utc_now

__all__ = [
    # Keys
    "CacheKey",
    "Identifier",
    "cacheable",
    "type_name_of",
    # Lifecycle
    "Clock",
    "ExpiryTicket",
    "utc_now",
    "CacheEntry",
    # Store
    "Cache",
    "CacheStats",
    "CacheRegistry",
    "ExpirySweeper",
]
