"""ticketcache: in-process, per-type caching in front of a data source."""

from ticketcache.cache import (
    Cache,
    CacheEntry,
    CacheKey,
    CacheRegistry,
    CacheStats,
    ExpirySweeper,
    ExpiryTicket,
    cacheable,
)
from ticketcache.config import Settings
from ticketcache.errors import CacheError, InvalidKeyError, NotFoundError, SourceUnavailableError
from ticketcache.source import AsyncCachedDataSource, AsyncDataSource, CachedDataSource, DataSource
from ticketcache.runtime import CacheRuntime, create_runtime

__version__ = "0.1.0"

__all__ = [
    "Cache",
    "CacheEntry",
    "CacheKey",
    "CacheRegistry",
    "CacheStats",
    "ExpirySweeper",
    "ExpiryTicket",
    "cacheable",
    "Settings",
    "CacheError",
    "InvalidKeyError",
    "NotFoundError",
    "SourceUnavailableError",
    "DataSource",
    "AsyncDataSource",
    "CachedDataSource",
    "AsyncCachedDataSource",
    "CacheRuntime",
    "create_runtime",
]
