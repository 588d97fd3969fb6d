"""Error taxonomy for ticketcache.

- NotFoundError: key absent from a cache bucket. Consumers recover from it by
  falling back to the data source.
- SourceUnavailableError: raised by data sources, propagated unchanged.
- InvalidKeyError: a key could not be derived (programming error).
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all ticketcache errors."""


class NotFoundError(CacheError):
    """No entry exists for the requested key."""

    def __init__(self, type_name: str, identifier: Any = None):
        self.type_name = type_name
        self.identifier = identifier
        super().__init__(f"{type_name} '{identifier}' not found in cache")


class SourceUnavailableError(CacheError):
    """The backing data source failed to answer."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        text = f"Data source {source} unavailable"
        if reason:
            text = f"{text}: {reason}"
        super().__init__(text)


class InvalidKeyError(CacheError, ValueError):
    """A cache key could not be derived from the given input."""
