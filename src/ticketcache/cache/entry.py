"""Cache entries: one value paired with its own expiry ticket."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from ticketcache.cache.tickets import ExpiryTicket

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value and its ticket.

    Frozen: replacing a value means storing a new entry at the same key.
    The ticket can still be invalidated in place.
    """

    value: T
    ticket: ExpiryTicket

    def unwrap(self) -> T:
        """Return the held value, whatever the ticket state."""
        return self.value

    @property
    def is_expired(self) -> bool:
        return self.ticket.is_expired
