"""Expiry tickets.

A ticket is an absolute deadline plus a manual kill switch. Tickets are
never extended: renewing means issuing a new ticket.

Time is read through a ``Clock`` callable so callers (and tests) can supply
their own notion of "now".
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(UTC)


class ExpiryTicket:
    """Absolute deadline with manual invalidation.

    The deadline is exclusive: at ``now == deadline`` the ticket is already
    expired. Once invalidated, a ticket never reports valid again.
    """

    __slots__ = ("deadline", "invalidated", "_clock")

    def __init__(self, deadline: datetime, clock: Clock = utc_now):
        if deadline.tzinfo is None:
            raise ValueError("ExpiryTicket deadline must be timezone-aware")
        self.deadline = deadline
        self.invalidated = False
        self._clock = clock

    @classmethod
    def from_duration(cls, seconds: float, clock: Clock = utc_now) -> ExpiryTicket:
        """Issue a ticket expiring ``seconds`` from now.

        "Now" is truncated to whole seconds before the offset is added;
        timedelta arithmetic carries into minutes, hours and dates.

        Lifetimes therefore have whole-second granularity: a ticket lives
        between ``seconds - 1`` and ``seconds``. Durations under one second
        are not supported; issued late in a second they are expired at once.
        """
        now = clock().replace(microsecond=0)
        return cls(now + timedelta(seconds=seconds), clock=clock)

    @classmethod
    def expired(cls, clock: Clock = utc_now) -> ExpiryTicket:
        """Issue a ticket that is already invalid."""
        ticket = cls(clock(), clock=clock)
        ticket.invalidate()
        return ticket

    def is_valid(self) -> bool:
        """True while not invalidated and the deadline is still ahead."""
        if self.invalidated:
            return False
        return self._clock() < self.deadline

    @property
    def is_expired(self) -> bool:
        return not self.is_valid()

    def invalidate(self) -> None:
        """Expire the ticket permanently. Safe to call more than once."""
        self.invalidated = True

    def remaining(self) -> timedelta:
        """Time left before expiry, zero once expired."""
        if not self.is_valid():
            return timedelta(0)
        return self.deadline - self._clock()

    def __repr__(self) -> str:
        state = "invalidated" if self.invalidated else "active"
        return f"ExpiryTicket(deadline={self.deadline.isoformat()}, {state})"
