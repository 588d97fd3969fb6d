"""Event schemas for cache notifications.

Events describe state changes of a cache bucket. They are emitted
fire-and-forget; nothing in the cache depends on them being delivered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

import orjson


class CacheEventType(str, Enum):
    """Type of cache state change."""

    STORED = "stored"
    REMOVED = "removed"
    INVALIDATED = "invalidated"
    CLEARED = "cleared"
    OPERATION_MARKED = "operation_marked"
    PURGED = "purged"


@dataclass(frozen=True, slots=True)
class CacheEvent:
    """Notification about a cache bucket change.

    ``type_name`` is None when the change spans every type (full clear).
    ``identifier`` is None for type-wide changes; for operation events it
    carries the operation name.
    """

    event_type: CacheEventType
    type_name: str | None = None
    identifier: str | int | None = None
    count: int = 1
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_bytes(self) -> bytes:
        """Serialize to JSON bytes."""
        return orjson.dumps(
            {
                "event_type": self.event_type.value,
                "type_name": self.type_name,
                "identifier": self.identifier,
                "count": self.count,
                "event_id": self.event_id,
                "timestamp": self.timestamp,
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> CacheEvent:
        """Deserialize from JSON bytes."""
        parsed: dict[str, Any] = orjson.loads(data)
        return cls(
            event_type=CacheEventType(parsed["event_type"]),
            type_name=parsed.get("type_name"),
            identifier=parsed.get("identifier"),
            count=parsed.get("count", 1),
            event_id=parsed["event_id"],
            timestamp=datetime.fromisoformat(parsed["timestamp"]),
        )
