"""Tests for cache event schemas."""

import dataclasses

import orjson
import pytest

from ticketcache.events.schemas import CacheEvent, CacheEventType


class TestCacheEvent:
    """Test CacheEvent."""

    def test_defaults(self) -> None:
        """Events get an id and a UTC timestamp."""
        event = CacheEvent(event_type=CacheEventType.CLEARED)

        assert event.type_name is None
        assert event.identifier is None
        assert event.count == 1
        assert event.event_id
        assert event.timestamp.tzinfo is not None

    def test_event_is_frozen(self) -> None:
        """Events are immutable."""
        event = CacheEvent(event_type=CacheEventType.STORED)

        with pytest.raises(dataclasses.FrozenInstanceError):
            event.count = 2  # type: ignore[misc]

    def test_to_bytes_is_json(self) -> None:
        """Serialized form is a flat JSON object."""
        event = CacheEvent(event_type=CacheEventType.STORED, type_name="Widget", identifier=1)
        parsed = orjson.loads(event.to_bytes())

        assert parsed["event_type"] == "stored"
        assert parsed["type_name"] == "Widget"
        assert parsed["identifier"] == 1

    def test_from_bytes_restores_event(self) -> None:
        """Deserialization restores every field."""
        event = CacheEvent(
            event_type=CacheEventType.PURGED, type_name="Widget", identifier="w-1", count=4
        )

        assert CacheEvent.from_bytes(event.to_bytes()) == event
