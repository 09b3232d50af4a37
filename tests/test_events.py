"""
Tests for the event system.

Author: Ops Tower Team
Date: 2026-10-18
"""

from datetime import timezone

import pytest

from opstower.events import (
    Event,
    EventBus,
    EventPriority,
    FusionCompletedEvent,
    ThresholdExceededEvent,
    WeightsCalibratedEvent,
)


def completed(subject_id="driver-1"):
    return FusionCompletedEvent(
        source="test",
        subject_id=subject_id,
        overall_score=0.3,
        verdict="genuine",
    )


class TestEventTypes:
    """Test event type definitions."""

    def test_event_creation(self):
        """Test basic event creation."""
        event = completed()

        assert event.source == "test"
        assert event.subject_id == "driver-1"
        assert event.primary_concerns == []
        assert event.priority == EventPriority.NORMAL
        assert event.timestamp.tzinfo == timezone.utc

    def test_event_immutability(self):
        """Test that events are immutable."""
        event = completed()

        with pytest.raises(Exception):  # Pydantic ValidationError
            event.subject_id = "modified"

    def test_threshold_event_priority(self):
        """Test that threshold events are high priority by default."""
        event = ThresholdExceededEvent(
            source="test",
            subject_id="passenger-4",
            overall_score=0.91,
            threshold=0.7,
        )

        assert event.priority == EventPriority.HIGH
        assert event.recommended_actions == []

    def test_unique_ids(self):
        """Test that every event gets its own id."""
        assert completed().id != completed().id

    def test_serialization(self):
        """Test event serialization."""
        event = WeightsCalibratedEvent(
            source="test",
            version=3,
            previous_version=2,
            weights={"visual": 1.0},
        )

        data = event.model_dump()

        assert data["version"] == 3
        assert data["weights"] == {"visual": 1.0}
        assert data["sample_count"] == 0


class TestEventBus:
    """Test event bus functionality."""

    @pytest.fixture
    def bus(self):
        """Create fresh event bus for each test."""
        return EventBus()

    def test_subscribe_and_emit(self, bus):
        """Test basic subscribe and emit."""
        received = []
        bus.subscribe(FusionCompletedEvent, received.append)

        event = completed()
        bus.emit(event)

        assert received == [event]

    def test_only_matching_type(self, bus):
        """Test that handlers only see their event type."""
        received = []
        bus.subscribe(WeightsCalibratedEvent, received.append)

        bus.emit(completed())

        assert received == []

    def test_priority_order(self, bus):
        """Test that higher priority handlers run first."""
        order = []
        bus.subscribe(FusionCompletedEvent, lambda e: order.append("low"), priority=1)
        bus.subscribe(FusionCompletedEvent, lambda e: order.append("high"), priority=10)
        bus.subscribe(FusionCompletedEvent, lambda e: order.append("medium"), priority=5)

        bus.emit(completed())

        assert order == ["high", "medium", "low"]

    def test_wildcard_runs_after_specific(self, bus):
        """Test wildcard subscriptions."""
        order = []
        bus.subscribe_all(lambda e: order.append("wildcard"), priority=100)
        bus.subscribe(FusionCompletedEvent, lambda e: order.append("specific"))

        bus.emit(completed())
        bus.emit(WeightsCalibratedEvent(source="test", version=1, previous_version=0, weights={}))

        assert order == ["specific", "wildcard", "wildcard"]

    def test_unsubscribe(self, bus):
        """Test unsubscribing from events."""
        received = []
        bus.subscribe(FusionCompletedEvent, received.append)
        bus.unsubscribe(FusionCompletedEvent, received.append)

        bus.emit(completed())

        assert received == []
        assert bus.get_handler_count() == 0

    def test_handler_error_isolation(self, bus):
        """Test that one failing handler does not stop the others."""
        received = []

        def failing_handler(event: Event):
            raise RuntimeError("Handler error")

        bus.subscribe(FusionCompletedEvent, failing_handler, priority=10)
        bus.subscribe(FusionCompletedEvent, received.append)

        bus.emit(completed())

        assert len(received) == 1

    def test_clear(self, bus):
        """Test clearing all handlers."""
        bus.subscribe(FusionCompletedEvent, lambda e: None)
        bus.subscribe_all(lambda e: None)
        assert bus.get_handler_count() == 2

        bus.clear()

        assert bus.get_handler_count() == 0

    def test_emit_without_handlers(self, bus):
        """Test emitting with nobody listening."""
        bus.emit(completed())
