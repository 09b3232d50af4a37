"""
Event type definitions for Ops Tower risk scoring.

Author: Ops Tower Team
Date: 2026-10-18
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventPriority(int, Enum):
    """Event priority levels."""

    NORMAL = 1
    HIGH = 2


class Event(BaseModel):
    """
    Base event class.

    All events must inherit from this class.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    """Unique event identifier."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    """When the event occurred."""

    source: str
    """Component that generated the event."""

    priority: EventPriority = EventPriority.NORMAL
    """Event priority."""


class FusionCompletedEvent(Event):
    """Event emitted when a subject has been assessed."""

    subject_id: str
    """User or session that was assessed."""

    overall_score: float
    """Fused risk score (0.0 to 1.0)."""

    verdict: str
    """genuine, suspicious or fraudulent."""

    primary_concerns: list[str] = Field(default_factory=list)
    """Modalities whose individual score was high."""

    weights_version: int = 0
    """Version of the weight snapshot used."""


class ThresholdExceededEvent(Event):
    """Event emitted when a subject is rated fraudulent."""

    priority: EventPriority = EventPriority.HIGH

    subject_id: str
    """User or session that was assessed."""

    overall_score: float
    """Score that exceeded the threshold."""

    threshold: float
    """Threshold that was exceeded."""

    concern_tags: list[str] = Field(default_factory=list)
    """Concern tags from the explanation."""

    recommended_actions: list[str] = Field(default_factory=list)
    """Recommended actions to take."""

    emergency_flags: list[str] = Field(default_factory=list)
    """Emergency conditions raised."""


class WeightsCalibratedEvent(Event):
    """Event emitted when a new weight snapshot is published."""

    version: int
    """Version of the published snapshot."""

    previous_version: int
    """Version that was replaced."""

    weights: dict[str, float]
    """Published weights by modality."""

    sample_count: int = 0
    """Labeled samples used for calibration (0 for manual updates)."""
