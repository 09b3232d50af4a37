"""
Event notification for Ops Tower risk scoring.

Buses are passed explicitly to the components that emit on them.

Author: Ops Tower Team
Date: 2026-10-18
"""

from opstower.events.bus import EventBus
from opstower.events.types import (
    Event,
    EventPriority,
    FusionCompletedEvent,
    ThresholdExceededEvent,
    WeightsCalibratedEvent,
)

__all__ = [
    "Event",
    "EventBus",
    "EventPriority",
    "FusionCompletedEvent",
    "ThresholdExceededEvent",
    "WeightsCalibratedEvent",
]
