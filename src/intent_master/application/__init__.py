"""DDD application layer."""

from .event_publisher import EventPublisher, NullEventPublisher
from .mastering_service import MasteringOutcome, MasterTrackWithIntent
from .session import MasteringSession

__all__ = [
    "EventPublisher",
    "NullEventPublisher",
    "MasteringOutcome",
    "MasterTrackWithIntent",
    "MasteringSession",
]
