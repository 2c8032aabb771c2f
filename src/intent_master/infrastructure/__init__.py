"""Infrastructure adapters."""

from .logging_event_publisher import LoggingEventPublisher

__all__ = ["LoggingEventPublisher"]
