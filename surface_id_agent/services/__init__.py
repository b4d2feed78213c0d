"""Services module for surface-id-agent."""

from .event_processor import EventMetrics, EventProcessor, ProcessedEvent

__all__ = [
    "EventMetrics",
    "EventProcessor",
    "ProcessedEvent",
]
