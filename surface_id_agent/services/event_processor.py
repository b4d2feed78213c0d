"""Lifecycle event processing service.

Provides:
- Async event queue with FIFO processing, one event at a time
- Early event queuing until the engine is initialized
- Circular buffer of processed events for diagnostics
- Processing metrics (received, processed, failed, assigned)

Host callbacks only enqueue; a single consumer task hands every event to
the assignment coordinator and waits for it to finish before taking the
next one, so events never interleave.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, List, Optional, Union

from ..coordinator import AssignmentCoordinator
from ..models.events import (
    AssignmentOutcome,
    LifecycleEvent,
    LifecycleEventType,
    RemovalOutcome,
)

logger = logging.getLogger(__name__)


@dataclass
class EventMetrics:
    """Event processing metrics."""

    events_received: int = 0
    events_processed: int = 0
    events_failed: int = 0
    ids_assigned: int = 0
    assignments_failed: int = 0
    processing_durations_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=1000))

    def record_received(self) -> None:
        self.events_received += 1

    def record_processed(self, duration_ms: float) -> None:
        self.events_processed += 1
        self.processing_durations_ms.append(duration_ms)

    def record_failed(self) -> None:
        self.events_failed += 1

    def record_outcome(self, outcome: AssignmentOutcome) -> None:
        if outcome.skipped:
            return
        if outcome.success:
            self.ids_assigned += 1
        else:
            self.assignments_failed += 1

    def get_average_duration_ms(self) -> float:
        if not self.processing_durations_ms:
            return 0.0
        return sum(self.processing_durations_ms) / len(self.processing_durations_ms)

    def get_max_duration_ms(self) -> float:
        if not self.processing_durations_ms:
            return 0.0
        return max(self.processing_durations_ms)

    def to_dict(self) -> dict:
        return {
            "events_received": self.events_received,
            "events_processed": self.events_processed,
            "events_failed": self.events_failed,
            "ids_assigned": self.ids_assigned,
            "assignments_failed": self.assignments_failed,
            "average_duration_ms": self.get_average_duration_ms(),
            "max_duration_ms": self.get_max_duration_ms(),
        }


@dataclass
class ProcessedEvent:
    """Diagnostic record of one handled lifecycle event."""

    event_type: LifecycleEventType
    surface_key: object
    enqueue_time: datetime
    duration_ms: float = 0.0
    outcome: Optional[Union[AssignmentOutcome, RemovalOutcome]] = None
    error: Optional[str] = None


class EventProcessor:
    """Feeds lifecycle events to the coordinator in FIFO order."""

    def __init__(self, coordinator: AssignmentCoordinator, buffer_size: int = 500):
        """Initialize event processor.

        Args:
            coordinator: Assignment coordinator handling each event
            buffer_size: Maximum entries in the diagnostic buffer
        """
        self.coordinator = coordinator
        self.buffer_size = buffer_size

        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._event_buffer: Deque[ProcessedEvent] = deque(maxlen=buffer_size)
        self._metrics = EventMetrics()

        self._processing = False
        self._process_task: Optional[asyncio.Task] = None
        self._initialized = False
        self._early_events: List[tuple] = []

    async def initialize(self) -> None:
        """Mark processor as initialized and release early events."""
        self._initialized = True

        if self._early_events:
            logger.info(f"Processing {len(self._early_events)} early events")
            for item in self._early_events:
                await self._event_queue.put(item)
            self._early_events.clear()

    async def enqueue(self, event: LifecycleEvent) -> None:
        """Enqueue a lifecycle event for processing.

        Events arriving before initialize() are held back and released in
        arrival order once the engine is ready.
        """
        self._metrics.record_received()
        item = (event, datetime.now())

        if not self._initialized:
            logger.debug(f"Queuing early event: {event.event_type.value}")
            self._early_events.append(item)
        else:
            await self._event_queue.put(item)

    async def start_processing(self) -> None:
        if self._processing:
            logger.warning("Event processor already running")
            return

        logger.info("Starting event processor")
        self._processing = True
        self._process_task = asyncio.create_task(self._process_loop())

    async def stop_processing(self) -> None:
        """Stop the loop after handling events already queued."""
        if not self._processing:
            return

        logger.info("Stopping event processor")
        self._processing = False

        if self._process_task:
            await self._process_task
            self._process_task = None

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._event_queue.join()

    async def _process_loop(self) -> None:
        while self._processing:
            try:
                item = await asyncio.wait_for(self._event_queue.get(), timeout=0.1)
            except asyncio.TimeoutError:
                continue
            await self._process_item(item)

        # Drain remaining events when stopping
        while not self._event_queue.empty():
            await self._process_item(self._event_queue.get_nowait())

    async def _process_item(self, item: tuple) -> None:
        event, enqueue_time = item
        try:
            await self.process_event(event, enqueue_time)
        finally:
            self._event_queue.task_done()

    async def process_event(
        self, event: LifecycleEvent, enqueue_time: Optional[datetime] = None
    ) -> ProcessedEvent:
        """Handle one event to completion and record metrics.

        Unexpected errors (host IPC failures and the like) are contained to
        the event: logged, counted, and the loop moves on.
        """
        start_time = datetime.now()
        record = ProcessedEvent(
            event_type=event.event_type,
            surface_key=getattr(event.surface, "key", None),
            enqueue_time=enqueue_time or start_time,
        )

        try:
            if event.event_type == LifecycleEventType.CONFIGURE:
                outcome = await self.coordinator.on_configure(event.surface)
                self._metrics.record_outcome(outcome)
            else:
                outcome = await self.coordinator.on_remove(event.surface)
            record.outcome = outcome
            record.duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            self._metrics.record_processed(record.duration_ms)
            logger.debug(
                f"Event processed: {event.event_type.value} "
                f"surface={record.surface_key} ({record.duration_ms:.2f}ms)"
            )
        except Exception as e:
            record.duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            record.error = str(e)
            self._metrics.record_failed()
            logger.error(
                f"Event processing failed: {event.event_type.value} "
                f"surface={record.surface_key}: {e}",
                exc_info=True,
            )

        self._event_buffer.append(record)
        return record

    def get_recent_events(self, limit: int = 50) -> List[ProcessedEvent]:
        """Get recent events from circular buffer (newest last)."""
        if limit >= len(self._event_buffer):
            return list(self._event_buffer)
        return list(self._event_buffer)[-limit:]

    def get_metrics(self) -> dict:
        return self._metrics.to_dict()

    def get_queue_size(self) -> int:
        return self._event_queue.qsize()

    def get_early_event_count(self) -> int:
        return len(self._early_events)
