"""Compositor event handlers.

Each handler turns an i3ipc window event into a LifecycleEvent and queues
it; all assignment work happens on the event processor's single consumer.
"""

import logging

from i3ipc import aio
from i3ipc.events import WindowEvent

from .models.events import LifecycleEvent, LifecycleEventType
from .services.event_processor import EventProcessor
from .sway_host import SwayHost, get_window_app_id

logger = logging.getLogger(__name__)


async def on_window_new(
    conn: aio.Connection,
    event: WindowEvent,
    host: SwayHost,
    processor: EventProcessor,
) -> None:
    """Handle window::new events - queue a configure event."""
    container = event.container
    logger.debug(
        f"window::new con_id={container.id} app_id={get_window_app_id(container)} "
        f"title={(container.name or '')[:50]!r}"
    )
    await processor.enqueue(
        LifecycleEvent(LifecycleEventType.CONFIGURE, host.surface(container), "window::new")
    )


async def on_window_title(
    conn: aio.Connection,
    event: WindowEvent,
    host: SwayHost,
    processor: EventProcessor,
) -> None:
    """Handle window::title events.

    Clients often set their title after mapping; a surface still without an
    id gets another configure event, one that already has an id is skipped
    by the coordinator.
    """
    await processor.enqueue(
        LifecycleEvent(LifecycleEventType.CONFIGURE, host.surface(event.container), "window::title")
    )


async def on_window_close(
    conn: aio.Connection,
    event: WindowEvent,
    host: SwayHost,
    processor: EventProcessor,
) -> None:
    """Handle window::close events - queue a remove event."""
    container = event.container
    logger.debug(f"window::close con_id={container.id} marks={container.marks}")
    await processor.enqueue(
        LifecycleEvent(LifecycleEventType.REMOVE, host.surface(container), "window::close")
    )
