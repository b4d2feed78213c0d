"""Sway/i3 host adapter.

Surface ids live in container marks of the form ``surface_id:<n>``. Marks
are unique across a Sway session, so at most one live container can carry
a given id. Lifecycle mapping:

- window::new, window::title  -> configure
- window::close               -> remove
"""

import logging
import re
from typing import Dict, Hashable, List, Optional

from i3ipc import aio

from .constants import SURFACE_ID_MARK_PREFIX, surface_id_mark
from .host import SurfaceIdRejected

logger = logging.getLogger(__name__)

_MARK_RE = re.compile(rf"^{re.escape(SURFACE_ID_MARK_PREFIX)}(\d+)$")


def get_window_app_id(container) -> Optional[str]:
    """Get application id in a Sway/i3-compatible way.

    Native Wayland clients report ``app_id``; XWayland and i3 clients only
    have the X11 window class.
    """
    if getattr(container, "app_id", None):
        return container.app_id

    if getattr(container, "window_class", None):
        return container.window_class

    return None


def parse_surface_id(marks: List[str]) -> Optional[int]:
    """Extract the surface id from a container's marks.

    Examples:
        >>> parse_surface_id(["scratchpad", "surface_id:42"])
        42
        >>> parse_surface_id([]) is None
        True
    """
    for mark in marks or []:
        match = _MARK_RE.match(mark)
        if match:
            return int(match.group(1))
    return None


class SwaySurface:
    """Surface view over an i3ipc container snapshot."""

    def __init__(self, host: "SwayHost", container) -> None:
        self.host = host
        self.container = container
        self.key = container.id
        self._surface_id = parse_surface_id(getattr(container, "marks", None) or [])

    def __repr__(self) -> str:
        return f"SwaySurface(con_id={self.key}, surface_id={self._surface_id})"

    def get_current_id(self) -> Optional[int]:
        """Id set on this container, preferring the host record over the snapshot.

        Event snapshots are taken when Sway emits the event, so one queued
        behind the assignment still shows the container without its mark.
        """
        recorded = self.host.assigned_id(self.key)
        if recorded is not None:
            return recorded
        return self._surface_id

    def get_app_id(self) -> Optional[str]:
        return get_window_app_id(self.container)

    def get_title(self) -> Optional[str]:
        return getattr(self.container, "name", None) or None

    async def set_id(self, surface_id: int) -> None:
        """Mark the container with its surface id.

        Raises:
            SurfaceIdRejected: If another container holds the mark or Sway
                refuses the command
        """
        holder = await self.host.get_surface_from_id(surface_id)
        if holder is not None and holder.key != self.key:
            raise SurfaceIdRejected(
                surface_id, f"mark already held by container {holder.key}"
            )

        mark = surface_id_mark(surface_id)
        replies = await self.host.conn.command(f'[con_id={self.key}] mark --add "{mark}"')
        if not replies or not replies[0].success:
            error = replies[0].error if replies else "no reply"
            raise SurfaceIdRejected(surface_id, f"mark command failed: {error}")

        self._surface_id = surface_id
        self.host.record_assigned(self.key, surface_id)
        logger.debug(f"Marked container {self.key} with {mark}")


class SwayHost:
    """Host queries answered from the Sway tree."""

    def __init__(self, conn: aio.Connection) -> None:
        self.conn = conn
        # con_id -> surface id marked by this agent, for live containers
        self._assigned: Dict[int, int] = {}

    def surface(self, container) -> SwaySurface:
        return SwaySurface(self, container)

    def assigned_id(self, con_id: int) -> Optional[int]:
        return self._assigned.get(con_id)

    def record_assigned(self, con_id: int, surface_id: int) -> None:
        self._assigned[con_id] = surface_id

    def forget(self, surface_key: Hashable) -> None:
        self._assigned.pop(surface_key, None)

    async def get_surface_from_id(self, surface_id: int) -> Optional[SwaySurface]:
        tree = await self.conn.get_tree()
        found = tree.find_marked(f"^{re.escape(surface_id_mark(surface_id))}$")
        if not found:
            return None
        return SwaySurface(self, found[0])

