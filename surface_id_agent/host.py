"""Interfaces consumed from the host compositor.

The engine never owns surfaces. It reads identity attributes, asks the host
to set an id, and keeps nothing but the surface key as a back-reference.
"""

from typing import Hashable, Optional, Protocol, runtime_checkable


class SurfaceIdRejected(Exception):
    """Host refused to set a surface id."""

    def __init__(self, surface_id: int, reason: str = ""):
        self.surface_id = surface_id
        self.reason = reason
        super().__init__(reason or f"surface_id {surface_id} rejected")


@runtime_checkable
class Surface(Protocol):
    """A host-owned application surface.

    Attributes:
        key: Stable host identity, used for sameness checks and rule binding
    """

    key: Hashable

    def get_current_id(self) -> Optional[int]:
        """Id currently set on the surface, or None."""
        ...

    def get_app_id(self) -> Optional[str]:
        ...

    def get_title(self) -> Optional[str]:
        ...

    async def set_id(self, surface_id: int) -> None:
        """Set the surface id.

        Raises:
            SurfaceIdRejected: If the host refuses the id
        """
        ...


@runtime_checkable
class SurfaceHost(Protocol):
    """Host-wide queries the engine needs."""

    async def get_surface_from_id(self, surface_id: int) -> Optional[Surface]:
        """Live surface currently holding ``surface_id``, or None."""
        ...

    def forget(self, surface_key: Hashable) -> None:
        """Drop any per-surface state once the surface is gone."""
        ...
