"""Rule and observation models for surface id matching."""

import logging
from dataclasses import dataclass, field
from typing import Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Rule:
    """Configured mapping from application identity to a surface id.

    Attributes:
        surface_id: Target id, unique across rules and outside the default pool
        app_id: Exact-match filter on application id (None = wildcard)
        title: Exact-match filter on window title (None = wildcard)
        position: Index in configuration order

    The predicate fields never change after load. The only mutable part is
    the bound surface key, a back-reference to the live surface currently
    holding this rule's id. The surface itself is owned by the host.
    """

    surface_id: int
    app_id: Optional[str] = None
    title: Optional[str] = None
    position: int = 0
    _bound_surface: Optional[Hashable] = field(default=None, init=False, repr=False)

    def matches(self, observation: "SurfaceObservation") -> bool:
        """Check every present predicate against the observation.

        Args:
            observation: Attributes read from the surface

        Returns:
            True if all present predicates are exactly equal, False otherwise
        """
        if self.app_id is not None and observation.app_id != self.app_id:
            return False
        if self.title is not None and observation.title != self.title:
            return False
        return True

    @property
    def bound_surface(self) -> Optional[Hashable]:
        return self._bound_surface

    @property
    def is_bound(self) -> bool:
        return self._bound_surface is not None

    def bind(self, surface_key: Hashable) -> None:
        self._bound_surface = surface_key

    def unbind(self) -> None:
        self._bound_surface = None

    def describe(self) -> str:
        parts = []
        if self.app_id is not None:
            parts.append(f"app_id={self.app_id!r}")
        if self.title is not None:
            parts.append(f"title={self.title!r}")
        return f"rule#{self.position}({', '.join(parts)} -> {self.surface_id})"


@dataclass(frozen=True)
class SurfaceObservation:
    """Identity attributes of a surface, captured once per lifecycle event.

    Attributes:
        app_id: Application id, or the title when the application declares none
        title: Window title
        app_id_from_title: True when app_id was synthesized from the title
    """

    app_id: Optional[str] = None
    title: Optional[str] = None
    app_id_from_title: bool = False

    @classmethod
    def observe(cls, app_id: Optional[str], title: Optional[str]) -> "SurfaceObservation":
        """Build an observation, falling back to the title as app id.

        Some applications never declare an app id; for those the title stands
        in as a synthetic identifier for matching and for the store mapping.

        Examples:
            >>> SurfaceObservation.observe(None, "T").app_id
            'T'
            >>> SurfaceObservation.observe("nav", "Map").app_id
            'nav'
        """
        if app_id is not None:
            logger.info(f"Found application: {app_id}")
            return cls(app_id=app_id, title=title)

        if title is not None:
            logger.warning(f"No app id found, using app title instead: {title}")
            return cls(app_id=title, title=title, app_id_from_title=True)

        logger.warning("No app id found")
        return cls(app_id=None, title=None)
