"""Lifecycle event and outcome models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..errors import AssignError, AssignErrorKind
from .rule import Rule, SurfaceObservation


class LifecycleEventType(str, Enum):
    CONFIGURE = "configure"
    REMOVE = "remove"


class SurfaceState(str, Enum):
    """Per-surface state as seen through lifecycle events.

    Unassigned -> Assigned -> Removed. Removed is terminal and no surface
    ever goes back to Unassigned.
    """

    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    REMOVED = "removed"


@dataclass(frozen=True)
class LifecycleEvent:
    """Host notification queued for processing."""

    event_type: LifecycleEventType
    surface: Any
    source: str = "host"


@dataclass(frozen=True)
class AssignmentOutcome:
    """Result of handling one configure event."""

    state: SurfaceState
    surface_id: Optional[int] = None
    rule: Optional[Rule] = None
    observation: Optional[SurfaceObservation] = None
    error: Optional[AssignError] = None
    skipped: bool = False  # surface already had an id

    @property
    def success(self) -> bool:
        return self.state == SurfaceState.ASSIGNED and self.error is None

    @property
    def from_default_pool(self) -> bool:
        return self.success and not self.skipped and self.rule is None

    @property
    def error_kind(self) -> Optional[AssignErrorKind]:
        return self.error.kind if self.error else None


@dataclass(frozen=True)
class RemovalOutcome:
    """Result of handling one remove event."""

    surface_id: Optional[int] = None
    unbound_rule: Optional[Rule] = None
    state: SurfaceState = SurfaceState.REMOVED
