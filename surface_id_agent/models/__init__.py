"""Data models for surface-id-agent."""

from .config import (
    AgentConfig,
    DefaultPolicy,
    DesktopAppDefaultSection,
    DesktopAppRule,
    RedisServerSection,
    StoreSettings,
)
from .events import (
    AssignmentOutcome,
    LifecycleEvent,
    LifecycleEventType,
    RemovalOutcome,
    SurfaceState,
)
from .rule import Rule, SurfaceObservation

__all__ = [
    "AgentConfig",
    "DefaultPolicy",
    "DesktopAppDefaultSection",
    "DesktopAppRule",
    "RedisServerSection",
    "StoreSettings",
    "AssignmentOutcome",
    "LifecycleEvent",
    "LifecycleEventType",
    "RemovalOutcome",
    "SurfaceState",
    "Rule",
    "SurfaceObservation",
]
