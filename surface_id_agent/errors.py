"""Error taxonomy for surface-id-agent.

Two families:
- ConfigError: fatal at startup, the engine never starts on a bad config
- AssignError: scoped to a single assignment attempt, logged and reported,
  never retried and never fatal to the engine

Store connectivity failures have no exception type here; the store sync
client swallows them.
"""

from enum import Enum
from typing import Optional


class ConfigError(Exception):
    """Invalid or unusable configuration."""
    pass


class DefaultRangeCollisionError(ConfigError):
    """Rule surface_id lies inside the default pool range."""

    def __init__(self, surface_id: int, pool_start: int, pool_end: int):
        self.surface_id = surface_id
        self.pool_start = pool_start
        self.pool_end = pool_end
        super().__init__(
            f"surface_id {surface_id} collides with default id interval "
            f"[{pool_start}, {pool_end})"
        )


class DuplicateSurfaceIdError(ConfigError):
    """Two rules share a surface_id."""

    def __init__(self, surface_id: int):
        self.surface_id = surface_id
        super().__init__(f"Duplicate surface_id: {surface_id}")


class EmptyRuleError(ConfigError):
    """Rule has neither app_id nor app_title."""

    def __init__(self, surface_id: Optional[int]):
        self.surface_id = surface_id
        super().__init__(
            f"Rule for surface_id {surface_id} sets neither app_id nor app_title"
        )


class MissingSurfaceIdError(ConfigError):
    """Rule record has no surface_id."""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"surface_id is not set in desktop app rule #{index}")


class NoUsableConfigError(ConfigError):
    """No rules and no default policy: nothing could ever be assigned."""

    def __init__(self):
        super().__init__("No desktop app rules and default behavior is disabled")


class AssignErrorKind(str, Enum):
    """Why a single assignment attempt failed."""

    NO_CONFIG = "no_config"
    POOL_EXHAUSTED = "pool_exhausted"
    POLICY_DISABLED = "policy_disabled"
    ID_IN_USE = "id_in_use"
    HOST_REJECTED_ID = "host_rejected_id"


class AssignError(Exception):
    """Assignment attempt for one surface failed."""

    kind: AssignErrorKind

    def __init__(self, message: str, surface_id: Optional[int] = None):
        self.surface_id = surface_id
        super().__init__(message)


class NoConfigError(AssignError):
    kind = AssignErrorKind.NO_CONFIG

    def __init__(self, app_id: Optional[str]):
        self.app_id = app_id
        super().__init__(f"Could not find configuration for application {app_id!r}")


class PolicyDisabledError(AssignError):
    kind = AssignErrorKind.POLICY_DISABLED

    def __init__(self):
        super().__init__("Default behavior for unknown applications is disabled")


class PoolExhaustedError(AssignError):
    kind = AssignErrorKind.POOL_EXHAUSTED

    def __init__(self, max_id_exclusive: int):
        self.max_id_exclusive = max_id_exclusive
        super().__init__(
            f"Interval for default surface_id generation exceeded (max {max_id_exclusive})"
        )


class IdInUseError(AssignError):
    kind = AssignErrorKind.ID_IN_USE

    def __init__(self, surface_id: int):
        super().__init__(
            f"surface_id {surface_id} already used by another surface",
            surface_id=surface_id,
        )


class HostRejectedIdError(AssignError):
    kind = AssignErrorKind.HOST_REJECTED_ID

    def __init__(self, surface_id: int, reason: str = ""):
        self.reason = reason
        message = f"Host rejected surface_id {surface_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, surface_id=surface_id)


# Members the dynamic allocator may raise
AllocError = (PoolExhaustedError, PolicyDisabledError, IdInUseError)
