"""Default pool allocator for surfaces without a matching rule."""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from .errors import IdInUseError, PolicyDisabledError, PoolExhaustedError
from .models.config import DefaultPolicy

logger = logging.getLogger(__name__)


@dataclass
class AllocatorState:
    """Bounded counter over [next_id, max_id_exclusive).

    next_id only ever grows: ids are never recycled, even after the surface
    holding one is removed.
    """

    next_id: int
    max_id_exclusive: int
    enabled: bool

    @classmethod
    def from_policy(cls, policy: DefaultPolicy) -> "AllocatorState":
        return cls(
            next_id=policy.default_surface_id,
            max_id_exclusive=policy.default_surface_id_max,
            enabled=policy.enabled,
        )

    @property
    def remaining(self) -> int:
        if not self.enabled:
            return 0
        return max(0, self.max_id_exclusive - self.next_id)


class DynamicAllocator:
    """Hands out sequential ids from the default pool."""

    def __init__(self, state: AllocatorState) -> None:
        self.state = state

    async def try_allocate(self, in_use_by_other: Callable[[int], Awaitable[bool]]) -> int:
        """Allocate the next pool id.

        The candidate is checked against the host first: if another surface
        already holds it, allocation fails and the counter is left untouched.
        On success the counter moves forward by one and never rolls back,
        even if the caller fails to apply the id afterwards.

        Args:
            in_use_by_other: Async predicate, True if a different live surface
                already holds the given id

        Returns:
            The allocated surface id

        Raises:
            PolicyDisabledError: If the default policy is off
            PoolExhaustedError: If the pool has no ids left
            IdInUseError: If the candidate id is held by another surface
        """
        state = self.state
        if not state.enabled:
            raise PolicyDisabledError()

        if state.next_id >= state.max_id_exclusive:
            raise PoolExhaustedError(state.max_id_exclusive)

        candidate = state.next_id
        # TODO: skip past a blocked id instead of failing the whole attempt
        if await in_use_by_other(candidate):
            raise IdInUseError(candidate)

        state.next_id = candidate + 1
        logger.debug(
            f"Allocated default surface_id {candidate} "
            f"({state.remaining} left in pool)"
        )
        return candidate
