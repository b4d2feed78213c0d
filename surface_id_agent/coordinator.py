"""Assignment coordinator: lifecycle events -> surface ids -> store sync.

Each configure event gets exactly one assignment attempt:

    observe -> match rule -> set id -> bind rule -> register
                   |
                 (miss) -> default pool -> set id -> register

Failures are contained to the surface being processed. They are logged,
returned as an AssignmentOutcome and never retried.
"""

import logging
from typing import Optional

from .allocator import AllocatorState, DynamicAllocator
from .errors import AssignError, HostRejectedIdError, NoConfigError
from .host import Surface, SurfaceHost, SurfaceIdRejected
from .matcher import iter_matches
from .models.events import AssignmentOutcome, RemovalOutcome, SurfaceState
from .models.rule import SurfaceObservation
from .rule_store import RuleStore
from .store_sync import StoreSyncClient

logger = logging.getLogger(__name__)


class AssignmentCoordinator:
    """Orchestrates matcher, allocator, host id-set and store sync."""

    def __init__(
        self,
        rule_store: RuleStore,
        host: SurfaceHost,
        store_sync: StoreSyncClient,
        allocator: Optional[DynamicAllocator] = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            rule_store: Validated rules and default policy
            host: Host compositor queries (id ownership lookup)
            store_sync: Key-value store mirror
            allocator: Default pool allocator (built from the policy if omitted)
        """
        self.rule_store = rule_store
        self.host = host
        self.store_sync = store_sync
        self.allocator = allocator or DynamicAllocator(
            AllocatorState.from_policy(rule_store.default_policy)
        )

    async def on_configure(self, surface: Surface) -> AssignmentOutcome:
        """Handle a surface configure event.

        Surfaces that already carry an id are left alone.

        Args:
            surface: Host surface that became visible

        Returns:
            AssignmentOutcome describing the single attempt
        """
        current_id = surface.get_current_id()
        if current_id is not None:
            return AssignmentOutcome(
                state=SurfaceState.ASSIGNED, surface_id=current_id, skipped=True
            )

        observation = SurfaceObservation.observe(surface.get_app_id(), surface.get_title())

        try:
            outcome = await self._assign(surface, observation)
        except AssignError as e:
            logger.warning(f"Could not create surface_id for application: {e}")
            return AssignmentOutcome(
                state=SurfaceState.UNASSIGNED, observation=observation, error=e
            )

        await self.store_sync.register(observation.app_id, outcome.surface_id)
        return outcome

    async def _assign(
        self, surface: Surface, observation: SurfaceObservation
    ) -> AssignmentOutcome:
        last_rejected: Optional[HostRejectedIdError] = None
        for rule in iter_matches(observation, self.rule_store):
            try:
                await surface.set_id(rule.surface_id)
            except SurfaceIdRejected as e:
                logger.warning(
                    f"Host rejected {rule.describe()} for surface {surface.key}: {e}"
                )
                last_rejected = HostRejectedIdError(rule.surface_id, e.reason)
                continue

            rule.bind(surface.key)
            logger.info(
                f"Assigned surface_id {rule.surface_id} to {observation.app_id} "
                f"via {rule.describe()}"
            )
            return AssignmentOutcome(
                state=SurfaceState.ASSIGNED,
                surface_id=rule.surface_id,
                rule=rule,
                observation=observation,
            )

        # Matching rules were all rejected: no fallthrough to the default pool
        if last_rejected is not None:
            raise last_rejected

        if not self.rule_store.default_policy.enabled:
            raise NoConfigError(observation.app_id)

        logger.info(
            f"No configuration for application {observation.app_id!r}, "
            f"adding to default pool"
        )

        async def in_use_by_other(candidate: int) -> bool:
            holder = await self.host.get_surface_from_id(candidate)
            if holder is not None and holder.key != surface.key:
                logger.warning(
                    f"surface_id {candidate} already used by surface {holder.key}"
                )
                return True
            return False

        surface_id = await self.allocator.try_allocate(in_use_by_other)
        try:
            await surface.set_id(surface_id)
        except SurfaceIdRejected as e:
            raise HostRejectedIdError(surface_id, e.reason) from e

        logger.info(f"Assigned default surface_id {surface_id} to {observation.app_id}")
        return AssignmentOutcome(
            state=SurfaceState.ASSIGNED, surface_id=surface_id, observation=observation
        )

    async def on_remove(self, surface: Surface) -> RemovalOutcome:
        """Handle a surface removal event.

        Clears the bound rule (if any) and drops the store entries for
        whatever id the host reports.
        """
        rule = self.rule_store.find_bound(surface.key)
        if rule is not None:
            rule.unbind()
            logger.debug(f"Unbound {rule.describe()} from surface {surface.key}")

        surface_id = surface.get_current_id()
        self.host.forget(surface.key)
        await self.store_sync.unregister(surface_id)
        return RemovalOutcome(surface_id=surface_id, unbound_rule=rule)
