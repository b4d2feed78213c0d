"""Rule store and configuration validation.

Rules are collected by a mutable RuleStoreBuilder during startup and frozen
into an immutable RuleStore that the engine reads for the rest of the
process lifetime. Validation runs while building; any failure aborts
startup with a ConfigError.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import (
    DefaultRangeCollisionError,
    DuplicateSurfaceIdError,
    EmptyRuleError,
    MissingSurfaceIdError,
    NoUsableConfigError,
)
from .models.config import DefaultPolicy, DesktopAppRule
from .models.rule import Rule

logger = logging.getLogger(__name__)


class RuleStore:
    """Ordered, validated, read-only collection of rules."""

    def __init__(self, rules: Tuple[Rule, ...], default_policy: DefaultPolicy) -> None:
        self._rules = rules
        self._default_policy = default_policy

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    @property
    def default_policy(self) -> DefaultPolicy:
        return self._default_policy

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def find_bound(self, surface_key) -> Optional[Rule]:
        """Get the rule currently bound to a surface.

        Args:
            surface_key: Host identity of the surface

        Returns:
            Bound Rule or None if no rule holds this surface
        """
        for rule in self._rules:
            if rule.bound_surface is not None and rule.bound_surface == surface_key:
                return rule
        return None


class RuleStoreBuilder:
    """Collects rule records and validates each one as it is added.

    Checks, in order, for every record:
    1. surface_id present (MissingSurfaceIdError)
    2. surface_id outside [default_surface_id, default_surface_id_max)
       when the default policy is enabled (DefaultRangeCollisionError)
    3. surface_id not used by an earlier rule (DuplicateSurfaceIdError)
    4. at least one of app_id / app_title set (EmptyRuleError)

    build() additionally rejects an empty rule list when the default policy
    is disabled (NoUsableConfigError).
    """

    def __init__(self, default_policy: DefaultPolicy) -> None:
        self.default_policy = default_policy
        self._rules: List[Rule] = []
        self._ids: Dict[int, Rule] = {}
        self._built = False

    def add(self, record: DesktopAppRule) -> Rule:
        """Validate a rule record and append it in configuration order.

        Args:
            record: Raw rule record from the configuration feed

        Returns:
            The Rule created from the record

        Raises:
            ConfigError: If the record violates a configuration invariant
        """
        if self._built:
            raise RuntimeError("RuleStoreBuilder already built")

        position = len(self._rules)

        if record.surface_id is None:
            raise MissingSurfaceIdError(position)

        surface_id = record.surface_id
        policy = self.default_policy

        if policy.in_range(surface_id):
            raise DefaultRangeCollisionError(
                surface_id, policy.default_surface_id, policy.default_surface_id_max
            )

        if surface_id in self._ids:
            raise DuplicateSurfaceIdError(surface_id)

        if record.app_id is None and record.app_title is None:
            raise EmptyRuleError(surface_id)

        rule = Rule(
            surface_id=surface_id,
            app_id=record.app_id,
            title=record.app_title,
            position=position,
        )
        self._rules.append(rule)
        self._ids[surface_id] = rule
        logger.debug(f"Added {rule.describe()}")
        return rule

    def extend(self, records: Iterable[DesktopAppRule]) -> "RuleStoreBuilder":
        for record in records:
            self.add(record)
        return self

    def build(self) -> RuleStore:
        """Freeze the collected rules.

        Raises:
            NoUsableConfigError: If there are no rules and no default policy
        """
        if not self._rules and not self.default_policy.enabled:
            raise NoUsableConfigError()

        self._built = True
        logger.info(
            f"Rule store ready: {len(self._rules)} rule(s), default behavior "
            f"{'enabled' if self.default_policy.enabled else 'disabled'}"
        )
        return RuleStore(tuple(self._rules), self.default_policy)


def load_rule_store(
    records: Iterable[DesktopAppRule], default_policy: DefaultPolicy
) -> RuleStore:
    """Validate rule records and build the immutable rule store.

    Raises:
        ConfigError: On the first invalid record, or if nothing is configured
    """
    return RuleStoreBuilder(default_policy).extend(records).build()
