"""First-match rule lookup."""

from typing import Iterator, Optional

from .models.rule import Rule, SurfaceObservation
from .rule_store import RuleStore


def iter_matches(observation: SurfaceObservation, store: RuleStore) -> Iterator[Rule]:
    """Yield every rule satisfied by the observation, in configuration order."""
    for rule in store:
        if rule.matches(observation):
            yield rule


def match(observation: SurfaceObservation, store: RuleStore) -> Optional[Rule]:
    """Return the first rule satisfied by the observation.

    Configuration order is the tie-break: an earlier, broader rule wins over
    a later, more specific one.

    Args:
        observation: Surface attributes
        store: Rule store to scan

    Returns:
        First matching Rule, or None on a miss
    """
    return next(iter_matches(observation, store), None)
