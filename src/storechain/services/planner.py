"""
Migration Planner - computes the chain of steps between two versions.

Plans only ever move forward, one version per step. Going from v2 to v5
always yields v2->v3, v3->v4, v4->v5, so each new release only needs a
mapping from its immediate predecessor.
"""

import structlog

from storechain.core.errors import ConfigurationError
from storechain.domain.plan import MigrationPlan, MigrationStep
from storechain.domain.version import SchemaVersion
from storechain.services.registry import VersionKey, VersionRegistry

log = structlog.get_logger()


class MigrationPlanner:
    """Walks the registry's successor chain to build migration plans."""

    def __init__(self, registry: VersionRegistry) -> None:
        self._registry = registry

    def plan(self, source: VersionKey, destination: VersionKey) -> MigrationPlan:
        """Build the plan from ``source`` to ``destination``.

        Args:
            source: Version the store is at (version, identifier or ordinal).
            destination: Version to reach.

        Returns:
            The contiguous plan; empty when source == destination.

        Raises:
            ConfigurationError: If either version is unknown, or destination
                is not a descendant of source (including when it precedes it).
        """
        start = self._registry.resolve(source)
        end = self._registry.resolve(destination)

        steps: list[MigrationStep] = []
        current: SchemaVersion = start
        while current != end:
            nxt = self._registry.successor(current)
            if nxt is None:
                raise ConfigurationError(
                    f"no migration path from {start} to {end}: "
                    f"schema versions only move forward"
                )
            steps.append(MigrationStep(source=current, destination=nxt))
            current = nxt

        plan = MigrationPlan(source=start, destination=end, steps=tuple(steps))
        log.debug(
            "migration_planned",
            source=start.identifier,
            destination=end.identifier,
            steps=len(plan),
        )
        return plan
