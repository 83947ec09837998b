"""
Migration step and plan models.
"""
from dataclasses import dataclass
from typing import Iterator

from storechain.core.errors import ConfigurationError
from storechain.domain.version import SchemaVersion


@dataclass(frozen=True)
class MigrationStep:
    """Transformation of a store from one version to its immediate successor."""
    source: SchemaVersion
    destination: SchemaVersion

    def __post_init__(self) -> None:
        if self.destination.ordinal != self.source.ordinal + 1:
            raise ConfigurationError(
                f"migration step {self.source} -> {self.destination} skips versions"
            )

    @property
    def label(self) -> str:
        return f"{self.source.identifier} -> {self.destination.identifier}"


@dataclass(frozen=True)
class MigrationPlan:
    """Ordered, contiguous steps from ``source`` to ``destination``.

    An empty plan means the store is already at the destination.
    """
    source: SchemaVersion
    destination: SchemaVersion
    steps: tuple[MigrationStep, ...] = ()

    def __post_init__(self) -> None:
        expected = self.source
        for step in self.steps:
            if step.source != expected:
                raise ConfigurationError(
                    f"plan is not contiguous: expected step from {expected}, got {step.label}"
                )
            expected = step.destination
        if expected != self.destination:
            raise ConfigurationError(
                f"plan ends at {expected}, not at destination {self.destination}"
            )

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[MigrationStep]:
        return iter(self.steps)

    def __getitem__(self, index: int) -> MigrationStep:
        return self.steps[index]

    def as_pairs(self) -> list[tuple[str, str]]:
        """Steps as (source, destination) identifier pairs."""
        return [(s.source.identifier, s.destination.identifier) for s in self.steps]
