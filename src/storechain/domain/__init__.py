"""Domain models - versions, store metadata, migration plans."""

from storechain.domain.metadata import (
    ColumnDescription,
    SchemaDescription,
    StoreMetadata,
    TableDescription,
)
from storechain.domain.plan import MigrationPlan, MigrationStep
from storechain.domain.version import SchemaVersion

__all__ = [
    # Versions
    "SchemaVersion",
    # Metadata
    "ColumnDescription",
    "TableDescription",
    "SchemaDescription",
    "StoreMetadata",
    # Plans
    "MigrationStep",
    "MigrationPlan",
]
