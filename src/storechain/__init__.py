"""storechain - crash-safe, version-chained migrations for SQLite stores."""

__version__ = "0.1.0"

from storechain.core.errors import (
    ConfigurationError,
    MigrationError,
    StoreIOError,
    TransformError,
)
from storechain.domain import MigrationPlan, MigrationStep, SchemaVersion, StoreMetadata
from storechain.services import (
    MigrationEngine,
    MigrationReport,
    MigrationState,
    SchemaTransformer,
    SqlScriptTransformer,
    VersionRegistry,
    load_registry,
    migrate_store,
)

__all__ = [
    "__version__",
    "MigrationError",
    "ConfigurationError",
    "TransformError",
    "StoreIOError",
    "SchemaVersion",
    "StoreMetadata",
    "MigrationStep",
    "MigrationPlan",
    "VersionRegistry",
    "load_registry",
    "SchemaTransformer",
    "SqlScriptTransformer",
    "MigrationEngine",
    "MigrationReport",
    "MigrationState",
    "migrate_store",
]
