"""Services - registry, inspection, planning, transformation, swapping, orchestration."""

from storechain.services.registry import VersionRegistry, load_registry
from storechain.services.inspector import StoreInspector
from storechain.services.planner import MigrationPlanner
from storechain.services.swapper import StoreSwapper
from storechain.services.transformer import SchemaTransformer, SqlScriptTransformer
from storechain.services.engine import (
    MigrationEngine,
    MigrationReport,
    MigrationState,
    migrate_store,
)

__all__ = [
    "VersionRegistry",
    "load_registry",
    "StoreInspector",
    "MigrationPlanner",
    "StoreSwapper",
    "SchemaTransformer",
    "SqlScriptTransformer",
    "MigrationEngine",
    "MigrationReport",
    "MigrationState",
    "migrate_store",
]
