"""Core infrastructure - config, logging, errors."""

from storechain.core.config import ConfigManager
from storechain.core.errors import (
    ConfigurationError,
    ErrorCategory,
    MigrationError,
    StoreIOError,
    TransformError,
    wrap_external_error,
)
from storechain.core.logging import get_logger, migration_context, setup_logging

__all__ = [
    # Config
    "ConfigManager",
    # Logging
    "setup_logging",
    "get_logger",
    "migration_context",
    # Errors
    "ErrorCategory",
    "MigrationError",
    "ConfigurationError",
    "TransformError",
    "StoreIOError",
    "wrap_external_error",
]
