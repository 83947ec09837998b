"""
Error taxonomy for store migrations.

Three families, none of them retryable: a migration is deterministic for a
given input, so an immediate retry fails the same way. Callers decide
whether to halt, keep the old store, or fall back to a resync.

- ConfigurationError: the shipped version table or a plan request is
  inconsistent (unknown store version, ambiguous match, empty registry,
  destination not reachable).
- TransformError: one migration step failed to transform its input.
- StoreIOError: the filesystem failed us (missing store, permissions, disk
  full, unreadable database).
"""

import sqlite3
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

if TYPE_CHECKING:
    from storechain.domain.plan import MigrationStep


class ErrorCategory(str, Enum):
    """Classification of migration failures."""

    CONFIGURATION = "configuration"
    TRANSFORM = "transform"
    IO = "io"


class MigrationError(Exception):
    """Base exception for all storechain errors.

    ``report`` is filled in by the engine when the error aborts a
    migration, so callers can see how far the run got.
    """

    category: ErrorCategory = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        self.report: Optional[Any] = None

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ConfigurationError(MigrationError):
    """Version catalog or plan request is inconsistent.

    Indicates a defect in the shipped version table, never a data problem.
    """

    category = ErrorCategory.CONFIGURATION


class TransformError(MigrationError):
    """A single migration step could not transform its input store."""

    category = ErrorCategory.TRANSFORM

    def __init__(
        self,
        message: str,
        step: Optional["MigrationStep"] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.step = step


class StoreIOError(MigrationError):
    """Filesystem or database-file level failure."""

    category = ErrorCategory.IO

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.path = Path(path) if path is not None else None


def wrap_external_error(
    error: BaseException,
    message: Optional[str] = None,
    path: Optional[Union[str, Path]] = None,
    step: Optional["MigrationStep"] = None,
) -> MigrationError:
    """Wrap a foreign exception into the storechain taxonomy.

    MigrationErrors pass through untouched. OSError and SQLite's
    "cannot open / not a database" family become StoreIOError; anything
    else raised while a step runs is a TransformError.

    Args:
        error: The exception to wrap.
        message: Optional message (defaults to str(error)).
        path: File involved, recorded on StoreIOError.
        step: Step being applied, recorded on TransformError.

    Returns:
        A MigrationError subclass instance.
    """
    if isinstance(error, MigrationError):
        return error

    msg = message or str(error) or type(error).__name__

    if isinstance(error, OSError):
        return StoreIOError(msg, path=path, cause=error)

    if isinstance(error, sqlite3.DatabaseError) and step is None:
        return StoreIOError(msg, path=path, cause=error)

    return TransformError(msg, step=step, cause=error)
