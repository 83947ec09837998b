"""
Tests for the migration error taxonomy.
"""
import sqlite3
from pathlib import Path

from storechain.core.errors import (
    ConfigurationError,
    ErrorCategory,
    MigrationError,
    StoreIOError,
    TransformError,
    wrap_external_error,
)
from storechain.domain.plan import MigrationStep


class TestErrors:
    """Tests for error classes."""

    def test_categories(self):
        assert ConfigurationError("x").category == ErrorCategory.CONFIGURATION
        assert TransformError("x").category == ErrorCategory.TRANSFORM
        assert StoreIOError("x").category == ErrorCategory.IO

    def test_all_are_migration_errors(self):
        for error in (ConfigurationError("a"), TransformError("b"), StoreIOError("c")):
            assert isinstance(error, MigrationError)
            assert error.report is None
            assert error.timestamp is not None

    def test_str_includes_cause(self):
        error = StoreIOError("cannot open", path="/data/x.db", cause=OSError("denied"))

        assert str(error) == "cannot open (caused by: denied)"
        assert error.path == Path("/data/x.db")

    def test_transform_error_keeps_step(self, versions):
        step = MigrationStep(versions[0], versions[1])
        assert TransformError("bad", step=step).step is step


class TestWrapExternalError:
    """Tests for wrap_external_error()."""

    def test_migration_error_passes_through(self):
        original = ConfigurationError("x")
        assert wrap_external_error(original) is original

    def test_os_error_is_io(self):
        wrapped = wrap_external_error(PermissionError("denied"), path="/data/x.db")

        assert isinstance(wrapped, StoreIOError)
        assert wrapped.path == Path("/data/x.db")
        assert isinstance(wrapped.cause, PermissionError)

    def test_database_error_without_step_is_io(self):
        wrapped = wrap_external_error(sqlite3.DatabaseError("file is not a database"))
        assert isinstance(wrapped, StoreIOError)

    def test_database_error_during_step_is_transform(self, versions):
        step = MigrationStep(versions[0], versions[1])

        wrapped = wrap_external_error(sqlite3.OperationalError("no such table"), step=step)

        assert isinstance(wrapped, TransformError)
        assert wrapped.step is step

    def test_other_errors_are_transform(self):
        wrapped = wrap_external_error(ValueError(), message="step blew up")

        assert isinstance(wrapped, TransformError)
        assert wrapped.message == "step blew up"
