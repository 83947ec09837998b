"""
Unit tests for VersionRegistry and catalog loading.

Tests verify:
- Successor / predecessor chain and hop counts
- Lookup by identifier and ordinal
- Validation of empty, gapped, duplicate and indistinguishable catalogs
- Loading the shipped library catalog
"""
import sqlite3
import sys
import types

import pytest

from storechain.core.errors import ConfigurationError
from storechain.domain.metadata import SchemaDescription
from storechain.domain.version import SchemaVersion
from storechain.services.registry import VersionRegistry, load_registry


class TestChain:
    """Tests for successor/predecessor/latest."""

    def test_latest_and_root(self, registry):
        assert registry.root().identifier == "v1"
        assert registry.latest().identifier == "v4"

    def test_successor_defined_for_every_non_latest_version(self, registry):
        latest = registry.latest()
        for version in registry:
            if version == latest:
                assert registry.successor(version) is None
            else:
                assert registry.successor(version) is not None

    def test_walking_successors_reaches_latest_in_ordinal_distance(self, registry):
        latest = registry.latest()
        for version in registry:
            hops = 0
            current = version
            while current != latest:
                current = registry.successor(current)
                hops += 1
            assert hops == latest.ordinal - version.ordinal

    def test_predecessor(self, registry):
        assert registry.predecessor(registry.root()) is None
        assert registry.predecessor(registry.get("v3")).identifier == "v2"

    def test_successor_of_unregistered_version_raises(self, registry):
        stranger = SchemaVersion(2, "not-registered", schema_sql="CREATE TABLE x (a TEXT);")
        with pytest.raises(ConfigurationError, match="not registered"):
            registry.successor(stranger)


class TestLookup:
    """Tests for get/resolve."""

    def test_get_by_identifier_and_ordinal(self, registry):
        assert registry.get("v2") == registry.get(2)

    def test_get_unknown_identifier(self, registry):
        with pytest.raises(ConfigurationError, match="unknown schema version"):
            registry.get("v99")

    def test_get_out_of_range_ordinal(self, registry):
        with pytest.raises(ConfigurationError):
            registry.get(0)
        with pytest.raises(ConfigurationError):
            registry.get(5)

    def test_resolve_accepts_all_key_kinds(self, registry):
        v3 = registry.get("v3")
        assert registry.resolve(v3) is v3
        assert registry.resolve("v3") is v3
        assert registry.resolve(3) is v3

    def test_len_iter_contains(self, registry, versions):
        assert len(registry) == 4
        assert list(registry) == versions
        assert versions[0] in registry


class TestValidation:
    """Tests for catalog validation at construction."""

    def test_empty_registry_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="empty"):
            VersionRegistry([])

    def test_ordinals_must_be_contiguous(self, versions):
        with pytest.raises(ConfigurationError, match="ordinals"):
            VersionRegistry([versions[0], versions[2]])

    def test_ordinals_must_start_at_one(self, versions):
        with pytest.raises(ConfigurationError):
            VersionRegistry(versions[1:])

    def test_duplicate_identifiers_rejected(self):
        with pytest.raises(ConfigurationError, match="duplicate"):
            VersionRegistry([
                SchemaVersion(1, "same", schema_sql="CREATE TABLE a (x TEXT);"),
                SchemaVersion(2, "same", schema_sql="CREATE TABLE b (x TEXT);", upgrade_sql="-"),
            ])

    def test_indistinguishable_schemas_rejected(self):
        # Index-only changes are invisible to structural matching
        with pytest.raises(ConfigurationError, match="indistinguishable"):
            VersionRegistry([
                SchemaVersion(1, "a", schema_sql="CREATE TABLE t (x TEXT);"),
                SchemaVersion(
                    2, "b",
                    schema_sql="CREATE TABLE t (x TEXT); CREATE INDEX i ON t(x);",
                    upgrade_sql="CREATE INDEX i ON t(x);",
                ),
            ])

    def test_broken_schema_sql_rejected(self):
        with pytest.raises(ConfigurationError, match="does not build"):
            VersionRegistry([SchemaVersion(1, "a", schema_sql="CREATE TABLE (")])


class TestLoadRegistry:
    """Tests for discovering version modules."""

    def test_shipped_catalog_loads(self, library_registry):
        assert len(library_registry) == 6
        assert library_registry.root().identifier == "library v1"
        assert library_registry.latest().identifier == "library v6"
        for version in library_registry.versions[1:]:
            assert version.upgrade_sql

    def test_shipped_catalog_upgrades_chain(self, library_registry):
        """Applying each UP_SQL to the predecessor's schema yields the version's schema."""
        for version in library_registry.versions[1:]:
            previous = library_registry.predecessor(version)
            conn = sqlite3.connect(":memory:")
            try:
                conn.executescript(previous.schema_sql)
                conn.executescript(version.upgrade_sql)
                assert SchemaDescription.from_connection(conn) == version.schema, version
            finally:
                conn.close()

    def test_unknown_package(self):
        with pytest.raises(ConfigurationError, match="cannot import"):
            load_registry("storechain.no_such_package")

    def test_module_number_must_match_version(self, tmp_path, monkeypatch):
        pkg = tmp_path / "badcatalog"
        pkg.mkdir()
        (pkg / "__init__.py").write_text("")
        (pkg / "v001_first.py").write_text(
            'VERSION = 2\nIDENTIFIER = "x"\nSCHEMA_SQL = "CREATE TABLE t (a TEXT);"\n'
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        monkeypatch.delitem(sys.modules, "badcatalog", raising=False)

        with pytest.raises(ConfigurationError, match="numbered 1"):
            load_registry("badcatalog")

    def test_missing_attributes(self, tmp_path, monkeypatch):
        pkg = tmp_path / "thincatalog"
        pkg.mkdir()
        (pkg / "__init__.py").write_text("")
        (pkg / "v001_first.py").write_text("VERSION = 1\n")
        (pkg / "notes.py").write_text("")  # ignored, not a version module
        monkeypatch.syspath_prepend(str(tmp_path))
        monkeypatch.delitem(sys.modules, "thincatalog", raising=False)

        with pytest.raises(ConfigurationError, match="missing IDENTIFIER, SCHEMA_SQL"):
            load_registry("thincatalog")

    def test_module_instead_of_package(self, monkeypatch):
        module = types.ModuleType("flatcatalog")
        monkeypatch.setitem(sys.modules, "flatcatalog", module)
        with pytest.raises(ConfigurationError, match="not a package"):
            load_registry("flatcatalog")
