"""
Version Registry - static, ordered catalog of schema versions.

The registry is the single linear chain every store walks along: one root
(oldest), one terminal (latest/current), and exactly one successor for
every version but the last. It is validated once at construction and never
mutated afterwards, so it can be shared freely between readers.

Version catalogs are normally loaded from a package of version modules:

    services/migrations/
        v001_initial_library.py
        v002_cached_flag_and_durations.py
        ...

Each module defines:
- VERSION: int - ordinal of the version (must match the file's number)
- IDENTIFIER: str - stable identifier stored nowhere but used in logs/APIs
- DESCRIPTION: str - human-readable summary of the change
- SCHEMA_SQL: str - full DDL of the schema at this version
- UP_SQL: str - SQL upgrading a store from VERSION - 1 (omitted for v001)
"""

import importlib
import pkgutil
import re
import sqlite3
from typing import Iterable, Iterator, Optional, Union

import structlog

from storechain.core.errors import ConfigurationError
from storechain.domain.version import SchemaVersion

log = structlog.get_logger()

DEFAULT_VERSIONS_PACKAGE = "storechain.services.migrations"

_MODULE_NAME = re.compile(r"^v(\d{3})_\w+$")

VersionKey = Union[SchemaVersion, str, int]


class VersionRegistry:
    """Immutable, validated chain of schema versions.

    Usage:
        registry = load_registry()
        current = registry.latest()
        nxt = registry.successor(registry.get("library v2"))
    """

    def __init__(self, versions: Iterable[SchemaVersion]) -> None:
        """Validate and freeze a version catalog.

        Args:
            versions: Versions in chain order (oldest first).

        Raises:
            ConfigurationError: If the catalog is empty, its ordinals are not
                exactly 1..n, identifiers repeat, a schema cannot be built, or
                two versions are structurally indistinguishable.
        """
        self._versions: tuple[SchemaVersion, ...] = tuple(versions)
        self._validate()
        self._by_identifier = {v.identifier: v for v in self._versions}

    def _validate(self) -> None:
        if not self._versions:
            raise ConfigurationError("version registry is empty")

        for expected, version in enumerate(self._versions, start=1):
            if version.ordinal != expected:
                raise ConfigurationError(
                    f"version ordinals must run 1..n in order; "
                    f"expected {expected}, got {version.ordinal} ({version.identifier})"
                )

        seen: dict[str, SchemaVersion] = {}
        for version in self._versions:
            if version.identifier in seen:
                raise ConfigurationError(
                    f"duplicate version identifier {version.identifier!r}"
                )
            seen[version.identifier] = version

        digests: dict[str, SchemaVersion] = {}
        for version in self._versions:
            try:
                digest = version.schema.digest
            except sqlite3.Error as e:
                raise ConfigurationError(
                    f"schema for {version.identifier} does not build", cause=e
                ) from e
            if digest in digests:
                raise ConfigurationError(
                    f"versions {digests[digest].identifier} and {version.identifier} "
                    f"have indistinguishable schemas"
                )
            digests[digest] = version

    def __len__(self) -> int:
        return len(self._versions)

    def __iter__(self) -> Iterator[SchemaVersion]:
        return iter(self._versions)

    def __contains__(self, item: object) -> bool:
        return item in self._versions

    def __repr__(self) -> str:
        return (
            f"VersionRegistry({len(self)} versions, "
            f"{self.root().identifier} .. {self.latest().identifier})"
        )

    @property
    def versions(self) -> tuple[SchemaVersion, ...]:
        return self._versions

    def root(self) -> SchemaVersion:
        """Oldest registered version."""
        return self._versions[0]

    def latest(self) -> SchemaVersion:
        """Current (newest) registered version.

        A registry can never be empty (construction rejects that with a
        ConfigurationError), so this always returns.
        """
        return self._versions[-1]

    def _index(self, version: SchemaVersion) -> int:
        index = version.ordinal - 1
        if not (0 <= index < len(self._versions)) or self._versions[index] != version:
            raise ConfigurationError(f"version {version} is not registered")
        return index

    def successor(self, version: SchemaVersion) -> Optional[SchemaVersion]:
        """Next version in the chain, or None if ``version`` is the latest."""
        index = self._index(version)
        if index + 1 < len(self._versions):
            return self._versions[index + 1]
        return None

    def predecessor(self, version: SchemaVersion) -> Optional[SchemaVersion]:
        """Previous version in the chain, or None if ``version`` is the root."""
        index = self._index(version)
        if index > 0:
            return self._versions[index - 1]
        return None

    def get(self, key: Union[str, int]) -> SchemaVersion:
        """Look up a version by identifier or ordinal.

        Raises:
            ConfigurationError: If no such version is registered.
        """
        if isinstance(key, bool):
            raise ConfigurationError(f"invalid version key {key!r}")
        if isinstance(key, int):
            if 1 <= key <= len(self._versions):
                return self._versions[key - 1]
            raise ConfigurationError(f"no schema version with ordinal {key}")
        try:
            return self._by_identifier[key]
        except KeyError:
            raise ConfigurationError(f"unknown schema version {key!r}") from None

    def resolve(self, key: VersionKey) -> SchemaVersion:
        """Accept a SchemaVersion, identifier or ordinal and return the registered version."""
        if isinstance(key, SchemaVersion):
            return self._versions[self._index(key)]
        return self.get(key)


def _version_from_module(module: object, number: int) -> SchemaVersion:
    name = getattr(module, "__name__", "?")
    missing = [
        attr
        for attr in ("VERSION", "IDENTIFIER", "SCHEMA_SQL")
        if not hasattr(module, attr)
    ]
    if missing:
        raise ConfigurationError(f"version module {name} is missing {', '.join(missing)}")

    ordinal = getattr(module, "VERSION")
    if ordinal != number:
        raise ConfigurationError(
            f"version module {name} declares VERSION={ordinal} but is numbered {number}"
        )

    upgrade_sql = getattr(module, "UP_SQL", None)
    if ordinal > 1 and not upgrade_sql:
        raise ConfigurationError(f"version module {name} has no UP_SQL")

    return SchemaVersion(
        ordinal=ordinal,
        identifier=getattr(module, "IDENTIFIER"),
        schema_sql=getattr(module, "SCHEMA_SQL"),
        upgrade_sql=upgrade_sql,
        description=getattr(module, "DESCRIPTION", ""),
    )


def load_registry(package: str = DEFAULT_VERSIONS_PACKAGE) -> VersionRegistry:
    """Discover version modules in ``package`` and build the registry.

    Modules not matching ``vNNN_name`` are ignored.

    Raises:
        ConfigurationError: If the package cannot be imported or a module is
            malformed, or the resulting catalog fails validation.
    """
    try:
        pkg = importlib.import_module(package)
    except ImportError as e:
        raise ConfigurationError(f"cannot import versions package {package!r}", cause=e) from e

    search_path = getattr(pkg, "__path__", None)
    if search_path is None:
        raise ConfigurationError(f"{package!r} is a module, not a package")

    found: list[tuple[int, str]] = []
    for info in pkgutil.iter_modules(search_path):
        match = _MODULE_NAME.match(info.name)
        if match:
            found.append((int(match.group(1)), info.name))

    versions = []
    for number, name in sorted(found):
        module = importlib.import_module(f"{package}.{name}")
        versions.append(_version_from_module(module, number))

    registry = VersionRegistry(versions)
    log.debug(
        "version_registry_loaded",
        package=package,
        versions=len(registry),
        latest=registry.latest().identifier,
    )
    return registry
