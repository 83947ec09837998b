"""
Store Inspector - reads a store's metadata and resolves its schema version.

The inspector never creates a store: every connection is opened through a
``file:`` URI in ``rw`` or ``ro`` mode, so a missing file surfaces as a
StoreIOError instead of an empty new database. Only ``flush`` opens the
store for writing.
"""

import sqlite3
from pathlib import Path
from typing import Optional, Union

import aiosqlite
import structlog

from storechain.core.errors import ConfigurationError, StoreIOError
from storechain.domain.metadata import (
    TABLES_QUERY,
    SchemaDescription,
    StoreMetadata,
    table_info_query,
)
from storechain.domain.version import SchemaVersion
from storechain.services.registry import VersionRegistry

log = structlog.get_logger()

PathLike = Union[str, Path]


def store_uri(path: PathLike, mode: str = "rw") -> str:
    """SQLite URI for an existing store; ``mode`` is ro or rw."""
    return f"{Path(path).resolve().as_uri()}?mode={mode}"


def wal_path(path: PathLike) -> Path:
    path = Path(path)
    return path.with_name(path.name + "-wal")


async def connect_existing(path: PathLike, mode: str = "rw") -> aiosqlite.Connection:
    """Open an existing store without ever creating one.

    Raises:
        StoreIOError: If the file is missing or cannot be opened.
    """
    path = Path(path)
    if not path.is_file():
        raise StoreIOError(f"store not found: {path}", path=path)
    try:
        return await aiosqlite.connect(store_uri(path, mode), uri=True)
    except sqlite3.Error as e:
        raise StoreIOError(f"cannot open store {path}", path=path, cause=e) from e


async def describe_store(conn: aiosqlite.Connection) -> SchemaDescription:
    """Structural description of an open store."""
    async with conn.execute(TABLES_QUERY) as cursor:
        names = [row[0] for row in await cursor.fetchall()]

    tables = {}
    for name in names:
        async with conn.execute(table_info_query(name)) as cursor:
            tables[name] = await cursor.fetchall()
    return SchemaDescription.from_table_info(tables)


class StoreInspector:
    """Reads store metadata and matches it against the version registry.

    Usage:
        inspector = StoreInspector(registry)
        metadata = await inspector.read_metadata(path)
        version = inspector.compatible_version(metadata)
    """

    def __init__(self, registry: VersionRegistry) -> None:
        self._registry = registry
        self._log = log.bind(component="store_inspector")

    @property
    def registry(self) -> VersionRegistry:
        return self._registry

    async def read_metadata(self, path: PathLike) -> StoreMetadata:
        """Read the schema description and header pragmas of a store.

        The store is opened read-only: unmerged WAL content is read but
        never checkpointed into the main file.

        Raises:
            StoreIOError: If the store is missing, unreadable, or not a
                SQLite database.
        """
        path = Path(path)
        conn = await connect_existing(path, mode="ro")
        try:
            schema = await describe_store(conn)
            async with conn.execute("PRAGMA user_version") as cursor:
                user_version = (await cursor.fetchone())[0]
            async with conn.execute("PRAGMA journal_mode") as cursor:
                journal_mode = (await cursor.fetchone())[0]
        except sqlite3.Error as e:
            raise StoreIOError(f"cannot read metadata of {path}", path=path, cause=e) from e
        finally:
            await conn.close()

        metadata = StoreMetadata(
            path=path,
            schema=schema,
            user_version=int(user_version),
            journal_mode=str(journal_mode),
        )
        self._log.debug(
            "store_metadata_read",
            path=str(path),
            tables=len(schema.tables),
            user_version=metadata.user_version,
            journal_mode=metadata.journal_mode,
            digest=metadata.digest[:12],
        )
        return metadata

    def compatible_version(self, metadata: StoreMetadata) -> Optional[SchemaVersion]:
        """Return the registered version whose schema matches the store.

        Versions are tested in registry order.

        Raises:
            ConfigurationError: If more than one version matches. Registered
                schemas must be mutually distinguishable.
        """
        matches = [v for v in self._registry if v.is_compatible(metadata)]
        if len(matches) > 1:
            raise ConfigurationError(
                f"store {metadata.path} matches several versions: "
                f"{', '.join(v.identifier for v in matches)}"
            )
        if not matches:
            self._log.warning(
                "store_version_unknown",
                path=str(metadata.path),
                tables=list(metadata.schema.table_names),
                digest=metadata.digest[:12],
            )
            return None
        return matches[0]

    async def requires_migration(self, path: PathLike, target: SchemaVersion) -> bool:
        """Check whether the store at ``path`` is not yet at ``target``.

        A store that does not exist yet (fresh install) needs no migration.
        A store matching no registered version does: it is not at ``target``.
        """
        path = Path(path)
        if not path.exists():
            self._log.info("store_absent", path=str(path))
            return False

        metadata = await self.read_metadata(path)
        return self.compatible_version(metadata) != target

    async def flush(self, path: PathLike) -> bool:
        """Merge write-ahead log content into the main store file.

        Opens the store briefly, checkpoints the WAL and switches the store
        to rollback-journal mode, which removes the ``-wal`` file. Nothing is
        written when the store is not in WAL mode and has no WAL file.

        Returns:
            True if a checkpoint was performed.

        Raises:
            StoreIOError: If the store is missing or the checkpoint fails.
        """
        path = Path(path)
        conn = await connect_existing(path, mode="rw")
        try:
            async with conn.execute("PRAGMA journal_mode") as cursor:
                journal_mode = str((await cursor.fetchone())[0]).lower()

            if journal_mode != "wal" and not wal_path(path).exists():
                return False

            async with conn.execute("PRAGMA wal_checkpoint(TRUNCATE)") as cursor:
                busy, log_frames, checkpointed = await cursor.fetchone()
            if busy:
                raise StoreIOError(
                    f"WAL checkpoint of {path} blocked; is the store open elsewhere?",
                    path=path,
                )
            async with conn.execute("PRAGMA journal_mode=DELETE") as cursor:
                await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreIOError(f"cannot flush WAL of {path}", path=path, cause=e) from e
        finally:
            await conn.close()

        self._log.info(
            "store_wal_flushed",
            path=str(path),
            journal_mode=journal_mode,
            frames=log_frames,
            checkpointed=checkpointed,
        )
        return True
