"""
Integration tests: the shipped library catalog end to end.

Builds a populated "library v1" store and walks it through every shipped
version, through the engine, the migrate_store entry point and the
application bootstrap.
"""
import sqlite3

import pytest

from storechain import migrate_store
from storechain.app import StoreBootstrap
from storechain.core.config import ConfigManager
from storechain.core.errors import ConfigurationError
from storechain.domain.metadata import SchemaDescription
from storechain.services.engine import MigrationEngine, MigrationState

LIBRARY_ROWS = """
INSERT INTO artists (id, remote_id, name) VALUES (1, 'ar-1', 'Nina Simone');
INSERT INTO albums (id, remote_id, name, artist_id, year) VALUES (1, 'al-1', 'Pastel Blues', 1, 1965);
INSERT INTO songs (id, remote_id, title, album_id, artist_id, track, duration) VALUES
    (1, 's-1', 'Be My Husband', 1, 1, 1, 180),
    (2, 's-2', 'Nobody''s Fault But Mine', 1, 1, 2, 220),
    (3, 's-3', 'Sinnerman', 1, 1, 3, 620);
INSERT INTO playlists (id, name) VALUES (1, 'Favourites');
INSERT INTO playlist_items (playlist_id, position, song_id) VALUES (1, 0, 3), (1, 1, 1);
INSERT INTO artworks (id, url, image) VALUES (1, 'https://example.org/a.jpg', x'00ff');
"""


@pytest.fixture
def library_store(library_registry, store_dir):
    path = store_dir / "library.db"
    conn = sqlite3.connect(path)
    try:
        conn.executescript(library_registry.root().schema_sql)
        conn.executescript(LIBRARY_ROWS)
        conn.execute("PRAGMA user_version = 1")
        conn.commit()
    finally:
        conn.close()
    return path


def query(path, sql):
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql).fetchall()
    finally:
        conn.close()


@pytest.mark.asyncio
async def test_v1_to_latest_preserves_library(library_registry, library_store, scratch_dir):
    engine = MigrationEngine(library_registry, scratch_dir=scratch_dir)

    report = await engine.migrate(library_store)

    assert report.state == MigrationState.DONE
    assert report.transformer_calls == 5
    assert report.to_dict()["steps"][0] == ("library v1", "library v2")

    conn = sqlite3.connect(library_store)
    try:
        assert SchemaDescription.from_connection(conn) == library_registry.latest().schema
    finally:
        conn.close()

    assert query(library_store, "PRAGMA user_version") == [(6,)]
    assert query(library_store, "SELECT title FROM songs ORDER BY id") == [
        ("Be My Husband",), ("Nobody's Fault But Mine",), ("Sinnerman",),
    ]
    # Durations backfilled by the v2 step
    assert query(library_store, "SELECT duration FROM albums") == [(1020,)]
    assert query(library_store, "SELECT duration FROM playlists") == [(800,)]
    # Everything owned by the placeholder account from v5
    assert query(library_store, "SELECT DISTINCT account_id FROM songs") == [(1,)]
    assert query(library_store, "SELECT id, api_type FROM accounts") == [(1, "ampache")]
    # Artwork cache dropped in v6
    assert query(
        library_store, "SELECT name FROM sqlite_master WHERE name = 'artworks'"
    ) == []
    assert query(library_store, "SELECT COUNT(*) FROM playlist_items") == [(2,)]


@pytest.mark.asyncio
async def test_each_intermediate_version_is_a_valid_target(
    library_registry, library_store, scratch_dir
):
    engine = MigrationEngine(library_registry, scratch_dir=scratch_dir)

    for version in library_registry.versions[1:]:
        report = await engine.migrate(library_store, version.identifier)
        assert report.transformer_calls == 1
        assert not await engine.requires_migration(library_store, version)


@pytest.mark.asyncio
async def test_migrate_store_entry_point(library_store, scratch_dir):
    report = await migrate_store(library_store, "library v3", scratch_dir)

    assert report.migrated
    assert report.target.identifier == "library v3"
    assert query(library_store, "PRAGMA user_version") == [(3,)]

    again = await migrate_store(library_store, "library v3", scratch_dir)
    assert again.state == MigrationState.NO_OP


class TestStoreBootstrap:
    """Tests for application startup integration."""

    @pytest.fixture
    def config_path(self, tmp_path, library_store, scratch_dir):
        path = tmp_path / "storechain.toml"
        path.write_text(
            f"""
[storechain]
log_level = "DEBUG"
log_json = true

[store]
path = "{library_store.as_posix()}"

[migration]
scratch_dir = "{scratch_dir.as_posix()}"
verify_integrity = true
"""
        )
        return path

    @pytest.mark.asyncio
    async def test_prepare_migrates_to_latest(self, config_path, library_store, scratch_dir):
        bootstrap = StoreBootstrap(config_path)

        report = await bootstrap.prepare()

        assert bootstrap.store_path == library_store
        assert bootstrap.engine.scratch_dir == scratch_dir
        assert report.migrated
        assert report.target.identifier == "library v6"
        assert await bootstrap.prepare() is None

    @pytest.mark.asyncio
    async def test_prepare_without_store_path(self, tmp_path):
        config = ConfigManager(tmp_path / "absent.toml")
        bootstrap = StoreBootstrap(config=config, configure_logging=False)

        with pytest.raises(ConfigurationError, match="store.path"):
            await bootstrap.prepare()

    @pytest.mark.asyncio
    async def test_prepare_absent_store(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STORECHAIN_STORE_PATH", str(tmp_path / "new.db"))
        bootstrap = StoreBootstrap(config=ConfigManager(), configure_logging=False)

        assert await bootstrap.prepare() is None
        assert not (tmp_path / "new.db").exists()
