"""
Shared pytest fixtures for storechain tests.
"""
import hashlib
import sqlite3
from pathlib import Path
from typing import Callable, Optional

import pytest

from storechain.domain.plan import MigrationStep
from storechain.domain.version import SchemaVersion
from storechain.services.registry import VersionRegistry, load_registry
from storechain.services.transformer import SqlScriptTransformer

ITEMS_V1 = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL
);
"""

ITEMS_V2 = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    note TEXT
);
"""

ITEMS_V3 = ITEMS_V2 + """
CREATE TABLE tags (
    id INTEGER PRIMARY KEY,
    label TEXT NOT NULL
);
"""

ITEMS_V4 = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    note TEXT,
    rating INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE tags (
    id INTEGER PRIMARY KEY,
    label TEXT NOT NULL
);
"""


def build_versions() -> list[SchemaVersion]:
    """A four-version chain small enough to reason about in tests."""
    return [
        SchemaVersion(1, "v1", schema_sql=ITEMS_V1),
        SchemaVersion(
            2, "v2", schema_sql=ITEMS_V2,
            upgrade_sql="ALTER TABLE items ADD COLUMN note TEXT;",
        ),
        SchemaVersion(
            3, "v3", schema_sql=ITEMS_V3,
            upgrade_sql="CREATE TABLE tags (id INTEGER PRIMARY KEY, label TEXT NOT NULL);",
        ),
        SchemaVersion(
            4, "v4", schema_sql=ITEMS_V4,
            upgrade_sql="ALTER TABLE items ADD COLUMN rating INTEGER NOT NULL DEFAULT 0;",
        ),
    ]


def create_store(
    path: Path,
    version: SchemaVersion,
    rows: int = 3,
    wal: bool = False,
) -> Path:
    """Create a SQLite store in ``version``'s shape with some items."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        if wal:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(version.schema_sql)
        if "items" in version.schema.table_names:
            conn.executemany(
                "INSERT INTO items (id, name) VALUES (?, ?)",
                [(i, f"item-{i}") for i in range(1, rows + 1)],
            )
        conn.execute(f"PRAGMA user_version = {version.ordinal}")
        conn.commit()
    finally:
        conn.close()
    return path


def file_fingerprint(path: Path) -> tuple[str, int]:
    """Content hash and mtime, to prove a file was not touched."""
    return hashlib.sha256(path.read_bytes()).hexdigest(), path.stat().st_mtime_ns


class RecordingTransformer:
    """SqlScriptTransformer wrapper that records calls and can fail on demand.

    ``live_files`` records, at each call, how many store files exist in the
    scratch directory plus the original store.
    """

    def __init__(
        self,
        scratch_dir: Optional[Path] = None,
        fail_on_call: Optional[int] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._inner = SqlScriptTransformer()
        self._scratch_dir = scratch_dir
        self._fail_on_call = fail_on_call
        self._error = error
        self.calls: list[MigrationStep] = []
        self.inputs: list[Path] = []
        self.live_files: list[int] = []

    async def apply(self, step: MigrationStep, input_path: Path, output_path: Path) -> Path:
        self.calls.append(step)
        self.inputs.append(Path(input_path))
        if self._scratch_dir is not None and self._scratch_dir.exists():
            self.live_files.append(len(list(self._scratch_dir.iterdir())) + 1)

        if self._fail_on_call == len(self.calls):
            if self._error is not None:
                raise self._error
            # Leave a partial output behind, like a transformer that died mid-write
            Path(output_path).write_bytes(b"partial")
            raise RuntimeError(f"simulated failure in {step.label}")

        return await self._inner.apply(step, input_path, output_path)


@pytest.fixture
def versions() -> list[SchemaVersion]:
    return build_versions()


@pytest.fixture
def registry(versions) -> VersionRegistry:
    return VersionRegistry(versions)


@pytest.fixture
def library_registry() -> VersionRegistry:
    """The shipped library catalog."""
    return load_registry()


@pytest.fixture
def store_dir(tmp_path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def scratch_dir(tmp_path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def make_store(store_dir) -> Callable[..., Path]:
    """Factory: make_store(version, name="store.db", rows=3, wal=False)."""

    def _make(version: SchemaVersion, name: str = "store.db", rows: int = 3, wal: bool = False) -> Path:
        return create_store(store_dir / name, version, rows=rows, wal=wal)

    return _make


@pytest.fixture
def recording_transformer() -> Callable[..., RecordingTransformer]:
    """Factory for RecordingTransformer instances."""
    return RecordingTransformer


@pytest.fixture
def fingerprint() -> Callable[[Path], tuple[str, int]]:
    return file_fingerprint
