"""
Schema and store metadata models.

A store is identified structurally: the set of user tables and, per table,
the columns with their declared type, NOT NULL flag and primary key
position. Column order is ignored because ``ALTER TABLE ... ADD COLUMN``
always appends, while a version's reference DDL may declare columns
anywhere.
"""
import hashlib
import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

# Shared by the sync (in-memory reference schemas) and async (store) readers
TABLES_QUERY = (
    "SELECT name FROM sqlite_master "
    "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' "
    "ORDER BY name"
)


def table_info_query(table: str) -> str:
    """PRAGMA table_info for a (quoted) table name."""
    quoted = table.replace('"', '""')
    return f'PRAGMA table_info("{quoted}")'


@dataclass(frozen=True, order=True)
class ColumnDescription:
    """One column as SQLite reports it through PRAGMA table_info."""
    name: str
    type: str
    not_null: bool
    primary_key: int  # 0 when not part of the key, else 1-based position

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "ColumnDescription":
        """Build from a table_info row (cid, name, type, notnull, dflt, pk)."""
        return cls(
            name=str(row[1]),
            type=str(row[2] or "").strip().upper(),
            not_null=bool(row[3]),
            primary_key=int(row[5]),
        )


@dataclass(frozen=True, order=True)
class TableDescription:
    """A table and its columns, sorted by column name."""
    name: str
    columns: tuple[ColumnDescription, ...]

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)


@dataclass(frozen=True)
class SchemaDescription:
    """Canonical structural description of a SQLite schema."""
    tables: tuple[TableDescription, ...]

    @classmethod
    def from_table_info(
        cls, tables: Mapping[str, Iterable[Sequence[Any]]]
    ) -> "SchemaDescription":
        """Build from ``{table_name: table_info rows}``."""
        described = []
        for name, rows in tables.items():
            columns = tuple(sorted(ColumnDescription.from_row(r) for r in rows))
            described.append(TableDescription(name=name, columns=columns))
        return cls(tables=tuple(sorted(described)))

    @classmethod
    def from_connection(cls, conn: sqlite3.Connection) -> "SchemaDescription":
        """Describe the schema of an open sqlite3 connection."""
        names = [row[0] for row in conn.execute(TABLES_QUERY).fetchall()]
        return cls.from_table_info(
            {name: conn.execute(table_info_query(name)).fetchall() for name in names}
        )

    @classmethod
    def from_sql(cls, ddl: str) -> "SchemaDescription":
        """Describe the schema produced by running ``ddl`` on an empty database."""
        conn = sqlite3.connect(":memory:")
        try:
            conn.executescript(ddl)
            return cls.from_connection(conn)
        finally:
            conn.close()

    @property
    def table_names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self.tables)

    def table(self, name: str) -> TableDescription:
        for table in self.tables:
            if table.name == name:
                return table
        raise KeyError(name)

    def to_bytes(self) -> bytes:
        """Canonical byte form; two schemas are compatible iff these match."""
        payload = [
            [t.name, [[c.name, c.type, c.not_null, c.primary_key] for c in t.columns]]
            for t in self.tables
        ]
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    @property
    def digest(self) -> str:
        """SHA-256 of the canonical form."""
        return hashlib.sha256(self.to_bytes()).hexdigest()

    def diff(self, other: "SchemaDescription") -> dict[str, list[str]]:
        """Table-level differences, for error messages and logs."""
        mine = {t.name: t for t in self.tables}
        theirs = {t.name: t for t in other.tables}
        return {
            "missing_tables": sorted(set(theirs) - set(mine)),
            "extra_tables": sorted(set(mine) - set(theirs)),
            "changed_tables": sorted(
                name for name in set(mine) & set(theirs) if mine[name] != theirs[name]
            ),
        }


@dataclass(frozen=True)
class StoreMetadata:
    """Descriptor read from a store file's header and catalog."""
    path: Path
    schema: SchemaDescription
    user_version: int = 0
    journal_mode: str = "delete"

    @property
    def digest(self) -> str:
        return self.schema.digest

    @property
    def is_wal(self) -> bool:
        return self.journal_mode.lower() == "wal"
