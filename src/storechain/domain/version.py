"""
Schema version model.

A SchemaVersion is one entry of the linear version chain: its ordinal
position, a stable identifier, the full DDL of the schema at that version
and the SQL that upgrades a store from the previous version.
"""
from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional

from storechain.domain.metadata import SchemaDescription, StoreMetadata


@dataclass(frozen=True, order=True)
class SchemaVersion:
    """A registered schema version.

    Ordering and equality use (ordinal, identifier) only.
    """
    ordinal: int
    identifier: str
    schema_sql: str = field(default="", compare=False, repr=False)
    upgrade_sql: Optional[str] = field(default=None, compare=False, repr=False)
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.ordinal < 1:
            raise ValueError(f"ordinal must be >= 1, got {self.ordinal}")
        if not self.identifier:
            raise ValueError("identifier must not be empty")

    @cached_property
    def schema(self) -> SchemaDescription:
        """Structural description derived from ``schema_sql``."""
        return SchemaDescription.from_sql(self.schema_sql)

    def is_compatible(self, metadata: StoreMetadata) -> bool:
        """Check whether a store was written in this version's shape."""
        return metadata.schema == self.schema

    def __str__(self) -> str:
        return self.identifier
