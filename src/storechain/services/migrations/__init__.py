"""Schema version catalog for the library store.

Each version is a Python module named ``vNNN_<slug>.py`` with:
- VERSION: int - ordinal in the chain (must match NNN)
- IDENTIFIER: str - stable version identifier
- DESCRIPTION: str - human-readable description
- SCHEMA_SQL: str - full DDL of the store at this version
- UP_SQL: str - SQL upgrading a store from the previous version (not on v001)

Versions form a single linear chain; a store is always migrated one version
at a time, so adding a version only needs one new UP_SQL.
"""
