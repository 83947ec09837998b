#!/usr/bin/env python3
"""Report a store's schema version and the migration it would need.

Read-only: the store is opened but never written, and no migration runs.

Usage:
    python scripts/inspect_store.py --store ./data/library.db

    # Against a different catalog / target
    python scripts/inspect_store.py --store ./data/library.db --target "library v4"

    # Machine-readable
    python scripts/inspect_store.py --store ./data/library.db --json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from storechain.core.errors import MigrationError
from storechain.services.inspector import StoreInspector
from storechain.services.planner import MigrationPlanner
from storechain.services.registry import DEFAULT_VERSIONS_PACKAGE, load_registry


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect a store's schema version")
    parser.add_argument("--store", type=Path, required=True, help="Path to the store")
    parser.add_argument("--target", default=None, help="Target version (default: latest)")
    parser.add_argument(
        "--package",
        default=DEFAULT_VERSIONS_PACKAGE,
        help="Python package holding the version modules",
    )
    parser.add_argument("--json", action="store_true", help="Print JSON")
    return parser.parse_args()


async def inspect(args: argparse.Namespace) -> dict:
    registry = load_registry(args.package)
    target = registry.get(args.target) if args.target else registry.latest()
    inspector = StoreInspector(registry)

    metadata = await inspector.read_metadata(args.store)
    current = inspector.compatible_version(metadata)

    result = {
        "store": str(args.store),
        "tables": list(metadata.schema.table_names),
        "user_version": metadata.user_version,
        "journal_mode": metadata.journal_mode,
        "digest": metadata.digest,
        "version": current.identifier if current else None,
        "target": target.identifier,
        "requires_migration": current != target,
        "steps": [],
    }
    if current is not None and current != target:
        result["steps"] = MigrationPlanner(registry).plan(current, target).as_pairs()
    return result


def print_report(result: dict) -> None:
    print("=" * 60)
    print(f"Store:        {result['store']}")
    print(f"Version:      {result['version'] or 'UNKNOWN'}")
    print(f"Target:       {result['target']}")
    print(f"user_version: {result['user_version']}  journal: {result['journal_mode']}")
    print(f"Tables:       {', '.join(result['tables'])}")
    if result["steps"]:
        print("Pending steps:")
        for source, destination in result["steps"]:
            print(f"  {source} -> {destination}")
    elif result["version"] is None:
        print("Store matches no registered version; it cannot be migrated.")
    else:
        print("Store is current.")
    print("=" * 60)


def main() -> int:
    args = parse_args()
    try:
        result = asyncio.run(inspect(args))
    except MigrationError as e:
        print(f"ERROR ({e.category.value}): {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print_report(result)
    return 0 if result["version"] is not None else 2


if __name__ == "__main__":
    sys.exit(main())
