"""
Schema Transformers - apply exactly one migration step.

A transformer reads the store at ``input_path`` (never modifying it) and
writes the migrated store to ``output_path``. It must refuse, with a
TransformError, any input whose structure does not match the step's source
version, and must never leave a half-written output behind.

SqlScriptTransformer is the implementation for SQLite stores: copy the
input with the online backup API, run the destination version's UP_SQL in
a single transaction, then verify the result against the destination
schema.
"""

from abc import abstractmethod
from pathlib import Path
from typing import Protocol, Union, runtime_checkable

import aiosqlite
import structlog

from storechain.core.errors import StoreIOError, TransformError
from storechain.domain.metadata import SchemaDescription
from storechain.domain.plan import MigrationStep
from storechain.services.inspector import connect_existing, describe_store
from storechain.services.swapper import StoreSwapper

log = structlog.get_logger()

PathLike = Union[str, Path]


@runtime_checkable
class SchemaTransformer(Protocol):
    """Protocol for components that migrate a store by one version."""

    @abstractmethod
    async def apply(
        self, step: MigrationStep, input_path: Path, output_path: Path
    ) -> Path:
        """Write ``input_path`` migrated by ``step`` to ``output_path``.

        Must not mutate ``input_path``.

        Returns:
            Path of the migrated store (normally ``output_path``).

        Raises:
            TransformError: If the step cannot be applied to this input.
        """
        ...


class SqlScriptTransformer:
    """Migrates SQLite stores by running each version's upgrade SQL.

    Usage:
        transformer = SqlScriptTransformer(verify_integrity=True)
        out = await transformer.apply(step, Path("library.db"), Path("/tmp/x.db"))
    """

    def __init__(self, verify_integrity: bool = True) -> None:
        """Initialize the transformer.

        Args:
            verify_integrity: Run ``PRAGMA quick_check`` on every output.
        """
        self._verify_integrity = verify_integrity
        self._swapper = StoreSwapper()
        self._log = log.bind(component="sql_transformer")

    async def apply(
        self, step: MigrationStep, input_path: PathLike, output_path: PathLike
    ) -> Path:
        input_path = Path(input_path)
        output_path = Path(output_path)

        if not step.destination.upgrade_sql:
            raise TransformError(f"{step.destination} defines no upgrade SQL", step=step)
        if output_path.exists():
            raise TransformError(f"output {output_path} already exists", step=step)

        self._log.debug(
            "transform_started",
            step=step.label,
            input=str(input_path),
            output=str(output_path),
        )
        try:
            await self._copy(input_path, output_path)
            await self._upgrade(step, output_path)
        except TransformError:
            self._discard(output_path)
            raise
        except Exception as e:
            self._discard(output_path)
            raise TransformError(f"step {step.label} failed: {e}", step=step, cause=e) from e

        self._log.info(
            "transform_completed",
            step=step.label,
            output=str(output_path),
            size_bytes=output_path.stat().st_size,
        )
        return output_path

    async def _copy(self, input_path: Path, output_path: Path) -> None:
        """Snapshot the input into a fresh rollback-journal database."""
        source = await connect_existing(input_path, mode="ro")
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            target = await aiosqlite.connect(str(output_path), check_same_thread=False)
            try:
                await source.backup(target)
                async with target.execute("PRAGMA journal_mode=DELETE") as cursor:
                    await cursor.fetchone()
            finally:
                await target.close()
        finally:
            await source.close()

    async def _upgrade(self, step: MigrationStep, output_path: Path) -> None:
        conn = await aiosqlite.connect(str(output_path))
        try:
            before = await describe_store(conn)
            self._check_shape(step, before, step.source.schema, "input")

            await conn.executescript(
                "BEGIN;\n"
                f"{step.destination.upgrade_sql}\n"
                f"PRAGMA user_version = {step.destination.ordinal};\n"
                "COMMIT;"
            )

            after = await describe_store(conn)
            self._check_shape(step, after, step.destination.schema, "output")

            if self._verify_integrity:
                async with conn.execute("PRAGMA quick_check") as cursor:
                    problems = [row[0] for row in await cursor.fetchall() if row[0] != "ok"]
                if problems:
                    raise TransformError(
                        f"integrity check failed after {step.label}: {problems[:5]}",
                        step=step,
                    )
        finally:
            await conn.close()

    def _check_shape(
        self,
        step: MigrationStep,
        actual: SchemaDescription,
        expected: SchemaDescription,
        which: str,
    ) -> None:
        if actual == expected:
            return
        diff = actual.diff(expected)
        self._log.warning("transform_shape_mismatch", step=step.label, stage=which, **diff)
        raise TransformError(
            f"{which} of {step.label} does not match the declared schema: {diff}",
            step=step,
        )

    def _discard(self, output_path: Path) -> None:
        """Best-effort removal of a partial output."""
        try:
            self._swapper.destroy(output_path)
        except StoreIOError as e:
            self._log.warning("transform_output_cleanup_failed", path=str(output_path), error=str(e))
