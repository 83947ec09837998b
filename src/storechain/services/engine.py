"""
Migration Engine - crash-safe, step-by-step store migration.

This service:
- Flushes the store's write-ahead log so it is one self-contained file
- Resolves the store's current schema version
- Plans the single-hop chain to the target version
- Runs each step on temporary copies in a scratch directory
- Atomically swaps the final copy over the original store

The original store is not written until every step has succeeded. Any
failure aborts the whole call with a typed MigrationError and leaves the
original exactly as it was; there is no retry and no resume, a new call
always starts over from the untouched original.

State machine:

    IDLE -> FLUSHING -> INSPECTING -> PLANNING -> EXECUTING (step i of n)
         -> SWAPPING -> DONE

    INSPECTING -> NO_OP           (store already at the target version)
    any non-terminal -> FATAL_ABORTED
"""

import sqlite3
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from storechain.core.config import ConfigManager
from storechain.core.errors import (
    ConfigurationError,
    MigrationError,
    StoreIOError,
    TransformError,
    wrap_external_error,
)
from storechain.core.logging import migration_context
from storechain.domain.plan import MigrationPlan
from storechain.domain.version import SchemaVersion
from storechain.services.inspector import StoreInspector
from storechain.services.planner import MigrationPlanner
from storechain.services.registry import (
    DEFAULT_VERSIONS_PACKAGE,
    VersionKey,
    VersionRegistry,
    load_registry,
)
from storechain.services.swapper import StoreSwapper
from storechain.services.transformer import SchemaTransformer, SqlScriptTransformer

log = structlog.get_logger()

PathLike = Union[str, Path]

DEFAULT_SCRATCH_DIR = Path(tempfile.gettempdir()) / "storechain"


class MigrationState(str, Enum):
    """Lifecycle state of one migrate() call."""

    IDLE = "idle"
    FLUSHING = "flushing"
    INSPECTING = "inspecting"
    PLANNING = "planning"
    NO_OP = "no_op"
    EXECUTING = "executing"
    SWAPPING = "swapping"
    DONE = "done"
    FATAL_ABORTED = "fatal_aborted"


TERMINAL_STATES = frozenset(
    {MigrationState.NO_OP, MigrationState.DONE, MigrationState.FATAL_ABORTED}
)

_ALLOWED_TRANSITIONS: dict[MigrationState, frozenset[MigrationState]] = {
    MigrationState.IDLE: frozenset({MigrationState.FLUSHING}),
    MigrationState.FLUSHING: frozenset({MigrationState.INSPECTING}),
    MigrationState.INSPECTING: frozenset({MigrationState.PLANNING, MigrationState.NO_OP}),
    MigrationState.PLANNING: frozenset({MigrationState.EXECUTING, MigrationState.NO_OP}),
    MigrationState.EXECUTING: frozenset({MigrationState.EXECUTING, MigrationState.SWAPPING}),
    MigrationState.SWAPPING: frozenset({MigrationState.DONE}),
}


@dataclass
class MigrationReport:
    """Outcome and trace of one migrate() call."""

    store_path: Path
    target: Optional[SchemaVersion] = None
    source: Optional[SchemaVersion] = None
    state: MigrationState = MigrationState.IDLE
    history: list[MigrationState] = field(default_factory=lambda: [MigrationState.IDLE])
    plan: Optional[MigrationPlan] = None
    steps_completed: int = 0
    transformer_calls: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    error: Optional[MigrationError] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state in (MigrationState.NO_OP, MigrationState.DONE)

    @property
    def migrated(self) -> bool:
        """True if the store was actually replaced."""
        return self.state == MigrationState.DONE

    @property
    def total_steps(self) -> int:
        return len(self.plan) if self.plan is not None else 0

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary for logs and operator scripts."""
        return {
            "store_path": str(self.store_path),
            "source": self.source.identifier if self.source else None,
            "target": self.target.identifier if self.target else None,
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "steps": self.plan.as_pairs() if self.plan else [],
            "steps_completed": self.steps_completed,
            "transformer_calls": self.transformer_calls,
            "duration_seconds": self.duration_seconds,
            "error": str(self.error) if self.error else None,
        }


class MigrationEngine:
    """Orchestrates inspector, planner, transformer and swapper.

    The engine assumes exclusive ownership of the store for the whole call;
    nothing else may have it open. Steps run strictly one after another,
    each consuming the complete output of the previous one.

    Usage:
        engine = MigrationEngine(load_registry(), SqlScriptTransformer())
        report = await engine.migrate("data/library.db")  # to latest
    """

    def __init__(
        self,
        registry: VersionRegistry,
        transformer: Optional[SchemaTransformer] = None,
        scratch_dir: Optional[PathLike] = None,
        inspector: Optional[StoreInspector] = None,
        planner: Optional[MigrationPlanner] = None,
        swapper: Optional[StoreSwapper] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            registry: Version catalog to migrate along.
            transformer: Step transformer (defaults to SqlScriptTransformer).
            scratch_dir: Directory for temporary step outputs.
            inspector: Override the store inspector.
            planner: Override the planner.
            swapper: Override the store swapper.
        """
        self._registry = registry
        self._transformer = transformer or SqlScriptTransformer()
        self._scratch_dir = Path(scratch_dir) if scratch_dir else DEFAULT_SCRATCH_DIR
        self._inspector = inspector or StoreInspector(registry)
        self._planner = planner or MigrationPlanner(registry)
        self._swapper = swapper or StoreSwapper()
        self._log = log.bind(component="migration_engine")

    @classmethod
    def from_config(
        cls,
        config: ConfigManager,
        registry: Optional[VersionRegistry] = None,
        transformer: Optional[SchemaTransformer] = None,
    ) -> "MigrationEngine":
        """Build an engine from ``[migration]`` configuration."""
        if registry is None:
            package = config.get("migration.versions_package", DEFAULT_VERSIONS_PACKAGE)
            registry = load_registry(package)
        if transformer is None:
            transformer = SqlScriptTransformer(
                verify_integrity=config.get_bool("migration.verify_integrity", True)
            )
        return cls(
            registry,
            transformer=transformer,
            scratch_dir=config.get_path("migration.scratch_dir"),
        )

    @property
    def registry(self) -> VersionRegistry:
        return self._registry

    @property
    def scratch_dir(self) -> Path:
        return self._scratch_dir

    def _target(self, to_version: Optional[VersionKey]) -> SchemaVersion:
        if to_version is None:
            return self._registry.latest()
        return self._registry.resolve(to_version)

    async def requires_migration(
        self, store_path: PathLike, to_version: Optional[VersionKey] = None
    ) -> bool:
        """Check whether the store is not yet at ``to_version`` (default: latest)."""
        return await self._inspector.requires_migration(store_path, self._target(to_version))

    async def migrate_if_needed(
        self,
        store_path: PathLike,
        to_version: Optional[VersionKey] = None,
        scratch_dir: Optional[PathLike] = None,
    ) -> Optional[MigrationReport]:
        """Migrate only when required; returns None when nothing was done."""
        if not await self.requires_migration(store_path, to_version):
            return None
        return await self.migrate(store_path, to_version, scratch_dir)

    async def migrate(
        self,
        store_path: PathLike,
        to_version: Optional[VersionKey] = None,
        scratch_dir: Optional[PathLike] = None,
    ) -> MigrationReport:
        """Migrate the store at ``store_path`` to ``to_version``.

        Args:
            store_path: The store to migrate.
            to_version: Target version, identifier or ordinal (default: latest).
            scratch_dir: Override the engine's scratch directory for this call.

        Returns:
            Report in state DONE (store replaced) or NO_OP (already current).

        Raises:
            ConfigurationError: Unknown store version or impossible plan.
            TransformError: A step failed; the original store is untouched.
            StoreIOError: Filesystem failure; the original store is untouched
                unless the failure happened inside the atomic swap, which is
                itself all-or-nothing.
        """
        store_path = Path(store_path)
        scratch = Path(scratch_dir) if scratch_dir else self._scratch_dir
        report = MigrationReport(store_path=store_path)

        # Live temporary artifacts, cleaned up on abort
        current = store_path
        pending: Optional[Path] = None

        requested = "latest" if to_version is None else str(to_version)
        with migration_context(store=str(store_path), target=requested):
            try:
                target = self._target(to_version)
                report.target = target

                self._transition(report, MigrationState.FLUSHING)
                await self._inspector.flush(store_path)

                self._transition(report, MigrationState.INSPECTING)
                metadata = await self._inspector.read_metadata(store_path)
                source = self._inspector.compatible_version(metadata)
                if source is None:
                    raise ConfigurationError(
                        f"store {store_path} matches no registered schema version "
                        f"(digest {metadata.digest[:12]})"
                    )
                report.source = source

                if source == target:
                    self._transition(report, MigrationState.NO_OP)
                    report.finished_at = datetime.now(timezone.utc)
                    self._log.info("store_already_current", version=target.identifier)
                    return report

                self._transition(report, MigrationState.PLANNING)
                plan = self._planner.plan(source, target)
                report.plan = plan
                self._check_scratch(scratch, store_path)

                self._log.info(
                    "migration_started",
                    source=source.identifier,
                    target=target.identifier,
                    steps=len(plan),
                )

                scratch.mkdir(parents=True, exist_ok=True)
                for index, step in enumerate(plan, start=1):
                    self._transition(report, MigrationState.EXECUTING)
                    pending = self._allocate_temp(scratch, store_path)
                    self._log.info(
                        "migration_step_started",
                        step=step.label,
                        index=index,
                        total=len(plan),
                    )

                    report.transformer_calls += 1
                    try:
                        output = await self._transformer.apply(step, current, pending)
                    except TransformError:
                        raise
                    except Exception as e:
                        raise TransformError(
                            f"step {step.label} failed: {e}", step=step, cause=e
                        ) from e
                    output = Path(output)

                    # The previous intermediate is superseded; the original never is
                    if current != store_path:
                        self._swapper.destroy(current)
                    current = output
                    if pending != output:
                        self._swapper.destroy(pending)
                    pending = None
                    report.steps_completed = index

                self._transition(report, MigrationState.SWAPPING)
                self._swapper.atomic_replace(store_path, current)
                final_temp, current = current, store_path
                self._discard(final_temp)

                self._transition(report, MigrationState.DONE)
                report.finished_at = datetime.now(timezone.utc)
                self._log.info(
                    "migration_completed",
                    source=source.identifier,
                    target=target.identifier,
                    steps=report.steps_completed,
                    duration_seconds=round(report.duration_seconds or 0.0, 3),
                )
                return report

            except MigrationError as e:
                self._abort(report, e, [pending, current if current != store_path else None])
                raise
            except (OSError, sqlite3.Error) as e:
                error = wrap_external_error(e, path=store_path)
                self._abort(report, error, [pending, current if current != store_path else None])
                raise error from e

    def _transition(self, report: MigrationReport, state: MigrationState) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(report.state, frozenset())
        if state not in allowed and state != MigrationState.FATAL_ABORTED:
            raise RuntimeError(f"illegal migration transition {report.state.value} -> {state.value}")
        self._log.debug("migration_state_changed", previous=report.state.value, state=state.value)
        report.state = state
        report.history.append(state)

    def _check_scratch(self, scratch: Path, store_path: Path) -> None:
        if scratch.resolve() == store_path.resolve().parent:
            raise ConfigurationError(
                f"scratch directory {scratch} must differ from the store's directory"
            )
        if scratch.exists() and not scratch.is_dir():
            raise StoreIOError(f"scratch path {scratch} is not a directory", path=scratch)

    @staticmethod
    def _allocate_temp(scratch: Path, store_path: Path) -> Path:
        suffix = store_path.suffix or ".sqlite"
        return scratch / f"{store_path.stem}-{uuid.uuid4().hex}{suffix}"

    def _discard(self, path: Optional[Path]) -> None:
        """Best-effort destruction of a temporary artifact."""
        if path is None:
            return
        try:
            self._swapper.destroy(path)
        except StoreIOError as e:
            self._log.warning("temporary_store_cleanup_failed", path=str(path), error=str(e))

    def _abort(
        self,
        report: MigrationReport,
        error: MigrationError,
        leftovers: list[Optional[Path]],
    ) -> None:
        failed_in = report.state
        self._transition(report, MigrationState.FATAL_ABORTED)
        report.error = error
        report.finished_at = datetime.now(timezone.utc)
        error.report = report

        for path in leftovers:
            self._discard(path)

        self._log.error(
            "migration_aborted",
            failed_in=failed_in.value,
            category=error.category.value,
            error=str(error),
            steps_completed=report.steps_completed,
            total_steps=report.total_steps,
        )


async def migrate_store(
    store_path: PathLike,
    to_version: Optional[VersionKey] = None,
    scratch_dir: Optional[PathLike] = None,
    *,
    registry: Optional[VersionRegistry] = None,
    transformer: Optional[SchemaTransformer] = None,
) -> MigrationReport:
    """Migrate one store; the programmatic entry point.

    Args:
        store_path: Store to migrate.
        to_version: Target version (default: latest registered).
        scratch_dir: Directory for temporary step outputs.
        registry: Version catalog (default: the shipped catalog).
        transformer: Step transformer (default: SqlScriptTransformer).

    Returns:
        The migration report.
    """
    engine = MigrationEngine(
        registry or load_registry(),
        transformer=transformer,
        scratch_dir=scratch_dir,
    )
    return await engine.migrate(store_path, to_version)
