"""
Application startup integration.

Runs once before the application opens its store for normal use:
1. Load configuration (TOML + STORECHAIN_* env overrides)
2. Configure logging
3. Load the version registry
4. Migrate the store to the latest version if it is not there yet

Errors are returned to the caller as typed exceptions; deciding whether to
halt, keep running on the old store, or trigger a resync is the caller's
policy, never this module's.
"""
from pathlib import Path
from typing import Optional

from storechain.core.config import ConfigManager
from storechain.core.errors import ConfigurationError
from storechain.core.logging import get_logger, setup_logging
from storechain.services.engine import MigrationEngine, MigrationReport
from storechain.services.registry import VersionRegistry


class StoreBootstrap:
    """Brings the configured store up to the current schema version.

    Usage:
        bootstrap = StoreBootstrap(Path("config/default.toml"))
        report = await bootstrap.prepare()   # None if nothing to do
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[ConfigManager] = None,
        registry: Optional[VersionRegistry] = None,
        configure_logging: bool = True,
    ) -> None:
        """Initialize the bootstrap.

        Args:
            config_path: Path to TOML configuration file
            config: Pre-built ConfigManager (takes precedence over config_path)
            registry: Version registry (default: loaded from configuration)
            configure_logging: Set up structlog from the [storechain] section
        """
        if config is None:
            if config_path is None:
                config_path = Path("config/default.toml")
                if not config_path.exists():
                    config_path = None
            config = ConfigManager(config_path)
        self._config = config

        if configure_logging:
            setup_logging(
                level=self._config.get("storechain.log_level", "INFO"),
                json_output=self._config.get_bool("storechain.log_json", False),
                log_file=self._config.get("storechain.log_file"),
            )
        self._log = get_logger("app")

        self._engine = MigrationEngine.from_config(self._config, registry=registry)

    @property
    def config(self) -> ConfigManager:
        return self._config

    @property
    def engine(self) -> MigrationEngine:
        return self._engine

    @property
    def store_path(self) -> Path:
        path = self._config.get_path("store.path")
        if path is None:
            raise ConfigurationError("store.path is not configured")
        return path

    async def prepare(self) -> Optional[MigrationReport]:
        """Migrate the configured store to the latest version when required.

        Returns:
            The migration report, or None if the store was absent or current.

        Raises:
            MigrationError: If the migration failed; the old store is intact.
        """
        store_path = self.store_path
        latest = self._engine.registry.latest()

        self._log.info(
            "store_check",
            store=str(store_path),
            latest=latest.identifier,
        )
        report = await self._engine.migrate_if_needed(store_path, latest)
        if report is None:
            self._log.info("store_ready", store=str(store_path), migrated=False)
        else:
            self._log.info(
                "store_ready",
                store=str(store_path),
                migrated=report.migrated,
                source=report.source.identifier if report.source else None,
            )
        return report
