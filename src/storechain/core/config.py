"""
Configuration for storechain: a TOML file overlaid with environment variables.

Lookup order for a dotted key such as ``migration.scratch_dir``:
1. ``STORECHAIN_MIGRATION_SCRATCH_DIR`` in the environment
2. ``[migration] scratch_dir`` in the TOML file
3. The caller's default
"""
import os
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

_MISSING = object()

_TRUE_WORDS = ("true", "yes", "on")
_FALSE_WORDS = ("false", "no", "off")


def _coerce_env(raw: str) -> Any:
    """Environment values arrive as strings; recover bools and ints."""
    lowered = raw.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    try:
        return int(raw)
    except ValueError:
        return raw


class ConfigManager:
    """Read-only view over the storechain TOML file and its env overrides.

    Usage:
        config = ConfigManager(Path("config/default.toml"))
        level = config.get("storechain.log_level", "INFO")
        scratch = config.get_path("migration.scratch_dir")
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env_prefix: str = "STORECHAIN_",
    ) -> None:
        """Initialize ConfigManager.

        Args:
            config_path: TOML file; a missing file leaves only env and defaults
            env_prefix: Prefix for environment variable overrides
        """
        self._config_path = config_path
        self._env_prefix = env_prefix
        self._data: dict[str, Any] = {}

        if config_path is not None and config_path.exists():
            with open(config_path, "rb") as f:
                self._data = tomllib.load(f)

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    def env_name(self, key: str) -> str:
        """Environment variable overriding ``key``."""
        return self._env_prefix + key.replace(".", "_").upper()

    def _from_file(self, key: str) -> Any:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        """Value for a dotted key; the environment wins over the file."""
        raw = os.environ.get(self.env_name(key))
        if raw is not None:
            return _coerce_env(raw)

        value = self._from_file(key)
        return default if value is _MISSING else value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_WORDS + ("1",)
        return bool(value)

    def get_path(self, key: str, default: Optional[Path] = None) -> Optional[Path]:
        """Value as an expanded Path.

        Empty strings count as unset, so a TOML placeholder like
        ``scratch_dir = ""`` falls back to ``default``.
        """
        value = self.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        return Path(str(value)).expanduser()
