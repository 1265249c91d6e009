"""Configuration management for gnucore.

Provides centralized configuration with TOML support and validation,
loaded hierarchically from defaults -> config file -> environment.

Only configuration is process-wide. Session components are built from a
``Config`` passed in explicitly; see ``gnucore.session.core``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import toml

from gnucore.models import Config
from gnucore.utils.exceptions import ConfigurationError
from gnucore.utils.logging_config import get_logger, setup_logging

CONFIG_FILE_NAME = "gnucore.toml"

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    # Network
    "GNUCORE_LISTEN_PORT": "network.listen_port",
    # Caches
    "GNUCORE_DISK_CACHE_BYTES": "cache.disk_cache_bytes",
    "GNUCORE_DISK_CACHE_EVICT_PENDING": "cache.disk_cache_evict_pending",
    "GNUCORE_DISK_CACHE_AUTO_SIZE": "cache.disk_cache_auto_size",
    "GNUCORE_DISK_CACHE_AUTO_FRACTION": "cache.disk_cache_auto_fraction",
    "GNUCORE_DISK_CACHE_MIN_BYTES": "cache.disk_cache_min_bytes",
    "GNUCORE_DISK_CACHE_MAX_BYTES": "cache.disk_cache_max_bytes",
    "GNUCORE_CREATION_CACHE_ENTRIES": "cache.creation_cache_entries",
    "GNUCORE_CONTENT_RESPONSE_ENTRIES": "cache.content_response_entries",
    # Buffer pool
    "GNUCORE_MIN_BUFFER_BYTES": "buffers.min_buffer_bytes",
    "GNUCORE_MAX_IDLE_BUFFER_BYTES": "buffers.max_idle_bytes",
    "GNUCORE_ZERO_IO_BUFFERS": "buffers.zero_io_buffers",
    # Topology
    "GNUCORE_ENABLE_PROMOTION": "topology.enable_promotion",
    "GNUCORE_ULTRAPEER_RETRY_WINDOW": "topology.ultrapeer_retry_window",
    "GNUCORE_ULTRAPEER_MAX_FAILURES": "topology.ultrapeer_max_failures",
    # Accounting
    "GNUCORE_STRICT_COUNTERS": "accounting.strict_counters",
    # Observability
    "GNUCORE_LOG_LEVEL": "observability.log_level",
    "GNUCORE_LOG_FILE": "observability.log_file",
    "GNUCORE_CONSOLE_LOGGING": "observability.console_logging",
    "GNUCORE_STRUCTURED_LOGGING": "observability.structured_logging",
    "GNUCORE_LOG_CORRELATION_ID": "observability.log_correlation_id",
}

# String-valued paths are never coerced to bool/int
_STRING_PATHS = frozenset({"observability.log_level", "observability.log_file"})

# Global configuration instance
_config_manager: ConfigManager | None = None


def _parse_env_value(raw: str, path: str) -> bool | int | float | str:
    """Coerce an environment string into the type its config path expects."""
    if path in _STRING_PATHS:
        return raw.upper() if path == "observability.log_level" else raw

    low = raw.lower()
    if low in {"true", "1", "yes", "on"}:
        return True
    if low in {"false", "0", "no", "off"}:
        return False
    try:
        if "." in raw:
            return float(raw)
        return int(raw)
    except ValueError:
        return raw


def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = d
    for p in parts[:-1]:
        cur = cur.setdefault(p, {})
    cur[parts[-1]] = value


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(
        self,
        config_file: str | Path | None = None,
        configure_logging: bool = True,
    ):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for gnucore.toml
            configure_logging: Apply the observability section to logging

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        if configure_logging:
            self._setup_logging()

    def _find_config_file(self, config_file: str | Path | None) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        search_paths = [
            Path.cwd() / CONFIG_FILE_NAME,
            Path.home() / ".config" / "gnucore" / CONFIG_FILE_NAME,
            Path.home() / f".{CONFIG_FILE_NAME}",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg, {"path": str(self.config_file)}) from e

        config_data = self._merge_config(config_data, self._get_env_config())

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}
        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))
        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)

    def export(self) -> str:
        """Export current configuration as TOML."""
        data = self.config.model_dump(mode="json", exclude_none=True)
        return toml.dumps(data)


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(
    config_file: str | Path | None = None,
    configure_logging: bool = True,
) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file, configure_logging=configure_logging)
    return _config_manager


def reload_config() -> Config:
    """Reload configuration from file."""
    if _config_manager is None:
        msg = "Configuration not initialized"
        raise ConfigurationError(msg)

    _config_manager.config = _config_manager._load_config()  # noqa: SLF001
    _config_manager._setup_logging()  # noqa: SLF001
    get_logger(__name__).info("Configuration reloaded")
    return _config_manager.config


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime.

    Components built earlier keep the values they were constructed with.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(None, configure_logging=False)
    _config_manager.config = new_config
    _config_manager._setup_logging()  # noqa: SLF001


def reset_config() -> None:
    """Forget the global configuration; the next get_config() reloads it."""
    global _config_manager
    _config_manager = None
    get_logger(__name__).debug("Global configuration cleared")

