"""Tests for configuration loading and the global config helpers."""

from __future__ import annotations

import logging

import pytest
import toml

from gnucore.config.config import (
    ConfigManager,
    get_config,
    init_config,
    reload_config,
    reset_config,
    set_config,
)
from gnucore.models import CacheConfig, Config, LogLevel
from gnucore.utils.exceptions import ConfigurationError

pytestmark = [pytest.mark.unit, pytest.mark.config]


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "gnucore.toml"
    path.write_text(
        """
[network]
listen_port = 6350

[cache]
disk_cache_bytes = 2048
creation_cache_entries = 8

[observability]
console_logging = false
"""
    )
    return path


class TestConfigManager:
    """Defaults, file and environment layering."""

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        manager = ConfigManager(configure_logging=False)
        assert manager.config_file is None
        assert manager.config.network.listen_port == 6346
        assert manager.config.cache.disk_cache_evict_pending is False
        assert manager.config.accounting.strict_counters is False

    def test_file_values(self, config_file):
        manager = ConfigManager(config_file, configure_logging=False)
        assert manager.config.network.listen_port == 6350
        assert manager.config.cache.disk_cache_bytes == 2048
        assert manager.config.cache.creation_cache_entries == 8
        # Untouched keys keep their defaults
        assert manager.config.cache.content_response_entries == 1024

    def test_found_in_cwd(self, config_file, monkeypatch):
        monkeypatch.chdir(config_file.parent)
        manager = ConfigManager(configure_logging=False)
        assert manager.config_file == config_file
        assert manager.config.network.listen_port == 6350

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("GNUCORE_LISTEN_PORT", "7000")
        monkeypatch.setenv("GNUCORE_STRICT_COUNTERS", "true")
        monkeypatch.setenv("GNUCORE_LOG_LEVEL", "debug")
        monkeypatch.setenv("GNUCORE_DISK_CACHE_AUTO_FRACTION", "0.1")

        manager = ConfigManager(config_file, configure_logging=False)

        assert manager.config.network.listen_port == 7000
        assert manager.config.cache.disk_cache_bytes == 2048
        assert manager.config.accounting.strict_counters is True
        assert manager.config.observability.log_level is LogLevel.DEBUG
        assert manager.config.cache.disk_cache_auto_fraction == 0.1

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[cache\ndisk_cache_bytes = ")
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(path, configure_logging=False)
        assert exc_info.value.details["path"] == str(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[network]\nlisten_port = 70000\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(path, configure_logging=False)

    def test_invalid_env_value(self, config_file, monkeypatch):
        monkeypatch.setenv("GNUCORE_ULTRAPEER_MAX_FAILURES", "many")
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file, configure_logging=False)

    def test_export_round_trips(self, config_file):
        manager = ConfigManager(config_file, configure_logging=False)
        data = toml.loads(manager.export())
        assert data["network"]["listen_port"] == 6350
        assert "log_file" not in data["observability"]

    def test_configures_logging(self, config_file):
        ConfigManager(config_file)
        assert logging.getLogger("gnucore").propagate is False


class TestGlobalConfig:
    def test_init_and_get(self, config_file):
        manager = init_config(config_file, configure_logging=False)
        assert get_config() is manager.config

    def test_reload_picks_up_changes(self, config_file):
        init_config(config_file, configure_logging=False)
        config_file.write_text(
            "[network]\nlisten_port = 6400\n[observability]\nconsole_logging = false\n"
        )
        assert reload_config().network.listen_port == 6400

    def test_reload_requires_init(self):
        with pytest.raises(ConfigurationError):
            reload_config()

    def test_set_and_reset(self):
        new = Config(network={"listen_port": 1234}, observability={"console_logging": False})
        set_config(new)
        assert get_config() is new
        reset_config()
        assert get_config() is not new


class TestModelValidation:
    def test_cache_bounds_must_be_ordered(self):
        with pytest.raises(ValueError, match="disk_cache_min_bytes"):
            CacheConfig(disk_cache_min_bytes=10, disk_cache_max_bytes=5)

    def test_log_level_values(self):
        config = Config(observability={"log_level": "WARNING"})
        assert config.observability.log_level is LogLevel.WARNING
