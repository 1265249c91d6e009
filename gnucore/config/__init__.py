"""Configuration loading for gnucore."""

from __future__ import annotations

from gnucore.config.config import (
    ConfigManager,
    get_config,
    init_config,
    reload_config,
    reset_config,
    set_config,
)

__all__ = [
    "ConfigManager",
    "get_config",
    "init_config",
    "reload_config",
    "reset_config",
    "set_config",
]
