"""Pytest configuration and shared fixtures for gnucore tests."""

from __future__ import annotations

import logging
import os

import pytest

from gnucore.config.config import reset_config
from gnucore.models import Config
from gnucore.utils.events import Event, EventHandler


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("slow", "marks tests as slow (deselect with '-m \"not slow\"')"),
        ("integration", "marks tests as integration tests"),
        ("unit", "marks tests as unit tests"),
        ("peer", "marks tests as connection registry/topology tests"),
        ("storage", "marks tests as cache/buffer tests"),
        ("nat", "marks tests as reachability tests"),
        ("session", "marks tests as session/facade tests"),
        ("config", "marks tests as configuration tests"),
        ("observability", "marks tests as logging/event tests"),
        ("property", "marks tests as property-based tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _clear_gnucore_env(monkeypatch):
    """Keep GNUCORE_* variables from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("GNUCORE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_global_config():
    """Every test starts without a process-wide configuration."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    # setup_logging() detaches the package logger from root; caplog needs it back
    package_logger = logging.getLogger("gnucore")
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


class RecordingHandler(EventHandler):
    """Event handler that keeps every event it receives."""

    def __init__(self, name: str = "recorder"):
        super().__init__(name)
        self.events: list[Event] = []

    def handle(self, event: Event) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.event_type for e in self.events]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def now(self) -> float:
        return self.value

    def monotonic(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def recorder():
    return RecordingHandler()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def config():
    """Default configuration with small caches for tests."""
    return Config(
        cache={
            "disk_cache_bytes": 1000,
            "creation_cache_entries": 4,
            "content_response_entries": 4,
        },
        observability={"console_logging": False},
    )
