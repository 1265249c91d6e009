"""Shared utilities and infrastructure.

This module contains common utilities used throughout the package.
"""

from __future__ import annotations

from gnucore.utils.counters import AccountingCounter
from gnucore.utils.events import Event, EventDispatcher, EventHandler, EventType
from gnucore.utils.exceptions import (
    AccountingError,
    CapacityExceededError,
    ConfigurationError,
    CounterUnderflowError,
    DuplicateEntryError,
    EntryStateError,
    GnuCoreError,
    ResourceError,
    ValidationError,
)
from gnucore.utils.logging_config import get_logger, setup_logging

__all__ = [
    "AccountingCounter",
    # Exceptions
    "AccountingError",
    "CapacityExceededError",
    "ConfigurationError",
    "CounterUnderflowError",
    "DuplicateEntryError",
    "EntryStateError",
    # Events
    "Event",
    "EventDispatcher",
    "EventHandler",
    "EventType",
    "GnuCoreError",
    "ResourceError",
    "ValidationError",
    # Logging
    "get_logger",
    "setup_logging",
]
