"""Exception hierarchy for gnucore.

Every failure raised by the accounting core derives from ``GnuCoreError`` and
is signalled to the immediate caller; nothing here terminates the process.
"""

from __future__ import annotations

from typing import Any


class GnuCoreError(Exception):
    """Base exception for all gnucore errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize gnucore error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ResourceError(GnuCoreError):
    """Resource management errors."""


class CapacityExceededError(ResourceError):
    """A cache cannot fit a reservation; the caller must back off and retry."""


class AccountingError(GnuCoreError):
    """Logic errors in the way a caller drives the accounting components."""


class CounterUnderflowError(AccountingError):
    """A counter was decremented below zero while running in strict mode."""


class EntryStateError(AccountingError):
    """A cache entry was asked to make a transition its state forbids."""


class ValidationError(GnuCoreError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class DuplicateEntryError(ValidationError):
    """A cache already holds a live entry under the requested key."""
