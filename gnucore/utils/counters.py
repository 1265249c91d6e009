"""Non-negative accounting counters.

A decrement below zero is a caller logic error. In strict mode it raises
``CounterUnderflowError`` so tests and debug builds catch it; otherwise the
counter stays at zero and a warning is logged, since these values feed
diagnostics rather than anything safety-critical.
"""

from __future__ import annotations

import threading

from gnucore.utils.exceptions import CounterUnderflowError
from gnucore.utils.logging_config import get_logger


class AccountingCounter:
    """Thread-safe counter that never reports a negative value."""

    def __init__(self, name: str, strict: bool = False) -> None:
        self.name = name
        self.strict = strict
        self._value = 0
        self._underflows = 0
        self._lock = threading.Lock()
        self.logger = get_logger(__name__)

    @property
    def value(self) -> int:
        # Plain attribute read; never waits on writers
        return self._value

    @property
    def underflows(self) -> int:
        """Number of clamped decrements seen so far."""
        return self._underflows

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    def decrement(self, amount: int = 1) -> int:
        with self._lock:
            if self._value - amount >= 0:
                self._value -= amount
                return self._value
            attempted = self._value - amount
            if self.strict:
                msg = f"Counter '{self.name}' would underflow"
                raise CounterUnderflowError(
                    msg, {"counter": self.name, "value": attempted}
                )
            self._underflows += 1
            self._value = 0
        self.logger.warning(
            "Counter '%s' underflow (would be %d), clamped at zero",
            self.name,
            attempted,
        )
        return 0

    def __int__(self) -> int:
        return self._value

    def __repr__(self) -> str:
        return f"AccountingCounter({self.name!r}, value={self._value})"
