"""Time/clock abstraction to aid testability."""

from __future__ import annotations

import time as _time


class Clock:
    """Clock abstraction to aid testability."""

    def now(self) -> float:
        """Return current wall-clock time in seconds."""
        return _time.time()

    def monotonic(self) -> float:
        """Return a monotonic reading in seconds, for durations."""
        return _time.monotonic()
