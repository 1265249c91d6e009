"""In-flight transfer demand counters, fed by the transfer scheduler."""

from __future__ import annotations

from typing import Any

from gnucore.utils.counters import AccountingCounter


class TransferDemandTracker:
    """Waiting downloads, active downloader tasks and pending timeouts.

    Every started/finished pair must balance. An unbalanced decrement is
    clamped at zero and logged, or raises ``CounterUnderflowError`` when the
    tracker is strict.
    """

    def __init__(self, strict: bool = False) -> None:
        self._waiting = AccountingCounter("waiting_downloads", strict=strict)
        self._downloaders = AccountingCounter("individual_downloaders", strict=strict)
        self._timeouts = AccountingCounter("pending_timeouts", strict=strict)

    # Downloads queued for a slot

    def download_waiting(self) -> int:
        return self._waiting.increment()

    def download_started(self) -> int:
        """A waiting download got its slot."""
        return self._waiting.decrement()

    # Per-source downloader tasks

    def downloader_started(self) -> int:
        return self._downloaders.increment()

    def downloader_finished(self) -> int:
        return self._downloaders.decrement()

    # Scheduled timeout callbacks

    def timeout_scheduled(self) -> int:
        return self._timeouts.increment()

    def timeout_fired(self) -> int:
        return self._timeouts.decrement()

    def timeout_cancelled(self) -> int:
        """A scheduled timeout was cancelled before it fired."""
        return self._timeouts.decrement()

    @property
    def waiting_downloads(self) -> int:
        return self._waiting.value

    @property
    def individual_downloaders(self) -> int:
        return self._downloaders.value

    @property
    def pending_timeouts(self) -> int:
        return self._timeouts.value

    def get_stats(self) -> dict[str, Any]:
        counters = (self._waiting, self._downloaders, self._timeouts)
        return {
            **{c.name: c.value for c in counters},
            "underflows": sum(c.underflows for c in counters),
        }
