"""Reusable byte buffer pool for gnucore I/O paths.

Buffers are handed out from power-of-two size classes and returned to
per-class free lists for reuse. The pool reports how many idle bytes it is
holding, which is what diagnostics show as the byte buffer cache size.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

from gnucore.utils.exceptions import ValidationError
from gnucore.utils.logging_config import get_logger


@dataclass
class BufferStats:
    """Statistics for buffer operations."""

    total_allocations: int = 0
    total_releases: int = 0
    peak_outstanding: int = 0
    current_outstanding: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    dropped: int = 0
    unknown_releases: int = 0
    resized_releases: int = 0


@dataclass
class _Lease:
    buffer: bytearray
    capacity: int
    sensitive: bool


class ByteBufferPool:
    """Size-class buffer arena shared by network and disk I/O."""

    def __init__(
        self,
        min_buffer_bytes: int = 1024,
        max_idle_bytes: int = 8 * 1024 * 1024,
        zero_io_buffers: bool = False,
    ) -> None:
        """Initialize the pool.

        Args:
            min_buffer_bytes: Smallest size class handed out
            max_idle_bytes: Idle bytes kept for reuse; extra releases are dropped
            zero_io_buffers: Default sensitivity for general I/O buffers

        """
        if min_buffer_bytes <= 0:
            msg = "min_buffer_bytes must be positive"
            raise ValidationError(msg, {"min_buffer_bytes": min_buffer_bytes})
        self.min_buffer_bytes = min_buffer_bytes
        self.max_idle_bytes = max_idle_bytes
        self.zero_io_buffers = zero_io_buffers

        self._free: dict[int, deque[bytearray]] = {}
        self._leases: dict[int, _Lease] = {}
        self._idle_bytes = 0
        self._outstanding_bytes = 0
        self.stats = BufferStats()
        self.lock = threading.Lock()
        self.logger = get_logger(__name__)

    def size_class(self, size: int) -> int:
        """Return the capacity of the buffer that serves a request of ``size``."""
        capacity = self.min_buffer_bytes
        while capacity < size:
            capacity <<= 1
        return capacity

    def acquire(self, size: int, sensitive: bool | None = None) -> bytearray:
        """Get a buffer of at least ``size`` bytes.

        Args:
            size: Minimum number of bytes needed
            sensitive: Zero the buffer when it comes back. ``None`` applies the
                pool policy for general I/O buffers; content hashing buffers
                pass ``False``.

        """
        if size < 0:
            msg = "Buffer size cannot be negative"
            raise ValidationError(msg, {"size": size})
        if sensitive is None:
            sensitive = self.zero_io_buffers

        capacity = self.size_class(size)
        with self.lock:
            free = self._free.get(capacity)
            if free:
                buffer = free.popleft()
                self._idle_bytes -= capacity
                self.stats.cache_hits += 1
            else:
                buffer = bytearray(capacity)
                self.stats.cache_misses += 1
                self.stats.total_allocations += 1

            self._leases[id(buffer)] = _Lease(buffer, capacity, sensitive)
            self._outstanding_bytes += capacity
            self.stats.current_outstanding += 1
            self.stats.peak_outstanding = max(
                self.stats.peak_outstanding, self.stats.current_outstanding
            )
        return buffer

    def release(self, buffer: bytearray) -> bool:
        """Return a buffer to the pool.

        Returns:
            False if the buffer was not leased from this pool (or was already
            released); the call is then a logged no-op.

        """
        with self.lock:
            lease = self._leases.get(id(buffer))
            if lease is None or lease.buffer is not buffer:
                self.stats.unknown_releases += 1
                known = False
            else:
                known = True
                del self._leases[id(buffer)]
                capacity = lease.capacity
                resized = len(buffer) != capacity
                self._outstanding_bytes -= capacity
                self.stats.current_outstanding -= 1
                self.stats.total_releases += 1

                if lease.sensitive:
                    buffer[:] = bytes(len(buffer))

                # Only buffers still at their size class go back on a free list
                if resized:
                    self.stats.resized_releases += 1
                    self.stats.dropped += 1
                elif self._idle_bytes + capacity <= self.max_idle_bytes:
                    self._free.setdefault(capacity, deque()).append(buffer)
                    self._idle_bytes += capacity
                else:
                    self.stats.dropped += 1

        if not known:
            self.logger.warning(
                "Ignoring release of a buffer not leased from this pool (%d bytes)",
                len(buffer),
            )
        elif resized:
            self.logger.debug(
                "Dropped buffer resized from %d to %d bytes while leased",
                capacity,
                len(buffer),
            )
        return known

    def size_bytes(self) -> int:
        """Idle bytes currently held for reuse."""
        return self._idle_bytes

    def outstanding_bytes(self) -> int:
        """Bytes currently leased out to callers."""
        return self._outstanding_bytes

    def get_stats(self) -> BufferStats:
        """Get pool statistics."""
        with self.lock:
            return BufferStats(**vars(self.stats))
