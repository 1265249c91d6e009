"""Bounded caches on the network/disk boundary.

Every cache tracks entries through PENDING -> VERIFYING -> COMMITTED and
keeps its resident bytes (and, where configured, its entry count) within
capacity. Under pressure a cache may evict its oldest PENDING entries, FIFO;
VERIFYING and COMMITTED entries are never evicted to make room. When
nothing evictable would free enough space the reservation fails with
``CapacityExceededError`` and the I/O scheduler retries after backing off.

The caches never time out handles themselves. An abandoned reservation
stays resident until its owner calls ``evict``.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Hashable

import psutil

from gnucore.models import EntryState
from gnucore.utils.events import EventDispatcher, EventHandler, EventType
from gnucore.utils.exceptions import (
    CapacityExceededError,
    DuplicateEntryError,
    EntryStateError,
    ValidationError,
)
from gnucore.utils.logging_config import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from gnucore.models import CacheConfig


@dataclass(frozen=True)
class CacheHandle:
    """Token returned by ``reserve``; stale once its entry leaves the cache."""

    cache: str
    serial: int
    key: Hashable


@dataclass
class CacheEntry:
    """A reservation resident in a cache."""

    handle: CacheHandle
    size: int
    state: EntryState = EntryState.PENDING
    created_at: float = field(default_factory=time.time)

    @property
    def key(self) -> Hashable:
        return self.handle.key


class BoundedCache:
    """Byte- and/or count-bounded cache with FIFO eviction of pending work."""

    def __init__(
        self,
        name: str,
        capacity_bytes: int | None = None,
        max_entries: int | None = None,
        evict_pending: bool = True,
    ) -> None:
        """Initialize the cache.

        Args:
            name: Cache name, used in handles, logs and events
            capacity_bytes: Maximum resident bytes (None = unbounded)
            max_entries: Maximum resident entries (None = unbounded)
            evict_pending: Evict oldest PENDING entries to make room

        """
        if capacity_bytes is not None and capacity_bytes < 0:
            msg = "capacity_bytes cannot be negative"
            raise ValidationError(msg, {"capacity_bytes": capacity_bytes})
        if max_entries is not None and max_entries < 0:
            msg = "max_entries cannot be negative"
            raise ValidationError(msg, {"max_entries": max_entries})

        self.name = name
        self.capacity_bytes = capacity_bytes
        self.max_entries = max_entries
        self.evict_pending = evict_pending

        self._entries: dict[Hashable, CacheEntry] = {}
        # Insertion order is eviction order
        self._pending: OrderedDict[Hashable, CacheEntry] = OrderedDict()
        self._size = 0
        self._pending_bytes = 0
        self._verifying_bytes = 0
        self._committed = 0
        self._serial = 0
        self._lock = threading.Lock()
        self.events = EventDispatcher(f"cache.{name}")
        self.logger = get_logger(__name__)
        self.stats = {
            "reservations": 0,
            "commits": 0,
            "evictions": 0,
            "pressure_evictions": 0,
            "releases": 0,
            "capacity_exceeded": 0,
            "unknown_handles": 0,
        }

    # Listeners

    def add_listener(self, handler: EventHandler) -> None:
        """Receive CACHE_EVICTED events for entries evicted under pressure."""
        self.events.register_handler(handler)

    def remove_listener(self, handler: EventHandler) -> None:
        self.events.unregister_handler(handler)

    # Capacity arithmetic

    def _fits(self, size_bytes: int, entry_count: int) -> bool:
        if self.capacity_bytes is not None and size_bytes > self.capacity_bytes:
            return False
        return self.max_entries is None or entry_count <= self.max_entries

    def _lookup(self, handle: CacheHandle) -> CacheEntry | None:
        if handle.cache != self.name:
            return None
        entry = self._entries.get(handle.key)
        if entry is None or entry.handle != handle:
            return None
        return entry

    def _remove(self, entry: CacheEntry, final_state: EntryState) -> None:
        """Drop an entry from every index. Caller holds the lock."""
        del self._entries[entry.key]
        if entry.state is EntryState.PENDING:
            del self._pending[entry.key]
            self._pending_bytes -= entry.size
        elif entry.state is EntryState.VERIFYING:
            self._verifying_bytes -= entry.size
        else:
            self._committed -= 1
        self._size -= entry.size
        entry.state = final_state

    def _unknown(self, operation: str, handle: CacheHandle) -> bool:
        self.stats["unknown_handles"] += 1
        self.logger.warning(
            "Ignoring %s of unknown or stale handle %s on cache '%s'",
            operation,
            handle,
            self.name,
        )
        return False

    # Operations

    def reserve(self, key: Hashable, size: int) -> CacheHandle:
        """Reserve ``size`` bytes for ``key`` as a PENDING entry.

        Raises:
            ValidationError: ``size`` is negative
            DuplicateEntryError: ``key`` already has a live entry
            CapacityExceededError: the entry cannot fit, even after evicting
                whatever PENDING work this cache is allowed to evict

        """
        if size < 0:
            msg = "Reservation size cannot be negative"
            raise ValidationError(msg, {"cache": self.name, "size": size})

        evicted: list[CacheEntry] = []
        with self._lock:
            if key in self._entries:
                msg = f"Cache '{self.name}' already holds an entry for {key!r}"
                raise DuplicateEntryError(msg, {"cache": self.name, "key": key})

            count = len(self._entries)
            if not self._fits(self._size + size, count + 1):
                # Evict only when dropping every pending entry makes room
                can_make_room = self.evict_pending and self._fits(
                    self._size - self._pending_bytes + size,
                    count - len(self._pending) + 1,
                )
                if not can_make_room:
                    self.stats["capacity_exceeded"] += 1
                    msg = f"Cache '{self.name}' cannot fit {size} bytes"
                    raise CapacityExceededError(
                        msg,
                        {
                            "cache": self.name,
                            "requested": size,
                            "size_bytes": self._size,
                            "capacity_bytes": self.capacity_bytes,
                            "entries": count,
                            "max_entries": self.max_entries,
                        },
                    )
                while not self._fits(self._size + size, len(self._entries) + 1):
                    _, victim = next(iter(self._pending.items()))
                    self._remove(victim, EntryState.EVICTED)
                    evicted.append(victim)

            self._serial += 1
            handle = CacheHandle(self.name, self._serial, key)
            entry = CacheEntry(handle, size)
            self._entries[key] = entry
            self._pending[key] = entry
            self._size += size
            self._pending_bytes += size
            self.stats["reservations"] += 1
            self.stats["evictions"] += len(evicted)
            self.stats["pressure_evictions"] += len(evicted)

        for victim in evicted:
            self.logger.debug(
                "Evicted %r (%d bytes) from cache '%s' to fit %r",
                victim.key,
                victim.size,
                self.name,
                key,
            )
            self.events.dispatch(
                EventType.CACHE_EVICTED,
                cache=self.name,
                key=victim.key,
                size=victim.size,
                handle=victim.handle,
            )
        return handle

    def _begin_verify(self, handle: CacheHandle) -> bool:
        with self._lock:
            entry = self._lookup(handle)
            if entry is not None:
                if entry.state is EntryState.COMMITTED:
                    msg = f"Entry {handle.key!r} is already committed"
                    raise EntryStateError(msg, {"cache": self.name})
                if entry.state is EntryState.PENDING:
                    del self._pending[entry.key]
                    self._pending_bytes -= entry.size
                    self._verifying_bytes += entry.size
                    entry.state = EntryState.VERIFYING
                return True
        return self._unknown("verify", handle)

    def commit(self, handle: CacheHandle) -> bool:
        """Mark an entry COMMITTED. Committed entries are never auto-evicted.

        Returns:
            False for an unknown or stale handle (logged no-op)

        """
        with self._lock:
            entry = self._lookup(handle)
            if entry is not None:
                if entry.state is EntryState.PENDING:
                    del self._pending[entry.key]
                    self._pending_bytes -= entry.size
                elif entry.state is EntryState.VERIFYING:
                    self._verifying_bytes -= entry.size
                if entry.state is not EntryState.COMMITTED:
                    entry.state = EntryState.COMMITTED
                    self._committed += 1
                    self.stats["commits"] += 1
                return True
        return self._unknown("commit", handle)

    def evict(self, handle: CacheHandle, cancel: bool = False) -> bool:
        """Evict a non-committed entry.

        Args:
            handle: Handle returned by ``reserve``
            cancel: The owning transfer was cancelled; required to evict an
                entry that is mid-verification

        Raises:
            EntryStateError: the entry is COMMITTED, or VERIFYING without ``cancel``

        """
        with self._lock:
            entry = self._lookup(handle)
            if entry is not None:
                if entry.state is EntryState.COMMITTED:
                    msg = f"Committed entry {handle.key!r} cannot be evicted"
                    raise EntryStateError(msg, {"cache": self.name})
                if entry.state is EntryState.VERIFYING and not cancel:
                    msg = f"Entry {handle.key!r} is being verified; evict requires cancel"
                    raise EntryStateError(msg, {"cache": self.name})
                self._remove(entry, EntryState.EVICTED)
                self.stats["evictions"] += 1
        if entry is None:
            return self._unknown("evict", handle)
        self.logger.debug(
            "Evicted %r (%d bytes) from cache '%s'", handle.key, entry.size, self.name
        )
        return True

    def release(self, handle: CacheHandle) -> bool:
        """Drop a COMMITTED entry once its data has been flushed elsewhere.

        Raises:
            EntryStateError: the entry is not committed yet

        """
        with self._lock:
            entry = self._lookup(handle)
            if entry is not None:
                if entry.state is not EntryState.COMMITTED:
                    msg = f"Entry {handle.key!r} is {entry.state.value}; only committed entries can be released"
                    raise EntryStateError(msg, {"cache": self.name})
                self._remove(entry, EntryState.COMMITTED)
                self.stats["releases"] += 1
                return True
        return self._unknown("release", handle)

    # Reads

    def state_of(self, handle: CacheHandle) -> EntryState | None:
        """Current state of a resident entry, or None if it left the cache."""
        entry = self._lookup(handle)
        return entry.state if entry is not None else None

    def handle_for(self, key: Hashable) -> CacheHandle | None:
        entry = self._entries.get(key)
        return entry.handle if entry is not None else None

    def size_bytes(self) -> int:
        """Resident bytes across all states."""
        return self._size

    def entry_count(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "size_bytes": self._size,
                "pending_bytes": self._pending_bytes,
                "verifying_bytes": self._verifying_bytes,
                "entries": len(self._entries),
                "capacity_bytes": self.capacity_bytes,
                "max_entries": self.max_entries,
                **self.stats,
            }


class DiskIOCache(BoundedCache):
    """Write-behind byte cache with a verifying tier.

    Blocks wait here between arriving from the network and being written to
    disk. A block handed to the content verifier moves to the VERIFYING tier
    and cannot be evicted until it is committed, or until its transfer is
    cancelled.
    """

    def __init__(self, capacity_bytes: int, evict_pending: bool = False) -> None:
        super().__init__(
            "disk",
            capacity_bytes=capacity_bytes,
            evict_pending=evict_pending,
        )

    @classmethod
    def from_config(cls, config: CacheConfig) -> DiskIOCache:
        capacity = config.disk_cache_bytes
        if config.disk_cache_auto_size:
            capacity = auto_size_capacity(
                config.disk_cache_auto_fraction,
                config.disk_cache_min_bytes,
                config.disk_cache_max_bytes,
            )
        return cls(capacity, evict_pending=config.disk_cache_evict_pending)

    def begin_verify(self, handle: CacheHandle) -> bool:
        """Move a PENDING block into the verifying tier.

        Raises:
            EntryStateError: the block is already committed

        """
        return self._begin_verify(handle)

    def verifying_size_bytes(self) -> int:
        """Bytes currently held by blocks under verification."""
        return self._verifying_bytes

    def queue_depth(self) -> int:
        """Blocks still waiting to be committed (pending or verifying)."""
        return len(self._entries) - self._committed


class CreationCache(BoundedCache):
    """Newly created segments not yet persisted, bounded by entry count."""

    def __init__(self, max_entries: int) -> None:
        super().__init__("creation", max_entries=max_entries, evict_pending=True)


class ContentResponseCache(BoundedCache):
    """Content-authority responses held until the download layer acts on them."""

    def __init__(self, max_entries: int) -> None:
        super().__init__(
            "content_responses", max_entries=max_entries, evict_pending=True
        )


def auto_size_capacity(fraction: float, min_bytes: int, max_bytes: int) -> int:
    """Size a cache as a fraction of available memory, clamped to bounds."""
    available = psutil.virtual_memory().available
    return max(min_bytes, min(int(available * fraction), max_bytes))
