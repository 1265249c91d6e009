"""Session composition root.

``SessionCore`` is built once when the node starts. It constructs every
accounting component from a ``Config`` and hands them out as attributes;
collaborators receive the component they need instead of looking up a
global session.
"""

from __future__ import annotations

from typing import Any

from gnucore.config.config import get_config
from gnucore.models import Config
from gnucore.nat.reachability import ReachabilityProbe
from gnucore.peer.registry import ConnectionRegistry
from gnucore.peer.topology import TopologyPolicy
from gnucore.session.demand import TransferDemandTracker
from gnucore.session.info import SessionSnapshot
from gnucore.storage.buffers import ByteBufferPool
from gnucore.storage.cache import ContentResponseCache, CreationCache, DiskIOCache
from gnucore.utils.logging_config import get_logger
from gnucore.utils.time import Clock


class SessionCore:
    """Owns the peer session and resource-accounting components."""

    def __init__(self, config: Config | None = None, clock: Clock | None = None):
        """Build the session.

        Args:
            config: Configuration to build from; defaults to the global config
            clock: Clock for uptime and topology failure windows

        """
        self.config = config or get_config()
        self.clock = clock or Clock()
        self.logger = get_logger(__name__)
        self._started_at = self.clock.monotonic()

        strict = self.config.accounting.strict_counters

        self.registry = ConnectionRegistry(strict_counters=strict)
        self.topology = TopologyPolicy.from_config(
            self.registry, self.config.topology, clock=self.clock
        )
        self.reachability = ReachabilityProbe(port=self.config.network.listen_port)
        self.demand = TransferDemandTracker(strict=strict)

        cache_config = self.config.cache
        self.disk_cache = DiskIOCache.from_config(cache_config)
        self.creation_cache = CreationCache(cache_config.creation_cache_entries)
        self.content_responses = ContentResponseCache(
            cache_config.content_response_entries
        )

        buffers = self.config.buffers
        self.buffer_pool = ByteBufferPool(
            min_buffer_bytes=buffers.min_buffer_bytes,
            max_idle_bytes=buffers.max_idle_bytes,
            zero_io_buffers=buffers.zero_io_buffers,
        )

        self.info = SessionSnapshot(
            registry=self.registry,
            demand=self.demand,
            reachability=self.reachability,
            disk_cache=self.disk_cache,
            creation_cache=self.creation_cache,
            content_responses=self.content_responses,
            buffer_pool=self.buffer_pool,
            uptime=self.uptime,
        )

        self.logger.info(
            "Session started (port=%d, disk cache=%d bytes, strict counters=%s)",
            self.reachability.port,
            self.disk_cache.capacity_bytes,
            strict,
        )

    def uptime(self) -> float:
        """Seconds since the session was built; never decreases."""
        return max(0.0, self.clock.monotonic() - self._started_at)

    def get_stats(self) -> dict[str, Any]:
        """Detailed per-component statistics for debugging."""
        return {
            "uptime": self.uptime(),
            "role": self.topology.role.value,
            "registry": self.registry.get_stats(),
            "reachability": self.reachability.get_stats(),
            "demand": self.demand.get_stats(),
            "disk_cache": self.disk_cache.get_stats(),
            "creation_cache": self.creation_cache.get_stats(),
            "content_responses": self.content_responses.get_stats(),
            "buffer_pool": vars(self.buffer_pool.get_stats()),
        }
