"""Read-only session diagnostics facade.

``SessionSnapshot`` answers every ``SessionInfo`` query by reading a single
value from the component that owns it. It takes no locks and holds no
state of its own, so the diagnostics layer can poll it from any thread
without slowing the I/O paths. Two reads may reflect different instants.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

from gnucore.models import ConnectionRole, SessionReport
from gnucore.session.types import BufferPoolProtocol, CacheProtocol

if TYPE_CHECKING:  # pragma: no cover
    from gnucore.nat.reachability import ReachabilityProbe
    from gnucore.peer.registry import ConnectionRegistry
    from gnucore.session.demand import TransferDemandTracker
    from gnucore.storage.cache import DiskIOCache


@runtime_checkable
class SessionInfo(Protocol):
    """Diagnostic view of a running session, as shown in bug reports."""

    def pending_timeouts(self) -> int: ...

    def waiting_downloads(self) -> int: ...

    def individual_downloaders(self) -> int: ...

    def current_uptime(self) -> float: ...

    def ultrapeer_to_leaf_connections(self) -> int: ...

    def leaf_to_ultrapeer_connections(self) -> int: ...

    def ultrapeer_to_ultrapeer_connections(self) -> int: ...

    def old_connections(self) -> int: ...

    def content_responses_size(self) -> int: ...

    def creation_cache_size(self) -> int: ...

    def disk_controller_byte_cache_size(self) -> int: ...

    def disk_controller_verifying_cache_size(self) -> int: ...

    def disk_controller_queue_size(self) -> int: ...

    def byte_buffer_cache_size(self) -> int: ...

    def waiting_sockets(self) -> int: ...

    def is_guess_capable(self) -> bool: ...

    def can_receive_solicited(self) -> bool: ...

    def accepted_incoming_connection(self) -> bool: ...

    def port(self) -> int: ...


class SessionSnapshot:
    """``SessionInfo`` built by composition over the session components."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        demand: TransferDemandTracker,
        reachability: ReachabilityProbe,
        disk_cache: DiskIOCache,
        creation_cache: CacheProtocol,
        content_responses: CacheProtocol,
        buffer_pool: BufferPoolProtocol,
        uptime: Callable[[], float],
    ) -> None:
        self._registry = registry
        self._demand = demand
        self._reachability = reachability
        self._disk_cache = disk_cache
        self._creation_cache = creation_cache
        self._content_responses = content_responses
        self._buffer_pool = buffer_pool
        self._uptime = uptime

    # Transfer demand

    def pending_timeouts(self) -> int:
        return self._demand.pending_timeouts

    def waiting_downloads(self) -> int:
        return self._demand.waiting_downloads

    def individual_downloaders(self) -> int:
        return self._demand.individual_downloaders

    def current_uptime(self) -> float:
        """Seconds since the session started."""
        return self._uptime()

    # Connections, both directions per role

    def ultrapeer_to_leaf_connections(self) -> int:
        return self._registry.count(ConnectionRole.ULTRAPEER_TO_LEAF)

    def leaf_to_ultrapeer_connections(self) -> int:
        return self._registry.count(ConnectionRole.LEAF_TO_ULTRAPEER)

    def ultrapeer_to_ultrapeer_connections(self) -> int:
        return self._registry.count(ConnectionRole.ULTRAPEER_TO_ULTRAPEER)

    def old_connections(self) -> int:
        """Connections to peers that speak neither leaf nor ultrapeer roles."""
        return self._registry.count(ConnectionRole.LEGACY_UNROUTED)

    def waiting_sockets(self) -> int:
        return self._registry.waiting_sockets

    # Caches

    def content_responses_size(self) -> int:
        return self._content_responses.entry_count()

    def creation_cache_size(self) -> int:
        return self._creation_cache.entry_count()

    def disk_controller_byte_cache_size(self) -> int:
        return self._disk_cache.size_bytes()

    def disk_controller_verifying_cache_size(self) -> int:
        return self._disk_cache.verifying_size_bytes()

    def disk_controller_queue_size(self) -> int:
        return self._disk_cache.queue_depth()

    def byte_buffer_cache_size(self) -> int:
        return self._buffer_pool.size_bytes()

    # Reachability

    def is_guess_capable(self) -> bool:
        return self._reachability.guess_capable

    def can_receive_solicited(self) -> bool:
        return self._reachability.can_receive_solicited

    def accepted_incoming_connection(self) -> bool:
        return self._reachability.accepted_incoming

    def port(self) -> int:
        return self._reachability.port

    def report(self) -> SessionReport:
        """Capture every field, in ``SessionReport`` declaration order."""
        values = {
            name: getattr(self, name)() for name in SessionReport.model_fields
        }
        return SessionReport(**values)
