from __future__ import annotations

from typing import TYPE_CHECKING, Any, Hashable, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from gnucore.models import ConnectionRole, Direction, NodeRole
    from gnucore.peer.registry import Connection, ConnectionCounts
    from gnucore.storage.cache import CacheHandle
    from gnucore.utils.events import EventHandler


@runtime_checkable
class HandshakeSinkProtocol(Protocol):
    """What the discovery/handshake layer reports connection lifecycle to."""

    def on_connected(
        self,
        role: ConnectionRole,
        direction: Direction,
        remote: tuple[str, int] | None = None,
    ) -> Connection: ...

    def on_disconnected(self, connection_id: int) -> Connection | None: ...

    def socket_waiting(self) -> int: ...

    def socket_resolved(self) -> int: ...

    def counts(self) -> ConnectionCounts: ...

    def add_listener(self, handler: EventHandler) -> None: ...

    def remove_listener(self, handler: EventHandler) -> None: ...


@runtime_checkable
class RoleSignalProtocol(Protocol):
    """Signals the handshake layer feeds into the topology policy."""

    @property
    def role(self) -> NodeRole: ...

    def set_uplink_capable(self, capable: bool) -> NodeRole: ...

    def on_ultrapeer_connect_failed(self) -> NodeRole: ...


@runtime_checkable
class DemandSinkProtocol(Protocol):
    """Transfer scheduler hooks for demand accounting."""

    def download_waiting(self) -> int: ...

    def download_started(self) -> int: ...

    def downloader_started(self) -> int: ...

    def downloader_finished(self) -> int: ...

    def timeout_scheduled(self) -> int: ...

    def timeout_fired(self) -> int: ...

    def timeout_cancelled(self) -> int: ...


@runtime_checkable
class CacheProtocol(Protocol):
    """Reservation lifecycle used by the transfer scheduler."""

    def reserve(self, key: Hashable, size: int) -> CacheHandle: ...

    def commit(self, handle: CacheHandle) -> bool: ...

    def evict(self, handle: CacheHandle, cancel: bool = False) -> bool: ...

    def release(self, handle: CacheHandle) -> bool: ...

    def size_bytes(self) -> int: ...

    def entry_count(self) -> int: ...


@runtime_checkable
class NetworkIOProtocol(Protocol):
    """Hooks called from the socket read paths."""

    def on_udp_datagram(
        self,
        source: Any,
        solicited: bool = False,
        well_formed: bool = True,
    ) -> bool: ...

    def on_incoming_accepted(self, remote: Any) -> bool: ...


@runtime_checkable
class BufferPoolProtocol(Protocol):
    """Buffer leasing used by network and disk I/O."""

    def acquire(self, size: int, sensitive: bool | None = None) -> bytearray: ...

    def release(self, buffer: bytearray) -> bool: ...

    def size_bytes(self) -> int: ...
