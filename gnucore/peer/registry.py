"""Registry of live overlay connections.

Each connection carries exactly one role and one direction for its whole
life. A role change is modelled as a disconnect followed by a fresh connect
with a new id, so readers never see a connection change role under them.

Counts are kept per (role, direction) pair and can be read without taking
the registry lock. Under concurrent churn a reader may see the pairs at
slightly different instants.
"""

from __future__ import annotations

import ipaddress
import itertools
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from gnucore.models import ConnectionRole, Direction
from gnucore.utils.counters import AccountingCounter
from gnucore.utils.events import EventDispatcher, EventHandler, EventType
from gnucore.utils.exceptions import ValidationError
from gnucore.utils.logging_config import get_logger

Endpoint = tuple[str, int]
ConnectionCounts = dict[tuple[ConnectionRole, Direction], int]


@dataclass(frozen=True)
class Connection:
    """A live overlay connection as seen by the accounting core."""

    connection_id: int
    role: ConnectionRole
    direction: Direction
    remote: Endpoint | None = None
    established_at: float = field(default_factory=time.time)


_HOSTNAME = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*\.?$"
)


def _check_endpoint(remote: Endpoint | None) -> None:
    """Accept ``(ip-or-hostname, port)`` with a port in 1..65535."""
    if remote is None:
        return
    if not isinstance(remote, tuple) or len(remote) != 2:
        msg = f"Remote endpoint must be a (host, port) pair, got {remote!r}"
        raise ValidationError(msg, {"remote": remote})

    host, port = remote
    if not isinstance(host, str):
        msg = f"Invalid remote address {host!r}"
        raise ValidationError(msg, {"remote": remote})
    try:
        ipaddress.ip_address(host)
    except ValueError as e:
        if not _HOSTNAME.match(host):
            msg = f"Invalid remote address {host!r}"
            raise ValidationError(msg, {"remote": remote}) from e

    # bool is an int subclass but never a port
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port <= 65535:
        msg = f"Invalid remote port {port!r}"
        raise ValidationError(msg, {"remote": remote})


class ConnectionRegistry:
    """Tracks every live connection by role and direction."""

    def __init__(self, strict_counters: bool = False) -> None:
        """Initialize the registry.

        Args:
            strict_counters: Raise on waiting-socket underflow instead of clamping

        """
        self._connections: dict[int, Connection] = {}
        self._counts: ConnectionCounts = {
            (role, direction): 0
            for role in ConnectionRole
            for direction in Direction
        }
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._waiting_sockets = AccountingCounter(
            "waiting_sockets", strict=strict_counters
        )
        self.events = EventDispatcher("connection_registry")
        self.logger = get_logger(__name__)
        self.stats = {
            "connects": 0,
            "disconnects": 0,
            "unknown_disconnects": 0,
        }

    def add_listener(self, handler: EventHandler) -> None:
        """Call ``handler`` after every connect and disconnect."""
        self.events.register_handler(handler)

    def remove_listener(self, handler: EventHandler) -> None:
        self.events.unregister_handler(handler)

    def on_connected(
        self,
        role: ConnectionRole,
        direction: Direction,
        remote: Endpoint | None = None,
    ) -> Connection:
        """Register a freshly established connection.

        Returns:
            The new connection, carrying the id used to disconnect it later

        """
        role = ConnectionRole(role)
        direction = Direction(direction)
        _check_endpoint(remote)

        with self._lock:
            connection = Connection(next(self._ids), role, direction, remote)
            self._connections[connection.connection_id] = connection
            self._counts[(role, direction)] += 1
            self.stats["connects"] += 1

        self.logger.debug(
            "Connection %d opened: %s %s %s",
            connection.connection_id,
            role.value,
            direction.value,
            remote,
        )
        self.events.dispatch(
            EventType.CONNECTION_OPENED,
            connection=connection,
        )
        return connection

    def on_disconnected(self, connection_id: int) -> Connection | None:
        """Remove a connection.

        Returns:
            The removed connection, or None when the id is unknown (a
            duplicate or stale close from the network layer; logged no-op)

        """
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is not None:
                self._counts[(connection.role, connection.direction)] -= 1
                self.stats["disconnects"] += 1
            else:
                self.stats["unknown_disconnects"] += 1

        if connection is None:
            self.logger.warning(
                "Ignoring disconnect for unknown connection id %s", connection_id
            )
            return None

        self.logger.debug(
            "Connection %d closed after %.1fs",
            connection_id,
            time.time() - connection.established_at,
        )
        self.events.dispatch(
            EventType.CONNECTION_CLOSED,
            connection=connection,
        )
        return connection

    def renegotiate(
        self, connection_id: int, new_role: ConnectionRole
    ) -> Connection | None:
        """Change a connection's role by closing it and registering a new one.

        Returns:
            The replacement connection (with a new id), or None if the id is unknown

        """
        old = self.on_disconnected(connection_id)
        if old is None:
            return None
        return self.on_connected(new_role, old.direction, old.remote)

    def counts(self) -> ConnectionCounts:
        """Per (role, direction) counts; all pairs are always present."""
        # Keys are fixed at construction; only values change
        return dict(self._counts)

    def count(self, role: ConnectionRole, direction: Direction | None = None) -> int:
        """Connections with ``role``, in one direction or both."""
        if direction is not None:
            return self._counts[(ConnectionRole(role), Direction(direction))]
        return sum(
            self._counts[(ConnectionRole(role), d)] for d in Direction
        )

    def get(self, connection_id: int) -> Connection | None:
        return self._connections.get(connection_id)

    def connections(self) -> list[Connection]:
        """Snapshot of live connections, oldest first."""
        with self._lock:
            return sorted(self._connections.values(), key=lambda c: c.connection_id)

    def __len__(self) -> int:
        return len(self._connections)

    # Sockets accepted or dialled but still in the handshake

    def socket_waiting(self) -> int:
        return self._waiting_sockets.increment()

    def socket_resolved(self) -> int:
        """A waiting socket finished its handshake, or gave up."""
        return self._waiting_sockets.decrement()

    @property
    def waiting_sockets(self) -> int:
        return self._waiting_sockets.value

    def get_stats(self) -> dict[str, Any]:
        return {
            "live": len(self._connections),
            "waiting_sockets": self._waiting_sockets.value,
            "counts": {
                f"{role.value}/{direction.value}": value
                for (role, direction), value in self.counts().items()
            },
            **self.stats,
        }
