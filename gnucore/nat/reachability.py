"""Inbound reachability latches.

Each latch starts OFF and turns ON the first time the network sees evidence
for it. Nothing turns a latch back OFF for the life of the process.

Loopback traffic is never evidence of reachability.
"""

from __future__ import annotations

import ipaddress
import threading
from typing import Any

from gnucore.utils.events import EventDispatcher, EventHandler, EventType
from gnucore.utils.exceptions import ValidationError
from gnucore.utils.logging_config import get_logger

Endpoint = tuple[str, int]


def is_loopback(source: str | Endpoint) -> bool:
    """Return True if ``source`` is a loopback address.

    Hostnames other than ``localhost`` count as non-loopback.
    """
    host = source[0] if isinstance(source, tuple) else source
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return host == "localhost"


class ReachabilityProbe:
    """Tracks whether this node can be reached from outside."""

    LATCHES = ("guess_capable", "accepted_incoming", "can_receive_solicited")

    def __init__(self, port: int = 0) -> None:
        self._latches = dict.fromkeys(self.LATCHES, False)
        self._port = 0
        self._lock = threading.Lock()
        self.events = EventDispatcher("reachability")
        self.logger = get_logger(__name__)
        self.stats = {
            "datagrams_seen": 0,
            "datagrams_ignored": 0,
            "incoming_accepted": 0,
        }
        self.set_port(port)

    def add_listener(self, handler: EventHandler) -> None:
        """Receive REACHABILITY_CHANGED when a latch first turns on."""
        self.events.register_handler(handler)

    def remove_listener(self, handler: EventHandler) -> None:
        self.events.unregister_handler(handler)

    def _latch(self, name: str, source: str | Endpoint) -> bool:
        with self._lock:
            if self._latches[name]:
                return False
            self._latches[name] = True

        self.logger.info("Reachability %s latched ON (source %s)", name, source)
        self.events.dispatch(
            EventType.REACHABILITY_CHANGED,
            latch=name,
            value=True,
            source=source,
        )
        return True

    def on_udp_datagram(
        self,
        source: str | Endpoint,
        solicited: bool = False,
        well_formed: bool = True,
    ) -> bool:
        """Record a datagram received on the listening UDP port.

        Args:
            source: Sender address, as a host or ``(host, port)``
            solicited: The datagram answers a request this node sent
            well_formed: The datagram parsed as a protocol message

        Returns:
            True if this datagram turned a latch on

        """
        self.stats["datagrams_seen"] += 1
        if not well_formed or is_loopback(source):
            self.stats["datagrams_ignored"] += 1
            return False
        if solicited:
            return self._latch("can_receive_solicited", source)
        return self._latch("guess_capable", source)

    def on_incoming_accepted(self, remote: str | Endpoint) -> bool:
        """A remote-initiated TCP connection completed its handshake."""
        if is_loopback(remote):
            return False
        self.stats["incoming_accepted"] += 1
        return self._latch("accepted_incoming", remote)

    def set_port(self, port: int) -> None:
        if not 0 <= port <= 65535:
            msg = f"Invalid listening port {port}"
            raise ValidationError(msg, {"port": port})
        if port != self._port:
            self.logger.debug("Listening port set to %d", port)
        self._port = port

    @property
    def port(self) -> int:
        return self._port

    @property
    def guess_capable(self) -> bool:
        return self._latches["guess_capable"]

    @property
    def accepted_incoming(self) -> bool:
        return self._latches["accepted_incoming"]

    @property
    def can_receive_solicited(self) -> bool:
        return self._latches["can_receive_solicited"]

    def get_stats(self) -> dict[str, Any]:
        return {"port": self._port, **self._latches, **self.stats}
