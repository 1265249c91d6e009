"""Local ultrapeer promotion/demotion policy.

The policy has no coordinator and never polls. It listens to the
connection registry and re-evaluates the node role on every connect and
disconnect, and whenever the handshake layer reports a new uplink signal
or a failed outgoing ultrapeer connection.

Promotion: a LEAF becomes an ULTRAPEER_CANDIDATE when it holds no outgoing
ultrapeer-to-leaf connections and its uplink qualifies. A candidate is
confirmed as ULTRAPEER once an outgoing ultrapeer-to-ultrapeer connection
is established.

Demotion: a candidate or ultrapeer falls back to LEAF when outgoing
ultrapeer connections keep failing inside the retry window while none is
live, or (for a candidate) when the uplink stops qualifying. After a
failure-driven demotion the node stays a LEAF for one retry window before
it may become a candidate again.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import TYPE_CHECKING

from gnucore.models import ConnectionRole, Direction, NodeRole
from gnucore.utils.events import Event, EventDispatcher, EventHandler, EventType
from gnucore.utils.time import Clock

if TYPE_CHECKING:  # pragma: no cover
    from gnucore.models import TopologyConfig
    from gnucore.session.types import HandshakeSinkProtocol


class TopologyPolicy(EventHandler):
    """Decides the node role from registry counts and handshake signals."""

    def __init__(
        self,
        registry: HandshakeSinkProtocol,
        retry_window: float = 300.0,
        max_failures: int = 5,
        enable_promotion: bool = True,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the policy and subscribe it to ``registry``.

        Args:
            registry: Registry whose counts drive the policy
            retry_window: Seconds over which failed ultrapeer connects are
                counted, and how long a demoted node waits before promotion
            max_failures: Failures inside the window that force demotion
            enable_promotion: Allow leaving the LEAF role at all
            clock: Clock used to age failures

        """
        super().__init__("topology_policy")
        self.registry = registry
        self.retry_window = retry_window
        self.max_failures = max_failures
        self.enable_promotion = enable_promotion
        self.clock = clock or Clock()

        self._role = NodeRole.LEAF
        self._uplink_capable = False
        self._failures: deque[float] = deque()
        self._demoted_at: float | None = None
        self._lock = threading.RLock()
        self.events = EventDispatcher("topology_policy")
        registry.add_listener(self)

    @classmethod
    def from_config(
        cls,
        registry: HandshakeSinkProtocol,
        config: TopologyConfig,
        clock: Clock | None = None,
    ) -> TopologyPolicy:
        return cls(
            registry,
            retry_window=config.ultrapeer_retry_window,
            max_failures=config.ultrapeer_max_failures,
            enable_promotion=config.enable_promotion,
            clock=clock,
        )

    @property
    def role(self) -> NodeRole:
        return self._role

    @property
    def uplink_capable(self) -> bool:
        return self._uplink_capable

    def add_listener(self, handler: EventHandler) -> None:
        """Receive NODE_ROLE_CHANGED events."""
        self.events.register_handler(handler)

    def remove_listener(self, handler: EventHandler) -> None:
        self.events.unregister_handler(handler)

    def detach(self) -> None:
        """Stop listening to the registry."""
        self.registry.remove_listener(self)

    # Inputs

    def handle(self, event: Event) -> None:
        """Registry listener: re-evaluate on every connection change."""
        self.evaluate()

    def can_handle(self, event: Event) -> bool:
        return event.event_type in (
            EventType.CONNECTION_OPENED.value,
            EventType.CONNECTION_CLOSED.value,
        )

    def set_uplink_capable(self, capable: bool) -> NodeRole:
        """Record the externally measured uplink/capability signal."""
        with self._lock:
            self._uplink_capable = bool(capable)
        return self.evaluate()

    def on_ultrapeer_connect_failed(self) -> NodeRole:
        """An outgoing ultrapeer connection attempt failed to establish."""
        with self._lock:
            self._failures.append(self.clock.monotonic())
        return self.evaluate()

    def promotion_hold_off(self) -> float:
        """Seconds left before a demoted node may become a candidate again."""
        with self._lock:
            return self._hold_off_remaining()

    def recent_failures(self) -> int:
        """Failed ultrapeer connects still inside the retry window."""
        with self._lock:
            self._expire_failures()
            return len(self._failures)

    # Decision

    def _expire_failures(self) -> None:
        cutoff = self.clock.monotonic() - self.retry_window
        while self._failures and self._failures[0] < cutoff:
            self._failures.popleft()

    def _hold_off_remaining(self) -> float:
        if self._demoted_at is None:
            return 0.0
        remaining = self._demoted_at + self.retry_window - self.clock.monotonic()
        if remaining <= 0:
            self._demoted_at = None
            return 0.0
        return remaining

    def evaluate(self) -> NodeRole:
        """Apply the policy to the current counts and signals."""
        with self._lock:
            # A stale snapshot must not override a newer decision
            counts = self.registry.counts()
            leaf_links = counts[(ConnectionRole.ULTRAPEER_TO_LEAF, Direction.OUTBOUND)]
            ultrapeer_links = counts[
                (ConnectionRole.ULTRAPEER_TO_ULTRAPEER, Direction.OUTBOUND)
            ]
            self._expire_failures()
            held_off = self._hold_off_remaining() > 0
            old = self._role
            new = old

            if old is NodeRole.LEAF:
                if (
                    self.enable_promotion
                    and self._uplink_capable
                    and leaf_links == 0
                    and not held_off
                ):
                    new = NodeRole.ULTRAPEER_CANDIDATE
            elif ultrapeer_links == 0 and len(self._failures) >= self.max_failures:
                new = NodeRole.LEAF
                self._demoted_at = self.clock.monotonic()
            elif old is NodeRole.ULTRAPEER_CANDIDATE:
                if not self._uplink_capable:
                    new = NodeRole.LEAF
                elif ultrapeer_links > 0:
                    new = NodeRole.ULTRAPEER

            if new is NodeRole.LEAF and old is not NodeRole.LEAF:
                self._failures.clear()
            self._role = new

        if new is not old:
            verb = "Demoted" if new is NodeRole.LEAF else "Promoted"
            self.logger.info(
                "%s to %s (outgoing leaf links=%d, ultrapeer links=%d)",
                verb,
                new.value,
                leaf_links,
                ultrapeer_links,
            )
            self.events.dispatch(
                EventType.NODE_ROLE_CHANGED,
                old_role=old,
                new_role=new,
            )
        return new
