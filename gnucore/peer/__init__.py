"""Overlay connection accounting and topology role policy."""

from gnucore.peer.registry import Connection, ConnectionCounts, ConnectionRegistry
from gnucore.peer.topology import TopologyPolicy

__all__ = [
    "Connection",
    "ConnectionCounts",
    "ConnectionRegistry",
    "TopologyPolicy",
]
