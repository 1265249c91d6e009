"""Reachability tracking for gnucore."""

from gnucore.nat.reachability import ReachabilityProbe, is_loopback

__all__ = ["ReachabilityProbe", "is_loopback"]
