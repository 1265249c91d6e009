"""gnucore - peer session and resource accounting for a Gnutella-style node."""

from __future__ import annotations

__version__ = "0.1.0"
