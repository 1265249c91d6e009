"""Session composition, demand accounting and the diagnostics facade."""

from gnucore.session.core import SessionCore
from gnucore.session.demand import TransferDemandTracker
from gnucore.session.info import SessionInfo, SessionSnapshot

__all__ = [
    "SessionCore",
    "SessionInfo",
    "SessionSnapshot",
    "TransferDemandTracker",
]
