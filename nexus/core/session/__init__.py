"""
Session Module

Per-identity session state, the orchestrator that drives it and a registry of
sessions keyed by address.
"""

from .manager import SessionManager, SessionNotFoundError
from .orchestrator import NexusSession, SessionEventName
from .state import SessionState

__all__ = [
    "NexusSession",
    "SessionEventName",
    "SessionManager",
    "SessionNotFoundError",
    "SessionState",
]
