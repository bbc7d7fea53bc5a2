"""
Intent Module

Funding-plan construction and the intent approval / execution lifecycle.
"""

from .engine import IntentEngine, new_intent_id, select_sources
from .models import (
    INTENT_TRANSITIONS,
    TERMINAL_STATUSES,
    Intent,
    IntentDestination,
    IntentFees,
    IntentSource,
    IntentStatus,
    IntentTransition,
    can_transition,
)

__all__ = [
    # Engine
    "IntentEngine",
    "new_intent_id",
    "select_sources",
    # Models
    "Intent",
    "IntentDestination",
    "IntentFees",
    "IntentSource",
    "IntentStatus",
    "IntentTransition",
    "INTENT_TRANSITIONS",
    "TERMINAL_STATUSES",
    "can_transition",
]
