"""
Error taxonomy for the orchestrator.

Connectivity and refresh errors surface on the session as a recoverable error
state. Execution failures are raised inside operation scripts and converted to
``success=False`` results at the pipeline boundary. Intent denial is not an
error.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories used to decide how an error surfaces."""

    CONNECTIVITY = "connectivity"   # No connected identity
    REFRESH = "refresh"             # Balance / allowance fetch failed
    EXECUTION = "execution"         # Operation script failed
    TRANSITION = "transition"       # Illegal intent state change
    CONFLICT = "conflict"           # Single-writer slot already taken
    VALIDATION = "validation"       # Bad caller input


class NexusError(Exception):
    """Base class for orchestrator errors."""

    category: ErrorCategory = ErrorCategory.EXECUTION
    recoverable: bool = True

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "message": self.message,
            "code": self.code,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ConnectivityError(NexusError):
    """An operation needing a connected identity ran without one."""

    category = ErrorCategory.CONNECTIVITY

    def __init__(self, message: str = "No wallet connected", **kwargs: Any):
        super().__init__(message, code=kwargs.pop("code", "NOT_CONNECTED"), **kwargs)


class RefreshError(NexusError):
    """Fetching balances or allowances failed."""

    category = ErrorCategory.REFRESH


class ExecutionFailure(NexusError):
    """An operation's internal script failed."""

    category = ErrorCategory.EXECUTION


class InvalidTransitionError(NexusError):
    """Raised when an intent is asked to make an illegal status change."""

    category = ErrorCategory.TRANSITION
    recoverable = False

    def __init__(self, from_status: Any, to_status: Any, message: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Cannot transition from {from_status.value} to {to_status.value}",
            code="INVALID_TRANSITION",
            context={"from": from_status.value, "to": to_status.value},
        )


class IntentConflictError(NexusError):
    """Another intent already occupies the session's current-intent slot."""

    category = ErrorCategory.CONFLICT

    def __init__(self, active_intent_id: Optional[str] = None):
        self.active_intent_id = active_intent_id
        super().__init__(
            f"Intent {active_intent_id} is still active" if active_intent_id else "Another intent is being created",
            code="INTENT_ACTIVE",
            context={"activeIntentId": active_intent_id},
        )


class UnknownTokenError(NexusError, ValueError):
    """Token symbol is not in the registry."""

    category = ErrorCategory.VALIDATION
    recoverable = False

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Unknown token: {symbol}", code="UNKNOWN_TOKEN", context={"symbol": symbol})


__all__ = [
    "ErrorCategory",
    "NexusError",
    "ConnectivityError",
    "RefreshError",
    "ExecutionFailure",
    "InvalidTransitionError",
    "IntentConflictError",
    "UnknownTokenError",
]
