"""Shared dependencies and error translation for the HTTP routers."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException

from ..core.amounts import parse_token_amount
from ..core.errors import (
    ConnectivityError,
    ExecutionFailure,
    IntentConflictError,
    InvalidTransitionError,
    NexusError,
    RefreshError,
)
from ..core.session import SessionManager, SessionNotFoundError
from ..core.tokens import get_token

logger = logging.getLogger(__name__)

_MANAGER: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    global _MANAGER
    if _MANAGER is None:
        _MANAGER = SessionManager()
    return _MANAGER


def to_base_units(token: str, amount: str) -> int:
    """Parse a human-readable amount of ``token`` into base units."""
    return parse_token_amount(amount, get_token(token).decimals)


def to_http_exception(exc: Exception) -> HTTPException:
    """Map orchestrator errors onto HTTP status codes."""
    if isinstance(exc, SessionNotFoundError):
        status = 404
    elif isinstance(exc, (ConnectivityError, IntentConflictError, InvalidTransitionError)):
        status = 409
    elif isinstance(exc, (RefreshError, ExecutionFailure)):
        status = 502
    elif isinstance(exc, ValueError):
        status = 400
    else:
        logger.exception("Unhandled error in request", exc_info=exc)
        return HTTPException(status_code=500, detail="Internal error")

    detail = exc.to_dict() if isinstance(exc, NexusError) else {"message": str(exc)}
    return HTTPException(status_code=status, detail=detail)
