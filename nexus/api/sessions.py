from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..core.allowances import MAX_ALLOWANCE
from ..core.errors import NexusError
from ..core.session import SessionManager
from .deps import get_session_manager, to_base_units, to_http_exception


router = APIRouter(prefix="/sessions")


class AllowanceRequest(BaseModel):
    amount: str = Field(description="Human-readable amount, or 'max' for an unlimited approval")


class IntentRequest(BaseModel):
    token: str = Field(description="Token symbol, e.g. USDC")
    amount: str = Field(description="Human-readable amount of the token")
    to_chain_id: int = Field(description="Destination chain id")
    source_chains: Optional[List[int]] = Field(default=None, description="Eligible source chains, in priority order")


# ============================================================================
# Connection
# ============================================================================


@router.post("/{address}")
async def connect_session(address: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    try:
        session = await manager.connect(address)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return session.state.to_dict()


@router.get("/{address}")
async def get_session_state(address: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    try:
        session = manager.get(address)
    except NexusError as exc:
        raise to_http_exception(exc) from exc
    return session.state.to_dict()


@router.delete("/{address}")
async def disconnect_session(address: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    return {"address": address, "disconnected": manager.disconnect(address)}


# ============================================================================
# Balances
# ============================================================================


@router.get("/{address}/balances")
async def get_balances(address: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    try:
        state = manager.get(address).state
    except NexusError as exc:
        raise to_http_exception(exc) from exc
    return {
        "balances": state.balances.to_dict() if state.balances else None,
        "isLoading": state.is_loading_balances,
        "error": state.error,
    }


@router.post("/{address}/balances/refresh")
async def refresh_balances(address: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    try:
        snapshot = await manager.get(address).refresh_balances()
    except NexusError as exc:
        raise to_http_exception(exc) from exc
    return {"balances": snapshot.to_dict()}


# ============================================================================
# Allowances
# ============================================================================


@router.get("/{address}/allowances/{chain_id}")
async def get_allowances(
    address: str,
    chain_id: int,
    tokens: List[str] = Query(default=["USDC"]),
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        allowances = await manager.get(address).get_allowances(chain_id, tokens)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return {"chainId": chain_id, "allowances": [a.to_dict() for a in allowances]}


@router.put("/{address}/allowances/{chain_id}/{token}")
async def set_allowance(
    address: str,
    chain_id: int,
    token: str,
    req: AllowanceRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        session = manager.get(address)
        amount = MAX_ALLOWANCE if req.amount.strip().lower() == MAX_ALLOWANCE else to_base_units(token, req.amount)
        allowance = await session.set_allowance(chain_id, token, amount)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return {"chainId": chain_id, "allowance": allowance.to_dict()}


@router.delete("/{address}/allowances/{chain_id}/{token}")
async def revoke_allowance(
    address: str,
    chain_id: int,
    token: str,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        allowance = await manager.get(address).revoke_allowance(chain_id, token)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return {"chainId": chain_id, "allowance": allowance.to_dict()}


# ============================================================================
# Intents
# ============================================================================


@router.post("/{address}/intents")
async def create_intent(
    address: str,
    req: IntentRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        session = manager.get(address)
        amount = to_base_units(req.token, req.amount)
        intent = await session.create_intent(req.token, amount, req.to_chain_id, req.source_chains)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return {"intent": intent.to_dict()}


@router.get("/{address}/intents/current")
async def get_current_intent(address: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    try:
        state = manager.get(address).state
    except NexusError as exc:
        raise to_http_exception(exc) from exc
    return {"intent": state.current_intent.to_dict() if state.current_intent else None}


@router.get("/{address}/intents/history")
async def get_intent_history(address: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    try:
        state = manager.get(address).state
    except NexusError as exc:
        raise to_http_exception(exc) from exc
    return {"intents": [intent.to_dict() for intent in state.intent_history]}


@router.post("/{address}/intents/{intent_id}/approve")
async def approve_intent(
    address: str,
    intent_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        intent = await manager.get(address).approve_intent(intent_id)
    except NexusError as exc:
        raise to_http_exception(exc) from exc
    return {"applied": intent is not None, "intent": intent.to_dict() if intent else None}


@router.post("/{address}/intents/{intent_id}/deny")
async def deny_intent(
    address: str,
    intent_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        intent = manager.get(address).deny_intent(intent_id)
    except NexusError as exc:
        raise to_http_exception(exc) from exc
    return {"applied": intent is not None, "intent": intent.to_dict() if intent else None}
