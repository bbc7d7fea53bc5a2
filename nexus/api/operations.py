from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from ..core.errors import NexusError
from ..core.pipeline import EventStream, OperationResult
from ..core.session import SessionManager
from .deps import get_session_manager, to_base_units, to_http_exception


router = APIRouter(prefix="/sessions/{address}")


class BridgeRequest(BaseModel):
    token: str = Field(description="Token symbol, e.g. USDC")
    amount: str = Field(description="Human-readable amount of the token")
    to_chain_id: int = Field(description="Destination chain id")
    source_chains: Optional[List[int]] = Field(default=None, description="Eligible source chains, in priority order")


class TransferRequest(BridgeRequest):
    recipient: str = Field(description="Address receiving the bridged funds")


class SwapExactInRequest(BaseModel):
    from_token: str
    from_chain_id: int
    amount: str = Field(description="Human-readable amount of from_token to sell")
    to_token: str
    to_chain_id: int


class SwapExactOutRequest(BaseModel):
    from_token: str
    from_chain_id: int
    max_amount: str = Field(description="Most from_token the caller is willing to spend")
    to_token: str
    to_chain_id: int
    to_amount: str = Field(description="Human-readable amount of to_token to receive")


class SwapQuoteRequest(BaseModel):
    from_token: str
    from_chain_id: int
    to_token: str
    to_chain_id: int
    amount_in: Optional[str] = Field(default=None, description="Exact amount of from_token to sell")
    amount_out: Optional[str] = Field(default=None, description="Exact amount of to_token to buy")

    @model_validator(mode="after")
    def _one_amount(self) -> "SwapQuoteRequest":
        if (self.amount_in is None) == (self.amount_out is None):
            raise ValueError("Provide exactly one of amount_in or amount_out")
        return self


def _operation_response(result: OperationResult, stream: EventStream) -> Dict[str, Any]:
    return {
        "result": result.to_dict(),
        "events": [event.to_dict() for event in stream.events],
    }


@router.post("/bridge")
async def bridge(
    address: str,
    req: BridgeRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        session = manager.get(address)
        amount = to_base_units(req.token, req.amount)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc

    stream = EventStream("bridge", listeners=session.listeners)
    result = await session.bridge(req.token, amount, req.to_chain_id, req.source_chains, stream=stream)
    return _operation_response(result, stream)


@router.post("/bridge/transfer")
async def bridge_and_transfer(
    address: str,
    req: TransferRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        session = manager.get(address)
        amount = to_base_units(req.token, req.amount)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc

    stream = EventStream("bridge_and_transfer", listeners=session.listeners)
    result = await session.bridge_and_transfer(
        req.token, amount, req.to_chain_id, req.recipient, req.source_chains, stream=stream
    )
    return _operation_response(result, stream)


@router.post("/swap/exact-in")
async def swap_exact_in(
    address: str,
    req: SwapExactInRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        session = manager.get(address)
        amount = to_base_units(req.from_token, req.amount)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc

    stream = EventStream("swap_exact_in", listeners=session.listeners)
    result = await session.swap_exact_in(
        req.from_token, req.from_chain_id, amount, req.to_token, req.to_chain_id, stream=stream
    )
    return _operation_response(result, stream)


@router.post("/swap/exact-out")
async def swap_exact_out(
    address: str,
    req: SwapExactOutRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        session = manager.get(address)
        max_amount = to_base_units(req.from_token, req.max_amount)
        to_amount = to_base_units(req.to_token, req.to_amount)
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc

    stream = EventStream("swap_exact_out", listeners=session.listeners)
    result = await session.swap_exact_out(
        req.from_token,
        req.from_chain_id,
        max_amount,
        req.to_token,
        req.to_chain_id,
        to_amount,
        stream=stream,
    )
    return _operation_response(result, stream)


@router.post("/swap/quote")
async def quote_swap(
    address: str,
    req: SwapQuoteRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    try:
        session = manager.get(address)
        quote = await session.quote_swap(
            req.from_token,
            req.from_chain_id,
            req.to_token,
            req.to_chain_id,
            amount_in=to_base_units(req.from_token, req.amount_in) if req.amount_in is not None else None,
            amount_out=to_base_units(req.to_token, req.amount_out) if req.amount_out is not None else None,
        )
    except (NexusError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return {"quote": quote.to_dict()}
