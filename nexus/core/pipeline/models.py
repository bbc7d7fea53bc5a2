"""Typed models used by the operation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class EventName(str, Enum):
    """Progress events emitted by pipeline operations."""

    STEPS_LIST = "STEPS_LIST"
    INTENT_CREATED = "INTENT_CREATED"
    STEP_COMPLETE = "STEP_COMPLETE"
    TRANSFER_COMPLETE = "TRANSFER_COMPLETE"
    SWAP_COMPLETE = "SWAP_COMPLETE"


BRIDGE_STEPS: Tuple[str, ...] = ("allowance", "deposit", "bridge", "receive")
TRANSFER_STEPS: Tuple[str, ...] = BRIDGE_STEPS + ("transfer",)
SWAP_STEPS: Tuple[str, ...] = ("allowance", "swap", "bridge", "receive")


@dataclass(frozen=True)
class NexusEvent:
    """A progress notification; purely observational."""

    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0  # epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "args": self.args, "timestamp": self.timestamp}


class SwapMode(str, Enum):
    EXACT_IN = "exactIn"
    EXACT_OUT = "exactOut"


@dataclass(frozen=True)
class SwapQuote:
    mode: SwapMode
    from_token: str
    from_chain_id: int
    to_token: str
    to_chain_id: int
    input_amount: int
    output_amount: int
    rate: Decimal  # whole to-tokens per whole from-token

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "fromToken": self.from_token,
            "fromChainId": self.from_chain_id,
            "toToken": self.to_token,
            "toChainId": self.to_chain_id,
            "inputAmount": str(self.input_amount),
            "outputAmount": str(self.output_amount),
            "rate": format(self.rate.quantize(Decimal("1e-8")), "f"),
        }


@dataclass
class OperationResult:
    """Outcome of a pipeline operation. Callers check ``success``; failures are never raised."""

    success: bool
    tx_hash: Optional[str] = None
    output_amount: Optional[int] = None
    input_amount: Optional[int] = None
    intent_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.tx_hash:
            result["txHash"] = self.tx_hash
        if self.output_amount is not None:
            result["outputAmount"] = str(self.output_amount)
        if self.input_amount is not None:
            result["inputAmount"] = str(self.input_amount)
        if self.intent_id:
            result["intentId"] = self.intent_id
        if self.error:
            result["error"] = self.error
        return result
