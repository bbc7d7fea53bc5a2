"""
Intent Models

Defines the intent lifecycle states, their legal transitions and the immutable
intent record. Every status change produces a new ``Intent`` so that an entry
moved into history can never be modified afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from ..errors import InvalidTransitionError


class IntentStatus(str, Enum):
    """States an intent can be in."""

    PENDING = "pending"        # Quoted, awaiting the user's decision
    APPROVED = "approved"      # Accepted by the user, not yet submitted
    EXECUTING = "executing"    # Submitted to solvers, awaiting settlement
    COMPLETED = "completed"    # Settled on the destination chain
    FAILED = "failed"          # Denied by the user or failed to settle


INTENT_TRANSITIONS: Dict[IntentStatus, FrozenSet[IntentStatus]] = {
    IntentStatus.PENDING: frozenset({IntentStatus.APPROVED, IntentStatus.FAILED}),
    IntentStatus.APPROVED: frozenset({IntentStatus.EXECUTING, IntentStatus.FAILED}),
    IntentStatus.EXECUTING: frozenset({IntentStatus.COMPLETED, IntentStatus.FAILED}),
    IntentStatus.COMPLETED: frozenset(),
    IntentStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[IntentStatus] = frozenset({IntentStatus.COMPLETED, IntentStatus.FAILED})


def can_transition(from_status: IntentStatus, to_status: IntentStatus) -> bool:
    return to_status in INTENT_TRANSITIONS.get(from_status, frozenset())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IntentSource:
    """One funding leg of an intent."""

    chain_id: int
    chain_name: str
    amount: int
    formatted_amount: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "amount": str(self.amount),
            "formattedAmount": self.formatted_amount,
        }


@dataclass(frozen=True)
class IntentDestination:
    chain_id: int
    chain_name: str
    amount: int
    formatted_amount: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "amount": str(self.amount),
            "formattedAmount": self.formatted_amount,
        }


@dataclass(frozen=True)
class IntentFees:
    bridge_fee: int
    gas_fee: int
    total_fee: int
    formatted_bridge_fee: str
    formatted_gas_fee: str
    formatted_total_fee: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bridgeFee": str(self.bridge_fee),
            "gasFee": str(self.gas_fee),
            "totalFee": str(self.total_fee),
            "formattedBridgeFee": self.formatted_bridge_fee,
            "formattedGasFee": self.formatted_gas_fee,
            "formattedTotalFee": self.formatted_total_fee,
        }


@dataclass(frozen=True)
class IntentTransition:
    """Record of a status change."""

    from_status: IntentStatus
    to_status: IntentStatus
    timestamp: datetime = field(default_factory=_utcnow)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromStatus": self.from_status.value,
            "toStatus": self.to_status.value,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Intent:
    """A resolved funding plan for "``amount`` of ``token`` on the destination chain"."""

    id: str
    token: str
    decimals: int
    amount: int
    sources: Tuple[IntentSource, ...]
    destination: IntentDestination
    fees: IntentFees
    estimated_time: int
    status: IntentStatus = IntentStatus.PENDING
    shortfall: int = 0
    tx_hash: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    transitions: Tuple[IntentTransition, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return not self.is_terminal

    @property
    def is_fully_funded(self) -> bool:
        return self.shortfall == 0

    @property
    def source_total(self) -> int:
        return sum(source.amount for source in self.sources)

    def transition(
        self,
        to_status: IntentStatus,
        *,
        reason: Optional[str] = None,
        tx_hash: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> "Intent":
        """
        Return a copy of this intent in ``to_status``.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if not can_transition(self.status, to_status):
            allowed = sorted(s.value for s in INTENT_TRANSITIONS.get(self.status, frozenset()))
            raise InvalidTransitionError(
                from_status=self.status,
                to_status=to_status,
                message=(
                    f"Invalid intent transition from {self.status.value} to {to_status.value}. "
                    f"Allowed: {allowed}"
                ),
            )

        record = IntentTransition(from_status=self.status, to_status=to_status, reason=reason)
        return replace(
            self,
            status=to_status,
            tx_hash=tx_hash if tx_hash is not None else self.tx_hash,
            error_message=error_message if error_message is not None else self.error_message,
            updated_at=record.timestamp,
            transitions=self.transitions + (record,),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "decimals": self.decimals,
            "amount": str(self.amount),
            "sources": [source.to_dict() for source in self.sources],
            "destination": self.destination.to_dict(),
            "fees": self.fees.to_dict(),
            "estimatedTime": self.estimated_time,
            "status": self.status.value,
            "shortfall": str(self.shortfall),
            "txHash": self.tx_hash,
            "errorMessage": self.error_message,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "transitions": [t.to_dict() for t in self.transitions],
        }
