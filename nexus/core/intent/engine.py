"""
Intent Engine

Builds a funding plan for "N tokens on chain X" from the session's unified
balances and drives it through the approval / execution lifecycle:

    pending -> approved -> executing -> completed
       |           |           |
       +-----------+-----------+--> failed

Only one intent may be active per session. Approve and deny act on the current
intent only; for any other id they do nothing and return ``None``.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING, List, Optional, Sequence

from ...config import Settings, settings as default_settings
from ...providers.base import SettlementService
from ..amounts import format_token_amount
from ..balances import TokenBalance, UnifiedBalances
from ..chains import chain_name
from ..errors import ExecutionFailure
from ..tokens import normalize_symbol, token_decimals
from .models import Intent, IntentDestination, IntentFees, IntentSource, IntentStatus

if TYPE_CHECKING:  # pragma: no cover
    from ..session.state import SessionState

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18
BPS_DENOMINATOR = 10_000


def new_intent_id() -> str:
    return f"intent-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def select_sources(
    token_balance: Optional[TokenBalance],
    amount: int,
    eligible_chains: Sequence[int],
) -> List[IntentSource]:
    """Greedily draw ``amount`` from ``eligible_chains`` in the given order.

    Each chain contributes ``min(balance, remaining)``; chains without a
    balance are skipped and the walk stops once the amount is covered.
    """
    sources: List[IntentSource] = []
    if token_balance is None:
        return sources

    remaining = amount
    for chain_id in eligible_chains:
        if remaining <= 0:
            break
        available = token_balance.balance_on(chain_id)
        if available <= 0:
            continue
        used = min(available, remaining)
        sources.append(
            IntentSource(
                chain_id=chain_id,
                chain_name=chain_name(chain_id),
                amount=used,
                formatted_amount=format_token_amount(used, token_balance.decimals),
            )
        )
        remaining -= used
    return sources


class IntentEngine:
    """
    Constructs intents and runs them to a terminal state.

    The engine holds no session data of its own: every call receives the
    ``SessionState`` it operates on and releases it when the call returns.
    """

    def __init__(
        self,
        settlement: SettlementService,
        config: Optional[Settings] = None,
    ) -> None:
        self._settlement = settlement
        self._settings = config or default_settings

    def compute_fees(self, amount: int, decimals: int) -> IntentFees:
        bridge_fee = amount * self._settings.bridge_fee_bps // BPS_DENOMINATOR
        gas_fee = self._settings.gas_fee_wei
        # Rough conversion of the native gas estimate into token units; no pricing.
        gas_in_token_units = gas_fee * 10 ** decimals // 10 ** NATIVE_DECIMALS

        formatted_bridge = format_token_amount(bridge_fee, decimals)
        formatted_gas = f"{format_token_amount(gas_fee, NATIVE_DECIMALS)} {self._settings.gas_fee_symbol}"
        return IntentFees(
            bridge_fee=bridge_fee,
            gas_fee=gas_fee,
            total_fee=bridge_fee + gas_in_token_units,
            formatted_bridge_fee=formatted_bridge,
            formatted_gas_fee=formatted_gas,
            formatted_total_fee=f"{formatted_bridge} + {formatted_gas}",
        )

    def build(
        self,
        balances: Optional[UnifiedBalances],
        token: str,
        amount: int,
        destination_chain_id: int,
        source_chains: Optional[Sequence[int]] = None,
        *,
        estimated_time: int = 0,
    ) -> Intent:
        """Resolve a funding plan without touching any session state."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"Intent amount must be a positive integer, got {amount!r}")

        symbol = normalize_symbol(token)
        token_balance = (balances or {}).get(symbol)
        decimals = token_balance.decimals if token_balance else token_decimals(symbol)

        eligible = list(source_chains) if source_chains else list(self._settings.default_source_chains)
        sources = select_sources(token_balance, amount, eligible)
        shortfall = amount - sum(source.amount for source in sources)

        fees = self.compute_fees(amount, decimals)
        net_amount = amount - fees.bridge_fee

        return Intent(
            id=new_intent_id(),
            token=symbol,
            decimals=decimals,
            amount=amount,
            sources=tuple(sources),
            destination=IntentDestination(
                chain_id=destination_chain_id,
                chain_name=chain_name(destination_chain_id),
                amount=net_amount,
                formatted_amount=format_token_amount(net_amount, decimals),
            ),
            fees=fees,
            estimated_time=estimated_time,
            shortfall=shortfall,
        )

    async def create(
        self,
        state: "SessionState",
        token: str,
        amount: int,
        destination_chain_id: int,
        source_chains: Optional[Sequence[int]] = None,
    ) -> Intent:
        """
        Build an intent and install it as the session's current intent.

        Raises:
            IntentConflictError: Another intent is active or being created
            ValueError: ``amount`` is not a positive integer
        """
        state.reserve_intent_slot()
        try:
            eligible = list(source_chains) if source_chains else list(self._settings.default_source_chains)
            estimated_time = await self._settlement.estimate_completion_seconds(eligible, destination_chain_id)
            intent = self.build(
                state.unified_balances,
                token,
                amount,
                destination_chain_id,
                source_chains,
                estimated_time=estimated_time,
            )
            state.install_intent(intent)
        finally:
            state.release_intent_slot()

        if intent.shortfall > 0:
            logger.warning(
                "Intent %s is underfunded: sources cover %s of %s %s",
                intent.id,
                format_token_amount(intent.source_total, intent.decimals),
                format_token_amount(intent.amount, intent.decimals),
                intent.token,
            )
        logger.info(
            "Intent %s created: %s %s -> %s from %d source(s)",
            intent.id,
            format_token_amount(intent.amount, intent.decimals),
            intent.token,
            intent.destination.chain_name,
            len(intent.sources),
        )
        return intent

    async def approve(self, state: "SessionState", intent_id: str) -> Optional[Intent]:
        """
        Approve the current pending intent and drive it to settlement.

        Returns the terminal (completed) intent, or ``None`` when ``intent_id``
        is not the current pending intent.

        Raises:
            ExecutionFailure: Submission or settlement failed; the intent is
                recorded in history as failed before this is raised
            asyncio.CancelledError: The caller cancelled while the intent was
                in flight; the intent is recorded in history as failed first
        """
        current = state.current_intent
        if current is None or current.id != intent_id or current.status != IntentStatus.PENDING:
            logger.warning("Ignoring approval of %s: not the current pending intent", intent_id)
            return None

        intent = current.transition(IntentStatus.APPROVED, reason="Approved by user")
        state.update_current_intent(intent)
        logger.info(f"Intent {intent.id}: pending -> approved")

        try:
            await self._settlement.submit_intent(intent)
            intent = intent.transition(IntentStatus.EXECUTING, reason="Submitted to solvers")
            state.update_current_intent(intent)
            logger.info(f"Intent {intent.id}: approved -> executing")

            tx_hash = await self._settlement.settle_intent(intent)
        except asyncio.CancelledError:
            failed = intent.transition(IntentStatus.FAILED, reason="Cancelled", error_message="Settlement cancelled")
            state.finalize_intent(failed)
            logger.warning(f"Intent {intent.id}: {intent.status.value} -> failed (cancelled)")
            raise
        except Exception as e:
            failed = intent.transition(IntentStatus.FAILED, reason="Settlement failed", error_message=str(e))
            state.finalize_intent(failed)
            logger.error(f"Intent {intent.id}: {intent.status.value} -> failed ({e})")
            raise ExecutionFailure(
                f"Intent {intent.id} failed to settle: {e}",
                code="SETTLEMENT_FAILED",
                context={"intentId": intent.id},
            ) from e

        completed = intent.transition(IntentStatus.COMPLETED, reason="Settled", tx_hash=tx_hash)
        if not state.finalize_intent(completed):
            logger.info("Intent %s settled after its session was detached; result discarded", intent.id)
        else:
            logger.info(f"Intent {intent.id}: executing -> completed ({tx_hash})")
        return completed

    def deny(self, state: "SessionState", intent_id: str) -> Optional[Intent]:
        """Reject the current pending intent; it goes straight to failed."""
        current = state.current_intent
        if current is None or current.id != intent_id or current.status != IntentStatus.PENDING:
            logger.warning("Ignoring denial of %s: not the current pending intent", intent_id)
            return None

        failed = current.transition(IntentStatus.FAILED, reason="Denied by user")
        state.finalize_intent(failed)
        logger.info(f"Intent {intent_id}: pending -> failed (denied)")
        return failed
