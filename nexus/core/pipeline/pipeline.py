"""
Operation Pipeline

Bridge, bridge-and-transfer, swap-exact-in and swap-exact-out as short fixed
scripts of named steps. Every script emits its progress events in a fixed
order and resolves to an ``OperationResult``; exceptions raised inside a
script are logged and turned into ``success=False`` instead of propagating.

Event sequences:
    bridge               STEPS_LIST, INTENT_CREATED, STEP_COMPLETE
    bridge_and_transfer  STEPS_LIST, INTENT_CREATED, STEP_COMPLETE, TRANSFER_COMPLETE
    swap_exact_in/out    STEPS_LIST, SWAP_COMPLETE
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, ROUND_UP, Decimal, localcontext
from typing import TYPE_CHECKING, Optional, Sequence

from ...providers.base import SettlementService
from ..errors import ExecutionFailure
from ..intent import Intent, IntentEngine, IntentStatus
from ..tokens import get_token
from .events import EventCallback, EventStream
from .models import (
    BRIDGE_STEPS,
    SWAP_STEPS,
    TRANSFER_STEPS,
    EventName,
    OperationResult,
    SwapMode,
    SwapQuote,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..session.state import SessionState

logger = logging.getLogger(__name__)


def _convert(amount: int, from_decimals: int, to_decimals: int, rate: Decimal, rounding: str, invert: bool = False) -> int:
    """Convert base units of one token into base units of another at ``rate``."""
    with localcontext() as ctx:
        ctx.prec = 100
        whole = Decimal(amount) / (Decimal(10) ** from_decimals)
        converted = whole / rate if invert else whole * rate
        scaled = converted * (Decimal(10) ** to_decimals)
        return int(scaled.quantize(Decimal(1), rounding=rounding))


class OperationPipeline:
    """Runs user operations against a borrowed ``SessionState``."""

    def __init__(self, engine: IntentEngine, settlement: SettlementService) -> None:
        self._engine = engine
        self._settlement = settlement

    # -- bridge family ---------------------------------------------------------

    async def bridge(
        self,
        state: "SessionState",
        token: str,
        amount: int,
        to_chain_id: int,
        source_chains: Optional[Sequence[int]] = None,
        on_event: Optional[EventCallback] = None,
        *,
        stream: Optional[EventStream] = None,
    ) -> OperationResult:
        """Move ``amount`` of ``token`` to the caller's wallet on ``to_chain_id``."""
        stream = stream or EventStream("bridge", on_event)
        try:
            stream.emit(EventName.STEPS_LIST, steps=list(BRIDGE_STEPS))
            intent = await self._run_bridge(state, stream, token, amount, to_chain_id, source_chains)
            return OperationResult(success=True, tx_hash=intent.tx_hash, intent_id=intent.id)
        except Exception as e:
            logger.error(f"Bridge of {amount} {token} to chain {to_chain_id} failed: {e}")
            return OperationResult(success=False, error=str(e))
        finally:
            stream.close()

    async def bridge_and_transfer(
        self,
        state: "SessionState",
        token: str,
        amount: int,
        to_chain_id: int,
        recipient: str,
        source_chains: Optional[Sequence[int]] = None,
        on_event: Optional[EventCallback] = None,
        *,
        stream: Optional[EventStream] = None,
    ) -> OperationResult:
        """Bridge, then deliver the proceeds to ``recipient`` on the destination chain."""
        stream = stream or EventStream("bridge_and_transfer", on_event)
        try:
            stream.emit(EventName.STEPS_LIST, steps=list(TRANSFER_STEPS))
            if not recipient or not recipient.strip():
                raise ValueError("A recipient address is required")

            intent = await self._run_bridge(state, stream, token, amount, to_chain_id, source_chains)
            stream.emit(
                EventName.TRANSFER_COMPLETE,
                recipient=recipient,
                transactionHash=intent.tx_hash,
            )
            return OperationResult(success=True, tx_hash=intent.tx_hash, intent_id=intent.id)
        except Exception as e:
            logger.error(f"Bridge and transfer of {amount} {token} to {recipient} failed: {e}")
            return OperationResult(success=False, error=str(e))
        finally:
            stream.close()

    async def _run_bridge(
        self,
        state: "SessionState",
        stream: EventStream,
        token: str,
        amount: int,
        to_chain_id: int,
        source_chains: Optional[Sequence[int]],
    ) -> Intent:
        # one intent-driven operation per session at a time
        async with state.intent_lock:
            intent = await self._engine.create(state, token, amount, to_chain_id, source_chains)
            stream.emit(EventName.INTENT_CREATED, intent=intent.to_dict())

            if intent.shortfall > 0:
                self._engine.deny(state, intent.id)
                raise ExecutionFailure(
                    f"Insufficient {intent.token} balance: short by {intent.shortfall} base units",
                    code="INSUFFICIENT_BALANCE",
                    context={"intentId": intent.id, "shortfall": str(intent.shortfall)},
                )

            settled = await self._engine.approve(state, intent.id)

        if settled is None or settled.status != IntentStatus.COMPLETED or not settled.tx_hash:
            raise ExecutionFailure(
                f"Intent {intent.id} did not complete",
                code="INTENT_NOT_COMPLETED",
                context={"intentId": intent.id},
            )

        stream.emit(
            EventName.STEP_COMPLETE,
            typeID="bridge",
            transactionHash=settled.tx_hash,
            explorerURL=self._settlement.explorer_url(settled.tx_hash),
        )
        return settled

    # -- swaps -------------------------------------------------------------------

    async def quote_swap(
        self,
        from_token: str,
        from_chain_id: int,
        to_token: str,
        to_chain_id: int,
        *,
        amount_in: Optional[int] = None,
        amount_out: Optional[int] = None,
    ) -> SwapQuote:
        """
        Price a swap at the prevailing rate without executing it.

        Exactly one of ``amount_in`` (exact-in) or ``amount_out`` (exact-out)
        must be given. Exact-in output is truncated; exact-out input is rounded
        up so the caller never underpays.
        """
        if (amount_in is None) == (amount_out is None):
            raise ValueError("Provide exactly one of amount_in or amount_out")
        requested = amount_in if amount_in is not None else amount_out
        if isinstance(requested, bool) or not isinstance(requested, int) or requested <= 0:
            raise ValueError(f"Swap amount must be a positive integer, got {requested!r}")

        source = get_token(from_token)
        target = get_token(to_token)
        if source.symbol == target.symbol and from_chain_id == to_chain_id:
            raise ValueError("Cannot swap a token into itself on the same chain")

        rate = await self._settlement.get_exchange_rate(
            source.symbol, from_chain_id, target.symbol, to_chain_id
        )
        if rate <= 0:
            raise ExecutionFailure(f"No liquidity for {source.symbol} -> {target.symbol}", code="NO_RATE")

        if amount_in is not None:
            output = _convert(amount_in, source.decimals, target.decimals, rate, ROUND_DOWN)
            if output == 0:
                raise ExecutionFailure("Swap amount too small to produce any output", code="DUST_AMOUNT")
            return SwapQuote(
                mode=SwapMode.EXACT_IN,
                from_token=source.symbol,
                from_chain_id=from_chain_id,
                to_token=target.symbol,
                to_chain_id=to_chain_id,
                input_amount=amount_in,
                output_amount=output,
                rate=rate,
            )

        # exact-out: requested is amount_out
        required = _convert(requested, target.decimals, source.decimals, rate, ROUND_UP, invert=True)
        return SwapQuote(
            mode=SwapMode.EXACT_OUT,
            from_token=source.symbol,
            from_chain_id=from_chain_id,
            to_token=target.symbol,
            to_chain_id=to_chain_id,
            input_amount=required,
            output_amount=requested,
            rate=rate,
        )

    async def swap_exact_in(
        self,
        from_token: str,
        from_chain_id: int,
        amount: int,
        to_token: str,
        to_chain_id: int,
        on_event: Optional[EventCallback] = None,
        *,
        stream: Optional[EventStream] = None,
    ) -> OperationResult:
        """Sell exactly ``amount`` of ``from_token``; the output follows the rate."""
        stream = stream or EventStream("swap_exact_in", on_event)
        try:
            stream.emit(EventName.STEPS_LIST, steps=list(SWAP_STEPS))
            quote = await self.quote_swap(
                from_token, from_chain_id, to_token, to_chain_id, amount_in=amount
            )
            tx_hash = await self._settle_swap(quote, stream)
            return OperationResult(
                success=True,
                tx_hash=tx_hash,
                output_amount=quote.output_amount,
            )
        except Exception as e:
            logger.error(f"Exact-in swap {from_token} -> {to_token} failed: {e}")
            return OperationResult(success=False, error=str(e))
        finally:
            stream.close()

    async def swap_exact_out(
        self,
        from_token: str,
        from_chain_id: int,
        max_amount: int,
        to_token: str,
        to_chain_id: int,
        to_amount: int,
        on_event: Optional[EventCallback] = None,
        *,
        stream: Optional[EventStream] = None,
    ) -> OperationResult:
        """Buy exactly ``to_amount`` of ``to_token`` spending at most ``max_amount``."""
        stream = stream or EventStream("swap_exact_out", on_event)
        try:
            stream.emit(EventName.STEPS_LIST, steps=list(SWAP_STEPS))
            quote = await self.quote_swap(
                from_token, from_chain_id, to_token, to_chain_id, amount_out=to_amount
            )
            if quote.input_amount > max_amount:
                raise ExecutionFailure(
                    f"Required input {quote.input_amount} exceeds maximum {max_amount}",
                    code="MAX_INPUT_EXCEEDED",
                    context={"required": str(quote.input_amount), "max": str(max_amount)},
                )
            tx_hash = await self._settle_swap(quote, stream)
            return OperationResult(
                success=True,
                tx_hash=tx_hash,
                input_amount=quote.input_amount,
            )
        except Exception as e:
            logger.error(f"Exact-out swap {from_token} -> {to_token} failed: {e}")
            return OperationResult(success=False, error=str(e))
        finally:
            stream.close()

    async def _settle_swap(self, quote: SwapQuote, stream: EventStream) -> str:
        tx_hash = await self._settlement.settle_swap(
            quote.from_token,
            quote.from_chain_id,
            quote.to_token,
            quote.to_chain_id,
            quote.input_amount,
            quote.output_amount,
        )
        stream.emit(
            EventName.SWAP_COMPLETE,
            inputAmount=str(quote.input_amount),
            outputAmount=str(quote.output_amount),
            transactionHash=tx_hash,
        )
        logger.info(
            "Swap settled: %s %s -> %s %s (%s)",
            quote.input_amount,
            quote.from_token,
            quote.output_amount,
            quote.to_token,
            tx_hash,
        )
        return tx_hash
