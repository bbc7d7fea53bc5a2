"""
Nexus Session

Connects one identity, owns its ``SessionState`` for the lifetime of the
connection and exposes every user-facing operation. The balance aggregator,
allowance registry, intent engine and operation pipeline are all driven from
here; none of them keeps session data of its own.

Usage:
    session = NexusSession()
    await session.connect("0xabc...")
    result = await session.bridge("USDC", 100_000_000, 137)
    session.disconnect()

Connectivity and refresh failures are recorded on ``state.error``, broadcast
to subscribers as ``SESSION_ERROR`` and re-raised. The next successful
refresh clears the error.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from ...config import Settings, settings as default_settings
from ...logging_config import bound_log_context
from ...providers.base import AllowanceSource, BalanceSource, SettlementService
from ...providers.simulated import (
    SimulatedAllowanceSource,
    SimulatedBalanceSource,
    SimulatedSettlementService,
)
from ..allowances import Allowance, AllowanceAmount, AllowanceRegistry
from ..balances import BalanceAggregator, BalanceSnapshot
from ..errors import ConnectivityError, RefreshError
from ..intent import Intent, IntentEngine
from ..pipeline import (
    EventCallback,
    EventStream,
    NexusEvent,
    OperationPipeline,
    OperationResult,
    SwapQuote,
)
from .state import SessionState

logger = logging.getLogger(__name__)


class SessionEventName(str, Enum):
    """Session-level notifications delivered to subscribers."""

    CONNECTED = "SESSION_CONNECTED"
    DISCONNECTED = "SESSION_DISCONNECTED"
    BALANCES_UPDATED = "BALANCES_UPDATED"
    ALLOWANCES_UPDATED = "ALLOWANCES_UPDATED"
    INTENT_UPDATED = "INTENT_UPDATED"
    SESSION_ERROR = "SESSION_ERROR"


class NexusSession:
    """Orchestrator for a single connected identity."""

    def __init__(
        self,
        *,
        balance_source: Optional[BalanceSource] = None,
        allowance_source: Optional[AllowanceSource] = None,
        settlement: Optional[SettlementService] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self._settings = config or default_settings
        self._balance_source = balance_source or SimulatedBalanceSource(self._settings)
        self._allowance_source = allowance_source or SimulatedAllowanceSource(self._settings)
        self._settlement = settlement or SimulatedSettlementService(self._settings)

        self._aggregator = BalanceAggregator(self._balance_source)
        self._engine = IntentEngine(self._settlement, self._settings)
        self._pipeline = OperationPipeline(self._engine, self._settlement)

        self._state: Optional[SessionState] = None
        self._listeners: List[EventCallback] = []

    # -- connection ----------------------------------------------------------

    @property
    def state(self) -> Optional[SessionState]:
        return self._state

    @property
    def address(self) -> Optional[str]:
        return self._state.address if self._state else None

    @property
    def is_connected(self) -> bool:
        return self._state is not None

    async def connect(self, address: str) -> SessionState:
        """
        Attach ``address`` and load its balances.

        Connecting the address that is already attached returns the existing
        state. Connecting a different address detaches the previous one first.
        A failed initial balance load leaves the session connected with
        ``state.error`` set.

        Raises:
            ConnectivityError: ``address`` is empty
        """
        if not address or not address.strip():
            raise ConnectivityError("Cannot connect without a wallet address")
        address = address.strip()

        if self._state is not None:
            if self._state.address == address:
                return self._state
            self.disconnect()

        state = SessionState(
            address=address,
            allowances=AllowanceRegistry(
                self._allowance_source,
                address,
                unlimited_threshold=self._settings.unlimited_allowance_threshold,
            ),
            is_initializing=True,
        )
        state.intent_observer = self._on_intent_change
        self._state = state

        with bound_log_context(address=address):
            logger.info("Connecting session")
            try:
                await asyncio.sleep(self._settings.init_delay_seconds)
                if state.closed:
                    logger.info("Session detached during initialization")
                    return state
                state.is_initialized = True
                self._notify(SessionEventName.CONNECTED, address=address)
                try:
                    await self._refresh(state)
                except RefreshError:
                    # already recorded on state.error; the caller can retry
                    pass
            finally:
                state.is_initializing = False
        return state

    def disconnect(self) -> None:
        """Detach the current state; in-flight work can no longer write to it."""
        state = self._state
        if state is None:
            return
        state.close()
        self._state = None
        with bound_log_context(address=state.address):
            logger.info("Session disconnected")
        self._notify(SessionEventName.DISCONNECTED, address=state.address)

    # -- subscribers ---------------------------------------------------------

    @property
    def listeners(self) -> List[EventCallback]:
        return list(self._listeners)

    def subscribe(self, listener: EventCallback) -> Callable[[], None]:
        """Receive session notifications and every operation's progress events.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: EventCallback) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- balances ------------------------------------------------------------

    async def refresh_balances(self) -> BalanceSnapshot:
        """
        Re-fetch and aggregate balances for the connected address.

        Raises:
            ConnectivityError: No wallet is connected
            RefreshError: The balance source failed
        """
        state = self._require_state()
        with bound_log_context(address=state.address):
            return await self._refresh(state)

    async def _refresh(self, state: SessionState) -> BalanceSnapshot:
        async with state.refresh_lock:
            state.is_loading_balances = True
            try:
                with self._surfacing(state):
                    snapshot = await self._aggregator.refresh(state.address)
            finally:
                state.is_loading_balances = False

        if state.apply_balances(snapshot):
            state.error = None
            self._notify(
                SessionEventName.BALANCES_UPDATED,
                tokens=sorted(snapshot.unified),
                refreshedAt=snapshot.refreshed_at.isoformat(),
            )
        return snapshot

    # -- allowances ----------------------------------------------------------

    async def get_allowances(self, chain_id: int, tokens: Iterable[str]) -> List[Allowance]:
        """
        Raises:
            ConnectivityError: No wallet is connected
            RefreshError: An allowance fetch failed
        """
        state = self._require_state()
        with bound_log_context(address=state.address), self._surfacing(state):
            allowances = await state.allowances.get(chain_id, tokens)
        if not state.closed:
            state.error = None
            self._notify_allowances(chain_id, allowances)
        return allowances

    async def set_allowance(self, chain_id: int, token: str, amount: AllowanceAmount) -> Allowance:
        state = self._require_state()
        with bound_log_context(address=state.address):
            allowance = await state.allowances.set(chain_id, token, amount)
        if not state.closed:
            self._notify_allowances(chain_id, [allowance])
        return allowance

    async def revoke_allowance(self, chain_id: int, token: str) -> Allowance:
        state = self._require_state()
        with bound_log_context(address=state.address):
            allowance = await state.allowances.revoke(chain_id, token)
        if not state.closed:
            self._notify_allowances(chain_id, [allowance])
        return allowance

    # -- intents -------------------------------------------------------------

    async def create_intent(
        self,
        token: str,
        amount: int,
        to_chain_id: int,
        source_chains: Optional[Sequence[int]] = None,
    ) -> Intent:
        """
        Build a pending intent for ``amount`` of ``token`` on ``to_chain_id``.

        Raises:
            ConnectivityError: No wallet is connected
            IntentConflictError: Another intent is still active
        """
        state = self._require_state()
        with bound_log_context(address=state.address):
            return await self._engine.create(state, token, amount, to_chain_id, source_chains)

    async def approve_intent(self, intent_id: str) -> Optional[Intent]:
        state = self._require_state()
        with bound_log_context(address=state.address, intent_id=intent_id):
            return await self._engine.approve(state, intent_id)

    def deny_intent(self, intent_id: str) -> Optional[Intent]:
        state = self._require_state()
        with bound_log_context(address=state.address, intent_id=intent_id):
            return self._engine.deny(state, intent_id)

    # -- operations ----------------------------------------------------------

    async def bridge(
        self,
        token: str,
        amount: int,
        to_chain_id: int,
        source_chains: Optional[Sequence[int]] = None,
        on_event: Optional[EventCallback] = None,
        *,
        stream: Optional[EventStream] = None,
    ) -> OperationResult:
        state = self._require_state()
        stream = stream or self._stream("bridge", on_event)
        with bound_log_context(address=state.address, operation="bridge"):
            return await self._pipeline.bridge(
                state, token, amount, to_chain_id, source_chains, stream=stream
            )

    async def bridge_and_transfer(
        self,
        token: str,
        amount: int,
        to_chain_id: int,
        recipient: str,
        source_chains: Optional[Sequence[int]] = None,
        on_event: Optional[EventCallback] = None,
        *,
        stream: Optional[EventStream] = None,
    ) -> OperationResult:
        state = self._require_state()
        stream = stream or self._stream("bridge_and_transfer", on_event)
        with bound_log_context(address=state.address, operation="bridge_and_transfer"):
            return await self._pipeline.bridge_and_transfer(
                state, token, amount, to_chain_id, recipient, source_chains, stream=stream
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
        state = self._require_state()
        stream = stream or self._stream("swap_exact_in", on_event)
        with bound_log_context(address=state.address, operation="swap_exact_in"):
            return await self._pipeline.swap_exact_in(
                from_token, from_chain_id, amount, to_token, to_chain_id, stream=stream
            )

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
        state = self._require_state()
        stream = stream or self._stream("swap_exact_out", on_event)
        with bound_log_context(address=state.address, operation="swap_exact_out"):
            return await self._pipeline.swap_exact_out(
                from_token, from_chain_id, max_amount, to_token, to_chain_id, to_amount, stream=stream
            )

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
        self._require_state()
        return await self._pipeline.quote_swap(
            from_token,
            from_chain_id,
            to_token,
            to_chain_id,
            amount_in=amount_in,
            amount_out=amount_out,
        )

    # -- internals -----------------------------------------------------------

    def _require_state(self) -> SessionState:
        if self._state is None:
            error = ConnectivityError()
            self._notify(SessionEventName.SESSION_ERROR, **error.to_dict())
            raise error
        return self._state

    def _stream(self, operation: str, on_event: Optional[EventCallback]) -> EventStream:
        return EventStream(operation, on_event, listeners=self.listeners)

    @contextmanager
    def _surfacing(self, state: SessionState) -> Iterator[None]:
        """Record connectivity and refresh errors on the state, then re-raise."""
        try:
            yield
        except (ConnectivityError, RefreshError) as e:
            if not state.closed:
                state.error = e.message
            self._notify(SessionEventName.SESSION_ERROR, **e.to_dict())
            raise

    def _on_intent_change(self, intent: Intent) -> None:
        self._notify(SessionEventName.INTENT_UPDATED, intent=intent.to_dict())

    def _notify_allowances(self, chain_id: int, allowances: Sequence[Allowance]) -> None:
        self._notify(
            SessionEventName.ALLOWANCES_UPDATED,
            chainId=chain_id,
            allowances=[a.to_dict() for a in allowances],
        )

    def _notify(self, name: SessionEventName, **args) -> None:
        event = NexusEvent(name=name.value, args=args, timestamp=int(time.time() * 1000))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Session listener error ({event.name}): {e}")
