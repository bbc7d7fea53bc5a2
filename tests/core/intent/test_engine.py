"""
Tests for the Intent Engine

Funding-plan construction, fees, and the approve / deny lifecycle.
"""

import asyncio

import pytest

from nexus.config import Settings
from nexus.core.errors import ExecutionFailure, IntentConflictError, InvalidTransitionError
from nexus.core.intent import (
    INTENT_TRANSITIONS,
    TERMINAL_STATUSES,
    IntentEngine,
    IntentStatus,
    can_transition,
)
from nexus.core.session import SessionState

from conftest import FakeSettlementService


@pytest.fixture
def engine(settlement: FakeSettlementService, test_settings: Settings) -> IntentEngine:
    return IntentEngine(settlement, test_settings)


# =============================================================================
# Fees and funding plans
# =============================================================================

class TestIntentBuild:
    """Pure plan construction from a balance snapshot."""

    def test_fees(self, engine: IntentEngine):
        fees = engine.compute_fees(100_000_000, 6)

        assert fees.bridge_fee == 50_000
        assert fees.gas_fee == 10**15
        assert fees.total_fee == 50_000 + 1_000
        assert fees.formatted_bridge_fee == "0.05"
        assert fees.formatted_gas_fee == "0.001 ETH"
        assert fees.formatted_total_fee == "0.05 + 0.001 ETH"

    def test_hundred_usdc_to_polygon(self, engine: IntentEngine, state: SessionState):
        intent = engine.build(state.unified_balances, "USDC", 100_000_000, 137)

        assert [(s.chain_id, s.amount) for s in intent.sources] == [(1, 60_000_000), (42161, 40_000_000)]
        assert intent.fees.bridge_fee == 50_000
        assert intent.destination.chain_id == 137
        assert intent.destination.chain_name == "Polygon"
        assert intent.destination.amount == 99_950_000
        assert intent.destination.formatted_amount == "99.95"
        assert intent.status == IntentStatus.PENDING
        assert intent.is_fully_funded

    def test_destination_is_amount_minus_bridge_fee(self, engine: IntentEngine, state: SessionState):
        for amount in (1, 9_999, 12_345_678, 100_000_000):
            intent = engine.build(state.unified_balances, "USDC", amount, 10)
            assert intent.fees.bridge_fee == amount * 5 // 10_000
            assert intent.destination.amount == amount - intent.fees.bridge_fee

    def test_source_chain_order_is_respected(self, engine: IntentEngine, state: SessionState):
        intent = engine.build(state.unified_balances, "USDC", 50_000_000, 137, source_chains=[42161, 1])

        assert [(s.chain_id, s.amount) for s in intent.sources] == [(42161, 40_000_000), (1, 10_000_000)]

    def test_single_source_stops_early(self, engine: IntentEngine, state: SessionState):
        intent = engine.build(state.unified_balances, "USDC", 10_000_000, 137)

        assert [(s.chain_id, s.amount) for s in intent.sources] == [(1, 10_000_000)]

    def test_underfunded_intent_records_shortfall(self, engine: IntentEngine, state: SessionState):
        intent = engine.build(state.unified_balances, "USDC", 150_000_000, 137)

        assert intent.source_total == 100_000_000
        assert intent.shortfall == 50_000_000
        assert not intent.is_fully_funded

    def test_token_without_balance(self, engine: IntentEngine, state: SessionState):
        intent = engine.build(state.unified_balances, "dai", 10**18, 1)

        assert intent.token == "DAI"
        assert intent.decimals == 18
        assert intent.sources == ()
        assert intent.shortfall == 10**18

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_rejects_non_positive_amounts(self, engine: IntentEngine, state: SessionState, amount):
        with pytest.raises(ValueError):
            engine.build(state.unified_balances, "USDC", amount, 137)


# =============================================================================
# Status table
# =============================================================================

class TestIntentTransitions:
    """Legal and illegal status changes."""

    def test_terminal_states_have_no_exits(self):
        for status in TERMINAL_STATUSES:
            assert INTENT_TRANSITIONS[status] == frozenset()

    def test_happy_path_is_legal(self):
        assert can_transition(IntentStatus.PENDING, IntentStatus.APPROVED)
        assert can_transition(IntentStatus.APPROVED, IntentStatus.EXECUTING)
        assert can_transition(IntentStatus.EXECUTING, IntentStatus.COMPLETED)

    def test_no_skipping_ahead(self):
        assert not can_transition(IntentStatus.PENDING, IntentStatus.EXECUTING)
        assert not can_transition(IntentStatus.PENDING, IntentStatus.COMPLETED)

    def test_illegal_transition_raises(self, engine: IntentEngine, state: SessionState):
        intent = engine.build(state.unified_balances, "USDC", 1_000_000, 137)
        completed = (
            intent.transition(IntentStatus.APPROVED)
            .transition(IntentStatus.EXECUTING)
            .transition(IntentStatus.COMPLETED, tx_hash="0xabc")
        )

        with pytest.raises(InvalidTransitionError) as exc_info:
            completed.transition(IntentStatus.FAILED)

        assert exc_info.value.from_status == IntentStatus.COMPLETED
        assert completed.tx_hash == "0xabc"
        assert [t.to_status for t in completed.transitions] == [
            IntentStatus.APPROVED,
            IntentStatus.EXECUTING,
            IntentStatus.COMPLETED,
        ]

    def test_transition_returns_new_record(self, engine: IntentEngine, state: SessionState):
        intent = engine.build(state.unified_balances, "USDC", 1_000_000, 137)
        approved = intent.transition(IntentStatus.APPROVED)

        assert intent.status == IntentStatus.PENDING
        assert approved.status == IntentStatus.APPROVED
        assert approved.id == intent.id


# =============================================================================
# Lifecycle against session state
# =============================================================================

class TestIntentLifecycle:
    """create / approve / deny against a SessionState."""

    @pytest.mark.asyncio
    async def test_create_installs_current_intent(self, engine: IntentEngine, state: SessionState):
        intent = await engine.create(state, "USDC", 100_000_000, 137)

        assert state.current_intent == intent
        assert intent.estimated_time == 45
        assert state.intent_history == []

    @pytest.mark.asyncio
    async def test_create_while_active_conflicts(self, engine: IntentEngine, state: SessionState):
        first = await engine.create(state, "USDC", 1_000_000, 137)

        with pytest.raises(IntentConflictError) as exc_info:
            await engine.create(state, "USDC", 2_000_000, 137)

        assert exc_info.value.active_intent_id == first.id
        assert state.current_intent == first

    @pytest.mark.asyncio
    async def test_concurrent_creates_have_one_winner(self, engine: IntentEngine, state: SessionState):
        results = await asyncio.gather(
            engine.create(state, "USDC", 1_000_000, 137),
            engine.create(state, "USDC", 2_000_000, 137),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, IntentConflictError)]
        assert len(created) == 1
        assert len(conflicts) == 1
        assert state.current_intent == created[0]

    @pytest.mark.asyncio
    async def test_approve_runs_to_completion(
        self, engine: IntentEngine, state: SessionState, settlement: FakeSettlementService
    ):
        intent = await engine.create(state, "USDC", 100_000_000, 137)

        completed = await engine.approve(state, intent.id)

        assert completed.status == IntentStatus.COMPLETED
        assert completed.tx_hash.startswith("0x") and len(completed.tx_hash) == 66
        assert state.current_intent is None
        assert state.intent_history == [completed]
        assert settlement.settled == [intent.id]
        assert [(t.from_status, t.to_status) for t in completed.transitions] == [
            (IntentStatus.PENDING, IntentStatus.APPROVED),
            (IntentStatus.APPROVED, IntentStatus.EXECUTING),
            (IntentStatus.EXECUTING, IntentStatus.COMPLETED),
        ]

    @pytest.mark.asyncio
    async def test_approve_terminal_is_noop(self, engine: IntentEngine, state: SessionState):
        intent = await engine.create(state, "USDC", 1_000_000, 137)
        completed = await engine.approve(state, intent.id)

        assert await engine.approve(state, intent.id) is None
        assert state.intent_history == [completed]

    @pytest.mark.asyncio
    async def test_approve_unknown_id_is_noop(self, engine: IntentEngine, state: SessionState):
        intent = await engine.create(state, "USDC", 1_000_000, 137)

        assert await engine.approve(state, "intent-unknown") is None
        assert state.current_intent == intent

    @pytest.mark.asyncio
    async def test_deny_pending(self, engine: IntentEngine, state: SessionState):
        intent = await engine.create(state, "USDC", 1_000_000, 137)

        denied = engine.deny(state, intent.id)

        assert denied.status == IntentStatus.FAILED
        assert state.current_intent is None
        assert state.intent_history == [denied]

    @pytest.mark.asyncio
    async def test_deny_while_executing_is_noop(
        self,
        engine: IntentEngine,
        state: SessionState,
        settlement: FakeSettlementService,
        monkeypatch,
    ):
        gate = asyncio.Event()

        async def gated_settle(intent):
            await gate.wait()
            return "0x" + "ab" * 32

        monkeypatch.setattr(settlement, "settle_intent", gated_settle)
        intent = await engine.create(state, "USDC", 1_000_000, 137)

        task = asyncio.create_task(engine.approve(state, intent.id))
        while state.current_intent.status != IntentStatus.EXECUTING:
            await asyncio.sleep(0)

        assert engine.deny(state, intent.id) is None
        assert state.current_intent.status == IntentStatus.EXECUTING

        gate.set()
        completed = await task
        assert completed.status == IntentStatus.COMPLETED
        assert state.intent_history == [completed]

    @pytest.mark.asyncio
    async def test_cancelled_approval_fails_intent_and_frees_slot(
        self,
        engine: IntentEngine,
        state: SessionState,
        settlement: FakeSettlementService,
        monkeypatch,
    ):
        async def stalled_settle(intent):
            await asyncio.sleep(10)
            return "0x" + "ef" * 32

        monkeypatch.setattr(settlement, "settle_intent", stalled_settle)
        intent = await engine.create(state, "USDC", 1_000_000, 137)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(engine.approve(state, intent.id), 0.05)

        assert state.current_intent is None
        cancelled = state.intent_history[0]
        assert cancelled.id == intent.id
        assert cancelled.status == IntentStatus.FAILED
        assert cancelled.transitions[-1].reason == "Cancelled"

        follow_up = await engine.create(state, "USDC", 2_000_000, 137)
        assert state.current_intent == follow_up

    @pytest.mark.asyncio
    async def test_settlement_failure_fails_intent(
        self, engine: IntentEngine, state: SessionState, settlement: FakeSettlementService
    ):
        settlement.fail_with = RuntimeError("solver timeout")
        intent = await engine.create(state, "USDC", 1_000_000, 137)

        with pytest.raises(ExecutionFailure) as exc_info:
            await engine.approve(state, intent.id)

        assert exc_info.value.code == "SETTLEMENT_FAILED"
        assert state.current_intent is None
        failed = state.intent_history[0]
        assert failed.id == intent.id
        assert failed.status == IntentStatus.FAILED
        assert "solver timeout" in failed.error_message

    @pytest.mark.asyncio
    async def test_history_is_newest_first_and_each_intent_once(self, engine: IntentEngine, state: SessionState):
        first = await engine.create(state, "USDC", 1_000_000, 137)
        engine.deny(state, first.id)
        second = await engine.create(state, "USDC", 2_000_000, 137)
        await engine.approve(state, second.id)

        assert [i.id for i in state.intent_history] == [second.id, first.id]
        assert [i.status for i in state.intent_history] == [IntentStatus.COMPLETED, IntentStatus.FAILED]

    @pytest.mark.asyncio
    async def test_observer_sees_every_version(self, engine: IntentEngine, state: SessionState):
        seen = []
        state.intent_observer = lambda intent: seen.append(intent.status)

        intent = await engine.create(state, "USDC", 1_000_000, 137)
        await engine.approve(state, intent.id)

        assert seen == [
            IntentStatus.PENDING,
            IntentStatus.APPROVED,
            IntentStatus.EXECUTING,
            IntentStatus.COMPLETED,
        ]
