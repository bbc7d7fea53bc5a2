"""
Shared fixtures: zero-delay settings and in-memory providers with fixed data.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from nexus.config import Settings
from nexus.core.allowances import AllowanceRegistry
from nexus.core.balances import BalanceSnapshot, build_unified_balances
from nexus.core.chains import SUPPORTED_CHAINS
from nexus.core.session import NexusSession, SessionState
from nexus.core.tokens import BRIDGE_TOKENS, TOKEN_REGISTRY
from nexus.providers.base import AllowanceReading, AllowanceSource, BalanceSource
from nexus.providers.simulated import SimulatedSettlementService


ADDRESS = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
SPENDER = "0x00000000000000000000000000000000000000aa"

DEFAULT_BALANCES: Dict[str, Dict[int, int]] = {
    "USDC": {1: 60_000_000, 42161: 40_000_000},
    "ETH": {1: 2 * 10**18, 10: 5 * 10**17},
    "USDT": {137: 25_000_000},
}


# =============================================================================
# Fake providers
# =============================================================================

class FakeBalanceSource(BalanceSource):
    """Returns fixed balances; can be told to fail."""

    name = "fake-balances"

    def __init__(self, balances: Optional[Dict[str, Dict[int, int]]] = None):
        self.balances = balances if balances is not None else DEFAULT_BALANCES
        self.error: Optional[Exception] = None
        self.calls = 0

    async def ready(self) -> bool:
        return True

    async def get_balances(self, address, chain_ids, symbols):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return {
            symbol: {c: a for c, a in self.balances.get(symbol, {}).items() if c in chain_ids}
            for symbol in symbols
        }


class FakeAllowanceSource(AllowanceSource):
    """In-memory allowances that log every call in completion order."""

    name = "fake-allowances"

    def __init__(self):
        self.onchain: Dict[Tuple[int, str], int] = {}
        self.log: List[Tuple[str, int, str, int]] = []
        # per-operation delays, used to make earlier calls finish later
        self.delays: Dict[str, float] = {}
        self.error: Optional[Exception] = None

    async def ready(self) -> bool:
        return True

    async def get_allowance(self, address, chain_id, token) -> AllowanceReading:
        await asyncio.sleep(self.delays.get("get", 0))
        if self.error is not None:
            raise self.error
        value = self.onchain.get((chain_id, token), 0)
        self.log.append(("get", chain_id, token, value))
        return SPENDER, value

    async def approve(self, address, chain_id, token, amount) -> str:
        await asyncio.sleep(self.delays.get("approve", 0))
        if self.error is not None:
            raise self.error
        self.onchain[(chain_id, token)] = amount
        self.log.append(("approve", chain_id, token, amount))
        return SPENDER

    async def revoke(self, address, chain_id, token) -> str:
        await asyncio.sleep(self.delays.get("revoke", 0))
        if self.error is not None:
            raise self.error
        self.onchain[(chain_id, token)] = 0
        self.log.append(("revoke", chain_id, token, 0))
        return SPENDER


class FakeSettlementService(SimulatedSettlementService):
    """Deterministic settlement: sequential hashes, optional failure."""

    name = "fake-settlement"

    def __init__(self, config: Settings):
        super().__init__(config)
        self.settled: List[str] = []
        self.fail_with: Optional[Exception] = None
        self._counter = 0

    async def settle_intent(self, intent) -> str:
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        self.settled.append(intent.id)
        return self._next_hash()

    async def settle_swap(self, *args) -> str:
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return self._next_hash()

    async def estimate_completion_seconds(self, source_chains, destination_chain) -> int:
        await asyncio.sleep(0)
        return 45

    def _next_hash(self) -> str:
        self._counter += 1
        return "0x" + f"{self._counter:064x}"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings with every simulated delay disabled and deterministic pricing."""
    return Settings(
        init_delay_seconds=0,
        balance_refresh_delay_seconds=0,
        allowance_fetch_delay_seconds=0,
        allowance_set_delay_seconds=0,
        allowance_revoke_delay_seconds=0,
        intent_create_delay_seconds=0,
        intent_submit_delay_seconds=0,
        intent_settlement_delay_seconds=0,
        swap_settlement_delay_seconds=0,
        swap_price_jitter=0,
        simulation_seed=7,
    )


@pytest.fixture
def balance_source() -> FakeBalanceSource:
    return FakeBalanceSource()


@pytest.fixture
def allowance_source() -> FakeAllowanceSource:
    return FakeAllowanceSource()


@pytest.fixture
def settlement(test_settings: Settings) -> FakeSettlementService:
    return FakeSettlementService(test_settings)


@pytest.fixture
def snapshot() -> BalanceSnapshot:
    unified = build_unified_balances(DEFAULT_BALANCES, TOKEN_REGISTRY.values(), SUPPORTED_CHAINS)
    return BalanceSnapshot(
        unified=unified,
        bridge={s: unified[s] for s in BRIDGE_TOKENS if s in unified},
        swap=dict(unified),
    )


@pytest.fixture
def state(allowance_source: FakeAllowanceSource, snapshot: BalanceSnapshot) -> SessionState:
    """A connected session state holding the default balances."""
    state = SessionState(
        address=ADDRESS,
        allowances=AllowanceRegistry(allowance_source, ADDRESS),
        is_initialized=True,
    )
    state.apply_balances(snapshot)
    return state


@pytest.fixture
def session(
    test_settings: Settings,
    balance_source: FakeBalanceSource,
    allowance_source: FakeAllowanceSource,
    settlement: FakeSettlementService,
) -> NexusSession:
    """An unconnected session wired to the fake providers."""
    return NexusSession(
        balance_source=balance_source,
        allowance_source=allowance_source,
        settlement=settlement,
        config=test_settings,
    )
