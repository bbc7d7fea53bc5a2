"""
Tests for balance aggregation.
"""

import pytest

from nexus.core.balances import BalanceAggregator, TokenBalance, build_unified_balances
from nexus.core.chains import SUPPORTED_CHAINS
from nexus.core.errors import ConnectivityError, RefreshError
from nexus.core.tokens import TOKEN_REGISTRY

from conftest import ADDRESS, FakeBalanceSource


# =============================================================================
# build_unified_balances
# =============================================================================

class TestBuildUnifiedBalances:
    """Shaping raw per-chain amounts into TokenBalance entries."""

    def test_total_is_sum_of_chains(self):
        unified = build_unified_balances(
            {"USDC": {1: 60_000_000, 42161: 40_000_000}},
            TOKEN_REGISTRY.values(),
            SUPPORTED_CHAINS,
        )

        usdc = unified["USDC"]
        assert usdc.total == 100_000_000
        assert usdc.total == sum(chain.balance for chain in usdc.chains)
        assert usdc.formatted_total == "100"

    def test_zero_chain_entries_are_dropped(self):
        unified = build_unified_balances(
            {"USDC": {1: 0, 137: 5_000_000, 10: 0}},
            TOKEN_REGISTRY.values(),
            SUPPORTED_CHAINS,
        )

        assert [chain.chain_id for chain in unified["USDC"].chains] == [137]

    def test_zero_total_token_is_omitted(self):
        unified = build_unified_balances(
            {"USDC": {1: 0}, "ETH": {}},
            TOKEN_REGISTRY.values(),
            SUPPORTED_CHAINS,
        )

        assert unified == {}

    def test_chains_follow_supported_order(self):
        unified = build_unified_balances(
            {"USDC": {8453: 1, 1: 2, 137: 3}},
            TOKEN_REGISTRY.values(),
            SUPPORTED_CHAINS,
        )

        assert [chain.chain_id for chain in unified["USDC"].chains] == [1, 137, 8453]

    def test_chain_names_and_formatting(self):
        unified = build_unified_balances(
            {"ETH": {42161: 1_500_000_000_000_000_000}},
            TOKEN_REGISTRY.values(),
            SUPPORTED_CHAINS,
        )

        chain = unified["ETH"].chains[0]
        assert chain.chain_name == "Arbitrum"
        assert chain.formatted_balance == "1.5"

    def test_negative_balance_rejected(self):
        with pytest.raises(RefreshError):
            build_unified_balances({"USDC": {1: -1}}, TOKEN_REGISTRY.values(), SUPPORTED_CHAINS)

    def test_balance_on_missing_chain_is_zero(self):
        token_balance = TokenBalance.from_chain_amounts(TOKEN_REGISTRY["USDC"], {1: 10}, SUPPORTED_CHAINS)
        assert token_balance is not None
        assert token_balance.balance_on(137) == 0


# =============================================================================
# BalanceAggregator
# =============================================================================

class TestBalanceAggregator:
    """Refreshing a full snapshot through a BalanceSource."""

    @pytest.mark.asyncio
    async def test_refresh_builds_three_views(self, balance_source: FakeBalanceSource):
        snapshot = await BalanceAggregator(balance_source).refresh(ADDRESS)

        assert set(snapshot.unified) == {"USDC", "ETH", "USDT"}
        assert set(snapshot.bridge) == {"USDC", "ETH", "USDT"}
        assert snapshot.swap == snapshot.unified

    @pytest.mark.asyncio
    async def test_bridge_view_excludes_non_bridge_tokens(self):
        source = FakeBalanceSource({"USDC": {1: 1_000_000}, "WBTC": {1: 10**8}, "DAI": {137: 10**18}})

        snapshot = await BalanceAggregator(source).refresh(ADDRESS)

        assert set(snapshot.unified) == {"USDC", "WBTC", "DAI"}
        assert set(snapshot.bridge) == {"USDC"}
        assert set(snapshot.swap) == {"USDC", "WBTC", "DAI"}

    @pytest.mark.asyncio
    async def test_refresh_without_address_raises(self, balance_source: FakeBalanceSource):
        with pytest.raises(ConnectivityError):
            await BalanceAggregator(balance_source).refresh(None)
        assert balance_source.calls == 0

    @pytest.mark.asyncio
    async def test_source_failure_becomes_refresh_error(self, balance_source: FakeBalanceSource):
        balance_source.error = RuntimeError("rpc down")

        with pytest.raises(RefreshError) as exc_info:
            await BalanceAggregator(balance_source).refresh(ADDRESS)

        assert exc_info.value.code == "BALANCE_FETCH_FAILED"
        assert "rpc down" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_restricted_chain_set(self, balance_source: FakeBalanceSource):
        snapshot = await BalanceAggregator(balance_source, chain_ids=[42161]).refresh(ADDRESS)

        assert set(snapshot.unified) == {"USDC"}
        assert snapshot.unified["USDC"].total == 40_000_000
