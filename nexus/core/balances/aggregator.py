"""
Balance aggregation.

Builds the unified per-token, per-chain view from raw per-chain balances and
derives the bridge-eligible and swap-eligible views from the same refresh.
Each refresh replaces the previous snapshot wholesale.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Sequence

from ...providers.base import BalanceSource
from ..chains import SUPPORTED_CHAINS
from ..errors import ConnectivityError, NexusError, RefreshError
from ..tokens import BRIDGE_TOKENS, TOKEN_REGISTRY, Token
from .models import BalanceSnapshot, TokenBalance, UnifiedBalances

logger = logging.getLogger(__name__)


def build_unified_balances(
    raw: Mapping[str, Mapping[int, int]],
    tokens: Iterable[Token],
    chain_ids: Sequence[int],
) -> UnifiedBalances:
    """Aggregate ``{symbol: {chain_id: amount}}`` into ``TokenBalance`` entries.

    Tokens with a zero total are left out entirely.
    """
    unified: UnifiedBalances = {}
    for token in tokens:
        amounts = raw.get(token.symbol) or {}
        for chain_id, amount in amounts.items():
            if amount < 0:
                raise RefreshError(
                    f"Negative {token.symbol} balance reported on chain {chain_id}",
                    code="INVALID_BALANCE",
                    context={"symbol": token.symbol, "chainId": chain_id},
                )
        token_balance = TokenBalance.from_chain_amounts(token, amounts, chain_ids)
        if token_balance is not None:
            unified[token.symbol] = token_balance
    return unified


class BalanceAggregator:
    """
    Fetches balances for an address and shapes them into a ``BalanceSnapshot``.

    Usage:
        aggregator = BalanceAggregator(SimulatedBalanceSource())
        snapshot = await aggregator.refresh("0x...")
        usdc = snapshot.unified.get("USDC")

    The aggregator keeps no state between calls; callers serialize refreshes.
    """

    def __init__(
        self,
        source: BalanceSource,
        *,
        chain_ids: Optional[Sequence[int]] = None,
        tokens: Optional[Iterable[Token]] = None,
        bridge_tokens: Optional[Sequence[str]] = None,
    ) -> None:
        self._source = source
        self._chain_ids = tuple(chain_ids or SUPPORTED_CHAINS)
        self._tokens = tuple(tokens or TOKEN_REGISTRY.values())
        self._bridge_tokens = tuple(bridge_tokens or BRIDGE_TOKENS)

    @property
    def chain_ids(self) -> Sequence[int]:
        return self._chain_ids

    async def refresh(self, address: Optional[str]) -> BalanceSnapshot:
        """
        Fetch and aggregate balances for ``address``.

        Raises:
            ConnectivityError: no address was supplied
            RefreshError: the balance source failed or returned invalid data
        """
        if not address:
            raise ConnectivityError("Cannot refresh balances without a connected wallet")

        symbols = [token.symbol for token in self._tokens]
        try:
            raw = await self._source.get_balances(address, self._chain_ids, symbols)
        except NexusError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch balances for {address}: {e}")
            raise RefreshError(
                f"Failed to fetch balances: {e}",
                code="BALANCE_FETCH_FAILED",
                context={"provider": getattr(self._source, "name", None)},
            ) from e

        unified = build_unified_balances(raw, self._tokens, self._chain_ids)
        bridge: Dict[str, TokenBalance] = {
            symbol: unified[symbol] for symbol in self._bridge_tokens if symbol in unified
        }
        swap = dict(unified)

        logger.info(
            "Balances refreshed for %s: %d tokens, %d bridgeable",
            address,
            len(unified),
            len(bridge),
        )
        return BalanceSnapshot(unified=unified, bridge=bridge, swap=swap)
