"""Typed models for unified balances."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..amounts import format_token_amount
from ..chains import chain_name
from ..tokens import Token


@dataclass(frozen=True)
class ChainBalance:
    """Token balance on a specific chain."""

    chain_id: int
    chain_name: str
    balance: int
    formatted_balance: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "balance": str(self.balance),
            "formattedBalance": self.formatted_balance,
        }


@dataclass(frozen=True)
class TokenBalance:
    """Balance of a single token across chains.

    ``total`` always equals the sum of ``chains`` and zero-balance chains are
    never listed; build instances through ``from_chain_amounts``.
    """

    symbol: str
    name: str
    decimals: int
    total: int
    chains: Tuple[ChainBalance, ...] = ()

    @property
    def formatted_total(self) -> str:
        return format_token_amount(self.total, self.decimals)

    def balance_on(self, chain_id: int) -> int:
        for chain in self.chains:
            if chain.chain_id == chain_id:
                return chain.balance
        return 0

    @classmethod
    def from_chain_amounts(
        cls,
        token: Token,
        amounts: Mapping[int, int],
        chain_order: Iterable[int],
    ) -> Optional["TokenBalance"]:
        """Aggregate ``amounts`` in ``chain_order``; ``None`` when nothing is held."""
        chains = tuple(
            ChainBalance(
                chain_id=chain_id,
                chain_name=chain_name(chain_id),
                balance=amounts[chain_id],
                formatted_balance=format_token_amount(amounts[chain_id], token.decimals),
            )
            for chain_id in chain_order
            if amounts.get(chain_id, 0) > 0
        )
        total = sum(chain.balance for chain in chains)
        if total == 0:
            return None
        return cls(
            symbol=token.symbol,
            name=token.name,
            decimals=token.decimals,
            total=total,
            chains=chains,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "total": str(self.total),
            "formattedTotal": self.formatted_total,
            "chains": [chain.to_dict() for chain in self.chains],
        }


UnifiedBalances = Dict[str, TokenBalance]


@dataclass(frozen=True)
class BalanceSnapshot:
    """The three views produced by a single refresh."""

    unified: UnifiedBalances
    bridge: UnifiedBalances
    swap: UnifiedBalances
    refreshed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unified": {symbol: tb.to_dict() for symbol, tb in self.unified.items()},
            "bridge": {symbol: tb.to_dict() for symbol, tb in self.bridge.items()},
            "swap": {symbol: tb.to_dict() for symbol, tb in self.swap.items()},
            "refreshedAt": self.refreshed_at.isoformat(),
        }
