"""Unified balance aggregation."""

from .aggregator import BalanceAggregator, build_unified_balances
from .models import BalanceSnapshot, ChainBalance, TokenBalance, UnifiedBalances

__all__ = [
    "BalanceAggregator",
    "build_unified_balances",
    "BalanceSnapshot",
    "ChainBalance",
    "TokenBalance",
    "UnifiedBalances",
]
