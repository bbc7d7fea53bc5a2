"""Token reference data: symbols, display names and decimal precision."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from .errors import UnknownTokenError


@dataclass(frozen=True)
class Token:
    symbol: str
    name: str
    decimals: int


TOKEN_REGISTRY: Dict[str, Token] = {
    'USDC': Token('USDC', 'USD Coin', 6),
    'USDT': Token('USDT', 'Tether', 6),
    'ETH': Token('ETH', 'Ethereum', 18),
    'WBTC': Token('WBTC', 'Wrapped Bitcoin', 8),
    'DAI': Token('DAI', 'Dai', 18),
}

# Tokens the bridge network accepts; everything in the registry is swappable.
BRIDGE_TOKENS: Tuple[str, ...] = ('USDC', 'USDT', 'ETH')

# Decimals assumed for symbols that are neither in the registry nor in a balance snapshot.
FALLBACK_DECIMALS = 6


def normalize_symbol(symbol: str) -> str:
    return (symbol or '').strip().upper()


def get_token(symbol: str) -> Token:
    """Look up ``symbol`` in the registry, raising ``UnknownTokenError`` when absent."""
    normalized = normalize_symbol(symbol)
    token = TOKEN_REGISTRY.get(normalized)
    if token is None:
        raise UnknownTokenError(normalized or symbol)
    return token


def token_decimals(symbol: str, default: int = FALLBACK_DECIMALS) -> int:
    token = TOKEN_REGISTRY.get(normalize_symbol(symbol))
    return token.decimals if token else default


__all__ = [
    'Token',
    'TOKEN_REGISTRY',
    'BRIDGE_TOKENS',
    'FALLBACK_DECIMALS',
    'normalize_symbol',
    'get_token',
    'token_decimals',
]
