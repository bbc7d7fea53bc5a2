"""Chain metadata shared by the balance, intent and pipeline layers."""

from typing import Any, Dict, Tuple

CHAIN_METADATA: Dict[int, Dict[str, Any]] = {
    1: {'name': 'Ethereum', 'icon': '⟠', 'color': '#627eea', 'testnet': False},
    137: {'name': 'Polygon', 'icon': '⬡', 'color': '#8247e5', 'testnet': False},
    42161: {'name': 'Arbitrum', 'icon': '◈', 'color': '#28a0f0', 'testnet': False},
    10: {'name': 'Optimism', 'icon': '🔴', 'color': '#ff0420', 'testnet': False},
    8453: {'name': 'Base', 'icon': '🔵', 'color': '#0052ff', 'testnet': False},
    11155111: {'name': 'Sepolia', 'icon': '⟠', 'color': '#627eea', 'testnet': True},
    80001: {'name': 'Mumbai', 'icon': '⬡', 'color': '#8247e5', 'testnet': True},
    421614: {'name': 'Arb Sepolia', 'icon': '◈', 'color': '#28a0f0', 'testnet': True},
    11155420: {'name': 'OP Sepolia', 'icon': '🔴', 'color': '#ff0420', 'testnet': True},
    84532: {'name': 'Base Sepolia', 'icon': '🔵', 'color': '#0052ff', 'testnet': True},
}

# Chains queried on every balance refresh, in display order.
SUPPORTED_CHAINS: Tuple[int, ...] = (1, 137, 42161, 10, 8453)


def chain_name(chain_id: int) -> str:
    """Display name for ``chain_id``, falling back to ``Chain <id>``."""
    details = CHAIN_METADATA.get(chain_id)
    if details:
        return details['name']
    return f"Chain {chain_id}"


__all__ = ['CHAIN_METADATA', 'SUPPORTED_CHAINS', 'chain_name']
