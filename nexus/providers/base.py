"""
Capabilities the orchestrator consumes from the outside world.

Live chain RPC, bridge and solver networks are out of scope; the core is
written against these interfaces so a real integration can replace the
simulated providers without touching the state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Sequence, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from ..core.intent.models import Intent

# (spender address, allowance in base units)
AllowanceReading = Tuple[str, int]


class Provider(ABC):
    """Base provider interface"""

    name: str

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    async def health_check(self) -> Dict[str, Any]:
        ready = await self.ready()
        return {"name": self.name, "status": "healthy" if ready else "unavailable"}


class BalanceSource(Provider):
    """Per-chain token balances for an address."""

    @abstractmethod
    async def get_balances(
        self,
        address: str,
        chain_ids: Sequence[int],
        symbols: Sequence[str],
    ) -> Dict[str, Dict[int, int]]:
        """Return ``{symbol: {chain_id: base_units}}`` for the requested pairs.

        Missing pairs are treated as zero.
        """
        pass


class AllowanceSource(Provider):
    """Reads and mutates ERC-20 style spending permissions."""

    @abstractmethod
    async def get_allowance(self, address: str, chain_id: int, token: str) -> AllowanceReading:
        pass

    @abstractmethod
    async def approve(self, address: str, chain_id: int, token: str, amount: int) -> str:
        """Grant ``amount`` to the spender and return the spender address."""
        pass

    @abstractmethod
    async def revoke(self, address: str, chain_id: int, token: str) -> str:
        """Reset the allowance to zero and return the spender address."""
        pass


class SettlementService(Provider):
    """Submits intents and swaps and waits for them to settle."""

    @abstractmethod
    async def submit_intent(self, intent: "Intent") -> None:
        """Hand an approved intent to the solver network."""
        pass

    @abstractmethod
    async def settle_intent(self, intent: "Intent") -> str:
        """Wait for an executing intent to settle; returns the fill transaction hash."""
        pass

    @abstractmethod
    async def estimate_completion_seconds(self, source_chains: Sequence[int], destination_chain: int) -> int:
        """Quote how long the solver network needs to fill a route, in seconds."""
        pass

    @abstractmethod
    async def get_exchange_rate(
        self,
        from_token: str,
        from_chain_id: int,
        to_token: str,
        to_chain_id: int,
    ) -> Decimal:
        """Units of ``to_token`` received per whole unit of ``from_token``."""
        pass

    @abstractmethod
    async def settle_swap(
        self,
        from_token: str,
        from_chain_id: int,
        to_token: str,
        to_chain_id: int,
        input_amount: int,
        output_amount: int,
    ) -> str:
        """Wait for a swap to settle; returns its transaction hash."""
        pass

    @abstractmethod
    def explorer_url(self, tx_hash: str) -> str:
        pass


__all__ = [
    "AllowanceReading",
    "Provider",
    "BalanceSource",
    "AllowanceSource",
    "SettlementService",
]
