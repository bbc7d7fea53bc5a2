"""
Simulated providers used when no live chain or solver integration is wired in.

Balances, allowances, exchange rates and transaction hashes are random (seeded
through ``settings.simulation_seed`` when reproducibility matters) and every
call sleeps for the configured round-trip delay so callers observe realistic
suspension points.
"""

from __future__ import annotations

import asyncio
import logging
import random
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, Optional, Sequence, Tuple

from ..config import Settings, settings as default_settings
from ..core.tokens import token_decimals
from .base import AllowanceReading, AllowanceSource, BalanceSource, SettlementService

if TYPE_CHECKING:  # pragma: no cover
    from ..core.intent.models import Intent

logger = logging.getLogger(__name__)


def random_tx_hash(rng: random.Random) -> str:
    return "0x" + "".join(rng.choice("0123456789abcdef") for _ in range(64))


class SimulatedBalanceSource(BalanceSource):
    """Random balances of up to ``max_demo_balance_units / 100`` tokens per chain."""

    name = "simulated-balances"

    def __init__(self, config: Optional[Settings] = None, rng: Optional[random.Random] = None) -> None:
        self._settings = config or default_settings
        self._rng = rng or random.Random(self._settings.simulation_seed)

    async def ready(self) -> bool:
        return True

    async def get_balances(
        self,
        address: str,
        chain_ids: Sequence[int],
        symbols: Sequence[str],
    ) -> Dict[str, Dict[int, int]]:
        await asyncio.sleep(self._settings.balance_refresh_delay_seconds)

        balances: Dict[str, Dict[int, int]] = {}
        for symbol in symbols:
            # whole hundredths of a token keep the demo figures readable
            unit = 10 ** max(token_decimals(symbol) - 2, 0)
            balances[symbol] = {
                chain_id: self._rng.randrange(self._settings.max_demo_balance_units) * unit
                for chain_id in chain_ids
            }
        logger.debug("Simulated balances generated for %s across %d chains", address, len(chain_ids))
        return balances


class SimulatedAllowanceSource(AllowanceSource):
    """Keeps allowances in memory; unseen pairs start at a random value or zero."""

    name = "simulated-allowances"

    def __init__(self, config: Optional[Settings] = None, rng: Optional[random.Random] = None) -> None:
        self._settings = config or default_settings
        self._rng = rng or random.Random(self._settings.simulation_seed)
        self._onchain: Dict[Tuple[str, int, str], int] = {}

    async def ready(self) -> bool:
        return True

    @property
    def spender(self) -> str:
        return self._settings.default_spender_address

    async def get_allowance(self, address: str, chain_id: int, token: str) -> AllowanceReading:
        await asyncio.sleep(self._settings.allowance_fetch_delay_seconds)
        key = (address.lower(), chain_id, token)
        if key not in self._onchain:
            if self._rng.random() > 0.5:
                self._onchain[key] = self._rng.randrange(1000) * 10 ** token_decimals(token)
            else:
                self._onchain[key] = 0
        return self.spender, self._onchain[key]

    async def approve(self, address: str, chain_id: int, token: str, amount: int) -> str:
        await asyncio.sleep(self._settings.allowance_set_delay_seconds)
        self._onchain[(address.lower(), chain_id, token)] = amount
        return self.spender

    async def revoke(self, address: str, chain_id: int, token: str) -> str:
        await asyncio.sleep(self._settings.allowance_revoke_delay_seconds)
        self._onchain[(address.lower(), chain_id, token)] = 0
        return self.spender


class SimulatedSettlementService(SettlementService):
    """Stands in for the solver network and swap venues."""

    name = "simulated-settlement"

    def __init__(self, config: Optional[Settings] = None, rng: Optional[random.Random] = None) -> None:
        self._settings = config or default_settings
        self._rng = rng or random.Random(self._settings.simulation_seed)

    async def ready(self) -> bool:
        return True

    async def submit_intent(self, intent: "Intent") -> None:
        await asyncio.sleep(self._settings.intent_submit_delay_seconds)
        logger.debug("Intent %s submitted to simulated solvers", intent.id)

    async def settle_intent(self, intent: "Intent") -> str:
        await asyncio.sleep(self._settings.intent_settlement_delay_seconds)
        return random_tx_hash(self._rng)

    async def estimate_completion_seconds(self, source_chains: Sequence[int], destination_chain: int) -> int:
        await asyncio.sleep(self._settings.intent_create_delay_seconds)
        return self._settings.min_estimated_time_seconds + self._rng.randrange(
            self._settings.estimated_time_spread_seconds
        )

    async def get_exchange_rate(
        self,
        from_token: str,
        from_chain_id: int,
        to_token: str,
        to_chain_id: int,
    ) -> Decimal:
        prices = self._settings.reference_prices_usd
        price_in = Decimal(str(prices.get(from_token, 1.0)))
        price_out = Decimal(str(prices.get(to_token, 1.0)))

        jitter = self._settings.swap_price_jitter
        deviation = Decimal(str(self._rng.uniform(-jitter, jitter))) if jitter else Decimal(0)
        return (price_in / price_out) * (Decimal(1) + deviation)

    async def settle_swap(
        self,
        from_token: str,
        from_chain_id: int,
        to_token: str,
        to_chain_id: int,
        input_amount: int,
        output_amount: int,
    ) -> str:
        await asyncio.sleep(self._settings.swap_settlement_delay_seconds)
        return random_tx_hash(self._rng)

    def explorer_url(self, tx_hash: str) -> str:
        return f"{self._settings.explorer_base_url}{tx_hash}"


__all__ = [
    "random_tx_hash",
    "SimulatedBalanceSource",
    "SimulatedAllowanceSource",
    "SimulatedSettlementService",
]
