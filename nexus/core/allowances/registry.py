"""
Allowance registry.

Caches, per chain, the current spending permission of each token and applies
query / set / revoke operations against an ``AllowanceSource``. Operations on
different (chain, token) pairs interleave freely; operations on the same pair
are applied in the order they were issued.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Literal, Optional, Tuple, Union

from ...providers.base import AllowanceSource
from ..errors import ExecutionFailure, NexusError, RefreshError
from ..tokens import normalize_symbol, token_decimals
from .models import DEFAULT_UNLIMITED_THRESHOLD, MAX_UINT256, Allowance

logger = logging.getLogger(__name__)

MAX_ALLOWANCE: Literal["max"] = "max"
AllowanceAmount = Union[int, Literal["max"]]


class AllowanceRegistry:
    """Per-session cache of allowances keyed by chain id, then token."""

    def __init__(
        self,
        source: AllowanceSource,
        address: str,
        *,
        unlimited_threshold: int = DEFAULT_UNLIMITED_THRESHOLD,
    ) -> None:
        self._source = source
        self._address = address
        self._threshold = unlimited_threshold
        self._entries: Dict[int, List[Allowance]] = {}
        self._locks: Dict[Tuple[int, str], asyncio.Lock] = {}
        self._lock_users: Dict[Tuple[int, str], int] = {}
        self._in_flight = 0
        self._closed = False

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Detach the registry; results that land afterwards are discarded."""
        self._closed = True

    def snapshot(self) -> Dict[int, List[Allowance]]:
        return {chain_id: list(entries) for chain_id, entries in self._entries.items()}

    def lookup(self, chain_id: int, token: str) -> Optional[Allowance]:
        symbol = normalize_symbol(token)
        for entry in self._entries.get(chain_id, []):
            if entry.token == symbol:
                return entry
        return None

    async def get(self, chain_id: int, tokens: Iterable[str]) -> List[Allowance]:
        """Fetch the current allowance of each token on ``chain_id``."""
        symbols = list(dict.fromkeys(normalize_symbol(t) for t in tokens))
        return list(await asyncio.gather(*(self._fetch_one(chain_id, s) for s in symbols)))

    async def set(self, chain_id: int, token: str, amount: AllowanceAmount) -> Allowance:
        """Approve ``amount`` base units, or ``"max"`` for an unlimited approval."""
        symbol = normalize_symbol(token)
        value = self._resolve_amount(amount)

        async with self._tracked(chain_id, symbol):
            try:
                spender = await self._source.approve(self._address, chain_id, symbol, value)
            except NexusError:
                raise
            except Exception as e:
                raise ExecutionFailure(
                    f"Failed to set {symbol} allowance on chain {chain_id}: {e}",
                    code="ALLOWANCE_SET_FAILED",
                    context={"chainId": chain_id, "token": symbol},
                ) from e
            allowance = self._make(symbol, spender, value)
            self._upsert(chain_id, allowance)

        logger.info("Allowance set for %s on chain %s: %s", symbol, chain_id, allowance.formatted_allowance)
        return allowance

    async def revoke(self, chain_id: int, token: str) -> Allowance:
        """Reset the allowance to zero, keeping the spender on record."""
        symbol = normalize_symbol(token)

        async with self._tracked(chain_id, symbol):
            try:
                spender = await self._source.revoke(self._address, chain_id, symbol)
            except NexusError:
                raise
            except Exception as e:
                raise ExecutionFailure(
                    f"Failed to revoke {symbol} allowance on chain {chain_id}: {e}",
                    code="ALLOWANCE_REVOKE_FAILED",
                    context={"chainId": chain_id, "token": symbol},
                ) from e
            existing = self.lookup(chain_id, symbol)
            allowance = self._make(symbol, existing.spender if existing else spender, 0)
            self._upsert(chain_id, allowance)

        logger.info("Allowance revoked for %s on chain %s", symbol, chain_id)
        return allowance

    async def _fetch_one(self, chain_id: int, symbol: str) -> Allowance:
        async with self._tracked(chain_id, symbol):
            try:
                spender, value = await self._source.get_allowance(self._address, chain_id, symbol)
            except NexusError:
                raise
            except Exception as e:
                logger.error(f"Failed to fetch {symbol} allowance on chain {chain_id}: {e}")
                raise RefreshError(
                    f"Failed to fetch allowance: {e}",
                    code="ALLOWANCE_FETCH_FAILED",
                    context={"chainId": chain_id, "token": symbol},
                ) from e
            allowance = self._make(symbol, spender, value)
            self._upsert(chain_id, allowance)
            return allowance

    def _tracked(self, chain_id: int, symbol: str) -> "_TrackedLock":
        return _TrackedLock(self, (chain_id, symbol))

    def _make(self, symbol: str, spender: str, value: int) -> Allowance:
        return Allowance(
            token=symbol,
            spender=spender,
            allowance=value,
            decimals=token_decimals(symbol),
            unlimited_threshold=self._threshold,
        )

    def _upsert(self, chain_id: int, allowance: Allowance) -> None:
        if self._closed:
            logger.debug("Discarding %s allowance update for detached session", allowance.token)
            return
        entries = self._entries.setdefault(chain_id, [])
        for index, entry in enumerate(entries):
            if entry.token == allowance.token:
                entries[index] = allowance
                return
        entries.append(allowance)

    @staticmethod
    def _resolve_amount(amount: AllowanceAmount) -> int:
        if amount == MAX_ALLOWANCE:
            return MAX_UINT256
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValueError(f"Allowance must be an integer or {MAX_ALLOWANCE!r}, got {amount!r}")
        if amount < 0 or amount > MAX_UINT256:
            raise ValueError(f"Allowance out of uint256 range: {amount}")
        return amount


class _TrackedLock:
    """Per-pair FIFO lock that also counts in-flight registry operations.

    A pair's lock lives only while some operation holds or awaits it.
    """

    def __init__(self, registry: AllowanceRegistry, key: Tuple[int, str]) -> None:
        self._registry = registry
        self._key = key

    async def __aenter__(self) -> None:
        registry = self._registry
        lock = registry._locks.setdefault(self._key, asyncio.Lock())
        registry._lock_users[self._key] = registry._lock_users.get(self._key, 0) + 1
        registry._in_flight += 1
        try:
            await lock.acquire()
        except BaseException:
            self._leave()
            raise

    async def __aexit__(self, *exc_info: object) -> None:
        self._registry._locks[self._key].release()
        self._leave()

    def _leave(self) -> None:
        registry = self._registry
        registry._in_flight -= 1
        users = registry._lock_users[self._key] - 1
        if users:
            registry._lock_users[self._key] = users
        else:
            del registry._lock_users[self._key]
            del registry._locks[self._key]
