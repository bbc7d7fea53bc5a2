"""
Session State

The explicit context object that owns everything a connected identity has:
balance snapshots, the allowance registry, the current intent and the intent
history. It is built when a wallet connects and detached when it disconnects;
the intent engine and the operation pipeline borrow it for one call at a time.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..allowances import AllowanceRegistry
from ..balances import BalanceSnapshot, UnifiedBalances
from ..errors import IntentConflictError
from ..intent.models import Intent

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """State owned by one connected identity."""

    address: str
    allowances: AllowanceRegistry
    balances: Optional[BalanceSnapshot] = None
    current_intent: Optional[Intent] = None
    intent_history: List[Intent] = field(default_factory=list)
    error: Optional[str] = None
    is_initialized: bool = False
    is_initializing: bool = False
    is_loading_balances: bool = False
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Called with every new version of the current intent, including the terminal one.
    intent_observer: Optional[Callable[[Intent], None]] = field(default=None, repr=False)

    # Serializes intent-driven operations (bridge, bridge-and-transfer).
    intent_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    # Serializes balance refreshes.
    refresh_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    _intent_reserved: bool = field(default=False, repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def unified_balances(self) -> Optional[UnifiedBalances]:
        return self.balances.unified if self.balances else None

    @property
    def bridge_balances(self) -> Optional[UnifiedBalances]:
        return self.balances.bridge if self.balances else None

    @property
    def swap_balances(self) -> Optional[UnifiedBalances]:
        return self.balances.swap if self.balances else None

    def close(self) -> None:
        """Detach this state; late writes from in-flight operations are dropped."""
        self._closed = True
        self.allowances.close()

    def apply_balances(self, snapshot: BalanceSnapshot) -> bool:
        if self._closed:
            logger.debug("Discarding balance snapshot for detached session %s", self.address)
            return False
        self.balances = snapshot
        return True

    # -- current-intent slot -------------------------------------------------

    def reserve_intent_slot(self) -> None:
        """
        Claim the current-intent slot for an intent under construction.

        Raises:
            IntentConflictError: An intent is already active or being created
        """
        if self.current_intent is not None and self.current_intent.is_active:
            raise IntentConflictError(self.current_intent.id)
        if self._intent_reserved:
            raise IntentConflictError()
        self._intent_reserved = True

    def release_intent_slot(self) -> None:
        self._intent_reserved = False

    def install_intent(self, intent: Intent) -> None:
        if self._closed:
            return
        self.current_intent = intent
        self._observe(intent)

    def update_current_intent(self, intent: Intent) -> bool:
        """Replace the current intent with a newer version of itself."""
        if self._closed or self.current_intent is None or self.current_intent.id != intent.id:
            return False
        self.current_intent = intent
        self._observe(intent)
        return True

    def finalize_intent(self, intent: Intent) -> bool:
        """Move a terminal intent from the current slot to the front of history.

        Both writes happen without suspending, so no reader can observe the
        intent in neither place or in both.
        """
        if self._closed or self.current_intent is None or self.current_intent.id != intent.id:
            return False
        self.intent_history.insert(0, intent)
        self.current_intent = None
        self._observe(intent)
        return True

    def _observe(self, intent: Intent) -> None:
        if self.intent_observer is None:
            return
        try:
            self.intent_observer(intent)
        except Exception as e:
            logger.error(f"Intent observer error for {intent.id}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "isInitialized": self.is_initialized,
            "isInitializing": self.is_initializing,
            "isLoadingBalances": self.is_loading_balances,
            "isLoadingAllowances": self.allowances.is_loading,
            "error": self.error,
            "balances": self.balances.to_dict() if self.balances else None,
            "allowances": {
                str(chain_id): [a.to_dict() for a in entries]
                for chain_id, entries in self.allowances.snapshot().items()
            },
            "currentIntent": self.current_intent.to_dict() if self.current_intent else None,
            "intentHistory": [intent.to_dict() for intent in self.intent_history],
            "connectedAt": self.connected_at.isoformat(),
        }
