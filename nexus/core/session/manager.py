"""
Session registry for multi-identity hosts such as the HTTP API.

Holds one ``NexusSession`` per connected address. All sessions share the same
provider instances; each keeps its own ``SessionState``.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ...config import Settings, settings as default_settings
from ...providers.base import AllowanceSource, BalanceSource, Provider, SettlementService
from ...providers.simulated import (
    SimulatedAllowanceSource,
    SimulatedBalanceSource,
    SimulatedSettlementService,
)
from ..errors import ConnectivityError
from .orchestrator import NexusSession

logger = logging.getLogger(__name__)


class SessionNotFoundError(ConnectivityError):
    """No session is connected for the requested address."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(
            f"No session connected for {address}",
            code="SESSION_NOT_FOUND",
            context={"address": address},
        )


def _key(address: str) -> str:
    return address.strip().lower()


class SessionManager:
    """Creates, looks up and tears down sessions by address."""

    def __init__(
        self,
        *,
        balance_source: Optional[BalanceSource] = None,
        allowance_source: Optional[AllowanceSource] = None,
        settlement: Optional[SettlementService] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self._settings = config or default_settings
        self._balance_source = balance_source or SimulatedBalanceSource(self._settings)
        self._allowance_source = allowance_source or SimulatedAllowanceSource(self._settings)
        self._settlement = settlement or SimulatedSettlementService(self._settings)
        self._sessions: Dict[str, NexusSession] = {}

    @property
    def providers(self) -> List[Provider]:
        return [self._balance_source, self._allowance_source, self._settlement]

    @property
    def addresses(self) -> List[str]:
        return list(self._sessions)

    async def connect(self, address: str) -> NexusSession:
        """Return the session for ``address``, connecting it if needed."""
        key = _key(address)
        session = self._sessions.get(key)
        if session is None:
            session = NexusSession(
                balance_source=self._balance_source,
                allowance_source=self._allowance_source,
                settlement=self._settlement,
                config=self._settings,
            )
            self._sessions[key] = session
        if not session.is_connected:
            try:
                await session.connect(address)
            except ConnectivityError:
                self._sessions.pop(key, None)
                raise
        return session

    def get(self, address: str) -> NexusSession:
        """
        Raises:
            SessionNotFoundError: ``address`` has no connected session
        """
        session = self._sessions.get(_key(address))
        if session is None or not session.is_connected:
            raise SessionNotFoundError(address)
        return session

    def disconnect(self, address: str) -> bool:
        session = self._sessions.pop(_key(address), None)
        if session is None:
            return False
        session.disconnect()
        return True

    def disconnect_all(self) -> None:
        for key in list(self._sessions):
            self._sessions.pop(key).disconnect()
        logger.info("All sessions disconnected")
