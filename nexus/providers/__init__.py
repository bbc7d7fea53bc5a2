"""External capabilities and their simulated stand-ins."""

from .base import AllowanceReading, AllowanceSource, BalanceSource, Provider, SettlementService
from .simulated import SimulatedAllowanceSource, SimulatedBalanceSource, SimulatedSettlementService

__all__ = [
    "AllowanceReading",
    "Provider",
    "BalanceSource",
    "AllowanceSource",
    "SettlementService",
    "SimulatedBalanceSource",
    "SimulatedAllowanceSource",
    "SimulatedSettlementService",
]
