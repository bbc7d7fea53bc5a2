"""Per-chain spending permission registry."""

from .models import DEFAULT_UNLIMITED_THRESHOLD, MAX_UINT256, Allowance, AllowanceStatus
from .registry import MAX_ALLOWANCE, AllowanceAmount, AllowanceRegistry

__all__ = [
    "Allowance",
    "AllowanceAmount",
    "AllowanceRegistry",
    "AllowanceStatus",
    "DEFAULT_UNLIMITED_THRESHOLD",
    "MAX_ALLOWANCE",
    "MAX_UINT256",
]
