"""Typed models used by the allowance registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from ..amounts import format_token_amount

MAX_UINT256 = 2**256 - 1

# Allowances above this are "infinite approvals" for display purposes.
DEFAULT_UNLIMITED_THRESHOLD = 2**255


class AllowanceStatus(str, Enum):
    UNLIMITED = "Unlimited"
    NONE = "None"
    LIMITED = "Limited"


@dataclass(frozen=True)
class Allowance:
    """Permission for ``spender`` to move up to ``allowance`` base units of ``token``.

    ``is_unlimited`` is derived from the amount and cannot be set directly.
    """

    token: str
    spender: str
    allowance: int
    decimals: int = 6
    unlimited_threshold: int = field(default=DEFAULT_UNLIMITED_THRESHOLD, repr=False, compare=False)

    @property
    def is_unlimited(self) -> bool:
        return self.allowance > self.unlimited_threshold

    @property
    def formatted_allowance(self) -> str:
        if self.is_unlimited:
            return "Unlimited"
        return format_token_amount(self.allowance, self.decimals)

    @property
    def status(self) -> AllowanceStatus:
        if self.is_unlimited:
            return AllowanceStatus.UNLIMITED
        if self.allowance == 0:
            return AllowanceStatus.NONE
        return AllowanceStatus.LIMITED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "spender": self.spender,
            "allowance": str(self.allowance),
            "formattedAllowance": self.formatted_allowance,
            "isUnlimited": self.is_unlimited,
            "status": self.status.value,
        }
