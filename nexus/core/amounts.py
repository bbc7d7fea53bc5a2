"""Conversion between integer base-unit amounts and human-readable strings."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

DISPLAY_FRACTION_DIGITS = 4


def format_token_amount(amount: int, decimals: int) -> str:
    """Render ``amount`` base units as a decimal string.

    The fraction is truncated (never rounded) to four digits and trailing
    zeros are dropped, so ``format_token_amount(123450000, 6) == "123.45"``
    and a whole amount has no decimal point at all. Display only: the integer
    amount stays authoritative everywhere else.
    """
    if decimals <= 0:
        return str(amount)

    divisor = 10 ** decimals
    integer_part = amount // divisor
    fractional_part = amount % divisor
    fractional = str(fractional_part).zfill(decimals)
    trimmed = fractional[:DISPLAY_FRACTION_DIGITS].rstrip("0")

    if trimmed:
        return f"{integer_part}.{trimmed}"
    return str(integer_part)


def parse_token_amount(value: str | int | float | Decimal, decimals: int) -> int:
    """Convert a human amount such as ``"12.5"`` into integer base units.

    Digits beyond ``decimals`` are truncated. Raises ``ValueError`` for
    negative, non-finite or malformed input.
    """
    try:
        quantity = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}") from None

    if not quantity.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    if quantity < 0:
        raise ValueError(f"Amount must be non-negative: {value!r}")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = (quantity * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


__all__ = ["DISPLAY_FRACTION_DIGITS", "format_token_amount", "parse_token_amount"]
