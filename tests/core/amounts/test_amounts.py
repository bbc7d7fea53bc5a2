"""
Tests for amount formatting and parsing.
"""

from decimal import Decimal

import pytest

from nexus.core.amounts import format_token_amount, parse_token_amount


# =============================================================================
# format_token_amount
# =============================================================================

class TestFormatTokenAmount:
    """Display formatting of base-unit amounts."""

    @pytest.mark.parametrize(
        "amount,decimals,expected",
        [
            (100_000_000, 6, "100"),
            (123_450_000, 6, "123.45"),
            (0, 18, "0"),
            (123_456_789, 6, "123.4567"),
            (10**15, 18, "0.001"),
            (1, 6, "0"),
            (50_000, 6, "0.05"),
            (12_345_678, 8, "0.1234"),
        ],
    )
    def test_formats(self, amount: int, decimals: int, expected: str):
        assert format_token_amount(amount, decimals) == expected

    def test_truncates_instead_of_rounding(self):
        assert format_token_amount(1_999_999, 6) == "1.9999"

    def test_whole_amount_has_no_decimal_point(self):
        assert "." not in format_token_amount(5 * 10**18, 18)

    def test_zero_decimals_returns_integer_string(self):
        assert format_token_amount(42, 0) == "42"


# =============================================================================
# parse_token_amount
# =============================================================================

class TestParseTokenAmount:
    """Human input to base units."""

    def test_whole_number(self):
        assert parse_token_amount("100", 6) == 100_000_000

    def test_fraction(self):
        assert parse_token_amount("99.95", 6) == 99_950_000

    def test_excess_precision_is_truncated(self):
        assert parse_token_amount("0.1234567", 6) == 123_456

    def test_accepts_numbers_and_decimals(self):
        assert parse_token_amount(2, 18) == 2 * 10**18
        assert parse_token_amount(Decimal("0.5"), 8) == 50_000_000

    def test_eighteen_decimals_is_exact(self):
        assert parse_token_amount("1.000000000000000001", 18) == 10**18 + 1

    @pytest.mark.parametrize("value", ["", "abc", "1.2.3", "-1", "NaN", "Infinity"])
    def test_rejects_invalid(self, value: str):
        with pytest.raises(ValueError):
            parse_token_amount(value, 6)
