"""
Tests for fixed-point money handling and amount parsing
"""

import pytest
from decimal import Decimal

from kodbank.currency import Money, parse_amount, MAX_AMOUNT
from kodbank.errors import InvalidAmount


class TestMoney:
    """Test Money value semantics"""

    def test_quantizes_to_two_places(self):
        assert Money(Decimal('10')).amount == Decimal('10.00')
        assert Money(Decimal('10.005')).amount == Decimal('10.01')

    def test_minor_unit_round_trip(self):
        money = Money.from_minor_units(12345)
        assert money.amount == Decimal('123.45')
        assert money.to_minor_units() == 12345
        assert Money.zero().to_minor_units() == 0

    def test_arithmetic_and_comparison(self):
        a = Money(Decimal('100.00'))
        b = Money(Decimal('40.00'))
        assert (a - b).amount == Decimal('60.00')
        assert (a + b).amount == Decimal('140.00')
        assert (-b).is_negative()
        assert b < a
        assert a >= a

    def test_no_drift_over_many_additions(self):
        """1000 additions of 0.01 are exactly 10.00"""
        total = Money.zero()
        cent = Money(Decimal('0.01'))
        for _ in range(1000):
            total = total + cent
        assert total.amount == Decimal('10.00')
        assert total.to_minor_units() == 1000

    def test_formatting(self):
        money = Money(Decimal('1234.5'))
        assert money.format_plain() == "1234.50"
        assert money.to_string() == "₹1,234.50"
        assert money.to_string("$") == "$1,234.50"
        assert str(money) == "1234.50"


class TestParseAmount:
    """Test client amount parsing"""

    @pytest.mark.parametrize("value,expected", [
        (100, Decimal('100.00')),
        ("40.5", Decimal('40.50')),
        (0.1, Decimal('0.10')),
        (Decimal('0.01'), Decimal('0.01')),
        (" 20.00 ", Decimal('20.00')),
    ])
    def test_accepts_valid_amounts(self, value, expected):
        assert parse_amount(value).amount == expected

    @pytest.mark.parametrize("value", [
        0, -5, "0", "-0.01", None, True, "abc", "", "NaN", "Infinity",
        float("inf"), [], {},
    ])
    def test_rejects_invalid_amounts(self, value):
        with pytest.raises(InvalidAmount):
            parse_amount(value)

    def test_rejects_sub_paisa_amounts(self):
        with pytest.raises(InvalidAmount) as exc_info:
            parse_amount("0.001")
        assert "decimal places" in exc_info.value.message

    def test_rejects_amounts_above_maximum(self):
        parse_amount(MAX_AMOUNT)
        with pytest.raises(InvalidAmount):
            parse_amount(MAX_AMOUNT + 1)
