"""
Tests for the platform fee calculator
"""

from decimal import Decimal

import pytest

from paychain.services.fees import calculate_fee, net_amount

RATE = Decimal("0.025")
FIXED = 2000


class TestCalculateFee:
    def test_ksh_100_charge(self):
        """10000 cents: 250 variable + 2000 fixed"""
        fee = calculate_fee(10000, RATE, FIXED)
        assert fee == 2250
        assert net_amount(10000, fee) == 7750

    def test_minimum_charge(self):
        """100 * 0.025 = 2.5 rounds half up to 3"""
        assert calculate_fee(100, RATE, FIXED) == 2003

    @pytest.mark.parametrize("amount,expected_variable", [
        (20, 1),    # 0.5 -> 1
        (60, 2),    # 1.5 -> 2
        (19, 0),    # 0.475 -> 0
        (21, 1),    # 0.525 -> 1
    ])
    def test_half_values_round_up(self, amount, expected_variable):
        assert calculate_fee(amount, RATE, 0) == expected_variable

    def test_rate_accepts_string(self):
        assert calculate_fee(10000, "0.025", FIXED) == 2250

    def test_fee_is_deterministic(self):
        assert {calculate_fee(123457, RATE, FIXED) for _ in range(5)} == {calculate_fee(123457, RATE, FIXED)}

    @pytest.mark.parametrize("amount", [10000, 250000, 10_000_000])
    def test_fee_below_amount_for_practical_charges(self, amount):
        assert 0 <= calculate_fee(amount, RATE, FIXED) < amount

    @pytest.mark.parametrize("amount", [100.0, "100", None, True])
    def test_non_integer_amount_rejected(self, amount):
        with pytest.raises(TypeError):
            calculate_fee(amount, RATE, FIXED)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            calculate_fee(-1, RATE, FIXED)
