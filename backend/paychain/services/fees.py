"""
Platform fee calculation

fee(amount) = round_half_up(amount * rate) + fixed, all in integer minor units.
Decimal arithmetic keeps the rate exact (0.025 is not representable as a float).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union


def calculate_fee(amount: int, rate: Union[Decimal, str], fixed: int) -> int:
    """
    Compute the platform fee for a charge.

    Args:
        amount: Charge amount in minor units (positive integer)
        rate: Percentage fee as a fraction (e.g. Decimal("0.025"))
        fixed: Fixed fee in minor units

    Half values round up: calculate_fee(100, "0.025", 0) == 3.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError("amount must be an integer number of minor units")
    if amount < 0:
        raise ValueError("amount must not be negative")

    variable = (Decimal(amount) * Decimal(rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(variable) + fixed


def net_amount(amount: int, fee: int) -> int:
    """Amount the merchant receives after fees"""
    return amount - fee
