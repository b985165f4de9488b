"""
fixed_point.py - Exact integer arithmetic at 18 fractional digits.

Pricing and pool math run on Python ints. Python ints never wrap, so the
256-bit word of the settlement environment is enforced explicitly: every
widened product and every result is checked against UINT256_MAX and an
ArithmeticOverflow is raised instead of continuing with an out-of-range
value.

Division is always directed. mul_div_down/div_down floor, mul_div_up/div_up
ceil; callers pick the direction that favours the protocol.
"""

from __future__ import annotations
from decimal import Decimal
import math

from .core import ArithmeticOverflow, WAD

UINT256_MAX = 2 ** 256 - 1


def _check_uint(value: int, what: str = "value") -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{what} must be int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{what} must be non-negative, got {value}")
    if value > UINT256_MAX:
        raise ArithmeticOverflow(f"{what} exceeds 256 bits")
    return value


def checked_mul(*factors: int) -> int:
    """Multiply non-negative ints, raising ArithmeticOverflow past 256 bits."""
    result = 1
    for f in factors:
        result *= _check_uint(f, "factor")
        if result > UINT256_MAX:
            raise ArithmeticOverflow(f"product exceeds 256 bits ({len(factors)} factors)")
    return result


def checked_add(a: int, b: int) -> int:
    return _check_uint(_check_uint(a, "a") + _check_uint(b, "b"), "sum")


def div_down(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ZeroDivisionError("denominator must be positive")
    return _check_uint(numerator, "numerator") // denominator


def div_up(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ZeroDivisionError("denominator must be positive")
    return -(-_check_uint(numerator, "numerator") // denominator)


def mul_div_down(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with a checked double-width product."""
    return div_down(checked_mul(a, b), denominator)


def mul_div_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator) with a checked double-width product."""
    return div_up(checked_mul(a, b), denominator)


def isqrt(value: int) -> int:
    """Integer square root, floor(sqrt(value))."""
    return math.isqrt(_check_uint(value, "radicand"))


def to_wei(amount) -> int:
    """
    Convert a whole-unit amount (int, str or Decimal) to 18-digit base units.

    Fractions finer than one base unit are rejected rather than rounded.

    Example:
        to_wei("0.0001") == 10**14
    """
    if isinstance(amount, float):
        amount = str(amount)
    scaled = Decimal(amount) * WAD
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{amount} has more than 18 fractional digits")
    return _check_uint(int(scaled), "amount")


def from_wei(amount: int) -> Decimal:
    """Convert base units back to a whole-unit Decimal (exact)."""
    return Decimal(amount) / Decimal(WAD)


def as_int(quantity: Decimal) -> int:
    """Convert an integral ledger quantity to int, refusing fractional values."""
    if quantity != quantity.to_integral_value():
        raise ValueError(f"quantity {quantity} is not integral")
    return int(quantity)
