"""
pricing_curve.py - Bonding curve pricing strategies

A curve prices issuance as a function of circulating supply. All functions
are pure and work in integer base units:

    supply, amount      10^-18 token units
    prices and costs    wei

=== LINEAR CURVE (reference) ===

Marginal price per whole token:

    p(s) = base_price + slope * s

Cost of moving supply from s to s + a is the definite integral, evaluated
in closed form over a single denominator:

    cost = (2 * base_price * a * WAD + slope * a * (2s + a)) / (2 * WAD^2)

=== ROUNDING ===

    cost()    rounds UP   (the protocol receives it)
    refund()  rounds DOWN (the protocol pays it)

so cost(s, a) >= refund(s, a) and no sequence of buys and sells can extract
more than was paid in.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .core import (
    WAD, BASE_PRICE, PRICE_SLOPE, CURVE_CAP,
    CurveCapExceeded,
)
from .fixed_point import checked_mul, checked_add, div_up, div_down, isqrt


@runtime_checkable
class PricingCurve(Protocol):
    """Pricing strategy used by the bonding curve ledger."""

    cap: int

    def cost(self, supply_before: int, amount: int) -> int:
        """Price in wei to issue `amount` starting at `supply_before` (rounded up)."""
        ...

    def refund(self, supply_before: int, amount: int) -> int:
        """Wei paid out to redeem `amount` ending at `supply_before` (rounded down)."""
        ...

    def marginal_price(self, supply: int) -> int:
        """Spot price in wei per whole token at `supply`."""
        ...

    def tokens_for_value(self, supply_before: int, value: int) -> int:
        """Largest amount whose cost() does not exceed `value`, capped by the curve."""
        ...


def _check_request(cap: int, supply_before: int, amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValueError(f"amount must be int, got {type(amount).__name__}")
    if not isinstance(supply_before, int) or supply_before < 0:
        raise ValueError(f"supply_before must be a non-negative int, got {supply_before!r}")
    if amount <= 0:
        raise ValueError(f"amount must be positive, got {amount}")
    if supply_before + amount > cap:
        raise CurveCapExceeded(
            f"supply {supply_before} + {amount} exceeds curve cap {cap}"
        )


def _search_tokens_for_value(curve: PricingCurve, supply_before: int, value: int) -> int:
    """Binary search for the largest affordable amount. Works for any monotone curve."""
    room = curve.cap - supply_before
    if value <= 0 or room <= 0:
        return 0
    if curve.cost(supply_before, room) <= value:
        return room
    lo, hi = 0, room  # cost(lo) <= value < cost(hi)
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if curve.cost(supply_before, mid) <= value:
            lo = mid
        else:
            hi = mid
    return lo


@dataclass(frozen=True, slots=True)
class LinearCurve:
    """
    Linear marginal price p(s) = base_price + slope * s.

    Attributes:
        base_price: wei per whole token at zero supply
        slope: wei per whole token added for every whole token issued
        cap: maximum supply issuable through the curve (base units)
    """
    base_price: int = BASE_PRICE
    slope: int = PRICE_SLOPE
    cap: int = CURVE_CAP

    def __post_init__(self):
        if self.base_price < 0 or self.slope < 0:
            raise ValueError("base_price and slope must be non-negative")
        if self.base_price == 0 and self.slope == 0:
            raise ValueError("curve must have a positive price somewhere")
        if self.cap <= 0:
            raise ValueError(f"cap must be positive, got {self.cap}")

    def _numerator(self, supply_before: int, amount: int) -> int:
        flat = checked_mul(2, self.base_price, amount, WAD)
        ramp = checked_mul(self.slope, amount, 2 * supply_before + amount)
        return checked_add(flat, ramp)

    def cost(self, supply_before: int, amount: int) -> int:
        _check_request(self.cap, supply_before, amount)
        return div_up(self._numerator(supply_before, amount), 2 * WAD * WAD)

    def refund(self, supply_before: int, amount: int) -> int:
        _check_request(self.cap, supply_before, amount)
        return div_down(self._numerator(supply_before, amount), 2 * WAD * WAD)

    def marginal_price(self, supply: int) -> int:
        return self.base_price + checked_mul(self.slope, supply) // WAD

    def tokens_for_value(self, supply_before: int, value: int) -> int:
        room = self.cap - supply_before
        if value <= 0 or room <= 0:
            return 0
        # cost <= value  <=>  slope*a^2 + b*a - c <= 0
        b = checked_add(checked_mul(2, self.base_price, WAD), checked_mul(2, self.slope, supply_before))
        c = checked_mul(2, WAD, WAD, value)
        if self.slope == 0:
            amount = c // b
        else:
            disc = checked_add(checked_mul(b, b), checked_mul(4, self.slope, c))
            amount = (isqrt(disc) - b) // (2 * self.slope)
        amount = max(0, min(amount, room))
        # isqrt is exact to one unit; settle on the boundary
        while amount < room and self._numerator(supply_before, amount + 1) <= c:
            amount += 1
        while amount > 0 and self._numerator(supply_before, amount) > c:
            amount -= 1
        return amount


@dataclass(frozen=True, slots=True)
class QuadraticCurve:
    """
    Quadratic marginal price p(s) = base_price + k * s^2 (s in whole tokens).

    cost = (3 * base_price * a * WAD^2 + k * ((s + a)^3 - s^3)) / (3 * WAD^3)
    """
    base_price: int = BASE_PRICE
    k: int = 100
    cap: int = CURVE_CAP

    def __post_init__(self):
        if self.base_price < 0 or self.k < 0:
            raise ValueError("base_price and k must be non-negative")
        if self.base_price == 0 and self.k == 0:
            raise ValueError("curve must have a positive price somewhere")
        if self.cap <= 0:
            raise ValueError(f"cap must be positive, got {self.cap}")

    def _numerator(self, supply_before: int, amount: int) -> int:
        end = supply_before + amount
        cubes = checked_mul(end, end, end) - checked_mul(supply_before, supply_before, supply_before)
        flat = checked_mul(3, self.base_price, amount, WAD, WAD)
        return checked_add(flat, checked_mul(self.k, cubes))

    def cost(self, supply_before: int, amount: int) -> int:
        _check_request(self.cap, supply_before, amount)
        return div_up(self._numerator(supply_before, amount), 3 * WAD ** 3)

    def refund(self, supply_before: int, amount: int) -> int:
        _check_request(self.cap, supply_before, amount)
        return div_down(self._numerator(supply_before, amount), 3 * WAD ** 3)

    def marginal_price(self, supply: int) -> int:
        return self.base_price + checked_mul(self.k, supply, supply) // (WAD * WAD)

    def tokens_for_value(self, supply_before: int, value: int) -> int:
        return _search_tokens_for_value(self, supply_before, value)
