"""
config.py - Launch parameters

LaunchpadConfig gathers the published constants into one immutable object
handed to TokenFactory and SwapRouter. Defaults are the external contract;
tests and alternative deployments override individual fields.

Example:
    config = LaunchpadConfig(funding_goal=5 * WAD, trade_fee_bps=100)
    factory = TokenFactory(ledger, router, config=config)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .core import (
    CREATION_FEE, CURVE_CAP, FUNDING_GOAL, LIQUIDITY_ALLOTMENT,
    SWAP_FEE_BPS, TRADE_FEE_BPS, LIQUIDITY_TOLERANCE_BPS,
    BASIS_POINTS, NATIVE_SYMBOL,
)
from .pricing_curve import PricingCurve, LinearCurve


@dataclass(frozen=True, slots=True)
class LaunchpadConfig:
    """
    Immutable launch parameters.

    Attributes:
        creation_fee: wei required by create_asset
        funding_goal: wei of funding raised that triggers migration
        liquidity_allotment: asset units reserved at creation to seed the pool
        curve: pricing strategy; its cap is the curve cap
        swap_fee_bps: pool fee on amount_in, accrues to liquidity holders
        trade_fee_bps: curve buy fee forwarded to the fee recipient
        liquidity_tolerance_bps: largest non-proportional share of a deposit
            (of either side) that is returned rather than rejected
        base_symbol: symbol of the base currency unit
    """
    creation_fee: int = CREATION_FEE
    funding_goal: int = FUNDING_GOAL
    liquidity_allotment: int = LIQUIDITY_ALLOTMENT
    curve: PricingCurve = field(default_factory=LinearCurve)
    swap_fee_bps: int = SWAP_FEE_BPS
    trade_fee_bps: int = TRADE_FEE_BPS
    liquidity_tolerance_bps: int = LIQUIDITY_TOLERANCE_BPS
    base_symbol: str = NATIVE_SYMBOL

    def __post_init__(self):
        for name in ('creation_fee', 'funding_goal', 'liquidity_allotment'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative int, got {value!r}")
        if self.funding_goal == 0:
            raise ValueError("funding_goal must be positive")
        if self.liquidity_allotment == 0:
            raise ValueError("liquidity_allotment must be positive")
        if not isinstance(self.curve, PricingCurve):
            raise ValueError(f"curve must implement PricingCurve, got {type(self.curve).__name__}")
        if not 0 <= self.swap_fee_bps < BASIS_POINTS:
            raise ValueError(f"swap_fee_bps must be in [0, {BASIS_POINTS}), got {self.swap_fee_bps}")
        if not 0 <= self.trade_fee_bps < BASIS_POINTS:
            raise ValueError(f"trade_fee_bps must be in [0, {BASIS_POINTS}), got {self.trade_fee_bps}")
        if not 0 <= self.liquidity_tolerance_bps <= BASIS_POINTS:
            raise ValueError(
                f"liquidity_tolerance_bps must be in [0, {BASIS_POINTS}], got {self.liquidity_tolerance_bps}"
            )
        if not self.base_symbol:
            raise ValueError("base_symbol cannot be empty")

    @property
    def curve_cap(self) -> int:
        return self.curve.cap
