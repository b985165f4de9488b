"""
pool.py - Constant-product pool for one (asset, base) pair

=== STATE ===

A LIQUIDITY unit represents one pool. Its symbol is the pool address, which
is also the wallet holding the reserves. Holdings of the unit are the
liquidity-receipt positions, issued by and redeemed to the system wallet.

    asset: str              - Asset side symbol
    base: str               - Base currency symbol
    reserve_asset: int      - Always equals the pool wallet's asset balance
    reserve_base: int       - Always equals the pool wallet's base balance
    liquidity_supply: int   - Outstanding liquidity units
    fee_bps: int            - Swap fee on amount_in, accrues to the reserves
    name / ticker: str      - Display names of the liquidity unit
    nonce: int              - Bumped by every deposit, removal and swap, so an
                              operation that recreates an earlier state is not
                              taken for a replay of it

liquidity_supply == 0 exactly when both reserves are 0.

=== MATH ===

    first deposit:   minted = isqrt(asset_in * base_in)
    later deposits:  minted = min(a * L / Ra, b * L / Rb), excess not taken
    removal:         out = R * units / L (floor); one side may floor to 0
    swap:            in_after_fee = in * (10000 - fee_bps) / 10000 (floor)
                     out = R_out - ceil(R_in * R_out / (R_in + in_after_fee))

Every swap is checked to leave R_in' * R_out' >= R_in * R_out.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange, UnitState,
    TransactionOrigin, OriginType,
    UNIT_TYPE_LIQUIDITY, BASIS_POINTS, SYSTEM_WALLET, NATIVE_SYMBOL,
    InsufficientBalance, InsufficientLiquidity, SlippageExceeded, InvariantViolation,
    build_transaction, _freeze_state,
)
from ..fixed_point import (
    as_int, checked_add, checked_mul, isqrt, mul_div_down, mul_div_up,
)


class SwapDirection(Enum):
    ASSET_TO_BASE = "asset_to_base"
    BASE_TO_ASSET = "base_to_asset"


def create_pool_unit(
    address: str,
    asset: str,
    base: str = NATIVE_SYMBOL,
    fee_bps: int = 30,
    asset_ticker: Optional[str] = None,
) -> Unit:
    """
    Create an empty pool unit.

    Args:
        address: Pool address (unit symbol and reserve wallet)
        asset: Asset side symbol
        base: Base currency symbol
        fee_bps: Swap fee in basis points
        asset_ticker: Display ticker of the asset for the liquidity unit name

    Returns:
        Unit with zero reserves and zero liquidity supply.
    """
    if not 0 <= fee_bps < BASIS_POINTS:
        raise ValueError(f"fee_bps must be in [0, {BASIS_POINTS}), got {fee_bps}")
    ticker = asset_ticker or asset
    return Unit(
        symbol=address,
        name=f"Liquidity-{ticker}-{base}",
        unit_type=UNIT_TYPE_LIQUIDITY,
        decimal_places=0,
        _frozen_state=_freeze_state({
            'asset': asset,
            'base': base,
            'reserve_asset': 0,
            'reserve_base': 0,
            'liquidity_supply': 0,
            'fee_bps': fee_bps,
            'name': f"Liquidity-{ticker}-{base}",
            'ticker': f"LP-{ticker}-{base}",
            'nonce': 0,
        }),
    )


def _check_positive(value: int, what: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"{what} must be a positive int, got {value!r}")


# ============================================================================
# QUOTES (pure)
# ============================================================================

@dataclass(frozen=True, slots=True)
class LiquidityQuote:
    """Accepted amounts, returned excess and minted units of a deposit."""
    asset_used: int
    base_used: int
    asset_excess: int
    base_excess: int
    minted: int
    first: bool


@dataclass(frozen=True, slots=True)
class RemovalQuote:
    units: int
    asset_out: int
    base_out: int


@dataclass(frozen=True, slots=True)
class SwapQuote:
    direction: SwapDirection
    amount_in: int
    amount_out: int
    fee: int
    reserve_in_after: int
    reserve_out_after: int


def _within_tolerance(excess: int, supplied: int, tolerance_bps: int) -> bool:
    return checked_mul(excess, BASIS_POINTS) <= checked_mul(supplied, tolerance_bps)


def calculate_add_liquidity(
    state: UnitState,
    asset_in: int,
    base_in: int,
    tolerance_bps: int = BASIS_POINTS,
) -> LiquidityQuote:
    """
    Price a deposit of (asset_in, base_in).

    A non-proportional deposit is trimmed to the pool ratio; the trimmed
    part is excess that is not taken from the depositor.

    Raises:
        SlippageExceeded: If the excess is above tolerance_bps of that side
        InsufficientLiquidity: If the deposit would mint zero units
    """
    _check_positive(asset_in, "asset_in")
    _check_positive(base_in, "base_in")
    supply = state['liquidity_supply']
    ra, rb = state['reserve_asset'], state['reserve_base']

    if supply == 0:
        minted = isqrt(checked_mul(asset_in, base_in))
        if minted == 0:
            raise InsufficientLiquidity("first deposit mints no liquidity")
        return LiquidityQuote(asset_in, base_in, 0, 0, minted, True)

    base_optimal = mul_div_down(asset_in, rb, ra)
    if base_optimal <= base_in:
        asset_used, base_used = asset_in, base_optimal
    else:
        asset_used, base_used = mul_div_down(base_in, ra, rb), base_in
    asset_excess, base_excess = asset_in - asset_used, base_in - base_used

    if not (_within_tolerance(asset_excess, asset_in, tolerance_bps)
            and _within_tolerance(base_excess, base_in, tolerance_bps)):
        raise SlippageExceeded(
            f"deposit ({asset_in}, {base_in}) is off the pool ratio ({ra}, {rb}) "
            f"by more than {tolerance_bps} bps"
        )

    minted = min(mul_div_down(asset_used, supply, ra), mul_div_down(base_used, supply, rb))
    if minted == 0:
        raise InsufficientLiquidity("deposit mints no liquidity")
    return LiquidityQuote(asset_used, base_used, asset_excess, base_excess, minted, False)


def calculate_remove_liquidity(state: UnitState, units: int) -> RemovalQuote:
    """
    Price the redemption of `units` liquidity units.

    Raises:
        InsufficientLiquidity: If units exceeds liquidity_supply, or both
            sides floor to 0
    """
    _check_positive(units, "units")
    supply = state['liquidity_supply']
    if units > supply:
        raise InsufficientLiquidity(f"cannot redeem {units}, supply is {supply}")
    asset_out = mul_div_down(state['reserve_asset'], units, supply)
    base_out = mul_div_down(state['reserve_base'], units, supply)
    if asset_out == 0 and base_out == 0:
        raise InsufficientLiquidity(f"redeeming {units} units pays out nothing")
    return RemovalQuote(units=units, asset_out=asset_out, base_out=base_out)


def _reserves_for(state: UnitState, direction: SwapDirection) -> Tuple[int, int]:
    if direction == SwapDirection.ASSET_TO_BASE:
        return state['reserve_asset'], state['reserve_base']
    return state['reserve_base'], state['reserve_asset']


def calculate_swap(
    state: UnitState,
    amount_in: int,
    direction: SwapDirection,
    min_amount_out: int = 0,
) -> SwapQuote:
    """
    Price a swap of `amount_in` in the given direction.

    Raises:
        InsufficientLiquidity: If reserves are empty or output would be 0
            or would drain the whole output reserve
        SlippageExceeded: If output is below min_amount_out
        InvariantViolation: If the product of reserves would decrease
    """
    _check_positive(amount_in, "amount_in")
    if min_amount_out < 0:
        raise ValueError(f"min_amount_out must be non-negative, got {min_amount_out}")
    direction = SwapDirection(direction)
    reserve_in, reserve_out = _reserves_for(state, direction)
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity("pool has no reserves")

    in_after_fee = mul_div_down(amount_in, BASIS_POINTS - state['fee_bps'], BASIS_POINTS)
    k = checked_mul(reserve_in, reserve_out)
    amount_out = reserve_out - mul_div_up(reserve_in, reserve_out, checked_add(reserve_in, in_after_fee))
    if amount_out <= 0:
        raise InsufficientLiquidity(f"swap of {amount_in} yields nothing")
    if amount_out >= reserve_out:
        raise InsufficientLiquidity(f"swap of {amount_in} would drain the pool")
    if amount_out < min_amount_out:
        raise SlippageExceeded(f"output {amount_out} below minimum {min_amount_out}")

    reserve_in_after = checked_add(reserve_in, amount_in)
    reserve_out_after = reserve_out - amount_out
    if checked_mul(reserve_in_after, reserve_out_after) < k:
        raise InvariantViolation(
            f"swap would decrease k: {reserve_in_after}*{reserve_out_after} < {k}"
        )
    return SwapQuote(
        direction=direction,
        amount_in=amount_in,
        amount_out=amount_out,
        fee=amount_in - in_after_fee,
        reserve_in_after=reserve_in_after,
        reserve_out_after=reserve_out_after,
    )


# ============================================================================
# PLANS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolPlan:
    """Effects of one pool operation; `payouts` must be the last moves."""
    quote: Any
    state_change: UnitStateChange
    moves: Tuple[Move, ...]
    payouts: Tuple[Move, ...] = field(default_factory=tuple)


def plan_add_liquidity(
    pool: str,
    state: UnitState,
    quote: LiquidityQuote,
    asset_source: str,
    base_source: str,
    recipient: str,
) -> PoolPlan:
    """
    Plan a priced deposit against `state`.

    `state` is passed explicitly so a deposit can be planned against a pool
    created in the same transaction.
    """
    contract_id = f'add_liquidity_{pool}'
    moves = [
        Move(quote.asset_used, state['asset'], asset_source, pool, contract_id),
        Move(quote.base_used, state['base'], base_source, pool, contract_id),
        Move(quote.minted, pool, SYSTEM_WALLET, recipient, contract_id),
    ]
    new_state = {
        **state,
        'reserve_asset': state['reserve_asset'] + quote.asset_used,
        'reserve_base': state['reserve_base'] + quote.base_used,
        'liquidity_supply': state['liquidity_supply'] + quote.minted,
        'nonce': state['nonce'] + 1,
    }
    return PoolPlan(
        quote=quote,
        state_change=UnitStateChange(unit=pool, old_state=state, new_state=new_state),
        moves=tuple(moves),
    )


def plan_remove_liquidity(view: LedgerView, pool: str, provider: str, units: int) -> PoolPlan:
    """
    Plan the redemption of `units` held by `provider`.

    Raises:
        InsufficientBalance: If provider holds fewer than `units`
    """
    _check_positive(units, "units")
    held = as_int(view.get_balance(provider, pool))
    if held < units:
        raise InsufficientBalance(f"{provider} holds {held} of {pool}, cannot redeem {units}")
    state = view.get_unit_state(pool)
    quote = calculate_remove_liquidity(state, units)

    contract_id = f'remove_liquidity_{pool}'
    payouts = []
    if quote.asset_out:
        payouts.append(Move(quote.asset_out, state['asset'], pool, provider, contract_id))
    if quote.base_out:
        payouts.append(Move(quote.base_out, state['base'], pool, provider, contract_id))

    new_state = {
        **state,
        'reserve_asset': state['reserve_asset'] - quote.asset_out,
        'reserve_base': state['reserve_base'] - quote.base_out,
        'liquidity_supply': state['liquidity_supply'] - units,
        'nonce': state['nonce'] + 1,
    }
    return PoolPlan(
        quote=quote,
        state_change=UnitStateChange(unit=pool, old_state=state, new_state=new_state),
        moves=(Move(units, pool, provider, SYSTEM_WALLET, contract_id),),
        payouts=tuple(payouts),
    )


def plan_swap(
    view: LedgerView,
    pool: str,
    trader: str,
    amount_in: int,
    direction: SwapDirection,
    min_amount_out: int = 0,
) -> PoolPlan:
    """
    Plan a swap paid from `trader`'s balance.

    Raises:
        InsufficientBalance: If trader holds fewer than amount_in
    """
    state = view.get_unit_state(pool)
    quote = calculate_swap(state, amount_in, direction, min_amount_out)
    if quote.direction == SwapDirection.ASSET_TO_BASE:
        unit_in, unit_out = state['asset'], state['base']
        reserve_asset, reserve_base = quote.reserve_in_after, quote.reserve_out_after
    else:
        unit_in, unit_out = state['base'], state['asset']
        reserve_asset, reserve_base = quote.reserve_out_after, quote.reserve_in_after

    held = as_int(view.get_balance(trader, unit_in))
    if held < amount_in:
        raise InsufficientBalance(f"{trader} holds {held} {unit_in}, cannot swap {amount_in}")

    contract_id = f'swap_{pool}'
    new_state = {
        **state,
        'reserve_asset': reserve_asset,
        'reserve_base': reserve_base,
        'nonce': state['nonce'] + 1,
    }
    return PoolPlan(
        quote=quote,
        state_change=UnitStateChange(unit=pool, old_state=state, new_state=new_state),
        moves=(Move(amount_in, unit_in, trader, pool, contract_id),),
        payouts=(Move(quote.amount_out, unit_out, pool, trader, contract_id),),
    )


def _origin(pool: str, event: str) -> TransactionOrigin:
    return TransactionOrigin(
        origin_type=OriginType.CONTRACT,
        source_id=pool,
        unit_symbol=pool,
        event_type=event,
    )


def _to_transaction(view: LedgerView, plan: PoolPlan, pool: str, event: str) -> PendingTransaction:
    return build_transaction(
        view, list(plan.moves + plan.payouts), [plan.state_change], _origin(pool, event),
    )


def plan_deposit(
    view: LedgerView,
    pool: str,
    provider: str,
    asset_in: int,
    base_in: int,
    tolerance_bps: int = BASIS_POINTS,
) -> PoolPlan:
    """
    Plan a deposit paid by `provider`, crediting the minted units to `provider`.

    Raises:
        InsufficientBalance: If provider cannot cover the accepted amounts
    """
    state = view.get_unit_state(pool)
    quote = calculate_add_liquidity(state, asset_in, base_in, tolerance_bps)
    for unit, needed in ((state['asset'], quote.asset_used), (state['base'], quote.base_used)):
        held = as_int(view.get_balance(provider, unit))
        if held < needed:
            raise InsufficientBalance(f"{provider} holds {held} {unit}, deposit needs {needed}")
    return plan_add_liquidity(pool, state, quote, provider, provider, provider)


def compute_add_liquidity(
    view: LedgerView,
    pool: str,
    provider: str,
    asset_in: int,
    base_in: int,
    tolerance_bps: int = BASIS_POINTS,
) -> PendingTransaction:
    plan = plan_deposit(view, pool, provider, asset_in, base_in, tolerance_bps)
    return _to_transaction(view, plan, pool, "ADD_LIQUIDITY")


def compute_remove_liquidity(view: LedgerView, pool: str, provider: str, units: int) -> PendingTransaction:
    return _to_transaction(view, plan_remove_liquidity(view, pool, provider, units), pool, "REMOVE_LIQUIDITY")


def compute_swap(
    view: LedgerView,
    pool: str,
    trader: str,
    amount_in: int,
    direction: SwapDirection,
    min_amount_out: int = 0,
) -> PendingTransaction:
    plan = plan_swap(view, pool, trader, amount_in, direction, min_amount_out)
    return _to_transaction(view, plan, pool, "SWAP")


# ============================================================================
# READS
# ============================================================================

def get_reserves(view: LedgerView, pool: str) -> Tuple[int, int]:
    """(reserve_asset, reserve_base) of a pool."""
    state = view.get_unit_state(pool)
    return state['reserve_asset'], state['reserve_base']


def quote_swap(view: LedgerView, pool: str, amount_in: int, direction: SwapDirection) -> SwapQuote:
    return calculate_swap(view.get_unit_state(pool), amount_in, direction)


def quote_remove_liquidity(view: LedgerView, pool: str, units: int) -> RemovalQuote:
    return calculate_remove_liquidity(view.get_unit_state(pool), units)


def verify_pool(view: LedgerView, pool: str) -> Dict[str, Any]:
    """
    Check a pool's recorded state against the ledger.

    Returns:
        Dict with 'valid' (bool) and 'problems' (list of strings).
    """
    state = view.get_unit_state(pool)
    problems = []
    held_asset = as_int(view.get_balance(pool, state['asset']))
    held_base = as_int(view.get_balance(pool, state['base']))
    if held_asset != state['reserve_asset']:
        problems.append(f"reserve_asset {state['reserve_asset']} != wallet balance {held_asset}")
    if held_base != state['reserve_base']:
        problems.append(f"reserve_base {state['reserve_base']} != wallet balance {held_base}")
    outstanding = -as_int(view.get_balance(SYSTEM_WALLET, pool))
    if outstanding != state['liquidity_supply']:
        problems.append(f"liquidity_supply {state['liquidity_supply']} != outstanding {outstanding}")
    empty_reserves = state['reserve_asset'] == 0 and state['reserve_base'] == 0
    if (state['liquidity_supply'] == 0) != empty_reserves:
        problems.append("liquidity_supply is zero iff reserves are zero: violated")
    return {'valid': not problems, 'problems': problems}
