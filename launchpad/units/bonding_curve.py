"""
bonding_curve.py - Per-asset bonding curve sale

=== STATE ===

A BONDING_CURVE unit carries the sale state of one asset. Its symbol is the
curve handle, which is also the escrow wallet holding the base currency the
sale has collected:

    asset: str                 - Address of the asset being sold
    curve: PricingCurve        - Pricing strategy
    base: str                  - Base currency symbol
    circulating_supply: int    - Units issued through the curve, net of sells
    funding_raised: int        - Cumulative wei received, never decremented
    curve_cap: int             - circulating_supply never exceeds this
    funding_goal: int          - funding_raised >= goal triggers migration
    status: str                - TRADING or MIGRATED (terminal)
    pool: str | None           - Pool address once migrated
    buy_count / sell_count     - Trade counters

=== PURE FUNCTIONS ===

    calculate_buy(state, amount, trade_fee_bps)    -> BuyQuote
    calculate_spend(state, value, trade_fee_bps)   -> BuyQuote
    calculate_sell(state, amount, escrow_balance)  -> SellQuote

Quotes are plain values. plan_buy()/plan_sell() turn a quote into a
CurvePlan (internal moves, payouts, new state) that an orchestrator can
either submit alone via compute_buy()/compute_sell() or compose with the
migration into one transaction.

=== MOVE ORDER ===

    buy:  payer -> escrow (paid), system -> buyer (mint),
          [migration], escrow -> fee recipient (fee), escrow -> payer (excess)
    sell: seller -> system (burn), escrow -> seller (refund)

Payouts to outside wallets always come last.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange, UnitState,
    TransactionOrigin, OriginType,
    UNIT_TYPE_BONDING_CURVE, BASIS_POINTS, NATIVE_SYMBOL,
    STATUS_TRADING, STATUS_MIGRATED,
    CurveMigrated, InsufficientPayment, InsufficientBalance, InsufficientLiquidity,
    build_transaction, _freeze_state,
)
from ..fixed_point import as_int, checked_add, mul_div_up, mul_div_down
from ..pricing_curve import PricingCurve
from .asset_token import mint_move, burn_move


def curve_handle(asset: str) -> str:
    """Symbol of the curve unit for `asset`; also its escrow wallet."""
    return f"{asset}/curve"


def create_bonding_curve_unit(
    asset: str,
    curve: PricingCurve,
    funding_goal: int,
    base: str = NATIVE_SYMBOL,
) -> Unit:
    """
    Create the curve unit of a freshly launched asset, in TRADING status.

    Args:
        asset: Address of the asset sold through this curve
        curve: Pricing strategy (its cap becomes curve_cap)
        funding_goal: wei of funding that triggers migration
        base: Base currency symbol

    Returns:
        Unit holding the sale state. Holdings of the unit itself are unused.
    """
    if funding_goal <= 0:
        raise ValueError(f"funding_goal must be positive, got {funding_goal}")
    handle = curve_handle(asset)
    return Unit(
        symbol=handle,
        name=f"Bonding curve {asset}",
        unit_type=UNIT_TYPE_BONDING_CURVE,
        decimal_places=0,
        _frozen_state=_freeze_state({
            'asset': asset,
            'curve': curve,
            'base': base,
            'escrow': handle,
            'circulating_supply': 0,
            'funding_raised': 0,
            'curve_cap': curve.cap,
            'funding_goal': funding_goal,
            'status': STATUS_TRADING,
            'pool': None,
            'buy_count': 0,
            'sell_count': 0,
        }),
    )


# ============================================================================
# QUOTES (pure)
# ============================================================================

@dataclass(frozen=True, slots=True)
class BuyQuote:
    """
    Priced buy against the current curve state.

    Attributes:
        amount: Asset units issued
        cost: wei credited to funding (curve cost, or the whole net budget for spend)
        fee: wei forwarded to the fee recipient
        supply_after: circulating_supply after the buy
        funding_after: funding_raised after the buy
        reaches_goal: True if this buy makes funding_raised >= funding_goal
    """
    amount: int
    cost: int
    fee: int
    supply_after: int
    funding_after: int
    reaches_goal: bool

    @property
    def total(self) -> int:
        """wei the buyer must pay."""
        return self.cost + self.fee


@dataclass(frozen=True, slots=True)
class SellQuote:
    amount: int
    refund: int
    supply_after: int


def require_trading(state: UnitState) -> None:
    if state['status'] != STATUS_TRADING:
        raise CurveMigrated(f"curve for {state['asset']} is {state['status']}")


def _fee_on(cost: int, trade_fee_bps: int) -> int:
    if not trade_fee_bps:
        return 0
    return mul_div_up(cost, trade_fee_bps, BASIS_POINTS)


def calculate_buy(state: UnitState, amount: int, trade_fee_bps: int = 0) -> BuyQuote:
    """
    Price `amount` units at the current supply.

    Raises:
        CurveMigrated: If the curve no longer trades
        CurveCapExceeded: If the buy would exceed curve_cap
        ValueError: If amount is not a positive int
    """
    require_trading(state)
    supply = state['circulating_supply']
    cost = state['curve'].cost(supply, amount)
    funding_after = checked_add(state['funding_raised'], cost)
    return BuyQuote(
        amount=amount,
        cost=cost,
        fee=_fee_on(cost, trade_fee_bps),
        supply_after=supply + amount,
        funding_after=funding_after,
        reaches_goal=funding_after >= state['funding_goal'],
    )


def calculate_spend(state: UnitState, value: int, trade_fee_bps: int = 0) -> BuyQuote:
    """
    Largest buy affordable with exactly `value` wei, fee included.

    The whole budget net of fee counts as funding; the difference between
    it and the curve cost of the issued amount stays with the curve. When
    the budget would buy past curve_cap, the quote covers the remaining
    room at its curve cost and the rest of the budget is refunded.

    Raises:
        CurveMigrated: If the curve no longer trades
        InsufficientPayment: If the budget buys nothing
    """
    require_trading(state)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"value must be a positive int, got {value!r}")
    net = mul_div_down(value, BASIS_POINTS, BASIS_POINTS + trade_fee_bps)
    supply = state['circulating_supply']
    curve = state['curve']
    amount = curve.tokens_for_value(supply, net)
    if amount == 0:
        raise InsufficientPayment(f"{value} wei buys no units at supply {supply}")
    if supply + amount == state['curve_cap']:
        cost = curve.cost(supply, amount)
        fee = _fee_on(cost, trade_fee_bps)
    else:
        cost, fee = net, value - net
    funding_after = checked_add(state['funding_raised'], cost)
    return BuyQuote(
        amount=amount,
        cost=cost,
        fee=fee,
        supply_after=supply + amount,
        funding_after=funding_after,
        reaches_goal=funding_after >= state['funding_goal'],
    )


def calculate_sell(state: UnitState, amount: int, escrow_balance: int) -> SellQuote:
    """
    Price a sell of `amount` units back into the curve.

    Raises:
        CurveMigrated: If the curve no longer trades
        InsufficientBalance: If amount exceeds circulating_supply
        InsufficientLiquidity: If the escrow cannot cover the refund
    """
    require_trading(state)
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"amount must be a positive int, got {amount!r}")
    supply = state['circulating_supply']
    if amount > supply:
        raise InsufficientBalance(f"cannot sell {amount}, only {supply} circulating")
    refund = state['curve'].refund(supply - amount, amount)
    if refund > escrow_balance:
        raise InsufficientLiquidity(f"escrow holds {escrow_balance} wei, refund is {refund}")
    return SellQuote(amount=amount, refund=refund, supply_after=supply - amount)


# ============================================================================
# PLANS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CurvePlan:
    """
    Effects of one curve trade, split so a migration can be spliced in.

    `moves` must precede anything composed after them; `payouts` must be the
    final moves of the transaction.
    """
    quote: object
    state_change: UnitStateChange
    moves: Tuple[Move, ...]
    payouts: Tuple[Move, ...] = field(default_factory=tuple)

    @property
    def new_state(self) -> UnitState:
        return self.state_change.new_state


def plan_buy(
    view: LedgerView,
    symbol: str,
    payer: str,
    quote: BuyQuote,
    paid: int,
    fee_recipient: Optional[str] = None,
) -> CurvePlan:
    """
    Plan a priced buy paid with `paid` wei from `payer`.

    Raises:
        InsufficientPayment: If paid < quote.total
        InsufficientBalance: If payer holds fewer than `paid` wei
    """
    state = view.get_unit_state(symbol)
    require_trading(state)
    if paid < quote.total:
        raise InsufficientPayment(f"paid {paid} wei, price is {quote.total}")
    base, escrow, asset = state['base'], state['escrow'], state['asset']
    held = as_int(view.get_balance(payer, base))
    if held < paid:
        raise InsufficientBalance(f"{payer} holds {held} wei, cannot pay {paid}")
    if quote.fee and not fee_recipient:
        raise ValueError("fee_recipient required when a trade fee is charged")

    contract_id = f'buy_{asset}'
    moves = [
        Move(paid, base, payer, escrow, contract_id),
        mint_move(asset, payer, quote.amount, contract_id),
    ]
    payouts = []
    if quote.fee:
        payouts.append(Move(quote.fee, base, escrow, fee_recipient, f'trade_fee_{asset}'))
    excess = paid - quote.total
    if excess:
        payouts.append(Move(excess, base, escrow, payer, f'refund_{asset}'))

    new_state = {
        **state,
        'circulating_supply': quote.supply_after,
        'funding_raised': quote.funding_after,
        'buy_count': state['buy_count'] + 1,
    }
    return CurvePlan(
        quote=quote,
        state_change=UnitStateChange(unit=symbol, old_state=state, new_state=new_state),
        moves=tuple(moves),
        payouts=tuple(payouts),
    )


def plan_sell(view: LedgerView, symbol: str, seller: str, amount: int) -> CurvePlan:
    """
    Plan a sell of `amount` units by `seller`.

    Raises:
        InsufficientBalance: If seller holds fewer than `amount`
        InsufficientLiquidity: If the escrow cannot cover the refund
    """
    state = view.get_unit_state(symbol)
    require_trading(state)
    base, escrow, asset = state['base'], state['escrow'], state['asset']
    held = as_int(view.get_balance(seller, asset))
    if held < amount:
        raise InsufficientBalance(f"{seller} holds {held} of {asset}, cannot sell {amount}")
    quote = calculate_sell(state, amount, as_int(view.get_balance(escrow, base)))

    contract_id = f'sell_{asset}'
    moves = (burn_move(asset, seller, amount, contract_id),)
    payouts = ()
    if quote.refund:
        payouts = (Move(quote.refund, base, escrow, seller, contract_id),)

    new_state = {
        **state,
        'circulating_supply': quote.supply_after,
        'sell_count': state['sell_count'] + 1,
    }
    return CurvePlan(
        quote=quote,
        state_change=UnitStateChange(unit=symbol, old_state=state, new_state=new_state),
        moves=moves,
        payouts=payouts,
    )


def _origin(symbol: str, event: str) -> TransactionOrigin:
    return TransactionOrigin(
        origin_type=OriginType.CONTRACT,
        source_id=symbol,
        unit_symbol=symbol,
        event_type=event,
    )


def compute_buy(
    view: LedgerView,
    symbol: str,
    payer: str,
    amount: int,
    paid: int,
    trade_fee_bps: int = 0,
    fee_recipient: Optional[str] = None,
) -> PendingTransaction:
    """
    Standalone buy transaction without migration.

    Callers that must migrate on the goal-crossing buy compose plan_buy()
    with the migration instead (see TokenFactory).
    """
    state = view.get_unit_state(symbol)
    quote = calculate_buy(state, amount, trade_fee_bps)
    plan = plan_buy(view, symbol, payer, quote, paid, fee_recipient)
    return build_transaction(
        view, list(plan.moves + plan.payouts), [plan.state_change], _origin(symbol, "BUY"),
    )


def compute_sell(view: LedgerView, symbol: str, seller: str, amount: int) -> PendingTransaction:
    plan = plan_sell(view, symbol, seller, amount)
    return build_transaction(
        view, list(plan.moves + plan.payouts), [plan.state_change], _origin(symbol, "SELL"),
    )


def migrated_state(state: UnitState, pool: str) -> UnitState:
    """Terminal curve state after migration into `pool`."""
    return {**state, 'status': STATUS_MIGRATED, 'pool': pool}
