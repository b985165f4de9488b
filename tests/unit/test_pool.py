"""
test_pool.py - Unit tests for the constant-product pool

Tests:
- create_pool_unit factory
- calculate_add_liquidity (first and proportional deposits, tolerance)
- calculate_remove_liquidity
- calculate_swap (fee, rounding, slippage, empty reserves, invariant)
- plan_swap / plan_remove_liquidity move ordering (via FakeView)
- verify_pool
"""

import math
import pytest
from datetime import datetime

from launchpad import (
    Ledger, ExecuteResult, native,
    create_asset_token_unit, create_pool_unit,
    calculate_add_liquidity, calculate_remove_liquidity, calculate_swap,
    verify_pool, SwapDirection,
    SYSTEM_WALLET, UNIT_TYPE_LIQUIDITY, WAD,
    InsufficientBalance, InsufficientLiquidity, SlippageExceeded,
)
from launchpad.units.pool import (
    plan_swap, plan_remove_liquidity, plan_add_liquidity,
    compute_add_liquidity, compute_remove_liquidity, compute_swap,
    get_reserves,
)
from tests.fake_view import FakeView

ASSET = "0xasset"
POOL = "0xpool"


def pool_state(reserve_asset=0, reserve_base=0, supply=0, fee_bps=30):
    state = create_pool_unit(POOL, ASSET, fee_bps=fee_bps).state
    state.update(reserve_asset=reserve_asset, reserve_base=reserve_base, liquidity_supply=supply)
    return state


@pytest.fixture
def pool_ledger():
    """Ledger with an empty pool; alice holds 1M asset units and 100 ETH."""
    ledger = Ledger("test", datetime(2025, 1, 1), verbose=False, test_mode=True)
    ledger.register_unit(native())
    ledger.register_unit(create_asset_token_unit(ASSET, "Asset", "AST", "alice"))
    ledger.register_unit(create_pool_unit(POOL, ASSET, asset_ticker="AST"))
    for w in ("alice", "bob", POOL):
        ledger.register_wallet(w)
    for wallet, unit, qty in (("alice", ASSET, 1_000_000 * WAD), ("alice", "ETH", 100 * WAD),
                              ("bob", "ETH", 100 * WAD)):
        ledger.set_balance(wallet, unit, qty)
        ledger.set_balance(SYSTEM_WALLET, unit, ledger.get_balance(SYSTEM_WALLET, unit) - qty)
    return ledger


# ============================================================================
# create_pool_unit
# ============================================================================

class TestCreatePoolUnit:
    """Tests for create_pool_unit factory."""

    def test_empty_pool(self):
        unit = create_pool_unit(POOL, ASSET, asset_ticker="TKE1")
        assert unit.unit_type == UNIT_TYPE_LIQUIDITY
        state = unit.state
        assert state['reserve_asset'] == state['reserve_base'] == state['liquidity_supply'] == 0
        assert state['fee_bps'] == 30
        assert state['name'] == "Liquidity-TKE1-ETH"
        assert state['ticker'] == "LP-TKE1-ETH"
        assert state['nonce'] == 0

    def test_fee_bounds(self):
        with pytest.raises(ValueError):
            create_pool_unit(POOL, ASSET, fee_bps=10_000)


# ============================================================================
# Liquidity math
# ============================================================================

class TestAddLiquidity:
    """Tests for calculate_add_liquidity."""

    def test_first_deposit_mints_isqrt(self):
        x, y = 1000 * WAD, 2 * WAD
        quote = calculate_add_liquidity(pool_state(), x, y)
        assert quote.first
        assert quote.minted == math.isqrt(x * y)
        assert (quote.asset_used, quote.base_used) == (x, y)

    def test_proportional_deposit(self):
        state = pool_state(1000, 2000, math.isqrt(2_000_000))
        quote = calculate_add_liquidity(state, 500, 1000)
        assert quote.minted == 1414 // 2
        assert quote.asset_excess == quote.base_excess == 0

    def test_excess_base_returned(self):
        state = pool_state(1000, 2000, 1414)
        quote = calculate_add_liquidity(state, 100, 250)
        assert (quote.asset_used, quote.base_used) == (100, 200)
        assert quote.base_excess == 50
        assert quote.minted == 141

    def test_excess_asset_returned(self):
        state = pool_state(1000, 2000, 1414)
        quote = calculate_add_liquidity(state, 150, 200)
        assert (quote.asset_used, quote.base_used) == (100, 200)
        assert quote.asset_excess == 50

    def test_tolerance_exceeded(self):
        state = pool_state(1000, 2000, 1414)
        with pytest.raises(SlippageExceeded):
            calculate_add_liquidity(state, 100, 250, tolerance_bps=100)

    def test_within_tolerance(self):
        state = pool_state(1000 * WAD, 2000 * WAD, 1414 * WAD)
        quote = calculate_add_liquidity(state, 100 * WAD, 201 * WAD, tolerance_bps=100)
        assert quote.base_excess == WAD

    def test_dust_deposit_mints_nothing(self):
        state = pool_state(10 ** 30, 1, 10 ** 15)
        with pytest.raises(InsufficientLiquidity):
            calculate_add_liquidity(state, 1, 1)

    def test_zero_amount(self):
        with pytest.raises(ValueError):
            calculate_add_liquidity(pool_state(), 0, WAD)


class TestRemoveLiquidity:
    """Tests for calculate_remove_liquidity."""

    def test_pro_rata(self):
        quote = calculate_remove_liquidity(pool_state(10 ** 6, 10 ** 6, 10 ** 6), 250_000)
        assert (quote.asset_out, quote.base_out) == (250_000, 250_000)

    def test_rounds_down(self):
        quote = calculate_remove_liquidity(pool_state(10, 10, 3), 1)
        assert (quote.asset_out, quote.base_out) == (3, 3)

    def test_more_than_supply(self):
        with pytest.raises(InsufficientLiquidity):
            calculate_remove_liquidity(pool_state(10, 10, 3), 4)

    def test_one_side_may_floor_to_zero(self):
        quote = calculate_remove_liquidity(pool_state(1000, 2, 1000), 1)
        assert (quote.asset_out, quote.base_out) == (1, 0)

    def test_both_sides_zero(self):
        with pytest.raises(InsufficientLiquidity):
            calculate_remove_liquidity(pool_state(10, 10, 1000), 1)


# ============================================================================
# Swap math
# ============================================================================

class TestSwap:
    """Tests for calculate_swap."""

    def test_known_output(self):
        """1000 in at 30 bps on 1M/1M reserves pays 996."""
        quote = calculate_swap(pool_state(10 ** 6, 10 ** 6, 10 ** 6), 1000, SwapDirection.BASE_TO_ASSET)
        assert quote.amount_out == 996
        assert quote.fee == 3
        assert quote.reserve_in_after == 1_001_000
        assert quote.reserve_out_after == 999_004

    def test_product_never_decreases(self):
        state = pool_state(123_456 * WAD, 7 * WAD, 10 ** 20)
        k = state['reserve_asset'] * state['reserve_base']
        quote = calculate_swap(state, 5 * WAD, SwapDirection.BASE_TO_ASSET)
        assert quote.reserve_in_after * quote.reserve_out_after >= k

    def test_zero_fee_still_rounds_for_pool(self):
        state = pool_state(10 ** 6, 10 ** 6, 10 ** 6, fee_bps=0)
        quote = calculate_swap(state, 1000, SwapDirection.ASSET_TO_BASE)
        assert quote.reserve_in_after * quote.reserve_out_after >= 10 ** 12

    def test_accepts_string_direction(self):
        quote = calculate_swap(pool_state(10 ** 6, 10 ** 6, 10 ** 6), 1000, "asset_to_base")
        assert quote.direction == SwapDirection.ASSET_TO_BASE

    def test_slippage(self):
        with pytest.raises(SlippageExceeded):
            calculate_swap(pool_state(10 ** 6, 10 ** 6, 10 ** 6), 1000, SwapDirection.BASE_TO_ASSET, 997)

    def test_slippage_bound_inclusive(self):
        quote = calculate_swap(pool_state(10 ** 6, 10 ** 6, 10 ** 6), 1000, SwapDirection.BASE_TO_ASSET, 996)
        assert quote.amount_out == 996

    def test_empty_pool(self):
        with pytest.raises(InsufficientLiquidity):
            calculate_swap(pool_state(), 1000, SwapDirection.BASE_TO_ASSET)

    def test_output_rounds_to_zero(self):
        with pytest.raises(InsufficientLiquidity):
            calculate_swap(pool_state(10 ** 6, 10 ** 6, 10 ** 6), 1, SwapDirection.BASE_TO_ASSET)

    def test_huge_swap_never_drains(self):
        quote = calculate_swap(pool_state(1000, 1000, 1000), 10 ** 30, SwapDirection.BASE_TO_ASSET)
        assert quote.amount_out < 1000


# ============================================================================
# Plans and execution
# ============================================================================

class TestPlans:
    """Tests for plan_swap / plan_remove_liquidity (FakeView)."""

    def test_swap_moves(self):
        view = FakeView(balances={'bob': {'ETH': 10 ** 6}}, states={POOL: pool_state(10 ** 6, 10 ** 6, 10 ** 6)})
        plan = plan_swap(view, POOL, "bob", 1000, SwapDirection.BASE_TO_ASSET)
        (pay_in,) = plan.moves
        (pay_out,) = plan.payouts
        assert (pay_in.unit_symbol, pay_in.source, pay_in.dest) == ("ETH", "bob", POOL)
        assert (pay_out.unit_symbol, pay_out.source, pay_out.dest) == (ASSET, POOL, "bob")
        assert plan.state_change.new_state['reserve_base'] == 1_001_000
        assert plan.state_change.new_state['reserve_asset'] == 999_004

    def test_swap_trader_short(self):
        view = FakeView(balances={'bob': {'ETH': 999}}, states={POOL: pool_state(10 ** 6, 10 ** 6, 10 ** 6)})
        with pytest.raises(InsufficientBalance):
            plan_swap(view, POOL, "bob", 1000, SwapDirection.BASE_TO_ASSET)

    def test_remove_holder_short(self):
        view = FakeView(balances={'bob': {POOL: 10}}, states={POOL: pool_state(10 ** 6, 10 ** 6, 10 ** 6)})
        with pytest.raises(InsufficientBalance):
            plan_remove_liquidity(view, POOL, "bob", 11)

    def test_every_plan_bumps_nonce(self):
        state = {**pool_state(10 ** 6, 10 ** 6, 10 ** 6), 'nonce': 7}
        view = FakeView(
            balances={'bob': {'ETH': 10 ** 6, ASSET: 10 ** 6, POOL: 10 ** 6}},
            states={POOL: state},
        )
        quote = calculate_add_liquidity(state, 1000, 1000)
        plans = [
            plan_add_liquidity(POOL, state, quote, "bob", "bob", "bob"),
            plan_remove_liquidity(view, POOL, "bob", 1000),
            plan_swap(view, POOL, "bob", 1000, SwapDirection.BASE_TO_ASSET),
        ]
        for plan in plans:
            assert plan.state_change.old_state['nonce'] == 7
            assert plan.state_change.new_state['nonce'] == 8

    def test_one_sided_removal_pays_one_side(self):
        view = FakeView(balances={'bob': {POOL: 1}}, states={POOL: pool_state(1000, 2, 1000)})
        plan = plan_remove_liquidity(view, POOL, "bob", 1)
        (payout,) = plan.payouts
        assert (payout.unit_symbol, payout.quantity) == (ASSET, 1)
        assert plan.state_change.new_state['reserve_base'] == 2


class TestExecution:
    """compute_* executed against a real ledger."""

    def test_full_cycle(self, pool_ledger):
        x, y = 100_000 * WAD, 10 * WAD
        assert pool_ledger.execute(compute_add_liquidity(pool_ledger, POOL, "alice", x, y)) == ExecuteResult.APPLIED
        minted = math.isqrt(x * y)
        assert pool_ledger.get_balance("alice", POOL) == minted
        assert get_reserves(pool_ledger, POOL) == (x, y)
        assert verify_pool(pool_ledger, POOL)['valid']

        assert pool_ledger.execute(
            compute_swap(pool_ledger, POOL, "bob", WAD, SwapDirection.BASE_TO_ASSET)
        ) == ExecuteResult.APPLIED
        assert pool_ledger.get_balance("bob", ASSET) > 0
        assert verify_pool(pool_ledger, POOL)['valid']

        assert pool_ledger.execute(
            compute_remove_liquidity(pool_ledger, POOL, "alice", minted)
        ) == ExecuteResult.APPLIED
        assert get_reserves(pool_ledger, POOL) == (0, 0)
        assert pool_ledger.get_unit_state(POOL)['liquidity_supply'] == 0
        assert verify_pool(pool_ledger, POOL)['valid']
        assert pool_ledger.verify_double_entry()['valid']

    def test_repeated_state_is_not_a_replay(self, pool_ledger):
        pool_ledger.execute(compute_add_liquidity(pool_ledger, POOL, "alice", 1000 * WAD, 10 * WAD))
        first = compute_remove_liquidity(pool_ledger, POOL, "alice", 10 * WAD)
        assert pool_ledger.execute(first) == ExecuteResult.APPLIED
        assert pool_ledger.execute(
            compute_add_liquidity(pool_ledger, POOL, "alice", 100 * WAD, WAD)
        ) == ExecuteResult.APPLIED
        again = compute_remove_liquidity(pool_ledger, POOL, "alice", 10 * WAD)
        assert again.intent_id != first.intent_id
        assert pool_ledger.execute(again) == ExecuteResult.APPLIED
        assert get_reserves(pool_ledger, POOL) == (900 * WAD, 9 * WAD)

    def test_one_sided_removal_executes(self, pool_ledger):
        pool_ledger.execute(compute_add_liquidity(pool_ledger, POOL, "alice", 10 ** 6, 4))
        assert pool_ledger.execute(compute_remove_liquidity(pool_ledger, POOL, "alice", 1)) == ExecuteResult.APPLIED
        assert get_reserves(pool_ledger, POOL) == (10 ** 6 - 500, 4)
        assert verify_pool(pool_ledger, POOL)['valid']

    def test_verify_detects_drift(self, pool_ledger):
        pool_ledger.execute(compute_add_liquidity(pool_ledger, POOL, "alice", 1000, 1000))
        pool_ledger.set_balance(POOL, "ETH", 999)
        report = verify_pool(pool_ledger, POOL)
        assert not report['valid']
        assert any("reserve_base" in p for p in report['problems'])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
