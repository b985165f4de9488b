"""
Units module - Factory functions and planners for launchpad units.

This module provides the three unit kinds behind a launch:
- Asset tokens: fungible assets with mint/burn/transfer/allowance
- Bonding curves: per-asset sale state, buy/sell pricing and planning
- Pools: constant-product reserves, liquidity and swaps

All unit factories and related functions are re-exported here for convenience.
"""

# Asset tokens
from .asset_token import (
    create_asset_token_unit,
    compute_mint,
    compute_burn,
    compute_transfer,
    compute_approve,
    compute_transfer_from,
    balance_of,
    allowance,
)

# Bonding curves
from .bonding_curve import (
    BuyQuote,
    SellQuote,
    CurvePlan,
    curve_handle,
    create_bonding_curve_unit,
    calculate_buy,
    calculate_spend,
    calculate_sell,
    plan_buy,
    plan_sell,
    compute_buy,
    compute_sell,
)

# Pools
from .pool import (
    SwapDirection,
    LiquidityQuote,
    RemovalQuote,
    SwapQuote,
    PoolPlan,
    create_pool_unit,
    calculate_add_liquidity,
    calculate_remove_liquidity,
    calculate_swap,
    plan_add_liquidity,
    plan_deposit,
    plan_remove_liquidity,
    plan_swap,
    compute_add_liquidity,
    compute_remove_liquidity,
    compute_swap,
    get_reserves,
    quote_swap,
    quote_remove_liquidity,
    verify_pool,
)

__all__ = [
    # Asset tokens
    'create_asset_token_unit',
    'compute_mint',
    'compute_burn',
    'compute_transfer',
    'compute_approve',
    'compute_transfer_from',
    'balance_of',
    'allowance',
    # Bonding curves
    'BuyQuote',
    'SellQuote',
    'CurvePlan',
    'curve_handle',
    'create_bonding_curve_unit',
    'calculate_buy',
    'calculate_spend',
    'calculate_sell',
    'plan_buy',
    'plan_sell',
    'compute_buy',
    'compute_sell',
    # Pools
    'SwapDirection',
    'LiquidityQuote',
    'RemovalQuote',
    'SwapQuote',
    'PoolPlan',
    'create_pool_unit',
    'calculate_add_liquidity',
    'calculate_remove_liquidity',
    'calculate_swap',
    'plan_add_liquidity',
    'plan_deposit',
    'plan_remove_liquidity',
    'plan_swap',
    'compute_add_liquidity',
    'compute_remove_liquidity',
    'compute_swap',
    'get_reserves',
    'quote_swap',
    'quote_remove_liquidity',
    'verify_pool',
]
