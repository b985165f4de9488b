"""
launchpad - Bonding-curve asset launches graduating into constant-product pools

Assets are sold along a bonding curve until the funding goal is reached;
the buy that reaches it migrates the asset, atomically, into a pool seeded
with the raised base currency and a reserved allotment.

Usage:
    from launchpad import (
        Ledger, SwapRouter, TokenFactory, Move, build_transaction,
        SYSTEM_WALLET, CREATION_FEE, WAD,
    )

    ledger = Ledger("main", verbose=False)
    router = SwapRouter(ledger)
    factory = TokenFactory(ledger, router)
    ledger.register_wallet("alice")

    # Fund wallets via SYSTEM_WALLET (proper issuance)
    ledger.execute(build_transaction(ledger, [
        Move(20 * WAD, "ETH", SYSTEM_WALLET, "alice", "faucet")
    ]))

    asset = factory.create_asset("alice", "Meme", "MEME", fee_paid=CREATION_FEE)
    received = factory.spend("alice", asset, 2 * WAD)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    derive_address,
    Unit,
    UnitStateChange,
    ExecuteResult,
    native,
    SYSTEM_WALLET,
    UNIT_TYPE_NATIVE,
    UNIT_TYPE_ASSET_TOKEN,
    UNIT_TYPE_BONDING_CURVE,
    UNIT_TYPE_LIQUIDITY,
    NATIVE_SYMBOL,
    STATUS_TRADING,
    STATUS_MIGRATED,
    # Published constants
    WAD,
    BASIS_POINTS,
    CREATION_FEE,
    CURVE_CAP,
    LIQUIDITY_ALLOTMENT,
    FUNDING_GOAL,
    BASE_PRICE,
    PRICE_SLOPE,
    SWAP_FEE_BPS,
    TRADE_FEE_BPS,
    LIQUIDITY_TOLERANCE_BPS,
    # Errors
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    FeeNotPaid,
    InvalidMetadata,
    AssetNotFound,
    CurveCapExceeded,
    CurveMigrated,
    InsufficientPayment,
    InsufficientBalance,
    InsufficientAllowance,
    InsufficientLiquidity,
    SlippageExceeded,
    PoolAlreadyExists,
    PoolNotFound,
    PoolLocked,
    MigrationFailed,
    ArithmeticOverflow,
    InvariantViolation,
)

# Ledger
from .ledger import Ledger

# Fixed-point arithmetic
from .fixed_point import (
    UINT256_MAX,
    checked_mul,
    checked_add,
    div_down,
    div_up,
    mul_div_down,
    mul_div_up,
    isqrt,
    to_wei,
    from_wei,
)

# Pricing curves
from .pricing_curve import PricingCurve, LinearCurve, QuadraticCurve

# Configuration
from .config import LaunchpadConfig

# Notifications
from .notifications import (
    NotificationBus,
    Notification,
    AssetCreated,
    TokensPurchased,
    TokensSold,
    AssetMigrated,
    PoolCreated,
    LiquidityAdded,
    LiquidityRemoved,
    Swapped,
)

# Units
from .units.asset_token import (
    create_asset_token_unit,
    compute_mint,
    compute_burn,
    compute_transfer,
    compute_approve,
    compute_transfer_from,
    balance_of,
    allowance,
)
from .units.bonding_curve import (
    BuyQuote,
    SellQuote,
    curve_handle,
    create_bonding_curve_unit,
    calculate_buy,
    calculate_spend,
    calculate_sell,
)
from .units.pool import (
    SwapDirection,
    LiquidityQuote,
    RemovalQuote,
    SwapQuote,
    create_pool_unit,
    calculate_add_liquidity,
    calculate_remove_liquidity,
    calculate_swap,
    verify_pool,
)

# Orchestrators
from .router import SwapRouter
from .factory import TokenFactory, AssetRecord


__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin', 'OriginType',
    'build_transaction', 'derive_address', 'Unit', 'UnitStateChange', 'ExecuteResult', 'native',
    'SYSTEM_WALLET', 'UNIT_TYPE_NATIVE', 'UNIT_TYPE_ASSET_TOKEN', 'UNIT_TYPE_BONDING_CURVE',
    'UNIT_TYPE_LIQUIDITY', 'NATIVE_SYMBOL', 'STATUS_TRADING', 'STATUS_MIGRATED',
    # Constants
    'WAD', 'BASIS_POINTS', 'CREATION_FEE', 'CURVE_CAP', 'LIQUIDITY_ALLOTMENT', 'FUNDING_GOAL',
    'BASE_PRICE', 'PRICE_SLOPE', 'SWAP_FEE_BPS', 'TRADE_FEE_BPS', 'LIQUIDITY_TOLERANCE_BPS',
    # Errors
    'LedgerError', 'UnitNotRegistered', 'WalletNotRegistered', 'FeeNotPaid', 'InvalidMetadata',
    'AssetNotFound', 'CurveCapExceeded', 'CurveMigrated', 'InsufficientPayment',
    'InsufficientBalance', 'InsufficientAllowance', 'InsufficientLiquidity', 'SlippageExceeded',
    'PoolAlreadyExists', 'PoolNotFound', 'PoolLocked', 'MigrationFailed', 'ArithmeticOverflow',
    'InvariantViolation',
    # Ledger
    'Ledger',
    # Fixed point
    'UINT256_MAX', 'checked_mul', 'checked_add', 'div_down', 'div_up',
    'mul_div_down', 'mul_div_up', 'isqrt', 'to_wei', 'from_wei',
    # Curves and config
    'PricingCurve', 'LinearCurve', 'QuadraticCurve', 'LaunchpadConfig',
    # Notifications
    'NotificationBus', 'Notification', 'AssetCreated', 'TokensPurchased', 'TokensSold',
    'AssetMigrated', 'PoolCreated', 'LiquidityAdded', 'LiquidityRemoved', 'Swapped',
    # Asset tokens
    'create_asset_token_unit', 'compute_mint', 'compute_burn', 'compute_transfer',
    'compute_approve', 'compute_transfer_from', 'balance_of', 'allowance',
    # Bonding curves
    'BuyQuote', 'SellQuote', 'curve_handle', 'create_bonding_curve_unit',
    'calculate_buy', 'calculate_spend', 'calculate_sell',
    # Pools
    'SwapDirection', 'LiquidityQuote', 'RemovalQuote', 'SwapQuote', 'create_pool_unit',
    'calculate_add_liquidity', 'calculate_remove_liquidity', 'calculate_swap', 'verify_pool',
    # Orchestrators
    'SwapRouter', 'TokenFactory', 'AssetRecord',
]

__version__ = '1.0.0'
