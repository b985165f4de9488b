"""
router.py - Pool registry and swap entry point

SwapRouter owns the asset -> pool mapping. It is the only way to create a
pool, guarantees at most one pool per asset, and is the entry point for
liquidity and swaps on every pool it created.

The mapping is append-only and written only after the ledger has committed
the transaction that created the pool, so a rejected creation leaves no
trace. Every public operation holds `ledger.lock` from planning to commit
and publishes its notifications before releasing it, so the bus sees them
in commit order.

The pool of an asset still selling on its bonding curve is locked: it can
be created, but only the migration may make its first deposit.

Example:
    router = SwapRouter(ledger)
    pool = router.create_pool(asset)
    minted = router.add_liquidity("alice", pool, 1_000 * WAD, 2 * WAD)
    out = router.swap("bob", pool, WAD // 10, SwapDirection.BASE_TO_ASSET, min_amount_out=1)
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from .core import (
    PendingTransaction, TransactionOrigin, OriginType, ExecuteResult, Unit,
    UNIT_TYPE_ASSET_TOKEN, STATUS_TRADING,
    LedgerError, AssetNotFound, PoolAlreadyExists, PoolNotFound, PoolLocked,
    build_transaction, derive_address, native,
)
from .config import LaunchpadConfig
from .ledger import Ledger
from .notifications import (
    NotificationBus, PoolCreated, LiquidityAdded, LiquidityRemoved, Swapped,
)
from .units import pool as pool_unit
from .units.pool import SwapDirection, SwapQuote, RemovalQuote


class SwapRouter:
    """
    Registry of constant-product pools keyed by asset.

    Attributes:
        ledger: Ledger holding reserves, liquidity positions and pool state
        config: Launch parameters (swap fee, liquidity tolerance, base symbol)
        notifications: Bus receiving post-commit notifications
        name: Namespace for pool address derivation
    """

    def __init__(
        self,
        ledger: Ledger,
        config: Optional[LaunchpadConfig] = None,
        notifications: Optional[NotificationBus] = None,
        name: str = "router",
    ):
        self.ledger = ledger
        self.config = config or LaunchpadConfig()
        self.notifications = notifications if notifications is not None else NotificationBus()
        self.name = name
        self._pools: Dict[str, str] = {}
        self._assets_by_pool: Dict[str, str] = {}
        self._nonce = 0

        if not ledger.has_unit(self.config.base_symbol):
            ledger.register_unit(native(self.config.base_symbol))

    # ========================================================================
    # REGISTRY
    # ========================================================================

    def has_pool(self, asset: str) -> bool:
        return asset in self._pools

    def get_pool(self, asset: str) -> str:
        """
        Pool address for `asset`.

        Raises:
            PoolNotFound: If no pool was created for `asset`
        """
        try:
            return self._pools[asset]
        except KeyError:
            raise PoolNotFound(f"no pool for asset {asset}") from None

    def list_pools(self) -> Dict[str, str]:
        """Asset -> pool mapping, in creation order."""
        return dict(self._pools)

    def asset_of(self, pool: str) -> str:
        self._require_pool(pool)
        return self._assets_by_pool[pool]

    def plan_pool(self, asset: str) -> Tuple[str, Unit]:
        """
        Address and empty Unit of the pool that create_pool(asset) would make.

        Nothing is recorded; callers that commit the returned unit themselves
        must then call record_pool() while still holding the ledger lock.

        Raises:
            PoolAlreadyExists: If `asset` already has a pool
            AssetNotFound: If `asset` is not a registered asset token
        """
        if asset in self._pools:
            raise PoolAlreadyExists(f"pool for {asset} already exists: {self._pools[asset]}")
        if not self.ledger.has_unit(asset):
            raise AssetNotFound(f"{asset} is not a registered unit")
        asset_unit = self.ledger.get_unit(asset)
        if asset_unit.unit_type != UNIT_TYPE_ASSET_TOKEN:
            raise AssetNotFound(f"{asset} is a {asset_unit.unit_type} unit, not an asset token")

        address = derive_address(f"{self.name}/pool", self._nonce)
        unit = pool_unit.create_pool_unit(
            address,
            asset,
            base=self.config.base_symbol,
            fee_bps=self.config.swap_fee_bps,
            asset_ticker=asset_unit.state.get('ticker'),
        )
        return address, unit

    def record_pool(self, asset: str, pool: str) -> None:
        """Append a committed pool to the mapping."""
        if asset in self._pools:
            raise PoolAlreadyExists(f"pool for {asset} already exists: {self._pools[asset]}")
        self._pools[asset] = pool
        self._assets_by_pool[pool] = asset
        self._nonce += 1
        if self.ledger.verbose:
            print(f"🏊 Pool {pool} created for {asset}")

    def create_pool(self, asset: str) -> str:
        """
        Create the pool for `asset`.

        Raises:
            PoolAlreadyExists: If `asset` already has a pool
            AssetNotFound: If `asset` is not a registered asset token
        """
        with self.ledger.lock:
            pool, unit = self.plan_pool(asset)
            pending = build_transaction(
                self.ledger, [],
                origin=self._origin("CREATE_POOL", pool),
                units_to_create=(unit,),
                wallets_to_create=(pool,),
            )
            exec_id = self._execute(pending, f"create_pool({asset})")
            self.record_pool(asset, pool)
            self.notifications.publish(PoolCreated(exec_id=exec_id, asset=asset, pool=pool))
        return pool

    # ========================================================================
    # LIQUIDITY AND SWAPS
    # ========================================================================

    def add_liquidity(
        self,
        provider: str,
        pool: str,
        asset_amount: int,
        base_paid: int,
    ) -> int:
        """
        Deposit into `pool`; returns liquidity units minted to `provider`.

        The first deposit sets the price. Later deposits are trimmed to the
        pool ratio and the excess stays with the provider.

        Raises:
            PoolNotFound: If `pool` was not created by this router
            PoolLocked: If the pool's asset is still trading on its curve
            SlippageExceeded: If the deposit is off-ratio beyond tolerance
            InsufficientBalance: If provider cannot cover the accepted amounts
        """
        with self.ledger.lock:
            self._require_pool(pool)
            self._require_open(pool)
            plan = pool_unit.plan_deposit(
                self.ledger, pool, provider, asset_amount, base_paid,
                tolerance_bps=self.config.liquidity_tolerance_bps,
            )
            pending = build_transaction(
                self.ledger, list(plan.moves + plan.payouts), [plan.state_change],
                self._origin("ADD_LIQUIDITY", pool),
            )
            exec_id = self._execute(pending, f"add_liquidity({pool})")
            quote = plan.quote
            self.notifications.publish(LiquidityAdded(
                exec_id=exec_id, pool=pool, provider=provider,
                asset_amount=quote.asset_used, base_amount=quote.base_used,
                liquidity_minted=quote.minted,
            ))
        return quote.minted

    def remove_liquidity(self, provider: str, pool: str, units: int) -> Tuple[int, int]:
        """
        Redeem `units` of provider's liquidity; returns (asset_out, base_out).

        Raises:
            PoolNotFound: If `pool` was not created by this router
            InsufficientBalance: If provider holds fewer than `units`
        """
        with self.ledger.lock:
            self._require_pool(pool)
            plan = pool_unit.plan_remove_liquidity(self.ledger, pool, provider, units)
            pending = build_transaction(
                self.ledger, list(plan.moves + plan.payouts), [plan.state_change],
                self._origin("REMOVE_LIQUIDITY", pool),
            )
            exec_id = self._execute(pending, f"remove_liquidity({pool})")
            quote = plan.quote
            self.notifications.publish(LiquidityRemoved(
                exec_id=exec_id, pool=pool, provider=provider,
                asset_amount=quote.asset_out, base_amount=quote.base_out,
                liquidity_burned=units,
            ))
        return quote.asset_out, quote.base_out

    def swap(
        self,
        trader: str,
        pool: str,
        amount_in: int,
        direction: SwapDirection,
        min_amount_out: int = 0,
    ) -> int:
        """
        Swap `amount_in` through `pool`; returns the amount paid out.

        Raises:
            PoolNotFound: If `pool` was not created by this router
            SlippageExceeded: If output is below min_amount_out
            InsufficientLiquidity: If the pool cannot serve the swap
            InsufficientBalance: If trader cannot pay amount_in
        """
        with self.ledger.lock:
            self._require_pool(pool)
            plan = pool_unit.plan_swap(self.ledger, pool, trader, amount_in, direction, min_amount_out)
            pending = build_transaction(
                self.ledger, list(plan.moves + plan.payouts), [plan.state_change],
                self._origin("SWAP", pool),
            )
            exec_id = self._execute(pending, f"swap({pool})")
            quote = plan.quote
            self.notifications.publish(Swapped(
                exec_id=exec_id, pool=pool, trader=trader, direction=quote.direction.value,
                amount_in=quote.amount_in, amount_out=quote.amount_out, fee=quote.fee,
            ))
        return quote.amount_out

    # ========================================================================
    # READS
    # ========================================================================

    def quote_swap(self, pool: str, amount_in: int, direction: SwapDirection) -> SwapQuote:
        self._require_pool(pool)
        return pool_unit.quote_swap(self.ledger, pool, amount_in, direction)

    def quote_remove_liquidity(self, pool: str, units: int) -> RemovalQuote:
        self._require_pool(pool)
        return pool_unit.quote_remove_liquidity(self.ledger, pool, units)

    def get_reserves(self, pool: str) -> Tuple[int, int]:
        """(reserve_asset, reserve_base) of `pool`."""
        self._require_pool(pool)
        return pool_unit.get_reserves(self.ledger, pool)

    def liquidity_supply(self, pool: str) -> int:
        self._require_pool(pool)
        return self.ledger.get_unit_state(pool)['liquidity_supply']

    def verify_pools(self) -> List[dict]:
        """verify_pool() result of every pool, tagged with its address."""
        return [
            {'pool': pool, **pool_unit.verify_pool(self.ledger, pool)}
            for pool in self._pools.values()
        ]

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _require_pool(self, pool: str) -> None:
        if pool not in self._assets_by_pool:
            raise PoolNotFound(f"{pool} is not a pool of this router")

    def _require_open(self, pool: str) -> None:
        asset = self._assets_by_pool[pool]
        curve = self.ledger.get_unit_state(asset).get('curve')
        if not curve or not self.ledger.has_unit(curve):
            return
        if self.ledger.get_unit_state(curve)['status'] == STATUS_TRADING:
            raise PoolLocked(f"{asset} is still trading on {curve}; its pool opens on migration")

    def _origin(self, event: str, pool: str) -> TransactionOrigin:
        return TransactionOrigin(
            origin_type=OriginType.USER_ACTION,
            source_id=self.name,
            unit_symbol=pool,
            event_type=event,
        )

    def _execute(self, pending: PendingTransaction, what: str) -> str:
        result = self.ledger.execute(pending)
        if result != ExecuteResult.APPLIED:
            raise LedgerError(f"{what} was {result.value}")
        return self.ledger.transaction_log[-1].exec_id
