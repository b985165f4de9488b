"""
factory.py - Asset registry, curve trading and migration

TokenFactory launches assets and runs their bonding curve sale. For each
asset it keeps, inside the ledger:

    <address>          ASSET_TOKEN unit (metadata, pool link)
    <address>/curve    BONDING_CURVE unit (sale state) and escrow wallet

plus an append-only arena of addresses giving every asset a stable index.

=== MIGRATION ===

The buy that makes funding_raised reach funding_goal also graduates the
asset. Buy and migration are ONE PendingTransaction:

    payer -> escrow           paid
    system -> payer           minted units
    treasury -> pool          liquidity allotment
    escrow -> pool            escrow balance after the buy
    system -> treasury        liquidity units
    escrow -> fee recipient   trade fee (if any)
    escrow -> payer           excess payment (if any)

together with the curve state flip to MIGRATED, the new pool state, the
asset's pool link and, when the pool does not exist yet, the pool unit and
its wallet. If the ledger rejects it nothing is applied and the buy raises
MigrationFailed. The router mapping is written only after the commit.

All public operations run under ledger.lock and publish their notifications
before releasing it, so notifications arrive in commit order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .core import (
    Move, PendingTransaction, TransactionOrigin, OriginType, ExecuteResult,
    UnitStateChange, UnitState,
    BASIS_POINTS,
    LedgerError, AssetNotFound, FeeNotPaid, InsufficientBalance, MigrationFailed,
    build_transaction, derive_address,
)
from .config import LaunchpadConfig
from .fixed_point import as_int
from .ledger import Ledger
from .notifications import (
    NotificationBus, AssetCreated, TokensPurchased, TokensSold,
    AssetMigrated, PoolCreated, LiquidityAdded,
)
from .router import SwapRouter
from .units import bonding_curve, pool as pool_unit
from .units.asset_token import create_asset_token_unit, mint_move
from .units.bonding_curve import BuyQuote, SellQuote, CurvePlan


@dataclass(frozen=True, slots=True)
class AssetRecord:
    """
    Identity of a launched asset.

    Attributes:
        address: Asset address (token unit symbol)
        creator: Wallet that paid the creation fee
        name, symbol, image_ref, description: Opaque display metadata
        curve: Curve handle (curve unit symbol and escrow wallet)
        pool: Pool address once migrated, else None
        index: Position in creation order
    """
    address: str
    creator: str
    name: str
    symbol: str
    image_ref: str
    description: str
    curve: str
    pool: Optional[str]
    index: int


@dataclass(frozen=True, slots=True)
class _Migration:
    pool: str
    created: bool
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    units_to_create: tuple
    wallets_to_create: Tuple[str, ...]
    liquidity: pool_unit.LiquidityQuote


class TokenFactory:
    """
    Launches assets and sells them along their bonding curve.

    Attributes:
        ledger: Ledger shared with the router
        router: SwapRouter that owns the pools
        config: Launch parameters
        notifications: Bus receiving post-commit notifications
        fee_recipient: Wallet receiving creation and trade fees
        treasury: Wallet holding liquidity allotments and migrated liquidity units

    Example:
        ledger = Ledger("main", verbose=False)
        router = SwapRouter(ledger)
        factory = TokenFactory(ledger, router)
        asset = factory.create_asset("alice", "Meme", "MEME", fee_paid=CREATION_FEE)
        received = factory.spend("bob", asset, 2 * WAD)
    """

    def __init__(
        self,
        ledger: Ledger,
        router: SwapRouter,
        config: Optional[LaunchpadConfig] = None,
        notifications: Optional[NotificationBus] = None,
        fee_recipient: str = "fee_recipient",
        treasury: str = "factory_treasury",
        name: str = "factory",
    ):
        if router.ledger is not ledger:
            raise ValueError("router must operate on the same ledger")
        self.ledger = ledger
        self.router = router
        self.config = config or router.config
        self.notifications = notifications if notifications is not None else router.notifications
        self.fee_recipient = fee_recipient
        self.treasury = treasury
        self.name = name
        self._assets: List[str] = []
        self._index: Dict[str, int] = {}

        for wallet in (fee_recipient, treasury):
            if not ledger.is_registered(wallet):
                ledger.register_wallet(wallet)

    @property
    def base(self) -> str:
        return self.config.base_symbol

    # ========================================================================
    # ASSET CREATION
    # ========================================================================

    def create_asset(
        self,
        creator: str,
        name: str,
        symbol: str,
        image_ref: str = "",
        description: str = "",
        fee_paid: int = 0,
    ) -> str:
        """
        Launch a new asset; returns its address.

        The creation fee is forwarded to the fee recipient and any excess is
        refunded to the creator. The liquidity allotment is minted to the
        treasury, reserved for migration.

        Raises:
            FeeNotPaid: If fee_paid is below the creation fee
            InvalidMetadata: If name or symbol is empty
            InsufficientBalance: If creator holds less than fee_paid
        """
        fee = self.config.creation_fee
        if fee_paid < fee:
            raise FeeNotPaid(f"Insufficient creation fee: paid {fee_paid}, required {fee}")

        with self.ledger.lock:
            address = derive_address(f"{self.name}/asset", len(self._assets))
            index = len(self._assets)
            handle = bonding_curve.curve_handle(address)
            token = create_asset_token_unit(
                address, name, symbol, creator,
                image_ref=image_ref, description=description, curve=handle, index=index,
            )
            curve = bonding_curve.create_bonding_curve_unit(
                address, self.config.curve, self.config.funding_goal, base=self.base,
            )
            if fee_paid:
                held = as_int(self.ledger.get_balance(creator, self.base))
                if held < fee_paid:
                    raise InsufficientBalance(f"{creator} holds {held} wei, cannot pay {fee_paid}")

            contract_id = f'create_{address}'
            moves = []
            if fee_paid:
                moves.append(Move(fee_paid, self.base, creator, self.treasury, contract_id))
            moves.append(mint_move(address, self.treasury, self.config.liquidity_allotment, contract_id))
            if fee:
                moves.append(Move(fee, self.base, self.treasury, self.fee_recipient, contract_id))
            if fee_paid > fee:
                moves.append(Move(fee_paid - fee, self.base, self.treasury, creator, f'refund_{address}'))

            pending = build_transaction(
                self.ledger, moves,
                origin=self._origin("CREATE_ASSET", address),
                units_to_create=(token, curve),
                wallets_to_create=(handle,),
            )
            exec_id = self._execute(pending, f"create_asset({name})")
            self._assets.append(address)
            self._index[address] = index
            if self.ledger.verbose:
                print(f"🚀 Asset {symbol} ({name}) launched at {address} by {creator}")
            self.notifications.publish(AssetCreated(
                exec_id=exec_id, asset=address, creator=creator,
                name=name, symbol=symbol, curve=handle, index=index,
            ))
        return address

    # ========================================================================
    # READS
    # ========================================================================

    def get_asset(self, address: str) -> AssetRecord:
        """
        Record of an asset launched by this factory.

        Raises:
            AssetNotFound: If `address` was not launched here
        """
        if address not in self._index:
            raise AssetNotFound(f"{address} was not created by {self.name}")
        state = self.ledger.get_unit_state(address)
        return AssetRecord(
            address=address,
            creator=state['creator'],
            name=state['name'],
            symbol=state['ticker'],
            image_ref=state['image_ref'],
            description=state['description'],
            curve=state['curve'],
            pool=state['pool'],
            index=state['index'],
        )

    def list_assets(self) -> List[AssetRecord]:
        """All launched assets in creation order."""
        return [self.get_asset(address) for address in self._assets]

    def curve_state(self, asset: str) -> UnitState:
        """Snapshot of the asset's curve state."""
        return self.ledger.get_unit_state(self._curve(asset))

    def funding_raised(self, asset: str) -> int:
        return self.curve_state(asset)['funding_raised']

    def circulating_supply(self, asset: str) -> int:
        return self.curve_state(asset)['circulating_supply']

    def status(self, asset: str) -> str:
        return self.curve_state(asset)['status']

    def quote_buy(self, asset: str, amount: int) -> BuyQuote:
        """Price of buying `amount` now; quote.total is the payment required."""
        return bonding_curve.calculate_buy(self.curve_state(asset), amount, self.config.trade_fee_bps)

    def quote_spend(self, asset: str, value: int) -> BuyQuote:
        return bonding_curve.calculate_spend(self.curve_state(asset), value, self.config.trade_fee_bps)

    def quote_sell(self, asset: str, amount: int) -> SellQuote:
        handle = self._curve(asset)
        escrow = as_int(self.ledger.get_balance(handle, self.base))
        return bonding_curve.calculate_sell(self.curve_state(asset), amount, escrow)

    # ========================================================================
    # TRADING
    # ========================================================================

    def buy(self, buyer: str, asset: str, amount: int, paid: int) -> int:
        """
        Buy exactly `amount` units paying `paid` wei; returns units received.

        Raises:
            CurveMigrated: If the asset already migrated
            CurveCapExceeded: If the buy would exceed the curve cap
            InsufficientPayment: If paid is below the quoted total
            MigrationFailed: If this buy reaches the goal and migration fails
        """
        with self.ledger.lock:
            quote = self.quote_buy(asset, amount)
            self.notifications.publish(*self._buy(buyer, asset, quote, paid))
        return quote.amount

    def spend(self, buyer: str, asset: str, value: int) -> int:
        """
        Buy as many units as exactly `value` wei affords; returns units received.

        Raises:
            CurveMigrated: If the asset already migrated
            InsufficientPayment: If `value` buys nothing
            MigrationFailed: If this buy reaches the goal and migration fails
        """
        with self.ledger.lock:
            quote = self.quote_spend(asset, value)
            self.notifications.publish(*self._buy(buyer, asset, quote, value))
        return quote.amount

    def sell(self, seller: str, asset: str, amount: int) -> int:
        """
        Sell `amount` units back into the curve; returns wei refunded.

        Raises:
            CurveMigrated: If the asset already migrated
            InsufficientBalance: If seller holds fewer than `amount`
            InsufficientLiquidity: If the escrow cannot cover the refund
        """
        with self.ledger.lock:
            handle = self._curve(asset)
            plan = bonding_curve.plan_sell(self.ledger, handle, seller, amount)
            pending = build_transaction(
                self.ledger, list(plan.moves + plan.payouts), [plan.state_change],
                self._origin("SELL", asset),
            )
            exec_id = self._execute(pending, f"sell({asset})")
            quote = plan.quote
            self.notifications.publish(TokensSold(
                exec_id=exec_id, asset=asset, seller=seller, amount=quote.amount,
                refund=quote.refund, circulating_supply=quote.supply_after,
            ))
        return quote.refund

    def _buy(self, buyer: str, asset: str, quote: BuyQuote, paid: int) -> list:
        """Plan, compose and commit a priced buy. Caller holds the lock."""
        handle = self._curve(asset)
        plan = bonding_curve.plan_buy(self.ledger, handle, buyer, quote, paid, self.fee_recipient)
        purchased = dict(
            asset=asset, buyer=buyer, amount=quote.amount, cost=quote.cost, fee=quote.fee,
            circulating_supply=quote.supply_after, funding_raised=quote.funding_after,
        )

        if not quote.reaches_goal:
            pending = build_transaction(
                self.ledger, list(plan.moves + plan.payouts), [plan.state_change],
                self._origin("BUY", asset),
            )
            exec_id = self._execute(pending, f"buy({asset})")
            return [TokensPurchased(exec_id=exec_id, **purchased)]

        migration = self._plan_migration(asset, plan)
        pending = build_transaction(
            self.ledger,
            list(plan.moves + migration.moves + plan.payouts),
            list(migration.state_changes),
            self._origin("BUY_AND_MIGRATE", asset, OriginType.LIFECYCLE),
            units_to_create=migration.units_to_create,
            wallets_to_create=migration.wallets_to_create,
        )
        result = self.ledger.execute(pending)
        if result != ExecuteResult.APPLIED:
            raise MigrationFailed(f"migration of {asset} into {migration.pool} was {result.value}")
        exec_id = self.ledger.transaction_log[-1].exec_id
        if migration.created:
            self.router.record_pool(asset, migration.pool)
        if self.ledger.verbose:
            print(f"🎓 Asset {asset} migrated to pool {migration.pool} "
                  f"({migration.liquidity.base_used} wei, {migration.liquidity.asset_used} units)")

        notes = [TokensPurchased(exec_id=exec_id, **purchased)]
        if migration.created:
            notes.append(PoolCreated(exec_id=exec_id, asset=asset, pool=migration.pool))
        notes.append(LiquidityAdded(
            exec_id=exec_id, pool=migration.pool, provider=self.treasury,
            asset_amount=migration.liquidity.asset_used,
            base_amount=migration.liquidity.base_used,
            liquidity_minted=migration.liquidity.minted,
        ))
        notes.append(AssetMigrated(
            exec_id=exec_id, asset=asset, pool=migration.pool,
            base_seeded=migration.liquidity.base_used,
            asset_seeded=migration.liquidity.asset_used,
            liquidity_minted=migration.liquidity.minted,
        ))
        return notes

    def _plan_migration(self, asset: str, plan: CurvePlan) -> _Migration:
        """
        Effects of graduating `asset` on top of the goal-crossing buy `plan`.

        Raises:
            MigrationFailed: If the pool cannot be created or seeded
        """
        handle = self._curve(asset)
        quote: BuyQuote = plan.quote
        try:
            if self.router.has_pool(asset):
                pool = self.router.get_pool(asset)
                pool_state = self.ledger.get_unit_state(pool)
                units_to_create, wallets_to_create = (), ()
            else:
                pool, unit = self.router.plan_pool(asset)
                pool_state = unit.state
                units_to_create, wallets_to_create = (unit,), (pool,)

            escrow_after = as_int(self.ledger.get_balance(handle, self.base)) + quote.cost
            allotment = self.config.liquidity_allotment
            reserved = as_int(self.ledger.get_balance(self.treasury, asset))
            if reserved < allotment:
                raise InsufficientBalance(
                    f"treasury holds {reserved} of {asset}, allotment is {allotment}"
                )
            liquidity = pool_unit.calculate_add_liquidity(
                pool_state, allotment, escrow_after, tolerance_bps=BASIS_POINTS,
            )
        except LedgerError as e:
            raise MigrationFailed(f"cannot migrate {asset}: {e}") from e

        deposit = pool_unit.plan_add_liquidity(
            pool, pool_state, liquidity,
            asset_source=self.treasury, base_source=handle, recipient=self.treasury,
        )
        moves = list(deposit.moves)
        if liquidity.base_excess:
            moves.append(Move(liquidity.base_excess, self.base, handle, self.treasury, f'migrate_{asset}'))

        token_state = self.ledger.get_unit_state(asset)
        state_changes = (
            UnitStateChange(
                unit=handle,
                old_state=plan.state_change.old_state,
                new_state=bonding_curve.migrated_state(plan.new_state, pool),
            ),
            deposit.state_change,
            UnitStateChange(unit=asset, old_state=token_state, new_state={**token_state, 'pool': pool}),
        )
        return _Migration(
            pool=pool,
            created=bool(units_to_create),
            moves=tuple(moves),
            state_changes=state_changes,
            units_to_create=units_to_create,
            wallets_to_create=wallets_to_create,
            liquidity=liquidity,
        )

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _curve(self, asset: str) -> str:
        if asset not in self._index:
            raise AssetNotFound(f"{asset} was not created by {self.name}")
        return bonding_curve.curve_handle(asset)

    def _origin(
        self,
        event: str,
        asset: str,
        origin_type: OriginType = OriginType.USER_ACTION,
    ) -> TransactionOrigin:
        return TransactionOrigin(
            origin_type=origin_type,
            source_id=self.name,
            unit_symbol=asset,
            event_type=event,
        )

    def _execute(self, pending: PendingTransaction, what: str) -> str:
        result = self.ledger.execute(pending)
        if result != ExecuteResult.APPLIED:
            raise LedgerError(f"{what} was {result.value}")
        return self.ledger.transaction_log[-1].exec_id
