"""
Core types and pure functions for the launchpad ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError and the launchpad error taxonomy
4. Published constants: creation fee, curve cap, funding goal, swap fee
5. Unit factories: the native base currency

Quantities are integer base units (wei for the base currency, 10^-18 of a
token for launched assets) carried as integral Decimals, so balances never
pick up fractional dust.

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_DOWN, getcontext
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Balances are integral Decimals up to ~10^27 base units. prec=50 keeps every
# sum of balances exact; products are never formed in Decimal (pricing math
# runs on Python ints in fixed_point.py).
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption (mint/burn).
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Unit type constants (strings, not enum).
UNIT_TYPE_NATIVE = "NATIVE"
UNIT_TYPE_ASSET_TOKEN = "ASSET_TOKEN"
UNIT_TYPE_BONDING_CURVE = "BONDING_CURVE"
UNIT_TYPE_LIQUIDITY = "LIQUIDITY"

# Symbol of the base currency every pool and curve is priced in.
NATIVE_SYMBOL = "ETH"

# One whole unit at 18 fractional digits.
WAD = 10 ** 18

# Denominator for all fee rates.
BASIS_POINTS = 10_000

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")

# Published launch parameters (part of the external contract).
CREATION_FEE = 10 ** 14                    # 0.0001 ETH
CURVE_CAP = 800_000 * WAD                  # units issuable through the curve
LIQUIDITY_ALLOTMENT = 200_000 * WAD        # units reserved to seed the pool
FUNDING_GOAL = 10 * WAD                    # 10 ETH triggers migration
BASE_PRICE = 10 ** 12                      # wei per whole token at zero supply
PRICE_SLOPE = 5 * 10 ** 7                  # wei per whole token, per whole token sold
SWAP_FEE_BPS = 30                          # 0.30% pool fee, accrues to liquidity
TRADE_FEE_BPS = 0                          # optional curve buy fee to fee recipient
LIQUIDITY_TOLERANCE_BPS = 100              # max non-proportional share of a deposit

# Curve lifecycle statuses.
STATUS_TRADING = "TRADING"
STATUS_MIGRATED = "MIGRATED"

DECIMAL_ROUNDING = {
    UNIT_TYPE_NATIVE: ROUND_DOWN,
    UNIT_TYPE_ASSET_TOKEN: ROUND_DOWN,
    UNIT_TYPE_BONDING_CURVE: ROUND_DOWN,
    UNIT_TYPE_LIQUIDITY: ROUND_DOWN,
}


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, Decimal]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, Decimal]

# Internal state for a unit (token metadata, curve counters, pool reserves).
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Planning functions (buy/sell/swap/liquidity) accept a LedgerView and
    return a PendingTransaction; they cannot mutate anything. The Ledger
    class implements this protocol and also provides the mutating execute().
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Return the balance of a specific unit in a wallet.

        Returns Decimal("0") if the wallet holds none of the unit.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...

    def has_unit(self, symbol: str) -> bool:
        """Return True if a unit with this symbol is registered."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: Transaction ID was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation (balance limits, stale state,
              unregistered units or wallets).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Caller-initiated operation
    CONTRACT = "contract"                 # Planned by a unit module
    LIFECYCLE = "lifecycle"               # Automatic transition (migration)
    SYSTEM = "system"                     # Issuance, initial setup


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger and launchpad errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class FeeNotPaid(LedgerError):
    """Raised when the payment attached to create_asset is below the creation fee."""
    pass


class InvalidMetadata(LedgerError):
    """Raised when an asset is created with an empty name or symbol."""
    pass


class AssetNotFound(LedgerError):
    """Raised when an address does not belong to an asset created by the factory."""
    pass


class CurveCapExceeded(LedgerError):
    """Raised when a buy would push circulating supply above the curve cap."""
    pass


class CurveMigrated(LedgerError):
    """Raised on curve buy/sell after the asset has migrated to its pool."""
    pass


class InsufficientPayment(LedgerError):
    """Raised when the attached payment does not cover the quoted price."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a wallet holds fewer units than the operation needs."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when transfer_from exceeds the approved allowance."""
    pass


class InsufficientLiquidity(LedgerError):
    """Raised when reserves (curve escrow or pool) cannot cover a payout."""
    pass


class SlippageExceeded(LedgerError):
    """Raised when a swap output or a deposit ratio falls outside the caller's bounds."""
    pass


class PoolAlreadyExists(LedgerError):
    """Raised when creating a second pool for an asset."""
    pass


class PoolNotFound(LedgerError):
    """Raised when looking up a pool that has not been created."""
    pass


class PoolLocked(LedgerError):
    """Raised when depositing into the pool of an asset still trading on its curve."""
    pass


class MigrationFailed(LedgerError):
    """Raised when the goal-crossing migration cannot complete; the buy is rolled back."""
    pass


class ArithmeticOverflow(LedgerError):
    """Raised when a widened intermediate exceeds the 256-bit bound."""
    pass


class InvariantViolation(LedgerError):
    """Raised when a computed pool update would decrease the constant product."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the specific source (factory, router, caller)
        unit_symbol: Symbol of the unit that triggered this (if applicable)
        event_type: Specific operation (e.g., "BUY", "SWAP", "MIGRATION")
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change.

    old_state is the snapshot the change was planned against; the ledger
    rejects the transaction if the live state no longer matches it.

    Attributes:
        unit: Symbol of the unit whose state changed
        old_state: Complete state before the change (dict or None)
        new_state: Complete state after the change (dict)
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """
        Compute fields that differ between old and new state.

        Returns:
            Dict mapping field name to (old_value, new_value) tuples.
        """
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        all_keys = set(old.keys()) | set(new.keys())
        for key in all_keys:
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer in base units (integral, non-zero).
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
        metadata: Optional additional information about the move.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if isinstance(self.quantity, int) and not isinstance(self.quantity, bool):
            object.__setattr__(self, 'quantity', Decimal(self.quantity))
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal or int, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if abs(self.quantity) < QUANTITY_EPSILON:
            raise ValueError("Move quantity is effectively zero")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Decimal("1.0") and Decimal("1.00") both become "1".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Independent of dict insertion order and Decimal representation.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, (int, float)):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, set):
        serialized = ",".join(_canonicalize(item) for item in sorted(value, key=str))
        return f"<{serialized}>"
    # Frozen dataclasses (curve strategies) have a deterministic repr
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
    units_to_create: Tuple['Unit', ...] = ()
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Based solely on the semantic content of the transaction, never on
    timestamps. Used for idempotency checking.
    """
    sorted_moves = tuple(sorted(
        moves,
        key=lambda m: (_normalize_decimal(m.quantity), m.unit_symbol, m.source, m.dest, m.contract_id)
    ))

    content_parts = []

    content_parts.append(f"origin:{origin.origin_type.value}:{origin.source_id}")
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for unit in sorted(units_to_create, key=lambda u: u.symbol):
        content_parts.append(f"unit_create:{unit.symbol}|{unit.unit_type}")

    for m in sorted_moves:
        qty = _normalize_decimal(m.quantity)
        content_parts.append(f"move:{qty}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        old_canonical = _canonicalize(sc.old_state)
        new_canonical = _canonicalize(sc.new_state)
        content_parts.append(f"state_change:{sc.unit}|{old_canonical}|{new_canonical}")

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def derive_address(namespace: str, nonce: int) -> str:
    """
    Deterministic 20-byte hex address for the nonce-th object of a namespace.

    Example:
        derive_address("factory/asset", 0) -> "0x..." (42 characters)
    """
    digest = hashlib.sha256(f"{namespace}:{nonce}".encode()).hexdigest()
    return "0x" + digest[:40]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction before execution - represents INTENT.

    Created by planning functions and submitted to the ledger for execution.

    Lifecycle:
    1. A planner creates PendingTransaction with moves, state_changes, origin, timestamp
    2. intent_id is auto-computed from content (deterministic hash)
    3. Ledger.execute() validates and executes, creating a Transaction record

    Attributes:
        moves: Tuple of value transfers between wallets, applied in order
        state_changes: Tuple of unit state changes (with old_state and new_state)
        units_to_create: Tuple of Unit objects to register before executing moves
        wallets_to_create: Wallet IDs to register before executing moves
        origin: Who/what created this transaction and why
        timestamp: When this pending transaction was created
        intent_id: Content-addressable hash of the transaction intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    units_to_create: Tuple['Unit', ...] = ()
    wallets_to_create: Tuple[str, ...] = ()
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.moves, self.state_changes, self.origin, self.units_to_create
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if this pending transaction changes nothing."""
        return (not self.moves and not self.state_changes
                and not self.units_to_create and not self.wallets_to_create)

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    units_to_create: Optional[Tuple['Unit', ...]] = None,
    wallets_to_create: Optional[Tuple[str, ...]] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state deltas.

    This is the standard way to create transactions.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: List of moves to include in the transaction
        state_changes: Optional list of UnitStateChange objects
        origin: Transaction origin (defaults to CONTRACT origin)
        units_to_create: Optional tuple of Unit objects to register before executing moves
        wallets_to_create: Optional tuple of wallet IDs to register before executing moves

    Returns:
        A PendingTransaction ready for execution

    Example:
        def compute_payment(view, payer, payee, wei):
            moves = [Move(wei, "ETH", payer, payee, "payment")]
            return build_transaction(view, moves)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id="contract",
        )

    # Deep copy state changes to prevent mutation
    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
        units_to_create=units_to_create or (),
        wallets_to_create=wallets_to_create or (),
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger (for ordering)
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    units_to_create: Tuple['Unit', ...] = ()
    wallets_to_create: Tuple[str, ...] = ()
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if (not self.moves and not self.state_changes
                and not self.units_to_create and not self.wallets_to_create):
            raise ValueError("Transaction must change something")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        w = 100  # Inner content width
        bar = "─" * w

        def pad(text: str) -> str:
            """Pad or truncate text to exactly w characters."""
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   timestamp      : ' + str(self.timestamp))}│",
            f"│{pad('   ledger_name    : ' + self.ledger_name)}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
        ]
        if self.units_to_create:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Units Created (' + str(len(self.units_to_create)) + '):')}│")
            for unit in self.units_to_create:
                lines.append(f"│{pad('   ' + unit.symbol + ' (' + unit.name + ')')}│")
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
        for i, move in enumerate(self.moves):
            move_str = f"   [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}"
            lines.append(f"│{pad(move_str)}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' State Changes (' + str(len(self.state_changes)) + '):')}│")
            for sc in self.state_changes:
                lines.append(f"│{pad('   [' + sc.unit + ']')}│")
                changed = sc.changed_fields()
                for field_name, (old_val, new_val) in changed.items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """
    Convert a mutable state dict to an immutable frozen representation.

    Returns:
        Tuple of (key, value) pairs, sorted by key for determinism
    """
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state representation back to a mutable dict."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit (asset type) in the ledger.

    Attributes:
        symbol: Identifier for the unit ("ETH", an asset address, a pool address).
        name: Human-readable name for the unit.
        unit_type: Category of the unit (NATIVE, ASSET_TOKEN, BONDING_CURVE, LIQUIDITY).
        min_balance: Minimum allowed balance in any non-system wallet.
        max_balance: Maximum allowed balance in any wallet.
        decimal_places: Number of decimal places for rounding (None = no rounding).
        _frozen_state: Internal frozen state representation (tuple of key-value pairs).
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: Optional[int] = 0
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """
        Get the unit's state as a mutable dictionary.

        Returns a new dict each time to prevent accidental mutation.
        """
        return _thaw_state(self._frozen_state)

    def round(self, value: Decimal) -> Decimal:
        """
        Round a value to this unit's decimal precision using quantize.

        Returns the value unchanged if decimal_places is None.
        """
        if self.decimal_places is None:
            return value
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        quantizer = Decimal(10) ** -self.decimal_places
        rounding_mode = DECIMAL_ROUNDING.get(self.unit_type, ROUND_DOWN)
        return value.quantize(quantizer, rounding=rounding_mode)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def native(symbol: str = NATIVE_SYMBOL, name: str = "Ether") -> Unit:
    """
    Create the native base-currency unit.

    Balances are whole wei and can never go negative outside the system
    wallet, which issues and redeems the currency.

    Args:
        symbol: Currency symbol (default "ETH").
        name: Full name of the currency.

    Returns:
        A Unit with min_balance 0 and integral precision.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_NATIVE,
        decimal_places=0,
        min_balance=Decimal("0"),
        _frozen_state=_freeze_state({'decimals': 18}),
    )
