"""
ledger.py - Stateful Double-Entry Accounting Ledger

The Ledger class is the central state manager for the launchpad.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by planning functions
    - Executes transactions atomically (all moves, state changes, unit and wallet
      registrations succeed or none do)
    - Rejects transactions planned against stale unit state
    - Owns the coordinating lock that serializes every launchpad operation
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple, Any
import copy
import threading
from decimal import Decimal

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState, BalanceMap,
    # Constants
    QUANTITY_EPSILON, SYSTEM_WALLET,
    # Exceptions
    LedgerError, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    _freeze_state,
)


class Ledger:
    """
    Double-entry accounting ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to
    planning functions that access only read-only methods.

    Design Principles:
        - Always validates: balance limits, registration, timestamps and
          optimistic state checks. No shortcuts.
        - Always logs: every applied transaction is recorded in the audit
          trail, enabling replay() for state reconstruction.

    Thread Safety:
        execute() and all reads are plain method calls. Callers that plan
        against a view and then execute (TokenFactory, SwapRouter) hold
        `ledger.lock` for the whole plan-and-execute step.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(native())
        ledger.register_wallet("alice")

        tx = build_transaction(ledger, [
            Move(10**18, "ETH", SYSTEM_WALLET, "alice", "faucet")
        ])
        result = ledger.execute(tx)
    """

    POSITION_EPSILON = QUANTITY_EPSILON

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Enable console output (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # Inverted index mapping unit -> {wallet -> quantity} for O(1) position lookups
        self._positions_by_unit: Dict[str, Dict[str, Decimal]] = defaultdict(dict)
        # Re-entrant so an orchestrator can call another orchestrator while holding it
        self.lock = threading.RLock()

        # Auto-register the system wallet (used for issuance/redemption)
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Get the balance of a specific unit in a wallet.

        Returns:
            Current balance (Decimal("0") if wallet has no balance for this unit)

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        unit_obj = self.units[unit_symbol]
        return self._deep_copy_state(unit_obj.state) if unit_obj.state else {}

    def get_positions(self, unit_symbol: str) -> Positions:
        """Get all non-zero positions for a specific unit across all wallets."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def has_unit(self, symbol: str) -> bool:
        """Check if a unit is registered."""
        return symbol in self.units

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> Decimal:
        """
        Calculate total supply of a unit across all wallets.

        The system wallet holds the negative of everything ever issued, so
        for a conserved unit the total is always zero.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(self.balances[w].get(unit_symbol, Decimal("0")) for w in sorted(self.registered_wallets))

    def outstanding(self, unit_symbol: str) -> Decimal:
        """Units held outside the system wallet (issued minus redeemed)."""
        return -self.get_balance(SYSTEM_WALLET, unit_symbol)

    def verify_double_entry(
        self,
        expected_supplies: Dict[str, Decimal] = None,
        tolerance: Decimal = Decimal("0")
    ) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        Every move debits one wallet and credits another, so the sum of all
        balances of every unit (system wallet included) must equal the
        expected total, zero by default.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, Decimal] - Current total for each unit
            - 'discrepancies': List[Dict] - Details of any violations

        Example:
            result = ledger.verify_double_entry()
            assert result['valid'], f"Conservation violated: {result['discrepancies']}"
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply

            expected = Decimal("0")
            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
            difference = abs(current_supply - expected)
            if difference > tolerance:
                discrepancies.append({
                    'unit': unit_symbol,
                    'expected': expected,
                    'actual': current_supply,
                    'difference': difference,
                })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit (asset type) in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: This bypasses double-entry accounting and is only available
        in test mode. Use build_transaction() and execute() otherwise.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        if not isinstance(quantity, Decimal):
            quantity = Decimal(str(quantity))
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}
        """
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        Wallet and unit registrations, moves and state changes succeed
        together or all fail together. Execution is idempotent: a pending
        transaction with the same intent_id will not be applied twice.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"⚠️  ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        # Registrations are provisional until validation passes
        newly_registered_wallets: List[str] = []
        newly_registered_units: List[str] = []

        def rollback(reason: str) -> ExecuteResult:
            for sym in newly_registered_units:
                del self.units[sym]
            for wallet in newly_registered_wallets:
                self.registered_wallets.discard(wallet)
                del self.balances[wallet]
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        for wallet in pending.wallets_to_create:
            if wallet in self.registered_wallets:
                return rollback(f"wallet already registered: {wallet}")
            self.registered_wallets.add(wallet)
            self.balances[wallet] = defaultdict(lambda: Decimal("0"))
            newly_registered_wallets.append(wallet)

        for unit in pending.units_to_create:
            if unit.symbol in self.units:
                return rollback(f"unit already registered: {unit.symbol}")
            self.units[unit.symbol] = unit
            newly_registered_units.append(unit.symbol)

        valid, reason = self._validate_pending(pending)
        if not valid:
            return rollback(reason)

        sequence = self._next_sequence
        self._next_sequence += 1
        exec_id = self._generate_exec_id(sequence)

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=exec_id,
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            units_to_create=pending.units_to_create,
            wallets_to_create=pending.wallets_to_create,
        )

        self._execute_moves(tx.moves)

        # Unit is frozen, so each state change swaps in a new Unit instance
        for sc in tx.state_changes:
            old_unit = self.units[sc.unit]
            new_state = self._deep_copy_state(
                sc.new_state if isinstance(sc.new_state, dict) else {}
            )
            self.units[sc.unit] = replace(old_unit, _frozen_state=_freeze_state(new_state))

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print transaction details followed by a result line."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate pending transaction against all constraints.

        Checks performed:
        1. Timestamp validation (transaction must not be from the future)
        2. Unit and wallet registration
        3. Optimistic state check (old_state must equal the live state)
        4. Balance constraint validation (min/max balance limits)

        Returns:
            Tuple of (success: bool, reason: str)
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return False, f"unit not registered: {sc.unit}"
            if sc.old_state is None:
                continue
            current_state = self.units[sc.unit].state
            old_state = sc.old_state if isinstance(sc.old_state, dict) else {}
            for key in set(old_state.keys()) | set(current_state.keys()):
                if old_state.get(key) != current_state.get(key):
                    return False, (f"stale state for {sc.unit}.{key}: "
                                   f"expected {old_state.get(key)!r}, found {current_state.get(key)!r}")

        # Net balance changes with unit rounding
        net: Dict[Tuple[str, str], Decimal] = {}
        for move in pending.moves:
            unit = self.units[move.unit_symbol]
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = unit.round(net.get(key_src, Decimal("0")) - move.quantity)
            net[key_dst] = unit.round(net.get(key_dst, Decimal("0")) + move.quantity)

        # SYSTEM_WALLET is exempt: it is the issuer of every unit
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue

            current = self.balances[wallet][unit_sym]
            unit = self.units[unit_sym]
            proposed = unit.round(current + delta)

            if proposed < unit.min_balance:
                return False, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
            if proposed > unit.max_balance:
                return False, f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"

        return True, ""

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """Update the inverted position index after a balance change."""
        if abs(quantity) > self.POSITION_EPSILON:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply all moves, in order, to wallet balances and the position index."""
        for move in moves:
            unit = self.units[move.unit_symbol]
            new_src_balance = unit.round(
                self.balances[move.source][move.unit_symbol] - move.quantity
            )
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)
            new_dst_balance = unit.round(
                self.balances[move.dest][move.unit_symbol] + move.quantity
            )
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    @staticmethod
    def _deep_copy_state(state: Optional[UnitState]) -> Optional[UnitState]:
        """Recursively deep copy unit state dictionary."""
        if state is None:
            return None
        return copy.deepcopy(state)

    def clone(self) -> Ledger:
        """
        Create a deep copy of this ledger.

        Modifications to the clone will not affect the original ledger, and
        vice versa. The clone gets its own lock.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned.lock = threading.RLock()

        cloned.units = {
            symbol: replace(unit, _frozen_state=_freeze_state(self._deep_copy_state(unit.state)))
            for symbol, unit in self.units.items()
        }

        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence

        cloned.balances = {}
        for wallet, bals in self.balances.items():
            cloned.balances[wallet] = defaultdict(lambda: Decimal("0"), bals)

        cloned._positions_by_unit = defaultdict(dict)
        for unit_symbol, positions in self._positions_by_unit.items():
            cloned._positions_by_unit[unit_symbol] = dict(positions)

        return cloned

    def replay(self, from_tx: int = 0) -> Ledger:
        """
        Create a new ledger by replaying the transaction log.

        Units and wallets created by logged transactions are re-created by
        those transactions; everything else is copied up front with the
        state it had before its first logged change.

        Note: Balances set via set_balance() are NOT replayed because they
        are not part of the transaction log.

        Raises:
            LedgerError: If replay fails
        """
        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            initial_time=datetime(1970, 1, 1),
            verbose=self.verbose,
            test_mode=self._test_mode
        )

        log = self.transaction_log[from_tx:]
        units_created_in_log = {u.symbol for tx in log for u in tx.units_to_create}
        wallets_created_in_log = {w for tx in log for w in tx.wallets_to_create}

        first_old_state: Dict[str, UnitState] = {}
        for tx in log:
            for sc in tx.state_changes:
                if sc.unit not in first_old_state and isinstance(sc.old_state, dict):
                    first_old_state[sc.unit] = sc.old_state

        for symbol, unit in self.units.items():
            if symbol in units_created_in_log:
                continue
            initial_state = first_old_state.get(symbol, unit.state)
            new_ledger.units[symbol] = replace(
                unit, _frozen_state=_freeze_state(self._deep_copy_state(initial_state))
            )

        for wallet in self.registered_wallets:
            if wallet != SYSTEM_WALLET and wallet not in wallets_created_in_log:
                new_ledger.register_wallet(wallet)

        for tx in log:
            if tx.timestamp > new_ledger._current_time:
                new_ledger.advance_time(tx.timestamp)

            pending = PendingTransaction(
                moves=tx.moves,
                state_changes=tx.state_changes,
                origin=tx.origin,
                timestamp=tx.timestamp,
                units_to_create=tx.units_to_create,
                wallets_to_create=tx.wallets_to_create,
            )

            result = new_ledger.execute(pending)
            if result == ExecuteResult.REJECTED:
                raise LedgerError(f"Replay failed at tx {tx.exec_id}")

        return new_ledger
