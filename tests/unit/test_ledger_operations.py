"""
test_ledger_operations.py - Unit tests for Ledger class operations

Tests:
- Ledger creation and configuration
- Wallet and unit registration
- Balance queries, positions and supply
- Time management
- Transaction execution (moves, state changes, registrations)
- Stale-state rejection and rollback of provisional registrations
- clone() and replay()
"""

import pytest
from datetime import datetime
from decimal import Decimal

from launchpad import (
    Ledger, Move, ExecuteResult, UnitStateChange, build_transaction, native,
    create_asset_token_unit, SYSTEM_WALLET, WAD,
    LedgerError, WalletNotRegistered, UnitNotRegistered,
)
from tests.conftest import fund, Launchpad


class TestLedgerCreation:
    """Tests for Ledger initialization."""

    def test_create_ledger_minimal(self):
        ledger = Ledger("test")
        assert ledger.name == "test"
        assert ledger.current_time == datetime(1970, 1, 1)

    def test_create_ledger_with_options(self):
        t = datetime(2025, 1, 1, 9, 30)
        ledger = Ledger(name="test", initial_time=t, verbose=False)
        assert ledger.current_time == t
        assert ledger.verbose is False

    def test_system_wallet_registered(self):
        assert Ledger("test", verbose=False).is_registered(SYSTEM_WALLET)

    def test_lock_is_reentrant(self):
        ledger = Ledger("test", verbose=False)
        with ledger.lock:
            with ledger.lock:
                pass


class TestRegistration:
    """Tests for wallet and unit registration."""

    def test_register_wallet(self, empty_ledger):
        assert empty_ledger.register_wallet("alice") == "alice"
        assert "alice" in empty_ledger.list_wallets()

    def test_register_duplicate_wallet_raises(self, empty_ledger):
        empty_ledger.register_wallet("alice")
        with pytest.raises(ValueError, match="already registered"):
            empty_ledger.register_wallet("alice")

    def test_list_wallets_returns_copy(self, empty_ledger):
        wallets = empty_ledger.list_wallets()
        wallets.add("intruder")
        assert "intruder" not in empty_ledger.list_wallets()

    def test_register_unit(self, empty_ledger):
        empty_ledger.register_unit(native())
        assert empty_ledger.has_unit("ETH")
        assert empty_ledger.get_unit("ETH").name == "Ether"

    def test_register_duplicate_unit_raises(self, empty_ledger):
        empty_ledger.register_unit(native())
        with pytest.raises(ValueError, match="already registered"):
            empty_ledger.register_unit(native())

    def test_unregistered_unit_state_raises(self, empty_ledger):
        with pytest.raises(UnitNotRegistered):
            empty_ledger.get_unit_state("0xnothing")

    def test_list_units_sorted(self, empty_ledger):
        empty_ledger.register_unit(native())
        empty_ledger.register_unit(create_asset_token_unit("0xb", "B", "B", "alice"))
        empty_ledger.register_unit(create_asset_token_unit("0xa", "A", "A", "alice"))
        units = empty_ledger.list_units()
        assert units == sorted(units)


class TestBalances:
    """Tests for balance queries."""

    def test_default_zero(self, eth_ledger):
        eth_ledger.register_wallet("carol")
        assert eth_ledger.get_balance("carol", "ETH") == 0

    def test_unregistered_wallet_raises(self, eth_ledger):
        with pytest.raises(WalletNotRegistered):
            eth_ledger.get_balance("nobody", "ETH")

    def test_unregistered_unit_raises(self, eth_ledger):
        with pytest.raises(UnitNotRegistered):
            eth_ledger.get_balance("alice", "BTC")

    def test_balances_are_decimal(self, eth_ledger):
        assert eth_ledger.get_balance("alice", "ETH") == Decimal(100 * WAD)

    def test_positions(self, eth_ledger):
        positions = eth_ledger.get_positions("ETH")
        assert positions["alice"] == 100 * WAD
        assert positions["bob"] == 100 * WAD

    def test_supply(self, eth_ledger):
        assert eth_ledger.total_supply("ETH") == 0
        assert eth_ledger.outstanding("ETH") == 200 * WAD
        assert eth_ledger.verify_double_entry()['valid']

    def test_set_balance_needs_test_mode(self):
        ledger = Ledger("prod", verbose=False)
        ledger.register_unit(native())
        ledger.register_wallet("alice")
        with pytest.raises(LedgerError, match="test_mode"):
            ledger.set_balance("alice", "ETH", WAD)

    def test_set_balance_breaks_conservation(self, eth_ledger):
        eth_ledger.set_balance("alice", "ETH", 0)
        result = eth_ledger.verify_double_entry()
        assert not result['valid']
        assert result['discrepancies'][0]['unit'] == "ETH"


class TestTime:
    """Tests for the logical clock."""

    def test_advance(self, eth_ledger):
        eth_ledger.advance_time(datetime(2025, 6, 1))
        assert eth_ledger.current_time == datetime(2025, 6, 1)

    def test_cannot_go_back(self, eth_ledger):
        with pytest.raises(ValueError, match="backwards"):
            eth_ledger.advance_time(datetime(2024, 1, 1))


# ============================================================================
# Execution
# ============================================================================

class TestExecute:
    """Tests for Ledger.execute."""

    def test_transfer(self, eth_ledger):
        tx = build_transaction(eth_ledger, [Move(WAD, "ETH", "alice", "bob", "pay")])
        assert eth_ledger.execute(tx) == ExecuteResult.APPLIED
        assert eth_ledger.get_balance("alice", "ETH") == 99 * WAD
        assert eth_ledger.get_balance("bob", "ETH") == 101 * WAD
        assert eth_ledger.transaction_log[-1].intent_id == tx.intent_id

    def test_overdraft_rejected(self, eth_ledger):
        tx = build_transaction(eth_ledger, [Move(101 * WAD, "ETH", "alice", "bob", "pay")])
        assert eth_ledger.execute(tx) == ExecuteResult.REJECTED
        assert eth_ledger.get_balance("alice", "ETH") == 100 * WAD

    def test_moves_net_within_transaction(self, eth_ledger):
        """Balances are checked on the net effect, so a wallet may relay funds."""
        eth_ledger.register_wallet("escrow")
        tx = build_transaction(eth_ledger, [
            Move(WAD, "ETH", "alice", "escrow", "relay"),
            Move(WAD, "ETH", "escrow", "bob", "relay"),
        ])
        assert eth_ledger.execute(tx) == ExecuteResult.APPLIED
        assert eth_ledger.get_balance("escrow", "ETH") == 0

    def test_unregistered_wallet_rejected(self, eth_ledger):
        tx = build_transaction(eth_ledger, [Move(WAD, "ETH", "alice", "ghost", "pay")])
        assert eth_ledger.execute(tx) == ExecuteResult.REJECTED

    def test_duplicate_intent(self, eth_ledger):
        tx = build_transaction(eth_ledger, [Move(WAD, "ETH", "alice", "bob", "pay")])
        assert eth_ledger.execute(tx) == ExecuteResult.APPLIED
        assert eth_ledger.execute(tx) == ExecuteResult.ALREADY_APPLIED
        assert eth_ledger.get_balance("bob", "ETH") == 101 * WAD
        assert len(eth_ledger.transaction_log) == 3

    def test_future_timestamp_rejected(self, eth_ledger):
        later = Ledger("other", datetime(2030, 1, 1), verbose=False)
        tx = build_transaction(later, [Move(WAD, "ETH", "alice", "bob", "pay")])
        assert eth_ledger.execute(tx) == ExecuteResult.REJECTED

    def test_exec_ids_are_sequenced(self, eth_ledger):
        fund(eth_ledger, "alice", WAD)
        numbers = [tx.sequence_number for tx in eth_ledger.transaction_log]
        assert numbers == list(range(len(numbers)))
        assert len({tx.exec_id for tx in eth_ledger.transaction_log}) == len(numbers)


class TestStateChanges:
    """Tests for state changes and the stale-state check."""

    @pytest.fixture
    def token_ledger(self, eth_ledger):
        eth_ledger.register_unit(create_asset_token_unit("0xt", "T", "T", "alice"))
        return eth_ledger

    def _bump(self, ledger, old):
        return build_transaction(ledger, [], [
            UnitStateChange("0xt", old, {**old, 'nonce': old['nonce'] + 1})
        ])

    def test_state_change_applied(self, token_ledger):
        old = token_ledger.get_unit_state("0xt")
        assert token_ledger.execute(self._bump(token_ledger, old)) == ExecuteResult.APPLIED
        assert token_ledger.get_unit_state("0xt")['nonce'] == 1

    def test_stale_state_rejected(self, token_ledger):
        old = token_ledger.get_unit_state("0xt")
        first = self._bump(token_ledger, old)
        stale = build_transaction(token_ledger, [], [
            UnitStateChange("0xt", old, {**old, 'nonce': 7})
        ])
        assert token_ledger.execute(first) == ExecuteResult.APPLIED
        assert token_ledger.execute(stale) == ExecuteResult.REJECTED
        assert token_ledger.get_unit_state("0xt")['nonce'] == 1

    def test_unknown_unit_rejected(self, token_ledger):
        tx = build_transaction(token_ledger, [], [UnitStateChange("0xnone", None, {'a': 1})])
        assert token_ledger.execute(tx) == ExecuteResult.REJECTED


class TestRegistrationsInTransaction:
    """Units and wallets created by a transaction are provisional until it applies."""

    def test_created_with_moves(self, eth_ledger):
        unit = create_asset_token_unit("0xnew", "New", "NEW", "alice")
        tx = build_transaction(
            eth_ledger,
            [Move(WAD, "0xnew", SYSTEM_WALLET, "vault", "mint_new")],
            units_to_create=(unit,),
            wallets_to_create=("vault",),
        )
        assert eth_ledger.execute(tx) == ExecuteResult.APPLIED
        assert eth_ledger.get_balance("vault", "0xnew") == WAD

    def test_rejection_rolls_back(self, eth_ledger):
        unit = create_asset_token_unit("0xnew", "New", "NEW", "alice")
        tx = build_transaction(
            eth_ledger,
            [Move(1000 * WAD, "ETH", "alice", "vault", "overdraw")],
            units_to_create=(unit,),
            wallets_to_create=("vault",),
        )
        assert eth_ledger.execute(tx) == ExecuteResult.REJECTED
        assert not eth_ledger.has_unit("0xnew")
        assert not eth_ledger.is_registered("vault")

    def test_existing_wallet_rejected(self, eth_ledger):
        tx = build_transaction(eth_ledger, [], wallets_to_create=("alice",))
        assert eth_ledger.execute(tx) == ExecuteResult.REJECTED
        assert eth_ledger.is_registered("alice")


# ============================================================================
# clone / replay
# ============================================================================

class TestCloneAndReplay:
    """Tests for clone() and replay()."""

    def test_clone_is_independent(self, eth_ledger):
        copy = eth_ledger.clone()
        fund(copy, "alice", WAD)
        assert copy.get_balance("alice", "ETH") == 101 * WAD
        assert eth_ledger.get_balance("alice", "ETH") == 100 * WAD
        assert copy.lock is not eth_ledger.lock

    def test_replay_launchpad_history(self):
        """A log with launches, trades and a migration rebuilds the same state."""
        pad = Launchpad()
        asset = pad.launch()
        for buyer in ("bob", "carol", "dave", "erin"):
            pad.factory.spend(buyer, asset, 2 * WAD)
        pad.factory.sell("bob", asset, pad.balance("bob", asset) // 2)
        pad.factory.spend("frank", asset, 3 * WAD)

        replayed = pad.ledger.replay()
        for wallet in pad.ledger.list_wallets():
            for unit in pad.ledger.list_units():
                assert replayed.get_balance(wallet, unit) == pad.ledger.get_balance(wallet, unit)
        for unit in pad.ledger.list_units():
            assert replayed.get_unit_state(unit) == pad.ledger.get_unit_state(unit)
        assert replayed.verify_double_entry()['valid']


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
