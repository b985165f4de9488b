"""
conftest.py - Shared pytest fixtures for launchpad tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, with the native currency, funded wallets)
- Wired launchpads (ledger + router + factory + notification bus)
- Launched assets and seeded pools
- Snapshot and comparison utilities
"""

import pytest
from datetime import datetime
from typing import Any, Dict

from launchpad import (
    Ledger, Move, ExecuteResult, build_transaction, native,
    SwapRouter, TokenFactory, LaunchpadConfig, NotificationBus,
    create_asset_token_unit, compute_mint,
    SYSTEM_WALLET, WAD,
)


WALLETS = ("alice", "bob", "carol", "dave", "erin", "frank")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fund(ledger: Ledger, wallet: str, amount: int, unit: str = "ETH") -> None:
    """Issue `amount` base units of `unit` to `wallet` from the system wallet."""
    tx = build_transaction(ledger, [
        Move(amount, unit, SYSTEM_WALLET, wallet, f"faucet_{len(ledger.transaction_log)}")
    ])
    assert ledger.execute(tx) == ExecuteResult.APPLIED


def balance(ledger: Ledger, wallet: str, unit: str = "ETH") -> int:
    """Balance as an int (base units)."""
    return int(ledger.get_balance(wallet, unit))


def snapshot(ledger: Ledger) -> Dict[str, Any]:
    """Everything a rejected operation must leave untouched."""
    return {
        'balances': {
            w: {u: q for u, q in ledger.get_wallet_balances(w).items() if q != 0}
            for w in sorted(ledger.registered_wallets)
        },
        'states': {sym: ledger.get_unit_state(sym) for sym in ledger.list_units()},
        'units': ledger.list_units(),
        'wallets': sorted(ledger.registered_wallets),
        'log_length': len(ledger.transaction_log),
    }


def assert_conserved(ledger: Ledger) -> None:
    """Every unit sums to zero across all wallets, system included."""
    result = ledger.verify_double_entry()
    assert result['valid'], f"Conservation violated: {result['discrepancies']}"


class Launchpad:
    """Ledger, router, factory and bus wired together for a test."""

    def __init__(self, config: LaunchpadConfig = None, wallets=WALLETS, funding: int = 100 * WAD):
        self.ledger = Ledger("test", datetime(2025, 1, 1), verbose=False, test_mode=True)
        self.bus = NotificationBus()
        self.config = config or LaunchpadConfig()
        self.router = SwapRouter(self.ledger, self.config, self.bus)
        self.factory = TokenFactory(self.ledger, self.router)
        for w in wallets:
            self.ledger.register_wallet(w)
            if funding:
                fund(self.ledger, w, funding, self.config.base_symbol)

    def launch(self, creator: str = "alice", name: str = "Meme Coin", symbol: str = "MEME") -> str:
        return self.factory.create_asset(
            creator, name, symbol, "ipfs://meme", "a test asset",
            fee_paid=self.config.creation_fee,
        )

    def list_token(self, address: str = "0xlisted", holders=("alice", "bob"), amount: int = 1_000_000 * WAD) -> str:
        """Register a token with no bonding curve and mint `amount` to each holder."""
        self.ledger.register_unit(create_asset_token_unit(address, "Listed", "LST", "alice"))
        for holder in holders:
            assert self.ledger.execute(compute_mint(self.ledger, address, holder, amount)) == ExecuteResult.APPLIED
        return address

    def balance(self, wallet: str, unit: str = None) -> int:
        return balance(self.ledger, wallet, unit or self.config.base_symbol)


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", verbose=False, test_mode=True)


@pytest.fixture
def eth_ledger():
    """Ledger with ETH and two funded wallets."""
    ledger = Ledger("test", datetime(2025, 1, 1), verbose=False, test_mode=True)
    ledger.register_unit(native())
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    fund(ledger, "alice", 100 * WAD)
    fund(ledger, "bob", 100 * WAD)
    return ledger


# =============================================================================
# LAUNCHPAD FIXTURES
# =============================================================================

@pytest.fixture
def pad():
    """Wired launchpad with six wallets holding 100 ETH each."""
    return Launchpad()


@pytest.fixture
def asset(pad):
    """One asset launched by alice, still trading on its curve."""
    return pad.launch()


@pytest.fixture
def migrated(pad, asset):
    """The launched asset after five 2 ETH spends took it to its pool."""
    for buyer in ("bob", "carol", "dave", "erin", "frank"):
        pad.factory.spend(buyer, asset, 2 * WAD)
    return asset


@pytest.fixture
def listed(pad):
    """A token with no bonding curve; alice and bob hold 1M units each."""
    return pad.list_token()


@pytest.fixture
def seeded_pool(pad, listed):
    """
    A pool for the listed token created directly on the router.

    alice deposits 100k units with 1 ETH.
    """
    amount = 100_000 * WAD
    pool = pad.router.create_pool(listed)
    pad.router.add_liquidity("alice", pool, amount, WAD)
    return pool
