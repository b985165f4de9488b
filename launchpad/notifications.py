"""
notifications.py - Typed post-commit notifications

Every public factory and router operation that commits a transaction
publishes one record per observable effect. Records are frozen dataclasses
carrying the exec_id of the transaction that produced them, so an indexer
can join them back to the audit log.

Publication happens strictly after Ledger.execute() returned APPLIED. A
rejected operation publishes nothing.

Example:
    bus = NotificationBus()
    bus.subscribe(lambda n: print(n))
    factory = TokenFactory(ledger, router, notifications=bus)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Type, TypeVar, Union


@dataclass(frozen=True, slots=True)
class AssetCreated:
    exec_id: str
    asset: str
    creator: str
    name: str
    symbol: str
    curve: str
    index: int


@dataclass(frozen=True, slots=True)
class TokensPurchased:
    exec_id: str
    asset: str
    buyer: str
    amount: int
    cost: int
    fee: int
    circulating_supply: int
    funding_raised: int


@dataclass(frozen=True, slots=True)
class TokensSold:
    exec_id: str
    asset: str
    seller: str
    amount: int
    refund: int
    circulating_supply: int


@dataclass(frozen=True, slots=True)
class AssetMigrated:
    exec_id: str
    asset: str
    pool: str
    base_seeded: int
    asset_seeded: int
    liquidity_minted: int


@dataclass(frozen=True, slots=True)
class PoolCreated:
    exec_id: str
    asset: str
    pool: str


@dataclass(frozen=True, slots=True)
class LiquidityAdded:
    exec_id: str
    pool: str
    provider: str
    asset_amount: int
    base_amount: int
    liquidity_minted: int


@dataclass(frozen=True, slots=True)
class LiquidityRemoved:
    exec_id: str
    pool: str
    provider: str
    asset_amount: int
    base_amount: int
    liquidity_burned: int


@dataclass(frozen=True, slots=True)
class Swapped:
    exec_id: str
    pool: str
    trader: str
    direction: str
    amount_in: int
    amount_out: int
    fee: int


Notification = Union[
    AssetCreated, TokensPurchased, TokensSold, AssetMigrated,
    PoolCreated, LiquidityAdded, LiquidityRemoved, Swapped,
]

Subscriber = Callable[[Notification], None]

N = TypeVar('N')


class NotificationBus:
    """
    Synchronous fan-out of notifications to subscribers, with a history.

    Subscribers run in publication order on the publishing thread. An
    exception raised by a subscriber propagates to the caller; the ledger
    transaction that produced the notification is already committed.
    """

    def __init__(self, keep_history: bool = True):
        self._subscribers: List[Subscriber] = []
        self._history: List[Notification] = []
        self._keep_history = keep_history

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def publish(self, *notifications: Notification) -> None:
        for notification in notifications:
            if self._keep_history:
                self._history.append(notification)
            for callback in list(self._subscribers):
                callback(notification)

    def history(self, kind: Optional[Type[N]] = None) -> Tuple[Notification, ...]:
        """All published notifications, optionally only those of one type."""
        if kind is None:
            return tuple(self._history)
        return tuple(n for n in self._history if isinstance(n, kind))

    def clear(self) -> None:
        self._history.clear()
