"""
asset_token.py - Fungible asset launched through the factory

This module provides the ordinary token ledger behind every launched asset:
1. create_asset_token_unit() - Factory for the token Unit (metadata in state)
2. compute_mint() / compute_burn() - Issuance against the system wallet
3. compute_transfer() - Holder to holder
4. compute_approve() / compute_transfer_from() - Allowance semantics
5. balance_of() / allowance() - Reads

Balances live in the ledger like any other unit. Allowances live in the
unit state under 'allowances' as {owner: {spender: amount}}. Every direct
mint, burn and transfer bumps 'nonce' so that two identical transfers are
two distinct intents rather than one idempotent replay.

All functions take LedgerView (read-only) and return immutable results.
"""

from __future__ import annotations
from typing import Optional

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    SYSTEM_WALLET, UNIT_TYPE_ASSET_TOKEN,
    InsufficientBalance, InsufficientAllowance, InvalidMetadata,
    build_transaction, _freeze_state,
)
from ..fixed_point import as_int


def create_asset_token_unit(
    address: str,
    name: str,
    ticker: str,
    creator: str,
    image_ref: str = "",
    description: str = "",
    curve: Optional[str] = None,
    index: Optional[int] = None,
) -> Unit:
    """
    Create the Unit for a launched asset.

    Args:
        address: Unique asset address, used as the unit symbol
        name: Display name (non-empty)
        ticker: Display symbol (non-empty)
        creator: Wallet that launched the asset
        image_ref: Opaque image reference
        description: Opaque description
        curve: Handle of the asset's bonding curve entry
        index: Stable creation-order index in the factory

    Returns:
        Unit with 18-decimal integral balances and the metadata in state.

    Raises:
        InvalidMetadata: If name or ticker is empty
    """
    if not name or not name.strip():
        raise InvalidMetadata("Invalid token name")
    if not ticker or not ticker.strip():
        raise InvalidMetadata("Invalid token symbol")

    return Unit(
        symbol=address,
        name=name,
        unit_type=UNIT_TYPE_ASSET_TOKEN,
        decimal_places=0,
        _frozen_state=_freeze_state({
            'name': name,
            'ticker': ticker,
            'creator': creator,
            'image_ref': image_ref or "",
            'description': description or "",
            'decimals': 18,
            'curve': curve,
            'pool': None,
            'index': index,
            'allowances': {},
            'nonce': 0,
        }),
    )


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"amount must be a positive int, got {amount!r}")


def balance_of(view: LedgerView, token: str, holder: str) -> int:
    """Token balance of a wallet in base units."""
    return as_int(view.get_balance(holder, token))


def allowance(view: LedgerView, token: str, owner: str, spender: str) -> int:
    """Remaining amount `spender` may move out of `owner`'s balance."""
    state = view.get_unit_state(token)
    return state.get('allowances', {}).get(owner, {}).get(spender, 0)


def mint_move(token: str, to: str, amount: int, contract_id: str) -> Move:
    """Move issuing `amount` fresh units to `to`."""
    return Move(amount, token, SYSTEM_WALLET, to, contract_id)


def burn_move(token: str, holder: str, amount: int, contract_id: str) -> Move:
    """Move redeeming `amount` units from `holder`."""
    return Move(amount, token, holder, SYSTEM_WALLET, contract_id)


def _bump_nonce(view: LedgerView, token: str) -> UnitStateChange:
    state = view.get_unit_state(token)
    return UnitStateChange(
        unit=token, old_state=state, new_state={**state, 'nonce': state.get('nonce', 0) + 1},
    )


def compute_mint(view: LedgerView, token: str, to: str, amount: int) -> PendingTransaction:
    """Issue `amount` new units to `to`."""
    _check_amount(amount)
    return build_transaction(
        view, [mint_move(token, to, amount, f'mint_{token}')], [_bump_nonce(view, token)],
    )


def compute_burn(view: LedgerView, token: str, holder: str, amount: int) -> PendingTransaction:
    """
    Redeem `amount` units held by `holder`.

    Raises:
        InsufficientBalance: If holder has fewer than `amount`
    """
    _check_amount(amount)
    held = balance_of(view, token, holder)
    if held < amount:
        raise InsufficientBalance(f"{holder} holds {held} {token}, cannot burn {amount}")
    return build_transaction(
        view, [burn_move(token, holder, amount, f'burn_{token}')], [_bump_nonce(view, token)],
    )


def compute_transfer(
    view: LedgerView,
    token: str,
    sender: str,
    recipient: str,
    amount: int,
) -> PendingTransaction:
    """
    Transfer `amount` from sender to recipient.

    Raises:
        InsufficientBalance: If sender has fewer than `amount`
        ValueError: If sender == recipient or amount is not positive
    """
    _check_amount(amount)
    if sender == recipient:
        raise ValueError("sender and recipient must be different")
    held = balance_of(view, token, sender)
    if held < amount:
        raise InsufficientBalance(f"{sender} holds {held} {token}, cannot transfer {amount}")
    return build_transaction(
        view,
        [Move(amount, token, sender, recipient, f'transfer_{token}')],
        [_bump_nonce(view, token)],
    )


def compute_approve(
    view: LedgerView,
    token: str,
    owner: str,
    spender: str,
    amount: int,
) -> PendingTransaction:
    """
    Set spender's allowance over owner's balance to exactly `amount`.

    Approving zero removes the allowance.
    """
    if not isinstance(amount, int) or amount < 0:
        raise ValueError(f"allowance must be a non-negative int, got {amount!r}")
    if owner == spender:
        raise ValueError("owner and spender must be different")

    state = view.get_unit_state(token)
    allowances = {o: dict(s) for o, s in state.get('allowances', {}).items()}
    owner_allowances = allowances.setdefault(owner, {})
    if amount:
        owner_allowances[spender] = amount
    else:
        owner_allowances.pop(spender, None)
        if not owner_allowances:
            del allowances[owner]

    new_state = {**state, 'allowances': allowances}
    return build_transaction(
        view, [],
        [UnitStateChange(unit=token, old_state=state, new_state=new_state)],
    )


def compute_transfer_from(
    view: LedgerView,
    token: str,
    spender: str,
    owner: str,
    recipient: str,
    amount: int,
) -> PendingTransaction:
    """
    Move `amount` of owner's units to recipient on spender's allowance.

    The allowance is reduced by `amount` in the same transaction.

    Raises:
        InsufficientAllowance: If the allowance is below `amount`
        InsufficientBalance: If owner holds fewer than `amount`
    """
    _check_amount(amount)
    if owner == recipient:
        raise ValueError("owner and recipient must be different")
    approved = allowance(view, token, owner, spender)
    if approved < amount:
        raise InsufficientAllowance(
            f"{spender} may move {approved} of {owner}'s {token}, requested {amount}"
        )
    held = balance_of(view, token, owner)
    if held < amount:
        raise InsufficientBalance(f"{owner} holds {held} {token}, cannot transfer {amount}")

    state = view.get_unit_state(token)
    allowances = {o: dict(s) for o, s in state.get('allowances', {}).items()}
    remaining = approved - amount
    if remaining:
        allowances[owner][spender] = remaining
    else:
        del allowances[owner][spender]
        if not allowances[owner]:
            del allowances[owner]
    new_state = {**state, 'allowances': allowances}

    return build_transaction(
        view,
        [Move(amount, token, owner, recipient, f'transfer_from_{token}')],
        [UnitStateChange(unit=token, old_state=state, new_state=new_state)],
    )
