"""
CoGateway Balance Ledger

Account balances for the two asset kinds the redeem protocol moves: the
native gas asset (BASE_TOKEN) that pays bounties and transaction fees, and
the fungible token (TOKEN) being redeemed.

Atomicity:

    with ledger.transaction() as tx:
        ledger.transfer(a, b, AssetKind.TOKEN, 10)
        ledger.transfer(c, d, AssetKind.BASE_TOKEN, 5)   # raises
    # both transfers rolled back, no Transfer events published

A transaction holds the ledger lock for its whole body, snapshots balances
and supply on entry, and queues events. On exception the snapshot is
restored and the queue dropped; on commit the queued events publish in
order. Nested transaction() calls join the outermost one.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from gateway.cogateway.errors import InsufficientBalance, InvalidAmount
from gateway.cogateway.events import Event, EventBus, Transfer
from gateway.cogateway.observability import GatewayLayer, get_logger
from gateway.cogateway.validation import NULL_ADDRESS, Validators, normalize_address

log = get_logger("ledger", GatewayLayer.LEDGER)


class AssetKind(Enum):
    """Asset kinds tracked per account."""
    BASE_TOKEN = "base_token"
    TOKEN = "token"


class LedgerTransaction:
    """Pending events of the open transaction."""

    def __init__(self):
        self.pending_events: List[Event] = []

    def emit(self, event: Event) -> None:
        self.pending_events.append(event)


class BalanceLedger:
    """
    In-memory two-asset balance store.

    Balances never go negative: every debit is checked against the current
    balance before anything is written.
    """

    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus or EventBus()
        self._balances: Dict[Tuple[str, AssetKind], int] = {}
        self._supply: Dict[AssetKind, int] = {kind: 0 for kind in AssetKind}
        self._lock = threading.RLock()
        self._tx: Optional[LedgerTransaction] = None
        self._depth = 0

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def balance_of(self, account: str, asset_kind: AssetKind) -> int:
        account = normalize_address(account, "account")
        with self._lock:
            return self._balances.get((account, asset_kind), 0)

    def total_supply(self, asset_kind: AssetKind) -> int:
        with self._lock:
            return self._supply[asset_kind]

    def accounts(self) -> List[str]:
        with self._lock:
            return sorted({account for account, _ in self._balances})

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[LedgerTransaction]:
        with self._lock:
            if self._tx is not None:
                self._depth += 1
                try:
                    yield self._tx
                finally:
                    self._depth -= 1
                return

            balances = dict(self._balances)
            supply = dict(self._supply)
            self._tx = LedgerTransaction()
            tx = self._tx
            try:
                yield tx
            except BaseException:
                self._balances = balances
                self._supply = supply
                self._tx = None
                log.debug("ledger transaction rolled back", dropped_events=len(tx.pending_events))
                raise
            self._tx = None

            for event in tx.pending_events:
                self.event_bus.publish(event)

    def emit(self, event: Event) -> None:
        """Queue an event on the open transaction, or publish it immediately."""
        with self._lock:
            if self._tx is not None:
                self._tx.emit(event)
                return
        self.event_bus.publish(event)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def transfer(
        self,
        from_account: str,
        to_account: str,
        asset_kind: AssetKind,
        amount: int,
    ) -> None:
        """Move amount from one account to another, all or nothing."""
        amount = self._check_amount(amount)
        sender = normalize_address(from_account, "from_account")
        recipient = normalize_address(to_account, "to_account")

        with self.transaction():
            available = self._balances.get((sender, asset_kind), 0)
            if available < amount:
                raise InsufficientBalance(
                    f"{sender} holds {available} {asset_kind.value}, needs {amount}",
                    account=sender,
                    asset_kind=asset_kind.value,
                    available=available,
                    required=amount,
                )
            self._balances[(sender, asset_kind)] = available - amount
            self._balances[(recipient, asset_kind)] = (
                self._balances.get((recipient, asset_kind), 0) + amount
            )
            self.emit(Transfer(
                from_account=sender,
                to_account=recipient,
                amount=amount,
                asset_kind=asset_kind.value,
            ))

        log.debug(
            "transfer",
            operation="transfer",
            from_account=sender,
            to_account=recipient,
            asset_kind=asset_kind.value,
            amount=amount,
        )

    def mint(self, to_account: str, asset_kind: AssetKind, amount: int) -> None:
        """Create supply and credit it to an account."""
        amount = self._check_amount(amount)
        recipient = normalize_address(to_account, "to_account")
        with self.transaction():
            self._balances[(recipient, asset_kind)] = (
                self._balances.get((recipient, asset_kind), 0) + amount
            )
            self._supply[asset_kind] += amount
            self.emit(Transfer(
                from_account=NULL_ADDRESS,
                to_account=recipient,
                amount=amount,
                asset_kind=asset_kind.value,
            ))

    def burn(self, from_account: str, asset_kind: AssetKind, amount: int) -> None:
        """Debit an account and destroy the supply."""
        amount = self._check_amount(amount)
        holder = normalize_address(from_account, "from_account")
        with self.transaction():
            available = self._balances.get((holder, asset_kind), 0)
            if available < amount:
                raise InsufficientBalance(
                    f"{holder} holds {available} {asset_kind.value}, cannot burn {amount}",
                    account=holder,
                    asset_kind=asset_kind.value,
                    available=available,
                    required=amount,
                )
            self._balances[(holder, asset_kind)] = available - amount
            self._supply[asset_kind] -= amount
            self.emit(Transfer(
                from_account=holder,
                to_account=NULL_ADDRESS,
                amount=amount,
                asset_kind=asset_kind.value,
            ))

    @staticmethod
    def _check_amount(amount: int) -> int:
        result = Validators.validate_amount(amount, "amount")
        if not result.is_valid:
            raise InvalidAmount(result.errors[0].message, amount=amount)
        return result.sanitized_value
