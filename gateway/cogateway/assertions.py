"""
Balance and event assertions for redeem operations.

An integration harness captures balances before an operation, runs it while
capturing the published events, and hands both to a verifier:

    initial = capture_balances(ledger, redeemer=r, redeem_pool=pool)
    with gateway.events.capture() as events:
        message_hash = gateway.request_redeem(...)
    RequestRedeemAssertion(ledger).verify(
        decode_events(events), gateway.get_request(message_hash), fees, initial
    )

Verifiers only read the ledger; a mismatch raises AssertionMismatch naming
the role, asset and the expected and observed balances.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from gateway.cogateway.events import Event
from gateway.cogateway.ledger import AssetKind, BalanceLedger
from gateway.cogateway.observability import GatewayLayer, get_logger
from gateway.cogateway.registry import RedeemRequest
from gateway.cogateway.validation import normalize_address, same_address

log = get_logger("assertions", GatewayLayer.ASSERTIONS)

ROLES = ("redeem_pool", "redeemer", "facilitator", "cogateway")


class AssertionMismatch(AssertionError):
    """Observed balances or event fields differ from the expected ones."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.details = details


@dataclass(frozen=True)
class BalanceSnapshot:
    """Balances per role and asset kind, with the accounts they were read from."""
    accounts: Dict[str, str]
    balances: Dict[str, Dict[AssetKind, int]] = field(default_factory=dict)

    def get(self, role: str, asset_kind: AssetKind) -> int:
        try:
            return self.balances[role][asset_kind]
        except KeyError:
            raise AssertionMismatch(f"no {asset_kind.value} balance captured for {role}") from None

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            role: {kind.value: amount for kind, amount in kinds.items()}
            for role, kinds in self.balances.items()
        }


def capture_balances(ledger: BalanceLedger, **accounts: str) -> BalanceSnapshot:
    """Read both asset balances for each role=account pair."""
    unknown = set(accounts) - set(ROLES)
    if unknown:
        raise ValueError(f"unknown balance roles: {sorted(unknown)}")
    normalized = {role: normalize_address(a, role) for role, a in accounts.items()}
    return BalanceSnapshot(
        accounts=normalized,
        balances={
            role: {kind: ledger.balance_of(account, kind) for kind in AssetKind}
            for role, account in normalized.items()
        },
    )


class _RedeemAssertion:
    """Shared delta and field checks."""

    EVENT_NAME = ""

    def __init__(self, ledger: BalanceLedger):
        self.ledger = ledger

    def _assert_delta(
        self,
        initial: BalanceSnapshot,
        final: BalanceSnapshot,
        role: str,
        asset_kind: AssetKind,
        delta: int,
    ) -> None:
        expected = initial.get(role, asset_kind) + delta
        observed = final.get(role, asset_kind)
        if expected != observed:
            raise AssertionMismatch(
                f"{role} {asset_kind.value} balance must be {expected} instead of {observed}",
                role=role,
                asset_kind=asset_kind.value,
                expected=expected,
                observed=observed,
            )

    def _event(self, events: Mapping[str, Event]) -> Event:
        event = events.get(self.EVENT_NAME)
        if event is None:
            raise AssertionMismatch(f"{self.EVENT_NAME} event not emitted")
        return event

    @staticmethod
    def _assert_field(name: str, observed: Any, expected: Any, address: bool = False) -> None:
        matches = same_address(observed, expected) if address else observed == expected
        if not matches:
            raise AssertionMismatch(
                f"{name} from event {observed} must be equal to {expected}.",
                field=name,
                expected=expected,
                observed=observed,
            )

    def _final(self, initial: BalanceSnapshot) -> BalanceSnapshot:
        return capture_balances(self.ledger, **initial.accounts)


class RequestRedeemAssertion(_RedeemAssertion):
    """
    After request_redeem: the amount moved from redeemer to the redeem pool,
    the redeemer paid only the transaction fees in base token, and the
    RedeemRequested event carries the request fields.
    """

    EVENT_NAME = "RedeemRequested"

    def verify(
        self,
        events: Mapping[str, Event],
        request: RedeemRequest,
        transaction_fees: int,
        initial_balances: BalanceSnapshot,
    ) -> None:
        final = self._final(initial_balances)

        self._assert_delta(initial_balances, final, "redeem_pool", AssetKind.BASE_TOKEN, 0)
        self._assert_delta(initial_balances, final, "redeem_pool", AssetKind.TOKEN, request.amount)
        self._assert_delta(
            initial_balances, final, "redeemer", AssetKind.BASE_TOKEN, -transaction_fees
        )
        self._assert_delta(initial_balances, final, "redeemer", AssetKind.TOKEN, -request.amount)

        event = self._event(events)
        self._assert_field("redeemer", event.redeemer, request.redeemer, address=True)
        self._assert_field("nonce", event.nonce, request.nonce)
        self._assert_field("beneficiary", event.beneficiary, request.beneficiary, address=True)
        self._assert_field("amount", event.amount, request.amount)
        self._assert_field("gas_price", event.gas_price, request.gas_price)
        self._assert_field("gas_limit", event.gas_limit, request.gas_limit)
        self._assert_field("message_hash", event.message_hash, request.message_hash)
        log.debug("request redeem verified", message_hash=request.message_hash)


class AcceptRedeemAssertion(_RedeemAssertion):
    """
    After accept_redeem: the bounty moved from facilitator to co-gateway, the
    amount moved from the redeem pool to co-gateway, and the
    RedeemIntentDeclared event carries the request fields.
    """

    EVENT_NAME = "RedeemIntentDeclared"

    def verify(
        self,
        events: Mapping[str, Event],
        request: RedeemRequest,
        transaction_fees: int,
        initial_balances: BalanceSnapshot,
    ) -> None:
        if request.bounty is None:
            raise AssertionMismatch("request has no bounty; was it accepted?")
        final = self._final(initial_balances)

        self._assert_delta(initial_balances, final, "cogateway", AssetKind.BASE_TOKEN, request.bounty)
        self._assert_delta(initial_balances, final, "cogateway", AssetKind.TOKEN, request.amount)
        self._assert_delta(initial_balances, final, "redeem_pool", AssetKind.BASE_TOKEN, 0)
        self._assert_delta(initial_balances, final, "redeem_pool", AssetKind.TOKEN, -request.amount)
        self._assert_delta(
            initial_balances,
            final,
            "facilitator",
            AssetKind.BASE_TOKEN,
            -(request.bounty + transaction_fees),
        )
        self._assert_delta(initial_balances, final, "facilitator", AssetKind.TOKEN, 0)

        event = self._event(events)
        self._assert_field("redeemer", event.redeemer, request.redeemer, address=True)
        self._assert_field("nonce", event.nonce, request.nonce)
        self._assert_field("beneficiary", event.beneficiary, request.beneficiary, address=True)
        self._assert_field("amount", event.amount, request.amount)
        self._assert_field("message_hash", event.message_hash, request.message_hash)
        log.debug("accept redeem verified", message_hash=request.message_hash)
