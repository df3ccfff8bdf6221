"""
Tests for request_redeem.

Verifies that:
1. A valid request escrows the amount in the redeem pool.
2. Nonces advance strictly by one per redeemer.
3. Every rejection leaves balances and the registry untouched.
"""
import pytest

from gateway.cogateway.errors import (
    InsufficientBalance,
    InvalidAmount,
    InvalidBeneficiary,
    InvalidHashLock,
    InvalidNonce,
    Unauthorized,
    UnknownRequest,
)
from gateway.cogateway.events import RedeemRequested, decode_events
from gateway.cogateway.ledger import AssetKind
from gateway.cogateway.registry import (
    MessageStatus,
    redeem_intent_hash,
    redeem_message_hash,
)
from gateway.cogateway.validation import NULL_ADDRESS

from tests.conftest import (
    BENEFICIARY,
    COGATEWAY,
    HASH_LOCK,
    REDEEMER,
    REDEEM_POOL,
)


def _request(gateway, **overrides):
    params = dict(
        redeemer=REDEEMER,
        amount=100,
        gas_price=1,
        gas_limit=100,
        nonce=gateway.next_nonce(REDEEMER),
        beneficiary=BENEFICIARY,
        hash_lock=HASH_LOCK,
    )
    params.update(overrides)
    return gateway.request_redeem(**params)


class TestRequestRedeem:

    def test_request_escrows_amount(self, gateway, funded):
        _request(gateway, amount=1000)
        assert funded.balance_of(REDEEMER, AssetKind.TOKEN) == 0
        assert funded.balance_of(REDEEM_POOL, AssetKind.TOKEN) == 1000

    def test_request_is_stored_as_requested(self, gateway, funded):
        message_hash = _request(gateway)
        request = gateway.get_request(message_hash)
        assert request.status == MessageStatus.REQUESTED
        assert request.amount == 100
        assert request.redeemer == REDEEMER
        assert request.beneficiary == BENEFICIARY
        assert request.hash_lock == HASH_LOCK
        assert request.facilitator is None
        assert request.bounty is None
        assert [t.to_status for t in request.history] == [MessageStatus.REQUESTED]

    def test_message_hash_is_derived_from_request_fields(self, gateway, funded):
        message_hash = _request(gateway)
        intent = redeem_intent_hash(100, BENEFICIARY, COGATEWAY)
        assert message_hash == redeem_message_hash(intent, 1, 1, 100, REDEEMER, HASH_LOCK)
        assert gateway.get_request(message_hash).intent_hash == intent

    def test_event_carries_request_fields(self, gateway, funded):
        with gateway.events.capture() as events:
            message_hash = _request(gateway)
        decoded = decode_events(events)
        event = decoded["RedeemRequested"]
        assert isinstance(event, RedeemRequested)
        assert event.to_wire() == {
            "redeemer": REDEEMER,
            "nonce": 1,
            "beneficiary": BENEFICIARY,
            "amount": 100,
            "gasPrice": 1,
            "gasLimit": 100,
            "messageHash": message_hash,
        }
        assert decoded["Transfer"].to_account == REDEEM_POOL

    def test_mixed_case_identifiers_are_normalized(self, gateway, funded):
        redeemer = "0x" + "aB" * 20
        beneficiary = "0x" + "Cd" * 20
        funded.mint(redeemer, AssetKind.TOKEN, 100)
        message_hash = _request(
            gateway,
            redeemer=redeemer,
            nonce=1,
            beneficiary=beneficiary,
            hash_lock=HASH_LOCK.upper().replace("0X", "0x"),
        )
        request = gateway.get_request(message_hash)
        assert request.redeemer == redeemer.lower()
        assert request.beneficiary == beneficiary.lower()
        assert request.hash_lock == HASH_LOCK
        assert gateway.last_nonce(redeemer.lower()) == 1

    def test_lookup_accepts_unprefixed_hash(self, gateway, funded):
        message_hash = _request(gateway)
        assert gateway.get_request(message_hash[2:]).message_hash == message_hash


class TestNonces:

    def test_first_nonce_is_one(self, gateway):
        assert gateway.last_nonce(REDEEMER) == 0
        assert gateway.next_nonce(REDEEMER) == 1

    def test_nonce_advances(self, gateway, funded):
        _request(gateway, nonce=1)
        _request(gateway, nonce=2)
        assert gateway.last_nonce(REDEEMER) == 2

    @pytest.mark.parametrize("nonce", [0, 2, -1])
    def test_wrong_nonce_rejected(self, gateway, funded, nonce):
        with pytest.raises(InvalidNonce):
            _request(gateway, nonce=nonce)
        assert gateway.last_nonce(REDEEMER) == 0

    def test_reused_nonce_rejected(self, gateway, funded):
        _request(gateway, nonce=1)
        with pytest.raises(InvalidNonce):
            _request(gateway, nonce=1)

    def test_nonces_are_per_redeemer(self, gateway, funded):
        other = "0x" + "99" * 20
        funded.mint(other, AssetKind.TOKEN, 100)
        _request(gateway, nonce=1)
        _request(gateway, redeemer=other, nonce=1)
        assert gateway.last_nonce(other) == 1


class TestRejections:

    @pytest.mark.parametrize("amount", [0, -5, "100", 1.5, True])
    def test_invalid_amount(self, gateway, funded, amount):
        with pytest.raises(InvalidAmount):
            _request(gateway, amount=amount)

    @pytest.mark.parametrize("beneficiary", [NULL_ADDRESS, "", None])
    def test_null_beneficiary(self, gateway, funded, beneficiary):
        with pytest.raises(InvalidBeneficiary):
            _request(gateway, beneficiary=beneficiary)

    def test_malformed_beneficiary(self, gateway, funded):
        with pytest.raises(InvalidBeneficiary):
            _request(gateway, beneficiary="0x1234")

    def test_malformed_redeemer(self, gateway, funded):
        with pytest.raises(Unauthorized):
            _request(gateway, redeemer="not-an-address", nonce=1)

    def test_null_redeemer(self, gateway, funded):
        funded.mint(NULL_ADDRESS, AssetKind.TOKEN, 10)
        with pytest.raises(Unauthorized):
            _request(gateway, redeemer=NULL_ADDRESS, amount=10)
        assert gateway.requests() == []
        assert funded.balance_of(NULL_ADDRESS, AssetKind.TOKEN) == 10

    def test_audit_records_normalized_redeemer(self, gateway, funded):
        funded.mint("0x" + "ab" * 20, AssetKind.TOKEN, 100)
        mixed = "0x" + "aB" * 20
        _request(gateway, redeemer=mixed, nonce=1)
        with pytest.raises(InvalidNonce):
            _request(gateway, redeemer=mixed, nonce=5)
        actors = [e.actor for e in gateway.audit.events]
        assert actors == ["0x" + "ab" * 20] * 2

    @pytest.mark.parametrize("hash_lock", ["", "0x12", "0x" + "g" * 64, None])
    def test_malformed_hash_lock(self, gateway, funded, hash_lock):
        with pytest.raises(InvalidHashLock):
            _request(gateway, hash_lock=hash_lock)

    def test_gas_limit_above_maximum(self, gateway, funded, config):
        config.redeem.max_gas_limit.set(1000)
        with pytest.raises(InvalidAmount):
            _request(gateway, gas_limit=1001)

    def test_insufficient_balance_leaves_no_trace(self, gateway, funded):
        with gateway.events.capture() as events:
            with pytest.raises(InsufficientBalance):
                _request(gateway, amount=1001)
        assert events == []
        assert funded.balance_of(REDEEMER, AssetKind.TOKEN) == 1000
        assert gateway.last_nonce(REDEEMER) == 0
        assert gateway.requests() == []

    def test_unknown_message_hash(self, gateway):
        with pytest.raises(UnknownRequest):
            gateway.get_request("0x" + "ab" * 32)

    def test_status_of_unknown_is_undeclared(self, gateway):
        assert gateway.status_of("0x" + "ab" * 32) == MessageStatus.UNDECLARED

    def test_rejections_are_audited(self, gateway, funded):
        with pytest.raises(InvalidNonce):
            _request(gateway, nonce=5)
        record = gateway.audit.events[-1]
        assert record.action == "request_redeem"
        assert record.outcome == "rejected"
        assert record.details["kind"] == "InvalidNonce"
        assert gateway.audit.verify_chain()


class TestTransactionFees:

    def test_fee_charged_in_base_token(self, gateway, funded):
        funded.mint(REDEEMER, AssetKind.BASE_TOKEN, 10)
        _request(gateway, tx_fee=3)
        collector = gateway.config.fees.fee_collector.get()
        assert funded.balance_of(REDEEMER, AssetKind.BASE_TOKEN) == 7
        assert funded.balance_of(collector, AssetKind.BASE_TOKEN) == 3

    def test_default_fee_from_config(self, gateway, funded, config):
        config.fees.transaction_fee.set(2)
        funded.mint(REDEEMER, AssetKind.BASE_TOKEN, 2)
        _request(gateway)
        assert funded.balance_of(REDEEMER, AssetKind.BASE_TOKEN) == 0

    def test_unaffordable_fee_rolls_back_request(self, gateway, funded):
        with pytest.raises(InsufficientBalance):
            _request(gateway, tx_fee=1)
        assert funded.balance_of(REDEEMER, AssetKind.TOKEN) == 1000
        assert gateway.requests() == []
