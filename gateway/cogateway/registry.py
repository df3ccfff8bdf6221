"""
CoGateway Redeem Request Registry

Drives redeem requests through the redeem-and-unstake message life-cycle and
applies the balance effects of each step to the shared BalanceLedger.

State Machine:

    UNDECLARED ──request_redeem──▶ REQUESTED ──accept_redeem──▶ DECLARED
                                                                   │
                                           ┌───────────────────────┤
                                           │                       │
                                  progress_redeem           revert_redeem
                                  (unlock secret)           (timeout only)
                                           │                       │
                                           ▼                       ▼
                                      PROGRESSED               REVERTED

Balance effects:

    request_redeem   TOKEN       redeemer    ──amount──▶  redeem pool
    accept_redeem    BASE_TOKEN  facilitator ──bounty──▶  cogateway
                     TOKEN       redeem pool ──amount──▶  cogateway
    progress_redeem  (none)
    revert_redeem    TOKEN       cogateway   ──amount──▶  redeemer
                     BASE_TOKEN  cogateway   ──bounty──▶  facilitator

Every operation runs under the registry lock inside one ledger transaction:
the optional transaction fee, the transfers, the state transition and the
emitted event commit together or not at all. Requests are never deleted;
terminal requests stay queryable and reject any further transition.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from gateway.core import canonical_digest
from gateway.cogateway import hashlock
from gateway.cogateway.anchor import Anchor, StateRootProvider
from gateway.cogateway.config import CoGatewayConfig, get_config
from gateway.cogateway.errors import (
    CoGatewayError,
    InvalidAmount,
    InvalidBeneficiary,
    InvalidHashLock,
    InvalidNonce,
    InvalidState,
    InvalidUnlockSecret,
    Unauthorized,
    UnknownRequest,
)
from gateway.cogateway.events import (
    EventLog,
    RedeemIntentDeclared,
    RedeemProgressed,
    RedeemRequested,
    RedeemReverted,
)
from gateway.cogateway.ledger import AssetKind, BalanceLedger
from gateway.cogateway.observability import (
    AuditLogger,
    GatewayLayer,
    Tracer,
    get_logger,
    get_tracer,
)
from gateway.cogateway.organization import Organization, require_caller, require_worker
from gateway.cogateway.validation import (
    ValidationError,
    Validators,
    is_null_address,
    normalize_address,
)

log = get_logger("registry", GatewayLayer.REGISTRY)


# =============================================================================
# MESSAGE STATES
# =============================================================================

class MessageStatus(Enum):
    """Life-cycle state of a redeem message."""
    UNDECLARED = "undeclared"
    REQUESTED = "requested"
    DECLARED = "declared"
    PROGRESSED = "progressed"
    REVERTED = "reverted"

    def is_terminal(self) -> bool:
        return self in (MessageStatus.PROGRESSED, MessageStatus.REVERTED)


VALID_TRANSITIONS: Dict[MessageStatus, Set[MessageStatus]] = {
    MessageStatus.UNDECLARED: {MessageStatus.REQUESTED},
    MessageStatus.REQUESTED: {MessageStatus.DECLARED},
    MessageStatus.DECLARED: {MessageStatus.PROGRESSED, MessageStatus.REVERTED},
    # Terminal states have no valid transitions
    MessageStatus.PROGRESSED: set(),
    MessageStatus.REVERTED: set(),
}


def check_transition(current: MessageStatus, target: MessageStatus, message_hash: str) -> None:
    """Raise InvalidState unless current -> target is in the transition table."""
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidState(
            f"cannot move message from {current.value} to {target.value}",
            message_hash=message_hash,
            status=current.value,
        )


# =============================================================================
# REDEEM REQUEST
# =============================================================================

@dataclass(frozen=True)
class StatusTransition:
    """One recorded state change."""
    from_status: MessageStatus
    to_status: MessageStatus
    block_height: int
    actor: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_status.value,
            "to": self.to_status.value,
            "block_height": self.block_height,
            "actor": self.actor,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RedeemRequest:
    """
    A redeem request as stored by the registry.

    Instances are immutable snapshots; the registry replaces its copy on
    every transition, so callers holding an old snapshot never observe a
    change underneath them.
    """
    amount: int
    gas_price: int
    gas_limit: int
    redeemer: str
    nonce: int
    beneficiary: str
    hash_lock: str
    message_hash: str
    intent_hash: str
    status: MessageStatus = MessageStatus.REQUESTED
    facilitator: Optional[str] = None
    bounty: Optional[int] = None
    unlock_secret: Optional[hashlock.Secret] = None
    block_height: Optional[int] = None
    history: Tuple[StatusTransition, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_hash": self.message_hash,
            "intent_hash": self.intent_hash,
            "status": self.status.value,
            "amount": self.amount,
            "gas_price": self.gas_price,
            "gas_limit": self.gas_limit,
            "redeemer": self.redeemer,
            "nonce": self.nonce,
            "beneficiary": self.beneficiary,
            "hash_lock": self.hash_lock,
            "facilitator": self.facilitator,
            "bounty": self.bounty,
            "unlock_secret": self.unlock_secret,
            "block_height": self.block_height,
            "history": [t.to_dict() for t in self.history],
        }


def redeem_intent_hash(amount: int, beneficiary: str, cogateway: str) -> str:
    """Digest of what is redeemed and where it goes."""
    return canonical_digest({
        "amount": amount,
        "beneficiary": beneficiary,
        "cogateway": cogateway,
    })


def redeem_message_hash(
    intent_hash: str,
    nonce: int,
    gas_price: int,
    gas_limit: int,
    redeemer: str,
    hash_lock: str,
) -> str:
    """Registry key of a redeem message."""
    return canonical_digest({
        "intent_hash": intent_hash,
        "nonce": nonce,
        "gas_price": gas_price,
        "gas_limit": gas_limit,
        "redeemer": redeemer,
        "hash_lock": hash_lock,
    })


def _actor_label(value: Any) -> str:
    """Normalized account for logs and audit; malformed input shown as given."""
    try:
        return normalize_address(value)
    except ValidationError:
        return str(value)


# =============================================================================
# COGATEWAY
# =============================================================================

class CoGateway:
    """
    Redeem request registry and message state machine.

    Accounts:
        address       the co-gateway itself; receives bounties and the
                      redeemed tokens on accept (destination representation)
        redeem_pool   escrow holding requested tokens until accepted
    """

    def __init__(
        self,
        address: str,
        ledger: BalanceLedger,
        redeem_pool: str,
        organization: Optional[Organization] = None,
        anchor: Optional[StateRootProvider] = None,
        config: Optional[CoGatewayConfig] = None,
        tracer: Optional[Tracer] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.config = config or get_config()
        self.address = normalize_address(address, "cogateway")
        self.redeem_pool = normalize_address(redeem_pool, "redeem_pool")
        self.ledger = ledger
        self.organization = organization
        self.anchor: StateRootProvider = anchor or Anchor(
            max_state_roots=self.config.anchor.max_state_roots.get()
        )
        self.events = EventLog().attach(ledger.event_bus)
        self.audit = audit or AuditLogger()
        self._tracer = tracer or get_tracer()

        self._requests: Dict[str, RedeemRequest] = {}
        self._nonces: Dict[str, int] = {}
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_request(self, message_hash: str) -> RedeemRequest:
        key = self._message_key(message_hash)
        with self._lock:
            request = self._requests.get(key)
        if request is None:
            raise UnknownRequest("no redeem request for message hash", message_hash=message_hash)
        return request

    def status_of(self, message_hash: str) -> MessageStatus:
        """State of a message; UNDECLARED when nothing is registered."""
        try:
            return self.get_request(message_hash).status
        except UnknownRequest:
            return MessageStatus.UNDECLARED

    def last_nonce(self, redeemer: str) -> int:
        redeemer = normalize_address(redeemer, "redeemer")
        with self._lock:
            return self._nonces.get(redeemer, 0)

    def next_nonce(self, redeemer: str) -> int:
        return self.last_nonce(redeemer) + 1

    def requests(self, status: Optional[MessageStatus] = None) -> List[RedeemRequest]:
        with self._lock:
            found = list(self._requests.values())
        if status is not None:
            found = [r for r in found if r.status == status]
        return found

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def request_redeem(
        self,
        redeemer: str,
        amount: int,
        gas_price: int,
        gas_limit: int,
        nonce: int,
        beneficiary: str,
        hash_lock: str,
        tx_fee: Optional[int] = None,
    ) -> str:
        """
        Register a redeem request and escrow the redeemer's tokens.

        Returns the message hash identifying the request.
        """
        with self._operation("request_redeem", actor=redeemer) as ctx:
            amount = self._positive_amount(amount, "amount")
            gas_price = self._non_negative(gas_price, "gas_price")
            gas_limit = self._non_negative(gas_limit, "gas_limit")
            if gas_limit > self.config.redeem.max_gas_limit.get():
                raise InvalidAmount(
                    f"gas limit {gas_limit} exceeds maximum "
                    f"{self.config.redeem.max_gas_limit.get()}"
                )
            redeemer = self._party(redeemer, "redeemer")
            # Null beneficiaries would burn the redeemed value on the origin
            # chain; the redeem path refuses them (stake release allows it).
            if is_null_address(beneficiary):
                raise InvalidBeneficiary("Beneficiary address must not be zero.")
            try:
                beneficiary = normalize_address(beneficiary, "beneficiary")
            except ValidationError as e:
                raise InvalidBeneficiary(e.message, beneficiary=beneficiary) from e
            hash_lock = self._hash_lock(hash_lock)

            with self._lock, self.ledger.transaction():
                expected = self._nonces.get(redeemer, 0) + 1
                if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce != expected:
                    raise InvalidNonce(
                        f"Invalid nonce: expected {expected}, got {nonce}",
                        redeemer=redeemer,
                    )

                intent_hash = redeem_intent_hash(amount, beneficiary, self.address)
                message_hash = redeem_message_hash(
                    intent_hash, nonce, gas_price, gas_limit, redeemer, hash_lock
                )
                ctx["message_hash"] = message_hash
                if message_hash in self._requests:
                    raise InvalidState(
                        "message hash already registered",
                        message_hash=message_hash,
                    )
                check_transition(MessageStatus.UNDECLARED, MessageStatus.REQUESTED, message_hash)

                self._charge_fee(redeemer, tx_fee)
                self.ledger.transfer(redeemer, self.redeem_pool, AssetKind.TOKEN, amount)

                request = RedeemRequest(
                    amount=amount,
                    gas_price=gas_price,
                    gas_limit=gas_limit,
                    redeemer=redeemer,
                    nonce=nonce,
                    beneficiary=beneficiary,
                    hash_lock=hash_lock,
                    message_hash=message_hash,
                    intent_hash=intent_hash,
                    history=(self._transition_record(
                        MessageStatus.UNDECLARED, MessageStatus.REQUESTED, redeemer
                    ),),
                )
                self._requests[message_hash] = request
                self._nonces[redeemer] = nonce
                self.ledger.emit(RedeemRequested(
                    redeemer=redeemer,
                    nonce=nonce,
                    beneficiary=beneficiary,
                    amount=amount,
                    gas_price=gas_price,
                    gas_limit=gas_limit,
                    message_hash=message_hash,
                ))

            return message_hash

    def accept_redeem(
        self,
        message_hash: str,
        facilitator: str,
        bounty: int,
        tx_fee: Optional[int] = None,
    ) -> None:
        """Facilitator accepts a requested redeem, paying the bounty."""
        with self._operation("accept_redeem", actor=facilitator, message_hash=message_hash):
            message_hash = self._message_key(message_hash)
            facilitator = self._party(facilitator, "facilitator")
            bounty = self._non_negative(bounty, "bounty")

            with self._lock, self.ledger.transaction():
                request = self._require_request(message_hash)
                check_transition(request.status, MessageStatus.DECLARED, message_hash)
                height = self.anchor.latest_block_height()
                if self.organization is not None:
                    require_worker(self.organization, facilitator, height)

                self._charge_fee(facilitator, tx_fee)
                self.ledger.transfer(facilitator, self.address, AssetKind.BASE_TOKEN, bounty)
                self.ledger.transfer(self.redeem_pool, self.address, AssetKind.TOKEN, request.amount)

                self._requests[message_hash] = replace(
                    request,
                    status=MessageStatus.DECLARED,
                    facilitator=facilitator,
                    bounty=bounty,
                    block_height=height,
                    history=request.history + (self._transition_record(
                        request.status, MessageStatus.DECLARED, facilitator, height
                    ),),
                )
                self.ledger.emit(RedeemIntentDeclared(
                    redeemer=request.redeemer,
                    nonce=request.nonce,
                    beneficiary=request.beneficiary,
                    amount=request.amount,
                    message_hash=message_hash,
                ))

    def progress_redeem(
        self,
        message_hash: str,
        unlock_secret: hashlock.Secret,
        caller: str,
        tx_fee: Optional[int] = None,
    ) -> None:
        """Complete a declared redeem by revealing the hash-lock secret."""
        with self._operation("progress_redeem", actor=caller, message_hash=message_hash):
            message_hash = self._message_key(message_hash)
            caller = self._account(caller, "caller")

            with self._lock, self.ledger.transaction():
                request = self._require_request(message_hash)
                check_transition(request.status, MessageStatus.PROGRESSED, message_hash)
                require_caller(caller, [request.facilitator], "facilitator")
                if not hashlock.verify(unlock_secret, request.hash_lock):
                    raise InvalidUnlockSecret(
                        "Invalid unlock secret.",
                        message_hash=message_hash,
                    )

                self._charge_fee(caller, tx_fee)
                secret = hashlock.reveal_form(unlock_secret)
                height = self.anchor.latest_block_height()
                self._requests[message_hash] = replace(
                    request,
                    status=MessageStatus.PROGRESSED,
                    unlock_secret=secret,
                    history=request.history + (self._transition_record(
                        request.status, MessageStatus.PROGRESSED, caller, height
                    ),),
                )
                self.ledger.emit(RedeemProgressed(
                    redeemer=request.redeemer,
                    nonce=request.nonce,
                    amount=request.amount,
                    unlock_secret=secret,
                    message_hash=message_hash,
                ))

    def revert_redeem(
        self,
        message_hash: str,
        caller: str,
        tx_fee: Optional[int] = None,
    ) -> None:
        """Roll back a declared redeem whose timeout has elapsed."""
        with self._operation("revert_redeem", actor=caller, message_hash=message_hash):
            message_hash = self._message_key(message_hash)
            caller = self._account(caller, "caller")

            with self._lock, self.ledger.transaction():
                request = self._require_request(message_hash)
                check_transition(request.status, MessageStatus.REVERTED, message_hash)
                require_caller(
                    caller, [request.redeemer, request.facilitator], "redeemer or facilitator"
                )
                height = self.anchor.latest_block_height()
                timeout = self.config.redeem.revert_timeout_blocks.get()
                declared_at = request.block_height or 0
                if height - declared_at < timeout:
                    raise InvalidState(
                        f"revert timeout not reached: {height - declared_at} of {timeout} blocks",
                        message_hash=message_hash,
                    )

                self._charge_fee(caller, tx_fee)
                self.ledger.transfer(self.address, request.redeemer, AssetKind.TOKEN, request.amount)
                self.ledger.transfer(
                    self.address, request.facilitator, AssetKind.BASE_TOKEN, request.bounty or 0
                )

                self._requests[message_hash] = replace(
                    request,
                    status=MessageStatus.REVERTED,
                    history=request.history + (self._transition_record(
                        request.status, MessageStatus.REVERTED, caller, height
                    ),),
                )
                self.ledger.emit(RedeemReverted(
                    redeemer=request.redeemer,
                    nonce=request.nonce,
                    amount=request.amount,
                    bounty=request.bounty or 0,
                    message_hash=message_hash,
                ))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @contextmanager
    def _operation(self, name: str, actor: Any, message_hash: str = "") -> Iterator[Dict[str, str]]:
        """Span, outcome log and audit record around one registry operation."""
        actor = _actor_label(actor)
        ctx = {"message_hash": message_hash}
        start = time.monotonic()
        with self._tracer.span(name, GatewayLayer.REGISTRY, actor=actor) as span:
            try:
                yield ctx
            except CoGatewayError as e:
                span.set_attribute("error_kind", e.kind.value)
                log.rejected(name, e, actor=actor, message_hash=ctx["message_hash"])
                self.audit.log(actor, name, ctx["message_hash"], "rejected", kind=e.kind.value)
                raise
            span.set_attribute("message_hash", ctx["message_hash"])
            log.operation(
                name,
                (time.monotonic() - start) * 1000,
                actor=actor,
                message_hash=ctx["message_hash"],
            )
            self.audit.log(actor, name, ctx["message_hash"], "success")

    def _require_request(self, message_hash: str) -> RedeemRequest:
        request = self._requests.get(message_hash)
        if request is None:
            raise UnknownRequest("no redeem request for message hash", message_hash=message_hash)
        return request

    def _transition_record(
        self,
        from_status: MessageStatus,
        to_status: MessageStatus,
        actor: str,
        height: Optional[int] = None,
    ) -> StatusTransition:
        if height is None:
            height = self.anchor.latest_block_height()
        return StatusTransition(
            from_status=from_status,
            to_status=to_status,
            block_height=height,
            actor=actor,
        )

    def _charge_fee(self, payer: str, tx_fee: Optional[int]) -> None:
        fee = self.config.fees.transaction_fee.get() if tx_fee is None else tx_fee
        fee = self._non_negative(fee, "tx_fee")
        if fee:
            self.ledger.transfer(
                payer, self.config.fees.fee_collector.get(), AssetKind.BASE_TOKEN, fee
            )

    @staticmethod
    def _message_key(message_hash: str) -> str:
        result = Validators.validate_hash(message_hash, "message_hash")
        if not result.is_valid:
            raise UnknownRequest("malformed message hash", message_hash=message_hash)
        return result.sanitized_value

    @staticmethod
    def _account(value: Any, role: str) -> str:
        try:
            return normalize_address(value, role)
        except ValidationError as e:
            raise Unauthorized(f"{role} is not a valid account: {e.message}") from e

    @classmethod
    def _party(cls, value: Any, role: str) -> str:
        account = cls._account(value, role)
        if is_null_address(account):
            raise Unauthorized(f"{role} must not be the null account")
        return account

    @staticmethod
    def _hash_lock(value: Any) -> str:
        result = Validators.validate_hash(value, "hash_lock")
        if not result.is_valid:
            raise InvalidHashLock(result.errors[0].message, hash_lock=value)
        return result.sanitized_value

    @staticmethod
    def _positive_amount(value: Any, name: str) -> int:
        result = Validators.validate_amount(value, name, allow_zero=False)
        if not result.is_valid:
            raise InvalidAmount(f"{name}: {result.errors[0].message}", **{name: value})
        return result.sanitized_value

    @staticmethod
    def _non_negative(value: Any, name: str) -> int:
        result = Validators.validate_amount(value, name)
        if not result.is_valid:
            raise InvalidAmount(f"{name}: {result.errors[0].message}", **{name: value})
        return result.sanitized_value
