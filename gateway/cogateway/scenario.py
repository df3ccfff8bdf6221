"""
Scripted redeem scenarios.

A scenario file (YAML or JSON, validated against
``schemas/redeem-scenario.schema.json``) names the accounts, opening
balances and workers, then lists steps that run against a fresh ledger,
organization, anchor and co-gateway:

    accounts:
      cogateway:   "0x...01"
      redeem_pool: "0x...02"
      redeemer:    "0x...03"
      facilitator: "0x...04"
    balances:
      - {account: redeemer,    asset: token,      amount: 1000}
      - {account: facilitator, asset: base_token, amount: 50}
    workers:
      - {worker: facilitator, expiration_height: 1000}
    steps:
      - {action: request_redeem, id: r1, amount: 1000, beneficiary: redeemer, secret: s3cr3t}
      - {action: accept_redeem, ref: r1, bounty: 50}
      - {action: progress_redeem, ref: r1}

Account fields take a role from ``accounts`` or a literal address. A step
that sets ``expect_error`` must fail with exactly that error kind; any other
outcome stops the run with ScenarioError.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from gateway.core import load_document, schema_validator, validate_with_schema
from gateway.cogateway import hashlock
from gateway.cogateway.anchor import Anchor
from gateway.cogateway.config import CoGatewayConfig
from gateway.cogateway.errors import CoGatewayError
from gateway.cogateway.events import Event
from gateway.cogateway.ledger import AssetKind, BalanceLedger
from gateway.cogateway.observability import (
    GatewayLayer,
    correlation_id_var,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from gateway.cogateway.organization import Organization
from gateway.cogateway.registry import CoGateway
from gateway.cogateway.unstake import StakeVault
from gateway.cogateway.validation import Validators

log = get_logger("scenario", GatewayLayer.CLI)

SCENARIO_SCHEMA = "redeem-scenario.schema.json"
LAST = "__last__"


class ScenarioError(Exception):
    """Scenario is malformed or a step did not behave as scripted."""

    def __init__(self, message: str, step: Optional[int] = None):
        super().__init__(message if step is None else f"step {step}: {message}")
        self.step = step


@dataclass
class StepResult:
    index: int
    action: str
    outcome: str
    message_hash: str = ""
    error_kind: str = ""
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action,
            "outcome": self.outcome,
            "message_hash": self.message_hash,
            "error_kind": self.error_kind,
            "events": self.events,
        }


@dataclass
class ScenarioReport:
    name: str
    steps: List[StepResult]
    balances: Dict[str, Dict[str, int]]
    requests: List[Dict[str, Any]]
    audit_chain_valid: bool
    correlation_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "steps": [s.to_dict() for s in self.steps],
            "balances": self.balances,
            "requests": self.requests,
            "audit_chain_valid": self.audit_chain_valid,
            "correlation_id": self.correlation_id,
        }


def validate_scenario(document: Any) -> List[str]:
    return validate_with_schema(document, schema_validator(SCENARIO_SCHEMA))


def _wire(event: Event) -> Dict[str, Any]:
    return {"event": event.event_type, **event.to_wire()}


class ScenarioRunner:
    """Builds the collaborators for a scenario and executes its steps in order."""

    def __init__(self, document: Dict[str, Any], config: Optional[CoGatewayConfig] = None):
        errors = validate_scenario(document)
        if errors:
            raise ScenarioError("invalid scenario: " + "; ".join(errors))
        self.document = document
        self.name = document.get("name", "scenario")
        self.accounts: Dict[str, str] = {
            role: address.lower() for role, address in document["accounts"].items()
        }

        # Overrides apply to a private copy of the given config.
        self.config = config.copy() if config is not None else CoGatewayConfig()
        overrides = document.get("config", {})
        if "revert_timeout_blocks" in overrides:
            self.config.redeem.revert_timeout_blocks.set(overrides["revert_timeout_blocks"])
        if "transaction_fee" in overrides:
            self.config.fees.transaction_fee.set(overrides["transaction_fee"])

        self.ledger = BalanceLedger()
        self.anchor = Anchor(max_state_roots=self.config.anchor.max_state_roots.get())
        owner = self.accounts.get("owner", self.accounts["cogateway"])
        self.organization = Organization(owner)
        self.gateway = CoGateway(
            address=self.accounts["cogateway"],
            ledger=self.ledger,
            redeem_pool=self.accounts["redeem_pool"],
            organization=self.organization,
            anchor=self.anchor,
            config=self.config,
        )
        self.vault = (
            StakeVault(self.ledger, self.accounts["stake_vault"])
            if "stake_vault" in self.accounts else None
        )
        self._messages: Dict[str, str] = {}
        self._secrets: Dict[str, str] = {}

        for entry in document.get("balances", []):
            self.ledger.mint(
                self._account(entry["account"]),
                AssetKind(entry["asset"]),
                entry["amount"],
            )
        for entry in document.get("workers", []):
            self.organization.set_worker(
                self._account(entry["worker"]), entry["expiration_height"], caller=owner
            )

    @classmethod
    def from_file(cls, path: Union[str, pathlib.Path], config: Optional[CoGatewayConfig] = None) -> "ScenarioRunner":
        path = pathlib.Path(path)
        if not path.exists():
            raise ScenarioError(f"scenario file not found: {path}")
        return cls(load_document(path), config=config)

    def _account(self, ref: str, step: Optional[int] = None) -> str:
        if ref in self.accounts:
            return self.accounts[ref]
        result = Validators.validate_address(ref)
        if not result.is_valid:
            raise ScenarioError(f"unknown account {ref!r}", step)
        return result.sanitized_value

    def _message(self, step: Dict[str, Any], index: int) -> str:
        ref = step.get("ref", LAST)
        if ref not in self._messages:
            raise ScenarioError(f"no earlier request with id {ref!r}", index)
        return self._messages[ref]

    def run(self) -> ScenarioReport:
        correlation_id = generate_correlation_id()
        token = set_correlation_id(correlation_id)
        try:
            results = [
                self._run_step(index, step)
                for index, step in enumerate(self.document["steps"], start=1)
            ]
        finally:
            correlation_id_var.reset(token)

        balances = {
            label: {kind.value: self.ledger.balance_of(address, kind) for kind in AssetKind}
            for label, address in self.accounts.items()
        }
        return ScenarioReport(
            name=self.name,
            steps=results,
            balances=balances,
            requests=[r.to_dict() for r in self.gateway.requests()],
            audit_chain_valid=self.gateway.audit.verify_chain(),
            correlation_id=correlation_id,
        )

    def _run_step(self, index: int, step: Dict[str, Any]) -> StepResult:
        action = step["action"]
        expected = step.get("expect_error")
        handler = getattr(self, f"_step_{action}")

        with self.gateway.events.capture() as captured:
            try:
                message_hash = handler(index, step)
            except CoGatewayError as e:
                if expected != e.kind.value:
                    raise ScenarioError(f"{action} failed: {e}", index) from e
                log.info("expected rejection", step=index, action=action, kind=e.kind.value)
                return StepResult(index, action, "rejected", error_kind=e.kind.value)

        if expected:
            raise ScenarioError(f"{action} succeeded, expected {expected}", index)
        return StepResult(
            index,
            action,
            "ok",
            message_hash=message_hash or "",
            events=[_wire(e) for e in captured],
        )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _step_request_redeem(self, index: int, step: Dict[str, Any]) -> str:
        redeemer = self._account(step.get("redeemer", "redeemer"), index)
        beneficiary = step.get("beneficiary", "")
        if beneficiary in self.accounts:
            beneficiary = self.accounts[beneficiary]

        secret = step.get("secret")
        hash_lock = step.get("hash_lock")
        if hash_lock is None:
            if secret is None:
                raise ScenarioError("request_redeem needs secret or hash_lock", index)
            hash_lock = hashlock.compute_hash_lock(secret)

        message_hash = self.gateway.request_redeem(
            redeemer=redeemer,
            amount=step.get("amount", 0),
            gas_price=step.get("gas_price", 0),
            gas_limit=step.get("gas_limit", 0),
            nonce=step.get("nonce", self.gateway.next_nonce(redeemer)),
            beneficiary=beneficiary,
            hash_lock=hash_lock,
            tx_fee=step.get("tx_fee"),
        )
        for key in (LAST, step.get("id")):
            if key:
                self._messages[key] = message_hash
        if secret is not None:
            self._secrets[message_hash] = secret
        return message_hash

    def _step_accept_redeem(self, index: int, step: Dict[str, Any]) -> str:
        message_hash = self._message(step, index)
        self.gateway.accept_redeem(
            message_hash,
            facilitator=self._account(step.get("facilitator", "facilitator"), index),
            bounty=step.get("bounty", 0),
            tx_fee=step.get("tx_fee"),
        )
        return message_hash

    def _step_progress_redeem(self, index: int, step: Dict[str, Any]) -> str:
        message_hash = self._message(step, index)
        request = self.gateway.get_request(message_hash)
        caller = step.get("caller")
        secret = step.get("secret", self._secrets.get(message_hash))
        if secret is None:
            raise ScenarioError("progress_redeem needs the unlock secret", index)
        self.gateway.progress_redeem(
            message_hash,
            unlock_secret=secret,
            caller=self._account(caller, index) if caller else (request.facilitator or ""),
            tx_fee=step.get("tx_fee"),
        )
        return message_hash

    def _step_revert_redeem(self, index: int, step: Dict[str, Any]) -> str:
        message_hash = self._message(step, index)
        request = self.gateway.get_request(message_hash)
        caller = step.get("caller")
        self.gateway.revert_redeem(
            message_hash,
            caller=self._account(caller, index) if caller else request.redeemer,
            tx_fee=step.get("tx_fee"),
        )
        return message_hash

    def _step_advance_blocks(self, index: int, step: Dict[str, Any]) -> None:
        self.anchor.advance_to(self.anchor.latest_block_height() + step.get("blocks", 1))
        return None

    def _step_release_stake(self, index: int, step: Dict[str, Any]) -> None:
        if self.vault is None:
            raise ScenarioError("release_stake needs a stake_vault account", index)
        beneficiary = step.get("beneficiary")
        if beneficiary in self.accounts:
            beneficiary = self.accounts[beneficiary]
        self.vault.release_stake(beneficiary, step.get("amount", 0))
        return None
