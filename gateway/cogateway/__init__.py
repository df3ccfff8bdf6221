"""
CoGateway: Redeem and Unstake Message Life-cycle

Redeeming utility tokens on the auxiliary chain releases the original stake
on the origin chain. This package models the co-gateway side of that flow:
the redeem request registry, the message state machine driving it, and the
balance protocol every step must conserve.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          REDEEM AND UNSTAKE                              │
    │                                                                          │
    │  PROTOCOL                                                               │
    │    registry.py      CoGateway: requests, state machine, nonces          │
    │    unstake.py       Stake release (burns on null beneficiary)           │
    │    token.py         Utility token supply, co-gateway only               │
    │                                                                          │
    │  FOUNDATION                                                             │
    │    ledger.py        Two-asset balances, atomic transactions             │
    │    hashlock.py      sha256 commit / reveal                              │
    │    events.py        Typed events, bus, append-only log                  │
    │    organization.py  Workers and authorization gates                     │
    │    anchor.py        Latest block height and state roots                 │
    │                                                                          │
    │  TOOLING                                                                │
    │    assertions.py    Balance snapshots and receipt verifiers             │
    │    scenario.py      Scripted scenario runner                            │
    │    config.py        YAML / environment configuration                    │
    │    observability.py Structured logging, spans, audit chain              │
    │    cli.py           cogateway command line                              │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Message Life-cycle
──────────────────

    UNDECLARED → REQUESTED → DECLARED → PROGRESSED
                                      ↘ REVERTED

Copyright © 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from gateway import __version__

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import CoGateway modules on first access."""

    # Registry exports
    if name in ("CoGateway", "RedeemRequest", "MessageStatus", "StatusTransition",
                "VALID_TRANSITIONS", "redeem_intent_hash", "redeem_message_hash"):
        from gateway.cogateway import registry
        return getattr(registry, name)

    # Ledger exports
    if name in ("BalanceLedger", "AssetKind", "LedgerTransaction"):
        from gateway.cogateway import ledger
        return getattr(ledger, name)

    # Error exports
    if name in ("CoGatewayError", "ErrorKind", "InvalidNonce", "InvalidBeneficiary",
                "UnknownRequest", "InvalidState", "InsufficientBalance",
                "InvalidUnlockSecret", "Unauthorized", "InvalidAmount", "InvalidHashLock"):
        from gateway.cogateway import errors
        return getattr(errors, name)

    # Event exports
    if name in ("Event", "Transfer", "RedeemRequested", "RedeemIntentDeclared",
                "RedeemProgressed", "RedeemReverted", "StakeReleased", "EventBus",
                "EventLog", "decode_events", "events_named"):
        from gateway.cogateway import events
        return getattr(events, name)

    # Hash lock exports
    if name in ("compute_hash_lock", "generate_secret"):
        from gateway.cogateway import hashlock
        return getattr(hashlock, name)

    # Collaborator exports
    if name in ("Anchor", "StateRootProvider"):
        from gateway.cogateway import anchor
        return getattr(anchor, name)
    if name in ("Organization", "require_worker", "require_caller"):
        from gateway.cogateway import organization
        return getattr(organization, name)
    if name == "UtilityToken":
        from gateway.cogateway import token
        return token.UtilityToken
    if name == "StakeVault":
        from gateway.cogateway import unstake
        return unstake.StakeVault

    # Assertion exports
    if name in ("BalanceSnapshot", "capture_balances", "RequestRedeemAssertion",
                "AcceptRedeemAssertion", "AssertionMismatch"):
        from gateway.cogateway import assertions
        return getattr(assertions, name)

    raise AttributeError(f"module 'gateway.cogateway' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Registry
    "CoGateway",
    "RedeemRequest",
    "MessageStatus",
    "StatusTransition",
    "VALID_TRANSITIONS",
    "redeem_intent_hash",
    "redeem_message_hash",
    # Ledger
    "BalanceLedger",
    "AssetKind",
    "LedgerTransaction",
    # Errors
    "CoGatewayError",
    "ErrorKind",
    "InvalidNonce",
    "InvalidBeneficiary",
    "UnknownRequest",
    "InvalidState",
    "InsufficientBalance",
    "InvalidUnlockSecret",
    "Unauthorized",
    "InvalidAmount",
    "InvalidHashLock",
    # Events
    "Event",
    "Transfer",
    "RedeemRequested",
    "RedeemIntentDeclared",
    "RedeemProgressed",
    "RedeemReverted",
    "StakeReleased",
    "EventBus",
    "EventLog",
    "decode_events",
    "events_named",
    # Hash lock
    "compute_hash_lock",
    "generate_secret",
    # Collaborators
    "Anchor",
    "StateRootProvider",
    "Organization",
    "require_worker",
    "require_caller",
    "UtilityToken",
    "StakeVault",
    # Assertions
    "BalanceSnapshot",
    "capture_balances",
    "RequestRedeemAssertion",
    "AcceptRedeemAssertion",
    "AssertionMismatch",
]
