"""
CoGateway Error Taxonomy

Every rejection raised by the ledger, the redeem registry and the
authorization gates is a CoGatewayError carrying a machine-readable kind and
a human-readable reason. Rejections are local and synchronous: nothing is
retried automatically and no partial state survives a failed operation.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Type


class ErrorKind(Enum):
    """Kinds of rejection an operation can fail with."""
    INVALID_NONCE = "InvalidNonce"
    INVALID_BENEFICIARY = "InvalidBeneficiary"
    UNKNOWN_REQUEST = "UnknownRequest"
    INVALID_STATE = "InvalidState"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INVALID_UNLOCK_SECRET = "InvalidUnlockSecret"
    UNAUTHORIZED = "Unauthorized"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_HASH_LOCK = "InvalidHashLock"


class CoGatewayError(Exception):
    """Base exception for rejected operations."""

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, reason: str, **details: Any):
        self.reason = reason
        self.details = details
        super().__init__(f"{self.kind.value}: {reason}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "reason": self.reason,
            "details": {k: str(v) for k, v in self.details.items()},
        }


class InvalidNonce(CoGatewayError):
    """Nonce is not the redeemer's last used nonce + 1."""
    kind = ErrorKind.INVALID_NONCE


class InvalidBeneficiary(CoGatewayError):
    """Beneficiary is missing or the null account."""
    kind = ErrorKind.INVALID_BENEFICIARY


class UnknownRequest(CoGatewayError):
    """No request is registered under the message hash."""
    kind = ErrorKind.UNKNOWN_REQUEST


class InvalidState(CoGatewayError):
    """Operation is not allowed in the request's current state."""
    kind = ErrorKind.INVALID_STATE


class InsufficientBalance(CoGatewayError):
    """Debited account holds less than the transfer amount."""
    kind = ErrorKind.INSUFFICIENT_BALANCE


class InvalidUnlockSecret(CoGatewayError):
    """Unlock secret does not hash to the stored hash lock."""
    kind = ErrorKind.INVALID_UNLOCK_SECRET


class Unauthorized(CoGatewayError):
    """Caller is not allowed to perform the operation."""
    kind = ErrorKind.UNAUTHORIZED


class InvalidAmount(CoGatewayError):
    """Amount is zero, negative or not an integer."""
    kind = ErrorKind.INVALID_AMOUNT


class InvalidHashLock(CoGatewayError):
    """Hash lock is not a 32-byte hex commitment."""
    kind = ErrorKind.INVALID_HASH_LOCK


_BY_KIND: Dict[ErrorKind, Type[CoGatewayError]] = {
    cls.kind: cls
    for cls in (
        InvalidNonce,
        InvalidBeneficiary,
        UnknownRequest,
        InvalidState,
        InsufficientBalance,
        InvalidUnlockSecret,
        Unauthorized,
        InvalidAmount,
        InvalidHashLock,
    )
}


def error_for_kind(kind: ErrorKind) -> Optional[Type[CoGatewayError]]:
    """Look up the exception class for a kind."""
    return _BY_KIND.get(kind)
