"""
CoGateway Input Validation

Identifiers enter the system in whatever case the caller used. They are
normalized to lowercase 0x-prefixed hex at every ingestion boundary so that
registry keys, nonce tables and event comparisons never disagree on case.

Security Model:
    - All inputs are untrusted until validated
    - Hash comparisons use constant-time equality
    - Amounts are non-negative integers (token base units)

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hmac
import re
from dataclasses import dataclass, field
from typing import Any, List


NULL_ADDRESS = "0x" + "0" * 40


# =============================================================================
# VALIDATION ERROR TYPES
# =============================================================================

class ValidationError(ValueError):
    """Base exception for validation failures."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise the first ValidationError if validation failed."""
        if not self.is_valid:
            raise self.errors[0]

    @classmethod
    def success(cls, sanitized_value: Any = None) -> "ValidationResult":
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> "ValidationResult":
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    HEX40_PATTERN = re.compile(r"^0x[a-f0-9]{40}$")
    HEX64_PATTERN = re.compile(r"^0x[a-f0-9]{64}$")

    @classmethod
    def validate_address(cls, value: Any, field_name: str = "address") -> ValidationResult:
        """Validate an account address and return it lowercased."""
        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected string, got {type(value).__name__}", value)
            ])

        lower = value.strip().lower()
        if not cls.HEX40_PATTERN.match(lower):
            return ValidationResult.failure([
                ValidationError(field_name, "Must be a valid address (0x + 40 hex)", value)
            ])

        return ValidationResult.success(lower)

    @classmethod
    def validate_hash(cls, value: Any, field_name: str = "hash") -> ValidationResult:
        """Validate a 32-byte hex hash (0x prefix optional) and return it 0x-prefixed."""
        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected string, got {type(value).__name__}", value)
            ])

        lower = value.strip().lower()
        if not lower.startswith("0x"):
            lower = "0x" + lower
        if not cls.HEX64_PATTERN.match(lower):
            return ValidationResult.failure([
                ValidationError(field_name, "Must be 32 bytes of hex", value)
            ])

        return ValidationResult.success(lower)

    @classmethod
    def validate_amount(
        cls,
        value: Any,
        field_name: str = "amount",
        allow_zero: bool = True,
    ) -> ValidationResult:
        """Validate a token amount in base units."""
        # bool is an int subclass; True must not pass as 1
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])

        if value < 0:
            return ValidationResult.failure([
                ValidationError(field_name, "Must not be negative", value)
            ])

        if value == 0 and not allow_zero:
            return ValidationResult.failure([
                ValidationError(field_name, "Must be greater than zero", value)
            ])

        return ValidationResult.success(value)


def normalize_address(value: Any, field_name: str = "address") -> str:
    """Return the canonical form of an address or raise ValidationError."""
    result = Validators.validate_address(value, field_name)
    result.raise_if_invalid()
    return result.sanitized_value


def is_null_address(value: Any) -> bool:
    """True for None, empty strings and the all-zero address in any case."""
    if value is None:
        return True
    if isinstance(value, str) and (not value.strip() or value.strip().lower() == NULL_ADDRESS):
        return True
    return False


def same_address(a: Any, b: Any) -> bool:
    """Case-insensitive address equality; malformed inputs never match."""
    ra = Validators.validate_address(a)
    rb = Validators.validate_address(b)
    return ra.is_valid and rb.is_valid and ra.sanitized_value == rb.sanitized_value


def secure_compare_str(a: str, b: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest(a.encode(), b.encode())
