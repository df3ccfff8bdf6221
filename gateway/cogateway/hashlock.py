"""
Hash-lock commit / reveal.

The redeemer commits to sha256(secret) when requesting a redeem and reveals
the secret later to progress it. These are pure functions with no state.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import Union

from gateway.cogateway.validation import Validators, secure_compare_str

Secret = Union[str, bytes]


def _secret_bytes(secret: Secret) -> bytes:
    if isinstance(secret, bytes):
        return secret
    if isinstance(secret, str):
        return secret.encode("utf-8")
    raise TypeError(f"unlock secret must be str or bytes, got {type(secret).__name__}")


def compute_hash_lock(secret: Secret) -> str:
    """Hash lock for a secret: 0x-prefixed hex sha256."""
    return "0x" + hashlib.sha256(_secret_bytes(secret)).hexdigest()


def verify(secret: Secret, hash_lock: str) -> bool:
    """True iff secret hashes to hash_lock. Malformed inputs verify False."""
    result = Validators.validate_hash(hash_lock, "hash_lock")
    if not result.is_valid:
        return False
    try:
        candidate = compute_hash_lock(secret)
    except TypeError:
        return False
    return secure_compare_str(candidate, result.sanitized_value)


def generate_secret(n_bytes: int = 32) -> str:
    """Fresh random unlock secret as 0x-prefixed hex."""
    return "0x" + secrets.token_hex(n_bytes)


def reveal_form(secret: Secret) -> Secret:
    """
    Secret as recorded after a reveal.

    UTF-8 bytes are decoded so the stored text hashes to the same lock;
    other bytes are kept as bytes.
    """
    if isinstance(secret, bytes):
        try:
            return secret.decode("utf-8")
        except UnicodeDecodeError:
            return secret
    return secret
