"""Tests for canonical hashing, input validators and the error taxonomy."""
import pytest

from gateway.core import (
    canonical_digest,
    canonical_json_bytes,
    schema_validator,
)
from gateway.cogateway.errors import (
    CoGatewayError,
    ErrorKind,
    InvalidNonce,
    error_for_kind,
)
from gateway.cogateway.validation import (
    NULL_ADDRESS,
    ValidationError,
    Validators,
    is_null_address,
    normalize_address,
    same_address,
)


class TestCanonical:

    def test_key_order_does_not_matter(self):
        assert canonical_json_bytes({"b": 1, "a": 2}) == canonical_json_bytes({"a": 2, "b": 1})

    def test_bytes_are_compact(self):
        assert canonical_json_bytes({"a": [1, "x"]}) == b'{"a":[1,"x"]}'

    def test_floats_rejected(self):
        with pytest.raises(ValueError):
            canonical_json_bytes({"amount": 1.5})

    def test_digest_is_prefixed_sha256(self):
        digest = canonical_digest({"a": 1})
        assert digest.startswith("0x")
        assert len(digest) == 66
        int(digest, 16)

    def test_bundled_schema_loads(self):
        assert schema_validator("redeem-scenario.schema.json").is_valid(
            {"accounts": {"cogateway": "0x" + "33" * 20, "redeem_pool": "0x" + "44" * 20},
             "steps": [{"action": "advance_blocks"}]}
        )


class TestValidators:

    def test_address_lowercased(self):
        assert normalize_address("0x" + "AB" * 20) == "0x" + "ab" * 20

    @pytest.mark.parametrize("value", ["0x12", "ab" * 20, 42, None])
    def test_bad_address(self, value):
        with pytest.raises(ValidationError):
            normalize_address(value)

    def test_null_address_forms(self):
        assert is_null_address(None)
        assert is_null_address("")
        assert is_null_address(NULL_ADDRESS.upper().replace("0X", "0x"))
        assert not is_null_address("0x" + "01" * 20)

    def test_same_address_ignores_case(self):
        assert same_address("0x" + "ab" * 20, "0x" + "AB" * 20)
        assert not same_address("junk", "junk")

    def test_hash_gets_prefix(self):
        result = Validators.validate_hash("ab" * 32)
        assert result.is_valid
        assert result.sanitized_value == "0x" + "ab" * 32

    def test_amount_allow_zero(self):
        assert Validators.validate_amount(0).is_valid
        assert not Validators.validate_amount(0, allow_zero=False).is_valid


class TestErrors:

    def test_message_includes_kind(self):
        err = InvalidNonce("expected 2", redeemer="0xabc")
        assert str(err) == "InvalidNonce: expected 2"
        assert err.kind == ErrorKind.INVALID_NONCE
        assert err.to_dict() == {
            "kind": "InvalidNonce",
            "reason": "expected 2",
            "details": {"redeemer": "0xabc"},
        }

    def test_every_kind_has_a_class(self):
        for kind in ErrorKind:
            cls = error_for_kind(kind)
            assert issubclass(cls, CoGatewayError)
            assert cls.kind == kind


def test_package_exports_resolve_lazily():
    import gateway.cogateway as cogateway
    from gateway.cogateway import registry

    assert cogateway.CoGateway is registry.CoGateway
    assert cogateway.compute_hash_lock("a").startswith("0x")
    with pytest.raises(AttributeError):
        cogateway.NotAThing
