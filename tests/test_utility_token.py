"""Tests for utility token supply changes restricted to the co-gateway."""
import pytest

from gateway.cogateway.errors import InvalidAmount, InvalidBeneficiary, Unauthorized
from gateway.cogateway.events import Transfer
from gateway.cogateway.token import UtilityToken
from gateway.cogateway.validation import NULL_ADDRESS

from tests.conftest import BENEFICIARY, COGATEWAY, STRANGER


@pytest.fixture
def token(ledger):
    return UtilityToken(ledger, symbol="UT", name="Utility Token", decimals=18, cogateway=COGATEWAY)


class TestIncreaseSupply:

    def test_fails_when_account_is_zero(self, token):
        with pytest.raises(InvalidBeneficiary, match="Account address should not be zero."):
            token.increase_supply(NULL_ADDRESS, 1000, caller=COGATEWAY)

    def test_fails_when_amount_is_zero(self, token):
        with pytest.raises(InvalidAmount, match="Amount should be greater than zero."):
            token.increase_supply(BENEFICIARY, 0, caller=COGATEWAY)

    def test_fails_when_caller_is_not_cogateway(self, token):
        with pytest.raises(Unauthorized, match="Only CoGateway can call the function."):
            token.increase_supply(BENEFICIARY, 1000, caller=STRANGER)

    def test_passes_with_correct_params(self, token):
        assert token.increase_supply(BENEFICIARY, 1000, caller=COGATEWAY) is True
        assert token.balance_of(BENEFICIARY) == 1000
        assert token.total_supply() == 1000

    def test_emits_transfer_from_null(self, token, ledger):
        seen = []
        ledger.event_bus.subscribe(Transfer)(seen.append)
        token.increase_supply(BENEFICIARY, 1000, caller=COGATEWAY)

        assert len(seen) == 1
        assert seen[0].from_account == NULL_ADDRESS
        assert seen[0].to_account == BENEFICIARY
        assert seen[0].amount == 1000


class TestDecreaseSupply:

    def test_burns_from_cogateway(self, token):
        token.increase_supply(COGATEWAY, 100, caller=COGATEWAY)
        assert token.decrease_supply(40, caller=COGATEWAY) is True
        assert token.balance_of(COGATEWAY) == 60
        assert token.total_supply() == 60

    def test_only_cogateway_may_burn(self, token):
        token.increase_supply(COGATEWAY, 100, caller=COGATEWAY)
        with pytest.raises(Unauthorized):
            token.decrease_supply(40, caller=STRANGER)
        assert token.total_supply() == 100
