"""
Tests for stake release on the unstake side.

A null beneficiary burns the released stake, while request_redeem refuses
the same null beneficiary.
"""
import pytest

from gateway.cogateway.errors import InsufficientBalance, InvalidAmount, InvalidBeneficiary, Unauthorized
from gateway.cogateway.events import StakeReleased, Transfer
from gateway.cogateway.ledger import AssetKind
from gateway.cogateway.unstake import StakeVault
from gateway.cogateway.validation import NULL_ADDRESS

from tests.conftest import BENEFICIARY, COGATEWAY, HASH_LOCK, REDEEMER, STAKE_VAULT, STRANGER


@pytest.fixture
def vault(ledger):
    ledger.mint(STAKE_VAULT, AssetKind.TOKEN, 500)
    return StakeVault(ledger, STAKE_VAULT)


def test_release_transfers_to_beneficiary(vault, ledger):
    assert vault.release_stake(BENEFICIARY, 200) is True
    assert ledger.balance_of(BENEFICIARY, AssetKind.TOKEN) == 200
    assert vault.balance() == 300
    assert ledger.total_supply(AssetKind.TOKEN) == 500


@pytest.mark.parametrize("beneficiary", [NULL_ADDRESS, None])
def test_null_beneficiary_burns(vault, ledger, beneficiary):
    seen = []
    ledger.event_bus.subscribe()(seen.append)
    vault.release_stake(beneficiary, 200)

    assert vault.balance() == 300
    assert ledger.total_supply(AssetKind.TOKEN) == 300
    transfer, released = seen
    assert isinstance(transfer, Transfer) and transfer.to_account == NULL_ADDRESS
    assert isinstance(released, StakeReleased)
    assert released.burned is True
    assert released.beneficiary == NULL_ADDRESS


def test_redeem_path_refuses_what_release_burns(gateway, funded, vault):
    with pytest.raises(InvalidBeneficiary):
        gateway.request_redeem(REDEEMER, 10, 0, 0, 1, NULL_ADDRESS, HASH_LOCK)
    vault.release_stake(NULL_ADDRESS, 10)


@pytest.mark.parametrize("beneficiary", ["0x1234", "not-an-address"])
def test_malformed_beneficiary_rejected(vault, ledger, beneficiary):
    with pytest.raises(InvalidBeneficiary):
        vault.release_stake(beneficiary, 200)
    assert vault.balance() == 500
    assert ledger.total_supply(AssetKind.TOKEN) == 500


def test_release_more_than_held(vault):
    with pytest.raises(InsufficientBalance):
        vault.release_stake(BENEFICIARY, 501)
    assert vault.balance() == 500


def test_zero_release_rejected(vault):
    with pytest.raises(InvalidAmount):
        vault.release_stake(BENEFICIARY, 0)


def test_controller_gate(ledger):
    ledger.mint(STAKE_VAULT, AssetKind.TOKEN, 10)
    vault = StakeVault(ledger, STAKE_VAULT, controller=COGATEWAY)
    with pytest.raises(Unauthorized):
        vault.release_stake(BENEFICIARY, 5, caller=STRANGER)
    vault.release_stake(BENEFICIARY, 5, caller=COGATEWAY)
    assert vault.balance() == 5
