"""
Stake vault release on the origin side of the redeem flow.

Once a redeem is progressed on the auxiliary chain, the matching stake is
released from the vault to the beneficiary. Unlike request_redeem, a null
beneficiary is accepted here: the released amount is burned instead of
transferred.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from typing import Optional

from gateway.cogateway.errors import InvalidAmount, InvalidBeneficiary, Unauthorized
from gateway.cogateway.events import StakeReleased
from gateway.cogateway.ledger import AssetKind, BalanceLedger
from gateway.cogateway.observability import GatewayLayer, get_logger
from gateway.cogateway.validation import (
    NULL_ADDRESS,
    ValidationError,
    Validators,
    is_null_address,
    normalize_address,
    same_address,
)

log = get_logger("stake_vault", GatewayLayer.UNSTAKE)


class StakeVault:
    """
    Holds staked TOKEN balances under its own account.

    When a controller is given, only that account may release stake.
    """

    def __init__(self, ledger: BalanceLedger, address: str, controller: Optional[str] = None):
        self.ledger = ledger
        self.address = normalize_address(address, "vault")
        self.controller = normalize_address(controller, "controller") if controller else None

    def balance(self) -> int:
        return self.ledger.balance_of(self.address, AssetKind.TOKEN)

    def release_stake(self, beneficiary: Optional[str], amount: int, caller: Optional[str] = None) -> bool:
        """Release amount to beneficiary; burn it when beneficiary is null."""
        if self.controller is not None and not same_address(caller, self.controller):
            raise Unauthorized("Only the vault controller may release stake.", caller=caller)
        result = Validators.validate_amount(amount, "amount", allow_zero=False)
        if not result.is_valid:
            raise InvalidAmount(result.errors[0].message, amount=amount)

        burned = is_null_address(beneficiary)
        if burned:
            recipient = NULL_ADDRESS
        else:
            try:
                recipient = normalize_address(beneficiary, "beneficiary")
            except ValidationError as e:
                raise InvalidBeneficiary(e.message, beneficiary=beneficiary) from e

        with self.ledger.transaction():
            if burned:
                self.ledger.burn(self.address, AssetKind.TOKEN, amount)
            else:
                self.ledger.transfer(self.address, recipient, AssetKind.TOKEN, amount)
            self.ledger.emit(StakeReleased(beneficiary=recipient, amount=amount, burned=burned))

        log.info("stake released", beneficiary=recipient, amount=amount, burned=burned)
        return True
