"""
Utility token supply on the co-gateway side.

Minting and burning of the utility token is reserved to the co-gateway:
it mints when a stake completes on the origin chain and burns redeemed
tokens once a redeem is final. Balances live in the shared BalanceLedger
under AssetKind.TOKEN.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from gateway.cogateway.errors import InvalidAmount, InvalidBeneficiary, Unauthorized
from gateway.cogateway.ledger import AssetKind, BalanceLedger
from gateway.cogateway.observability import GatewayLayer, get_logger
from gateway.cogateway.validation import is_null_address, normalize_address, same_address

log = get_logger("utility_token", GatewayLayer.TOKEN)


class UtilityToken:
    """Token metadata plus co-gateway restricted supply changes."""

    def __init__(
        self,
        ledger: BalanceLedger,
        symbol: str,
        name: str,
        decimals: int,
        cogateway: str,
    ):
        self.ledger = ledger
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        self.cogateway = normalize_address(cogateway, "cogateway")

    def balance_of(self, account: str) -> int:
        return self.ledger.balance_of(account, AssetKind.TOKEN)

    def total_supply(self) -> int:
        return self.ledger.total_supply(AssetKind.TOKEN)

    def _only_cogateway(self, caller: str) -> None:
        if not same_address(caller, self.cogateway):
            raise Unauthorized("Only CoGateway can call the function.", caller=caller)

    def increase_supply(self, beneficiary: str, amount: int, caller: str) -> bool:
        """Mint amount to beneficiary. The null account is rejected."""
        if is_null_address(beneficiary):
            raise InvalidBeneficiary("Account address should not be zero.")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount("Amount should be greater than zero.", amount=amount)
        self._only_cogateway(caller)

        beneficiary = normalize_address(beneficiary, "beneficiary")
        self.ledger.mint(beneficiary, AssetKind.TOKEN, amount)
        log.info("supply increased", beneficiary=beneficiary, amount=amount)
        return True

    def decrease_supply(self, amount: int, caller: str) -> bool:
        """Burn amount from the co-gateway's own balance."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount("Amount should be greater than zero.", amount=amount)
        self._only_cogateway(caller)

        self.ledger.burn(self.cogateway, AssetKind.TOKEN, amount)
        log.info("supply decreased", amount=amount)
        return True
