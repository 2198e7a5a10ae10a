"""Balance validation — can the account afford the spend plus the fee?"""
from __future__ import annotations

import logging

from ..errors import InsufficientFundsError
from ..gas import GasPriceResolver
from ..interfaces.chain import ChainClient
from ..models import WEI_PER_ETH, BalanceCheck, GasQuote

logger = logging.getLogger(__name__)


class BalanceValidator:
    """Check a prospective spend against the on-chain balance and worst-case fee."""

    def __init__(self, chain: ChainClient, gas: GasPriceResolver) -> None:
        self._chain = chain
        self._gas = gas

    async def validate(
        self, spend_wei: int, gas_limit: int, quote: GasQuote | None = None
    ) -> BalanceCheck:
        if quote is None:
            quote = await self._gas.resolve(spend_wei)
        balance = await self._chain.get_balance()
        check = BalanceCheck(balance=balance, spend=spend_wei, estimated_fee=quote.fee_for(gas_limit))
        logger.info(
            "Balance check: balance %.6f ETH, required %.6f ETH (%s)",
            balance / WEI_PER_ETH,
            check.required / WEI_PER_ETH,
            "ok" if check.sufficient else "short",
        )
        return check

    async def ensure_sufficient(
        self, spend_wei: int, gas_limit: int, quote: GasQuote | None = None
    ) -> BalanceCheck:
        check = await self.validate(spend_wei, gas_limit, quote)
        if not check.sufficient:
            raise InsufficientFundsError(required=check.required, available=check.balance)
        return check
