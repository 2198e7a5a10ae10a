"""Zap-in / zap-out preparation, execution and ledger bookkeeping."""
from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Callable

from web3 import Web3

from ..config import AppConfig
from ..errors import ExecutionError, LedgerWriteError, UpstreamError, ZapperError
from ..gas import GasPriceResolver
from ..interfaces.chain import ChainClient
from ..ledger import FULL_EXIT_BPS, PositionLedger
from ..models import WEI_PER_ETH, ZapInPlan, ZapResult
from ..slippage import build_slippage_policy, compute_amount_out, compute_min_out
from .balance import BalanceValidator
from .market import MarketService

logger = logging.getLogger(__name__)

GAS_LIMIT_HEADROOM_PCT = 120


def parse_eth_amount(raw: str) -> int:
    """Parse a user-entered ETH amount into wei; raise ValueError if not positive."""
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {raw!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"Invalid amount: {raw!r}")
    return int(amount * WEI_PER_ETH)


class ZapService:
    """Drive a zap through slippage, gas, balance checks, submission and the ledger."""

    def __init__(
        self,
        chain: ChainClient,
        gas: GasPriceResolver,
        balance: BalanceValidator,
        market: MarketService,
        ledger: PositionLedger,
        config: AppConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._chain = chain
        self._gas = gas
        self._balance = balance
        self._market = market
        self._ledger = ledger
        self._config = config
        self._clock = clock

    def _deadline(self) -> int:
        return int(self._clock()) + self._config.transactions.deadline_minutes * 60

    # ------------------------------------------------------------------
    # Zap in
    # ------------------------------------------------------------------

    async def prepare_zap_in(self, token_address: str, amount_eth: str) -> ZapInPlan:
        if not Web3.is_address(token_address):
            raise ValueError("Invalid Ethereum address.")
        token = Web3.to_checksum_address(token_address)
        amount_in = parse_eth_amount(amount_eth)

        pair_info = await self._market.get_pair_info(token)
        reserves = await self._chain.get_reserves(pair_info.pair_address)

        # the zapper swaps half of the ETH for the token, then pairs the rest
        swap_in = amount_in // 2
        policy = build_slippage_policy(
            swap_in, reserves.reserve_weth, reserves.reserve_token, self._config.slippage
        )
        projected_token = compute_amount_out(
            swap_in, reserves.reserve_weth, reserves.reserve_token
        )

        quote = await self._gas.resolve(amount_in)
        tx_cfg = self._config.transactions
        balance = await self._balance.ensure_sufficient(amount_in, tx_cfg.zap_in_gas_limit, quote)

        deadline = self._deadline()
        try:
            estimate = await self._chain.estimate_zap_in_gas(
                token, amount_in, deadline, policy.tolerance_bps
            )
            gas_limit = estimate * GAS_LIMIT_HEADROOM_PCT // 100
        except UpstreamError as e:
            logger.warning(
                "Gas estimation unavailable (%s); using configured limit %d",
                e,
                tx_cfg.zap_in_gas_limit,
            )
            gas_limit = tx_cfg.zap_in_gas_limit

        plan = ZapInPlan(
            token_address=token,
            pair_address=pair_info.pair_address,
            amount_in=amount_in,
            market_cap_eth=pair_info.market_cap_eth,
            slippage=policy,
            amount_token_min=compute_min_out(projected_token, policy.tolerance_bps),
            amount_weth_min=compute_min_out(amount_in - swap_in, policy.tolerance_bps),
            gas=quote,
            gas_limit=gas_limit,
            balance=balance,
            deadline=deadline,
        )
        logger.info(
            "Prepared zap-in of %.6f ETH into %s: impact %.3f%%, tolerance %d bps, gas limit %d",
            amount_in / WEI_PER_ETH,
            token,
            policy.price_impact_pct,
            policy.tolerance_bps,
            gas_limit,
        )
        return plan

    async def execute_zap_in(self, plan: ZapInPlan) -> ZapResult:
        tx_hash = await self._chain.submit_zap_in(
            plan.token_address,
            plan.amount_in,
            plan.amount_token_min,
            plan.amount_weth_min,
            plan.deadline,
            plan.slippage.tolerance_bps,
            plan.gas,
            plan.gas_limit,
        )
        logger.info("Zap-in transaction submitted: %s", tx_hash)
        await self._chain.wait_for_confirmation(tx_hash)

        try:
            market_cap = (await self._market.get_pair_info(plan.token_address)).market_cap_eth
        except Exception as e:
            logger.warning(
                "Could not refresh market cap after zap-in (%s); using pre-trade value", e
            )
            market_cap = plan.market_cap_eth

        try:
            index = self._ledger.record_entry(
                plan.token_address,
                plan.pair_address,
                plan.amount_in / WEI_PER_ETH,
                market_cap,
            )
        except LedgerWriteError:
            logger.error(
                "Zap-in %s confirmed on-chain but the position was NOT recorded", tx_hash
            )
            raise

        logger.info("Zap-in confirmed for %s at position %d", plan.token_address, index)
        return ZapResult(tx_hash=tx_hash, position_index=index)

    # ------------------------------------------------------------------
    # Zap out
    # ------------------------------------------------------------------

    async def zap_out(self, position_index: int, percent: int) -> ZapResult:
        if not 0 < percent <= 100:
            raise ValueError(f"Zap-out percentage must be in 1..100, got {percent}")

        position = self._ledger.get(position_index)
        if position is None:
            raise ZapperError("Position not found. It may have been removed.")

        lp_balance = await self._chain.get_lp_balance(position.pair_address)
        if lp_balance == 0:
            raise ExecutionError("You have no LP tokens to zap out.")
        liquidity = lp_balance * percent // 100

        reserves = await self._chain.get_reserves(position.pair_address)
        if reserves.total_supply <= 0:
            raise ExecutionError("Pool has no liquidity.")
        weth_part = reserves.reserve_weth * liquidity // reserves.total_supply
        token_part = reserves.reserve_token * liquidity // reserves.total_supply

        # after burning, the token half is sold into what remains of the pool
        reserve_token_after = reserves.reserve_token - token_part
        reserve_weth_after = reserves.reserve_weth - weth_part
        policy = build_slippage_policy(
            token_part, reserve_token_after, reserve_weth_after, self._config.slippage
        )
        projected_out = weth_part + compute_amount_out(
            token_part, reserve_token_after, reserve_weth_after
        )
        tolerance = policy.tolerance_bps

        quote = await self._gas.resolve()
        gas_limit = self._config.transactions.zap_out_gas_limit
        await self._balance.ensure_sufficient(0, gas_limit, quote)

        logger.info(
            "Approving %.6f LP tokens of %s", liquidity / WEI_PER_ETH, position.pair_address
        )
        approve_hash = await self._chain.approve_lp(position.pair_address, liquidity, quote)
        await self._chain.wait_for_confirmation(approve_hash)

        tx_hash = await self._chain.submit_zap_out(
            position.token_address,
            liquidity,
            compute_min_out(projected_out, tolerance),
            compute_min_out(token_part, tolerance),
            compute_min_out(weth_part, tolerance),
            self._deadline(),
            tolerance,
            quote,
            gas_limit,
        )
        logger.info("Zap-out transaction submitted: %s", tx_hash)
        await self._chain.wait_for_confirmation(tx_hash)

        removed = self._ledger.record_exit(position.token_address, percent * FULL_EXIT_BPS // 100)
        logger.info("%d%% zap-out confirmed for %s", percent, position.token_address)
        return ZapResult(tx_hash=tx_hash, position_index=position_index, removed=removed)
