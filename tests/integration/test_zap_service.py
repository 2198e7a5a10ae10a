"""Integration tests for zap-in / zap-out orchestration against a mocked chain."""
from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from zapper.cache import TTLCache
from zapper.config import AppConfig
from zapper.errors import (
    ExecutionError,
    InsufficientFundsError,
    LedgerWriteError,
    PairNotFoundError,
    UpstreamError,
    ZapperError,
)
from zapper.ledger import PositionLedger
from zapper.services.balance import BalanceValidator
from zapper.services.market import MarketService
from zapper.services.zap import ZapService, parse_eth_amount
from zapper.slippage import compute_amount_out

ETH = 10**18
NOW = 1_700_000_000
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
DAI_PAIR = "0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11"


@pytest.fixture()
def service(
    mock_chain: AsyncMock,
    mock_gas: AsyncMock,
    memory_ledger: PositionLedger,
    sample_app_config: AppConfig,
    clock,
) -> ZapService:
    market = MarketService(mock_chain, mock_gas, sample_app_config, TTLCache(clock=clock))
    balance = BalanceValidator(mock_chain, mock_gas)
    return ZapService(
        mock_chain, mock_gas, balance, market, memory_ledger, sample_app_config, clock=lambda: NOW
    )


class TestParseEthAmount:
    def test_decimal_amount(self) -> None:
        assert parse_eth_amount("0.005") == 5 * 10**15

    def test_whitespace(self) -> None:
        assert parse_eth_amount(" 1 ") == ETH

    @pytest.mark.parametrize("raw", ["", "abc", "0", "-1", "nan", "inf"])
    def test_rejects_invalid(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_eth_amount(raw)


class TestPrepareZapIn:
    @pytest.mark.asyncio
    async def test_plan(self, service: ZapService, mock_chain: AsyncMock, mock_gas: AsyncMock) -> None:
        plan = await service.prepare_zap_in(DAI.lower(), "1")

        assert plan.token_address == DAI
        assert plan.pair_address == DAI_PAIR
        assert plan.amount_in == ETH
        assert plan.market_cap_eth == pytest.approx(1000.0)
        # half of 1 ETH into a 100 WETH pool is just under 1% impact
        assert plan.slippage.tolerance_bps == 100
        projected = compute_amount_out(ETH // 2, 100 * ETH, 1_000_000 * ETH)
        assert plan.amount_token_min == projected * 9_900 // 10_000
        assert plan.amount_weth_min == (ETH // 2) * 9_900 // 10_000
        assert plan.gas_limit == 300_000
        assert plan.deadline == NOW + 120
        assert plan.balance.sufficient
        mock_gas.resolve.assert_awaited_with(ETH)
        mock_chain.estimate_zap_in_gas.assert_awaited_once_with(DAI, ETH, NOW + 120, 100)

    @pytest.mark.asyncio
    async def test_min_outs_below_projection(self, service: ZapService) -> None:
        plan = await service.prepare_zap_in(DAI, "5")
        projected = compute_amount_out(5 * ETH // 2, 100 * ETH, 1_000_000 * ETH)
        assert plan.amount_token_min <= projected
        assert plan.amount_weth_min <= 5 * ETH // 2

    @pytest.mark.asyncio
    async def test_invalid_address(self, service: ZapService, mock_chain: AsyncMock) -> None:
        with pytest.raises(ValueError, match="Invalid Ethereum address"):
            await service.prepare_zap_in("0x1234", "1")
        mock_chain.get_pair.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_amount(self, service: ZapService) -> None:
        with pytest.raises(ValueError, match="Invalid amount"):
            await service.prepare_zap_in(DAI, "lots")

    @pytest.mark.asyncio
    async def test_missing_pair(self, service: ZapService, mock_chain: AsyncMock) -> None:
        mock_chain.get_pair.side_effect = PairNotFoundError("Pair does not exist")
        with pytest.raises(PairNotFoundError):
            await service.prepare_zap_in(DAI, "1")

    @pytest.mark.asyncio
    async def test_insufficient_balance_before_estimation(
        self, service: ZapService, mock_chain: AsyncMock
    ) -> None:
        mock_chain.get_balance.return_value = ETH // 2
        with pytest.raises(InsufficientFundsError) as exc:
            await service.prepare_zap_in(DAI, "1")
        assert exc.value.available == ETH // 2
        mock_chain.estimate_zap_in_gas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_estimation_failure_uses_configured_limit(
        self, service: ZapService, mock_chain: AsyncMock
    ) -> None:
        mock_chain.estimate_zap_in_gas.side_effect = UpstreamError("Gas estimation failed")
        plan = await service.prepare_zap_in(DAI, "1")
        assert plan.gas_limit == 400_000

    @pytest.mark.asyncio
    async def test_estimation_revert_propagates(
        self, service: ZapService, mock_chain: AsyncMock
    ) -> None:
        mock_chain.estimate_zap_in_gas.side_effect = ExecutionError("execution reverted")
        with pytest.raises(ExecutionError):
            await service.prepare_zap_in(DAI, "1")


class TestExecuteZapIn:
    @pytest.mark.asyncio
    async def test_submits_and_records(
        self, service: ZapService, mock_chain: AsyncMock, memory_ledger: PositionLedger
    ) -> None:
        plan = await service.prepare_zap_in(DAI, "1")
        result = await service.execute_zap_in(plan)

        assert result.tx_hash == "0x" + "ab" * 32
        assert result.position_index == 0
        mock_chain.submit_zap_in.assert_awaited_once_with(
            DAI,
            ETH,
            plan.amount_token_min,
            plan.amount_weth_min,
            plan.deadline,
            100,
            plan.gas,
            plan.gas_limit,
        )
        mock_chain.wait_for_confirmation.assert_awaited_once_with(result.tx_hash)

        # merged with the existing 1 ETH @ 100 position
        merged = memory_ledger.get(0)
        assert merged.initial_base_value == pytest.approx(2.0)
        assert merged.initial_market_cap == pytest.approx(550.0)

    @pytest.mark.asyncio
    async def test_new_token_appended(
        self, service: ZapService, memory_ledger: PositionLedger
    ) -> None:
        plan = await service.prepare_zap_in("0x514910771af9ca656af840dff83e8264ecf986ca", "0.5")
        result = await service.execute_zap_in(plan)
        assert result.position_index == 2
        assert memory_ledger.get(2).initial_base_value == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_pre_trade_cap_used_when_refresh_fails(
        self, service: ZapService, mock_chain: AsyncMock, memory_ledger: PositionLedger
    ) -> None:
        plan = replace(await service.prepare_zap_in(DAI, "1"), market_cap_eth=500.0)
        mock_chain.get_total_supply.side_effect = UpstreamError("All RPC endpoints failed")

        await service.execute_zap_in(plan)

        assert memory_ledger.get(0).initial_market_cap == pytest.approx(300.0)

    @pytest.mark.asyncio
    async def test_revert_leaves_ledger_untouched(
        self, service: ZapService, mock_chain: AsyncMock, memory_store
    ) -> None:
        plan = await service.prepare_zap_in(DAI, "1")
        mock_chain.wait_for_confirmation.side_effect = ExecutionError("reverted", "0xabab")

        with pytest.raises(ExecutionError):
            await service.execute_zap_in(plan)
        assert memory_store.writes == 0

    @pytest.mark.asyncio
    async def test_ledger_failure_is_surfaced(
        self, service: ZapService, mock_chain: AsyncMock, memory_store
    ) -> None:
        plan = await service.prepare_zap_in(DAI, "1")
        memory_store.fail_writes = True

        with pytest.raises(LedgerWriteError):
            await service.execute_zap_in(plan)
        mock_chain.submit_zap_in.assert_awaited_once()


class TestZapOut:
    @pytest.mark.asyncio
    async def test_partial_exit(
        self, service: ZapService, mock_chain: AsyncMock, memory_ledger: PositionLedger, sample_quote
    ) -> None:
        result = await service.zap_out(0, 50)

        assert result.tx_hash == "0x" + "ef" * 32
        assert result.removed is False
        mock_chain.approve_lp.assert_awaited_once_with(DAI_PAIR, 50 * ETH, sample_quote)

        args = mock_chain.submit_zap_out.call_args.args
        token, liquidity, amount_out_min, token_min, weth_min = args[:5]
        assert token == DAI
        assert liquidity == 50 * ETH
        # 0.5% of the pool burns to 0.5 WETH + 5,000 tokens
        assert weth_min <= ETH // 2
        assert token_min <= 5_000 * ETH
        assert ETH // 2 < amount_out_min < ETH
        assert args[5] == NOW + 120
        assert args[8] == 300_000

        assert len(memory_ledger.list()) == 2

    @pytest.mark.asyncio
    async def test_approval_confirmed_before_zap_out(
        self, service: ZapService, mock_chain: AsyncMock
    ) -> None:
        await service.zap_out(0, 100)
        names = [
            c[0]
            for c in mock_chain.mock_calls
            if c[0] in ("approve_lp", "wait_for_confirmation", "submit_zap_out")
        ]
        assert names == [
            "approve_lp",
            "wait_for_confirmation",
            "submit_zap_out",
            "wait_for_confirmation",
        ]

    @pytest.mark.asyncio
    async def test_full_exit_removes_position(
        self, service: ZapService, memory_ledger: PositionLedger
    ) -> None:
        result = await service.zap_out(0, 100)
        assert result.removed is True
        assert [p.token_address for p in memory_ledger.list()] == [
            "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
        ]

    @pytest.mark.asyncio
    async def test_no_lp_tokens(self, service: ZapService, mock_chain: AsyncMock) -> None:
        mock_chain.get_lp_balance.return_value = 0
        with pytest.raises(ExecutionError, match="no LP tokens"):
            await service.zap_out(0, 100)
        mock_chain.approve_lp.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_position(self, service: ZapService) -> None:
        with pytest.raises(ZapperError, match="Position not found"):
            await service.zap_out(5, 100)

    @pytest.mark.parametrize("percent", [0, 101, -5])
    @pytest.mark.asyncio
    async def test_invalid_percent(self, service: ZapService, percent: int) -> None:
        with pytest.raises(ValueError):
            await service.zap_out(0, percent)

    @pytest.mark.asyncio
    async def test_cannot_afford_fee(
        self, service: ZapService, mock_chain: AsyncMock, memory_store
    ) -> None:
        mock_chain.get_balance.return_value = 0
        with pytest.raises(InsufficientFundsError):
            await service.zap_out(0, 100)
        mock_chain.approve_lp.assert_not_awaited()
        assert memory_store.writes == 0
