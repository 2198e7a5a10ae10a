"""Unit tests for the balance validator."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from zapper.errors import InsufficientFundsError
from zapper.models import GWEI, GasQuote
from zapper.services.balance import BalanceValidator

ETH = 10**18


@pytest.fixture()
def validator(mock_chain: AsyncMock, mock_gas: AsyncMock) -> BalanceValidator:
    return BalanceValidator(mock_chain, mock_gas)


class TestValidate:
    @pytest.mark.asyncio
    async def test_sufficient(self, validator: BalanceValidator) -> None:
        check = await validator.validate(1 * ETH, 400_000)
        assert check.balance == 10 * ETH
        assert check.estimated_fee == 400_000 * 22 * GWEI
        assert check.sufficient is True

    @pytest.mark.asyncio
    async def test_resolves_quote_scoped_to_spend(
        self, validator: BalanceValidator, mock_gas: AsyncMock
    ) -> None:
        await validator.validate(3 * ETH, 400_000)
        mock_gas.resolve.assert_awaited_once_with(3 * ETH)

    @pytest.mark.asyncio
    async def test_explicit_quote_skips_resolver(
        self, validator: BalanceValidator, mock_gas: AsyncMock
    ) -> None:
        quote = GasQuote(base_fee=0, priority_fee=0, max_fee=GWEI, speed_tier="standard", source="x")
        check = await validator.validate(ETH, 100_000, quote)
        assert check.estimated_fee == 100_000 * GWEI
        mock_gas.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exact_balance_is_enough(self, validator: BalanceValidator, mock_chain: AsyncMock) -> None:
        fee = 400_000 * 22 * GWEI
        mock_chain.get_balance.return_value = ETH + fee
        assert (await validator.validate(ETH, 400_000)).sufficient is True


class TestEnsureSufficient:
    @pytest.mark.asyncio
    async def test_raises_with_amounts(self, validator: BalanceValidator, mock_chain: AsyncMock) -> None:
        mock_chain.get_balance.return_value = ETH // 2
        with pytest.raises(InsufficientFundsError) as exc:
            await validator.ensure_sufficient(ETH, 400_000)

        fee = 400_000 * 22 * GWEI
        assert exc.value.required == ETH + fee
        assert exc.value.available == ETH // 2
        assert exc.value.shortfall == ETH + fee - ETH // 2

    @pytest.mark.asyncio
    async def test_fee_alone_can_be_unaffordable(
        self, validator: BalanceValidator, mock_chain: AsyncMock
    ) -> None:
        mock_chain.get_balance.return_value = 1_000
        with pytest.raises(InsufficientFundsError):
            await validator.ensure_sufficient(0, 300_000)

    @pytest.mark.asyncio
    async def test_returns_check_when_ok(self, validator: BalanceValidator) -> None:
        check = await validator.ensure_sufficient(ETH, 400_000)
        assert check.sufficient is True
