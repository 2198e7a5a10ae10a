"""Unit tests for application wiring."""
from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from zapper.app import ZapperApp
from zapper.config import AppConfig, TelegramConfig
from zapper.ledger import PositionLedger
from zapper.models import SOURCE_ORACLE, GasTiers
from zapper.notifications import TelegramTransport
from zapper.services import ZapInFlow


@pytest.fixture()
def oracle() -> AsyncMock:
    oracle = AsyncMock()
    oracle.fetch_tiers.return_value = GasTiers(
        slow=8 * 10**9, standard=12 * 10**9, fast=15 * 10**9, base_fee=10 * 10**9
    )
    return oracle


@pytest.fixture()
def app(sample_app_config: AppConfig, mock_chain, oracle, memory_ledger: PositionLedger) -> ZapperApp:
    return ZapperApp(sample_app_config, chain=mock_chain, oracle=oracle, ledger=memory_ledger)


class TestZapperApp:
    @pytest.mark.asyncio
    async def test_gas_uses_injected_oracle(self, app: ZapperApp, oracle: AsyncMock) -> None:
        quote = await app.gas.resolve()
        assert quote.source == SOURCE_ORACLE
        oracle.fetch_tiers.assert_awaited_once()

    def test_telegram_transport_when_enabled(self, app: ZapperApp) -> None:
        assert isinstance(app.transport, TelegramTransport)

    def test_no_transport_when_disabled(
        self, sample_app_config: AppConfig, mock_chain, oracle, memory_ledger
    ) -> None:
        config = replace(sample_app_config, telegram=TelegramConfig(enabled=False))
        app = ZapperApp(config, chain=mock_chain, oracle=oracle, ledger=memory_ledger)
        assert app.transport is None
        with pytest.raises(ValueError, match="No chat transport"):
            app.watcher()

    def test_watcher_is_shared(self, app: ZapperApp) -> None:
        assert app.watcher() is app.watcher()

    def test_new_flow_bound_to_session(self, app: ZapperApp) -> None:
        flow = app.new_zap_in_flow("chat-1")
        assert isinstance(flow, ZapInFlow)
        assert flow.session_id == "chat-1"
        assert not flow.finished

    @pytest.mark.asyncio
    async def test_positions_read_from_ledger(self, app: ZapperApp) -> None:
        positions = app.ledger.list()
        snapshot = await app.market.snapshot(positions[0])
        assert snapshot.position == positions[0]
