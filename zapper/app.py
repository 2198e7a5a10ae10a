"""Application wiring — builds every service from one AppConfig."""
from __future__ import annotations

import logging

from .cache import TTLCache
from .chains import EvmClient
from .config import AppConfig
from .gas import build_gas_resolver
from .interfaces.chain import ChainClient
from .interfaces.gas_oracle import GasOracle
from .interfaces.notifier import ChatTransport
from .ledger import JsonFileStore, PositionLedger
from .notifications import TelegramTransport
from .oracles import EtherscanGasOracle
from .services import (
    BalanceValidator,
    MarketService,
    RefreshWatcher,
    ZapInFlow,
    ZapService,
    position_renderer,
)

logger = logging.getLogger(__name__)


class ZapperApp:
    """Holds the shared chain client, caches, ledger and services."""

    def __init__(
        self,
        config: AppConfig,
        chain: ChainClient | None = None,
        oracle: GasOracle | None = None,
        ledger: PositionLedger | None = None,
    ) -> None:
        self.config = config
        self.cache = TTLCache()
        self.chain = chain if chain is not None else EvmClient(config)
        self.oracle = oracle if oracle is not None else EtherscanGasOracle(config.gas, config.chain)
        self.gas = build_gas_resolver(config, self.oracle, self.chain, self.cache)
        self.ledger = (
            ledger if ledger is not None else PositionLedger(JsonFileStore(config.ledger.path))
        )
        self.balance = BalanceValidator(self.chain, self.gas)
        self.market = MarketService(self.chain, self.gas, config, self.cache)
        self.zap = ZapService(
            self.chain, self.gas, self.balance, self.market, self.ledger, config
        )

        self.transport: ChatTransport | None = None
        if config.telegram.enabled:
            self.transport = TelegramTransport(config.telegram)
        self._watcher: RefreshWatcher | None = None

    def watcher(self, transport: ChatTransport | None = None) -> RefreshWatcher:
        """The session watcher bound to ``transport`` (default: the configured one)."""
        if self._watcher is None:
            transport = transport or self.transport
            if transport is None:
                raise ValueError("No chat transport configured")
            self._watcher = RefreshWatcher(
                self.ledger,
                position_renderer(self.market),
                transport,
                self.config.watcher.refresh_interval_seconds,
            )
        return self._watcher

    def new_zap_in_flow(self, session_id: str, transport: ChatTransport | None = None) -> ZapInFlow:
        watcher = self.watcher(transport)
        return ZapInFlow(
            session_id,
            self.zap,
            self.market,
            self.chain,
            transport or self.transport,
            watcher,
            self.config,
        )
