"""Shared test fixtures and sample data."""
from __future__ import annotations

import copy
import textwrap
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from zapper.config import (
    AppConfig,
    ChainConfig,
    GasConfig,
    SlippageConfig,
    TelegramConfig,
    TransactionConfig,
    WalletConfig,
)
from zapper.ledger import JsonFileStore, PositionLedger
from zapper.models import (
    GWEI,
    SOURCE_ORACLE,
    FeeSuggestion,
    GasQuote,
    PairReserves,
    Position,
    TokenInfo,
)

WALLET = "0x000000000000000000000000000000000000dead"
TOKEN = "0x6b175474e89094c44da98b954eedeac495271d0f"
TOKEN_B = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
PAIR = "0xa478c2975ab1ea89e8196811f51a7b7ade33eb11"
PAIR_B = "0xb4e16d0168e52d35cacd2c6185b44281ec28c9dc"

ETH = 10**18
FIXED_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MemoryStore:
    """In-memory LedgerStore; ``fail_writes`` makes every write raise."""

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self.records = copy.deepcopy(records or [])
        self.fail_writes = False
        self.writes = 0

    def read(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self.records)

    def write(self, records: list[dict[str, Any]]) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        self.records = copy.deepcopy(records)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_gas_config() -> GasConfig:
    return GasConfig(
        oracle_url="https://gas.example.com/api",
        oracle_api_key="key",
        speed_tier="standard",
        multiplier=1.0,
        min_priority_fee_gwei=0.1,
        max_fee_gwei=200.0,
        default_fee_gwei=2.0,
        default_priority_fee_gwei=0.1,
        cache_ttl_seconds=8.0,
    )


@pytest.fixture()
def sample_app_config(sample_gas_config: GasConfig) -> AppConfig:
    return AppConfig(
        chain=ChainConfig(
            rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
            rpc_timeout=10,
        ),
        wallet=WalletConfig(address=WALLET),
        gas=sample_gas_config,
        slippage=SlippageConfig(dynamic=True, min_bps=50, max_bps=2000, static_bps=2000),
        transactions=TransactionConfig(
            deadline_minutes=2, zap_in_gas_limit=400_000, zap_out_gas_limit=300_000
        ),
        telegram=TelegramConfig(enabled=True, bot_token="bot-tok", chat_id="12345"),
    )


SAMPLE_YAML = textwrap.dedent("""\
    chain:
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
      chain_id: 1
    wallet:
      address: "0x000000000000000000000000000000000000dead"
    gas:
      oracle_url: "https://gas.example.com/api"
      speed_tier: fast
      multiplier: 1.1
      max_fee_gwei: 150
    slippage:
      dynamic: true
      min_bps: 50
      max_bps: 1500
      static_bps: 1000
    transactions:
      deadline_minutes: 5
    ledger:
      path: "data/positions.json"
    watcher:
      refresh_interval_seconds: 15
    telegram:
      enabled: true
      bot_token: "tok"
      chat_id: 999
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Ledger fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_records() -> list[dict[str, Any]]:
    return [
        {
            "tokenAddress": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
            "pairAddress": "0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11",
            "initialEthValue": "1.0",
            "initialMarketCap": "100.0",
            "timestamp": 1_690_000_000_000,
        },
        {
            "tokenAddress": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            "pairAddress": "0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc",
            "initialEthValue": "0.5",
            "initialMarketCap": "2500.0",
            "timestamp": 1_690_000_100_000,
        },
    ]


@pytest.fixture()
def memory_store(sample_records: list[dict[str, Any]]) -> MemoryStore:
    return MemoryStore(sample_records)


@pytest.fixture()
def memory_ledger(memory_store: MemoryStore) -> PositionLedger:
    return PositionLedger(memory_store, clock=lambda: FIXED_MS)


@pytest.fixture()
def file_ledger(tmp_path: Path) -> PositionLedger:
    return PositionLedger(JsonFileStore(tmp_path / "positions.json"), clock=lambda: FIXED_MS)


@pytest.fixture()
def sample_position() -> Position:
    return Position(
        token_address="0x6B175474E89094C44Da98b954EedeAC495271d0F",
        pair_address="0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11",
        initial_base_value=1.0,
        initial_market_cap=100.0,
        timestamp=1_690_000_000_000,
    )


# ---------------------------------------------------------------------------
# Chain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_quote() -> GasQuote:
    return GasQuote(
        base_fee=10 * GWEI,
        priority_fee=2 * GWEI,
        max_fee=22 * GWEI,
        speed_tier="standard",
        source=SOURCE_ORACLE,
    )


@pytest.fixture()
def mock_chain() -> AsyncMock:
    """ChainClient double: a 100 WETH / 1,000,000 token pool, 10 ETH balance."""
    chain = AsyncMock()
    chain.account = "0x000000000000000000000000000000000000dEaD"
    chain.get_pair.return_value = "0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11"
    chain.get_reserves.return_value = PairReserves(
        pair_address="0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11",
        reserve_weth=100 * ETH,
        reserve_token=1_000_000 * ETH,
        total_supply=10_000 * ETH,
    )
    chain.get_token_info.return_value = TokenInfo(name="Dai Stablecoin", symbol="DAI", decimals=18)
    chain.get_total_supply.return_value = 10_000_000 * ETH
    chain.get_balance.return_value = 10 * ETH
    chain.get_lp_balance.return_value = 100 * ETH
    chain.get_fee_suggestion.return_value = FeeSuggestion(
        base_fee=10 * GWEI, priority_fee=1 * GWEI, gas_price=11 * GWEI
    )
    chain.estimate_zap_in_gas.return_value = 250_000
    chain.submit_zap_in.return_value = "0x" + "ab" * 32
    chain.approve_lp.return_value = "0x" + "cd" * 32
    chain.submit_zap_out.return_value = "0x" + "ef" * 32
    chain.wait_for_confirmation.return_value = None
    return chain


@pytest.fixture()
def mock_gas(sample_quote: GasQuote) -> AsyncMock:
    gas = AsyncMock()
    gas.resolve.return_value = sample_quote
    return gas


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def empty_store() -> MemoryStore:
    return MemoryStore()
