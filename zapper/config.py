"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from web3 import Web3

logger = logging.getLogger(__name__)

SPEED_TIERS = ("safe", "standard", "fast", "instant")

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30
    chain_id: int = 1
    explorer_tx_url: str = "https://etherscan.io/tx/"


@dataclass(frozen=True)
class WalletConfig:
    address: str = ""
    private_key: str = ""


@dataclass(frozen=True)
class ContractsConfig:
    zapper: str = "0x6cc707f9097e9e5692bC4Ad21E17Ed01659D5952"
    factory: str = "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"
    weth: str = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
    usdt: str = "0xdAC17F958D2ee523a2206206994597C13D831ec7"


@dataclass(frozen=True)
class GasConfig:
    oracle_url: str = "https://api.etherscan.io/v2/api"
    oracle_api_key: str = ""
    speed_tier: str = "standard"
    multiplier: float = 1.0
    min_priority_fee_gwei: float = 0.1
    max_fee_gwei: float = 200.0
    default_fee_gwei: float = 2.0
    default_priority_fee_gwei: float = 0.1
    cache_ttl_seconds: float = 8.0


@dataclass(frozen=True)
class SlippageConfig:
    dynamic: bool = True
    min_bps: int = 50
    max_bps: int = 2000
    static_bps: int = 2000


@dataclass(frozen=True)
class TransactionConfig:
    deadline_minutes: int = 2
    zap_in_gas_limit: int = 400_000
    zap_out_gas_limit: int = 300_000
    confirmation_timeout: int = 300


@dataclass(frozen=True)
class LedgerConfig:
    path: str = "positions.json"


@dataclass(frozen=True)
class WatcherConfig:
    refresh_interval_seconds: float = 10.0


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    gas: GasConfig = field(default_factory=GasConfig)
    slippage: SlippageConfig = field(default_factory=SlippageConfig)
    transactions: TransactionConfig = field(default_factory=TransactionConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=tuple(e for e in raw.get("rpc_endpoints", []) if e),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
        chain_id=int(raw.get("chain_id", 1)),
        explorer_tx_url=raw.get("explorer_tx_url", ChainConfig.explorer_tx_url),
    )


def _build_wallet(raw: dict[str, Any]) -> WalletConfig:
    return WalletConfig(
        address=raw.get("address", ""),
        private_key=raw.get("private_key", ""),
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    defaults = ContractsConfig()
    return ContractsConfig(
        zapper=raw.get("zapper") or defaults.zapper,
        factory=raw.get("factory") or defaults.factory,
        weth=raw.get("weth") or defaults.weth,
        usdt=raw.get("usdt") or defaults.usdt,
    )


def _build_gas(raw: dict[str, Any]) -> GasConfig:
    return GasConfig(
        oracle_url=raw.get("oracle_url", GasConfig.oracle_url),
        oracle_api_key=raw.get("oracle_api_key", ""),
        speed_tier=str(raw.get("speed_tier", "standard")).lower(),
        multiplier=float(raw.get("multiplier", 1.0)),
        min_priority_fee_gwei=float(raw.get("min_priority_fee_gwei", 0.1)),
        max_fee_gwei=float(raw.get("max_fee_gwei", 200.0)),
        default_fee_gwei=float(raw.get("default_fee_gwei", 2.0)),
        default_priority_fee_gwei=float(raw.get("default_priority_fee_gwei", 0.1)),
        cache_ttl_seconds=float(raw.get("cache_ttl_seconds", 8.0)),
    )


def _build_slippage(raw: dict[str, Any]) -> SlippageConfig:
    return SlippageConfig(
        dynamic=_bool(raw.get("dynamic", True)),
        min_bps=int(raw.get("min_bps", 50)),
        max_bps=int(raw.get("max_bps", 2000)),
        static_bps=int(raw.get("static_bps", 2000)),
    )


def _build_transactions(raw: dict[str, Any]) -> TransactionConfig:
    return TransactionConfig(
        deadline_minutes=int(raw.get("deadline_minutes", 2)),
        zap_in_gas_limit=int(raw.get("zap_in_gas_limit", 400_000)),
        zap_out_gas_limit=int(raw.get("zap_out_gas_limit", 300_000)),
        confirmation_timeout=int(raw.get("confirmation_timeout", 300)),
    )


def _build_telegram(raw: dict[str, Any]) -> TelegramConfig:
    return TelegramConfig(
        enabled=_bool(raw.get("enabled", False)),
        bot_token=raw.get("bot_token", ""),
        chat_id=str(raw.get("chat_id", "")),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from the package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        chain=_build_chain(raw.get("chain", {})),
        wallet=_build_wallet(raw.get("wallet", {})),
        contracts=_build_contracts(raw.get("contracts", {})),
        gas=_build_gas(raw.get("gas", {})),
        slippage=_build_slippage(raw.get("slippage", {})),
        transactions=_build_transactions(raw.get("transactions", {})),
        ledger=LedgerConfig(path=raw.get("ledger", {}).get("path", "positions.json")),
        watcher=WatcherConfig(
            refresh_interval_seconds=float(
                raw.get("watcher", {}).get("refresh_interval_seconds", 10.0)
            )
        ),
        telegram=_build_telegram(raw.get("telegram", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")

    if not cfg.wallet.address:
        raise ValueError("Wallet has no address")
    if not Web3.is_address(cfg.wallet.address):
        raise ValueError(f"Wallet address '{cfg.wallet.address}' is not a valid address")

    if cfg.gas.speed_tier not in SPEED_TIERS:
        raise ValueError(
            f"Unknown gas speed tier '{cfg.gas.speed_tier}' "
            f"(expected one of {', '.join(SPEED_TIERS)})"
        )
    if cfg.gas.multiplier <= 0:
        raise ValueError("Gas multiplier must be positive")
    if cfg.gas.max_fee_gwei < cfg.gas.default_fee_gwei:
        raise ValueError("Gas fee ceiling is below the default fee")

    s = cfg.slippage
    if not 0 < s.min_bps <= s.max_bps <= 10_000:
        raise ValueError("Slippage bounds must satisfy 0 < min_bps <= max_bps <= 10000")
    if not 0 <= s.static_bps <= 10_000:
        raise ValueError("Static slippage must be between 0 and 10000 bps")
