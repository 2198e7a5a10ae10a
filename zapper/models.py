"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")

GWEI = 10**9
WEI_PER_ETH = 10**18

SOURCE_ORACLE = "primary-oracle"
SOURCE_NODE = "node-fallback"
SOURCE_STATIC = "static-default"


@dataclass(frozen=True)
class GasQuote:
    """EIP-1559 fee quote in wei.

    ``priority_fee`` is clamped to ``max_fee`` on construction; a tip above the
    fee cap is rejected by the network.
    """

    base_fee: int
    priority_fee: int
    max_fee: int
    speed_tier: str
    source: str

    def __post_init__(self) -> None:
        if self.priority_fee > self.max_fee:
            object.__setattr__(self, "priority_fee", self.max_fee)

    @property
    def max_fee_gwei(self) -> float:
        return self.max_fee / GWEI

    def fee_for(self, gas_limit: int) -> int:
        """Worst-case fee in wei for ``gas_limit`` units of gas."""
        return gas_limit * self.max_fee

    def to_tx_params(self) -> dict[str, int]:
        return {
            "maxFeePerGas": self.max_fee,
            "maxPriorityFeePerGas": self.priority_fee,
        }


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    fetched_at: float


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: Exception


Result = Union[Ok[T], Err]


@dataclass(frozen=True)
class GasTiers:
    """Raw oracle answer, in wei."""

    slow: int
    standard: int
    fast: int
    base_fee: int


@dataclass(frozen=True)
class FeeSuggestion:
    """What the execution node suggests, in wei. ``priority_fee`` is None on legacy chains."""

    base_fee: int
    priority_fee: int | None
    gas_price: int


@dataclass(frozen=True)
class SlippagePolicy:
    tolerance_bps: int
    price_impact_pct: float


@dataclass(frozen=True)
class Position:
    """Cost basis of one LP position, keyed by checksummed token address."""

    token_address: str
    pair_address: str
    initial_base_value: float
    initial_market_cap: float
    timestamp: int

    def to_record(self) -> dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "pairAddress": self.pair_address,
            "initialEthValue": str(self.initial_base_value),
            "initialMarketCap": str(self.initial_market_cap),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Position":
        return cls(
            token_address=record["tokenAddress"],
            pair_address=record.get("pairAddress", ""),
            initial_base_value=float(record.get("initialEthValue", 0) or 0),
            initial_market_cap=float(record.get("initialMarketCap", 0) or 0),
            timestamp=int(record.get("timestamp", 0) or 0),
        )


@dataclass(frozen=True)
class TokenInfo:
    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class PairReserves:
    """Reserves of a WETH pair, oriented so ``reserve_weth`` is the base side."""

    pair_address: str
    reserve_weth: int
    reserve_token: int
    total_supply: int = 0


@dataclass(frozen=True)
class PairInfo:
    pair_address: str
    price_eth: float
    market_cap_eth: float


@dataclass(frozen=True)
class BalanceCheck:
    balance: int
    spend: int
    estimated_fee: int

    @property
    def required(self) -> int:
        return self.spend + self.estimated_fee

    @property
    def sufficient(self) -> bool:
        return self.balance >= self.required

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.balance)


@dataclass(frozen=True)
class PositionSnapshot:
    """Live view of a position, derived from the chain at display time."""

    position: Position
    token: TokenInfo
    lp_balance: int
    pool_share_pct: float
    value_eth: float
    value_usd: float
    initial_market_cap_usd: float
    current_market_cap_usd: float
    market_cap_pnl_pct: float
    gas_price_gwei: float
    estimated_fee_usd: float


@dataclass(frozen=True)
class ZapInPlan:
    """Everything needed to submit a zap-in, computed before sending."""

    token_address: str
    pair_address: str
    amount_in: int
    market_cap_eth: float
    slippage: SlippagePolicy
    amount_token_min: int
    amount_weth_min: int
    gas: GasQuote
    gas_limit: int
    balance: BalanceCheck
    deadline: int


@dataclass(frozen=True)
class ZapResult:
    tx_hash: str
    position_index: int | None = None
    removed: bool = False
