"""Chain client protocol — execution node / contract-call abstraction."""
from typing import Protocol

from ..models import FeeSuggestion, GasQuote, PairReserves, TokenInfo


class ChainClient(Protocol):
    """Abstract interface for the on-chain reads and writes the engine needs."""

    account: str

    async def get_pair(self, token_address: str) -> str: ...

    async def get_reserves(self, pair_address: str) -> PairReserves: ...

    async def get_token_info(self, token_address: str) -> TokenInfo: ...

    async def get_total_supply(self, token_address: str) -> int: ...

    async def get_balance(self, address: str | None = None) -> int: ...

    async def get_lp_balance(self, pair_address: str) -> int: ...

    async def get_fee_suggestion(self) -> FeeSuggestion: ...

    async def estimate_zap_in_gas(
        self, token_address: str, amount_in: int, deadline: int, slippage_bps: int
    ) -> int: ...

    async def submit_zap_in(
        self,
        token_address: str,
        amount_in: int,
        amount_token_min: int,
        amount_weth_min: int,
        deadline: int,
        slippage_bps: int,
        gas: GasQuote,
        gas_limit: int,
    ) -> str: ...

    async def approve_lp(self, pair_address: str, amount: int, gas: GasQuote) -> str: ...

    async def submit_zap_out(
        self,
        token_address: str,
        liquidity: int,
        amount_out_min: int,
        amount_token_min: int,
        amount_weth_min: int,
        deadline: int,
        slippage_bps: int,
        gas: GasQuote,
        gas_limit: int,
    ) -> str: ...

    async def wait_for_confirmation(self, tx_hash: str) -> None: ...
