"""EVM client for the Uniswap V2 zapper with RPC endpoint fallback."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from ...config import AppConfig
from ...errors import ExecutionError, PairNotFoundError, UpstreamError
from ...models import FeeSuggestion, GasQuote, PairReserves, TokenInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Minimal ABI fragments
ZAPPER_ABI = [
    {
        "name": "zapInETH",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "tokenOther", "type": "address"},
            {"name": "amountAMin", "type": "uint256"},
            {"name": "amountBMin", "type": "uint256"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
            {"name": "slippageToleranceBps", "type": "uint256"},
        ],
        "outputs": [{"name": "liquidity", "type": "uint256"}],
    },
    {
        "name": "zapOut",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "liquidity", "type": "uint256"},
            {"name": "tokenOut", "type": "address"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "amountAMin", "type": "uint256"},
            {"name": "amountBMin", "type": "uint256"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
            {"name": "slippageToleranceBps", "type": "uint256"},
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    },
]

FACTORY_ABI = [
    {"name": "getPair", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "tokenA", "type": "address"}, {"name": "tokenB", "type": "address"}],
     "outputs": [{"name": "pair", "type": "address"}]},
]

PAIR_ABI = [
    {"name": "getReserves", "type": "function", "stateMutability": "view", "inputs": [],
     "outputs": [{"name": "reserve0", "type": "uint112"},
                 {"name": "reserve1", "type": "uint112"},
                 {"name": "blockTimestampLast", "type": "uint32"}]},
    {"name": "token0", "type": "function", "stateMutability": "view", "inputs": [],
     "outputs": [{"type": "address"}]},
    {"name": "totalSupply", "type": "function", "stateMutability": "view", "inputs": [],
     "outputs": [{"type": "uint256"}]},
    {"name": "balanceOf", "type": "function", "stateMutability": "view",
     "inputs": [{"name": "owner", "type": "address"}], "outputs": [{"type": "uint256"}]},
    {"name": "approve", "type": "function", "stateMutability": "nonpayable",
     "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
     "outputs": [{"type": "bool"}]},
]

ERC20_ABI = [
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [],
     "outputs": [{"type": "string"}]},
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [],
     "outputs": [{"type": "string"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [],
     "outputs": [{"type": "uint8"}]},
    {"name": "totalSupply", "type": "function", "stateMutability": "view", "inputs": [],
     "outputs": [{"type": "uint256"}]},
]

APPROVE_GAS_LIMIT = 60_000


def _reason(e: Exception) -> str:
    """Best human-readable revert reason for an exception."""
    message = getattr(e, "message", None) or str(e)
    return message or e.__class__.__name__


class EvmClient:
    """Read pool state and send zapper transactions on an EVM chain."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self.endpoints = list(config.chain.rpc_endpoints)
        self.timeout = config.chain.rpc_timeout
        self.chain_id = config.chain.chain_id
        self.current_rpc_index = 0

        self._providers = [
            AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(url, request_kwargs={"timeout": self.timeout}))
            for url in self.endpoints
        ]

        self.account = Web3.to_checksum_address(config.wallet.address)
        self._signer = (
            Account.from_key(config.wallet.private_key) if config.wallet.private_key else None
        )
        if self._signer is not None and self._signer.address != self.account:
            raise ValueError("Configured private key does not match wallet address")

        contracts = config.contracts
        self.zapper_address = Web3.to_checksum_address(contracts.zapper)
        self.factory_address = Web3.to_checksum_address(contracts.factory)
        self.weth_address = Web3.to_checksum_address(contracts.weth)

    # ------------------------------------------------------------------
    # Endpoint handling
    # ------------------------------------------------------------------

    @property
    def w3(self) -> AsyncWeb3:
        return self._providers[self.current_rpc_index]

    async def _read(self, call: Callable[[AsyncWeb3], Awaitable[T]]) -> T:
        """Run a read-only call, falling back across configured endpoints."""
        last_error: Exception | None = None
        for attempt in range(len(self._providers)):
            rpc_index = (self.current_rpc_index + attempt) % len(self._providers)
            try:
                result = await call(self._providers[rpc_index])
            except ContractLogicError:
                raise
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", self.endpoints[rpc_index], e)
                continue

            if rpc_index != self.current_rpc_index:
                logger.info("Switched to RPC endpoint: %s", self.endpoints[rpc_index])
                self.current_rpc_index = rpc_index
            return result

        raise UpstreamError(f"All RPC endpoints failed. Last error: {last_error}")

    def _contract(self, w3: AsyncWeb3, address: str, abi: list[dict[str, Any]]):
        return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_pair(self, token_address: str) -> str:
        token = Web3.to_checksum_address(token_address)
        pair = await self._read(
            lambda w3: self._contract(w3, self.factory_address, FACTORY_ABI)
            .functions.getPair(self.weth_address, token)
            .call()
        )
        if int(pair, 16) == 0:
            raise PairNotFoundError(f"Pair does not exist for token {token}")
        return Web3.to_checksum_address(pair)

    async def get_reserves(self, pair_address: str) -> PairReserves:
        async def _call(w3: AsyncWeb3) -> PairReserves:
            pair = self._contract(w3, pair_address, PAIR_ABI)
            reserve0, reserve1, _ = await pair.functions.getReserves().call()
            token0 = await pair.functions.token0().call()
            total_supply = await pair.functions.totalSupply().call()
            if Web3.to_checksum_address(token0) == self.weth_address:
                reserve_weth, reserve_token = reserve0, reserve1
            else:
                reserve_weth, reserve_token = reserve1, reserve0
            return PairReserves(
                pair_address=Web3.to_checksum_address(pair_address),
                reserve_weth=int(reserve_weth),
                reserve_token=int(reserve_token),
                total_supply=int(total_supply),
            )

        return await self._read(_call)

    async def get_token_info(self, token_address: str) -> TokenInfo:
        async def _call(w3: AsyncWeb3) -> TokenInfo:
            token = self._contract(w3, token_address, ERC20_ABI)
            name = await token.functions.name().call()
            symbol = await token.functions.symbol().call()
            decimals = await token.functions.decimals().call()
            return TokenInfo(name=name, symbol=symbol, decimals=int(decimals))

        try:
            return await self._read(_call)
        except Exception as e:
            logger.warning(
                "Could not fetch token info for %s (%s); falling back to defaults",
                token_address,
                e,
            )
            return TokenInfo(name="Unknown Token", symbol="N/A", decimals=18)

    async def get_total_supply(self, token_address: str) -> int:
        return int(
            await self._read(
                lambda w3: self._contract(w3, token_address, ERC20_ABI)
                .functions.totalSupply()
                .call()
            )
        )

    async def get_balance(self, address: str | None = None) -> int:
        target = Web3.to_checksum_address(address or self.account)
        return int(await self._read(lambda w3: w3.eth.get_balance(target)))

    async def get_lp_balance(self, pair_address: str) -> int:
        return int(
            await self._read(
                lambda w3: self._contract(w3, pair_address, PAIR_ABI)
                .functions.balanceOf(self.account)
                .call()
            )
        )

    async def get_fee_suggestion(self) -> FeeSuggestion:
        async def _call(w3: AsyncWeb3) -> FeeSuggestion:
            block = await w3.eth.get_block("latest")
            base_fee = int(block.get("baseFeePerGas", 0) or 0)
            gas_price = int(await w3.eth.gas_price)
            priority: int | None = None
            if base_fee:
                try:
                    priority = int(await w3.eth.max_priority_fee)
                except Exception as e:
                    logger.debug("eth_maxPriorityFeePerGas unavailable: %s", e)
                    priority = max(gas_price - base_fee, 0)
            return FeeSuggestion(base_fee=base_fee, priority_fee=priority, gas_price=gas_price)

        return await self._read(_call)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _require_signer(self):
        if self._signer is None:
            raise ExecutionError("No private key configured; transactions cannot be signed")
        return self._signer

    async def _send(self, fn, value: int, gas: GasQuote, gas_limit: int) -> str:
        signer = self._require_signer()
        w3 = self.w3
        try:
            nonce = await w3.eth.get_transaction_count(self.account, "pending")
            tx = await fn.build_transaction(
                {
                    "from": self.account,
                    "value": value,
                    "nonce": nonce,
                    "gas": gas_limit,
                    "chainId": self.chain_id,
                    **gas.to_tx_params(),
                }
            )
            signed = signer.sign_transaction(tx)
            tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as e:
            raise ExecutionError(_reason(e)) from e
        except ValueError as e:
            # node-side rejections (underpriced, nonce too low, insufficient funds)
            raise ExecutionError(_reason(e)) from e
        except Exception as e:
            raise ExecutionError(f"Transaction submission failed: {e}") from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info("Transaction submitted: %s", tx_hex)
        return tx_hex

    async def estimate_zap_in_gas(
        self, token_address: str, amount_in: int, deadline: int, slippage_bps: int
    ) -> int:
        zapper = self._contract(self.w3, self.zapper_address, ZAPPER_ABI)
        fn = zapper.functions.zapInETH(
            Web3.to_checksum_address(token_address), 0, 0, self.account, deadline, slippage_bps
        )
        try:
            return int(await fn.estimate_gas({"from": self.account, "value": amount_in}))
        except ContractLogicError as e:
            raise ExecutionError(_reason(e)) from e
        except Exception as e:
            raise UpstreamError(f"Gas estimation failed: {e}") from e

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
    ) -> str:
        zapper = self._contract(self.w3, self.zapper_address, ZAPPER_ABI)
        fn = zapper.functions.zapInETH(
            Web3.to_checksum_address(token_address),
            amount_token_min,
            amount_weth_min,
            self.account,
            deadline,
            slippage_bps,
        )
        return await self._send(fn, amount_in, gas, gas_limit)

    async def approve_lp(self, pair_address: str, amount: int, gas: GasQuote) -> str:
        pair = self._contract(self.w3, pair_address, PAIR_ABI)
        fn = pair.functions.approve(self.zapper_address, amount)
        return await self._send(fn, 0, gas, APPROVE_GAS_LIMIT)

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
    ) -> str:
        zapper = self._contract(self.w3, self.zapper_address, ZAPPER_ABI)
        fn = zapper.functions.zapOut(
            self.weth_address,
            Web3.to_checksum_address(token_address),
            liquidity,
            self.weth_address,
            amount_out_min,
            amount_weth_min,
            amount_token_min,
            self.account,
            deadline,
            slippage_bps,
        )
        return await self._send(fn, 0, gas, gas_limit)

    async def wait_for_confirmation(self, tx_hash: str) -> None:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._config.transactions.confirmation_timeout
            )
        except TimeExhausted as e:
            raise ExecutionError(f"Transaction {tx_hash} not confirmed in time", tx_hash) from e
        except Exception as e:
            raise ExecutionError(
                f"Could not confirm transaction {tx_hash}: {e}", tx_hash
            ) from e

        if receipt.get("status") != 1:
            raise ExecutionError(f"Transaction {tx_hash} reverted", tx_hash)
        logger.info("Transaction confirmed: %s (block %s)", tx_hash, receipt.get("blockNumber"))
