"""Live pool valuation — prices, market caps and position snapshots."""
from __future__ import annotations

import logging

from ..cache import TTLCache
from ..config import AppConfig
from ..errors import ZapperError
from ..gas import GasPriceResolver
from ..interfaces.chain import ChainClient
from ..models import GWEI, WEI_PER_ETH, PairInfo, PairReserves, Position, PositionSnapshot

logger = logging.getLogger(__name__)

USDT_DECIMALS = 6
ETH_PRICE_TTL_SECONDS = 30.0


def price_and_market_cap(
    reserve_weth: int, reserve_token: int, token_decimals: int, total_supply: int
) -> tuple[float, float]:
    """Token price and fully diluted market cap, both in ETH."""
    if reserve_weth <= 0 or reserve_token <= 0:
        return 0.0, 0.0
    price_wei = reserve_weth * 10**token_decimals // reserve_token
    market_cap_wei = reserve_weth * total_supply // reserve_token
    return price_wei / WEI_PER_ETH, market_cap_wei / WEI_PER_ETH


def lp_share(reserves: PairReserves, lp_balance: int) -> tuple[float, int]:
    """Pool share in percent and position value in wei (twice the WETH side)."""
    if reserves.total_supply <= 0:
        raise ZapperError("Could not calculate value: Pool has no liquidity.")
    share_pct = (lp_balance * 10_000 // reserves.total_supply) / 100
    weth_share = reserves.reserve_weth * lp_balance // reserves.total_supply
    return share_pct, weth_share * 2


def pnl_pct(initial: float, current: float) -> float:
    if initial <= 0:
        return 0.0
    return (current - initial) / initial * 100


class MarketService:
    """Combine chain reads into the numbers the UI shows."""

    def __init__(
        self,
        chain: ChainClient,
        gas: GasPriceResolver,
        config: AppConfig,
        cache: TTLCache | None = None,
    ) -> None:
        self._chain = chain
        self._gas = gas
        self._config = config
        self._cache = cache if cache is not None else TTLCache()

    async def get_pair_info(self, token_address: str) -> PairInfo:
        pair_address = await self._chain.get_pair(token_address)
        reserves = await self._chain.get_reserves(pair_address)
        token = await self._chain.get_token_info(token_address)
        total_supply = await self._chain.get_total_supply(token_address)

        price, market_cap = price_and_market_cap(
            reserves.reserve_weth, reserves.reserve_token, token.decimals, total_supply
        )
        return PairInfo(pair_address=pair_address, price_eth=price, market_cap_eth=market_cap)

    async def _fetch_eth_price(self) -> float:
        pair = await self._chain.get_pair(self._config.contracts.usdt)
        reserves = await self._chain.get_reserves(pair)
        if reserves.reserve_weth <= 0:
            raise ZapperError("USDT/WETH pair has no WETH liquidity")
        price = reserves.reserve_token * WEI_PER_ETH / reserves.reserve_weth / 10**USDT_DECIMALS
        logger.info("Fetched ETH price from Uniswap: $%.2f", price)
        return price

    async def eth_price_usd(self) -> float:
        """ETH/USD from the USDT/WETH pool; 0 when unavailable."""
        try:
            return await self._cache.get_or_fetch(
                "eth_price_usd", ETH_PRICE_TTL_SECONDS, self._fetch_eth_price
            )
        except Exception as e:
            logger.warning("Could not fetch ETH price from Uniswap: %s. Defaulting to 0.", e)
            return 0.0

    async def fee_estimate(self, gas_limit: int) -> tuple[float, float]:
        """Gas price in gwei and the fee in USD for ``gas_limit`` gas."""
        quote = await self._gas.resolve()
        eth_usd = await self.eth_price_usd()
        fee_eth = quote.fee_for(gas_limit) / WEI_PER_ETH
        return quote.max_fee / GWEI, fee_eth * eth_usd

    async def snapshot(self, position: Position) -> PositionSnapshot:
        token = await self._chain.get_token_info(position.token_address)
        reserves = await self._chain.get_reserves(position.pair_address)
        lp_balance = await self._chain.get_lp_balance(position.pair_address)
        pair_info = await self.get_pair_info(position.token_address)
        eth_usd = await self.eth_price_usd()

        share_pct, value_wei = lp_share(reserves, lp_balance)
        value_eth = value_wei / WEI_PER_ETH
        gas_price_gwei, fee_usd = await self.fee_estimate(
            self._config.transactions.zap_out_gas_limit
        )

        return PositionSnapshot(
            position=position,
            token=token,
            lp_balance=lp_balance,
            pool_share_pct=share_pct,
            value_eth=value_eth,
            value_usd=value_eth * eth_usd,
            initial_market_cap_usd=position.initial_market_cap * eth_usd,
            current_market_cap_usd=pair_info.market_cap_eth * eth_usd,
            market_cap_pnl_pct=pnl_pct(position.initial_market_cap, pair_info.market_cap_eth),
            gas_price_gwei=gas_price_gwei,
            estimated_fee_usd=fee_usd,
        )
