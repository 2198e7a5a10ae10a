"""Gas price resolver — first successful strategy wins."""
from __future__ import annotations

import logging
from typing import Sequence

from ..cache import TTLCache
from ..config import AppConfig
from ..interfaces.chain import ChainClient
from ..interfaces.gas_oracle import GasOracle
from ..models import GWEI, Err, GasQuote, Ok
from .strategies import GasStrategy, NodeGasStrategy, OracleGasStrategy, StaticGasStrategy

logger = logging.getLogger(__name__)


class GasPriceResolver:
    """Resolve a fee quote through an ordered list of strategies.

    The last strategy is expected to be infallible; if every strategy still
    returns ``Err`` the resolver falls back to a static quote of its own, so
    ``resolve`` never raises.
    """

    def __init__(self, strategies: Sequence[GasStrategy], fallback: StaticGasStrategy) -> None:
        self._strategies = list(strategies)
        self._fallback = fallback

    @property
    def strategies(self) -> list[GasStrategy]:
        return list(self._strategies)

    async def resolve(self, value: int | None = None) -> GasQuote:
        """Return a usable quote for a payment of ``value`` wei.

        ``value`` only reaches the cache key of strategies whose fee depends
        on it; the shipped tiers share one quote across amounts.
        """
        for strategy in self._strategies:
            result = await strategy.attempt(value)
            if isinstance(result, Ok):
                quote = result.value
                logger.info(
                    "Gas quote from %s: max %.3f gwei, priority %.3f gwei (%s)",
                    quote.source,
                    quote.max_fee / GWEI,
                    quote.priority_fee / GWEI,
                    quote.speed_tier,
                )
                return quote
            if isinstance(result, Err):
                logger.warning("Gas tier %s failed: %s", strategy.source, result.error)

        quote = self._fallback.default_quote()
        logger.warning(
            "All gas tiers failed; using static default %.3f gwei", quote.max_fee / GWEI
        )
        return quote


def build_gas_resolver(
    config: AppConfig,
    oracle: GasOracle,
    chain: ChainClient,
    cache: TTLCache | None = None,
) -> GasPriceResolver:
    """Standard chain: oracle, then node, then static default."""
    cache = cache if cache is not None else TTLCache()
    static = StaticGasStrategy(config.gas)
    return GasPriceResolver(
        [
            OracleGasStrategy(oracle, config.gas, cache),
            NodeGasStrategy(chain, config.gas, cache),
            static,
        ],
        fallback=static,
    )
