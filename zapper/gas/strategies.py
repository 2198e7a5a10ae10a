"""Fee quote strategies, tried in order by the resolver.

Every strategy exposes the same ``attempt()`` contract returning ``Ok`` with a
``GasQuote`` or ``Err`` with the failure, so the resolver never needs nested
exception handling.
"""
from __future__ import annotations

import logging

from ..cache import TTLCache
from ..config import GasConfig
from ..interfaces.chain import ChainClient
from ..interfaces.gas_oracle import GasOracle
from ..models import (
    GWEI,
    SOURCE_NODE,
    SOURCE_ORACLE,
    SOURCE_STATIC,
    Err,
    GasQuote,
    GasTiers,
    Ok,
    Result,
)

logger = logging.getLogger(__name__)

INSTANT_MULTIPLIER = 1.2


def gwei(value: float) -> int:
    return int(value * GWEI)


def cap_quote(
    base_fee: int,
    priority_fee: int,
    max_fee: int,
    ceiling: int,
    speed_tier: str,
    source: str,
) -> GasQuote:
    """Apply the fee ceiling and keep ``priority_fee <= max_fee``."""
    if max_fee > ceiling:
        logger.info(
            "Capping max fee %.3f gwei at ceiling %.3f gwei",
            max_fee / GWEI,
            ceiling / GWEI,
        )
        max_fee = ceiling
    if priority_fee > max_fee:
        priority_fee = max_fee
    return GasQuote(
        base_fee=base_fee,
        priority_fee=priority_fee,
        max_fee=max_fee,
        speed_tier=speed_tier,
        source=source,
    )


class GasStrategy:
    """Base class: subclasses implement ``fetch``; ``attempt`` never raises."""

    source = ""
    # fee depends on the payment amount; only then is the cache keyed by it
    value_scoped = False

    def __init__(
        self,
        config: GasConfig,
        cache: TTLCache | None = None,
    ) -> None:
        self._config = config
        self._cache = cache

    @property
    def ceiling(self) -> int:
        return gwei(self._config.max_fee_gwei)

    @property
    def min_priority_fee(self) -> int:
        return gwei(self._config.min_priority_fee_gwei)

    async def fetch(self) -> GasQuote:
        raise NotImplementedError

    def cache_key(self, value: int | None = None) -> str:
        if self.value_scoped and value is not None:
            return f"gas:{self.source}:{value}"
        return f"gas:{self.source}"

    async def attempt(self, value: int | None = None) -> Result[GasQuote]:
        key = self.cache_key(value)
        try:
            if self._cache is not None:
                quote = await self._cache.get_or_fetch(
                    key, self._config.cache_ttl_seconds, self.fetch
                )
            else:
                quote = await self.fetch()
        except Exception as e:
            return Err(e)
        return Ok(quote)


class OracleGasStrategy(GasStrategy):
    """Primary tier: named fee tiers from an external gas oracle."""

    source = SOURCE_ORACLE

    def __init__(
        self,
        oracle: GasOracle,
        config: GasConfig,
        cache: TTLCache | None = None,
    ) -> None:
        super().__init__(config, cache)
        self._oracle = oracle

    def select_tier(self, tiers: GasTiers) -> int:
        tier = self._config.speed_tier
        if tier == "safe":
            return tiers.slow
        if tier == "standard":
            return tiers.standard
        if tier == "fast":
            return tiers.fast
        if tier == "instant":
            return int(tiers.fast * INSTANT_MULTIPLIER)
        raise ValueError(f"Unknown speed tier: {tier}")

    def quote_from_tiers(self, tiers: GasTiers) -> GasQuote:
        if tiers.standard <= 0 and tiers.fast <= 0:
            raise ValueError("Gas oracle returned zero fee tiers")

        selected = int(self.select_tier(tiers) * self._config.multiplier)
        priority = max(self.min_priority_fee, selected - tiers.base_fee)
        max_fee = max(selected, tiers.base_fee + priority)
        return cap_quote(
            base_fee=tiers.base_fee,
            priority_fee=priority,
            max_fee=max_fee,
            ceiling=self.ceiling,
            speed_tier=self._config.speed_tier,
            source=self.source,
        )

    async def fetch(self) -> GasQuote:
        return self.quote_from_tiers(await self._oracle.fetch_tiers())


class NodeGasStrategy(GasStrategy):
    """Fallback tier: the connected execution node's own fee suggestion."""

    source = SOURCE_NODE

    def __init__(
        self,
        chain: ChainClient,
        config: GasConfig,
        cache: TTLCache | None = None,
    ) -> None:
        super().__init__(config, cache)
        self._chain = chain

    async def fetch(self) -> GasQuote:
        suggestion = await self._chain.get_fee_suggestion()
        multiplier = self._config.multiplier

        if suggestion.priority_fee is not None:
            priority = max(
                self.min_priority_fee, int(suggestion.priority_fee * multiplier)
            )
            # headroom for two full blocks of base fee growth
            max_fee = 2 * suggestion.base_fee + priority
        elif suggestion.gas_price > 0:
            max_fee = int(suggestion.gas_price * multiplier)
            priority = max(self.min_priority_fee, max_fee - suggestion.base_fee)
        else:
            raise ValueError("Node returned no usable fee data")

        return cap_quote(
            base_fee=suggestion.base_fee,
            priority_fee=priority,
            max_fee=max_fee,
            ceiling=self.ceiling,
            speed_tier=self._config.speed_tier,
            source=self.source,
        )


class StaticGasStrategy(GasStrategy):
    """Last tier: configured default fee. Cannot fail."""

    source = SOURCE_STATIC

    def default_quote(self) -> GasQuote:
        max_fee = gwei(self._config.default_fee_gwei)
        priority = min(gwei(self._config.default_priority_fee_gwei), max_fee)
        return GasQuote(
            base_fee=0,
            priority_fee=priority,
            max_fee=max_fee,
            speed_tier=self._config.speed_tier,
            source=self.source,
        )

    async def fetch(self) -> GasQuote:
        return self.default_quote()

    async def attempt(self, value: int | None = None) -> Result[GasQuote]:
        return Ok(self.default_quote())
