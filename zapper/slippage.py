"""Price-impact based slippage tolerance for constant-product (x*y=k) pools.

All functions are pure and never raise: empty reserves or a zero trade give
zero output and zero impact.
"""
from __future__ import annotations

import math

from .config import SlippageConfig
from .models import SlippagePolicy

BPS_DENOMINATOR = 10_000
FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000

# (upper bound of impact %, tolerance bps); below the first bound the
# configured minimum applies, at or above the last one the impact itself does.
_IMPACT_BANDS: tuple[tuple[float, int], ...] = (
    (2.0, 100),
    (5.0, 200),
    (10.0, 500),
)
_MIN_BAND_CEILING = 0.5


def compute_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Uniswap V2 ``getAmountOut`` including the 0.3% LP fee."""
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def compute_price_impact(amount_in: int, reserve_in: int, reserve_out: int) -> float:
    """Percent move of the out/in reserve ratio caused by the trade."""
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0.0
    amount_out = compute_amount_out(amount_in, reserve_in, reserve_out)
    price_before = reserve_out / reserve_in
    price_after = (reserve_out - amount_out) / (reserve_in + amount_in)
    return abs(price_after - price_before) / price_before * 100


def tolerance_for_impact(impact_pct: float, min_bps: int, max_bps: int) -> int:
    if impact_pct < _MIN_BAND_CEILING:
        return min_bps
    for ceiling, bps in _IMPACT_BANDS:
        if impact_pct < ceiling:
            return min(max(bps, min_bps), max_bps)
    return max(min_bps, min(max_bps, math.ceil(impact_pct * 100)))


def compute_slippage_bps(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    enabled: bool = True,
    config: SlippageConfig | None = None,
) -> int:
    """Slippage tolerance in bps for a trade of ``amount_in`` against the pool."""
    config = config or SlippageConfig()
    if not enabled:
        return config.static_bps
    impact = compute_price_impact(amount_in, reserve_in, reserve_out)
    return tolerance_for_impact(impact, config.min_bps, config.max_bps)


def compute_min_out(projected_out: int, tolerance_bps: int) -> int:
    """Lowest acceptable output once ``tolerance_bps`` of slippage is allowed."""
    if projected_out <= 0:
        return 0
    tolerance_bps = min(max(tolerance_bps, 0), BPS_DENOMINATOR)
    return projected_out * (BPS_DENOMINATOR - tolerance_bps) // BPS_DENOMINATOR


def build_slippage_policy(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    config: SlippageConfig,
) -> SlippagePolicy:
    impact = compute_price_impact(amount_in, reserve_in, reserve_out)
    if config.dynamic:
        tolerance = tolerance_for_impact(impact, config.min_bps, config.max_bps)
    else:
        tolerance = config.static_bps
    return SlippagePolicy(tolerance_bps=tolerance, price_impact_pct=impact)
