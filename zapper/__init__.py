"""Single-sided Uniswap V2 liquidity zapper."""

__version__ = "0.1.0"
