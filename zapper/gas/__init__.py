"""Gas price resolution with tiered fallback."""
from .resolver import GasPriceResolver, build_gas_resolver
from .strategies import GasStrategy, NodeGasStrategy, OracleGasStrategy, StaticGasStrategy

__all__ = [
    "GasPriceResolver",
    "GasStrategy",
    "NodeGasStrategy",
    "OracleGasStrategy",
    "StaticGasStrategy",
    "build_gas_resolver",
]
