"""External data oracles."""
from .gas_oracle import EtherscanGasOracle

__all__ = ["EtherscanGasOracle"]
