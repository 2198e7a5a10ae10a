"""Chain client implementations."""
from .evm import EvmClient

__all__ = ["EvmClient"]
