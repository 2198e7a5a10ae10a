"""Protocol interfaces for the zapper engine's external collaborators."""
from .chain import ChainClient
from .gas_oracle import GasOracle
from .ledger_store import LedgerStore
from .notifier import ChatTransport

__all__ = ["ChainClient", "ChatTransport", "GasOracle", "LedgerStore"]
