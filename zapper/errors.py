"""Exception hierarchy for the zapper engine."""
from __future__ import annotations


class ZapperError(Exception):
    """Base class for all engine errors."""


class UpstreamError(ZapperError):
    """An external data source (gas oracle, RPC node) failed or returned garbage."""


class PairNotFoundError(ZapperError):
    """No WETH pair exists for the requested token."""


class InsufficientFundsError(ZapperError):
    """The account cannot cover the spend plus the estimated network fee."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(self.user_message())

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)

    def user_message(self) -> str:
        return (
            f"Insufficient balance: need {self.required / 10**18:.6f} ETH "
            f"(amount + estimated fee) but only {self.available / 10**18:.6f} ETH "
            f"is available. Top up at least {self.shortfall / 10**18:.6f} ETH "
            f"or lower the amount."
        )


class ExecutionError(ZapperError):
    """An on-chain transaction reverted, expired or violated its bounds."""

    def __init__(self, reason: str, tx_hash: str | None = None) -> None:
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(reason)


class LedgerWriteError(ZapperError):
    """Persisting the position ledger failed; position history is at risk."""
