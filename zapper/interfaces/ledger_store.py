"""Ledger store protocol — durable whole-collection storage."""
from typing import Any, Protocol


class LedgerStore(Protocol):
    """Read-whole / write-whole store; an absent store reads as an empty list."""

    def read(self) -> list[dict[str, Any]]: ...

    def write(self, records: list[dict[str, Any]]) -> None: ...
