"""Position ledger — cost basis of open LP positions, persisted as JSON.

The ledger assumes a single writer. Each mutation re-reads the whole store,
applies the change and rewrites the whole store; two writers running
concurrently can overwrite each other's update (last writer wins).
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable

from web3 import Web3

from .errors import LedgerWriteError
from .interfaces.ledger_store import LedgerStore
from .models import Position

logger = logging.getLogger(__name__)

FULL_EXIT_BPS = 10_000


def _now_ms() -> int:
    return int(time.time() * 1000)


class JsonFileStore:
    """Read-whole / write-whole JSON list store."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            logger.info("%s not found; starting with no positions", self.path)
            return []

        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return []

        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a list of positions")
        return data

    def write(self, records: list[dict[str, Any]]) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class PositionLedger:
    """Ordered positions with weighted-average merge on re-entry."""

    def __init__(self, store: LedgerStore, clock: Callable[[], int] = _now_ms) -> None:
        self._store = store
        self._clock = clock

    @staticmethod
    def normalize(token_address: str) -> str:
        return Web3.to_checksum_address(token_address)

    def list(self) -> list[Position]:
        positions = [Position.from_record(r) for r in self._store.read()]
        logger.debug("Loaded %d positions", len(positions))
        return positions

    def get(self, index: int) -> Position | None:
        positions = self.list()
        if 0 <= index < len(positions):
            return positions[index]
        return None

    def find(self, token_address: str) -> tuple[int, Position] | None:
        key = self.normalize(token_address)
        for i, position in enumerate(self.list()):
            if self.normalize(position.token_address) == key:
                return i, position
        return None

    def record_entry(
        self,
        token_address: str,
        pair_address: str,
        base_amount: float,
        market_cap_at_entry: float,
    ) -> int:
        """Add ``base_amount`` to the position for the token; return its index."""
        token = self.normalize(token_address)
        positions = self.list()
        now = self._clock()

        for i, existing in enumerate(positions):
            if self.normalize(existing.token_address) != token:
                continue

            old_base = existing.initial_base_value
            total = old_base + base_amount
            if total > 0:
                market_cap = (
                    existing.initial_market_cap * old_base
                    + market_cap_at_entry * base_amount
                ) / total
            else:
                market_cap = market_cap_at_entry

            positions[i] = Position(
                token_address=token,
                pair_address=existing.pair_address or pair_address,
                initial_base_value=total,
                initial_market_cap=market_cap,
                timestamp=now,
            )
            logger.info(
                "Merged entry into position %s: base %.6f -> %.6f, market cap %.4f",
                token,
                old_base,
                total,
                market_cap,
            )
            self._save(positions)
            return i

        positions.append(
            Position(
                token_address=token,
                pair_address=Web3.to_checksum_address(pair_address) if pair_address else "",
                initial_base_value=base_amount,
                initial_market_cap=market_cap_at_entry,
                timestamp=now,
            )
        )
        logger.info("Created position %s with base %.6f", token, base_amount)
        self._save(positions)
        return len(positions) - 1

    def record_exit(self, token_address: str, exit_fraction_bps: int) -> bool:
        """Apply an exit; return True when the position was removed.

        Only a full exit changes the ledger. Partial exits keep the cost basis
        as-is; current value is always derived from the chain.
        """
        if not 0 < exit_fraction_bps <= FULL_EXIT_BPS:
            raise ValueError(f"exit_fraction_bps must be in (0, 10000], got {exit_fraction_bps}")

        if exit_fraction_bps != FULL_EXIT_BPS:
            logger.info(
                "Partial exit (%d bps) of %s leaves cost basis unchanged",
                exit_fraction_bps,
                token_address,
            )
            return False

        token = self.normalize(token_address)
        positions = self.list()
        remaining = [p for p in positions if self.normalize(p.token_address) != token]
        if len(remaining) == len(positions):
            logger.warning("Full exit for %s but no such position in ledger", token)
            return False

        logger.info("Removed position %s", token)
        self._save(remaining)
        return True

    def _save(self, positions: list[Position]) -> None:
        try:
            self._store.write([p.to_record() for p in positions])
        except Exception as e:
            logger.error("Failed to save %d positions: %s", len(positions), e)
            raise LedgerWriteError(f"Failed to save positions: {e}") from e
        logger.info("Saved %d positions", len(positions))


def next_index(index: int, count: int) -> int:
    return (index + 1) % count if count else 0


def prev_index(index: int, count: int) -> int:
    return (index - 1 + count) % count if count else 0
