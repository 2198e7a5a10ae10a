"""Gas oracle protocol — fee tiers by name."""
from typing import Protocol

from ..models import GasTiers


class GasOracle(Protocol):
    """Any HTTP service that can answer slow/standard/fast fee tiers."""

    async def fetch_tiers(self) -> GasTiers: ...
