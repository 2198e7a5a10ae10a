"""Etherscan-compatible gas tracker oracle."""
import logging
import ssl
from decimal import Decimal, InvalidOperation

import aiohttp
import certifi

from ..config import ChainConfig, GasConfig
from ..errors import UpstreamError
from ..models import GWEI, GasTiers

logger = logging.getLogger(__name__)


def _gwei_to_wei(raw: object, field_name: str) -> int:
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError) as e:
        raise UpstreamError(f"Gas oracle field {field_name} is not numeric: {raw!r}") from e
    if not value.is_finite():
        raise UpstreamError(f"Gas oracle field {field_name} is not finite: {raw!r}")
    if value < 0:
        raise UpstreamError(f"Gas oracle field {field_name} is negative: {raw!r}")
    return int(value * GWEI)


class EtherscanGasOracle:
    """Fetch slow/standard/fast fee tiers from an Etherscan-style gas tracker.

    Any service answering ``module=gastracker&action=gasoracle`` with
    ``SafeGasPrice``/``ProposeGasPrice``/``FastGasPrice``/``suggestBaseFee``
    (all in gwei) can be plugged in through ``oracle_url``.
    """

    def __init__(self, config: GasConfig, chain: ChainConfig, timeout: int = 10) -> None:
        self.url = config.oracle_url
        self.api_key = config.oracle_api_key
        self.chain_id = chain.chain_id
        self.timeout = timeout

    async def fetch_tiers(self) -> GasTiers:
        params = {
            "chainid": str(self.chain_id),
            "module": "gastracker",
            "action": "gasoracle",
        }
        if self.api_key:
            params["apikey"] = self.api_key

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    self.url,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        raise UpstreamError(f"Gas oracle HTTP {response.status}")
                    data = await response.json(content_type=None)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Gas oracle request failed: {e}") from e

        if not isinstance(data, dict) or str(data.get("status")) != "1":
            message = data.get("result") if isinstance(data, dict) else data
            raise UpstreamError(f"Gas oracle returned an error: {message}")

        result = data.get("result")
        if not isinstance(result, dict):
            raise UpstreamError(f"Gas oracle result is malformed: {result!r}")

        try:
            tiers = GasTiers(
                slow=_gwei_to_wei(result["SafeGasPrice"], "SafeGasPrice"),
                standard=_gwei_to_wei(result["ProposeGasPrice"], "ProposeGasPrice"),
                fast=_gwei_to_wei(result["FastGasPrice"], "FastGasPrice"),
                base_fee=_gwei_to_wei(result.get("suggestBaseFee", 0), "suggestBaseFee"),
            )
        except KeyError as e:
            raise UpstreamError(f"Gas oracle result missing {e}") from e

        logger.debug(
            "Gas oracle tiers (gwei): slow=%.3f standard=%.3f fast=%.3f base=%.3f",
            tiers.slow / GWEI,
            tiers.standard / GWEI,
            tiers.fast / GWEI,
            tiers.base_fee / GWEI,
        )
        return tiers
