"""
TradingDesk - Etherscan Gas Oracle Client

Fetches safe/propose/fast gas price tiers. Needs a caller-supplied key;
without one the client answers None without touching the network.
"""

from __future__ import annotations

from typing import Any

from tradingdesk.config import EtherscanConfig, settings
from tradingdesk.exceptions import FetchCancelledError, MalformedResponseError, SourcesExhaustedError
from tradingdesk.ingestion.cascade import CancellationToken, JsonFetcher, SourceStrategy, first_success
from tradingdesk.logging import get_logger
from tradingdesk.models import GasOracle

logger = get_logger(__name__, component="etherscan_client")


class EtherscanClient:
    """Gas tracker endpoint of the Etherscan API."""

    def __init__(
        self,
        fetcher: JsonFetcher,
        api_key: str | None = None,
        config: EtherscanConfig | None = None,
    ):
        self._fetcher = fetcher
        self.config = config or settings.etherscan
        self.api_key = api_key if api_key is not None else self.config.api_key

    async def fetch_gas_oracle(self, token: CancellationToken | None = None) -> GasOracle | None:
        """Return current gas tiers, or None if no key is set or every attempt fails."""
        if not self.api_key:
            logger.debug("gas_oracle_skipped", reason="no_api_key")
            return None

        params = {"module": "gastracker", "action": "gasoracle", "apikey": self.api_key}

        async def from_etherscan() -> GasOracle:
            data = await self._fetcher.get_json(self.config.base_url, params=params, token=token)
            return _parse_gas_oracle(data)

        try:
            return await first_success(
                [SourceStrategy("etherscan", from_etherscan)],
                token=token,
            )
        except FetchCancelledError:
            raise
        except SourcesExhaustedError as e:
            logger.warning("gas_oracle_unavailable", error=str(e.last_error))
            return None


def _parse_gas_oracle(data: Any) -> GasOracle:
    if not isinstance(data, dict) or data.get("status") != "1" or not data.get("result"):
        message = data.get("message") if isinstance(data, dict) else None
        raise MalformedResponseError(f"Etherscan returned no gas data: {message}")
    return GasOracle.model_validate(data["result"])
