"""
Direct client for the liquidation heatmap endpoint.

Fetches the same JSON the chart page requests, without a browser. Single
attempt per call: callers decide what to do on failure.
"""

import logging
from typing import Any, Optional

import httpx

from src.heatmapcapture.config import ApiConfig
from src.heatmapcapture.exceptions import SourceFetchError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "accept": "application/json, text/plain, */*",
    "client": "web",
    "web-version": "101",
    "user-agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36"
    ),
}


class HeatmapClient:
    """Fetches raw heatmap responses over HTTP."""

    HEATMAP_ENDPOINT = "/api/liqMap/getLiqHeatMap"
    API_KEY_HEADER = "coinank-apikey"

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Endpoint configuration (environment defaults if omitted)
            transport: Optional custom transport for testing
        """
        self.config = config or ApiConfig()

        headers = dict(DEFAULT_HEADERS)
        if self.config.api_key:
            headers[self.API_KEY_HEADER] = self.config.api_key

        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=headers,
            timeout=httpx.Timeout(self.config.timeout),
            transport=transport,
        )

    async def fetch_raw(
        self,
        symbol: Optional[str] = None,
        exchange: Optional[str] = None,
        interval: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Fetch the raw response envelope.

        Args:
            symbol: Trading pair (default from config)
            exchange: Exchange name (default from config)
            interval: Heatmap range such as "3d" (default from config)

        Returns:
            Decoded JSON response

        Raises:
            SourceFetchError: On transport errors, HTTP errors or a non-JSON body
        """
        params = {
            "exchangeName": exchange or self.config.exchange,
            "symbol": symbol or self.config.symbol,
            "interval": interval or self.config.interval,
        }
        logger.info(
            f"Fetching heatmap {params['exchangeName']}/{params['symbol']} ({params['interval']})"
        )

        try:
            response = await self._client.get(self.HEATMAP_ENDPOINT, params=params)
        except httpx.RequestError as e:
            raise SourceFetchError(f"Request to {self.HEATMAP_ENDPOINT} failed: {e}") from e

        if response.status_code >= 400:
            raise SourceFetchError(
                f"Heatmap endpoint returned HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SourceFetchError(f"Heatmap endpoint returned a non-JSON body: {e}") from e

        if isinstance(data, dict) and data.get("success") is False:
            logger.warning(f"Heatmap endpoint reported failure: {data.get('msg') or data}")
        return data

    async def close(self):
        """Close HTTP client connections."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
