# coding: utf-8
"""
CoinMarketCap API Service for live crypto quotes

Fetches the latest USD quotes for the tracked wallet assets in one
request to the Pro API (v2 quotes endpoint, looked up by asset id).

Requires API key (COINMARKETCAP_API_KEY)
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, List, Iterable

import aiohttp
from loguru import logger

from config.config import (
    COINMARKETCAP_API_KEY,
    COINMARKETCAP_BASE_URL,
    COINMARKETCAP_TIMEOUT_SEC,
    TRACKED_ASSET_IDS,
)
from src.utils.timeutils import parse_iso8601


class QuoteProviderError(Exception):
    """Raised when CoinMarketCap cannot deliver usable quotes"""
    pass


@dataclass(frozen=True)
class AssetQuote:
    """Latest USD quote for one asset"""

    asset_id: int
    name: str
    symbol: str
    slug: str
    price: Decimal
    volume_24h: Optional[Decimal] = None
    volume_change_24h: Optional[Decimal] = None
    percent_change_1h: Optional[Decimal] = None
    percent_change_24h: Optional[Decimal] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_payload(cls, coin: Dict[str, Any]) -> "AssetQuote":
        """
        Build a quote from one entry of the `data` object

        Raises:
            QuoteProviderError: If required fields are missing or invalid
        """
        try:
            usd = coin["quote"]["USD"]
            price = _to_decimal(usd["price"])
            if price is None:
                raise ValueError("price is null")

            return cls(
                asset_id=int(coin["id"]),
                name=str(coin["name"]),
                symbol=str(coin["symbol"]).upper(),
                slug=str(coin["slug"]).lower(),
                price=price,
                volume_24h=_to_decimal(usd.get("volume_24h")),
                volume_change_24h=_to_decimal(usd.get("volume_change_24h")),
                percent_change_1h=_to_decimal(usd.get("percent_change_1h")),
                percent_change_24h=_to_decimal(usd.get("percent_change_24h")),
                last_updated=parse_iso8601(usd.get("last_updated")),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise QuoteProviderError(f"Malformed CoinMarketCap quote: {e!r}") from e


def _to_decimal(value: Any) -> Optional[Decimal]:
    # str() first so floats keep their printed value
    if value is None:
        return None
    return Decimal(str(value))


class CoinMarketCapService:
    """
    Service for fetching live quotes from CoinMarketCap API

    One GET per call, no retries: a failed refresh is simply retried by
    the next scheduled run.

    Authentication:
    - X-CMC_PRO_API_KEY header (COINMARKETCAP_API_KEY in .env)
    """

    QUOTES_ENDPOINT = "/v2/cryptocurrency/quotes/latest"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = COINMARKETCAP_BASE_URL,
        timeout_sec: int = COINMARKETCAP_TIMEOUT_SEC,
    ):
        """
        Initialize CoinMarketCap service

        Args:
            api_key: CoinMarketCap API key (loaded from config if not provided)
            base_url: API root
            timeout_sec: Total request timeout
        """
        self.api_key = api_key or COINMARKETCAP_API_KEY
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)

        if not self.api_key:
            logger.warning(
                "CoinMarketCap API key not configured. "
                "Live price refresh will fail. "
                "Set COINMARKETCAP_API_KEY in .env to enable."
            )

    async def _make_request(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make request to CoinMarketCap API

        Args:
            endpoint: API endpoint (e.g., '/v2/cryptocurrency/quotes/latest')
            params: Query parameters

        Returns:
            JSON response

        Raises:
            QuoteProviderError: On missing key, non-200 status, transport
                error, timeout or a non-JSON body
        """
        if not self.api_key:
            raise QuoteProviderError("CoinMarketCap API key not configured")

        url = f"{self.base_url}{endpoint}"
        headers = {
            "X-CMC_PRO_API_KEY": self.api_key,
            "Accept": "application/json",
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, params=params or {}, headers=headers) as response:
                    if response.status == 200:
                        return await response.json()

                    body = await response.text()
                    if response.status == 401:
                        raise QuoteProviderError(
                            "CoinMarketCap API authentication failed. Check your API key."
                        )
                    if response.status == 429:
                        raise QuoteProviderError("CoinMarketCap rate limit exceeded")
                    raise QuoteProviderError(
                        f"CoinMarketCap API error: {response.status} - {body[:200]}"
                    )

        except asyncio.TimeoutError as e:
            raise QuoteProviderError(
                f"CoinMarketCap request timed out after {self.timeout.total}s"
            ) from e
        except aiohttp.ClientError as e:
            raise QuoteProviderError(f"CoinMarketCap request failed: {e}") from e
        except ValueError as e:
            # Invalid JSON body
            raise QuoteProviderError(f"CoinMarketCap returned invalid JSON: {e}") from e

    async def get_quotes_by_ids(
        self, asset_ids: Optional[Iterable[int]] = None
    ) -> List[AssetQuote]:
        """
        Get latest USD quotes for the given CoinMarketCap ids

        Args:
            asset_ids: CoinMarketCap ids (default: all tracked wallet assets)

        Returns:
            One AssetQuote per asset present in the response

        Raises:
            QuoteProviderError: If the request fails or the body is malformed

        Example response body:
            {
                "status": {"error_code": 0, ...},
                "data": {
                    "1": {
                        "id": 1, "name": "Bitcoin", "symbol": "BTC", "slug": "bitcoin",
                        "quote": {"USD": {"price": 67000.12, "volume_24h": ..., ...}}
                    },
                    ...
                }
            }
        """
        ids = list(asset_ids) if asset_ids is not None else list(TRACKED_ASSET_IDS.values())
        if not ids:
            return []

        response = await self._make_request(
            self.QUOTES_ENDPOINT,
            params={"id": ",".join(str(asset_id) for asset_id in ids)},
        )

        data = response.get("data") if isinstance(response, dict) else None
        if not isinstance(data, dict):
            raise QuoteProviderError("CoinMarketCap response has no 'data' object")

        quotes: List[AssetQuote] = []
        for entry in data.values():
            # Lookups by symbol return a list per key, lookups by id a single object
            coins = entry if isinstance(entry, list) else [entry]
            for coin in coins:
                if not isinstance(coin, dict):
                    raise QuoteProviderError(f"Unexpected quote entry: {coin!r}")
                quotes.append(AssetQuote.from_payload(coin))

        if not quotes:
            raise QuoteProviderError(f"CoinMarketCap returned no quotes for ids {ids}")

        logger.debug(f"Fetched {len(quotes)} CoinMarketCap quotes for ids {ids}")
        return quotes
