"""CoinGecko fetchers.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={ids}&vs_currencies=usd
Rate Limit: 30 calls/min (free), higher with API key

Two adapters share this endpoint: the majors basket, fetched in one batch
request, and a single-asset fetcher with a shorter timeout so that a slow
answer for one coin cannot hold up the basket.
"""

import logging
from typing import ClassVar, Mapping

import httpx

from ..tokens import normalize_symbol
from .base import BaseFetcher, parse_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for the CoinGecko majors basket.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    Pro keys need no prefix: API_KEY_COINGECKO=xxxxx
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Map symbols to CoinGecko IDs
    COIN_IDS: ClassVar[Mapping[str, str]] = {
        "ETH": "ethereum",
        "SOL": "solana",
        "MATIC": "matic-network",
        "BNB": "binancecoin",
        "AVAX": "avalanche-2",
        "FTM": "fantom",
    }

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        coin_ids: Mapping[str, str] | None = None,
    ):
        """Initialize with optional demo: prefix handling.

        :param coin_ids: Optional override of the symbol to CoinGecko ID map.
        """
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]  # Strip "demo:" prefix
        super().__init__(api_key=api_key, timeout=timeout, client=client)
        source = self.COIN_IDS if coin_ids is None else coin_ids
        self.coin_ids = {normalize_symbol(s): cid for s, cid in source.items()}

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key:
            return self.BASE_URL_FREE
        # Demo keys use free URL, pro keys use pro URL
        return self.BASE_URL_FREE if self._is_demo else self.BASE_URL_PRO

    @property
    def api_header(self) -> tuple[str, str] | None:
        """Return appropriate header name and value for API key."""
        if not self.api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return (header_name, self.api_key)

    def supports_symbol(self, symbol: str) -> bool:
        return symbol in self.coin_ids

    async def _fetch_prices(self, symbols: set[str]) -> dict[str, float]:
        """Fetch USD prices for all requested coins in a single API call.

        :param symbols: Supported symbols to fetch.
        :returns: Dict mapping symbol to USD price; unknown coins are omitted.
        """
        coin_ids = {symbol: self.coin_ids[symbol] for symbol in sorted(symbols)}

        headers = {}
        if self.api_header:
            header_name, header_value = self.api_header
            headers[header_name] = header_value

        response = await self._get(
            f"{self.base_url}/simple/price",
            params={"ids": ",".join(coin_ids.values()), "vs_currencies": "usd"},
            headers=headers if headers else None,
        )
        data = response.json()

        prices: dict[str, float] = {}
        for symbol, coin_id in coin_ids.items():
            price = parse_price((data.get(coin_id) or {}).get("usd"))
            if price is None:
                logger.warning(f"[{self.name}] No usd price for {coin_id}")
                continue
            prices[symbol] = price
            logger.debug(f"[{self.name}] {symbol}: ${price}")

        return prices


@register_fetcher
class CoinGeckoAssetFetcher(CoinGeckoFetcher):
    """Single-asset CoinGecko fetcher for a coin outside the majors basket."""

    name = "coingecko_single"
    DEFAULT_TIMEOUT = 3.0

    COIN_IDS: ClassVar[Mapping[str, str]] = {
        "HYPE": "hyperliquid",
    }
