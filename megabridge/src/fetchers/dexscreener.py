"""DexScreener fetcher.

Endpoint: https://api.dexscreener.com/latest/dex/tokens/{addr1,addr2,...}
Rate Limit: 300 requests/min, up to 30 addresses per request
API Key: Not required

A token usually trades in several pairs. The preferred pair is the first one
on the preferred chain or venue; otherwise the first pair returned is used.
"""

import logging
from typing import Any, Mapping

import httpx

from ..tokens import MEGAETH_TOKENS, normalize_symbol
from .base import BaseFetcher, parse_price, register_fetcher

logger = logging.getLogger(__name__)


def select_pair(
    pairs: list[dict[str, Any]],
    preferred_chain_id: str | None = None,
    preferred_dex_id: str | None = None,
) -> dict[str, Any] | None:
    """Pick the pair to take a price from.

    :param pairs: Pairs for one token, in the order DexScreener returned them.
    :param preferred_chain_id: DexScreener chain slug to prefer (e.g. "megaeth").
    :param preferred_dex_id: DEX identifier to prefer.
    :returns: The first pair matching either preference, else the first pair,
        or None if there are no pairs.

    .. code-block:: python

        >>> select_pair([{"chainId": "base"}, {"chainId": "megaeth"}], "megaeth")
        {'chainId': 'megaeth'}
    """
    if not pairs:
        return None
    for pair in pairs:
        if preferred_chain_id and pair.get("chainId") == preferred_chain_id:
            return pair
        if preferred_dex_id and pair.get("dexId") == preferred_dex_id:
            return pair
    return pairs[0]


@register_fetcher
class DexScreenerFetcher(BaseFetcher):
    """Fetcher for DexScreener pair prices, looked up by token address."""

    name = "dexscreener"
    BASE_URL = "https://api.dexscreener.com/latest/dex/tokens"
    DEFAULT_CHAIN_ID = "megaeth"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        tokens: Mapping[str, str] | None = None,
        preferred_chain_id: str | None = DEFAULT_CHAIN_ID,
        preferred_dex_id: str | None = None,
    ):
        """Initialize the fetcher.

        :param tokens: Symbol to contract address map (default: MegaETH tokens).
        :param preferred_chain_id: Chain slug whose pairs win.
        :param preferred_dex_id: DEX identifier whose pairs win.
        """
        super().__init__(api_key=api_key, timeout=timeout, client=client)
        source = MEGAETH_TOKENS if tokens is None else tokens
        self.tokens = {normalize_symbol(s): addr.lower() for s, addr in source.items()}
        self.preferred_chain_id = preferred_chain_id
        self.preferred_dex_id = preferred_dex_id

    def supports_symbol(self, symbol: str) -> bool:
        return symbol in self.tokens

    async def _fetch_prices(self, symbols: set[str]) -> dict[str, float]:
        addresses = [self.tokens[symbol] for symbol in sorted(symbols)]
        response = await self._get(f"{self.BASE_URL}/{','.join(addresses)}")
        data = response.json()

        by_address: dict[str, list[dict[str, Any]]] = {}
        for pair in data.get("pairs") or []:
            base = str((pair.get("baseToken") or {}).get("address", "")).lower()
            by_address.setdefault(base, []).append(pair)

        prices: dict[str, float] = {}
        for symbol in symbols:
            pair = select_pair(
                by_address.get(self.tokens[symbol], []),
                self.preferred_chain_id,
                self.preferred_dex_id,
            )
            if pair is None:
                logger.warning(f"[dexscreener] No pairs for {symbol}")
                continue
            price = parse_price(pair.get("priceUsd"))
            if price is None:
                logger.warning(
                    f"[dexscreener] Invalid price for {symbol} in pair "
                    f"{pair.get('pairAddress')}: {pair.get('priceUsd')}"
                )
                continue
            prices[symbol] = price
            logger.debug(
                f"[dexscreener] {symbol}: ${price:.8f} "
                f"({pair.get('dexId')} on {pair.get('chainId')})"
            )

        return prices
