"""Codex fetcher for tokens native to the destination chain.

Endpoint: https://graph.codex.io/graphql (GraphQL)
API Key: Required (sent verbatim in the Authorization header)

Without a key the fetcher reports ``is_configured == False`` and is skipped.
"""

import logging
from typing import Mapping

import httpx

from ..tokens import MEGAETH_CHAIN_ID, MEGAETH_TOKENS, normalize_symbol
from .base import BaseFetcher, FetcherError, parse_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CodexFetcher(BaseFetcher):
    """Fetcher for the Codex token price API.

    Prices are requested by (contract address, network id) and matched back
    to symbols by case-insensitive address comparison.
    """

    name = "codex"
    BASE_URL = "https://graph.codex.io/graphql"
    requires_api_key = True

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        tokens: Mapping[str, str] | None = None,
        network_id: int = MEGAETH_CHAIN_ID,
    ):
        """Initialize the fetcher.

        :param tokens: Symbol to contract address map (default: MegaETH tokens).
        :param network_id: Codex network id the tokens live on.
        """
        super().__init__(api_key=api_key, timeout=timeout, client=client)
        source = MEGAETH_TOKENS if tokens is None else tokens
        self.tokens = {normalize_symbol(s): addr.lower() for s, addr in source.items()}
        self.network_id = network_id

    def supports_symbol(self, symbol: str) -> bool:
        return symbol in self.tokens

    def build_query(self, symbols: set[str]) -> str:
        """Build the getTokenPrices query for the given symbols."""
        inputs = ", ".join(
            f'{{address: "{self.tokens[symbol]}", networkId: {self.network_id}}}'
            for symbol in sorted(symbols)
        )
        return f"{{ getTokenPrices(inputs: [{inputs}]) {{ address priceUsd }} }}"

    async def _fetch_prices(self, symbols: set[str]) -> dict[str, float]:
        response = await self._post(
            self.BASE_URL,
            json={"query": self.build_query(symbols)},
            headers={
                "Authorization": self.api_key,
                "Content-Type": "application/json",
            },
        )
        data = response.json()

        if data.get("errors"):
            raise FetcherError(f"GraphQL errors: {data['errors']}")

        entries = (data.get("data") or {}).get("getTokenPrices") or []

        prices: dict[str, float] = {}
        for symbol in symbols:
            address = self.tokens[symbol]
            entry = next(
                (
                    e for e in entries
                    if e and str(e.get("address", "")).lower() == address
                ),
                None,
            )
            if entry is None:
                logger.warning(f"[codex] No price entry for {symbol} ({address})")
                continue
            price = parse_price(entry.get("priceUsd"))
            if price is None:
                logger.warning(f"[codex] Invalid price for {symbol}: {entry.get('priceUsd')}")
                continue
            prices[symbol] = price
            logger.debug(f"[codex] {symbol}: ${price:.8f}")

        return prices
