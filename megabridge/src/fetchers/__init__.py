"""
Price source adapters.

Each adapter prices a subset of symbols in USD and never raises to the
caller; a failed or timed-out source simply contributes nothing.

Usage:
    from megabridge.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['codex', 'coingecko', 'coingecko_single', 'dexscreener']

    # Create a fetcher instance
    fetcher = get_fetcher("coingecko")
    prices = await fetcher.fetch_prices({"ETH", "SOL"})

    # For fetchers requiring API keys
    fetcher = get_fetcher("codex", api_key="your-api-key")
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    is_valid_price,
    parse_price,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .codex import CodexFetcher
from .coingecko import CoinGeckoAssetFetcher, CoinGeckoFetcher
from .dexscreener import DexScreenerFetcher, select_pair

# Merge precedence, lowest first: later sources overwrite earlier ones.
DEFAULT_SOURCES = ["coingecko", "coingecko_single", "codex", "dexscreener"]

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetcherError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    "DEFAULT_SOURCES",
    # Helpers
    "is_valid_price",
    "parse_price",
    "select_pair",
    # Fetcher implementations
    "CodexFetcher",
    "CoinGeckoAssetFetcher",
    "CoinGeckoFetcher",
    "DexScreenerFetcher",
]
