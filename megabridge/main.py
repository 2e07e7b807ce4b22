#!/usr/bin/env python3
"""MegaBridge backend.

Serves cached USD prices and indicative bridge quotes, and records pending
bridge transactions for admin fulfillment.

Configure via CLI arguments or environment variables (CLI wins).
"""

import argparse
import logging
import os
import sys

from fastapi import FastAPI

from .api import create_app
from .src.BridgeLedger import InMemoryBridgeLedger
from .src.BridgeService import BridgeService
from .src.fetchers import DEFAULT_SOURCES, DexScreenerFetcher, get_available_fetchers, get_fetcher
from .src.PriceAggregator import PriceAggregator
from .src.PriceCache import DEFAULT_TTL_MS, PriceCache
from .src.QuoteCalculator import QuoteCalculator
from .src.SourceManager import SourceManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Environment variables accepted as aliases for API_KEY_<SOURCE>.
API_KEY_ALIASES = {
    "CODEX_API_KEY": "codex",
    "COINGECKO_API_KEY": "coingecko",
}


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: codex=abc123,coingecko=demo:CG-xyz

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_CODEX, API_KEY_COINGECKO, etc., plus the aliases in
    API_KEY_ALIASES (e.g. CODEX_API_KEY).

    :param environ: Environment to read (default: os.environ).
    :returns: Dict mapping source names to API keys.
    """
    environ = os.environ if environ is None else environ
    api_keys = {}

    for alias, source in API_KEY_ALIASES.items():
        if environ.get(alias):
            api_keys[source] = environ[alias]

    prefixes = ["API_KEY_", "APIKEY_"]
    for key, value in environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                source = key[len(prefix):].lower()
                api_keys[source] = value
                break

    return api_keys


def build_app(
    sources: list[str] | None = None,
    api_keys: dict[str, str] | None = None,
    cache_ttl_ms: int = DEFAULT_TTL_MS,
    fetch_timeout: float | None = None,
    source_backoff: float = 0.0,
    dex_chain_id: str | None = DexScreenerFetcher.DEFAULT_CHAIN_ID,
    dex_id: str | None = None,
) -> FastAPI:
    """Wire fetchers, aggregator, cache, quote engine and ledger into an app.

    :param sources: Fetcher names in merge order (default: DEFAULT_SOURCES).
    :param api_keys: Dict mapping source names to API keys.
    :param cache_ttl_ms: Price cache TTL in milliseconds.
    :param fetch_timeout: Per-fetcher timeout override in seconds.
    :param source_backoff: Base backoff for failing sources (0 = passive retry).
    :param dex_chain_id: Preferred DexScreener chain slug.
    :param dex_id: Preferred DexScreener DEX identifier.
    :returns: The FastAPI application.
    """
    sources = sources or list(DEFAULT_SOURCES)
    api_keys = api_keys or {}

    fetchers = []
    for name in sources:
        options = {}
        if name == DexScreenerFetcher.name:
            options = {"preferred_chain_id": dex_chain_id, "preferred_dex_id": dex_id}
        fetchers.append(
            get_fetcher(name, api_key=api_keys.get(name), timeout=fetch_timeout, **options)
        )

    aggregator = PriceAggregator(
        fetchers,
        source_manager=SourceManager(sources, base_backoff_seconds=source_backoff),
    )
    price_cache = PriceCache(aggregator.aggregate, ttl_ms=cache_ttl_ms)
    calculator = QuoteCalculator(price_cache)
    bridge_service = BridgeService(InMemoryBridgeLedger(), calculator)

    return create_app(aggregator, price_cache, calculator, bridge_service)


def main() -> None:
    """Main entry point for the MegaBridge backend CLI."""
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="MegaBridge: price, quote and bridge transaction API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Examples:
  # Default sources, Codex enabled through the environment
  CODEX_API_KEY=... python -m megabridge.main --port 5000

  # CoinGecko only, with a demo key and a 30s cache
  python -m megabridge.main --sources coingecko,coingecko_single \\
      --api-keys coingecko=demo:CG-xxxxx --cache-ttl-ms 30000

Environment variables (CLI args take precedence):
  HOST, PORT, SOURCES, CACHE_TTL_MS, FETCH_TIMEOUT, SOURCE_BACKOFF,
  DEX_CHAIN_ID, DEX_ID, API_KEYS, CODEX_API_KEY, API_KEY_CODEX,
  API_KEY_COINGECKO, etc.
""",
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Interface to bind (default: 127.0.0.1)",
        default=os.environ.get("HOST") or "127.0.0.1",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on (default: 5000)",
        default=int(os.environ.get("PORT") or "5000"),
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=(
            "Comma-separated price sources in merge order, lowest precedence first. "
            f"Available: {', '.join(available_sources)}"
        ),
        default=os.environ.get("SOURCES") or ",".join(DEFAULT_SOURCES),
    )

    parser.add_argument(
        "--cache-ttl-ms",
        dest="cache_ttl_ms",
        type=int,
        help=f"Price cache TTL in milliseconds (default: {DEFAULT_TTL_MS})",
        default=int(os.environ.get("CACHE_TTL_MS") or str(DEFAULT_TTL_MS)),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Override every source's fetch timeout, in seconds (default: per source)",
        default=float(os.environ["FETCH_TIMEOUT"]) if os.environ.get("FETCH_TIMEOUT") else None,
    )

    parser.add_argument(
        "--source-backoff",
        dest="source_backoff",
        type=float,
        help="Base backoff in seconds for failing sources (default: 0, retry every refresh)",
        default=float(os.environ.get("SOURCE_BACKOFF") or "0"),
    )

    parser.add_argument(
        "--dex-chain-id",
        dest="dex_chain_id",
        type=str,
        help=f"Preferred DexScreener chain (default: {DexScreenerFetcher.DEFAULT_CHAIN_ID})",
        default=os.environ.get("DEX_CHAIN_ID") or DexScreenerFetcher.DEFAULT_CHAIN_ID,
    )

    parser.add_argument(
        "--dex-id",
        dest="dex_id",
        type=str,
        help="Preferred DexScreener DEX identifier (default: none)",
        default=os.environ.get("DEX_ID"),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., codex=abc,coingecko=demo:xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.cache_ttl_ms < 1:
        parser.error("--cache-ttl-ms must be positive")

    if args.fetch_timeout is not None and args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    if args.source_backoff < 0:
        parser.error("--source-backoff must not be negative")

    sources = [s.strip().lower() for s in args.sources.split(",") if s.strip()]
    if not sources:
        parser.error("At least one source must be specified")

    invalid_sources = [s for s in sources if s not in available_sources]
    if invalid_sources:
        parser.error(
            f"Unknown sources: {invalid_sources}. "
            f"Available: {', '.join(available_sources)}"
        )

    if len(set(sources)) != len(sources):
        parser.error("Sources must not repeat")

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    # Log configuration
    logger.info("=" * 60)
    logger.info("MegaBridge - Price & Quote API")
    logger.info("=" * 60)
    logger.info(f"Listen:            {args.host}:{args.port}")
    logger.info(f"Sources:           {', '.join(sources)}")
    logger.info(f"Cache TTL:         {args.cache_ttl_ms}ms")
    logger.info(
        f"Fetch Timeout:     {args.fetch_timeout}s" if args.fetch_timeout
        else "Fetch Timeout:     per source"
    )
    logger.info(
        f"Source Backoff:    {args.source_backoff}s" if args.source_backoff
        else "Source Backoff:    disabled"
    )
    logger.info(f"DEX Preference:    chain={args.dex_chain_id} dex={args.dex_id or '-'}")
    if api_keys:
        logger.info(f"API Keys:          {', '.join(sorted(api_keys.keys()))}")
    if "codex" in sources and "codex" not in api_keys:
        logger.info("CODEX_API_KEY not set, Codex prices disabled")
    logger.info("=" * 60)

    try:
        import uvicorn

        app = build_app(
            sources=sources,
            api_keys=api_keys,
            cache_ttl_ms=args.cache_ttl_ms,
            fetch_timeout=args.fetch_timeout,
            source_backoff=args.source_backoff,
            dex_chain_id=args.dex_chain_id,
            dex_id=args.dex_id,
        )
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            log_level="debug" if args.verbose else "info",
        )
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
