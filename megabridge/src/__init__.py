"""
MegaBridge - Price aggregation and quote engine

This module provides the backend core of the bridge:
- fetchers: Price source adapters (CoinGecko, Codex, DexScreener)
- PriceAggregator: Merge precedence and fallback prices
- PriceCache: TTL cache with coalesced refreshes
- QuoteCalculator: Indicative quotes with slippage and fee
- BridgeLedger / BridgeService: Pending bridge transaction records
- SourceManager: Per-source health tracking with optional backoff
"""

from .BridgeLedger import (
    BridgeLedger,
    BridgeTransaction,
    InMemoryBridgeLedger,
    TransactionStatus,
)
from .BridgeService import BridgeService, BridgeSubmission, TransactionNotFound
from .PriceAggregator import AggregationResult, PriceAggregator
from .PriceCache import CacheEntry, PriceCache
from .QuoteCalculator import InvalidAmount, Quote, QuoteCalculator, calculate_quote
from .SourceManager import SourceManager, SourceStatus

__all__ = [
    "AggregationResult",
    "BridgeLedger",
    "BridgeService",
    "BridgeSubmission",
    "BridgeTransaction",
    "CacheEntry",
    "InMemoryBridgeLedger",
    "InvalidAmount",
    "PriceAggregator",
    "PriceCache",
    "Quote",
    "QuoteCalculator",
    "SourceManager",
    "SourceStatus",
    "TransactionNotFound",
    "TransactionStatus",
    "calculate_quote",
]
