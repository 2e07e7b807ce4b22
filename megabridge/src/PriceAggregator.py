"""PriceAggregator: Merges partial price tables from all sources.

Algorithm:
    1. Query every configured, active adapter concurrently
    2. Seed the table with constant-value symbols (pegged stablecoins)
    3. Apply adapter results in precedence order, later sources overwriting
       earlier ones for the same symbol
    4. If no adapter contributed anything and a previous table exists, return
       the previous table unchanged
    5. Otherwise substitute the fallback constant for every required symbol
       that is still missing or invalid

.. code-block:: python

    >>> aggregator = PriceAggregator([majors, single, codex, dex])
    >>> result = await aggregator.aggregate(previous=None)
    >>> result.prices["ETH"]
    3512.4
    >>> result.metadata["fallbacks"]
    ['SIGMA']
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Sequence, TypedDict

from .fetchers import is_valid_price
from .SourceManager import SourceManager
from .tokens import CONSTANT_PRICES, FALLBACK_PRICES

if TYPE_CHECKING:
    from .fetchers import BaseFetcher
    from .PriceCache import CacheEntry

logger = logging.getLogger(__name__)


class AggregationMetadata(TypedDict, total=False):
    """Information about one refresh cycle.

    :ivar sources: Adapters that contributed at least one price, in merge order.
    :ivar failed: Adapters that were queried and contributed nothing.
    :ivar skipped: Adapters not queried (unconfigured or in backoff).
    :ivar fallbacks: Required symbols filled from the fallback table.
    :ivar stale: True if the previous table was reused.
    :ivar error: "total_failure" when no adapter contributed anything.
    """

    sources: list[str]
    failed: list[str]
    skipped: list[str]
    fallbacks: list[str]
    stale: bool
    error: str


@dataclass
class AggregationResult:
    """Result of one aggregation cycle.

    :ivar prices: Merged symbol to USD price table.
    :ivar metadata: Additional information about the aggregation.
    """

    prices: dict[str, float]
    metadata: AggregationMetadata

    @property
    def total_failure(self) -> bool:
        """True if no adapter contributed a price this cycle."""
        return self.metadata.get("error") == "total_failure"

    @property
    def stale(self) -> bool:
        """True if the previous table was served instead of fresh data."""
        return bool(self.metadata.get("stale"))


class PriceAggregator:
    """Fans out to all price sources and merges their answers.

    The order of ``fetchers`` is the merge precedence, lowest first.

    :ivar fetchers: Adapters in merge order.
    :ivar fallback_prices: Required symbols and their last-resort prices.
    :ivar constant_prices: Symbols seeded before any adapter result.
    :ivar source_manager: Per-adapter health tracking.
    """

    def __init__(
        self,
        fetchers: Sequence[BaseFetcher],
        fallback_prices: Mapping[str, float] = FALLBACK_PRICES,
        constant_prices: Mapping[str, float] = CONSTANT_PRICES,
        source_manager: SourceManager | None = None,
    ) -> None:
        """Initialize the aggregator.

        :param fetchers: Price source adapters, lowest precedence first.
        :param fallback_prices: Required symbols mapped to fallback USD prices.
        :param constant_prices: Fixed prices seeded into every table.
        :param source_manager: Optional shared SourceManager; one without
            backoff is created if omitted.
        :raises ValueError: If names repeat or a fallback price is invalid.
        """
        names = [f.name for f in fetchers]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate fetcher names: {names}")
        invalid = [s for s, p in fallback_prices.items() if not is_valid_price(p)]
        if invalid:
            raise ValueError(f"Fallback prices must be positive and finite: {invalid}")

        self.fetchers = list(fetchers)
        self.fallback_prices = {s.upper(): float(p) for s, p in fallback_prices.items()}
        self.constant_prices = {s.upper(): float(p) for s, p in constant_prices.items()}
        self.source_manager = source_manager or SourceManager(names)

    @property
    def required_symbols(self) -> set[str]:
        """Symbols guaranteed to be present in every aggregated table."""
        return set(self.fallback_prices)

    def fallback_table(self) -> dict[str, float]:
        """Table served when nothing could be fetched on a cold start."""
        table = dict(self.constant_prices)
        table.update(self.fallback_prices)
        return table

    async def aggregate(self, previous: CacheEntry | None = None) -> AggregationResult:
        """Run one refresh cycle.

        :param previous: The current cache entry, if any; reused when every
            adapter fails.
        :returns: AggregationResult with the merged table and cycle metadata.
        """
        symbols = self.required_symbols | set(self.constant_prices)

        active: list[BaseFetcher] = []
        skipped: list[str] = []
        for fetcher in self.fetchers:
            if not fetcher.is_configured:
                logger.debug(f"[{fetcher.name}] Not configured, skipping")
                skipped.append(fetcher.name)
            elif not self.source_manager.is_source_active(fetcher.name):
                remaining = self.source_manager.get_backoff_remaining(fetcher.name)
                logger.info(f"[{fetcher.name}] In backoff for {remaining:.0f}s, skipping")
                skipped.append(fetcher.name)
            else:
                active.append(fetcher)

        results = await asyncio.gather(*(f.fetch_prices(symbols) for f in active))

        table: dict[str, float] = dict(self.constant_prices)
        contributed: list[str] = []
        failed: list[str] = []
        for fetcher, prices in zip(active, results, strict=True):
            valid = {s.upper(): p for s, p in prices.items() if is_valid_price(p)}
            if valid:
                table.update(valid)
                contributed.append(fetcher.name)
                self.source_manager.record_success(fetcher.name)
            else:
                failed.append(fetcher.name)
                self.source_manager.record_failure(fetcher.name)

        if not contributed and previous is not None:
            logger.warning(
                "All price sources failed, serving previous prices "
                f"fetched at {previous.fetched_at_ms}"
            )
            return AggregationResult(
                prices=dict(previous.table),
                metadata={
                    "sources": [],
                    "failed": failed,
                    "skipped": skipped,
                    "fallbacks": [],
                    "stale": True,
                    "error": "total_failure",
                },
            )

        fallbacks: list[str] = []
        for symbol, fallback in self.fallback_prices.items():
            if not is_valid_price(table.get(symbol)):
                table[symbol] = fallback
                fallbacks.append(symbol)

        metadata: AggregationMetadata = {
            "sources": contributed,
            "failed": failed,
            "skipped": skipped,
            "fallbacks": fallbacks,
            "stale": False,
        }
        if not contributed:
            logger.warning("All price sources failed on a cold cache, using fallback prices")
            metadata["error"] = "total_failure"
        elif fallbacks:
            logger.warning(f"Using fallback prices for: {', '.join(fallbacks)}")

        logger.info(
            f"Aggregated {len(table)} prices from {', '.join(contributed) or 'no sources'}"
        )
        logger.debug(f"Prices: {table}")

        return AggregationResult(prices=table, metadata=metadata)
