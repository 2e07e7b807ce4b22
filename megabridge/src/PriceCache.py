"""PriceCache: Time-to-live cache for the merged price table.

The cache holds exactly one CacheEntry. Within the TTL the entry is served
as-is; once it is stale the next reader triggers a refresh through the
loader (normally :meth:`PriceAggregator.aggregate`). Readers arriving while a
refresh is running wait for that same refresh instead of starting their own.

A refresh replaces the entry with a single assignment, so readers only ever
see a complete table.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Awaitable, Callable, Mapping

if TYPE_CHECKING:
    from .PriceAggregator import AggregationResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 10_000

Loader = Callable[["CacheEntry | None"], Awaitable["AggregationResult"]]


def epoch_millis() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    """One merged price table and when it was produced.

    :ivar table: Read-only symbol to USD price mapping.
    :ivar fetched_at_ms: Epoch milliseconds of the refresh.
    :ivar sources: Adapters that contributed to the table.
    :ivar stale: True if the table was carried over after a total failure.
    """

    table: Mapping[str, float]
    fetched_at_ms: int
    sources: tuple[str, ...] = field(default_factory=tuple)
    stale: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "table", MappingProxyType(dict(self.table)))


class PriceCache:
    """Serves the current price table, refreshing it when older than the TTL.

    :ivar ttl_ms: Validity window in milliseconds.
    """

    def __init__(
        self,
        loader: Loader,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        """Initialize the cache.

        :param loader: Coroutine function taking the previous entry and
            returning an AggregationResult.
        :param ttl_ms: Validity window in milliseconds (default: 10000).
        :param clock: Returns the current time in epoch milliseconds.
        :raises ValueError: If ttl_ms is not positive.
        """
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        self.ttl_ms = ttl_ms
        self._loader = loader
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._inflight: asyncio.Task[CacheEntry] | None = None

    @property
    def entry(self) -> CacheEntry | None:
        """The current entry, or None before the first refresh."""
        return self._entry

    def age_ms(self) -> int | None:
        """Age of the current entry in milliseconds, or None if empty."""
        if self._entry is None:
            return None
        return self._clock() - self._entry.fetched_at_ms

    def is_fresh(self) -> bool:
        """True if an entry exists and is younger than the TTL."""
        age = self.age_ms()
        return age is not None and age < self.ttl_ms

    async def get_prices(self) -> Mapping[str, float]:
        """Return the current price table, refreshing it first if stale."""
        entry = self._entry
        if entry is not None and self.is_fresh():
            return entry.table
        entry = await self.refresh()
        return entry.table

    async def refresh(self) -> CacheEntry:
        """Refresh now, joining a refresh that is already in flight."""
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._refresh())
        else:
            logger.debug("Joining in-flight price refresh")
        return await asyncio.shield(self._inflight)

    async def _refresh(self) -> CacheEntry:
        result = await self._loader(self._entry)
        entry = CacheEntry(
            table=result.prices,
            fetched_at_ms=self._clock(),
            sources=tuple(result.metadata.get("sources", [])),
            stale=result.stale,
        )
        self._entry = entry
        return entry

    def clear(self) -> None:
        """Drop the current entry so the next read refreshes."""
        self._entry = None
