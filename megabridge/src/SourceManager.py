"""SourceManager: Per-adapter health tracking with optional exponential backoff.

Every refresh cycle reports, per price source adapter, whether it contributed
prices. By default a failed adapter is simply tried again on the next refresh
(passive retry). With a non-zero base backoff, a failing adapter is skipped for
a period that doubles with each consecutive failure, up to a maximum; a
successful fetch resets the counter.

.. code-block:: python

    >>> manager = SourceManager(["coingecko", "codex"], base_backoff_seconds=5)
    >>> manager.record_failure("codex")
    5.0
    >>> manager.get_active_sources()
    ['coingecko']
    >>> manager.record_success("codex")
    >>> manager.get_source_status("codex").consecutive_failures
    0
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class SourceStatus:
    """Tracks the status of a single price source.

    :ivar consecutive_failures: Number of consecutive failed refreshes.
    :ivar backoff_until: Unix timestamp when backoff period ends.
    :ivar total_failures: Total failures since tracking began.
    :ivar total_successes: Total successes since tracking began.
    :ivar last_success_at: Unix timestamp of the last successful fetch.
    :ivar last_failure_at: Unix timestamp of the last failed fetch.
    """

    consecutive_failures: int = 0
    backoff_until: float = 0.0
    total_failures: int = 0
    total_successes: int = 0
    last_success_at: float | None = None
    last_failure_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the status."""
        return asdict(self)


class SourceManager:
    """Tracks adapter health and, optionally, applies exponential backoff.

    With ``base_backoff_seconds=0`` (the default) nothing is ever skipped and
    the manager only records statistics.

    :ivar sources: List of tracked source names.
    :ivar base_backoff_seconds: Backoff after the first failure (0 disables).
    :ivar max_backoff_seconds: Maximum backoff duration.
    """

    DEFAULT_BASE_BACKOFF_SECONDS = 0
    DEFAULT_MAX_BACKOFF_SECONDS = 300  # 5 minutes

    def __init__(
        self,
        sources: list[str],
        base_backoff_seconds: float = DEFAULT_BASE_BACKOFF_SECONDS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
    ) -> None:
        """Initialize the source manager.

        :param sources: List of source names to track.
        :param base_backoff_seconds: Backoff after the first failure; 0 disables backoff.
        :param max_backoff_seconds: Maximum backoff duration (caps exponential growth).
        :raises ValueError: If a backoff value is negative.
        """
        if base_backoff_seconds < 0 or max_backoff_seconds < 0:
            raise ValueError("backoff durations must not be negative")

        self.sources = list(sources)
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self._status: dict[str, SourceStatus] = {s: SourceStatus() for s in sources}

    @property
    def backoff_enabled(self) -> bool:
        """Whether failing sources are skipped for a while."""
        return self.base_backoff_seconds > 0

    def _get_or_create(self, source: str) -> SourceStatus:
        if source not in self._status:
            self._status[source] = SourceStatus()
            if source not in self.sources:
                self.sources.append(source)
        return self._status[source]

    def record_failure(self, source: str) -> float:
        """Record a failed fetch and apply backoff if enabled.

        :param source: Source name that failed.
        :returns: The backoff duration in seconds (0.0 when disabled).
        """
        status = self._get_or_create(source)
        status.consecutive_failures += 1
        status.total_failures += 1
        now = time.time()
        status.last_failure_at = now

        if not self.backoff_enabled:
            return 0.0

        # Exponential backoff: base * 2^(failures-1), capped at max
        backoff_seconds = float(min(
            self.base_backoff_seconds * (2 ** (status.consecutive_failures - 1)),
            self.max_backoff_seconds,
        ))
        status.backoff_until = now + backoff_seconds

        return backoff_seconds

    def record_success(self, source: str) -> None:
        """Record a successful fetch, resetting the failure counter.

        :param source: Source name that succeeded.
        """
        status = self._get_or_create(source)
        status.consecutive_failures = 0
        status.backoff_until = 0.0
        status.total_successes += 1
        status.last_success_at = time.time()

    def is_source_active(self, source: str) -> bool:
        """Check if a source may be fetched now (not in backoff).

        Unknown sources are considered active.
        """
        status = self._status.get(source)
        if status is None:
            return True
        return time.time() >= status.backoff_until

    def get_active_sources(self) -> list[str]:
        """Get sources that are not currently in backoff."""
        return [s for s in self.sources if self.is_source_active(s)]

    def get_source_status(self, source: str) -> SourceStatus | None:
        """Get the status of a specific source, or None if not tracked."""
        return self._status.get(source)

    def get_all_status(self) -> dict[str, SourceStatus]:
        """Get status of all sources."""
        return dict(self._status)

    def get_backoff_remaining(self, source: str) -> float:
        """Get remaining backoff time for a source, in seconds."""
        status = self._status.get(source)
        if status is None:
            return 0.0
        return max(0.0, status.backoff_until - time.time())

    def reset_all(self) -> None:
        """Reset all sources to initial state."""
        self._status = {s: SourceStatus() for s in self.sources}
