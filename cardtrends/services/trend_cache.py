"""
Card Trends — In-process Trend Cache

Holds the most recently computed MarketSummary for a fixed TTL (15 minutes
by default) so bursts of page loads do not each hit the marketplace.

Single-flight: get_or_compute() serializes misses behind one asyncio.Lock
and re-checks the slot after acquiring it, so N concurrent misses trigger
one upstream fetch.

Empty summaries are cached like any other. A transient outage can
therefore hide real data until the TTL runs out or an admin invalidates.

State is process-local and lost on restart; a cold start recomputes.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from cardtrends.config import settings
from cardtrends.schemas import MarketSummary

logger = structlog.get_logger(__name__)


class TrendCache:
    """
    One-slot TTL cache for the current MarketSummary.

    Args:
        ttl_seconds: Maximum age of a served entry.
        clock: Monotonic seconds source. Injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = settings.TREND_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._summary: MarketSummary | None = None
        self._stored_at: float = 0.0
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def age_seconds(self) -> float | None:
        """Age of the cached entry, or None when the slot is empty."""
        if self._summary is None:
            return None
        return self._clock() - self._stored_at

    def get(self) -> MarketSummary | None:
        """Return the cached summary if younger than the TTL, else None (miss)."""
        age = self.age_seconds()
        if age is None or age >= self._ttl:
            return None
        logger.debug("trend_cache_hit", age_seconds=round(age, 1))
        return self._summary

    def set(self, summary: MarketSummary) -> None:
        """Store `summary` stamped with the current clock, replacing any entry."""
        self._summary = summary
        self._stored_at = self._clock()
        logger.debug("trend_cache_set", total_sold=summary.market_movement.total_sold)

    def invalidate(self) -> None:
        """Clear the slot regardless of age."""
        self._summary = None
        self._generation += 1
        logger.info("trend_cache_invalidated")

    async def get_or_compute(
        self, compute: Callable[[], Awaitable[MarketSummary]]
    ) -> MarketSummary:
        """
        Serve from cache, or run `compute` once for all concurrent callers.

        A result computed across an invalidate() is returned to the caller
        that started it but not stored, so the next read recomputes.
        """
        cached = self.get()
        if cached is not None:
            return cached

        async with self._lock:
            cached = self.get()
            if cached is not None:
                return cached

            logger.info("trend_cache_miss")
            generation = self._generation
            summary = await compute()
            if generation == self._generation:
                self.set(summary)
            else:
                logger.info("trend_cache_discarded_stale_result")
            return summary
