"""
Card Trends — Trend Aggregator

Turns one batch of raw marketplace listings into a MarketSummary:

    1. Drop listings whose price is missing, unparseable, or <= 0.
    2. average = mean of remaining prices; highest / lowest = max / min;
       total_sold = count of remaining listings.
    3. Synthetic trailing series anchored at today (engine/series.py).
    4. Gainers / losers relative to the batch median (engine/movers.py).
    5. Recent sales = highest-priced listings, stamped with today's date.

An empty batch (or one with no valid prices) yields the zeroed summary.
That is a normal result, not an error.

fetch_summary() wraps the marketplace call. Upstream failures and
timeouts are logged and also yield the zeroed summary; they never reach
the caller.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import structlog

from cardtrends.config import settings
from cardtrends.engine.movers import compute_movers
from cardtrends.engine.series import build_synthetic_series
from cardtrends.engine.stats import mean_price, to_cents
from cardtrends.pipeline.ebay import EbayBrowseClient, EbayTokenManager, MarketplaceError
from cardtrends.schemas import MarketMovement, MarketSummary, RawListing, RecentSale

logger = structlog.get_logger(__name__)


def empty_summary(now: datetime | None = None) -> MarketSummary:
    """The zeroed 'no data' summary."""
    return MarketSummary(generated_at=now or datetime.now(timezone.utc))


class TrendAggregator:
    """
    Computes MarketSummary values from marketplace listings.

    Args:
        client_factory: Zero-arg callable returning an async context manager
            that yields an object with `search(query, category_id)`.
            Defaults to EbayBrowseClient sharing one token manager.
        rng: Random source for the synthetic series.
    """

    def __init__(
        self,
        client_factory: Callable[[], Any] | None = None,
        query: str | None = None,
        category_id: str | None = None,
        timeout_seconds: float | None = None,
        window_days: int | None = None,
        movers_limit: int | None = None,
        recent_sales_limit: int | None = None,
        price_variation: float | None = None,
        volume_variation: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if client_factory is None:
            tokens = EbayTokenManager()
            client_factory = lambda: EbayBrowseClient(token_manager=tokens)  # noqa: E731
        self._client_factory = client_factory
        self._query = query or settings.MARKET_SEARCH_QUERY
        self._category_id = category_id or settings.MARKET_CATEGORY_ID
        self._timeout = timeout_seconds or settings.MARKETPLACE_TIMEOUT_SECONDS
        self._window_days = settings.TREND_WINDOW_DAYS if window_days is None else window_days
        self._movers_limit = settings.MOVERS_LIMIT if movers_limit is None else movers_limit
        self._recent_limit = (
            settings.RECENT_SALES_LIMIT if recent_sales_limit is None else recent_sales_limit
        )
        self._price_variation = (
            settings.TREND_PRICE_VARIATION if price_variation is None else price_variation
        )
        self._volume_variation = (
            settings.TREND_VOLUME_VARIATION if volume_variation is None else volume_variation
        )
        self._rng = rng or random.Random()

    async def fetch_listings(self) -> list[RawListing]:
        """Fetch one batch from the marketplace. Raises on upstream failure."""
        async with self._client_factory() as client:
            return await asyncio.wait_for(
                client.search(self._query, self._category_id),
                timeout=self._timeout,
            )

    async def fetch_summary(self, now: datetime | None = None) -> MarketSummary:
        """
        Fetch listings and summarize them. Never raises for upstream trouble.

        MarketplaceError and timeouts degrade to the empty summary.
        """
        now = now or datetime.now(timezone.utc)
        try:
            listings = await self.fetch_listings()
        except (MarketplaceError, asyncio.TimeoutError) as e:
            logger.error(
                "market_fetch_failed",
                query=self._query,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            return empty_summary(now)

        return self.summarize(listings, now)

    def summarize(self, listings: Iterable[RawListing], now: datetime) -> MarketSummary:
        """Pure computation of a MarketSummary from a batch of listings."""
        batch = list(listings)
        valid = [listing for listing in batch if listing.has_valid_price]

        if not valid:
            logger.info("market_summary_empty", received=len(batch))
            return empty_summary(now)

        # Stable sort: equal prices keep upstream order
        ranked = sorted(valid, key=lambda listing: listing.price, reverse=True)
        prices = [listing.price for listing in ranked]
        today = now.date()

        movement = MarketMovement(
            average_price=mean_price(prices),
            total_sold=len(ranked),
            highest_sale=to_cents(prices[0]),
            lowest_sale=to_cents(prices[-1]),
        )
        gainers, losers = compute_movers(ranked, limit=self._movers_limit)
        recent_sales = [
            RecentSale(
                title=listing.title,
                price=to_cents(listing.price),
                image_url=listing.image_url,
                item_web_url=listing.item_web_url,
                category=listing.category,
                sold_date=today,
            )
            for listing in ranked[: self._recent_limit]
        ]
        trend_data = build_synthetic_series(
            baseline_price=movement.average_price,
            baseline_volume=movement.total_sold,
            today=today,
            window_days=self._window_days,
            rng=self._rng,
            price_variation=self._price_variation,
            volume_variation=self._volume_variation,
        )

        logger.info(
            "market_summary_computed",
            received=len(batch),
            excluded=len(batch) - len(ranked),
            total_sold=movement.total_sold,
            average_price=str(movement.average_price),
            highest_sale=str(movement.highest_sale),
            lowest_sale=str(movement.lowest_sale),
        )

        return MarketSummary(
            market_movement=movement,
            trend_data=trend_data,
            top_gainers=gainers,
            top_losers=losers,
            recent_sales=recent_sales,
            generated_at=now,
            listings=ranked,
        )
