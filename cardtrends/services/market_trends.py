"""
Card Trends — Market Trends Service

Composes the aggregator, cache and store into the two paths the app uses:

Live read (get_current_trends):
    cache hit → cached summary
    cache miss → aggregator.fetch_summary() → enrich from stored history
                 (percent change vs latest earlier snapshot, sentiment,
                 real snapshots replacing synthetic chart points) → cache

Daily update (run_daily_update):
    store.update_for_date(today) → invalidate cache

The live read never raises for upstream or storage trouble; it always
returns a well-formed, possibly zeroed, summary.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from cardtrends.config import settings
from cardtrends.engine.aggregator import TrendAggregator
from cardtrends.engine.sentiment import classify_sentiment
from cardtrends.engine.stats import percentage_change, to_cents
from cardtrends.models.trend_snapshot import TrendSnapshot
from cardtrends.schemas import (
    DailyUpdateResult,
    MarketSummary,
    SnapshotOut,
    TrendPoint,
)
from cardtrends.services.trend_cache import TrendCache
from cardtrends.services.trend_store import TrendStore, window_start

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MarketTrendsService:
    """
    Live and historical market trend reads plus admin operations.

    Args:
        aggregator: Computes summaries from the marketplace.
        cache: One-slot TTL cache for the live summary.
        store: Daily snapshot persistence.
        window_days: Length of the live trend chart.
        now: UTC clock. Injectable for tests.
    """

    def __init__(
        self,
        aggregator: TrendAggregator,
        cache: TrendCache,
        store: TrendStore,
        window_days: int | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.aggregator = aggregator
        self.cache = cache
        self.store = store
        self._window_days = settings.TREND_WINDOW_DAYS if window_days is None else window_days
        self._now = now

    # -----------------------------------------------------------------------
    # Live read path
    # -----------------------------------------------------------------------

    async def get_current_trends(self) -> MarketSummary:
        """Current MarketSummary, served from cache when fresh."""
        return await self.cache.get_or_compute(self._compute_live)

    async def force_refresh(self) -> MarketSummary:
        """Admin: drop the cached summary and recompute it now."""
        logger.info("market_trends_force_refresh")
        self.cache.invalidate()
        return await self.get_current_trends()

    async def _compute_live(self) -> MarketSummary:
        now = self._now()
        summary = await self.aggregator.fetch_summary(now)
        if summary.is_empty:
            return summary

        try:
            await self._enrich_from_history(summary, now.date())
        except SQLAlchemyError as e:
            logger.error(
                "market_trends_history_unavailable",
                error=str(e),
                error_type=type(e).__name__,
            )
        return summary

    async def _enrich_from_history(self, summary: MarketSummary, today: date) -> None:
        previous = await self.store.get_previous_snapshot(today)
        percent = None
        if previous is not None:
            percent = percentage_change(
                summary.market_movement.average_price, previous.average_price
            )
            summary.market_movement.percent_change = percent
        summary.sentiment = classify_sentiment(percent)

        # Today stays live; the stored row for today may predate intra-day changes
        stored = await self.store.get_range(
            window_start(today, self._window_days), today - timedelta(days=1)
        )
        summary.trend_data = overlay_snapshots(summary.trend_data, stored)

    # -----------------------------------------------------------------------
    # History reads
    # -----------------------------------------------------------------------

    async def get_history(self, days: int | None = None) -> list[SnapshotOut]:
        days = settings.HISTORY_DEFAULT_DAYS if days is None else days
        rows = await self.store.get_history(days)
        return [SnapshotOut.model_validate(row) for row in rows_without_items(rows)]

    async def get_snapshot(self, day: date) -> SnapshotOut | None:
        row = await self.store.get_snapshot(day, with_items=True)
        return SnapshotOut.model_validate(row) if row is not None else None

    # -----------------------------------------------------------------------
    # Daily update
    # -----------------------------------------------------------------------

    async def run_daily_update(self, day: date | None = None) -> DailyUpdateResult:
        """
        Persist today's snapshot (idempotent) and invalidate the live cache.

        Safe to call repeatedly or concurrently for the same day.
        """
        day = day or self._now().date()
        _, created = await self.store.update_for_date(day)
        self.cache.invalidate()

        snapshot = await self.get_snapshot(day)
        logger.info(
            "market_trends_daily_update_complete",
            date=day.isoformat(),
            created=created,
            stored=snapshot is not None,
        )
        return DailyUpdateResult(date=day, created=created, snapshot=snapshot)


def rows_without_items(rows: Sequence[TrendSnapshot]) -> list[dict]:
    """Column values only, so validation never touches the unloaded relationship."""
    return [
        {
            "date": row.date,
            "average_price": row.average_price,
            "highest_sale": row.highest_sale,
            "lowest_sale": row.lowest_sale,
            "total_sold": row.total_sold,
            "percent_change": row.percent_change,
        }
        for row in rows
    ]


def overlay_snapshots(
    points: Sequence[TrendPoint], snapshots: Sequence[TrendSnapshot]
) -> list[TrendPoint]:
    """Replace synthetic points with stored snapshots for the same date."""
    by_date = {snapshot.date: snapshot for snapshot in snapshots}
    merged: list[TrendPoint] = []
    for point in points:
        stored = by_date.get(point.date)
        if stored is None:
            merged.append(point)
            continue
        merged.append(
            TrendPoint(
                date=point.date,
                average_price=to_cents(stored.average_price),
                total_sold=stored.total_sold,
                synthetic=False,
            )
        )
    return merged
