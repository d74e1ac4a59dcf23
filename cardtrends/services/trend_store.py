"""
Card Trends — Daily Trend Store

Durable, once-per-day snapshots for history charts that outlive the cache.

update_for_date(day):
    1. Snapshot already stored for `day` → return it, write nothing.
    2. Fetch a fresh aggregate straight from the aggregator (never the cache).
    3. total_sold == 0 → write nothing; a gap in history beats a zero row.
    4. percent_change vs the latest earlier snapshot (gaps are skipped).
    5. Insert the snapshot. A unique-date conflict from a concurrent run is
       a no-op that returns the winner's row.
    6. Insert up to `item_limit` top-priced listings. Failure here is logged
       and leaves the committed snapshot in place.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from cardtrends.config import settings
from cardtrends.engine.aggregator import TrendAggregator
from cardtrends.engine.stats import percentage_change, to_cents
from cardtrends.models.trend_snapshot import TrendSnapshot, TrendSnapshotItem
from cardtrends.schemas import RawListing

logger = structlog.get_logger(__name__)


class TrendStore:
    """
    Persistence for TrendSnapshot rows and their item samples.

    Args:
        session_factory: Async session factory (expire_on_commit=False).
        aggregator: Source of fresh aggregates for the daily update.
        item_limit: Max listings sampled per snapshot.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        aggregator: TrendAggregator,
        item_limit: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._aggregator = aggregator
        self._item_limit = settings.SNAPSHOT_ITEM_LIMIT if item_limit is None else item_limit

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def get_snapshot(self, day: date, with_items: bool = False) -> TrendSnapshot | None:
        async with self._session_factory() as session:
            return await self._get_by_date(session, day, with_items=with_items)

    async def get_previous_snapshot(self, day: date) -> TrendSnapshot | None:
        """Latest snapshot dated strictly before `day`."""
        async with self._session_factory() as session:
            return await self._get_previous(session, day)

    async def get_history(self, days: int) -> Sequence[TrendSnapshot]:
        """The `days` most recent snapshots, oldest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TrendSnapshot).order_by(TrendSnapshot.date.desc()).limit(days)
            )
            rows = list(result.scalars().all())
        rows.reverse()
        return rows

    async def get_range(self, start: date, end: date) -> Sequence[TrendSnapshot]:
        """Snapshots with start <= date <= end, oldest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TrendSnapshot)
                .where(TrendSnapshot.date >= start, TrendSnapshot.date <= end)
                .order_by(TrendSnapshot.date.asc())
            )
            return result.scalars().all()

    # -----------------------------------------------------------------------
    # Daily update
    # -----------------------------------------------------------------------

    async def update_for_date(self, day: date) -> tuple[TrendSnapshot | None, bool]:
        """
        Persist the snapshot for `day` unless one exists or there is no data.

        Returns:
            (snapshot, created). snapshot is None when the day was skipped
            for lack of data; created is True only for the call that
            inserted the row.
        """
        logger.info("trend_snapshot_update_start", date=day.isoformat())

        existing = await self.get_snapshot(day)
        if existing is not None:
            logger.info("trend_snapshot_exists", date=day.isoformat())
            return existing, False

        summary = await self._aggregator.fetch_summary()
        if summary.is_empty:
            logger.warning("trend_snapshot_skipped_no_data", date=day.isoformat())
            return None, False

        movement = summary.market_movement

        async with self._session_factory() as session:
            previous = await self._get_previous(session, day)
            percent = (
                percentage_change(movement.average_price, previous.average_price)
                if previous is not None
                else None
            )

            snapshot = TrendSnapshot(
                date=day,
                average_price=movement.average_price,
                highest_sale=movement.highest_sale,
                lowest_sale=movement.lowest_sale,
                total_sold=movement.total_sold,
                percent_change=percent,
            )
            session.add(snapshot)
            try:
                await session.flush()
                snapshot_id = snapshot.id
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("trend_snapshot_conflict", date=day.isoformat())
                return await self._get_by_date(session, day), False

            logger.info(
                "trend_snapshot_created",
                date=day.isoformat(),
                average_price=str(movement.average_price),
                total_sold=movement.total_sold,
                percent_change=str(percent) if percent is not None else None,
                previous_date=previous.date.isoformat() if previous is not None else None,
            )

            await self._write_items(
                session, snapshot_id, day, summary.listings[: self._item_limit]
            )
            # Reload: a failed item batch rolls back and expires the parent
            return await self._get_by_date(session, day), True

    async def _write_items(
        self,
        session: AsyncSession,
        snapshot_id: int,
        day: date,
        listings: Sequence[RawListing],
    ) -> int:
        """Best-effort insert of the item sample. Returns rows written."""
        if not listings:
            return 0

        session.add_all(
            TrendSnapshotItem(
                snapshot_id=snapshot_id,
                title=listing.title,
                price=to_cents(listing.price),
                currency=listing.currency,
                image_url=listing.image_url,
                item_web_url=listing.item_web_url,
                category=listing.category,
            )
            for listing in listings
        )
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                "trend_snapshot_items_failed",
                date=day.isoformat(),
                snapshot_id=snapshot_id,
                item_count=len(listings),
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        logger.info(
            "trend_snapshot_items_written",
            date=day.isoformat(),
            snapshot_id=snapshot_id,
            item_count=len(listings),
        )
        return len(listings)

    # -----------------------------------------------------------------------
    # Query helpers
    # -----------------------------------------------------------------------

    @staticmethod
    async def _get_by_date(
        session: AsyncSession, day: date, with_items: bool = False
    ) -> TrendSnapshot | None:
        stmt = select(TrendSnapshot).where(TrendSnapshot.date == day)
        if with_items:
            stmt = stmt.options(selectinload(TrendSnapshot.items))
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def _get_previous(session: AsyncSession, day: date) -> TrendSnapshot | None:
        result = await session.execute(
            select(TrendSnapshot)
            .where(TrendSnapshot.date < day)
            .order_by(TrendSnapshot.date.desc())
            .limit(1)
        )
        return result.scalars().first()


def window_start(today: date, window_days: int) -> date:
    """First date of a `window_days`-long window ending on `today`."""
    return today - timedelta(days=max(window_days, 1) - 1)
