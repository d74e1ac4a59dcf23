"""
Tests for services/trend_store.py — idempotent daily snapshots.

Uses aiosqlite in-memory databases so no Postgres is required.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from cardtrends.models.trend_snapshot import TrendSnapshot, TrendSnapshotItem
from cardtrends.services.trend_store import TrendStore, window_start

from conftest import make_listings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _insert_snapshot(session_factory, day: date, average: str, total: int = 10) -> None:
    async with session_factory() as session:
        session.add(
            TrendSnapshot(
                date=day,
                average_price=Decimal(average),
                highest_sale=Decimal(average) * 2,
                lowest_sale=Decimal(average) / 2,
                total_sold=total,
                percent_change=None,
            )
        )
        await session.commit()


# ---------------------------------------------------------------------------
# update_for_date
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_creates_snapshot_with_summary_statistics(
    store, session_factory, fake_marketplace, example_listings
) -> None:
    fake_marketplace.listings = example_listings

    snapshot, created = await store.update_for_date(date(2025, 1, 1))

    assert created is True
    assert snapshot.date == date(2025, 1, 1)
    assert snapshot.average_price == Decimal("23.18")
    assert snapshot.highest_sale == Decimal("100.00")
    assert snapshot.lowest_sale == Decimal("5.00")
    assert snapshot.total_sold == 11
    assert snapshot.percent_change is None
    assert await _count(session_factory, TrendSnapshotItem) == 11


@pytest.mark.asyncio
async def test_second_call_for_same_date_is_noop(
    store, session_factory, fake_marketplace, example_listings
) -> None:
    fake_marketplace.listings = example_listings
    day = date(2025, 1, 1)

    first, created_first = await store.update_for_date(day)
    second, created_second = await store.update_for_date(day)

    assert created_first is True
    assert created_second is False
    assert second.id == first.id
    assert await _count(session_factory, TrendSnapshot) == 1
    # Existing snapshot short-circuits before the marketplace is hit
    assert len(fake_marketplace.calls) == 1


@pytest.mark.asyncio
async def test_no_data_writes_no_snapshot(store, session_factory, fake_marketplace) -> None:
    fake_marketplace.listings = make_listings([0, "-3", None])

    snapshot, created = await store.update_for_date(date(2025, 1, 1))

    assert snapshot is None
    assert created is False
    assert await _count(session_factory, TrendSnapshot) == 0


@pytest.mark.asyncio
async def test_percent_change_skips_holes(
    store, session_factory, fake_marketplace
) -> None:
    """2025-01-01 has no data, so 2025-01-02 compares against 2024-12-31."""
    await _insert_snapshot(session_factory, date(2024, 12, 31), "20.00")

    fake_marketplace.listings = []
    hole, _ = await store.update_for_date(date(2025, 1, 1))
    assert hole is None

    fake_marketplace.listings = make_listings([20, 24])
    snapshot, created = await store.update_for_date(date(2025, 1, 2))

    assert created is True
    assert snapshot.average_price == Decimal("22.00")
    assert snapshot.percent_change == Decimal("10.00")


@pytest.mark.asyncio
async def test_item_sample_capped_and_highest_first(
    store, session_factory, fake_marketplace
) -> None:
    fake_marketplace.listings = make_listings(range(1, 26))
    day = date(2025, 3, 1)

    await store.update_for_date(day)
    snapshot = await store.get_snapshot(day, with_items=True)

    prices = [item.price for item in snapshot.items]
    assert len(prices) == 20
    assert prices[0] == Decimal("25.00")
    assert prices[-1] == Decimal("6.00")


@pytest.mark.asyncio
async def test_concurrent_insert_conflict_is_a_noop(
    store, session_factory, fake_marketplace, example_listings
) -> None:
    """A racing writer stores the date between our check and our insert."""
    day = date(2025, 1, 1)
    fake_marketplace.listings = example_listings

    async def racing_writer():
        await _insert_snapshot(session_factory, day, "99.99", total=3)

    fake_marketplace.before_return = racing_writer

    snapshot, created = await store.update_for_date(day)

    assert created is False
    assert snapshot.average_price == Decimal("99.99")
    assert await _count(session_factory, TrendSnapshot) == 1
    assert await _count(session_factory, TrendSnapshotItem) == 0


@pytest.mark.asyncio
async def test_item_failure_keeps_snapshot(db_engine, aggregator, fake_marketplace, example_listings) -> None:
    class FailingItemCommitSession(AsyncSession):
        commits = 0

        async def commit(self) -> None:
            type(self).commits += 1
            if type(self).commits == 2:
                raise SQLAlchemyError("simulated item write failure")
            await super().commit()

    factory = async_sessionmaker(
        db_engine, class_=FailingItemCommitSession, expire_on_commit=False
    )
    store = TrendStore(factory, aggregator)
    fake_marketplace.listings = example_listings

    snapshot, created = await store.update_for_date(date(2025, 1, 1))

    assert created is True
    assert snapshot is not None
    assert snapshot.total_sold == 11
    assert await _count(factory, TrendSnapshot) == 1
    assert await _count(factory, TrendSnapshotItem) == 0


@pytest.mark.asyncio
async def test_deleting_snapshot_cascades_to_items(
    store, session_factory, fake_marketplace, example_listings
) -> None:
    fake_marketplace.listings = example_listings
    await store.update_for_date(date(2025, 1, 1))

    async with session_factory() as session:
        result = await session.execute(
            select(TrendSnapshot).options(selectinload(TrendSnapshot.items))
        )
        await session.delete(result.scalars().one())
        await session.commit()

    assert await _count(session_factory, TrendSnapshot) == 0
    assert await _count(session_factory, TrendSnapshotItem) == 0


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_history_is_most_recent_n_oldest_first(store, session_factory) -> None:
    for day, avg in [(1, "10.00"), (2, "11.00"), (4, "12.00"), (5, "13.00")]:
        await _insert_snapshot(session_factory, date(2025, 1, day), avg)

    history = await store.get_history(3)

    assert [row.date for row in history] == [
        date(2025, 1, 2), date(2025, 1, 4), date(2025, 1, 5),
    ]


@pytest.mark.asyncio
async def test_previous_snapshot_is_strictly_earlier(store, session_factory) -> None:
    await _insert_snapshot(session_factory, date(2025, 1, 1), "10.00")
    await _insert_snapshot(session_factory, date(2025, 1, 3), "12.00")

    previous = await store.get_previous_snapshot(date(2025, 1, 3))

    assert previous.date == date(2025, 1, 1)
    assert (await store.get_previous_snapshot(date(2025, 1, 9))).date == date(2025, 1, 3)
    assert await store.get_previous_snapshot(date(2025, 1, 1)) is None


@pytest.mark.asyncio
async def test_range_is_inclusive(store, session_factory) -> None:
    for day in (1, 2, 3, 4):
        await _insert_snapshot(session_factory, date(2025, 1, day), "10.00")

    rows = await store.get_range(date(2025, 1, 2), date(2025, 1, 3))

    assert [row.date for row in rows] == [date(2025, 1, 2), date(2025, 1, 3)]


def test_window_start() -> None:
    assert window_start(date(2026, 10, 18), 90) == date(2026, 7, 21)
    assert window_start(date(2026, 10, 18), 1) == date(2026, 10, 18)
