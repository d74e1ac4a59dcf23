"""
Card Trends — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- In-memory aiosqlite database with the snapshot tables
- Fake marketplace client (no network)
- Aggregator / cache / store / service wired against the fakes
- Controllable monotonic clock for TTL tests
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Iterable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cardtrends.engine.aggregator import TrendAggregator
from cardtrends.models.base import Base
from cardtrends.schemas import RawListing
from cardtrends.services.market_trends import MarketTrendsService
from cardtrends.services.trend_cache import TrendCache
from cardtrends.services.trend_store import TrendStore

# Fixed "now" for the live read path: 2026-10-18 noon UTC
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

# Example batch: eleven valid prices plus one negative price that must be dropped
EXAMPLE_PRICES: list[Any] = [5, 5, 5, 5, 5, 10, 10, 10, 50, 50, 100, "-3"]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeMarketplace:
    """Stands in for EbayBrowseClient: async context manager with search()."""

    def __init__(self) -> None:
        self.listings: list[RawListing] = []
        self.error: BaseException | None = None
        self.delay: float = 0.0
        self.calls: list[tuple[str, str]] = []
        self.before_return: Callable[[], Any] | None = None

    async def __aenter__(self) -> "FakeMarketplace":
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None

    async def search(self, query: str, category_id: str) -> list[RawListing]:
        self.calls.append((query, category_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.before_return is not None:
            await self.before_return()
        return list(self.listings)


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


def make_listings(prices: Iterable[Any]) -> list[RawListing]:
    return [
        RawListing(
            title=f"Card #{i} priced {price}",
            price=price,
            currency="USD",
            image_url=f"https://img.example.com/{i}.jpg",
            item_web_url=f"https://www.ebay.com/itm/{i}",
            category="Non-Sport Trading Card Singles",
        )
        for i, price in enumerate(prices)
    ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def listings_factory() -> Callable[[Iterable[Any]], list[RawListing]]:
    return make_listings


@pytest.fixture
def example_listings() -> list[RawListing]:
    return make_listings(EXAMPLE_PRICES)


@pytest.fixture
def fake_marketplace() -> FakeMarketplace:
    return FakeMarketplace()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def aggregator(fake_marketplace: FakeMarketplace) -> TrendAggregator:
    return TrendAggregator(
        client_factory=lambda: fake_marketplace,
        query="trading card",
        category_id="183050",
        timeout_seconds=1.0,
        window_days=90,
        rng=random.Random(42),
    )


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite shared by every session of one test.

    StaticPool keeps a single connection so separate sessions see the
    same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(
    session_factory: async_sessionmaker[AsyncSession], aggregator: TrendAggregator
) -> TrendStore:
    return TrendStore(session_factory, aggregator, item_limit=20)


@pytest.fixture
def cache(clock: FakeClock) -> TrendCache:
    return TrendCache(ttl_seconds=900, clock=clock)


@pytest.fixture
def service(
    aggregator: TrendAggregator, cache: TrendCache, store: TrendStore
) -> MarketTrendsService:
    return MarketTrendsService(
        aggregator=aggregator,
        cache=cache,
        store=store,
        window_days=90,
        now=lambda: NOW,
    )
