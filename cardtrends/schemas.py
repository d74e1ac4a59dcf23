"""
Card Trends — Data shapes shared by the client, engine, store and API.

RawListing is what the marketplace client hands the aggregator.
MarketSummary is the only shape the read path exposes; it serializes with
camelCase keys for the UI layer.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from cardtrends.config import SentimentType

# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

_ZERO = Decimal("0")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Upstream
# ---------------------------------------------------------------------------

class RawListing(_CamelModel):
    """A single marketplace search result. Never persisted on its own."""

    title: str = ""
    price: Decimal | None = None
    currency: str = "USD"
    image_url: str | None = None
    item_web_url: str = ""
    category: str = ""

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> Decimal | None:
        """Unparseable or non-finite prices become None instead of failing."""
        if value is None or isinstance(value, bool):
            return None
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        return parsed if parsed.is_finite() else None

    @property
    def has_valid_price(self) -> bool:
        return self.price is not None and self.price > _ZERO


# ---------------------------------------------------------------------------
# Read API shape
# ---------------------------------------------------------------------------

class MarketMovement(_CamelModel):
    average_price: Money = _ZERO
    percent_change: Money = _ZERO
    total_sold: int = 0
    highest_sale: Money = _ZERO
    lowest_sale: Money = _ZERO


class TrendPoint(_CamelModel):
    """
    One day of the trailing trend chart.

    synthetic=True marks a point generated from today's baseline rather
    than read from a stored daily snapshot.
    """

    date: dt.date
    average_price: Money
    total_sold: int
    synthetic: bool = True


class Mover(_CamelModel):
    """
    A listing priced well above (gainer) or below (loser) its peer batch.

    previous_price is the batch median and price_change the percentage
    deviation from it. No per-listing price history exists, so this is a
    relative-to-peers metric, not a movement over time.
    """

    name: str
    previous_price: Money
    current_price: Money
    price_change: Money
    image_url: str | None = None
    item_url: str = ""


class RecentSale(_CamelModel):
    title: str
    price: Money
    image_url: str | None = None
    item_web_url: str = ""
    category: str = ""
    sold_date: dt.date  # display placeholder, upstream supplies no sale date


class MarketSentiment(_CamelModel):
    type: SentimentType = SentimentType.NEUTRAL
    label: str = "Neutral Market"
    description: str = "Not enough data to determine market sentiment."


class MarketSummary(_CamelModel):
    market_movement: MarketMovement = Field(default_factory=MarketMovement)
    trend_data: list[TrendPoint] = Field(default_factory=list)
    top_gainers: list[Mover] = Field(default_factory=list)
    top_losers: list[Mover] = Field(default_factory=list)
    recent_sales: list[RecentSale] = Field(default_factory=list)
    sentiment: MarketSentiment = Field(default_factory=MarketSentiment)
    generated_at: dt.datetime | None = None

    # Valid-price listings, highest first. Feeds the snapshot item sample.
    listings: list[RawListing] = Field(default_factory=list, exclude=True)

    @property
    def is_empty(self) -> bool:
        return self.market_movement.total_sold == 0


# ---------------------------------------------------------------------------
# Stored history
# ---------------------------------------------------------------------------

class SnapshotItemOut(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    price: Money
    currency: str
    image_url: str | None = None
    item_web_url: str
    category: str


class SnapshotOut(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    average_price: Money
    highest_sale: Money
    lowest_sale: Money
    total_sold: int
    percent_change: Money | None = None
    items: list[SnapshotItemOut] = Field(default_factory=list)


class DailyUpdateResult(_CamelModel):
    date: dt.date
    created: bool
    snapshot: SnapshotOut | None = None
