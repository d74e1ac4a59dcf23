"""
Card Trends — Daily Trend Snapshot Models

One immutable summary row per calendar date, plus the bounded sample of
listings that contributed to it. Written once by the daily update job,
never updated afterwards.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    INTEGER,
    TIMESTAMP,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cardtrends.models.base import Base


class TrendSnapshot(Base):
    """
    Daily market summary.

    The unique constraint on `date` is what makes concurrent daily updates
    safe: the losing insert hits IntegrityError and is treated as a no-op.

    percent_change is relative to the most recent earlier snapshot; NULL
    when no earlier snapshot exists.
    """

    __tablename__ = "market_trend_snapshots"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(
        Date, nullable=False, comment="Calendar day this snapshot summarizes"
    )
    average_price: Mapped[Decimal] = mapped_column(
        DECIMAL(10, 2), nullable=False, comment="Mean of positive listing prices"
    )
    highest_sale: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    lowest_sale: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    total_sold: Mapped[int] = mapped_column(
        INTEGER, nullable=False, comment="Count of listings contributing"
    )
    percent_change: Mapped[Decimal | None] = mapped_column(
        DECIMAL(10, 2), nullable=True, comment="Percent change vs previous snapshot"
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    items: Mapped[list["TrendSnapshotItem"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        order_by="TrendSnapshotItem.price.desc()",
    )

    __table_args__ = (
        UniqueConstraint("date", name="uq_market_trend_snapshots_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrendSnapshot date={self.date} avg={self.average_price} "
            f"sold={self.total_sold} change={self.percent_change}>"
        )


class TrendSnapshotItem(Base):
    """A listing sampled into a snapshot. Owned by, and deleted with, its parent."""

    __tablename__ = "market_trend_snapshot_items"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(
        INTEGER,
        ForeignKey("market_trend_snapshots.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    item_web_url: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)

    snapshot: Mapped[TrendSnapshot] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_market_trend_snapshot_items_snapshot_id", "snapshot_id"),
    )

    def __repr__(self) -> str:
        return f"<TrendSnapshotItem snapshot_id={self.snapshot_id} price={self.price}>"
