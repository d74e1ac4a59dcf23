"""Create market trend snapshot tables

Revision ID: 001_market_trend_snapshots
Revises:
Create Date: 2026-10-18

Adds:
  - market_trend_snapshots (one row per calendar date, unique on date)
  - market_trend_snapshot_items (FK -> market_trend_snapshots.id ON DELETE CASCADE)
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001_market_trend_snapshots"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ------------------------------------------------------------------
    # 1. Daily snapshots. The unique date is the idempotency guard for
    #    concurrent daily updates.
    # ------------------------------------------------------------------
    op.create_table(
        "market_trend_snapshots",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("average_price", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("highest_sale", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("lowest_sale", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("total_sold", sa.INTEGER(), nullable=False),
        sa.Column("percent_change", sa.DECIMAL(10, 2), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("date", name="uq_market_trend_snapshots_date"),
    )

    # ------------------------------------------------------------------
    # 2. Sampled listings, owned by their snapshot
    # ------------------------------------------------------------------
    op.create_table(
        "market_trend_snapshot_items",
        sa.Column("id", sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column(
            "snapshot_id",
            sa.INTEGER(),
            sa.ForeignKey("market_trend_snapshots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("price", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("item_web_url", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
    )
    op.create_index(
        "ix_market_trend_snapshot_items_snapshot_id",
        "market_trend_snapshot_items",
        ["snapshot_id"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_market_trend_snapshot_items_snapshot_id",
        table_name="market_trend_snapshot_items",
    )
    op.drop_table("market_trend_snapshot_items")
    op.drop_table("market_trend_snapshots")
