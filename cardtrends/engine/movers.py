"""
Card Trends — Top Gainers / Losers

Movers are ranked against the median price of the current batch, not
against a previous price for the same listing: the marketplace feed has
no per-listing history. A "gainer" is a listing priced furthest above its
peers, a "loser" one priced furthest below.

Invariant: every gainer is priced >= the batch median and every loser
<= the batch median, even when the batch is smaller than twice the limit.
"""

from __future__ import annotations

from decimal import Decimal
from statistics import median
from typing import Sequence

import structlog

from cardtrends.engine.stats import percentage_change, to_cents
from cardtrends.schemas import Mover, RawListing

logger = structlog.get_logger(__name__)


def median_price(listings: Sequence[RawListing]) -> Decimal:
    """Median of the listing prices. Callers pass valid-price listings only."""
    return Decimal(median([listing.price for listing in listings]))


def _to_mover(listing: RawListing, baseline: Decimal) -> Mover:
    return Mover(
        name=listing.title,
        previous_price=to_cents(baseline),
        current_price=to_cents(listing.price),
        price_change=percentage_change(listing.price, baseline),
        image_url=listing.image_url,
        item_url=listing.item_web_url,
    )


def compute_movers(
    listings: Sequence[RawListing],
    limit: int = 5,
) -> tuple[list[Mover], list[Mover]]:
    """
    Pick the `limit` highest-priced gainers and `limit` lowest-priced losers.

    Args:
        listings: Listings with a positive price, in any order.
        limit: Maximum movers per side.

    Returns:
        (top_gainers highest first, top_losers lowest first). Both empty
        for an empty batch.
    """
    if not listings:
        return [], []

    ranked = sorted(listings, key=lambda listing: listing.price, reverse=True)
    baseline = median_price(ranked)

    gainers = [
        _to_mover(listing, baseline)
        for listing in ranked[:limit]
        if listing.price >= baseline
    ]
    losers = [
        _to_mover(listing, baseline)
        for listing in list(reversed(ranked))[:limit]
        if listing.price <= baseline
    ]

    logger.debug(
        "movers_computed",
        batch_size=len(ranked),
        median=str(baseline),
        gainers=len(gainers),
        losers=len(losers),
    )
    return gainers, losers
