"""
Card Trends — Market sentiment classification

Maps the latest percent change to a seller's / buyer's / neutral market
label for display.
"""

from __future__ import annotations

from decimal import Decimal

from cardtrends.config import SentimentType, settings
from cardtrends.schemas import MarketSentiment


def classify_sentiment(
    percent_change: Decimal | None,
    seller_threshold: Decimal | None = None,
    buyer_threshold: Decimal | None = None,
) -> MarketSentiment:
    """
    Classify a percent change.

    > seller_threshold → seller's market, < buyer_threshold → buyer's market,
    otherwise neutral. None (no earlier snapshot to compare to) → neutral
    with a "not enough data" description.
    """
    if percent_change is None:
        return MarketSentiment()

    seller = settings.SENTIMENT_SELLER_THRESHOLD if seller_threshold is None else seller_threshold
    buyer = settings.SENTIMENT_BUYER_THRESHOLD if buyer_threshold is None else buyer_threshold

    if percent_change > seller:
        return MarketSentiment(
            type=SentimentType.SELLER,
            label="Seller's Market",
            description=(
                "Prices are up. Stronger conditions for sellers looking to "
                "capitalize on increased values."
            ),
        )
    if percent_change < buyer:
        return MarketSentiment(
            type=SentimentType.BUYER,
            label="Buyer's Market",
            description=(
                "Prices are down. Better entry points for buyers looking to "
                "expand their collection."
            ),
        )
    return MarketSentiment(
        type=SentimentType.NEUTRAL,
        label="Neutral Market",
        description="Prices are relatively stable for both buyers and sellers.",
    )
