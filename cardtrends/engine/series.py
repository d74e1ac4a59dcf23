"""
Card Trends — Synthetic trailing trend series

Builds one chart point per day for a trailing window ending today. There
is only one real observation (today's aggregate), so every earlier point
is today's baseline perturbed by bounded random noise:

    price  = baseline_price  × (1 + U(-price_variation,  +price_variation))
    volume = baseline_volume × (1 + U(-volume_variation, +volume_variation))

This is a visualization aid, not market history. Every point is marked
synthetic=True; real stored snapshots are overlaid by the service layer.
The final point (today) is the unperturbed baseline.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from decimal import Decimal

from cardtrends.engine.stats import to_cents
from cardtrends.schemas import TrendPoint


def _jitter(rng: random.Random, variation: float) -> Decimal:
    return Decimal(str(round(1 + rng.uniform(-variation, variation), 6)))


def build_synthetic_series(
    baseline_price: Decimal,
    baseline_volume: int,
    today: date,
    window_days: int = 90,
    rng: random.Random | None = None,
    price_variation: float = 0.15,
    volume_variation: float = 0.30,
) -> list[TrendPoint]:
    """
    Return `window_days` points, oldest first, the last dated `today`.

    Args:
        baseline_price: Today's average price.
        baseline_volume: Estimated daily volume (today's listing count).
        today: Anchor date for the final point.
        window_days: Number of points; non-positive yields [].
        rng: Random source. Pass a seeded Random for reproducible output.
        price_variation: Max relative price deviation per point.
        volume_variation: Max relative volume deviation per point.
    """
    if window_days <= 0:
        return []
    rng = rng or random.Random()

    points: list[TrendPoint] = []
    for offset in range(window_days - 1, 0, -1):
        price = to_cents(baseline_price * _jitter(rng, price_variation))
        volume = int(round(baseline_volume * float(_jitter(rng, volume_variation))))
        points.append(
            TrendPoint(
                date=today - timedelta(days=offset),
                average_price=price,
                total_sold=max(volume, 0),
                synthetic=True,
            )
        )

    points.append(
        TrendPoint(
            date=today,
            average_price=to_cents(baseline_price),
            total_sold=baseline_volume,
            synthetic=True,
        )
    )
    return points
